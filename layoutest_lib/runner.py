# --- layoutest_lib/runner.py ---
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .bridge import PipelineLocation, ScriptSession, locate_pipeline
from .constants import CONTEXT_GLOBAL
from .diagnostics import (
    RunDiagnostics,
    RunLog,
    SampleAccumulator,
    StageFailure,
    StageTiming,
)
from .errors import EnvironmentSetupError, FormatError, SchemaError, ScriptFault
from .fixture import Fixture, parse_fixture, read_bounds
from .grid import BoundingBox, LayoutResult
from .merger import merge_construction_plan
from .pipeline import PipelineConfig, StageSpec
from .values import DynamicValue, from_lua

log = logging.getLogger("layoutest.bridge")

EXTRACTION_FAILED = (
    "Failed while building the visualization, an exception occurred "
    "while adding the output to the grid."
)


def _as_bool(text: Any) -> bool:
    return str(text).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RunOptions:
    """Stage toggles, pipeline location and diagnostics settings of a run."""

    plan_beacons: bool = True
    plan_heat_pipes: bool = True
    plan_power_poles: bool = True
    pipeline_dir: Optional[str] = None
    data_dir: Optional[str] = None
    trace_line: Optional[int] = None
    soft_deadline: float = 5.0
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    def stage_enabled(self, stage: StageSpec) -> bool:
        return stage.option is None or bool(getattr(self, stage.option))

    @classmethod
    def from_settings(cls, settings: Dict[str, Dict[str, str]]) -> "RunOptions":
        """Builds options from ConfigService settings; empty values mean unset."""
        pipeline = settings.get("Pipeline", {})
        stages = settings.get("Stages", {})
        diag = settings.get("Diagnostics", {})
        trace_line = diag.get("trace_line", "").strip()
        return cls(
            plan_beacons=_as_bool(stages.get("plan_beacons", "true")),
            plan_heat_pipes=_as_bool(stages.get("plan_heat_pipes", "true")),
            plan_power_poles=_as_bool(stages.get("plan_power_poles", "true")),
            pipeline_dir=pipeline.get("pipeline_dir") or None,
            data_dir=pipeline.get("data_dir") or None,
            trace_line=int(trace_line) if trace_line else None,
            soft_deadline=float(diag.get("soft_deadline") or 5.0),
        )


@dataclass
class RunOutcome:
    """The grid of a run, if it got that far, and its diagnostics."""

    result: Optional[LayoutResult]
    diagnostics: RunDiagnostics

    @property
    def ok(self) -> bool:
        return self.result is not None and not self.diagnostics.failed


def _context_value(fixture: Fixture) -> Dict[str, Any]:
    area = {}
    for column in fixture.grid.columns.values():
        area[column.x] = {cell.y: cell.content for cell in column.cells.values()}
    return {
        "area_bounds": fixture.bounds.to_value(),
        "area": area,
        "warnings": [],
    }


def _read_footprint(context, name: str) -> Optional[BoundingBox]:
    toolbox = from_lua(context["toolbox"])
    try:
        relative_bounds = toolbox[name]["relative_bounds"]
    except (KeyError, TypeError):
        log.debug("The toolbox has no footprint for '%s'.", name)
        return None
    return read_bounds(relative_bounds, f"toolbox.{name}.relative_bounds")


def invoke_stage(session: ScriptSession, stage: StageSpec, context) -> DynamicValue:
    """
    Calls a stage entry point; returns its reported failure, if any.

    The failure is the stage's first return value, or else ``context.failure``
    when the stage changed it. A failure left by an earlier stage is not
    reported again.
    """
    function = session.resolve(stage.entry_point)
    if function is None:
        raise ScriptFault(f"Pipeline entry point '{stage.entry_point}' is not defined.")
    log.debug("Invoking stage '%s' (%s)", stage.label, stage.entry_point)
    previous = from_lua(context["failure"])
    failure = from_lua(session.call(function, context, *stage.extra_args))
    if failure is None:
        current = from_lua(context["failure"])
        if current != previous:
            failure = current
    return failure


def _execute(
    session: ScriptSession,
    fixture: Fixture,
    options: RunOptions,
    result: LayoutResult,
    run_log: RunLog,
    samples: SampleAccumulator,
    diagnostics: RunDiagnostics,
):
    pipeline = options.pipeline
    for module in pipeline.modules:
        session.require(module)

    context = session.new_table(_context_value(fixture))
    session.set_global(CONTEXT_GLOBAL, context)

    for stage in pipeline.setup_stages:
        invoke_stage(session, stage, context)

    result.extractor_box = _read_footprint(context, "extractor")
    result.beacon_box = _read_footprint(context, "beacon")

    for stage in pipeline.planning_stages:
        timing = StageTiming(stage.label)
        diagnostics.stage_timings.append(timing)
        if not options.stage_enabled(stage):
            continue
        started = time.perf_counter()
        failure = invoke_stage(session, stage, context)
        timing.milliseconds = int((time.perf_counter() - started) * 1000)
        timing.ran = True
        if failure is not None:
            diagnostics.stage_failures.append(StageFailure(stage.label, failure))
            run_log.write(f"'{stage.label}' reported a failure:")
            run_log.write_value(failure)

    run_log.write("---")
    for timing in diagnostics.stage_timings:
        if timing.ran:
            run_log.write(f"'{timing.label}' took {timing.milliseconds}ms")
        else:
            run_log.write(f"'{timing.label}' skipped")
    run_log.write("---")
    for line in samples.report_lines():
        run_log.write(line)

    failure = from_lua(context["failure"])
    if failure is not None:
        run_log.write_value(failure)

    diagnostics.warnings = from_lua(context["warnings"])
    run_log.write_value(diagnostics.warnings)

    plan = from_lua(context["construction_plan"])
    diagnostics.planned_entities = merge_construction_plan(
        result.grid,
        plan,
        fixture.bounds,
        pipeline,
        run_log,
        diagnostics.out_of_bounds,
    )

    run_log.write("---------------")
    run_log.write("Result")
    run_log.write("---------------")
    if plan is not None:
        run_log.write_value(plan)
    else:
        run_log.write("Nothing ... ")


def run_layout(
    fixture_text: str,
    options: Optional[RunOptions] = None,
    location: Optional[PipelineLocation] = None,
) -> RunOutcome:
    """
    Runs the planning pipeline once against a fixture.

    Never raises for run failures: a failed run returns an outcome whose
    diagnostics carry the error and the log up to the failure point.

    Args:
        fixture_text: The fixture document as JSON text.
        options: Stage toggles and pipeline configuration.
        location: Pipeline and data directories; located from ``options``
            when omitted.

    Returns:
        A RunOutcome with the merged grid (None if the run aborted before any
        stage) and the run diagnostics.
    """
    options = options or RunOptions()
    run_log = RunLog()
    samples = SampleAccumulator()
    diagnostics = RunDiagnostics()
    result = None

    try:
        fixture = parse_fixture(fixture_text)
        if location is None:
            location = locate_pipeline(options.pipeline_dir, options.data_dir)
    except (SchemaError, FormatError, EnvironmentSetupError) as e:
        log.error("Run aborted: %s", e)
        run_log.write(f"{type(e).__name__}: {e}")
        diagnostics.error = str(e)
        fixture = None

    if fixture is not None:
        result = LayoutResult(grid=fixture.grid)
        session = ScriptSession(
            location,
            run_log,
            samples,
            trace_line=options.trace_line,
            soft_deadline=options.soft_deadline,
        )
        try:
            with session:
                _execute(session, fixture, options, result, run_log, samples, diagnostics)
        except ScriptFault as e:
            log.error("Lua fault: %s", e.args[0])
            run_log.write(str(e))
            if session.last_stack:
                run_log.write(session.last_stack)
            diagnostics.error = str(e)
        except Exception as e:
            log.error("Failed to merge pipeline output: %s", e, exc_info=True)
            run_log.write(EXTRACTION_FAILED)
            run_log.write(f"{type(e).__name__}: {e}")
            diagnostics.error = str(e)

    run_log.write(datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    diagnostics.samples = dict(samples.samples)
    diagnostics.log_text = run_log.text
    return RunOutcome(result=result, diagnostics=diagnostics)
