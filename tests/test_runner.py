import pytest

from layoutest_lib.runner import EXTRACTION_FAILED, RunOptions, run_layout

from conftest import make_fixture

STAGES = """
function populate_blocked_positions_from_area(state)
    state.blocked = {}
end

function add_development_toolbox(state)
    state.toolbox = {
        extractor = {
            relative_bounds = {left_top = {x = -1, y = -1}, right_bottom = {x = 1, y = 1}},
        },
        beacon = {
            relative_bounds = {left_top = {x = -1, y = -1}, right_bottom = {x = 1, y = 1}},
        },
    }
end

function plan_plumbing(state)
    local t = pumpdebug.sample_start()
    state.construction_plan = {
        [0] = {[0] = {name = "pipe", direction = defines.direction.north}},
    }
    pumpdebug.sample_finish("plumbing", t)
end

function plan_beacons(state)
end

function plan_heat_pipes(state, _)
end

function plan_power(state)
end
"""


def test_end_to_end_plants_a_pipe(stub_pipeline, square_fixture):
    stub_pipeline.write(STAGES)

    outcome = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location)

    assert outcome.ok
    cell = outcome.result.grid.cell_at(0, 0)
    assert (cell.marker, cell.content, cell.direction) == ("+", "pipe", 0)
    assert outcome.result.grid.cell_at(1, 1).marker is None
    assert outcome.diagnostics.planned_entities == 1
    lines = outcome.diagnostics.log_text.split("\n")
    assert "Planned entities: 1" in lines
    assert "Result" in lines
    assert "[0][0][name]=pipe" in lines


def test_toolbox_footprints_are_read(stub_pipeline, square_fixture):
    stub_pipeline.write(STAGES)

    result = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location).result

    assert result.extractor_box.left_top.x == -1
    assert result.beacon_box.right_bottom.y == 1
    assert set(result.footprints()) == {"extractor", "beacon"}


def test_samples_and_timings_are_reported(stub_pipeline, square_fixture):
    stub_pipeline.write(STAGES)

    diagnostics = run_layout(
        square_fixture, stub_pipeline.options(), stub_pipeline.location
    ).diagnostics

    assert diagnostics.samples["plumbing"].count == 1
    assert any(line.endswith("| 1 samples | plumbing") for line in diagnostics.log_text.split("\n"))
    assert [t.label for t in diagnostics.stage_timings] == [
        "plumbing",
        "beaconing",
        "heating",
        "electricity",
    ]
    assert all(t.ran for t in diagnostics.stage_timings)


def test_disabled_stages_are_skipped(stub_pipeline, square_fixture):
    stub_pipeline.write(
        STAGES
        + """
function plan_beacons(state)
    error("beacons must not run")
end
"""
    )
    options = stub_pipeline.options(plan_beacons=False, plan_power_poles=False)

    outcome = run_layout(square_fixture, options, stub_pipeline.location)

    assert outcome.ok
    lines = outcome.diagnostics.log_text.split("\n")
    assert "'beaconing' skipped" in lines
    assert "'electricity' skipped" in lines
    assert any(line.startswith("'heating' took ") for line in lines)


def test_stage_failure_does_not_abort_the_run(stub_pipeline, square_fixture):
    stub_pipeline.write(
        STAGES
        + """
function plan_power(state)
    return {reason = "no room for poles"}
end
"""
    )

    outcome = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location)

    assert outcome.ok
    assert [(f.stage, f.value) for f in outcome.diagnostics.stage_failures] == [
        ("electricity", {"reason": "no room for poles"})
    ]
    assert "[reason]=no room for poles" in outcome.diagnostics.log_text.split("\n")
    assert outcome.diagnostics.planned_entities == 1


def test_context_failure_is_reported_once(stub_pipeline, square_fixture):
    stub_pipeline.write(
        STAGES
        + """
function plan_beacons(state)
    state.failure = "no beacon spot"
end

function plan_power(state)
    state.failure = {pole = "unreachable"}
end
"""
    )

    outcome = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location)

    assert outcome.ok
    assert [(f.stage, f.value) for f in outcome.diagnostics.stage_failures] == [
        ("beaconing", "no beacon spot"),
        ("electricity", {"pole": "unreachable"}),
    ]


def test_script_error_fails_the_run(stub_pipeline, square_fixture):
    stub_pipeline.write(
        STAGES
        + """
function plan_heat_pipes(state, _)
    local broken = nil
    return broken.field
end
"""
    )

    outcome = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location)

    assert not outcome.ok
    assert outcome.result is not None
    assert "stack traceback" in outcome.diagnostics.log_text
    assert "planner.lua" in outcome.diagnostics.log_text


def test_conflicting_plan_reports_extraction_failure(stub_pipeline, square_fixture):
    stub_pipeline.write(
        STAGES
        + """
function plan_plumbing(state)
    state.construction_plan = {
        [0] = {{name = "pipe", direction = 0}},
        ["0"] = {{name = "beacon", direction = 0}},
    }
end
"""
    )

    outcome = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location)

    assert not outcome.ok
    lines = outcome.diagnostics.log_text.split("\n")
    assert EXTRACTION_FAILED in lines
    assert any(line.startswith("ConflictError: Can't add beacon (B)") for line in lines)


def test_missing_entry_point_is_a_script_fault(stub_pipeline, square_fixture):
    stub_pipeline.write("function populate_blocked_positions_from_area(state) end")

    outcome = run_layout(square_fixture, stub_pipeline.options(), stub_pipeline.location)

    assert outcome.diagnostics.failed
    assert "'add_development_toolbox' is not defined" in outcome.diagnostics.error


def test_invalid_fixture_returns_no_result(stub_pipeline):
    outcome = run_layout("{not json", stub_pipeline.options(), stub_pipeline.location)

    assert outcome.result is None
    assert outcome.diagnostics.failed
    assert outcome.diagnostics.log_text.startswith("FormatError: ")


def test_missing_environment_returns_no_result(tmp_path, square_fixture):
    options = RunOptions(pipeline_dir=str(tmp_path / "nowhere"), data_dir=str(tmp_path))

    outcome = run_layout(square_fixture, options)

    assert outcome.result is None
    assert "pipeline directory could not be found" in outcome.diagnostics.error


def test_planned_outside_bounds_is_a_warning(stub_pipeline):
    fixture = make_fixture(
        {(x, 0): "buildable" for x in range(3)}, left_top=("0", "0"), right_bottom=("1", "0")
    )
    stub_pipeline.write(
        STAGES
        + """
function plan_plumbing(state)
    state.construction_plan = {[2] = {[0] = {name = "pipe", direction = 4}}}
end
"""
    )

    outcome = run_layout(fixture, stub_pipeline.options(), stub_pipeline.location)

    assert outcome.ok
    assert outcome.diagnostics.planned_entities == 0
    assert [(w.name, w.x) for w in outcome.diagnostics.out_of_bounds] == [("pipe", 2.0)]


@pytest.mark.parametrize(
    "settings, expected",
    [
        ({}, (True, True, True, None)),
        (
            {
                "Stages": {"plan_beacons": "false", "plan_heat_pipes": "no", "plan_power_poles": "1"},
                "Diagnostics": {"trace_line": "42", "soft_deadline": "2.5"},
            },
            (False, False, True, 42),
        ),
    ],
)
def test_options_from_settings(settings, expected):
    options = RunOptions.from_settings(settings)
    assert (
        options.plan_beacons,
        options.plan_heat_pipes,
        options.plan_power_poles,
        options.trace_line,
    ) == expected
