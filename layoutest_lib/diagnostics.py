# --- layoutest_lib/diagnostics.py ---
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .values import DynamicValue, is_container, render_value

log_script = logging.getLogger("layoutest.script")


class RunLog:
    """The human-readable text log of one run."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.lines: List[str] = []
        self._clock = clock
        self.started = clock()

    def write(self, message: Any):
        for line in str(message).split("\n"):
            self.lines.append(line)
            log_script.debug("%s", line)

    def write_value(self, value: DynamicValue):
        """Writes a scalar as text, a table as '---' plus one line per leaf."""
        if value is None:
            self.write("null")
        elif is_container(value):
            self.write("---")
            for line in render_value(value):
                self.write(line)
        else:
            self.write(value)

    def elapsed_ms(self) -> int:
        return int((self._clock() - self.started) * 1000)

    def lap(self, message: Any):
        self.write(f"{self.elapsed_ms()}ms -- {message}")

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def __contains__(self, line: str) -> bool:
        return line in self.lines


@dataclass
class Sample:
    """Accumulated elapsed ticks and hit count of one diagnostic label."""

    ticks: int = 0
    count: int = 0


class SampleAccumulator:
    """Collects the pipeline's sample_start/sample_finish measurements."""

    def __init__(
        self,
        clock: Callable[[], int] = time.perf_counter_ns,
        ticks_per_ms: float = 1_000_000,
    ):
        self._clock = clock
        self.ticks_per_ms = ticks_per_ms
        self.samples: Dict[str, Sample] = {}

    def start(self) -> int:
        return self._clock()

    def finish(self, key: str, start: int):
        self.record(key, self._clock() - start)

    def record(self, key: str, elapsed: int):
        sample = self.samples.setdefault(key, Sample())
        sample.ticks += elapsed
        sample.count += 1

    def ranked(self) -> List[tuple]:
        return sorted(self.samples.items(), key=lambda kv: kv[1].ticks, reverse=True)

    def report_lines(self) -> List[str]:
        return [
            f"{sample.ticks / self.ticks_per_ms}ms | {sample.count} samples | {key}"
            for key, sample in self.ranked()
        ]


@dataclass
class StageTiming:
    label: str
    milliseconds: int = 0
    ran: bool = False


@dataclass
class StageFailure:
    """A failure value a stage reported; the run carries on."""

    stage: str
    value: DynamicValue


@dataclass
class OutOfBoundsWarning:
    """A planned entity outside the area bounds; it is skipped."""

    name: str
    x: float
    y: float


@dataclass
class RunDiagnostics:
    """Everything a run reports besides its grid; always carries the log text."""

    log_text: str = ""
    stage_timings: List[StageTiming] = field(default_factory=list)
    samples: Dict[str, Sample] = field(default_factory=dict)
    stage_failures: List[StageFailure] = field(default_factory=list)
    out_of_bounds: List[OutOfBoundsWarning] = field(default_factory=list)
    warnings: DynamicValue = None
    planned_entities: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
