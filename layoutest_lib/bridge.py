# --- layoutest_lib/bridge.py ---
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, List, Optional

from lupa import LuaError, LuaRuntime, lua_type

from .constants import DEBUG_NAMESPACE, Direction
from .diagnostics import RunLog, SampleAccumulator
from .errors import EnvironmentSetupError, ScriptFault
from .pipeline import ModuleSpec
from .values import from_lua, to_lua

log = logging.getLogger("layoutest.bridge")

# Marker file identifying the root of the pipeline's source checkout.
ROOT_MARKER = "LICENSE"


@dataclass(frozen=True)
class PipelineLocation:
    """Where the pipeline's Lua modules and the runtime data live."""

    pipeline_dir: str
    data_dir: str

    def search_path(self) -> List[str]:
        return [
            os.path.join(self.pipeline_dir, "?.lua"),
            os.path.join(self.data_dir, "base", "?.lua"),
            os.path.join(self.data_dir, "core", "?.lua"),
            os.path.join(self.data_dir, "core", "lualib", "?.lua"),
        ]


def find_solution_root(start: str) -> Optional[str]:
    """Walks up from ``start`` to the first directory holding the root marker."""
    current = os.path.abspath(start)
    while True:
        if os.path.isfile(os.path.join(current, ROOT_MARKER)):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def data_dir_candidates(solution_root: Optional[str]) -> List[str]:
    """Places the runtime data directory is usually found, most specific first."""
    candidates = []
    if solution_root:
        candidates.append(os.path.join(solution_root, "..", "factorio-data"))
    for env in ("ProgramFiles(x86)", "ProgramFiles"):
        base = os.environ.get(env)
        if base:
            candidates.append(os.path.join(base, "Steam", "steamapps", "common", "Factorio", "data"))
            candidates.append(os.path.join(base, "Factorio"))
    home = os.path.expanduser("~")
    candidates.extend(
        [
            os.path.join(home, ".steam", "steam", "steamapps", "common", "Factorio", "data"),
            os.path.join(home, ".local", "share", "Steam", "steamapps", "common", "Factorio", "data"),
            os.path.join(
                home, "Library", "Application Support", "Steam", "steamapps", "common",
                "Factorio", "factorio.app", "Contents", "data",
            ),
        ]
    )
    return candidates


def locate_pipeline(
    pipeline_dir: Optional[str] = None,
    data_dir: Optional[str] = None,
    start: Optional[str] = None,
) -> PipelineLocation:
    """
    Resolves the pipeline module directory and the runtime data directory.

    Without explicit directories the pipeline is expected in ``mod/`` under the
    solution root, found by walking up from ``start`` (default: the working
    directory).

    Raises:
        EnvironmentSetupError: If either directory cannot be found.
    """
    solution_root = find_solution_root(start or os.getcwd())
    if pipeline_dir is None:
        if solution_root is None:
            raise EnvironmentSetupError("The solution root could not be found.")
        pipeline_dir = os.path.join(solution_root, "mod")
    if not os.path.isdir(pipeline_dir):
        raise EnvironmentSetupError(f"The pipeline directory could not be found: {pipeline_dir}")

    if data_dir is not None:
        if not os.path.isdir(data_dir):
            raise EnvironmentSetupError(f"The data directory could not be found: {data_dir}")
    else:
        for candidate in data_dir_candidates(solution_root):
            if os.path.isdir(candidate):
                data_dir = candidate
                break
        if data_dir is None:
            raise EnvironmentSetupError("The Factorio data directory could not be found.")

    location = PipelineLocation(os.path.abspath(pipeline_dir), os.path.abspath(data_dir))
    log.info("Pipeline: %s, data: %s", location.pipeline_dir, location.data_dir)
    return location


class ScriptSession:
    """
    One disposable Lua runtime for exactly one run.

    The session registers the diagnostic callbacks, the compass directions and
    the module search path when opened, and forgets the runtime when closed.
    Every call into Lua goes through ``xpcall`` so faults surface as
    ScriptFault with a Lua traceback.

    Args:
        location: Where to find the pipeline modules and the data directory.
        run_log: The run's text log, target of ``log`` and ``lap``.
        samples: The run's sample accumulator.
        trace_line: If set, a line hook records a traceback whenever any
            chunk executes this line number.
        soft_deadline: Seconds after which the line hook notes the run is
            slow. It never interrupts the script.
    """

    def __init__(
        self,
        location: PipelineLocation,
        run_log: RunLog,
        samples: SampleAccumulator,
        trace_line: Optional[int] = None,
        soft_deadline: float = 5.0,
    ):
        self.location = location
        self.run_log = run_log
        self.samples = samples
        self.trace_line = trace_line
        self.soft_deadline = soft_deadline
        self.last_stack: Optional[str] = None
        self._lua: Optional[LuaRuntime] = None
        self._protected_call = None
        self._opened_at = 0.0
        self._deadline_noted = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def lua(self) -> LuaRuntime:
        if self._lua is None:
            raise RuntimeError("The script session is not open.")
        return self._lua

    def open(self):
        log.debug("Opening a fresh Lua session.")
        self._lua = LuaRuntime(unpack_returned_tuples=True)
        self._opened_at = time.monotonic()
        self._protected_call = self._lua.eval(
            "function(f, ...) return xpcall(f, debug.traceback, ...) end"
        )
        self._register_callbacks()
        self._install_directions()
        self._extend_package_path()
        if self.trace_line is not None:
            self._install_line_hook()

    def close(self):
        if self._lua is not None:
            log.debug("Closing the Lua session.")
        self._lua = None
        self._protected_call = None

    # --- Callbacks exposed to the pipeline ---

    def _log(self, message=None):
        value = from_lua(message)
        self.run_log.write_value(value)
        if isinstance(value, str) and value.lower() == "trace":
            self.run_log.write(self.traceback())

    def _lap(self, message=None):
        self.run_log.lap(from_lua(message))

    def _sample_start(self):
        return self.samples.start()

    def _sample_finish(self, key, start):
        self.samples.finish(str(from_lua(key)), int(start))

    def _capture_line(self, stack):
        self.last_stack = str(from_lua(stack))
        if not self._deadline_noted and time.monotonic() - self._opened_at > self.soft_deadline:
            # The deadline is advisory only; the running stage is not interrupted.
            self._deadline_noted = True
            log.warning("Soft deadline of %ss passed; the stage keeps running.", self.soft_deadline)

    def _register_callbacks(self):
        g = self.lua.globals()
        namespace = self.lua.table()
        namespace["log"] = self._log
        namespace["lap"] = self._lap
        namespace["sample_start"] = self._sample_start
        namespace["sample_finish"] = self._sample_finish
        g[DEBUG_NAMESPACE] = namespace
        g["log"] = self._log

    def _install_directions(self):
        directions = {d.name.lower(): d.value for d in Direction}
        self.lua.globals()["defines"] = to_lua(self.lua, {"direction": directions})

    def _extend_package_path(self):
        package = self.lua.globals()["package"]
        package["path"] = ";".join([package["path"]] + self.location.search_path())
        log.debug("Lua package.path: %s", package["path"])

    def _install_line_hook(self):
        install = self.lua.eval(
            """
            function(capture, target)
                debug.sethook(function(event, line)
                    if line == target then
                        capture(debug.traceback("line " .. line, 2))
                    end
                end, "l")
            end
            """
        )
        install(self._capture_line, self.trace_line)
        log.debug("Sampling tracebacks at line %d.", self.trace_line)

    # --- Calling into Lua ---

    def traceback(self) -> str:
        return str(self.lua.eval("debug.traceback()"))

    def call(self, function, *args) -> Any:
        """Calls a Lua function, returning its first result.

        Raises:
            ScriptFault: If the function raises a Lua error.
        """
        try:
            result = self._protected_call(function, *args)
        except LuaError as e:
            raise ScriptFault(str(e)) from e
        if not isinstance(result, tuple):
            result = (result,)
        ok, rest = result[0], result[1:]
        if not ok:
            error = rest[0] if rest else None
            text = error if isinstance(error, str) else str(from_lua(error))
            raise ScriptFault(text.split("\n", 1)[0], traceback=text)
        return rest[0] if rest else None

    def execute(self, code: str) -> Any:
        """Compiles and runs a chunk of Lua code in protected mode."""
        try:
            chunk = self.lua.eval(f"function() {code}\nend")
        except LuaError as e:
            raise ScriptFault(str(e)) from e
        return self.call(chunk)

    def require(self, module: ModuleSpec) -> Any:
        log.debug("require '%s'", module.name)
        loaded = self.call(self.lua.globals()["require"], module.name)
        if module.bind_as:
            self.lua.globals()[module.bind_as] = loaded
        return loaded

    def resolve(self, entry_point: str):
        """Looks up a dotted global path such as 'heater.plan_heat_pipes'."""
        value = self.lua.globals()
        for part in entry_point.split("."):
            if lua_type(value) != "table":
                return None
            value = value[part]
            if value is None:
                return None
        return value if lua_type(value) == "function" else None

    def set_global(self, name: str, value: Any):
        self.lua.globals()[name] = value

    def new_table(self, value=None):
        return to_lua(self.lua, value if value is not None else {})
