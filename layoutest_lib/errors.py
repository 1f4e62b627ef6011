# --- layoutest_lib/errors.py ---
"""Exceptions raised while preparing, running and merging a layout run."""


class HarnessError(Exception):
    """Base class for every failure the harness reports as run diagnostics."""


class SchemaError(HarnessError):
    """The fixture document is missing a required section or field."""


class FormatError(HarnessError):
    """The fixture document holds text that cannot be read as a number or label."""


class EnvironmentSetupError(HarnessError):
    """The planning pipeline or its runtime data directory could not be found."""


class ScriptFault(HarnessError):
    """An error raised inside the Lua world, with the best traceback available."""

    def __init__(self, message: str, traceback: str = ""):
        super().__init__(message)
        self.traceback = traceback

    def __str__(self):
        # The Lua traceback already starts with the error message.
        return self.traceback or self.args[0]


class ConflictError(HarnessError):
    """Two planned constructions target the same grid cell."""

    def __init__(self, incoming: str, existing: str, x: float, y: float):
        super().__init__(
            f"Can't add {incoming} at position x={x},y={y}. "
            f"A {existing} is already assigned here."
        )
        self.incoming = incoming
        self.existing = existing
        self.x = x
        self.y = y


class MissingCellError(HarnessError):
    """A planned construction targets a coordinate the fixture never populated."""
