# --- layoutest_lib/constants.py ---
from enum import IntEnum


class Direction(IntEnum):
    """The 16-point compass used by the pipeline; quarter turns are multiples of 4."""

    NORTH = 0
    NORTHNORTHEAST = 1
    NORTHEAST = 2
    EASTNORTHEAST = 3
    EAST = 4
    EASTSOUTHEAST = 5
    SOUTHEAST = 6
    SOUTHSOUTHEAST = 7
    SOUTH = 8
    SOUTHSOUTHWEST = 9
    SOUTHWEST = 10
    WESTSOUTHWEST = 11
    WEST = 12
    WESTNORTHWEST = 13
    NORTHWEST = 14
    NORTHNORTHWEST = 15


# Direction of a cell nothing was planned on.
DIRECTION_UNSET = -1

# Canonical coordinate keys are thousandths of a world unit.
COORD_KEY_SCALE = 1000

# Name of the Lua table that receives the diagnostic callbacks.
DEBUG_NAMESPACE = "pumpdebug"

# Global name of the run context table handed to every stage.
CONTEXT_GLOBAL = "planner_input_stage"
