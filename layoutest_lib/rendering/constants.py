# Shared constants for the rendering package to avoid circular imports.

DEFAULT_WIDTH = 1200
DEFAULT_HEIGHT = 900

BACKGROUND_COLOR = "#FFFFFF"
GRID_LINE_COLOR = "#FFFFFF"
TEXT_COLOR = "#000000"
DEFAULT_CELL_COLOR = "#0000FF"  # Blue, for labels without a colour
HEAT_PIPE_BASE = (255, 0, 0)

LABEL_COLORS = {
    "can-build": "#008000",
    "buildable": "#008000",
    "can-not-build": "#8B0000",
    "blocked": "#8B0000",
    "reserved-for-pump": "#FF8C00",
    "reserved": "#FF8C00",
    "oil-well": "#A9A9A9",
    "power_pole": "#5151B3",
    "pipe": "#E6E6FA",  # Lavender
    "beacon": "#FF00FF",
}

MIN_FONT_SIZE = 6
MAX_FONT_SIZE = 24
FONT_SCALE = 0.6
