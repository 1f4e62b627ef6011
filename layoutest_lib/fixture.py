# --- layoutest_lib/fixture.py ---
import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List

from .errors import FormatError, SchemaError
from .grid import BoundingBox, Cell, Grid, Position, parse_coordinate

log = logging.getLogger("layoutest.fixture")


@dataclass
class Fixture:
    """A parsed area reservation fixture."""

    grid: Grid
    bounds: BoundingBox


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, dict):
        raise SchemaError(f"'{where}' must be an object")
    if key not in data or data[key] is None:
        raise SchemaError(f"Missing '{key}' in '{where}'")
    return data[key]


def _read_number(value: Any, where: str) -> Decimal:
    if isinstance(value, str):
        return parse_coordinate(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return parse_coordinate(repr(value))
    raise FormatError(f"'{where}' must be a number, got {value!r}")


def _read_position(data: Dict[str, Any], where: str) -> Position:
    x = _read_number(_require(data, "x", where), f"{where}.x")
    y = _read_number(_require(data, "y", where), f"{where}.y")
    return Position(float(x), float(y))


def read_bounds(data: Dict[str, Any], where: str = "area_bounds") -> BoundingBox:
    """Reads a {left_top, right_bottom} object into a BoundingBox."""
    return BoundingBox(
        left_top=_read_position(_require(data, "left_top", where), f"{where}.left_top"),
        right_bottom=_read_position(
            _require(data, "right_bottom", where), f"{where}.right_bottom"
        ),
    )


def fixture_from_dict(data: Dict[str, Any]) -> Fixture:
    """Builds a Fixture from an already decoded fixture document."""
    area = _require(data, "area", "fixture")
    if not isinstance(area, dict):
        raise SchemaError("'area' must map x coordinates to columns")
    bounds = read_bounds(_require(data, "area_bounds", "fixture"))

    grid = Grid()
    for x_text, column in area.items():
        x = float(parse_coordinate(x_text))
        if not isinstance(column, dict):
            raise SchemaError(f"Column '{x_text}' must map y coordinates to labels")
        for y_text, label in column.items():
            y = float(parse_coordinate(y_text))
            if not isinstance(label, str):
                raise FormatError(f"Label at x={x_text},y={y_text} must be text, got {label!r}")
            grid.add_cell(Cell(x=x, y=y, content=label))

    log.debug(
        "Parsed fixture with %d columns and %d cells.", len(grid.columns), len(grid)
    )
    return Fixture(grid=grid, bounds=bounds)


def parse_fixture(text: str) -> Fixture:
    """
    Parses fixture JSON text into a Grid and its bounds rectangle.

    Args:
        text: The fixture document as JSON text.

    Returns:
        A Fixture with one unmarked cell per labelled coordinate.

    Raises:
        FormatError: For invalid JSON or malformed coordinates and labels.
        SchemaError: For missing sections or fields.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Fixture is not valid JSON: {e}") from e
    return fixture_from_dict(data)


def load_fixture(path: str) -> Fixture:
    """Reads and parses a fixture file."""
    log.info("Loading fixture '%s'", path)
    with open(path, "r", encoding="utf-8") as f:
        return parse_fixture(f.read())


def discover_fixtures(directory: str) -> List[str]:
    """Lists the fixture files of a directory, sorted by name."""
    if not os.path.isdir(directory):
        log.warning("Fixture directory not found: %s", directory)
        return []
    return sorted(
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if name.lower().endswith(".json")
    )
