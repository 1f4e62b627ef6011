# --- layoutest_lib/merger.py ---
import logging
from typing import List, Optional

from .constants import DIRECTION_UNSET
from .diagnostics import OutOfBoundsWarning, RunLog
from .errors import FormatError, MissingCellError
from .grid import BoundingBox, Grid, parse_coordinate
from .pipeline import PipelineConfig
from .values import DynamicValue, entries, is_container

log = logging.getLogger("layoutest.merge")


def _coordinate(key) -> float:
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        return float(key)
    if isinstance(key, str):
        return float(parse_coordinate(key))
    raise FormatError(f"Planned coordinate must be a number, got {key!r}")


def _direction(record: dict) -> int:
    direction = record.get("direction")
    if direction is None:
        return DIRECTION_UNSET
    return int(direction)


def merge_construction_plan(
    grid: Grid,
    plan: DynamicValue,
    bounds: BoundingBox,
    pipeline: PipelineConfig,
    run_log: RunLog,
    out_of_bounds: Optional[List[OutOfBoundsWarning]] = None,
) -> int:
    """
    Deposits every planned entity of ``plan`` (x -> y -> record) into ``grid``.

    Entities outside ``bounds`` are logged and skipped. The grid is changed in
    place; the number of placed entities is logged and returned.

    Raises:
        ConflictError: If two entities target the same cell.
        MissingCellError: If an entity targets a coordinate the fixture lacks.
    """
    if plan is None:
        return 0
    if out_of_bounds is None:
        out_of_bounds = []

    total = 0
    for x_key, column in entries(plan):
        x = _coordinate(x_key)
        if not is_container(column):
            raise FormatError(f"Construction plan column x={x} is not a table")
        for y_key, record in entries(column):
            y = _coordinate(y_key)
            if not isinstance(record, dict):
                raise FormatError(f"Planned entity at x={x},y={y} is not a table")
            name = record.get("name")

            if not bounds.contains(x, y):
                run_log.write(f"Entity planned out of bounds: {name} at x={x},y={y}")
                out_of_bounds.append(OutOfBoundsWarning(name=name, x=x, y=y))
                continue

            cell = grid.cell_at(x, y)
            if cell is None:
                raise MissingCellError(f"No cell at x={x},y={y} for planned {name}")

            rule = pipeline.rule_for(name)
            if name not in pipeline.marker_rules:
                log.warning("No marker known for '%s' at x=%s,y=%s", name, x, y)
            cell.deposit(name, rule.marker_for(record), rule.content, _direction(record))
            total += 1

    run_log.write(f"Planned entities: {total}")
    log.info("Merged %d planned entities into the grid.", total)
    return total
