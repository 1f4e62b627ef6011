# --- layoutest_lib/rendering/grid_visual.py ---
import bisect
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from shapely.geometry import Point

from layoutest_lib.grid import Cell, Grid, LayoutResult
from .constants import (
    DEFAULT_CELL_COLOR,
    FONT_SCALE,
    HEAT_PIPE_BASE,
    LABEL_COLORS,
    MAX_FONT_SIZE,
    MIN_FONT_SIZE,
)

log = logging.getLogger("layoutest.render")

Rect = Tuple[float, float, float, float]


def _fractional_index(values: List[float], v: float) -> float:
    """Position of ``v`` among the sorted ``values``, in cell units.

    Known coordinates map to their index; values between two of them are
    interpolated, and values beyond either end continue at one unit per cell.
    """
    i = bisect.bisect_left(values, v)
    if i < len(values) and values[i] == v:
        return float(i)
    if i == 0:
        return v - values[0]
    if i == len(values):
        return len(values) - 1 + (v - values[-1])
    lo, hi = values[i - 1], values[i]
    return i - 1 + (v - lo) / (hi - lo)


def _value_at(values: List[float], f: float) -> float:
    """Inverse of _fractional_index."""
    if f <= 0:
        return values[0] + f
    last = len(values) - 1
    if f >= last:
        return values[-1] + (f - last)
    i = math.floor(f)
    return values[i] + (f - i) * (values[i + 1] - values[i])


@dataclass
class GridProjection:
    """Maps world coordinates onto a uniform, centred pixel grid.

    Each distinct populated x (y) gets one column (row), in ascending order,
    so gaps in a sparse grid do not stretch the drawing:
    ``pixel = offset + index_of(world) * cell_size`` on each axis.
    """

    xs: List[float]
    ys: List[float]
    cell_size: float
    offset_x: float
    offset_y: float

    @property
    def columns(self) -> int:
        return len(self.xs)

    @property
    def rows(self) -> int:
        return len(self.ys)

    @classmethod
    def from_grid(cls, grid: Grid, width: float, height: float) -> Optional["GridProjection"]:
        if grid.is_empty():
            return None
        xs, ys = grid.x_values(), grid.y_values()
        cell_size = min(width / len(xs), height / len(ys))
        offset_x = (width - cell_size * len(xs)) / 2
        offset_y = (height - cell_size * len(ys)) / 2
        log.debug(
            "Projection: %dx%d cells of %.2fpx, offset (%.1f, %.1f)",
            len(xs), len(ys), cell_size, offset_x, offset_y,
        )
        return cls(xs, ys, cell_size, offset_x, offset_y)

    def world_to_pixel(self, x: float, y: float) -> Tuple[float, float]:
        return (
            self.offset_x + _fractional_index(self.xs, x) * self.cell_size,
            self.offset_y + _fractional_index(self.ys, y) * self.cell_size,
        )

    def pixel_to_world(self, px: float, py: float) -> Optional[Tuple[float, float]]:
        """The populated column and row coordinates under a pixel, if any."""
        column = math.floor((px - self.offset_x) / self.cell_size)
        row = math.floor((py - self.offset_y) / self.cell_size)
        if not (0 <= column < self.columns and 0 <= row < self.rows):
            return None
        return self.xs[column], self.ys[row]

    def pixel_to_world_point(self, px: float, py: float) -> Tuple[float, float]:
        """The exact (unfloored) world point under a pixel."""
        return (
            _value_at(self.xs, (px - self.offset_x) / self.cell_size),
            _value_at(self.ys, (py - self.offset_y) / self.cell_size),
        )

    def cell_rect(self, x: float, y: float) -> Rect:
        px, py = self.world_to_pixel(x, y)
        return px, py, px + self.cell_size, py + self.cell_size

    def world_rect(self, bounds: Rect) -> Rect:
        x0, y0 = self.world_to_pixel(bounds[0], bounds[1])
        x1, y1 = self.world_to_pixel(bounds[2], bounds[3])
        return x0, y0, x1, y1


@dataclass
class PaintOp:
    """One rectangle to draw, in draw order, with its optional marker text."""

    rect: Rect
    fill: str
    cell: Cell
    marker: Optional[str] = None
    font_size: int = MIN_FONT_SIZE
    footprint: bool = False


def heat_pipe_color(marker: Optional[str]) -> str:
    """Red brightened by the heat pipe's placement ordinal."""
    try:
        step = int(marker) - 1
    except (TypeError, ValueError):
        step = 0
    b = 64 if step > 0 else 0
    b = max(0, b + min(64, step * 2))
    r, g, bl = (min(255, c + b) for c in HEAT_PIPE_BASE)
    return f"#{r:02X}{g:02X}{bl:02X}"


def cell_color(cell: Cell) -> str:
    if cell.content == "heat-pipe":
        return heat_pipe_color(cell.marker)
    return LABEL_COLORS.get(cell.content, DEFAULT_CELL_COLOR)


def font_size_for(rect: Rect) -> int:
    shorter = min(rect[2] - rect[0], rect[3] - rect[1])
    return int(round(max(MIN_FONT_SIZE, min(MAX_FONT_SIZE, shorter * FONT_SCALE))))


class GridVisual:
    """
    The drawable form of a LayoutResult at a given canvas size.

    Ordinary cells are painted first; cells planned with a footprint-bearing
    entity (extractor, beacon) are painted last, inflated to their footprint,
    so they cover their neighbours.
    """

    def __init__(self, result: LayoutResult, width: float, height: float):
        self.result = result
        self.width = width
        self.height = height
        self.projection = GridProjection.from_grid(result.grid, width, height)
        self.footprints = result.footprints()

    def _is_footprint(self, cell: Cell) -> bool:
        return cell.entity_name in self.footprints

    def _op(self, cell: Cell, rect: Rect, footprint: bool) -> PaintOp:
        return PaintOp(
            rect=rect,
            fill=cell_color(cell),
            cell=cell,
            marker=cell.marker or None,
            font_size=font_size_for(rect),
            footprint=footprint,
        )

    def footprint_polygon(self, cell: Cell):
        return self.footprints[cell.entity_name].inflate(cell.position)

    def paint_ops(self) -> List[PaintOp]:
        if self.projection is None:
            log.warning("Nothing to draw: the grid is empty.")
            return []

        cells = list(self.result.grid.cells())
        ops = [
            self._op(cell, self.projection.cell_rect(cell.x, cell.y), False)
            for cell in cells
            if not self._is_footprint(cell)
        ]
        deferred = [cell for cell in cells if self._is_footprint(cell)]
        for cell in deferred:
            rect = self.projection.world_rect(self.footprint_polygon(cell).bounds)
            ops.append(self._op(cell, rect, True))
        log.debug("Paint plan: %d cells, %d footprints.", len(ops) - len(deferred), len(deferred))
        return ops

    def hit_test(self, px: float, py: float) -> Optional[Cell]:
        """The cell under a pixel, if it carries a content label."""
        if self.projection is None:
            return None
        world = self.projection.pixel_to_world(px, py)
        if world is None:
            return None
        cell = self.result.grid.cell_at(*world)
        if cell is None or not cell.content:
            return None
        return cell

    def footprint_at(self, px: float, py: float) -> Optional[Cell]:
        """The footprint-bearing cell whose inflated footprint covers a pixel."""
        if self.projection is None:
            return None
        point = Point(self.projection.pixel_to_world_point(px, py))
        for cell in self.result.grid.cells():
            if self._is_footprint(cell) and self.footprint_polygon(cell).intersects(point):
                return cell
        return None

    def describe(self, px: float, py: float) -> str:
        cell = self.hit_test(px, py)
        if cell is None:
            return "no cell"
        return f"World: X={cell.x}, Y={cell.y}"
