# --- layoutest_lib/grid.py ---
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Dict, Iterator, List, Optional, Union

from shapely.geometry import Polygon, box

from .constants import COORD_KEY_SCALE, DIRECTION_UNSET
from .errors import ConflictError, FormatError

Number = Union[int, float, Decimal]


def parse_coordinate(text: str) -> Decimal:
    """
    Parses coordinate text with a locale-invariant decimal point.

    Args:
        text: Decimal text such as "12", "-3.5" or "1e2".

    Returns:
        The exact decimal value of the text.

    Raises:
        FormatError: If the text is not a finite decimal number.
    """
    if not isinstance(text, str):
        raise FormatError(f"Coordinate must be decimal text, got {type(text).__name__}: {text!r}")
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        raise FormatError(f"Malformed coordinate text: {text!r}") from None
    if not value.is_finite():
        raise FormatError(f"Coordinate must be finite: {text!r}")
    return value


def coord_key(value: Number) -> int:
    """Maps a world coordinate to its canonical fixed-precision integer key."""
    if isinstance(value, bool):
        raise FormatError(f"Coordinate must be a number, got {value!r}")
    if isinstance(value, float):
        value = Decimal(repr(value))
    elif not isinstance(value, Decimal):
        value = Decimal(value)
    return int((value * COORD_KEY_SCALE).to_integral_value(rounding=ROUND_HALF_EVEN))


@dataclass(frozen=True)
class Position:
    """An (x, y) pair of real world coordinates."""

    x: float
    y: float


@dataclass(frozen=True)
class BoundingBox:
    """
    Two positions describing a rectangle.

    Used both as an absolute rectangle (the area bounds) and as signed offsets
    from an anchor cell (an entity's relative footprint).
    """

    left_top: Position
    right_bottom: Position

    def contains(self, x: float, y: float) -> bool:
        """Checks an absolute point against the closed rectangle."""
        return (
            self.left_top.x <= x <= self.right_bottom.x
            and self.left_top.y <= y <= self.right_bottom.y
        )

    def inflate(self, anchor: Position) -> Polygon:
        """Returns the world rectangle covered by a footprint anchored at a cell.

        The anchor cell's own unit extent is included, so the rectangle spans
        from ``anchor + left_top`` to ``anchor + right_bottom + 1`` on each axis.
        """
        return box(
            anchor.x + self.left_top.x,
            anchor.y + self.left_top.y,
            anchor.x + self.right_bottom.x + 1,
            anchor.y + self.right_bottom.y + 1,
        )

    def to_value(self) -> dict:
        return {
            "left_top": {"x": self.left_top.x, "y": self.left_top.y},
            "right_bottom": {"x": self.right_bottom.x, "y": self.right_bottom.y},
        }


@dataclass
class Cell:
    """One populated grid coordinate and whatever the pipeline planned on it."""

    x: float
    y: float
    content: str
    marker: Optional[str] = None
    entity_name: Optional[str] = None
    direction: int = DIRECTION_UNSET

    @property
    def key(self):
        return coord_key(self.x), coord_key(self.y)

    @property
    def position(self) -> Position:
        return Position(self.x, self.y)

    def deposit(
        self, entity_name: str, marker: str, content: Optional[str], direction: int
    ):
        """Records a planned construction; a cell accepts exactly one."""
        if self.marker is not None:
            raise ConflictError(
                f"{entity_name} ({marker})", self.marker, self.x, self.y
            )
        self.marker = marker
        self.entity_name = entity_name
        if content is not None:
            self.content = content
        self.direction = direction


@dataclass
class Column:
    """All populated cells sharing one x coordinate, keyed by canonical y."""

    x: float
    cells: Dict[int, Cell] = field(default_factory=dict)

    def add(self, cell: Cell):
        """Adds a cell; its y must not share a canonical key with an existing cell.

        Raises:
            FormatError: If the coordinate collides with a cell already added,
                e.g. "1" and "1.0", or values closer than a thousandth.
        """
        key = coord_key(cell.y)
        existing = self.cells.get(key)
        if existing is not None:
            raise FormatError(
                f"Coordinate x={cell.x},y={cell.y} collides with the cell at "
                f"x={existing.x},y={existing.y} ({existing.content})"
            )
        self.cells[key] = cell

    def get(self, y: Number) -> Optional[Cell]:
        return self.cells.get(coord_key(y))


@dataclass
class Grid:
    """Sparse 2D grid; absent coordinates are meaningful, not empty cells."""

    columns: Dict[int, Column] = field(default_factory=dict)

    def add_cell(self, cell: Cell):
        column = self.columns.get(coord_key(cell.x))
        if column is None:
            column = Column(x=cell.x)
            self.columns[coord_key(cell.x)] = column
        column.add(cell)

    def cell_at(self, x: Number, y: Number) -> Optional[Cell]:
        column = self.columns.get(coord_key(x))
        if column is None:
            return None
        return column.get(y)

    def cells(self) -> Iterator[Cell]:
        for _, column in sorted(self.columns.items()):
            for _, cell in sorted(column.cells.items()):
                yield cell

    def x_values(self) -> List[float]:
        """Distinct populated x coordinates in ascending order."""
        return [c.x for _, c in sorted(self.columns.items())]

    def y_values(self) -> List[float]:
        """Distinct populated y coordinates across all columns in ascending order."""
        ys = {}
        for column in self.columns.values():
            for key, cell in column.cells.items():
                ys.setdefault(key, cell.y)
        return [ys[k] for k in sorted(ys)]

    def __len__(self):
        return sum(len(c.cells) for c in self.columns.values())

    def is_empty(self) -> bool:
        return len(self) == 0


@dataclass
class LayoutResult:
    """The grid of one run plus the footprints needed to draw large entities."""

    grid: Grid
    extractor_box: Optional[BoundingBox] = None
    beacon_box: Optional[BoundingBox] = None

    def footprints(self) -> Dict[str, BoundingBox]:
        """Entity name -> relative footprint, for the footprints that are known."""
        boxes = {"extractor": self.extractor_box, "beacon": self.beacon_box}
        return {name: b for name, b in boxes.items() if b is not None}
