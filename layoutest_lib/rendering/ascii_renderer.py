# --- layoutest_lib/rendering/ascii_renderer.py ---
from typing import List

from layoutest_lib.grid import Cell, LayoutResult

CONTENT_GLYPHS = {
    "can-build": ".",
    "buildable": ".",
    "can-not-build": "#",
    "blocked": "#",
    "reserved-for-pump": "r",
    "reserved": "r",
    "oil-well": "O",
    "pipe": "~",
    "power_pole": "*",
    "beacon": "B",
    "heat-pipe": "h",
}


class ASCIIRenderer:
    """Renders a compact text view of a layout grid for terminal debugging.

    Each populated cell is three characters wide and shows its marker, or a
    glyph for its label when nothing was planned there.
    """

    def __init__(self):
        self.canvas: List[List[str]] = []
        self.xs: List[float] = []
        self.ys: List[float] = []

    def _cell_text(self, cell: Cell) -> str:
        if cell.marker:
            return f"{cell.marker[:3]:^3}"
        return f" {CONTENT_GLYPHS.get(cell.content, '?')} "

    def render_from_result(self, result: LayoutResult):
        grid = result.grid
        self.xs, self.ys = grid.x_values(), grid.y_values()
        self.canvas = [[" "] * (len(self.xs) * 3) for _ in self.ys]
        for ci, x in enumerate(self.xs):
            for ri, y in enumerate(self.ys):
                cell = grid.cell_at(x, y)
                if cell is not None:
                    self.canvas[ri][ci * 3 : ci * 3 + 3] = list(self._cell_text(cell))

    def get_output(self) -> str:
        if not self.canvas:
            return ""
        RULER_WIDTH = 6
        labels = [str(int(x)) if float(x).is_integer() else str(x) for x in self.xs]
        depth = max(len(label) for label in labels)
        output_lines = []
        for level in range(depth):
            ruler = [" "] * (len(self.xs) * 3)
            for ci, label in enumerate(labels):
                padded = label.rjust(depth)
                ruler[ci * 3 + 1] = padded[level]
            output_lines.append(" " * RULER_WIDTH + "".join(ruler))
        for y, row in zip(self.ys, self.canvas):
            y_label = str(int(y)) if float(y).is_integer() else str(y)
            output_lines.append(f"{y_label:>{RULER_WIDTH - 1}}|" + "".join(row))
        return "\n".join(output_lines)
