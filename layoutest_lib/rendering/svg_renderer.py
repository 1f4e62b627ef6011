# --- layoutest_lib/rendering/svg_renderer.py ---
import logging
from html import escape
from typing import List

from .constants import BACKGROUND_COLOR, GRID_LINE_COLOR, TEXT_COLOR
from .grid_visual import GridVisual, PaintOp

log = logging.getLogger("layoutest.render")


class SVGRenderer:
    """Orchestrates the generation of the grid SVG document."""

    def __init__(self, visual: GridVisual):
        self.visual = visual

    def _rect(self, op: PaintOp) -> str:
        x0, y0, x1, y1 = op.rect
        cell = op.cell
        return (
            f'<rect x="{x0:.2f}" y="{y0:.2f}" width="{x1 - x0:.2f}" height="{y1 - y0:.2f}" '
            f'fill="{op.fill}" stroke="{GRID_LINE_COLOR}" stroke-width="0.5">'
            f"<title>World: X={cell.x}, Y={cell.y} ({escape(cell.content)})</title></rect>"
        )

    def _marker(self, op: PaintOp) -> str:
        x0, y0, x1, y1 = op.rect
        return (
            f'<text x="{(x0 + x1) / 2:.2f}" y="{(y0 + y1) / 2:.2f}" '
            f'font-size="{op.font_size}" fill="{TEXT_COLOR}" '
            f'text-anchor="middle" dominant-baseline="central">{escape(op.marker)}</text>'
        )

    def render(self) -> str:
        """Main method to generate the full SVG string."""
        width, height = int(self.visual.width), int(self.visual.height)
        ops = self.visual.paint_ops()
        if not ops:
            log.warning("No cells to render.")
            return "<svg><text>No cells to render.</text></svg>"

        layers = {"cells": [], "footprints": [], "markers": []}
        for op in ops:
            layers["footprints" if op.footprint else "cells"].append(self._rect(op))
            if op.marker:
                layers["markers"].append(self._marker(op))

        svg: List[str] = [
            f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">',
            f'<rect width="100%" height="100%" fill="{BACKGROUND_COLOR}" />',
        ]
        for name in ("cells", "footprints", "markers"):
            if layers[name]:
                svg.append(f'<g id="{name}">{"".join(layers[name])}</g>')
        svg.append("</svg>")
        log.info("SVG rendering complete.")
        return "\n".join(svg)


def render_svg(visual: GridVisual) -> str:
    """Generates an SVG document from a GridVisual."""
    log.info("Starting SVG rendering process...")
    return SVGRenderer(visual).render()
