# --- layoutest_lib/rendering/png_renderer.py ---
import logging
from typing import Dict

from PIL import Image, ImageDraw, ImageFont

from .constants import BACKGROUND_COLOR, GRID_LINE_COLOR, TEXT_COLOR
from .grid_visual import GridVisual, PaintOp

log = logging.getLogger("layoutest.render")


class PNGRenderer:
    """Paints a GridVisual onto a Pillow image."""

    def __init__(self, visual: GridVisual):
        self.visual = visual
        self._fonts: Dict[int, ImageFont.ImageFont] = {}

    def _font(self, size: int):
        if size not in self._fonts:
            self._fonts[size] = ImageFont.load_default(size=size)
        return self._fonts[size]

    def _draw_marker(self, draw: ImageDraw.ImageDraw, op: PaintOp):
        font = self._font(op.font_size)
        left, top, right, bottom = draw.textbbox((0, 0), op.marker, font=font)
        x0, y0, x1, y1 = op.rect
        tx = (x0 + x1) / 2 - (right - left) / 2 - left
        ty = (y0 + y1) / 2 - (bottom - top) / 2 - top
        draw.text((tx, ty), op.marker, fill=TEXT_COLOR, font=font)

    def render(self) -> Image.Image:
        width, height = int(self.visual.width), int(self.visual.height)
        image = Image.new("RGB", (width, height), BACKGROUND_COLOR)
        draw = ImageDraw.Draw(image)
        for op in self.visual.paint_ops():
            draw.rectangle(op.rect, fill=op.fill, outline=GRID_LINE_COLOR, width=1)
            if op.marker:
                self._draw_marker(draw, op)
        return image


def save_png(visual: GridVisual, output_path: str) -> None:
    """Renders a GridVisual and writes it as a PNG file."""
    image = PNGRenderer(visual).render()
    image.save(output_path, "PNG")
    log.info("Saved grid image to '%s'", output_path)
