"""Off-screen drawing surfaces handed to the PDF engine while it paints."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw

Color = Tuple[int, int, int, int]
Rect = Sequence[int]

WHITE: Color = (255, 255, 255, 255)
TRANSPARENT: Color = (0, 0, 0, 0)


class Surface:
    """RGBA raster that behaves like a resizable canvas element.

    Setting ``width`` or ``height`` reallocates the pixel buffer, dropping
    whatever was drawn before.
    """

    def __init__(self, width: int, height: int) -> None:
        self._image = Image.new("RGBA", (int(width), int(height)), TRANSPARENT)

    @property
    def image(self) -> Image.Image:
        return self._image

    @property
    def width(self) -> int:
        return self._image.width

    @width.setter
    def width(self, value: int) -> None:
        self._image = Image.new("RGBA", (int(value), self.height), TRANSPARENT)

    @property
    def height(self) -> int:
        return self._image.height

    @height.setter
    def height(self, value: int) -> None:
        self._image = Image.new("RGBA", (self.width, int(value)), TRANSPARENT)

    def get_context(self) -> ImageDraw.ImageDraw:
        return ImageDraw.Draw(self._image, "RGBA")

    def fill(self, color: Color) -> None:
        self._image.paste(color, (0, 0, self.width, self.height))

    def paste(self, image: Image.Image, offset: Tuple[int, int] = (0, 0)) -> None:
        """Composite ``image`` at ``offset`` honouring its alpha channel."""
        layer = image.convert("RGBA")
        self._image.alpha_composite(layer, dest=(int(offset[0]), int(offset[1])))

    def written_bounds(self, background: Color = WHITE) -> list[int] | None:
        """Inclusive ``[x0, y0, x1, y1]`` of the pixels that differ from ``background``."""
        if not self.width or not self.height:
            return None
        pixels = np.asarray(self._image)
        touched = np.any(pixels != np.array(background, dtype=np.uint8), axis=-1)
        ys, xs = np.nonzero(touched)
        if xs.size == 0:
            return None
        return [int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())]

    def copy_rect(self, rect: Rect) -> Image.Image:
        x0, y0, x1, y1 = (int(v) for v in rect)
        return self._image.crop((x0, y0, x1, y1))

    def clear_rect(self, rect: Rect, background: Color = WHITE) -> None:
        x0, y0, x1, y1 = (int(v) for v in rect)
        self._image.paste(background, (x0, y0, x1, y1))

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self._image.save(buf, format="PNG")
        return buf.getvalue()


@dataclass
class CanvasAndContext:
    canvas: Surface | None
    context: ImageDraw.ImageDraw | None


class CanvasFactory:
    """Creates, resets and destroys canvases on behalf of the renderer."""

    def create(self, width: int, height: int) -> CanvasAndContext:
        assert width > 0 and height > 0, "Invalid canvas size"
        canvas = Surface(width, height)
        return CanvasAndContext(canvas=canvas, context=canvas.get_context())

    def reset(self, canvas_and_context: CanvasAndContext, width: int, height: int) -> None:
        assert canvas_and_context.canvas, "Canvas is not specified"
        assert width > 0 and height > 0, "Invalid canvas size"
        canvas_and_context.canvas.width = width
        canvas_and_context.canvas.height = height
        canvas_and_context.context = canvas_and_context.canvas.get_context()

    def destroy(self, canvas_and_context: CanvasAndContext) -> None:
        assert canvas_and_context.canvas, "Canvas is not specified"
        # Shrink first so the pixel buffer is released now rather than at collection time.
        canvas_and_context.canvas.width = 0
        canvas_and_context.canvas.height = 0
        canvas_and_context.canvas = None
        canvas_and_context.context = None
