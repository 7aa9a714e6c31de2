"""Async facade over PyMuPDF.

The extractor only talks to the engine through this module: open a document
from bytes, read its outline, load pages, size a viewport and render a page
onto a canvas while paint commands are reported to a :class:`CommandRecorder`.

PyMuPDF is not thread safe, so every call into it is funnelled through a
single worker thread; the coroutines here suspend while that thread works.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import fitz  # PyMuPDF
from PIL import Image

from canvas_factory import WHITE, CanvasAndContext, CanvasFactory

logger = logging.getLogger(__name__)

CommandCallback = Callable[[int], None]


class CommandRecorder:
    """Collects the paint commands of one page render.

    Ids are handed out in paint order starting at 0.  ``on_command`` is called
    with the id once the command has been painted on the canvas.
    """

    def __init__(self, on_command: Optional[CommandCallback] = None) -> None:
        self.on_command = on_command
        self.commands: List[Dict[str, Any]] = []
        self.rects: Dict[int, List[int]] = {}

    def record(self, command: Dict[str, Any]) -> int:
        command_id = len(self.commands)
        self.commands.append({"id": command_id, **command})
        return command_id

    def notify(self, command_id: int) -> None:
        if self.on_command is not None:
            self.on_command(command_id)

    def set_rect(self, command_id: int, rect: List[int]) -> None:
        self.rects[command_id] = list(rect)

    def drain(self) -> List[Dict[str, Any]]:
        """Return the recorded commands with clip rects attached and start over."""
        commands = self.commands
        for command_id, rect in self.rects.items():
            commands[command_id]["rect"] = rect
        self.commands = []
        self.rects = {}
        return commands


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int
    scale: float
    transform: fitz.Matrix


@dataclass
class PaintCommand:
    kind: str
    seqno: int
    bbox: fitz.Rect
    raw: Dict[str, Any]


def _jsonable(value: Any) -> Any:
    """Convert PyMuPDF geometry and tuples into plain JSON values."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return round(value, 3)
    if isinstance(value, fitz.Quad):
        return [_jsonable(p) for p in (value.ul, value.ur, value.ll, value.lr)]
    if isinstance(value, (fitz.Point, fitz.Rect, fitz.IRect, fitz.Matrix)):
        return [round(float(v), 3) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


def build_outline(toc: List[list]) -> List[Dict[str, Any]]:
    """Nest a flat ``get_toc(simple=False)`` listing into a tree."""
    root: List[Dict[str, Any]] = []
    stack: List[tuple[int, List[Dict[str, Any]]]] = [(0, root)]
    for entry in toc:
        level, title, page = entry[0], entry[1], entry[2]
        dest = entry[3] if len(entry) > 3 else {}
        node = {
            "title": title,
            "page": page if page > 0 else None,
            "dest": _jsonable(dest),
            "items": [],
        }
        while stack[-1][0] >= level:
            stack.pop()
        stack[-1][1].append(node)
        stack.append((level, node["items"]))
    return root


def _path_record(path: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "path",
        "seqno": path.get("seqno"),
        "bbox": _jsonable(path.get("rect")),
        "op": path.get("type"),
        "fill": _jsonable(path.get("fill")),
        "color": _jsonable(path.get("color")),
        "width": _jsonable(path.get("width")),
        "closePath": path.get("closePath"),
        "even_odd": path.get("even_odd"),
        "items": [_jsonable(item) for item in path.get("items", [])],
    }


def _text_record(span: Dict[str, Any]) -> Dict[str, Any]:
    chars = span.get("chars") or ()
    return {
        "type": "text",
        "seqno": span.get("seqno"),
        "bbox": _jsonable(span.get("bbox")),
        "text": "".join(chr(c[0]) for c in chars if c[0] >= 0),
        "font": span.get("font"),
        "size": _jsonable(span.get("size")),
        "color": _jsonable(span.get("color")),
    }


def collect_commands(page: fitz.Page) -> List[PaintCommand]:
    """Vector paths and text spans of ``page`` in the order the engine paints them."""
    commands = [
        PaintCommand("path", path.get("seqno", 0), fitz.Rect(path["rect"]), path)
        for path in page.get_drawings()
    ]
    commands.extend(
        PaintCommand("text", span.get("seqno", 0), fitz.Rect(span["bbox"]), span)
        for span in page.get_texttrace()
    )
    commands.sort(key=lambda c: c.seqno)
    return commands


def pixmap_image(pix: fitz.Pixmap) -> Image.Image:
    if pix.alpha:
        # MuPDF keeps alpha pixmaps premultiplied.
        return Image.frombytes("RGBa", (pix.width, pix.height), pix.samples).convert("RGBA")
    return Image.frombytes("RGB", (pix.width, pix.height), pix.samples)


def _opacity(value: Optional[float]) -> float:
    return 1.0 if value is None else float(value)


def replay_path(path: Dict[str, Any], page_rect: fitz.Rect, matrix: fitz.Matrix) -> Image.Image:
    """Rasterize one ``get_drawings()`` path alone on a transparent page."""
    scratch = fitz.open()
    try:
        page = scratch.new_page(width=page_rect.width, height=page_rect.height)
        shape = page.new_shape()
        for item in path.get("items", []):
            op = item[0]
            if op == "l":
                shape.draw_line(item[1], item[2])
            elif op == "c":
                shape.draw_bezier(item[1], item[2], item[3], item[4])
            elif op == "re":
                shape.draw_rect(item[1])
            elif op == "qu":
                shape.draw_quad(item[1])
        line_cap = path.get("lineCap") or 0
        if isinstance(line_cap, (list, tuple)):
            line_cap = max(line_cap)
        shape.finish(
            fill=path.get("fill"),
            color=path.get("color"),
            dashes=path.get("dashes") or None,
            even_odd=bool(path.get("even_odd")),
            closePath=bool(path.get("closePath")),
            lineJoin=int(path.get("lineJoin") or 0),
            lineCap=int(line_cap),
            width=path.get("width") or 1,
            stroke_opacity=_opacity(path.get("stroke_opacity")),
            fill_opacity=_opacity(path.get("fill_opacity")),
        )
        shape.commit()
        return pixmap_image(page.get_pixmap(matrix=matrix, alpha=True))
    finally:
        scratch.close()


@functools.lru_cache(maxsize=None)
def span_font(name: str) -> fitz.Font:
    """Base-14 font for a span's font name, Helvetica when there is no match."""
    base = name.split("+")[-1]
    try:
        return fitz.Font(base)
    except Exception:  # pylint: disable=broad-except
        logger.debug("No built-in font for %s, using Helvetica", name)
        return fitz.Font("helv")


def replay_text(span: Dict[str, Any], page_rect: fitz.Rect, matrix: fitz.Matrix) -> Image.Image:
    """Rasterize one ``get_texttrace()`` span alone on a transparent page.

    Glyphs are placed at their recorded origins, so only the span's own
    pixels end up in the image.
    """
    scratch = fitz.open()
    try:
        page = scratch.new_page(width=page_rect.width, height=page_rect.height)
        writer = fitz.TextWriter(page.rect)
        font = span_font(span.get("font") or "helv")
        size = span.get("size") or 11
        glyphs = 0
        for char in span.get("chars") or ():
            if char[0] <= 0:
                continue
            writer.append(char[2], chr(char[0]), font=font, fontsize=size)
            glyphs += 1
        if glyphs:
            writer.write_text(page, color=span.get("color") or (0,), opacity=_opacity(span.get("opacity")))
        return pixmap_image(page.get_pixmap(matrix=matrix, alpha=True))
    finally:
        scratch.close()


class Page:
    """A loaded page; geometry is read once, inside the engine thread."""

    def __init__(self, engine: "PdfEngine", page: fitz.Page) -> None:
        self._engine = engine
        self._page = page
        self.number = page.number + 1
        self.rect = fitz.Rect(page.rect)
        self.view = [float(v) for v in page.cropbox]
        self.user_unit = self._read_user_unit(page)

    @staticmethod
    def _read_user_unit(page: fitz.Page) -> float:
        kind, value = page.parent.xref_get_key(page.xref, "UserUnit")
        if kind in ("int", "real"):
            return float(value)
        return 1.0

    def get_viewport(self, scale: float) -> Viewport:
        matrix = fitz.Matrix(scale, scale)
        irect = (self.rect * matrix).irect
        return Viewport(width=irect.width, height=irect.height, scale=scale, transform=matrix)

    async def render(
        self,
        canvas_and_context: CanvasAndContext,
        viewport: Viewport,
        canvas_factory: CanvasFactory,
        recorder: Optional[CommandRecorder] = None,
    ) -> None:
        """Paint the page onto ``canvas_and_context``, reporting commands to ``recorder``."""
        await self._engine.call(self._render, canvas_and_context, viewport, canvas_factory, recorder)

    def _render(
        self,
        canvas_and_context: CanvasAndContext,
        viewport: Viewport,
        canvas_factory: CanvasFactory,
        recorder: Optional[CommandRecorder],
    ) -> None:
        canvas = canvas_and_context.canvas
        assert canvas, "Canvas is not specified"
        canvas.fill(WHITE)
        commands = collect_commands(self._page)

        if recorder is None or recorder.on_command is None:
            if recorder is not None:
                for command in commands:
                    recorder.record(self._record(command))
            pix = self._page.get_pixmap(matrix=viewport.transform, alpha=False)
            canvas.paste(pixmap_image(pix))
            return

        # Paint command by command so the callback can see what each one touched.
        # Images and shadings are not recorded commands and are not painted here.
        scratch = canvas_factory.create(viewport.width, viewport.height)
        try:
            for command in commands:
                command_id = recorder.record(self._record(command))
                canvas_factory.reset(scratch, viewport.width, viewport.height)
                self._paint(command, scratch, viewport)
                canvas.paste(scratch.canvas.image)
                recorder.notify(command_id)
        finally:
            canvas_factory.destroy(scratch)

    @staticmethod
    def _record(command: PaintCommand) -> Dict[str, Any]:
        if command.kind == "path":
            return _path_record(command.raw)
        return _text_record(command.raw)

    def _paint(self, command: PaintCommand, target: CanvasAndContext, viewport: Viewport) -> None:
        replay = replay_path if command.kind == "path" else replay_text
        target.canvas.paste(replay(command.raw, self.rect, viewport.transform))


class Document:
    """An open PDF.  Close it when done to free the engine's decode state."""

    def __init__(self, engine: "PdfEngine", doc: fitz.Document) -> None:
        self._engine = engine
        self._doc = doc
        self.page_count = doc.page_count

    async def get_page(self, page_num: int) -> Page:
        """Load the 1-indexed page ``page_num``."""
        if not 1 <= page_num <= self.page_count:
            raise IndexError(f"Page {page_num} out of range 1..{self.page_count}")
        return await self._engine.call(lambda: Page(self._engine, self._doc.load_page(page_num - 1)))

    async def get_outline(self) -> List[Dict[str, Any]]:
        toc = await self._engine.call(self._doc.get_toc, False)
        return build_outline(toc)

    async def close(self) -> None:
        await self._engine.call(self._doc.close)


class PdfEngine:
    """Owns the single thread every PyMuPDF call runs on."""

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pymupdf")

    async def call(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def open_document(self, data: bytes) -> Document:
        doc = await self.call(lambda: fitz.open(stream=data, filetype="pdf"))
        logger.debug("Opened document with %s pages", doc.page_count)
        return Document(self, doc)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "PdfEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False
