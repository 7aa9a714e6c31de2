"""PDF rendering utilities.

Renders every page of one PDF to PNG, writes the page's paint commands and
the document outline to JSON, and optionally saves per-command clips and a
dimension overlay for comparing against HighQA data.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from PIL import Image

from canvas_factory import WHITE, CanvasAndContext, CanvasFactory
from part_data import Dimension, PartRecord, drawing_notes, parse_dimensions
from pdf_engine import CommandRecorder, Document, Page, PdfEngine
from settings import RenderSettings

logger = logging.getLogger(__name__)

DIM_FILL = (255, 0, 0, 51)  # red at 0.2 alpha


@dataclass
class PageRender:
    commands: List[Dict[str, Any]]
    image: bytes


@dataclass
class DocumentResult:
    pdf: str
    pages: int
    status: str
    message: str = ""
    pages_written: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def outline_path(output_dir: Path, stem: str) -> Path:
    return output_dir / f"{stem}-outline.json"


def commands_path(output_dir: Path, stem: str, page_index: int) -> Path:
    return output_dir / f"{stem}-commands-{page_index}.json"


def image_path(output_dir: Path, stem: str, page_index: int) -> Path:
    return output_dir / f"{stem}-{page_index}.png"


def clip_path(output_dir: Path, command_id: int) -> Path:
    return output_dir / f"clip-{command_id}.png"


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _write_bytes(path: Path, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def render_scale(page: Page, settings: RenderSettings, target_width: Optional[float] = None) -> float:
    """Fit the page to ``target_width`` pixels, or use the fixed scale over /UserUnit."""
    if target_width:
        return target_width / (page.view[2] - page.view[0])
    return settings.fixed_scale / page.user_unit


def save_clip(
    recorder: CommandRecorder,
    canvas_and_context: CanvasAndContext,
    command_id: int,
    output_dir: Path,
) -> None:
    """Cut out whatever ``command_id`` painted and blank it on the page canvas."""
    canvas = canvas_and_context.canvas
    rect = canvas.written_bounds(WHITE)
    if rect is None:
        return
    # written_bounds is inclusive; clips use exclusive trailing edges.
    rect[2] += 1
    rect[3] += 1
    recorder.set_rect(command_id, rect)
    clip = canvas.copy_rect(rect)
    try:
        logger.debug("writing clip %s", command_id)
        clip.save(clip_path(output_dir, command_id), format="PNG")
    except OSError:
        logger.exception("Failed to write clip %s", command_id)
    canvas.clear_rect(rect, WHITE)


def draw_dimensions(canvas_and_context: CanvasAndContext, dims: Sequence[Dimension]) -> None:
    """Tint each dimension box on top of the rendered page, one layer per box."""
    canvas = canvas_and_context.canvas
    for dim in dims:
        x0, y0, x1, y1 = (int(round(v)) for v in dim.box())
        x0, y0 = max(0, x0), max(0, y0)
        x1, y1 = min(canvas.width, x1), min(canvas.height, y1)
        if x1 <= x0 or y1 <= y0:
            continue
        canvas.paste(Image.new("RGBA", (x1 - x0, y1 - y0), DIM_FILL), (x0, y0))


async def save_page(
    document: Document,
    page_num: int,
    settings: RenderSettings,
    target_width: Optional[float] = None,
    dims: Sequence[Dimension] = (),
) -> PageRender:
    """Render 1-indexed ``page_num`` and return its commands and PNG bytes."""
    page = await document.get_page(page_num)
    viewport = page.get_viewport(render_scale(page, settings, target_width))
    canvas_factory = CanvasFactory()
    canvas_and_context = canvas_factory.create(viewport.width, viewport.height)
    try:
        recorder = CommandRecorder()
        if settings.save_clips:
            recorder.on_command = lambda command_id: save_clip(
                recorder, canvas_and_context, command_id, settings.output_dir
            )
        await page.render(canvas_and_context, viewport, canvas_factory, recorder)
        commands = recorder.drain()
        if settings.draw_dims and dims:
            draw_dimensions(canvas_and_context, dims)
        image = await asyncio.to_thread(canvas_and_context.canvas.to_png)
    finally:
        canvas_factory.destroy(canvas_and_context)
    return PageRender(commands=commands, image=image)


async def extract(
    engine: PdfEngine,
    pdf_path: str | Path,
    settings: RenderSettings,
    part: Optional[PartRecord] = None,
) -> DocumentResult:
    """Write the outline and every page of ``pdf_path`` into ``settings.output_dir``.

    Failures are logged and reported in the result rather than raised.  Pages
    are written in order, so outputs of pages before a failing one remain.
    """
    pdf_path = Path(pdf_path)
    stem = pdf_path.stem
    output_dir = settings.output_dir

    pages = 0
    written = 0
    document: Optional[Document] = None
    try:
        target_width = None
        dims: List[Dimension] = []
        if part is not None:
            zoom_value, target_width = drawing_notes(part)
            if settings.draw_dims:
                dims = parse_dimensions(part.get("dims") or [], zoom_value)

        raw_data = await asyncio.to_thread(pdf_path.read_bytes)
        document = await engine.open_document(raw_data)
        pages = document.page_count
        logger.info("Loaded %s pages from %s", pages, pdf_path.name)

        outline = await document.get_outline()
        await asyncio.to_thread(_write_json, outline_path(output_dir, stem), outline)

        for page_index in range(pages):
            rendered = await save_page(document, page_index + 1, settings, target_width, dims)
            await asyncio.to_thread(_write_json, commands_path(output_dir, stem, page_index), rendered.commands)
            await asyncio.to_thread(_write_bytes, image_path(output_dir, stem, page_index), rendered.image)
            written += 1
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Failed to extract %s", pdf_path)
        return DocumentResult(
            pdf=str(pdf_path), pages=pages, status="error", message=str(exc), pages_written=written
        )
    finally:
        if document is not None:
            await close_document(document, pdf_path)
    return DocumentResult(pdf=str(pdf_path), pages=pages, status="ok", pages_written=written)


async def close_document(document: Document, pdf_path: Path) -> None:
    try:
        await document.close()
    except Exception:  # pylint: disable=broad-except
        logger.exception("Failed to close %s", pdf_path)
