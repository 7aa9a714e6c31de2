"""Command line utility to render one drawing PDF against its HighQA part data."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from part_data import PartNotFoundError, get_part_data
from pdf_engine import PdfEngine
from pdf_renderer import DocumentResult, extract
from settings import RenderSettings, configure_logging, ensure_output_dir

logger = logging.getLogger(__name__)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a PDF drawing for comparison with HighQA data.")
    parser.add_argument("--pdf", type=Path, required=True, help="PDF Drawing")
    parser.add_argument("--highqa-data", type=Path, required=True, help="Input HighQA Data")
    parser.add_argument("--save-clips", action="store_true", help="Save clips for each item rendered")
    parser.add_argument("--draw-dims", action="store_true", help="Draws dim rectangles")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output folder")
    parser.add_argument("--log-file", default=None, help="Also write log output to this file")
    return parser.parse_args()


async def run(pdf: Path, part: dict, settings: RenderSettings) -> DocumentResult:
    with PdfEngine() as engine:
        return await extract(engine, pdf, settings, part=part)


def main() -> int:
    args = _parse_args()
    configure_logging(log_file=args.log_file)

    settings = RenderSettings(
        output_dir=ensure_output_dir(args.output),
        save_clips=args.save_clips,
        draw_dims=args.draw_dims,
    )
    try:
        part = get_part_data(args.pdf, args.highqa_data)
    except PartNotFoundError as exc:
        logger.error("%s", exc)
        return 1

    result = asyncio.run(run(args.pdf, part, settings))
    return 0 if result.ok else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
