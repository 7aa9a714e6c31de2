"""Command line utility to rasterize a directory of PDFs and dump their paint commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
from functools import partial
from pathlib import Path

from batch import list_pdf_files, run_batch, write_report
from pdf_engine import PdfEngine
from pdf_renderer import extract
from settings import (
    DEFAULT_CONCURRENCY,
    DEFAULT_FIXED_SCALE,
    DEFAULT_MAX_FILES,
    BatchSettings,
    RenderSettings,
    configure_logging,
    ensure_output_dir,
    env_float,
    env_int,
)

logger = logging.getLogger(__name__)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render PDFs to PNG and extract paint commands to JSON.")
    parser.add_argument("-s", "--source", type=Path, required=True, help="Source directory")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output directory")
    parser.add_argument(
        "--max-files",
        type=int,
        default=env_int("PDF2PNG_MAX_FILES", DEFAULT_MAX_FILES),
        help="Process at most this many PDFs (default: 500)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=env_int("PDF2PNG_CONCURRENCY", DEFAULT_CONCURRENCY),
        help="Documents extracted at the same time (default: 10)",
    )
    parser.add_argument(
        "--scale",
        type=float,
        default=env_float("PDF2PNG_SCALE", DEFAULT_FIXED_SCALE),
        help="Pixels per PDF unit before the page's /UserUnit is applied (default: 2.0)",
    )
    parser.add_argument("--report", type=Path, default=None, help="Write a JSONL result per document here")
    parser.add_argument(
        "--fail-on-error", action="store_true", help="Exit with status 1 if any document failed"
    )
    parser.add_argument("--log-file", default=None, help="Also write log output to this file")
    return parser.parse_args()


async def run(batch: BatchSettings, render: RenderSettings) -> int:
    paths = list_pdf_files(batch.source_dir, batch.max_files)
    if not paths:
        logger.warning("No PDFs found under %s", batch.source_dir)
        return 0

    with PdfEngine() as engine:
        report = await run_batch(paths, partial(extract, engine, settings=render), batch.concurrency)

    if batch.report_path:
        write_report(report, batch.report_path)
    logger.info("Extraction complete | ok=%s error=%s", report.ok, report.failed)
    if batch.fail_on_error and report.failed:
        return 1
    return 0


def main() -> int:
    args = _parse_args()
    configure_logging(log_file=args.log_file)

    render = RenderSettings(output_dir=ensure_output_dir(args.output), fixed_scale=args.scale)
    batch = BatchSettings(
        source_dir=args.source,
        max_files=args.max_files,
        concurrency=args.concurrency,
        report_path=args.report,
        fail_on_error=args.fail_on_error,
    )
    return asyncio.run(run(batch, render))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
