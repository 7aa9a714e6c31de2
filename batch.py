"""Batch driver: pick PDFs out of a directory and extract them a few at a time."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Sequence, Tuple

from pdf_renderer import DocumentResult

logger = logging.getLogger(__name__)

PDF_SUFFIX = ".pdf"

ProcessFn = Callable[[Path], Awaitable[DocumentResult]]


@dataclass
class BatchReport:
    results: List[DocumentResult] = field(default_factory=list)

    @property
    def ok(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def part_number(name: str) -> int | None:
    """Numeric id of ``P12-foo.pdf`` style names (12), or None when there is none."""
    prefix = name.split("-")[0][1:]
    match = re.match(r"\s*[+-]?\d+", prefix)
    return int(match.group()) if match else None


def sort_key(name: str) -> Tuple[int, int, str]:
    number = part_number(name)
    if number is None:
        return (1, 0, name)
    return (0, number, name)


def list_pdf_files(source_dir: str | Path, max_files: int | None = None) -> List[Path]:
    source = Path(source_dir)
    if not source.is_dir():
        raise FileNotFoundError(f"Source directory does not exist: {source}")
    names = [
        entry.name
        for entry in source.iterdir()
        if entry.suffix.lower() == PDF_SUFFIX and entry.is_file()
    ]
    names.sort(key=sort_key)
    if max_files is not None:
        names = names[:max_files]
    return [source / name for name in names]


async def run_batch(paths: Sequence[Path], process: ProcessFn, concurrency: int) -> BatchReport:
    """Run ``process`` over ``paths`` with at most ``concurrency`` in flight.

    A document that raises is logged and recorded as an error; the rest of the
    batch carries on.  Results keep the order of ``paths``.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    total = len(paths)
    started = 0

    async def run_one(path: Path) -> DocumentResult:
        nonlocal started
        async with semaphore:
            started += 1
            logger.info("%s/%s %s", started, total, path.name)
            try:
                return await process(path)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Failed to process %s", path)
                return DocumentResult(pdf=str(path), pages=0, status="error", message=str(exc))

    results = await asyncio.gather(*(run_one(path) for path in paths))
    return BatchReport(results=list(results))


def write_report(report: BatchReport, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as fh:
        for result in report.results:
            fh.write(json.dumps(asdict(result), ensure_ascii=False) + "\n")
    return out
