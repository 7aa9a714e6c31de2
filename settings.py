"""Configuration values and logging setup shared by the command line tools.

Settings are built once in each ``main()`` and handed to the components that
need them.  Defaults can be overridden through ``PDF2PNG_*`` environment
variables.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

DEFAULT_MAX_FILES = 500
DEFAULT_CONCURRENCY = 10
# Engine pixels per PDF unit for directory extraction, before /UserUnit.
DEFAULT_FIXED_SCALE = 2.0


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass(frozen=True)
class RenderSettings:
    """How a single document is rendered and where its outputs go."""

    output_dir: Path
    fixed_scale: float = DEFAULT_FIXED_SCALE
    save_clips: bool = False
    draw_dims: bool = False


@dataclass(frozen=True)
class BatchSettings:
    """Which files a batch run picks up and how many run at once."""

    source_dir: Path
    max_files: int = DEFAULT_MAX_FILES
    concurrency: int = DEFAULT_CONCURRENCY
    report_path: Path | None = None
    fail_on_error: bool = False


def ensure_output_dir(path: str | Path) -> Path:
    out = Path(path)
    out.mkdir(parents=True, exist_ok=True)
    return out


def configure_logging(level: str | None = None, log_file: str | Path | None = None) -> None:
    """Send log records to stdout and, optionally, to ``log_file``."""
    level = level or os.getenv("PDF2PNG_LOG_LEVEL", "INFO")
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, handlers=handlers, force=True)
