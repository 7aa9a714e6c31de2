"""HighQA part metadata lookup.

The HighQA export is a JSON array of part records.  A drawing PDF is matched to
its record through the part name that prefixes the file name, e.g.
``P12-rev-b.pdf`` belongs to the record whose ``PartName`` is ``P12``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

PartRecord = Dict[str, Any]


class PartNotFoundError(LookupError):
    """Raised when no HighQA record carries the requested part name."""

    def __init__(self, part_name: str) -> None:
        super().__init__(f"Unable to find part {part_name}")
        self.part_name = part_name


@dataclass(frozen=True)
class Dimension:
    """A dimension annotation in canvas pixels."""

    x: float
    y: float
    width: float
    height: float

    def box(self) -> Tuple[float, float, float, float]:
        x0, x1 = sorted((self.x, self.x + self.width))
        y0, y1 = sorted((self.y, self.y + self.height))
        return x0, y0, x1, y1


def part_name_for(pdf_path: str | Path) -> str:
    return Path(pdf_path).name.split("-")[0]


def load_parts(data_path: str | Path) -> List[PartRecord]:
    with open(data_path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of parts in {data_path}")
    return data


def find_part(parts: Iterable[PartRecord], part_name: str) -> PartRecord:
    for part in parts:
        if part.get("PartName") == part_name:
            return part
    raise PartNotFoundError(part_name)


def get_part_data(pdf_path: str | Path, data_path: str | Path) -> PartRecord:
    """Return the HighQA record for ``pdf_path``, raising if it is missing."""
    part = find_part(load_parts(data_path), part_name_for(pdf_path))
    drawings = part.get("drawings") or [{}]
    logger.info("Part %s notes: %s", part["PartName"], drawings[0].get("Notes"))
    return part


def drawing_notes(part: PartRecord) -> Tuple[float, Optional[float]]:
    """Return ``(zoom_value, target_width)`` from the part's first drawing."""
    drawings = part.get("drawings") or [{}]
    notes = drawings[0].get("Notes") or {}
    zoom_value = float(notes.get("ZoomValue", 1.0))
    image_size = notes.get("ImageSize") or []
    target_width = float(image_size[0]) if image_size else None
    return zoom_value, target_width


def _split_numbers(value: str, zoom: float) -> List[float]:
    return [float(v.strip()) * zoom for v in value.split(",")]


def parse_dimensions(dims: Iterable[Dict[str, Any]], zoom: float = 1.0) -> List[Dimension]:
    """Turn HighQA ``ShapeCenter``/``ShapePoints`` strings into scaled boxes."""
    parsed: List[Dimension] = []
    for dim in dims:
        center = _split_numbers(dim["ShapeCenter"], zoom)
        points = _split_numbers(dim["ShapePoints"], zoom)
        if len(center) < 2 or len(points) < 2:
            raise ValueError(f"Malformed dimension annotation: {dim!r}")
        parsed.append(Dimension(center[0], center[1], points[0], points[1]))
    return parsed
