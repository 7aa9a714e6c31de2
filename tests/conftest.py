import os
import sys
from pathlib import Path

import fitz  # PyMuPDF
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))


def make_pdf(path, pages=1, toc=None, user_unit=None, width=200, height=100):
    """Write a small drawing: one filled rectangle and one line of text per page."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    doc = fitz.open()
    for idx in range(pages):
        page = doc.new_page(width=width, height=height)
        page.draw_rect(fitz.Rect(10, 10, 60, 40), color=(0, 0, 0), fill=(0, 0, 1))
        page.insert_text((80, 60), f"Page {idx + 1}", fontsize=12)
        if user_unit is not None:
            doc.xref_set_key(page.xref, "UserUnit", str(user_unit))
    if toc:
        doc.set_toc(toc)
    doc.save(str(path))
    doc.close()
    return Path(path)


@pytest.fixture
def pdf_factory(tmp_path):
    def _make(name="P1-drawing.pdf", **kwargs):
        return make_pdf(tmp_path / name, **kwargs)

    return _make
