import json

import pytest

from part_data import (
    Dimension,
    PartNotFoundError,
    drawing_notes,
    find_part,
    get_part_data,
    parse_dimensions,
    part_name_for,
)

PARTS = [{"PartName": "P1", "drawings": [{"Notes": {"ZoomValue": 1, "ImageSize": [800, 600]}}]}]


@pytest.fixture
def highqa_file(tmp_path):
    path = tmp_path / "highqa.json"
    path.write_text(json.dumps(PARTS), encoding="utf-8")
    return path


def test_part_name_is_prefix_before_first_dash():
    assert part_name_for("/data/P12-rev-b.pdf") == "P12"
    assert part_name_for("nodash.pdf") == "nodash.pdf"


def test_get_part_data_finds_matching_record(highqa_file):
    part = get_part_data("P1-drawing.pdf", highqa_file)
    assert part == PARTS[0]


def test_get_part_data_missing_part_raises(highqa_file):
    with pytest.raises(PartNotFoundError) as excinfo:
        get_part_data("P99-drawing.pdf", highqa_file)
    assert excinfo.value.part_name == "P99"
    assert "Unable to find part P99" in str(excinfo.value)


def test_find_part_requires_exact_name():
    with pytest.raises(LookupError):
        find_part([{"PartName": "P10"}], "P1")


def test_drawing_notes():
    assert drawing_notes(PARTS[0]) == (1.0, 800.0)
    assert drawing_notes({"PartName": "P2"}) == (1.0, None)


def test_parse_dimensions_scales_by_zoom():
    dims = parse_dimensions([{"ShapeCenter": "10, 20", "ShapePoints": " 4,5 "}], zoom=2)
    assert dims == [Dimension(20.0, 40.0, 8.0, 10.0)]


def test_dimension_box_normalises_negative_sizes():
    assert Dimension(10, 10, -4, 6).box() == (6, 10, 10, 16)


def test_parse_dimensions_rejects_malformed():
    with pytest.raises(ValueError):
        parse_dimensions([{"ShapeCenter": "10", "ShapePoints": "4, 5"}])
