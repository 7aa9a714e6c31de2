import pytest

from canvas_factory import WHITE, CanvasFactory


def test_create_returns_blank_surface():
    factory = CanvasFactory()
    cc = factory.create(20, 10)
    assert (cc.canvas.width, cc.canvas.height) == (20, 10)
    assert cc.context is not None
    assert cc.canvas.image.getpixel((5, 5)) == (0, 0, 0, 0)


@pytest.mark.parametrize("width,height", [(0, 10), (10, 0), (-1, 5)])
def test_create_rejects_empty_size(width, height):
    with pytest.raises(AssertionError):
        CanvasFactory().create(width, height)


def test_reset_resizes_and_clears():
    factory = CanvasFactory()
    cc = factory.create(20, 10)
    cc.canvas.fill(WHITE)
    factory.reset(cc, 30, 15)
    assert (cc.canvas.width, cc.canvas.height) == (30, 15)
    assert cc.canvas.image.getpixel((0, 0)) == (0, 0, 0, 0)
    cc.context.rectangle((0, 0, 2, 2), fill=(255, 0, 0, 255))
    assert cc.canvas.image.getpixel((1, 1)) == (255, 0, 0, 255)


def test_destroy_shrinks_before_dropping():
    factory = CanvasFactory()
    cc = factory.create(20, 10)
    surface = cc.canvas
    factory.destroy(cc)
    assert cc.canvas is None
    assert cc.context is None
    assert (surface.width, surface.height) == (0, 0)
    with pytest.raises(AssertionError):
        factory.destroy(cc)


def test_written_bounds_copy_and_clear():
    cc = CanvasFactory().create(20, 10)
    cc.canvas.fill(WHITE)
    assert cc.canvas.written_bounds(WHITE) is None

    cc.context.rectangle((2, 3, 5, 7), fill=(0, 0, 0, 255))
    rect = cc.canvas.written_bounds(WHITE)
    assert rect == [2, 3, 5, 7]

    clip = cc.canvas.copy_rect([2, 3, 6, 8])
    assert clip.size == (4, 5)
    assert clip.getpixel((0, 0)) == (0, 0, 0, 255)

    cc.canvas.clear_rect([2, 3, 6, 8], WHITE)
    assert cc.canvas.written_bounds(WHITE) is None
    # The copy is independent of the cleared canvas.
    assert clip.getpixel((3, 4)) == (0, 0, 0, 255)


def test_to_png_round_trips_size():
    from io import BytesIO

    from PIL import Image

    cc = CanvasFactory().create(12, 7)
    with Image.open(BytesIO(cc.canvas.to_png())) as img:
        assert img.size == (12, 7)
