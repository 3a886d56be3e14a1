import pytest
from PIL import Image

from geostamp.errors import PreconditionViolation
from geostamp.render.crop import compute_crop, crop_image, resize_by_scale, resize_to_width


def test_landscape_already_four_by_three_is_untouched() -> None:
    crop = compute_crop(4000, 3000)

    assert (crop.source.x, crop.source.y, crop.source.w, crop.source.h) == (0.0, 0.0, 4000.0, 3000.0)
    assert (crop.destination.w, crop.destination.h) == (4000.0, 3000.0)


def test_wide_landscape_is_cropped_horizontally_around_center() -> None:
    crop = compute_crop(4000, 2000)

    assert crop.source.h == pytest.approx(2000.0)
    assert crop.source.w == pytest.approx(2000.0 * 4 / 3)
    assert crop.source.x == pytest.approx((4000 - 2000.0 * 4 / 3) / 2)
    assert crop.source.y == 0.0
    assert crop.destination.x == 0.0 and crop.destination.y == 0.0


def test_tall_portrait_is_cropped_vertically_to_three_by_four() -> None:
    crop = compute_crop(1000, 3000)

    assert crop.source.w == pytest.approx(1000.0)
    assert crop.source.h == pytest.approx(1000.0 * 4 / 3)
    assert crop.source.y == pytest.approx((3000 - 1000.0 * 4 / 3) / 2)


def test_square_counts_as_landscape() -> None:
    crop = compute_crop(1000, 1000)

    assert crop.source.w == pytest.approx(1000.0)
    assert crop.source.h == pytest.approx(750.0)
    assert crop.source.y == pytest.approx(125.0)


@pytest.mark.parametrize("size", [(0, 100), (100, 0), (-5, 10)])
def test_non_positive_dimensions_are_rejected(size) -> None:
    with pytest.raises(PreconditionViolation):
        compute_crop(*size)


def test_crop_image_returns_four_by_three_pixels() -> None:
    image = Image.new("RGB", (1200, 600), color="#336699")

    cropped = crop_image(image)

    assert cropped.size == (800, 600)


def test_resize_helpers_only_shrink() -> None:
    image = Image.new("RGB", (400, 300))

    assert resize_to_width(image, 200).size == (200, 150)
    assert resize_to_width(image, 800) is image
    assert resize_by_scale(image, 0.5).size == (200, 150)
    assert resize_by_scale(image, 1.0) is image
