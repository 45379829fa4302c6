import numpy as np

from ppocr_pipeline.geometry import (
    TextRegion,
    crop_region,
    order_points_clockwise,
    sort_reading_order,
)


def _box(left, top, right, bottom, score=1.0):
    return TextRegion.from_array(
        [[right, bottom], [left, top], [left, bottom], [right, top]],
        score=score,
    )


def test_order_points_clockwise_from_top_left():
    shuffled = np.array([[10, 20], [0, 0], [10, 0], [0, 20]], dtype=np.float32)

    ordered = order_points_clockwise(shuffled)

    np.testing.assert_array_equal(ordered, [[0, 0], [10, 0], [10, 20], [0, 20]])


def test_region_bounds():
    region = _box(5, 10, 50, 30)

    assert region.points[0] == (5.0, 10.0)
    assert region.points[2] == (50.0, 30.0)
    assert region.bounds == (5.0, 10.0, 50.0, 30.0)


def test_sort_reading_order_rows_then_columns():
    first_line_right = _box(200, 12, 300, 40)
    first_line_left = _box(10, 15, 100, 40)
    second_line = _box(10, 80, 100, 110)

    ordered = sort_reading_order([second_line, first_line_right, first_line_left])

    assert ordered == [first_line_left, first_line_right, second_line]


def test_crop_region_horizontal_strip():
    image = np.zeros((50, 100, 3), dtype=np.uint8)
    image[10:30, 20:80] = 200

    crop = crop_region(image, _box(20, 10, 80, 30))

    assert crop.shape == (20, 60, 3)
    assert crop.mean() > 150


def test_crop_region_rotates_tall_regions():
    image = np.zeros((100, 100, 3), dtype=np.uint8)

    crop = crop_region(image, _box(10, 10, 20, 70))

    assert crop.shape[:2] == (10, 60)


def test_crop_region_degenerate():
    image = np.zeros((10, 10, 3), dtype=np.uint8)
    region = TextRegion(points=((3.0, 3.0),) * 4)

    assert crop_region(image, region) is None
