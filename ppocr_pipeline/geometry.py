"""
Oriented Rectangle Geometry

TextRegion (4-corner oriented box), corner ordering and perspective
rectification of a region into a horizontal strip.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

Point = Tuple[float, float]


@dataclass(frozen=True)
class TextRegion:
    """
    Oriented text box in source image pixel coordinates

    Corners are ordered clockwise starting at the top-left corner:
    (top-left, top-right, bottom-right, bottom-left).
    """
    points: Tuple[Point, Point, Point, Point]
    score: float = 1.0

    @classmethod
    def from_array(cls, points: np.ndarray, score: float = 1.0) -> "TextRegion":
        ordered = order_points_clockwise(np.asarray(points, dtype=np.float32))
        return cls(
            points=tuple((float(x), float(y)) for x, y in ordered),
            score=float(score),
        )

    def as_array(self) -> np.ndarray:
        return np.array(self.points, dtype=np.float32)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Axis-aligned (left, top, right, bottom)"""
        xs = [p[0] for p in self.points]
        ys = [p[1] for p in self.points]
        return min(xs), min(ys), max(xs), max(ys)


def order_points_clockwise(points: np.ndarray) -> np.ndarray:
    """
    Order 4 corners as top-left, top-right, bottom-right, bottom-left

    Args:
        points: (4, 2) array in any order

    Returns:
        (4, 2) float32 array
    """
    points = np.asarray(points, dtype=np.float32).reshape(4, 2)

    # Two leftmost points form the left edge
    by_x = points[np.argsort(points[:, 0], kind="stable")]
    left = by_x[:2]
    right = by_x[2:]

    top_left, bottom_left = left[np.argsort(left[:, 1], kind="stable")]
    top_right, bottom_right = right[np.argsort(right[:, 1], kind="stable")]

    return np.array([top_left, top_right, bottom_right, bottom_left], dtype=np.float32)


def sort_reading_order(
    regions: list,
    line_tolerance: float = 10.0,
) -> list:
    """
    Sort regions top-to-bottom, then left-to-right within a text line

    Regions whose top-left corners differ by less than `line_tolerance`
    pixels vertically are treated as one line.
    """
    ordered = sorted(regions, key=lambda r: (r.points[0][1], r.points[0][0]))

    for i in range(len(ordered) - 1):
        for j in range(i, -1, -1):
            upper, lower = ordered[j], ordered[j + 1]
            same_line = abs(lower.points[0][1] - upper.points[0][1]) < line_tolerance
            if same_line and lower.points[0][0] < upper.points[0][0]:
                ordered[j], ordered[j + 1] = lower, upper
            else:
                break

    return ordered


def crop_region(
    image: np.ndarray,
    region: TextRegion,
    vertical_ratio: float = 1.5,
) -> Optional[np.ndarray]:
    """
    Perspective-rectify a region into an upright strip

    Args:
        image: (H, W, 3) RGB image
        region: Oriented box
        vertical_ratio: Strips at least this much taller than wide are
            rotated 90 degrees so text runs horizontally

    Returns:
        Rectified crop, or None for a degenerate region
    """
    points = region.as_array()

    width = int(round(max(
        np.linalg.norm(points[0] - points[1]),
        np.linalg.norm(points[2] - points[3]),
    )))
    height = int(round(max(
        np.linalg.norm(points[0] - points[3]),
        np.linalg.norm(points[1] - points[2]),
    )))

    if width < 1 or height < 1:
        return None

    destination = np.array(
        [[0, 0], [width, 0], [width, height], [0, height]],
        dtype=np.float32,
    )
    matrix = cv2.getPerspectiveTransform(points, destination)
    crop = cv2.warpPerspective(
        image,
        matrix,
        (width, height),
        borderMode=cv2.BORDER_REPLICATE,
        flags=cv2.INTER_CUBIC,
    )

    if crop.shape[0] >= crop.shape[1] * vertical_ratio:
        crop = np.rot90(crop)

    return np.ascontiguousarray(crop)
