"""
Overlay Rendering

Draws recognized quads and "text (prob)" captions onto a copy of the
source image, for debugging detection quality.
"""

from typing import Iterable, Optional

import cv2
import numpy as np

from .recognizer import OcrLine

BOX_COLOR = (0, 255, 0)
TEXT_COLOR = (255, 255, 255)
LABEL_BACKGROUND = (0, 0, 0)


def draw_overlay(
    image: np.ndarray,
    lines: Iterable[OcrLine],
    output_path: Optional[str] = None,
) -> np.ndarray:
    """
    Visualize recognized lines on an RGB image

    Args:
        image: (H, W, 3) RGB image
        lines: Lines to draw
        output_path: Optional path to save the overlay

    Returns:
        Copy of the image with boxes and captions drawn
    """
    vis_image = np.array(image, dtype=np.uint8, copy=True)
    width = vis_image.shape[1]

    thickness = max(2, int(round(width / 400)))
    font_scale = max(0.4, width / 1600)

    for line in lines:
        quad = np.array(line.quad, dtype=np.float32).round().astype(np.int32)
        cv2.polylines(vis_image, [quad.reshape(-1, 1, 2)], True, BOX_COLOR, thickness)

        caption = f"{line.text} ({line.prob:.2f})"
        (text_w, text_h), baseline = cv2.getTextSize(
            caption, cv2.FONT_HERSHEY_SIMPLEX, font_scale, 1
        )

        # Caption sits above the box, or inside it at the top edge
        x = int(line.left)
        y = int(line.top) - baseline - 2
        if y - text_h < 0:
            y = int(line.top) + text_h + 2

        cv2.rectangle(
            vis_image,
            (x, y - text_h - 2),
            (x + text_w + 2, y + baseline),
            LABEL_BACKGROUND,
            -1,
        )
        cv2.putText(
            vis_image,
            caption,
            (x + 1, y),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            TEXT_COLOR,
            1,
            cv2.LINE_AA,
        )

    if output_path:
        cv2.imwrite(output_path, cv2.cvtColor(vis_image, cv2.COLOR_RGB2BGR))

    return vis_image
