"""
DB Text Detection (PP-OCRv5 mobile detector)

Preprocessing:
- Resize so the longer side equals target_size (aspect preserved)
- ImageNet mean/std normalization, NCHW float32
- Zero-pad height and width to multiples of 32

Postprocessing (differentiable binarization map → oriented boxes):
- Threshold the probability map
- External contours → minimum-area rectangles
- Drop low-score and degenerate rectangles
- Expand ("unclip") each rectangle, map back to source pixels
"""

import logging
import math
from typing import List, Tuple

import cv2
import numpy as np

from ..backend import InferenceModel
from ..geometry import TextRegion, sort_reading_order
from ..image_adapter import Image

logger = logging.getLogger(__name__)

MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)
STRIDE = 32


class TextDetector:
    """
    Oriented text box detector over a DB probability map

    Thresholds are configuration constants: anything scoring below
    det_db_box_thresh, or thinner than min_size, is dropped.
    """

    def __init__(
        self,
        model: InferenceModel,
        target_size: int = 640,
        det_db_thresh: float = 0.3,
        det_db_box_thresh: float = 0.6,
        unclip_ratio: float = 1.5,
        min_size: float = 3.0,
        max_candidates: int = 1000,
    ):
        """
        Initialize detector

        Args:
            model: Loaded detection model
            target_size: Longer-side length after resizing
            det_db_thresh: Binary threshold for the probability map
            det_db_box_thresh: Minimum mean probability inside a box
            unclip_ratio: Box expansion ratio
            min_size: Minimum short side of a box (model input pixels)
            max_candidates: Max contours examined per image
        """
        self.model = model
        self.target_size = target_size
        self.det_db_thresh = det_db_thresh
        self.det_db_box_thresh = det_db_box_thresh
        self.unclip_ratio = unclip_ratio
        self.min_size = min_size
        self.max_candidates = max_candidates

    def detect(self, image: Image) -> List[TextRegion]:
        """
        Detect text regions

        Args:
            image: RGB image

        Returns:
            Regions in source pixel coordinates, in reading order
            (empty when nothing is found)

        Raises:
            InferenceError: Forward pass failed
        """
        tensor, resized_w, resized_h = self._preprocess(image.pixels)

        output = self.model.run(tensor)
        prob_map = self._squeeze_map(output)

        ratio_w = image.width / resized_w
        ratio_h = image.height / resized_h

        regions = self._postprocess(
            prob_map[:resized_h, :resized_w],
            ratio_w,
            ratio_h,
            image.width,
            image.height,
        )
        logger.debug("Detected %d region(s) in %dx%d image", len(regions), image.width, image.height)
        return regions

    # ========================================
    # PREPROCESSING
    # ========================================

    def _preprocess(self, pixels: np.ndarray) -> Tuple[np.ndarray, int, int]:
        """Resize, normalize and pad; returns (tensor, resized_w, resized_h)"""
        height, width = pixels.shape[:2]

        scale = self.target_size / max(height, width)
        resized_w = max(1, int(round(width * scale)))
        resized_h = max(1, int(round(height * scale)))

        resized = cv2.resize(pixels, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

        normalized = (resized.astype(np.float32) / 255.0 - MEAN) / STD

        padded_h = int(math.ceil(resized_h / STRIDE) * STRIDE)
        padded_w = int(math.ceil(resized_w / STRIDE) * STRIDE)
        padded = np.zeros((padded_h, padded_w, 3), dtype=np.float32)
        padded[:resized_h, :resized_w] = normalized

        tensor = np.expand_dims(padded.transpose(2, 0, 1), axis=0)
        return tensor, resized_w, resized_h

    @staticmethod
    def _squeeze_map(output: np.ndarray) -> np.ndarray:
        prob_map = np.asarray(output, dtype=np.float32)
        while prob_map.ndim > 2:
            prob_map = prob_map[0]
        return prob_map

    # ========================================
    # POSTPROCESSING
    # ========================================

    def _postprocess(
        self,
        prob_map: np.ndarray,
        ratio_w: float,
        ratio_h: float,
        src_width: int,
        src_height: int,
    ) -> List[TextRegion]:
        """Turn the probability map into oriented boxes"""
        binary = (prob_map > self.det_db_thresh).astype(np.uint8) * 255

        contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        regions = []
        for contour in contours[:self.max_candidates]:
            if len(contour) < 4:
                continue

            rect = cv2.minAreaRect(contour)
            if min(rect[1]) < self.min_size:
                continue

            score = self._calculate_box_score(prob_map, cv2.boxPoints(rect))
            if score < self.det_db_box_thresh:
                continue

            expanded = self._unclip(rect)
            if min(expanded[1]) < self.min_size + 2:
                continue

            points = cv2.boxPoints(expanded)
            points[:, 0] = np.clip(points[:, 0] * ratio_w, 0, src_width - 1)
            points[:, 1] = np.clip(points[:, 1] * ratio_h, 0, src_height - 1)

            regions.append(TextRegion.from_array(points, score=score))

        return sort_reading_order(regions)

    def _calculate_box_score(self, prob_map: np.ndarray, box: np.ndarray) -> float:
        """Mean probability inside the box"""
        height, width = prob_map.shape[:2]

        xmin = int(np.clip(np.floor(box[:, 0].min()), 0, width - 1))
        xmax = int(np.clip(np.ceil(box[:, 0].max()), 0, width - 1))
        ymin = int(np.clip(np.floor(box[:, 1].min()), 0, height - 1))
        ymax = int(np.clip(np.ceil(box[:, 1].max()), 0, height - 1))

        mask = np.zeros((ymax - ymin + 1, xmax - xmin + 1), dtype=np.uint8)
        shifted = box - np.array([xmin, ymin], dtype=np.float32)
        cv2.fillPoly(mask, [shifted.round().astype(np.int32)], 1)

        return float(cv2.mean(prob_map[ymin:ymax + 1, xmin:xmax + 1], mask)[0])

    def _unclip(self, rect: tuple) -> tuple:
        """
        Grow a rotated rectangle outwards by area * ratio / perimeter

        The network predicts shrunk text kernels; offsetting every edge
        by this distance recovers the full text extent.
        """
        (cx, cy), (w, h), angle = rect
        area = w * h
        perimeter = 2.0 * (w + h)
        if perimeter <= 0:
            return rect

        distance = area * self.unclip_ratio / perimeter
        return (cx, cy), (w + 2.0 * distance, h + 2.0 * distance), angle
