"""
CTC Text Recognition (PP-OCRv5 mobile recognizer)

Each detected region is rectified into a horizontal strip, resized to the
model's input height and decoded with the best-path CTC rule:
argmax per time step, collapse consecutive repeats, drop the blank class.

Class 0 is the blank; class k (k >= 1) is dictionary token k - 1.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from ..backend import InferenceModel
from ..geometry import TextRegion, crop_region
from ..image_adapter import Image

logger = logging.getLogger(__name__)

BLANK_INDEX = 0
WIDTH_ALIGN = 8


@dataclass(frozen=True)
class Token:
    """Recognized symbol id and its probability"""
    id: int
    prob: float


@dataclass(frozen=True)
class RecognitionResult:
    """Region, decoded token sequence and region confidence"""
    region: TextRegion
    tokens: Tuple[Token, ...]
    score: float

    @classmethod
    def empty(cls, region: TextRegion) -> "RecognitionResult":
        return cls(region=region, tokens=(), score=0.0)


def ctc_greedy_decode(probs: np.ndarray) -> Tuple[Tuple[Token, ...], float]:
    """
    Best-path CTC decoding

    Args:
        probs: (T, C) per-step class distribution, blank at index 0

    Returns:
        (tokens, score) where score is the mean probability of the kept
        tokens, 0.0 when nothing is kept
    """
    if probs.ndim != 2 or probs.shape[0] == 0:
        return (), 0.0

    indices = probs.argmax(axis=1)
    max_probs = probs[np.arange(len(indices)), indices]

    tokens = []
    previous = BLANK_INDEX
    for index, prob in zip(indices.tolist(), max_probs.tolist()):
        if index != previous and index != BLANK_INDEX:
            tokens.append(Token(id=index - 1, prob=float(prob)))
        previous = index

    if not tokens:
        return (), 0.0

    score = float(np.mean([t.prob for t in tokens]))
    return tuple(tokens), score


def _softmax(logits: np.ndarray) -> np.ndarray:
    shifted = logits - logits.max(axis=-1, keepdims=True)
    exp = np.exp(shifted)
    return exp / exp.sum(axis=-1, keepdims=True)


class TextRecognizer:
    """
    Region → token sequence recognizer
    """

    def __init__(
        self,
        model: InferenceModel,
        image_height: int = 48,
        max_width: int = 1280,
    ):
        """
        Initialize recognizer

        Args:
            model: Loaded recognition model
            image_height: Strip height the model expects
            max_width: Widest strip fed to the model
        """
        self.model = model
        self.image_height = image_height
        self.max_width = max_width

    def recognize(self, image: Image, region: TextRegion) -> RecognitionResult:
        """
        Recognize the text inside one region

        Args:
            image: Source RGB image
            region: Oriented box from the detector

        Returns:
            RecognitionResult (empty tokens for a degenerate region)

        Raises:
            InferenceError: Forward pass failed
        """
        crop = crop_region(image.pixels, region)
        if crop is None:
            logger.debug("Degenerate region %s, skipping recognition", region.points)
            return RecognitionResult.empty(region)

        tensor = self._preprocess(crop)
        output = self.model.run(tensor)

        probs = self._to_distribution(output)
        tokens, score = ctc_greedy_decode(probs)

        return RecognitionResult(region=region, tokens=tokens, score=score)

    def _preprocess(self, crop: np.ndarray) -> np.ndarray:
        """Resize to model height, scale to [-1, 1], NCHW"""
        height, width = crop.shape[:2]

        target_w = int(math.ceil(self.image_height * width / height))
        target_w = max(1, min(target_w, self.max_width))

        resized = cv2.resize(crop, (target_w, self.image_height), interpolation=cv2.INTER_LINEAR)
        normalized = (resized.astype(np.float32) / 255.0 - 0.5) / 0.5

        padded_w = int(math.ceil(target_w / WIDTH_ALIGN) * WIDTH_ALIGN)
        padded = np.zeros((self.image_height, padded_w, 3), dtype=np.float32)
        padded[:, :target_w] = normalized

        return np.expand_dims(padded.transpose(2, 0, 1), axis=0)

    @staticmethod
    def _to_distribution(output: np.ndarray) -> np.ndarray:
        """(1, T, C) model output → (T, C) probabilities"""
        probs = np.asarray(output, dtype=np.float32)
        while probs.ndim > 2:
            probs = probs[0]

        # Exported graphs normally end in softmax; raw logits do not
        if probs.size and (probs.min() < 0.0 or probs.max() > 1.0):
            probs = _softmax(probs)
        return probs


def expected_num_classes(model: InferenceModel) -> Optional[int]:
    """Static class count of the recognizer output, None if dynamic"""
    shape = getattr(model, "output_shape", ())
    if not shape:
        return None
    return shape[-1]
