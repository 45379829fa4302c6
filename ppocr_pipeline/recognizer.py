"""
Recognizer Facade

High-level entry point for hosts that just want text out of a bitmap:

- Lazy engine initialization, guarded by a check that every model
  asset is present and non-empty
- Reading-order sorting and blank-label filtering
- Line records with quads and axis-aligned bounds, plus a JSON payload
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .assets import AssetSource, missing_assets
from .engine import EngineManager, OcrObject, default_manager
from .image_adapter import Bitmap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OcrLine:
    """One recognized text line"""
    text: str
    prob: float
    quad: Tuple[Tuple[float, float], ...]
    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_object(cls, obj: OcrObject, text: str) -> "OcrLine":
        quad = obj.corners
        xs = [x for x, _ in quad]
        ys = [y for _, y in quad]
        return cls(
            text=text,
            prob=obj.prob,
            quad=quad,
            left=min(xs),
            top=min(ys),
            right=max(xs),
            bottom=max(ys),
        )

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "prob": self.prob,
            "quad": [{"x": x, "y": y} for x, y in self.quad],
            "bbox": {
                "left": self.left,
                "top": self.top,
                "right": self.right,
                "bottom": self.bottom,
            },
        }


@dataclass(frozen=True)
class OcrResult:
    """Joined text plus the individual lines it was built from"""
    text: str
    lines: Tuple[OcrLine, ...]

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "lines": [line.to_dict() for line in self.lines],
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)


def _reading_key(obj: OcrObject) -> Tuple[float, float]:
    return (
        min(obj.y0, obj.y1, obj.y2, obj.y3),
        min(obj.x0, obj.x1, obj.x2, obj.x3),
    )


def build_result(objects: List[OcrObject]) -> Optional[OcrResult]:
    """
    Turn raw engine records into an OcrResult

    Records are sorted by (top, left) and those with a blank label are
    dropped. Returns None when no line survives.
    """
    lines: List[OcrLine] = []
    for obj in sorted(objects, key=_reading_key):
        text = obj.label.strip()
        if not text:
            continue
        lines.append(OcrLine.from_object(obj, text))

    if not lines:
        return None

    text = "\n".join(line.text for line in lines).strip()
    return OcrResult(text=text, lines=tuple(lines))


class PPOcrRecognizer:
    """
    Bitmap → text with lazy engine initialization

    Example:
        >>> recognizer = PPOcrRecognizer(DirectoryAssetSource("models"))
        >>> recognizer.recognize(Bitmap.from_file("screen.png"))
        'Hello world'
    """

    def __init__(self, asset_source: AssetSource, manager: Optional[EngineManager] = None):
        """
        Args:
            asset_source: Where the four model files live
            manager: Engine manager (the process-wide one if None)
        """
        self.asset_source = asset_source
        self.manager = manager or default_manager()
        self._lock = threading.Lock()
        self._inited = False

    def warm_up(self) -> bool:
        """Initialize the engine now instead of on the first recognize()"""
        with self._lock:
            return self._ensure_inited()

    def recognize(self, bitmap: Bitmap) -> Optional[str]:
        """Joined text of recognize_detailed(), or None"""
        result = self.recognize_detailed(bitmap)
        return result.text if result is not None else None

    def recognize_detailed(self, bitmap: Bitmap) -> Optional[OcrResult]:
        """
        Run OCR and build line records

        Returns:
            OcrResult, or None when the engine is unavailable, the call
            fails or no non-blank line is found
        """
        with self._lock:
            if not self._ensure_inited():
                return None

            objects = self.manager.detect(bitmap, use_gpu=False)
            if objects is None:
                return None

            return build_result(objects)

    def _ensure_inited(self) -> bool:
        if self._inited and self.manager.is_loaded:
            return True

        missing = missing_assets(self.asset_source)
        if missing:
            logger.warning("OCR assets missing (%s), warm-up skipped", ", ".join(missing))
            return False

        if not self.manager.initialize(self.asset_source):
            logger.warning("OCR engine init failed")
            return False

        self._inited = True
        logger.info("OCR engine init success: %r", self.asset_source)
        return True
