"""
PP-OCRv5 Pipeline

Two-stage on-device OCR:

Detection:
- DB probability map → oriented text boxes (OpenCV post-processing)

Recognition:
- Rectified region strips → CTC best-path decoding
- Character dictionary maps token ids to symbols

Lifecycle:
- EngineManager keeps one live engine and serializes access to it
- PPOcrRecognizer adds lazy init, reading order and JSON output
"""

from .assets import DET_MODEL_FILES, REC_MODEL_FILES, REQUIRED_ASSETS, DirectoryAssetSource
from .config import OcrConfig
from .dictionary import CharacterDictionary
from .engine import EngineManager, OcrObject, default_manager
from .errors import (
    EngineNotLoadedError,
    ImageFormatError,
    InferenceError,
    LoadStatus,
    ModelLoadError,
    OcrError,
)
from .geometry import TextRegion
from .image_adapter import Bitmap, Image, PixelFormat, to_inference_image
from .pipeline import OcrPipeline
from .recognizer import OcrLine, OcrResult, PPOcrRecognizer
from .visualization import draw_overlay

__version__ = "1.0.0"

__all__ = [
    "DET_MODEL_FILES",
    "REC_MODEL_FILES",
    "REQUIRED_ASSETS",
    "DirectoryAssetSource",
    "OcrConfig",
    "CharacterDictionary",
    "EngineManager",
    "OcrObject",
    "default_manager",
    "EngineNotLoadedError",
    "ImageFormatError",
    "InferenceError",
    "LoadStatus",
    "ModelLoadError",
    "OcrError",
    "TextRegion",
    "Bitmap",
    "Image",
    "PixelFormat",
    "to_inference_image",
    "OcrPipeline",
    "OcrLine",
    "OcrResult",
    "PPOcrRecognizer",
    "draw_overlay",
]
