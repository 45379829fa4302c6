"""
OCR Error Taxonomy

Exceptions raised inside the pipeline. None of them cross the
EngineManager boundary: the manager resolves every failure into a
boolean (initialize) or a None result (detect).
"""

from enum import IntEnum


class LoadStatus(IntEnum):
    """Return codes of OcrPipeline.load (0 = success)"""
    OK = 0
    MISSING_ASSET = 1
    MALFORMED_MODEL = 2
    DICTIONARY_MISMATCH = 3


class OcrError(Exception):
    """Base class for all pipeline errors"""


class ModelLoadError(OcrError):
    """Model asset missing, unreadable or rejected by the backend"""

    def __init__(self, message: str, status: LoadStatus = LoadStatus.MALFORMED_MODEL):
        super().__init__(message)
        self.status = status


class ImageFormatError(OcrError):
    """Bitmap is not in the required RGBA_8888 layout"""


class InferenceError(OcrError):
    """Forward pass failed inside the inference backend"""


class EngineNotLoadedError(OcrError):
    """Inference requested before a successful load"""
