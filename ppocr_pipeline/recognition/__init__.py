"""
Text Recognition Module

CTC recognizer over rectified text regions
"""

from .ctc_recognizer import (
    RecognitionResult,
    TextRecognizer,
    Token,
    ctc_greedy_decode,
    expected_num_classes,
)

__all__ = [
    "RecognitionResult",
    "TextRecognizer",
    "Token",
    "ctc_greedy_decode",
    "expected_num_classes",
]
