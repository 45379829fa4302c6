"""
Text detection module
"""

from .db_detector import TextDetector

__all__ = ["TextDetector"]
