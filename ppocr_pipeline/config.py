"""
Pipeline Configuration

Single dataclass holding every tunable of the detect → recognize pipeline.
Values come from constructor arguments, or from PPOCR_* environment
variables via OcrConfig.from_env().

Environment variables:
- PPOCR_MODEL_DIR: directory holding the four model assets
- PPOCR_DICT_PATH: character dictionary file (one symbol per line)
- PPOCR_TARGET_SIZE: detection resize target for the longer side
- PPOCR_USE_FP16 / PPOCR_USE_GPU: precision and accelerator switches
- PPOCR_NUM_THREADS: CPU threads per inference session
- PPOCR_DET_DB_THRESH / PPOCR_DET_DB_BOX_THRESH / PPOCR_DET_UNCLIP_RATIO
- PPOCR_REC_MAX_WIDTH: widest recognition strip fed to the model
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: Optional[bool]) -> Optional[bool]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


@dataclass
class OcrConfig:
    """
    OCR pipeline configuration

    Detection defaults follow PP-OCR DB post-processing; recognition
    defaults follow the PP-OCRv5 mobile recognizer input (48 px strips).
    `use_gpu=None` means "decide from the available execution providers".
    """
    model_dir: Optional[Path] = None
    dict_path: Optional[Path] = None
    target_size: int = 640
    use_fp16: bool = True
    use_gpu: Optional[bool] = None
    num_threads: int = 4

    # Detection (DB post-processing)
    det_db_thresh: float = 0.3
    det_db_box_thresh: float = 0.6
    det_unclip_ratio: float = 1.5
    det_min_size: float = 3.0
    det_max_candidates: int = 1000

    # Recognition
    rec_image_height: int = 48
    rec_max_width: int = 1280

    def __post_init__(self):
        if self.model_dir is not None:
            self.model_dir = Path(self.model_dir)
        if self.dict_path is not None:
            self.dict_path = Path(self.dict_path)

        if self.target_size <= 0:
            raise ValueError("target_size must be positive")
        if self.num_threads <= 0:
            raise ValueError("num_threads must be positive")
        for name in ("det_db_thresh", "det_db_box_thresh"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0.0, 1.0]")
        if self.det_unclip_ratio <= 0:
            raise ValueError("det_unclip_ratio must be positive")
        if self.det_max_candidates <= 0:
            raise ValueError("det_max_candidates must be positive")
        if self.rec_image_height <= 0:
            raise ValueError("rec_image_height must be positive")
        if self.rec_max_width < self.rec_image_height:
            raise ValueError("rec_max_width must be at least rec_image_height")

    @classmethod
    def from_env(cls) -> "OcrConfig":
        """Build a config from PPOCR_* environment variables"""
        model_dir = os.getenv("PPOCR_MODEL_DIR")
        dict_path = os.getenv("PPOCR_DICT_PATH")

        return cls(
            model_dir=Path(model_dir) if model_dir else None,
            dict_path=Path(dict_path) if dict_path else None,
            target_size=_env_int("PPOCR_TARGET_SIZE", 640),
            use_fp16=_env_bool("PPOCR_USE_FP16", True),
            use_gpu=_env_bool("PPOCR_USE_GPU", None),
            num_threads=_env_int("PPOCR_NUM_THREADS", 4),
            det_db_thresh=_env_float("PPOCR_DET_DB_THRESH", 0.3),
            det_db_box_thresh=_env_float("PPOCR_DET_DB_BOX_THRESH", 0.6),
            det_unclip_ratio=_env_float("PPOCR_DET_UNCLIP_RATIO", 1.5),
            rec_max_width=_env_int("PPOCR_REC_MAX_WIDTH", 1280),
        )
