"""
Engine Lifecycle Manager

Holds at most one live OcrPipeline and serializes every operation on it
with one exclusive lock. All pipeline failures are resolved here:
initialize() answers True/False and detect() answers a record list or
None. No library exception crosses this boundary.

A process-wide default manager is available through default_manager();
it shares the process accelerator context and is shut down at exit.
"""

import atexit
import logging
import threading
from dataclasses import asdict, dataclass
from typing import List, Optional, Tuple

from .assets import DET_MODEL_FILES, DICT_ASSET, REC_MODEL_FILES, AssetSource
from .backend import AcceleratorContext, ModelFactory, load_onnx_model, process_accelerator
from .config import OcrConfig
from .dictionary import CharacterDictionary
from .errors import ImageFormatError, LoadStatus
from .image_adapter import Bitmap, to_inference_image
from .pipeline import OcrPipeline
from .recognition import RecognitionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OcrObject:
    """
    One recognized region as handed back to the host

    Corners (x0, y0) .. (x3, y3) run clockwise from the top-left corner
    in source image pixels.
    """
    x0: float
    y0: float
    x1: float
    y1: float
    x2: float
    y2: float
    x3: float
    y3: float
    label: str
    prob: float

    @classmethod
    def from_result(cls, result: RecognitionResult, dictionary: CharacterDictionary) -> "OcrObject":
        (x0, y0), (x1, y1), (x2, y2), (x3, y3) = result.region.points
        return cls(
            x0=x0, y0=y0,
            x1=x1, y1=y1,
            x2=x2, y2=y2,
            x3=x3, y3=y3,
            label=dictionary.decode(result.tokens),
            prob=min(max(float(result.score), 0.0), 1.0),
        )

    @property
    def corners(self) -> Tuple[Tuple[float, float], ...]:
        return (
            (self.x0, self.y0),
            (self.x1, self.y1),
            (self.x2, self.y2),
            (self.x3, self.y3),
        )

    def to_dict(self) -> dict:
        return asdict(self)


class EngineManager:
    """
    Owner of the single live OCR engine

    Usage:
        manager = EngineManager()
        if manager.initialize(DirectoryAssetSource("models")):
            objects = manager.detect(Bitmap.from_file("receipt.png"))
        manager.shutdown()
    """

    def __init__(
        self,
        dictionary: Optional[CharacterDictionary] = None,
        config: Optional[OcrConfig] = None,
        model_factory: Optional[ModelFactory] = None,
        accelerator: Optional[AcceleratorContext] = None,
    ):
        """
        Args:
            dictionary: Symbol table. If None: config.dict_path, else the
                ppocrv5_dict.txt stored with the models, else the ASCII table
            config: Pipeline configuration
            model_factory: Model loader (ONNX Runtime if None)
            accelerator: GPU context (a private one if None)
        """
        self.config = config or OcrConfig()

        # Pinned tables are never replaced by one found next to the models
        self._dictionary_pinned = dictionary is not None or self.config.dict_path is not None
        if dictionary is None:
            if self.config.dict_path is not None:
                dictionary = CharacterDictionary.from_file(self.config.dict_path)
            else:
                dictionary = CharacterDictionary.default()
        self.dictionary = dictionary

        self.model_factory = model_factory or load_onnx_model
        self.accelerator = accelerator or AcceleratorContext()

        self._lock = threading.Lock()
        self._engine: Optional[OcrPipeline] = None

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._engine is not None

    @property
    def engine_info(self) -> Optional[dict]:
        """Settings of the live engine, None when nothing is loaded"""
        with self._lock:
            engine = self._engine
            if engine is None:
                return None
            return {
                "target_size": engine.target_size,
                "use_fp16": engine.use_fp16,
                "use_gpu": engine.use_gpu,
                "dictionary_size": len(engine.dictionary),
            }

    def initialize(
        self,
        asset_source: Optional[AssetSource],
        use_fp16: Optional[bool] = None,
        use_gpu: Optional[bool] = None,
    ) -> bool:
        """
        Build and load a fresh engine, replacing any previous one

        Args:
            asset_source: Where the four model files live
            use_fp16: Reduced precision (config value if None)
            use_gpu: GPU execution (config value, else "GPU available")

        Returns:
            True when the new engine is live; False leaves the manager empty
        """
        with self._lock:
            if self._engine is not None:
                logger.info("Discarding previous OCR engine")
                self._engine = None

            if asset_source is None:
                logger.warning("OCR initialize called without an asset source")
                return False

            self.accelerator.create()
            gpu_providers = self.accelerator.gpu_providers

            if use_fp16 is None:
                use_fp16 = self.config.use_fp16
            if use_gpu is None:
                use_gpu = self.config.use_gpu
            if use_gpu is None:
                use_gpu = self.accelerator.gpu_count > 0

            dictionary = self._resolve_dictionary(asset_source)
            if dictionary is None:
                return False

            engine = OcrPipeline(
                dictionary,
                config=self.config,
                model_factory=self.model_factory,
                gpu_providers=gpu_providers,
            )

            status = engine.load(
                asset_source,
                DET_MODEL_FILES,
                REC_MODEL_FILES,
                use_fp16=use_fp16,
                use_gpu=use_gpu,
            )
            if status != LoadStatus.OK:
                logger.error(
                    "OCR engine load failed: %s (assets: %r)",
                    LoadStatus(status).name,
                    asset_source,
                )
                return False

            engine.set_target_size(self.config.target_size)
            self._engine = engine
            self.dictionary = dictionary

            logger.info("OCR engine ready: %r", engine)
            return True

    def _resolve_dictionary(self, asset_source: AssetSource) -> Optional[CharacterDictionary]:
        """Symbol table for a new engine, None when the stored table is unreadable"""
        if self._dictionary_pinned:
            return self.dictionary

        try:
            if not asset_source.exists(DICT_ASSET):
                return CharacterDictionary.default()
            return CharacterDictionary.from_file(asset_source.resolve(DICT_ASSET))
        except Exception:
            logger.exception("Failed to read %s from %r", DICT_ASSET, asset_source)
            return None

    def detect(self, bitmap: Bitmap, use_gpu: bool = False) -> Optional[List[OcrObject]]:
        """
        Run OCR on one bitmap

        Args:
            bitmap: RGBA_8888 host bitmap
            use_gpu: Accelerator hint; the engine keeps the device chosen
                at initialize()

        Returns:
            One OcrObject per detected region, or None when the bitmap is
            rejected, no engine is loaded, or the backend fails
        """
        try:
            image = to_inference_image(bitmap)
        except ImageFormatError as e:
            logger.warning("Rejected bitmap: %s", e)
            return None

        with self._lock:
            engine = self._engine
            if engine is None:
                logger.warning("OCR detect called before a successful initialize")
                return None

            if use_gpu and not engine.use_gpu:
                logger.debug("GPU hint ignored, engine was loaded for CPU")

            try:
                results = engine.detect_and_recognize(image)
            except Exception:
                logger.exception("OCR inference failed")
                return None
            dictionary = engine.dictionary

        return [OcrObject.from_result(result, dictionary) for result in results]

    def unload(self) -> None:
        """Drop the live engine; no-op when nothing is loaded"""
        with self._lock:
            if self._engine is not None:
                self._engine = None
                logger.info("OCR engine unloaded")

    def shutdown(self) -> None:
        """Drop the engine and release the accelerator context; idempotent"""
        with self._lock:
            self._engine = None
            self.accelerator.destroy()


_default_manager: Optional[EngineManager] = None
_default_lock = threading.Lock()


def default_manager() -> EngineManager:
    """
    Process-wide manager

    Created on first use with OcrConfig.from_env() and the process
    accelerator context; shut down automatically at interpreter exit.
    """
    global _default_manager

    with _default_lock:
        if _default_manager is None:
            _default_manager = EngineManager(
                config=OcrConfig.from_env(),
                accelerator=process_accelerator(),
            )
            atexit.register(_default_manager.shutdown)
        return _default_manager
