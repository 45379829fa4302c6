"""
OCR Pipeline Orchestrator

Owns the detection and recognition models of one engine instance:

1. load(): resolve the graph/weights files of both models, build the
   backend sessions and check the recognizer against the dictionary
2. detect_and_recognize(): one detection pass, then one recognition
   pass per region in detection order

Not thread-safe on its own; EngineManager serializes access.
"""

import logging
import math
from typing import List, Optional, Sequence

from .assets import DET_MODEL_FILES, REC_MODEL_FILES, AssetSource, ModelFiles
from .backend import InferenceModel, ModelFactory, fp16_active, load_onnx_model
from .config import OcrConfig
from .detection import TextDetector
from .dictionary import CharacterDictionary
from .errors import EngineNotLoadedError, LoadStatus, ModelLoadError
from .image_adapter import Image
from .recognition import RecognitionResult, TextRecognizer, expected_num_classes

logger = logging.getLogger(__name__)

STRIDE = 32


class OcrPipeline:
    """
    Two-stage detect → recognize engine

    Example:
        >>> pipeline = OcrPipeline(CharacterDictionary.default())
        >>> status = pipeline.load(DirectoryAssetSource("models"))
        >>> results = pipeline.detect_and_recognize(image)
    """

    def __init__(
        self,
        dictionary: CharacterDictionary,
        config: Optional[OcrConfig] = None,
        model_factory: ModelFactory = load_onnx_model,
        gpu_providers: Sequence[str] = (),
    ):
        """
        Initialize an unloaded pipeline

        Args:
            dictionary: Symbol table the recognizer was trained with
            config: Pipeline configuration (defaults if None)
            model_factory: Builds a model from (graph_path, weights_path, ...)
            gpu_providers: GPU execution providers of the accelerator context
        """
        self.dictionary = dictionary
        self.config = config or OcrConfig()
        self.model_factory = model_factory
        self.gpu_providers = tuple(gpu_providers)

        self.loaded = False
        self.target_size = self.config.target_size
        self.use_fp16 = self.config.use_fp16
        self.use_gpu = False

        self.detector: Optional[TextDetector] = None
        self.recognizer: Optional[TextRecognizer] = None

    def __repr__(self) -> str:
        return (
            f"OcrPipeline(loaded={self.loaded}, target_size={self.target_size}, "
            f"use_fp16={self.use_fp16}, use_gpu={self.use_gpu})"
        )

    # ========================================
    # LOADING
    # ========================================

    def load(
        self,
        assets: AssetSource,
        det_files: ModelFiles = DET_MODEL_FILES,
        rec_files: ModelFiles = REC_MODEL_FILES,
        use_fp16: bool = True,
        use_gpu: bool = False,
    ) -> int:
        """
        Load detector and recognizer

        Args:
            assets: Source of the model files
            det_files: Detection graph + weights names
            rec_files: Recognition graph + weights names
            use_fp16: Reduced precision where supported
            use_gpu: Prefer GPU execution providers

        Returns:
            LoadStatus.OK (0) on success, a nonzero LoadStatus otherwise
        """
        self.loaded = False
        self.detector = None
        self.recognizer = None

        use_gpu = bool(use_gpu and self.gpu_providers)

        try:
            det_model = self._load_model(assets, det_files, use_fp16, use_gpu)
            rec_model = self._load_model(assets, rec_files, use_fp16, use_gpu)
            self._check_dictionary(rec_model)
        except ModelLoadError as e:
            logger.warning("Model load failed (%s): %s", e.status.name, e)
            return int(e.status)
        except Exception:
            logger.exception("Model load failed (MALFORMED_MODEL)")
            return int(LoadStatus.MALFORMED_MODEL)

        cfg = self.config
        self.detector = TextDetector(
            det_model,
            target_size=self.target_size,
            det_db_thresh=cfg.det_db_thresh,
            det_db_box_thresh=cfg.det_db_box_thresh,
            unclip_ratio=cfg.det_unclip_ratio,
            min_size=cfg.det_min_size,
            max_candidates=cfg.det_max_candidates,
        )
        self.recognizer = TextRecognizer(
            rec_model,
            image_height=cfg.rec_image_height,
            max_width=cfg.rec_max_width,
        )

        self.use_fp16 = fp16_active(det_model, use_fp16, use_gpu, self.gpu_providers)
        self.use_gpu = use_gpu
        self.loaded = True

        logger.info("Pipeline loaded (fp16=%s, gpu=%s)", self.use_fp16, use_gpu)
        return int(LoadStatus.OK)

    def _load_model(
        self,
        assets: AssetSource,
        files: ModelFiles,
        use_fp16: bool,
        use_gpu: bool,
    ) -> InferenceModel:
        graph_path = assets.resolve(files.graph)
        weights_path = assets.resolve(files.weights)

        return self.model_factory(
            graph_path,
            weights_path,
            use_fp16=use_fp16,
            use_gpu=use_gpu,
            num_threads=self.config.num_threads,
            gpu_providers=self.gpu_providers,
        )

    def _check_dictionary(self, rec_model: InferenceModel) -> None:
        num_classes = expected_num_classes(rec_model)
        if num_classes is None:
            logger.debug("Recognizer class count is dynamic, skipping dictionary check")
            return

        if num_classes != self.dictionary.num_classes:
            raise ModelLoadError(
                f"Recognizer emits {num_classes} classes, dictionary has "
                f"{len(self.dictionary)} symbols (+1 blank)",
                LoadStatus.DICTIONARY_MISMATCH,
            )

    # ========================================
    # INFERENCE
    # ========================================

    def set_target_size(self, target_size: int) -> None:
        """Detection resize target, rounded up to a multiple of 32"""
        if target_size <= 0:
            raise ValueError(f"target_size must be positive, got {target_size}")

        self.target_size = int(math.ceil(target_size / STRIDE) * STRIDE)
        if self.detector is not None:
            self.detector.target_size = self.target_size

    def detect_and_recognize(self, image: Image) -> List[RecognitionResult]:
        """
        Detect all text regions, then recognize each one

        Args:
            image: RGB image

        Returns:
            One RecognitionResult per detected region, in detection order

        Raises:
            EngineNotLoadedError: load() has not succeeded
            InferenceError: Detection forward pass failed
        """
        if not self.loaded:
            raise EngineNotLoadedError("Pipeline is not loaded")

        regions = self.detector.detect(image)

        results = []
        for index, region in enumerate(regions):
            try:
                result = self.recognizer.recognize(image, region)
            except Exception as e:
                logger.warning("Recognition failed for region %d: %s", index, e)
                result = RecognitionResult.empty(region)
            results.append(result)

        return results
