"""
Inference Backend (ONNX Runtime)

The numeric backend is a black box to the rest of the pipeline: a model
is loaded from a graph file + weights file and exposes run(tensor).

Also holds the process-wide accelerator context, which discovers GPU
execution providers once and is torn down once at final shutdown.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence, Tuple

import numpy as np
import onnxruntime as ort

from .errors import InferenceError, LoadStatus, ModelLoadError

logger = logging.getLogger(__name__)

# Preference order when more than one accelerator is available
GPU_PROVIDERS: Tuple[str, ...] = (
    "TensorrtExecutionProvider",
    "CUDAExecutionProvider",
    "ROCMExecutionProvider",
    "DmlExecutionProvider",
    "CoreMLExecutionProvider",
)
CPU_PROVIDER = "CPUExecutionProvider"


class InferenceModel(Protocol):
    """Loaded model: one float tensor in, first output tensor out"""

    output_shape: Tuple[Optional[int], ...]

    def run(self, tensor: np.ndarray) -> np.ndarray:
        ...


ModelFactory = Callable[..., InferenceModel]


class AcceleratorContext:
    """
    Process-wide GPU context

    create() discovers the GPU execution providers the installed
    onnxruntime build offers; destroy() releases the context. Each
    happens at most once per context object, however many times engines
    are initialized or shut down.
    """

    def __init__(
        self,
        provider_lister: Callable[[], Sequence[str]] = ort.get_available_providers,
    ):
        self._provider_lister = provider_lister
        self._lock = threading.Lock()
        self._gpu_providers: Tuple[str, ...] = ()
        self.created = False
        self.destroyed = False

    def create(self) -> bool:
        """Create the context on first call; later calls are no-ops"""
        with self._lock:
            if self.destroyed:
                logger.warning("Accelerator context already destroyed; running on CPU")
                return False
            if self.created:
                return True

            available = set(self._provider_lister())
            self._gpu_providers = tuple(p for p in GPU_PROVIDERS if p in available)
            self.created = True
            logger.info(
                "Accelerator context created (gpu providers: %s)",
                ", ".join(self._gpu_providers) or "none",
            )
            return True

    def destroy(self) -> None:
        """Release the context; idempotent"""
        with self._lock:
            if not self.created or self.destroyed:
                return
            self._gpu_providers = ()
            self.destroyed = True
            logger.info("Accelerator context destroyed")

    @property
    def active(self) -> bool:
        return self.created and not self.destroyed

    @property
    def gpu_providers(self) -> Tuple[str, ...]:
        return self._gpu_providers if self.active else ()

    @property
    def gpu_count(self) -> int:
        return len(self.gpu_providers)


_process_accelerator = AcceleratorContext()


def process_accelerator() -> AcceleratorContext:
    """Accelerator context shared by the default engine manager"""
    return _process_accelerator


class OnnxModel:
    """
    ONNX Runtime session wrapper

    Inputs are cast to the dtype the graph declares, so fp16-exported
    models receive float16 tensors.
    """

    def __init__(self, session: "ort.InferenceSession"):
        self.session = session

        model_input = session.get_inputs()[0]
        self.input_name = model_input.name
        self.input_dtype = np.float16 if model_input.type == "tensor(float16)" else np.float32

        self.output_shape = tuple(
            dim if isinstance(dim, int) else None
            for dim in session.get_outputs()[0].shape
        )
        self.providers = tuple(session.get_providers())

    def run(self, tensor: np.ndarray) -> np.ndarray:
        """
        Forward pass

        Args:
            tensor: NCHW float tensor

        Returns:
            First model output as float32

        Raises:
            InferenceError: Backend rejected the input or failed
        """
        feed = {self.input_name: np.ascontiguousarray(tensor, dtype=self.input_dtype)}
        try:
            outputs = self.session.run(None, feed)
        except Exception as e:
            raise InferenceError(f"ONNX Runtime forward pass failed: {e}") from e
        return np.asarray(outputs[0], dtype=np.float32)


def select_providers(
    use_gpu: bool,
    use_fp16: bool,
    gpu_providers: Sequence[str] = (),
) -> list:
    """Execution provider list for a session, CPU always last"""
    providers: list = []
    if use_gpu:
        for name in gpu_providers:
            if name == "TensorrtExecutionProvider":
                providers.append((name, {"trt_fp16_enable": use_fp16}))
            else:
                providers.append(name)
    providers.append(CPU_PROVIDER)
    return providers


def fp16_active(
    model: InferenceModel,
    use_fp16: bool,
    use_gpu: bool,
    gpu_providers: Sequence[str] = (),
) -> bool:
    """
    Whether a loaded model actually runs in half precision

    True for graphs exported with float16 inputs, or when fp16 was
    requested and TensorRT (the only provider given an fp16 switch) is
    serving the session.
    """
    if getattr(model, "input_dtype", None) == np.float16:
        return True
    if not (use_fp16 and use_gpu):
        return False
    active = getattr(model, "providers", None) or gpu_providers
    return "TensorrtExecutionProvider" in active


def load_onnx_model(
    graph_path: Path,
    weights_path: Path,
    use_fp16: bool = True,
    use_gpu: bool = False,
    num_threads: int = 4,
    gpu_providers: Sequence[str] = (),
) -> OnnxModel:
    """
    Load an ONNX graph whose initializers live in an external weights file

    Args:
        graph_path: .onnx graph
        weights_path: External data file referenced by the graph
        use_fp16: Enable reduced precision where the provider supports it
        use_gpu: Try GPU execution providers first
        num_threads: Intra-op CPU threads
        gpu_providers: Available GPU providers in preference order

    Returns:
        OnnxModel

    Raises:
        ModelLoadError: Missing weights or graph rejected by the runtime
    """
    graph_path = Path(graph_path)
    weights_path = Path(weights_path)

    if not weights_path.is_file():
        raise ModelLoadError(f"Missing weights file: {weights_path}", LoadStatus.MISSING_ASSET)
    if weights_path.parent.resolve() != graph_path.parent.resolve():
        # ONNX Runtime resolves external data next to the graph
        raise ModelLoadError(
            f"Weights {weights_path.name} must sit next to graph {graph_path}",
            LoadStatus.MISSING_ASSET,
        )

    sess_options = ort.SessionOptions()
    sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    sess_options.intra_op_num_threads = num_threads

    providers = select_providers(use_gpu, use_fp16, gpu_providers)

    try:
        session = ort.InferenceSession(
            str(graph_path),
            sess_options=sess_options,
            providers=providers,
        )
    except Exception as e:
        raise ModelLoadError(f"Failed to load {graph_path.name}: {e}") from e

    model = OnnxModel(session)
    logger.info("Loaded %s on %s", graph_path.name, ", ".join(model.providers))
    return model
