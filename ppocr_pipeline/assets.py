"""
Model Assets

Fixed well-known model filenames and the asset source interface the
engine loads them from. Each model is a graph file plus an external
weights file (ONNX external-data layout).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Tuple, Union

from .errors import LoadStatus, ModelLoadError


@dataclass(frozen=True)
class ModelFiles:
    """Graph + weights filename pair of one model"""
    graph: str
    weights: str

    @property
    def names(self) -> Tuple[str, str]:
        return self.graph, self.weights


DET_MODEL_FILES = ModelFiles(
    graph="PP_OCRv5_mobile_det.onnx",
    weights="PP_OCRv5_mobile_det.onnx.data",
)
REC_MODEL_FILES = ModelFiles(
    graph="PP_OCRv5_mobile_rec.onnx",
    weights="PP_OCRv5_mobile_rec.onnx.data",
)
REQUIRED_ASSETS: Tuple[str, ...] = DET_MODEL_FILES.names + REC_MODEL_FILES.names

# Optional: recognizer symbol table stored with the models
DICT_ASSET = "ppocrv5_dict.txt"


class AssetSource(Protocol):
    """Where model files come from (bundle, directory, cache...)"""

    def exists(self, name: str) -> bool:
        ...

    def size(self, name: str) -> int:
        ...

    def resolve(self, name: str) -> Path:
        ...


class DirectoryAssetSource:
    """Assets stored as plain files in one directory"""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"DirectoryAssetSource({str(self.root)!r})"

    def _path(self, name: str) -> Path:
        # Asset names are bare filenames; never escape the root
        if Path(name).name != name:
            raise ValueError(f"Asset name must be a bare filename: {name!r}")
        return self.root / name

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def size(self, name: str) -> int:
        path = self._path(name)
        return path.stat().st_size if path.is_file() else 0

    def resolve(self, name: str) -> Path:
        """
        Local path of an asset

        Raises:
            ModelLoadError: Asset does not exist
        """
        path = self._path(name)
        if not path.is_file():
            raise ModelLoadError(f"Missing model asset: {path}", LoadStatus.MISSING_ASSET)
        return path


def missing_assets(source: AssetSource, names: Tuple[str, ...] = REQUIRED_ASSETS) -> list:
    """Names that are absent or empty in `source`"""
    return [name for name in names if not source.exists(name) or source.size(name) <= 0]
