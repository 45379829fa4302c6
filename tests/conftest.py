import threading
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

from ppocr_pipeline.assets import REQUIRED_ASSETS
from ppocr_pipeline.dictionary import CharacterDictionary
from ppocr_pipeline.errors import InferenceError


class CallTracker:
    """Counts overlapping run() calls across every fake model"""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._lock = threading.Lock()

    def __enter__(self):
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        if self.delay:
            time.sleep(self.delay)
        return self

    def __exit__(self, *exc):
        with self._lock:
            self.active -= 1
        return False


class FakeDetModel:
    """
    Marks dark pixels as text

    Dark pixels (normalized channel mean below -1.0) are joined
    horizontally so a printed word becomes one blob, and each blob is
    filled to its bounding rectangle with `prob`. Zero padding counts
    as background.
    """

    output_shape = (1, 1, None, None)

    def __init__(self, prob: float = 0.9, tracker: CallTracker = None, fail: bool = False, error=None):
        self.prob = prob
        self.tracker = tracker or CallTracker()
        self.fail = fail
        self.error = error
        self.inputs = []

    def run(self, tensor):
        with self.tracker:
            self.inputs.append(tensor.shape)
            if self.fail:
                raise self.error or InferenceError("detector exploded")

            dark = (tensor[0].mean(axis=0) < -1.0).astype(np.uint8)
            joined = cv2.dilate(dark, np.ones((1, 25), dtype=np.uint8))

            prob_map = np.zeros(dark.shape, dtype=np.float32)
            count, _, stats, _ = cv2.connectedComponentsWithStats(joined)
            for label in range(1, count):
                x, y, w, h = stats[label, :4]
                prob_map[y:y + h, x:x + w] = self.prob

            return prob_map[np.newaxis, np.newaxis]


class FakeRotatedDetModel:
    """Paints one tilted rectangle, in tensor coordinates, with `prob`"""

    output_shape = (1, 1, None, None)

    def __init__(self, center=(320, 240), size=(300, 60), angle=-20.0, prob: float = 0.9):
        self.rect = (center, size, angle)
        self.prob = prob
        self.inputs = []

    def run(self, tensor):
        self.inputs.append(tensor.shape)
        prob_map = np.zeros(tensor.shape[2:], dtype=np.float32)
        corners = cv2.boxPoints(self.rect).round().astype(np.int32)
        cv2.fillPoly(prob_map, [corners], self.prob)
        return prob_map[np.newaxis, np.newaxis]


class FakeRecModel:
    """
    Emits a CTC frame sequence spelling the next text in `texts`

    Every symbol frame is followed by a blank frame, so repeated
    letters survive the collapse step.
    """

    def __init__(
        self,
        dictionary: CharacterDictionary,
        texts=("HELLO",),
        prob: float = 0.9,
        tracker: CallTracker = None,
        fail_calls=(),
        num_classes: int = None,
        error=None,
    ):
        self.dictionary = dictionary
        self.texts = list(texts)
        self.prob = prob
        self.tracker = tracker or CallTracker()
        self.fail_calls = set(fail_calls)
        self.error = error
        self.num_classes = num_classes or dictionary.num_classes
        self.output_shape = (1, None, self.num_classes)
        self.index = {dictionary[i]: i for i in range(len(dictionary))}
        self.calls = 0
        self.inputs = []

    def run(self, tensor):
        with self.tracker:
            call = self.calls
            self.calls += 1
            self.inputs.append(tensor.shape)
            if call in self.fail_calls:
                raise self.error or InferenceError("recognizer exploded")

            text = self.texts[call % len(self.texts)]
            return self.frames(text)[np.newaxis]

    def frames(self, text):
        rest = (1.0 - self.prob) / (self.num_classes - 1)
        rows = []
        for symbol in text:
            rows.append(self.index[symbol] + 1)
            rows.append(0)
        if not rows:
            rows.append(0)

        out = np.full((len(rows), self.num_classes), rest, dtype=np.float32)
        out[np.arange(len(rows)), rows] = self.prob
        return out


class FakeModelFactory:
    """Hands out the fake det/rec models by graph filename"""

    def __init__(self, det_model=None, rec_model=None, error=None):
        self.det_model = det_model
        self.rec_model = rec_model
        self.error = error
        self.calls = []

    def __call__(self, graph_path, weights_path, **kwargs):
        self.calls.append((Path(graph_path).name, Path(weights_path).name, kwargs))
        if self.error is not None:
            raise self.error
        if "_det" in Path(graph_path).name:
            return self.det_model
        return self.rec_model


@pytest.fixture
def dictionary():
    return CharacterDictionary.default()


@pytest.fixture
def tracker():
    return CallTracker()


@pytest.fixture
def fake_factory(dictionary, tracker):
    return FakeModelFactory(
        det_model=FakeDetModel(tracker=tracker),
        rec_model=FakeRecModel(dictionary, tracker=tracker),
    )


def write_assets(root: Path, names=REQUIRED_ASSETS):
    root.mkdir(parents=True, exist_ok=True)
    for name in names:
        (root / name).write_bytes(b"\x08\x01")
    return root


@pytest.fixture
def model_dir(tmp_path):
    return write_assets(tmp_path / "models")


def word_image(text="HELLO", width=640, height=160, origin=(40, 100)):
    """White RGB image with one printed word"""
    image = np.full((height, width, 3), 255, dtype=np.uint8)
    cv2.putText(image, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 2.0, (0, 0, 0), 4)
    return image


def word_bounds(image):
    """(left, top, right, bottom) of the dark pixels"""
    ys, xs = np.where(image[:, :, 0] < 128)
    return xs.min(), ys.min(), xs.max(), ys.max()


def to_rgba(image):
    alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([image, alpha], axis=2)
