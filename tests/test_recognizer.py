import json

import numpy as np

from conftest import FakeDetModel, FakeModelFactory, FakeRecModel, to_rgba, word_image
from ppocr_pipeline.assets import REQUIRED_ASSETS, DirectoryAssetSource, missing_assets
from ppocr_pipeline.backend import AcceleratorContext
from ppocr_pipeline.engine import EngineManager, OcrObject
from ppocr_pipeline.image_adapter import Bitmap
from ppocr_pipeline.recognizer import PPOcrRecognizer, build_result


def _obj(left, top, label, prob=0.9, width=50, height=20):
    right, bottom = left + width, top + height
    return OcrObject(
        x0=left, y0=top,
        x1=right, y1=top,
        x2=right, y2=bottom,
        x3=left, y3=bottom,
        label=label,
        prob=prob,
    )


def _recognizer(factory, model_dir):
    manager = EngineManager(
        model_factory=factory,
        accelerator=AcceleratorContext(provider_lister=lambda: ["CPUExecutionProvider"]),
    )
    return PPOcrRecognizer(DirectoryAssetSource(model_dir), manager=manager), manager


def test_build_result_sorts_and_filters_blank_labels():
    objects = [
        _obj(10, 50, "second"),
        _obj(100, 10, "right"),
        _obj(10, 10, "left"),
        _obj(10, 90, "   "),
    ]

    result = build_result(objects)

    assert [line.text for line in result.lines] == ["left", "right", "second"]
    assert result.text == "left\nright\nsecond"


def test_build_result_trims_labels():
    result = build_result([_obj(0, 0, "  hi  ")])

    assert result.text == "hi"
    assert result.lines[0].text == "hi"


def test_build_result_none_when_nothing_survives():
    assert build_result([]) is None
    assert build_result([_obj(0, 0, "")]) is None


def test_json_payload_shape():
    result = build_result([_obj(10, 20, "Total", prob=0.75)])

    payload = json.loads(result.to_json())

    assert payload["text"] == "Total"
    line = payload["lines"][0]
    assert line["text"] == "Total"
    assert line["prob"] == 0.75
    assert line["quad"][0] == {"x": 10, "y": 20}
    assert len(line["quad"]) == 4
    assert line["bbox"] == {"left": 10, "top": 20, "right": 60, "bottom": 40}


def test_missing_assets_reports_absent_and_empty(tmp_path):
    (tmp_path / REQUIRED_ASSETS[0]).write_bytes(b"x")
    (tmp_path / REQUIRED_ASSETS[1]).write_bytes(b"")

    missing = missing_assets(DirectoryAssetSource(tmp_path))

    assert missing == list(REQUIRED_ASSETS[1:])


def test_warm_up_skips_init_when_assets_missing(fake_factory, tmp_path):
    recognizer, manager = _recognizer(fake_factory, tmp_path)

    assert recognizer.warm_up() is False
    assert fake_factory.calls == []
    assert not manager.is_loaded


def test_warm_up_initializes_once(fake_factory, model_dir):
    recognizer, manager = _recognizer(fake_factory, model_dir)

    assert recognizer.warm_up()
    assert recognizer.warm_up()

    assert manager.is_loaded
    assert len(fake_factory.calls) == 2


def test_recognize_returns_text(fake_factory, model_dir):
    recognizer, _ = _recognizer(fake_factory, model_dir)

    text = recognizer.recognize(Bitmap.from_array(to_rgba(word_image("HELLO"))))

    assert text == "HELLO"


def test_recognize_detailed_lines(dictionary, model_dir):
    factory = FakeModelFactory(
        det_model=FakeDetModel(),
        rec_model=FakeRecModel(dictionary, texts=("HELLO", "WORLD")),
    )
    recognizer, _ = _recognizer(factory, model_dir)

    pixels = np.full((320, 640, 3), 255, dtype=np.uint8)
    pixels[:160] = word_image("HELLO")
    pixels[160:] = word_image("WORLD", origin=(40, 90))

    result = recognizer.recognize_detailed(Bitmap.from_array(to_rgba(pixels)))

    assert result.text == "HELLO\nWORLD"
    first = result.lines[0]
    assert first.left <= first.right and first.top <= first.bottom
    assert first.bottom <= result.lines[1].bottom


def test_recognize_blank_image_is_none(fake_factory, model_dir):
    recognizer, _ = _recognizer(fake_factory, model_dir)

    blank = np.full((100, 200, 4), 255, dtype=np.uint8)

    assert recognizer.recognize(Bitmap.from_array(blank)) is None


def test_recognize_reinitializes_after_unload(fake_factory, model_dir):
    recognizer, manager = _recognizer(fake_factory, model_dir)
    recognizer.warm_up()
    manager.unload()

    assert recognizer.recognize(Bitmap.from_array(to_rgba(word_image()))) == "HELLO"
    assert len(fake_factory.calls) == 4
