import argparse

import cv2

import run_ocr
from conftest import word_image, write_assets


def _args(image, model_dir, **overrides):
    values = dict(
        image=str(image),
        model_dir=str(model_dir),
        dict=None,
        json=False,
        overlay=None,
        cpu=True,
        target_size=None,
        verbose=False,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def test_missing_dictionary_file_exits_with_error(tmp_path, caplog):
    image = tmp_path / "word.png"
    cv2.imwrite(str(image), word_image())
    model_dir = write_assets(tmp_path / "models")

    status = run_ocr.run(_args(image, model_dir, dict=str(tmp_path / "missing.txt")))

    assert status == 1
    assert "Cannot load dictionary" in caplog.text


def test_unreadable_image_exits_with_error(tmp_path):
    status = run_ocr.run(_args(tmp_path / "nope.png", tmp_path))

    assert status == 1
