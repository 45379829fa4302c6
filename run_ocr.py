"""
OCR Runner Script

Runs the PP-OCRv5 pipeline on one image file.

Usage:
    # Plain text
    python run_ocr.py receipt.png --model-dir models

    # JSON with quads and bounds, plus an overlay image
    python run_ocr.py receipt.png --json --overlay receipt_ocr.png

    # Force CPU, larger detection input
    python run_ocr.py receipt.png --cpu --target-size 960

Settings not given on the command line come from PPOCR_* environment
variables (a .env file is loaded first).
"""

import argparse
import dataclasses
import logging
import sys
import time
from pathlib import Path

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from ppocr_pipeline import (
    Bitmap,
    DirectoryAssetSource,
    EngineManager,
    OcrConfig,
    PPOcrRecognizer,
    draw_overlay,
    to_inference_image,
)
from ppocr_pipeline.backend import process_accelerator

logger = logging.getLogger("run_ocr")

DEFAULT_MODEL_DIR = Path("models")


def build_config(args: argparse.Namespace) -> OcrConfig:
    """Environment config with command-line overrides applied"""
    config = OcrConfig.from_env()

    overrides = {}
    if args.model_dir:
        overrides["model_dir"] = Path(args.model_dir)
    elif config.model_dir is None:
        overrides["model_dir"] = DEFAULT_MODEL_DIR
    if args.dict:
        overrides["dict_path"] = Path(args.dict)
    if args.target_size:
        overrides["target_size"] = args.target_size
    if args.cpu:
        overrides["use_gpu"] = False

    return dataclasses.replace(config, **overrides)


def run(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        bitmap = Bitmap.from_file(args.image)
    except ValueError as e:
        logger.error("%s", e)
        return 1

    try:
        manager = EngineManager(config=config, accelerator=process_accelerator())
    except (OSError, ValueError) as e:
        logger.error("Cannot load dictionary %s: %s", config.dict_path, e)
        return 1
    recognizer = PPOcrRecognizer(DirectoryAssetSource(config.model_dir), manager=manager)

    try:
        if not recognizer.warm_up():
            logger.error("OCR engine could not be initialized from %s", config.model_dir)
            return 1

        start = time.time()
        result = recognizer.recognize_detailed(bitmap)
        elapsed = time.time() - start
        logger.info("OCR finished in %.0f ms", elapsed * 1000)

        if result is None:
            logger.warning("No text found in %s", args.image)
            return 1

        if args.json:
            print(result.to_json(indent=2))
        else:
            print(result.text)

        if args.overlay:
            draw_overlay(to_inference_image(bitmap).pixels, result.lines, args.overlay)
            logger.info("Overlay saved to %s", args.overlay)

        return 0
    finally:
        manager.shutdown()


def main():
    parser = argparse.ArgumentParser(
        description="PP-OCRv5 text detection and recognition",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("image", help="Image file to read")
    parser.add_argument(
        "--model-dir",
        help=f"Directory with the model files (default: $PPOCR_MODEL_DIR or {DEFAULT_MODEL_DIR})",
    )
    parser.add_argument(
        "--dict",
        help="Character dictionary file (default: ppocrv5_dict.txt in the model dir, else ASCII)",
    )
    parser.add_argument("--json", action="store_true", help="Print lines with quads as JSON")
    parser.add_argument("--overlay", metavar="OUT", help="Save an image with boxes and captions")
    parser.add_argument("--cpu", action="store_true", help="Disable GPU execution providers")
    parser.add_argument("--target-size", type=int, help="Detection resize target (longer side)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    sys.exit(run(args))


if __name__ == "__main__":
    main()
