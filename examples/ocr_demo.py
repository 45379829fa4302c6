"""
OCR Pipeline Demo - Stage by Stage

Demonstrates the pipeline stages on one image:
1. Bitmap → RGB image conversion
2. Engine initialization (asset check, model load)
3. Detection + recognition through the engine manager
4. Reading-order line records and JSON output
5. Overlay rendering
"""

import sys
import time
from pathlib import Path

sys.path.append(str(Path(__file__).parent.parent))

from ppocr_pipeline import (
    REQUIRED_ASSETS,
    Bitmap,
    DirectoryAssetSource,
    EngineManager,
    OcrConfig,
    PPOcrRecognizer,
    draw_overlay,
    to_inference_image,
)
from ppocr_pipeline.assets import missing_assets


def main():
    """Run the OCR demo with all stages"""
    print("=" * 70)
    print("PP-OCRv5 Pipeline Demo")
    print("=" * 70)

    image_path = "data/images/invoice_001.jpg"
    config = OcrConfig.from_env()
    model_dir = config.model_dir or Path("models")

    if not Path(image_path).exists():
        print(f"Error: Sample image not found at {image_path}")
        print("Please add sample images to data/images/")
        return

    # ========================================
    # STEP 1: Bitmap conversion
    # ========================================
    print("\n" + "=" * 70)
    print("Step 1: Bitmap → RGB Image")
    print("=" * 70)

    bitmap = Bitmap.from_file(image_path)
    image = to_inference_image(bitmap)
    print(f"\nLoaded image: {image_path}")
    print(f"  Format: {bitmap.format.value}")
    print(f"  Dimensions: {image.width}x{image.height}")

    # ========================================
    # STEP 2: Engine initialization
    # ========================================
    print("\n" + "=" * 70)
    print("Step 2: Engine Initialization")
    print("=" * 70)

    assets = DirectoryAssetSource(model_dir)
    missing = missing_assets(assets)
    for name in REQUIRED_ASSETS:
        status = "missing" if name in missing else "ok"
        print(f"  {name}: {status}")

    if missing:
        print(f"\n⚠ Place the model files in {model_dir}/ and re-run")
        return

    manager = EngineManager(config=config)
    start = time.time()
    if not manager.initialize(assets):
        print("\n✗ Engine initialization failed (see log)")
        return
    print(f"\n✓ Engine ready in {(time.time() - start) * 1000:.0f} ms")
    print(f"  {manager.engine_info}")

    try:
        # ========================================
        # STEP 3: Detection + recognition
        # ========================================
        print("\n" + "=" * 70)
        print("Step 3: Detect & Recognize")
        print("=" * 70)

        start = time.time()
        objects = manager.detect(bitmap)
        elapsed = time.time() - start

        if objects is None:
            print("\n✗ OCR call failed")
            return

        print(f"\nRegions: {len(objects)} ({elapsed * 1000:.0f} ms)")
        for obj in objects[:10]:
            print(f"  [{obj.prob:.2f}] {obj.label!r}")

        # ========================================
        # STEP 4: Line records
        # ========================================
        print("\n" + "=" * 70)
        print("Step 4: Reading Order & JSON")
        print("=" * 70)

        recognizer = PPOcrRecognizer(assets, manager=manager)
        result = recognizer.recognize_detailed(bitmap)

        if result is None:
            print("\nNo text found")
            return

        print(f"\nText:\n{result.text}")
        print(f"\nJSON (first line):\n{result.lines[0].to_dict()}")

        # ========================================
        # STEP 5: Overlay
        # ========================================
        print("\n" + "=" * 70)
        print("Step 5: Overlay")
        print("=" * 70)

        output_path = "ocr_overlay.png"
        draw_overlay(image.pixels, result.lines, output_path)
        print(f"\n✓ Overlay saved to: {output_path}")
    finally:
        manager.shutdown()


if __name__ == "__main__":
    main()
