#!/usr/bin/env python3
"""
Pre-fetch the classifier weights so the first scan works offline.
Downloads MobileNetV2 ImageNet weights and the ImageNet class index into the
Keras cache, then runs one test prediction.
"""

import os
import sys

import numpy as np

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.dirname(SCRIPT_DIR))

from wastescan.config import load_config  # noqa: E402
from wastescan.models.classifier import MobileNetClassifier  # noqa: E402


def download_model(config):
    """Build the classifier once, which fills the Keras weight cache"""
    print("📥 Downloading MobileNetV2 ImageNet weights...")
    classifier = MobileNetClassifier.load(config)
    print(f"✅ Model ready. Input shape: {classifier.model.input_shape}")
    return classifier


def test_model(classifier):
    """Run a prediction on a blank frame; also fetches the class index"""
    try:
        print("🧪 Testing model...")
        frame = np.full((480, 640, 3), 127, dtype=np.uint8)
        predictions = classifier.classify(frame)
        for prediction in predictions:
            print(f"   {prediction.label}: {prediction.probability:.3f}")
        print("✅ Test prediction successful")
        return True
    except Exception as e:
        print(f"❌ Model test failed: {e}")
        return False


if __name__ == "__main__":
    print("🚀 Waste Scan - Model Downloader")
    print("=" * 50)

    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    config = load_config(config_path)

    try:
        classifier = download_model(config.get('model', {}))
    except Exception as e:
        print(f"❌ Download failed: {e}")
        print("Check your internet connection and try again.")
        sys.exit(1)

    sys.exit(0 if test_model(classifier) else 1)
