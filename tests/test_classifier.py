"""Tests for the MobileNet adapter, with the Keras pieces replaced."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from wastescan.models.classifier import MobileNetClassifier, Prediction


def make_classifier(rows, top_k=3):
    model = MagicMock()
    model.predict.return_value = np.zeros((1, 1000), dtype=np.float32)
    decode = MagicMock(return_value=rows)
    classifier = MobileNetClassifier(model, lambda batch: batch / 127.5 - 1.0, decode, top_k=top_k)
    return classifier, model, decode


def test_labels_are_readable_and_ranked():
    classifier, _, decode = make_classifier([[
        ("n04557648", "water_bottle", 0.3),
        ("n03983396", "pop_bottle", 0.6),
    ]])

    predictions = classifier.classify(np.zeros((480, 640, 3), dtype=np.uint8))

    assert predictions == [Prediction("pop bottle", 0.6), Prediction("water bottle", 0.3)]
    assert decode.call_args.kwargs["top"] == 3


def test_input_is_resized_and_batched():
    classifier, model, _ = make_classifier([[("n1", "banana", 0.9)]])

    classifier.classify(np.zeros((480, 640, 3), dtype=np.uint8))

    batch = model.predict.call_args.args[0]
    assert batch.shape == (1, 224, 224, 3)
    assert batch.dtype == np.float32


@pytest.mark.parametrize("image", [
    np.zeros((50, 60), dtype=np.uint8),
    np.zeros((50, 60, 4), dtype=np.uint8),
])
def test_grayscale_and_alpha_frames(image):
    classifier, model, _ = make_classifier([[("n1", "banana", 0.9)]])
    classifier.classify(image)
    assert model.predict.call_args.args[0].shape == (1, 224, 224, 3)


def test_no_rows_gives_empty_list():
    classifier, _, _ = make_classifier([[]])
    assert classifier.classify(np.zeros((10, 10, 3), dtype=np.uint8)) == []


def test_empty_image_is_rejected():
    classifier, _, _ = make_classifier([[("n1", "banana", 0.9)]])
    with pytest.raises(ValueError):
        classifier.classify(np.zeros((0, 0, 3), dtype=np.uint8))
