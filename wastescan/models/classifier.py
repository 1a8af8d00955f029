"""
General-purpose image classifier
MobileNetV2 with ImageNet weights, run locally through TensorFlow/Keras
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np


@dataclass(frozen=True)
class Prediction:
    """One ranked classifier output"""

    label: str
    probability: float


class MobileNetClassifier:
    """
    Thin adapter around a Keras ImageNet classifier

    Exposes `classify(image) -> List[Prediction]` sorted by descending
    probability. Frames are expected in OpenCV's BGR channel order.
    """

    def __init__(self, model: Any, preprocess_fn, decode_fn,
                 input_size: Tuple[int, int] = (224, 224), top_k: int = 3):
        """
        Args:
            model: Loaded Keras model
            preprocess_fn: Model-specific input normalization
            decode_fn: Maps raw scores to (class_id, name, probability) rows
            input_size: (width, height) expected by the network
            top_k: Number of ranked predictions to return
        """
        self.model = model
        self.preprocess_fn = preprocess_fn
        self.decode_fn = decode_fn
        self.input_size = tuple(input_size)
        self.top_k = top_k
        self.logger = logging.getLogger(__name__)

    @classmethod
    def load(cls, config: Optional[Dict[str, Any]] = None) -> "MobileNetClassifier":
        """
        Build MobileNetV2 with ImageNet weights

        The first call downloads the weights into the Keras cache; later calls
        read them from disk.
        """
        config = config or {}
        # TensorFlow import is slow, keep it off the module import path
        from tensorflow.keras.applications import MobileNetV2
        from tensorflow.keras.applications.mobilenet_v2 import (
            decode_predictions,
            preprocess_input,
        )

        input_size = tuple(config.get("input_size", [224, 224]))
        model = MobileNetV2(
            weights=config.get("weights", "imagenet"),
            alpha=config.get("alpha", 1.0),
            input_shape=(input_size[1], input_size[0], 3),
        )
        classifier = cls(
            model,
            preprocess_input,
            decode_predictions,
            input_size=input_size,
            top_k=config.get("top_k", 3),
        )
        classifier.logger.info(f"Loaded MobileNetV2 classifier (alpha={config.get('alpha', 1.0)})")
        return classifier

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """Resize, convert BGR to RGB and add the batch dimension"""
        if image is None or image.size == 0:
            raise ValueError("Empty image passed to classifier")

        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        elif image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
        else:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        resized = cv2.resize(image, self.input_size)
        batched = np.expand_dims(resized.astype(np.float32), axis=0)
        return self.preprocess_fn(batched)

    def classify(self, image: np.ndarray) -> List[Prediction]:
        """
        Run inference on a decoded image

        Args:
            image: HxWx3 (or HxWx4, HxW) uint8 array

        Returns:
            Ranked predictions, highest probability first
        """
        batch = self.preprocess(image)
        scores = self.model.predict(batch, verbose=0)
        decoded = self.decode_fn(scores, top=self.top_k)

        if not decoded or len(decoded[0]) == 0:
            return []

        predictions = [
            Prediction(label=name.replace("_", " "), probability=float(prob))
            for _, name, prob in decoded[0]
        ]
        predictions.sort(key=lambda p: p.probability, reverse=True)

        self.logger.debug(f"Top predictions: {[(p.label, round(p.probability, 3)) for p in predictions]}")
        return predictions
