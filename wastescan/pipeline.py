"""
Classification pipeline
One image (or live frame) in, one ClassificationResult out
"""

import asyncio
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union

import cv2
import numpy as np

from .errors import DecodeError, InferenceError
from .models.category_mapper import CategoryMapper, ClassificationResult
from .models.classifier import Prediction
from .models.provider import ModelProvider

ImageSource = Union[bytes, bytearray, memoryview, str, Path, BinaryIO]


@contextmanager
def decoded_image(source: ImageSource) -> Iterator[np.ndarray]:
    """
    Decode a still image for the duration of the block

    Any file opened here is closed on every exit path, including decode
    failure.

    Raises:
        DecodeError: The source cannot be read or is not a supported image
    """
    handle = None
    try:
        try:
            if isinstance(source, (str, Path)):
                handle = open(source, 'rb')
                data = handle.read()
            elif isinstance(source, (bytes, bytearray, memoryview)):
                data = source
            elif hasattr(source, 'read'):
                data = source.read()
            else:
                raise DecodeError(f"Unsupported image source: {type(source).__name__}")
        except OSError as e:
            raise DecodeError(f"Failed to process image file: {e}") from e

        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise DecodeError(f"Image source returned {type(data).__name__}, expected bytes")

        buffer = np.frombuffer(data, dtype=np.uint8)
        if buffer.size == 0:
            raise DecodeError()

        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise DecodeError()

        yield image
    finally:
        if handle is not None:
            handle.close()


class ClassificationPipeline:
    """
    Orchestrates a single classification

    Obtains a ready model from the shared provider, runs inference off the
    event loop, takes the top-ranked label and hands it to the category
    mapper.
    """

    def __init__(self, provider: ModelProvider, mapper: Optional[CategoryMapper] = None,
                 executor=None):
        """
        Args:
            provider: Shared model provider (borrowed, never copied)
            mapper: Rule-table mapper, defaults to the built-in table
            executor: Executor for blocking inference, None for the loop default
        """
        self.provider = provider
        self.mapper = mapper or CategoryMapper()
        self.executor = executor
        self.logger = logging.getLogger(__name__)

    async def classify(self, source: ImageSource) -> ClassificationResult:
        """
        Classify a still image

        Args:
            source: Encoded image bytes, a file path or a binary file object

        Raises:
            ModelLoadError: The classifier could not be initialized
            DecodeError: The input is not a readable image
            InferenceError: The classifier failed on this image
        """
        model = await self.provider.ensure_ready()
        with decoded_image(source) as image:
            self.logger.debug(f"Decoded image {image.shape[1]}x{image.shape[0]}")
            predictions = await self._infer(model, image)
        return self._to_result(predictions)

    async def classify_element(self, frame: np.ndarray) -> ClassificationResult:
        """Classify an already-decoded frame, skipping the decode step"""
        model = await self.provider.ensure_ready()
        predictions = await self._infer(model, frame)
        return self._to_result(predictions)

    async def _infer(self, model, image: np.ndarray) -> List[Prediction]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self.executor, model.classify, image)
        except Exception as e:
            self.logger.error(f"Inference error: {e}")
            raise InferenceError() from e

    def _to_result(self, predictions: List[Prediction]) -> ClassificationResult:
        if not predictions:
            return self.mapper.unknown_result(confidence=0.0)

        top = predictions[0]
        result = self.mapper.map_label(top.label, top.probability)
        self.logger.debug(
            f"Top label '{top.label}' ({top.probability:.2f}) -> {result.category.value}"
        )
        return result
