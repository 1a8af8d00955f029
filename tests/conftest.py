"""Pytest fixtures and fakes for the classification core."""

import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from wastescan.models.category_mapper import (  # noqa: E402
    ClassificationResult,
    WasteCategory,
)
from wastescan.models.classifier import Prediction  # noqa: E402


class FakeClassifier:
    """Stands in for the loaded MobileNet handle."""

    def __init__(self, predictions: Optional[List[Prediction]] = None, error=None):
        self.predictions = predictions if predictions is not None else []
        self.error = error
        self.seen = []

    def classify(self, image):
        self.seen.append(image)
        if self.error is not None:
            raise self.error
        return list(self.predictions)


class FakeStream:
    """Capture stream that always has a frame unless told otherwise."""

    def __init__(self, ready: bool = True, read_delay: float = 0.0):
        self.ready = ready
        self.read_delay = read_delay
        self.active = True
        self.stop_calls = 0

    def is_ready(self):
        return self.active and self.ready

    def read_frame(self):
        if not self.active:
            return None
        if self.read_delay:
            time.sleep(self.read_delay)
        return np.zeros((8, 8, 3), dtype=np.uint8)

    def stop(self):
        self.stop_calls += 1
        self.active = False

    def get_info(self):
        return {"type": "fake", "active": self.active}


class FakeDevice:
    """Capture device handing out FakeStreams."""

    def __init__(self, ready: bool = True, error=None, acquire_delay: float = 0.0,
                 read_delay: float = 0.0):
        self.ready = ready
        self.read_delay = read_delay
        self.error = error
        self.acquire_delay = acquire_delay
        self.streams: List[FakeStream] = []
        self.released: List[FakeStream] = []

    def acquire(self, constraints=None):
        if self.acquire_delay:
            time.sleep(self.acquire_delay)
        if self.error is not None:
            raise self.error
        stream = FakeStream(self.ready, self.read_delay)
        self.streams.append(stream)
        return stream

    def release(self, stream):
        self.released.append(stream)
        stream.stop()


def make_result(confidence: float, label: str = "banana") -> ClassificationResult:
    return ClassificationResult(
        category=WasteCategory.ORGANIC,
        label=label,
        confidence=confidence,
        reasoning="test",
        disposal_instructions="compost",
    )


class FakePipeline:
    """
    Async pipeline with configurable latency

    Records when each inference starts and ends and the peak number of
    inferences in flight at once.
    """

    def __init__(self, latency: float = 0.0, results=None, errors=None):
        self.latency = latency
        self.results = list(results or [])
        self.errors = list(errors or [])
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.starts: List[float] = []
        self.ends: List[float] = []
        self.started = asyncio.Event()

    async def classify_element(self, frame):
        loop = asyncio.get_running_loop()
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.starts.append(loop.time())
        self.started.set()
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if self.errors:
                error = self.errors.pop(0)
                if error is not None:
                    raise error
            if self.results:
                return self.results.pop(0)
            return make_result(0.0)
        finally:
            self.in_flight -= 1
            self.ends.append(loop.time())


async def wait_for(predicate, timeout: float = 2.0):
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def png_bytes():
    image = np.full((32, 48, 3), 200, dtype=np.uint8)
    ok, encoded = cv2.imencode('.png', image)
    assert ok
    return encoded.tobytes()
