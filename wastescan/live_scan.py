"""
Continuous live-scan scheduler

Samples frames from a capture stream and classifies them one at a time.
The next tick is scheduled only after the current inference finishes, so a
slow model throttles the sampling rate instead of stacking up work.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .camera_interface import CameraDevice, CaptureConstraints, CaptureStream
from .errors import DeviceAccessError
from .models.category_mapper import ClassificationResult
from .pipeline import ClassificationPipeline

DEFAULT_INTERVAL_SECONDS = 0.8
MIN_ACCEPTED_CONFIDENCE = 0.2


class SessionState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPED = "stopped"


@dataclass
class CaptureSession:
    stream: CaptureStream
    streaming: bool = True


@dataclass
class ScanCycleState:
    """Per-session sampling state; `busy` is the single-flight guard"""

    busy: bool = False
    timer_handle: Optional[asyncio.TimerHandle] = None
    inflight: Optional[asyncio.Task] = None


class LiveScanScheduler:
    """
    Drives repeated classification against a live capture stream

    Lifecycle: IDLE -> STARTING -> STREAMING -> STOPPED. A stopped scheduler
    can be started again; each activation acquires its own stream and cycle
    state.

    Per-frame failures are absorbed: they are logged, counted and passed to
    `on_error` when given, and scanning carries on with the next tick.
    """

    def __init__(self, pipeline: ClassificationPipeline, device: CameraDevice,
                 on_result: Callable[[ClassificationResult], None],
                 constraints: Optional[CaptureConstraints] = None,
                 interval: float = DEFAULT_INTERVAL_SECONDS,
                 min_confidence: float = MIN_ACCEPTED_CONFIDENCE,
                 on_error: Optional[Callable[[Exception], None]] = None):
        """
        Args:
            pipeline: Classification pipeline used for every frame
            device: Capture device API (acquire/release)
            on_result: Sink for accepted results
            constraints: Capture constraints passed to the device
            interval: Delay in seconds between completion of one sample and
                the next tick
            min_confidence: Results at or below this are discarded
            on_error: Optional diagnostic callback for absorbed errors
        """
        self.pipeline = pipeline
        self.device = device
        self.on_result = on_result
        self.on_error = on_error
        self.constraints = constraints or CaptureConstraints()
        self.interval = interval
        self.min_confidence = min_confidence
        self.logger = logging.getLogger(__name__)

        self._state = SessionState.IDLE
        self._session: Optional[CaptureSession] = None
        self._cycle: Optional[ScanCycleState] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.last_error: Optional[Exception] = None
        self.stats: Dict[str, int] = {
            "ticks": 0,
            "inferences": 0,
            "forwarded": 0,
            "rejected": 0,
            "discarded": 0,
            "errors_absorbed": 0,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.STREAMING

    async def start(self):
        """
        Acquire the capture device and begin sampling

        Raises:
            DeviceAccessError: The device could not be acquired; the
                scheduler stays IDLE
        """
        if self._state in (SessionState.STARTING, SessionState.STREAMING):
            self.logger.warning("Live scan is already running")
            return

        self._loop = asyncio.get_running_loop()
        self._state = SessionState.STARTING
        self.logger.info("Starting live scan...")

        try:
            stream = await self._loop.run_in_executor(None, self.device.acquire, self.constraints)
        except DeviceAccessError as e:
            self._state = SessionState.IDLE
            self.logger.error(f"Failed to acquire camera: {e}")
            raise
        except Exception as e:
            self._state = SessionState.IDLE
            self.logger.error(f"Failed to acquire camera: {e}")
            raise DeviceAccessError(f"Camera unavailable: {e}") from e

        if self._state is not SessionState.STARTING:
            # stop() landed while the device was opening
            self.device.release(stream)
            return

        self._session = CaptureSession(stream)
        self._cycle = ScanCycleState()
        self._state = SessionState.STREAMING
        self.logger.info(f"Live scan started (interval={self.interval}s, "
                         f"min_confidence={self.min_confidence})")
        self._schedule(self._cycle, 0)

    def stop(self):
        """
        Deactivate the session

        Cancels the pending tick and releases the device immediately. An
        inference still in flight is left to finish but its result is dropped.
        """
        if self._state in (SessionState.IDLE, SessionState.STOPPED):
            return

        cycle, session = self._cycle, self._session
        self._cycle = None
        self._session = None
        self._state = SessionState.STOPPED

        if cycle is not None and cycle.timer_handle is not None:
            cycle.timer_handle.cancel()
            cycle.timer_handle = None
        if session is not None:
            session.streaming = False
            self.device.release(session.stream)

        self.logger.info("Live scan stopped")

    async def close(self):
        """Stop and wait for an in-flight inference to settle"""
        cycle = self._cycle
        self.stop()
        if cycle is not None and cycle.inflight is not None:
            await asyncio.gather(cycle.inflight, return_exceptions=True)

    def _schedule(self, cycle: ScanCycleState, delay: float):
        if cycle is not self._cycle:
            return
        cycle.timer_handle = self._loop.call_later(delay, self._tick, cycle)

    def _tick(self, cycle: ScanCycleState):
        cycle.timer_handle = None
        if cycle is not self._cycle or not self._session.streaming:
            return

        self.stats["ticks"] += 1
        stream = self._session.stream
        if cycle.busy or not stream.is_ready():
            self._schedule(cycle, self.interval)
            return

        cycle.busy = True
        cycle.inflight = self._loop.create_task(self._sample(cycle, stream))

    async def _sample(self, cycle: ScanCycleState, stream: CaptureStream):
        result = None
        try:
            # Camera reads block for up to a frame period
            frame = await self._loop.run_in_executor(None, stream.read_frame)
            if frame is not None and cycle is self._cycle:
                self.stats["inferences"] += 1
                result = await self.pipeline.classify_element(frame)
        except Exception as e:
            self._absorb(e)
        finally:
            cycle.busy = False
            cycle.inflight = None

        if cycle is not self._cycle:
            if result is not None:
                self.stats["discarded"] += 1
                self.logger.debug("Discarding result from a deactivated session")
            return

        if result is not None:
            self._deliver(result)
        self._schedule(cycle, self.interval)

    def _deliver(self, result: ClassificationResult):
        if result.confidence <= self.min_confidence:
            self.stats["rejected"] += 1
            self.logger.debug(f"Rejected low-confidence result {result.label} ({result.confidence:.2f})")
            return

        self.stats["forwarded"] += 1
        try:
            self.on_result(result)
        except Exception as e:
            self.logger.error(f"Result sink failed: {e}")
            self._absorb(e)

    def _absorb(self, error: Exception):
        self.stats["errors_absorbed"] += 1
        self.last_error = error
        self.logger.debug(f"Absorbed live-frame error: {error!r}")
        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                self.logger.error(f"Error callback failed: {e}")

    def get_status(self) -> dict:
        """Current scheduler status"""
        status = {
            "state": self._state.value,
            "interval_seconds": self.interval,
            "min_confidence": self.min_confidence,
            "busy": bool(self._cycle and self._cycle.busy),
            "statistics": dict(self.stats),
        }
        if self._session is not None:
            status["camera"] = self._session.stream.get_info()
        return status

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
