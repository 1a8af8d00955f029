"""
Model lifecycle management

A single ModelProvider owns the classifier handle for the whole process and is
passed by reference to the pipeline. Loading is expensive, so concurrent
callers share one in-flight attempt; failures are never cached.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..errors import ModelLoadError
from .classifier import MobileNetClassifier


class ModelState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def _retrieve_exception(task: asyncio.Task):
    # The failure is already logged in _load; every waiter may have been cancelled
    if not task.cancelled():
        task.exception()


class ModelProvider:
    """
    Coalescing, retryable owner of the classifier handle

    `ensure_ready()` returns the handle once usable. While a load is running
    every caller awaits the same task; after a failure the state drops back
    to UNLOADED so the next call starts a fresh attempt.
    """

    def __init__(self, loader: Optional[Callable[[Dict[str, Any]], Any]] = None,
                 config: Optional[Dict[str, Any]] = None,
                 on_state_change: Optional[Callable[[ModelState], None]] = None):
        """
        Args:
            loader: Blocking callable building the classifier from `config`
            config: Model section of the configuration
            on_state_change: Called with the new state on every transition
        """
        self.loader = loader or MobileNetClassifier.load
        self.config = config or {}
        self.on_state_change = on_state_change
        self.logger = logging.getLogger(__name__)

        self._state = ModelState.UNLOADED
        self._handle = None
        self._load_task: Optional[asyncio.Task] = None
        self.load_count = 0
        self.last_error: Optional[ModelLoadError] = None

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ModelState.READY

    @property
    def handle(self):
        if self._state is not ModelState.READY:
            raise ModelLoadError("Model is not ready")
        return self._handle

    def _set_state(self, state: ModelState):
        if state is self._state:
            return
        self._state = state
        self.logger.debug(f"Model state -> {state.value}")
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception as e:
                self.logger.error(f"Model state listener failed: {e}")

    async def ensure_ready(self):
        """
        Return the classifier handle, loading it if needed

        Raises:
            ModelLoadError: The load attempt failed. A later call retries.
        """
        if self._state is ModelState.READY:
            return self._handle

        if self._load_task is None:
            self._set_state(ModelState.LOADING)
            self._load_task = asyncio.ensure_future(self._load())
            self._load_task.add_done_callback(_retrieve_exception)

        # Shield so a cancelled waiter does not abort the shared load
        return await asyncio.shield(self._load_task)

    async def _load(self):
        loop = asyncio.get_running_loop()
        self.load_count += 1
        self.logger.info("Loading classifier model...")
        try:
            handle = await loop.run_in_executor(None, self.loader, self.config)
        except Exception as e:
            self.logger.error(f"Error loading classifier model: {e}")
            error = ModelLoadError()
            self.last_error = error
            self._set_state(ModelState.FAILED)
            self._set_state(ModelState.UNLOADED)
            raise error from e
        finally:
            self._load_task = None

        self._handle = handle
        self.last_error = None
        self._set_state(ModelState.READY)
        self.logger.info("Classifier model loaded successfully")
        return handle

    def unload(self):
        """Drop the handle. A load in flight is left to finish."""
        if self._load_task is not None:
            return
        self._handle = None
        self._set_state(ModelState.UNLOADED)
