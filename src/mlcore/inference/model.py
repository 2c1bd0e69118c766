# src/mlcore/inference/model.py
"""
Abstract Model Lifecycle

Features:
1. Load -> warm-up -> ready -> predict -> dispose state machine
2. Timed preprocess / inference / postprocess phases
3. Rolling-window performance metrics
4. Typed lifecycle events for observers

State transitions:
    unloaded --load()--> loading --ok--> ready
    loading --failure--> error --load()--> loading
    any --dispose()--> disposed (terminal)
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..config.base_config import DeviceType
from ..config.model_config import ModelConfig
from ..core.events import (
    EventEmitter, ErrorEvent, InferenceEndEvent, InferenceStartEvent,
    MetricsUpdateEvent, ModelEvent, StateChangeEvent
)
from ..core.tensor import Tensor
from ..core.types import InferenceResult, ModelMetadata, ModelState
from ..exceptions import ModelStateError
from ..utils.metrics import PerformanceMetrics, PerformanceTracker
from .device import resolve_device

logger = logging.getLogger(__name__)


class Model(ABC):
    """
    Base class for all models.

    Subclasses implement the backend hooks (_load_model_impl,
    _run_inference_impl, _dispose_impl, get_memory_usage) and the data hooks
    (preprocess, postprocess). The state is written only by this class.
    """

    def __init__(self, config: ModelConfig):
        """
        Initialize model.

        Args:
            config: Model configuration (defaults already applied)
        """
        self.config = config
        self.device: Optional[DeviceType] = None

        self._state = ModelState.UNLOADED
        self._metadata: Optional[ModelMetadata] = None
        self._tracker = PerformanceTracker()
        self._events = EventEmitter()

    # Backend hooks
    @abstractmethod
    async def _load_model_impl(self):
        """Load the artifact and populate self._metadata."""

    @abstractmethod
    async def _run_inference_impl(self, inputs: Dict[str, Tensor]) -> Dict[str, Tensor]:
        """Run one forward pass."""

    @abstractmethod
    def _dispose_impl(self):
        """Release backend resources."""

    @abstractmethod
    def get_memory_usage(self) -> float:
        """Current backend memory usage in MB."""

    # Data hooks
    @abstractmethod
    def preprocess(self, input: Any) -> Dict[str, Tensor]:
        """Convert a caller input into named tensors."""

    @abstractmethod
    def postprocess(self, outputs: Dict[str, Tensor]) -> Any:
        """Convert named output tensors into a parsed result."""

    async def _warmup(self):
        """One warm-up pass; no-op unless overridden."""

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def metadata(self) -> Optional[ModelMetadata]:
        return self._metadata

    @property
    def display_name(self) -> str:
        if self._metadata is not None:
            return self._metadata.name
        return self.config.display_name

    async def load(self):
        """
        Load the model and run warm-up passes.

        No-op when already ready.

        Raises:
            ModelStateError: If the model was disposed
        """
        if self._state == ModelState.READY:
            return
        if self._state == ModelState.DISPOSED:
            raise ModelStateError(
                f"Cannot load disposed model '{self.display_name}'", state=self._state
            )

        self._set_state(ModelState.LOADING)

        try:
            await self._load_model_impl()

            if self.config.warmup_runs > 0:
                logger.info(f"Running {self.config.warmup_runs} warmup inference(s) "
                            f"for {self.display_name}")
                for _ in range(self.config.warmup_runs):
                    await self._warmup()

        except Exception as e:
            logger.error(f"Failed to load model {self.display_name}: {e}")
            self._set_state(ModelState.ERROR)
            self._emit(ModelEvent.ERROR, ErrorEvent(error=e, context="load"))
            raise

        self._set_state(ModelState.READY)
        logger.info(f"Model loaded: {self.display_name}")

    async def predict(self, input: Any) -> InferenceResult:
        """
        Run preprocess, inference and postprocess on one input.

        Args:
            input: Whatever preprocess() accepts

        Returns:
            Outputs, parsed result and phase timings

        Raises:
            ModelStateError: If the model is not ready
        """
        if self._state != ModelState.READY:
            raise ModelStateError(
                f"Model not ready. Current state: {self._state.value}", state=self._state
            )

        # Preprocess
        preprocess_start = time.perf_counter()
        inputs = self.preprocess(input)
        preprocess_time_ms = (time.perf_counter() - preprocess_start) * 1000

        self._emit(ModelEvent.INFERENCE_START, InferenceStartEvent(input_names=tuple(inputs)))

        # Inference
        inference_start = time.perf_counter()
        outputs = await self._run_inference_impl(inputs)
        inference_time_ms = (time.perf_counter() - inference_start) * 1000

        # Postprocess
        postprocess_start = time.perf_counter()
        parsed = self.postprocess(outputs)
        postprocess_time_ms = (time.perf_counter() - postprocess_start) * 1000

        self._update_metrics(inference_time_ms)

        result = InferenceResult(
            outputs=outputs,
            parsed=parsed,
            inference_time_ms=inference_time_ms,
            preprocess_time_ms=preprocess_time_ms,
            postprocess_time_ms=postprocess_time_ms,
        )
        self._emit(ModelEvent.INFERENCE_END, InferenceEndEvent(result=result))

        return result

    async def predict_batch(self, inputs: List[Any]) -> List[InferenceResult]:
        """Predict each input in turn; results keep input order."""
        results = []
        for item in inputs:
            results.append(await self.predict(item))
        return results

    def dispose(self):
        """Release resources. Safe to call more than once."""
        if self._state == ModelState.DISPOSED:
            return

        self._dispose_impl()
        self._set_state(ModelState.DISPOSED)
        self._events.clear()
        logger.info(f"Model disposed: {self.display_name}")

    # Events
    def on(self, event, listener):
        """Subscribe to a ModelEvent (or its string value)."""
        self._events.on(event, listener)

    def off(self, event, listener):
        self._events.off(event, listener)

    def _emit(self, event: ModelEvent, payload):
        self._events.emit(event, payload)

    def _set_state(self, state: ModelState):
        previous_state = self._state
        self._state = state
        self._emit(ModelEvent.STATE_CHANGE,
                   StateChangeEvent(state=state, previous_state=previous_state))

    # Metrics
    def get_metrics(self) -> PerformanceMetrics:
        """Copy of the current performance metrics."""
        return self._tracker.snapshot()

    def get_config(self) -> ModelConfig:
        return self.config

    def _update_metrics(self, inference_time_ms: float):
        metrics = self._tracker.update(inference_time_ms, self.get_memory_usage())
        self._emit(ModelEvent.METRICS_UPDATE, MetricsUpdateEvent(metrics=metrics))

    def _resolve_device(self) -> DeviceType:
        """Resolve config.device to an available device and remember it."""
        self.device = resolve_device(self.config.device)
        return self.device

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.display_name!r}, state={self._state.value})"
