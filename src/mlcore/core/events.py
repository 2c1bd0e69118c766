"""
Typed publish/subscribe surface for model lifecycle events.

Each event type has its own payload dataclass. Listeners form an ordered set
per event type: registering the same callable twice delivers once.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Sequence

from ..utils.metrics import PerformanceMetrics
from .types import InferenceResult, ModelState

logger = logging.getLogger(__name__)


class ModelEvent(Enum):
    STATE_CHANGE = "state-change"
    INFERENCE_START = "inference-start"
    INFERENCE_END = "inference-end"
    ERROR = "error"
    METRICS_UPDATE = "metrics-update"


@dataclass(frozen=True)
class StateChangeEvent:
    state: ModelState
    previous_state: ModelState


@dataclass(frozen=True)
class InferenceStartEvent:
    input_names: Sequence[str]


@dataclass(frozen=True)
class InferenceEndEvent:
    result: InferenceResult


@dataclass(frozen=True)
class ErrorEvent:
    error: BaseException
    context: str


@dataclass(frozen=True)
class MetricsUpdateEvent:
    metrics: PerformanceMetrics


EVENT_PAYLOADS = {
    ModelEvent.STATE_CHANGE: StateChangeEvent,
    ModelEvent.INFERENCE_START: InferenceStartEvent,
    ModelEvent.INFERENCE_END: InferenceEndEvent,
    ModelEvent.ERROR: ErrorEvent,
    ModelEvent.METRICS_UPDATE: MetricsUpdateEvent,
}

Listener = Callable[[object], None]


class EventEmitter:
    """Dispatches typed event payloads to subscribed listeners."""

    def __init__(self):
        self._listeners: Dict[ModelEvent, List[Listener]] = {}

    def on(self, event, listener: Listener):
        """Subscribe a listener; duplicate subscriptions are ignored."""
        event = ModelEvent(event)
        listeners = self._listeners.setdefault(event, [])
        if listener not in listeners:
            listeners.append(listener)

    def off(self, event, listener: Listener):
        """Unsubscribe a listener; unknown listeners are ignored."""
        listeners = self._listeners.get(ModelEvent(event))
        if listeners and listener in listeners:
            listeners.remove(listener)

    def emit(self, event, payload):
        """
        Deliver payload to every listener of event, in subscription order.

        A listener that raises is logged and does not prevent delivery to
        the remaining listeners.
        """
        event = ModelEvent(event)
        expected = EVENT_PAYLOADS[event]
        if not isinstance(payload, expected):
            raise TypeError(f"{event.value} expects {expected.__name__}, got {type(payload).__name__}")

        # Copy so listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"Listener error on '{event.value}': {e}", exc_info=True)

    def listener_count(self, event) -> int:
        return len(self._listeners.get(ModelEvent(event), ()))

    def clear(self):
        """Remove every listener."""
        self._listeners.clear()
