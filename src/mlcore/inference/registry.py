# src/mlcore/inference/registry.py
"""
Model Registry

Features:
1. Registration of models under unique ids
2. Single-flight loading: concurrent get_or_load calls share one load
3. Usage tracking with LRU cleanup of idle models
4. Parallel preloading and aggregate memory reporting
5. Optional forwarding of per-model metrics to a StructuredLogger
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..config.model_config import ModelConfig
from ..core.events import MetricsUpdateEvent, ModelEvent
from ..core.types import ModelState
from ..exceptions import ModelNotRegisteredError
from ..utils.logging import StructuredLogger
from .model import Model

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_MS = 5 * 60 * 1000


@dataclass
class RegisteredModel:
    """Registry entry for one model."""
    model: Model
    config: ModelConfig
    registered_at: datetime = field(default_factory=datetime.now)
    last_used: datetime = field(default_factory=datetime.now)
    use_count: int = 0
    metrics_listener: Optional[Callable[[MetricsUpdateEvent], None]] = None

    def touch(self):
        self.last_used = datetime.now()
        self.use_count += 1


class ModelRegistry:
    """
    Central registry for model instances.

    The entry maps are guarded by a re-entrant lock that is never held across
    an await, so worker threads may call the synchronous methods safely.
    """

    def __init__(self, structured_logger: Optional[StructuredLogger] = None):
        """
        Initialize registry.

        Args:
            structured_logger: Receives metrics of registered models when given
        """
        self.structured_logger = structured_logger
        self._models: Dict[str, RegisteredModel] = {}
        self._loading: Dict[str, asyncio.Future] = {}
        self._lock = threading.RLock()

    def register(self, model_id: str, model: Model) -> bool:
        """
        Register a model under a unique id.

        Returns:
            False (and keeps the existing entry) if the id is taken
        """
        with self._lock:
            if model_id in self._models:
                logger.warning(f"Model {model_id} already registered, keeping existing entry")
                return False

            entry = RegisteredModel(model=model, config=model.get_config())
            if self.structured_logger is not None:
                entry.metrics_listener = self._make_metrics_listener(model_id)
                model.on(ModelEvent.METRICS_UPDATE, entry.metrics_listener)
            self._models[model_id] = entry

        logger.info(f"Model registered: {model_id}")
        return True

    def _make_metrics_listener(self, model_id: str):
        def forward(event: MetricsUpdateEvent):
            self.structured_logger.log_performance(
                model_id, event.metrics.to_dict(), step=event.metrics.total_inferences
            )
        return forward

    def get(self, model_id: str) -> Optional[Model]:
        """Return the model and mark it used, or None. Never loads."""
        with self._lock:
            entry = self._models.get(model_id)
            if entry is None:
                return None
            entry.touch()
            return entry.model

    async def get_or_load(self, model_id: str) -> Model:
        """
        Return the model, loading it first if it is not ready.

        At most one load runs per id; concurrent callers await the same load
        and share its outcome.

        Raises:
            ModelNotRegisteredError: If the id is unknown
        """
        model = self.get(model_id)
        if model is None:
            raise ModelNotRegisteredError(f"Model {model_id} not registered",
                                          details={'model_id': model_id})

        if model.state == ModelState.READY:
            return model

        with self._lock:
            pending = self._loading.get(model_id)
            if pending is None:
                pending = asyncio.ensure_future(model.load())
                self._loading[model_id] = pending
                pending.add_done_callback(
                    lambda done, key=model_id: self._clear_loading(key, done)
                )

        await pending
        return model

    def _clear_loading(self, model_id: str, done: asyncio.Future):
        with self._lock:
            if self._loading.get(model_id) is done:
                del self._loading[model_id]

    def is_loading(self, model_id: str) -> bool:
        with self._lock:
            return model_id in self._loading

    def unregister(self, model_id: str) -> bool:
        """Dispose and remove a model; False if the id is unknown."""
        with self._lock:
            entry = self._models.pop(model_id, None)
        if entry is None:
            return False

        self._dispose_entry(entry)
        logger.info(f"Model unregistered: {model_id}")
        return True

    def _dispose_entry(self, entry: RegisteredModel):
        if entry.metrics_listener is not None:
            entry.model.off(ModelEvent.METRICS_UPDATE, entry.metrics_listener)
        entry.model.dispose()

    def has(self, model_id: str) -> bool:
        with self._lock:
            return model_id in self._models

    def list_models(self) -> List[str]:
        """Registered ids in registration order."""
        with self._lock:
            return list(self._models)

    def get_model_info(self, model_id: str) -> Optional[Dict[str, Any]]:
        """State, config, metrics and usage of a model, or None."""
        with self._lock:
            entry = self._models.get(model_id)
            if entry is None:
                return None
            return {
                'state': entry.model.state,
                'config': entry.config,
                'metrics': entry.model.get_metrics(),
                'registered_at': entry.registered_at,
                'last_used': entry.last_used,
                'use_count': entry.use_count,
            }

    async def preload_models(self, model_ids: List[str]) -> Dict[str, bool]:
        """
        Load several models in parallel.

        Returns:
            Mapping id -> whether it is loaded; one failure never aborts the others
        """
        async def preload(model_id: str) -> bool:
            try:
                await self.get_or_load(model_id)
                return True
            except Exception as e:
                logger.error(f"Failed to preload model {model_id}: {e}")
                return False

        outcomes = await asyncio.gather(*(preload(model_id) for model_id in model_ids))
        return dict(zip(model_ids, outcomes))

    def dispose_all(self):
        """Dispose and remove every model."""
        with self._lock:
            entries = list(self._models.values())
            self._models.clear()

        for entry in entries:
            self._dispose_entry(entry)
        logger.info("All models disposed")

    def get_total_memory_usage(self) -> float:
        """Sum of memory_usage_mb over all registered models."""
        with self._lock:
            models = [entry.model for entry in self._models.values()]
        return sum(model.get_metrics().memory_usage_mb for model in models)

    def cleanup_unused(self, max_age_ms: float = DEFAULT_MAX_AGE_MS) -> int:
        """
        Dispose ready models idle for longer than max_age_ms.

        Models that are loading, failed or unloaded are never evicted.

        Returns:
            Number of models removed
        """
        now = datetime.now()
        with self._lock:
            expired = [
                model_id for model_id, entry in self._models.items()
                if (now - entry.last_used).total_seconds() * 1000 > max_age_ms
                and entry.model.state == ModelState.READY
            ]
            entries = [self._models.pop(model_id) for model_id in expired]

        for entry in entries:
            self._dispose_entry(entry)

        if entries:
            logger.info(f"Cleaned up {len(entries)} unused model(s)")
        return len(entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __contains__(self, model_id: str) -> bool:
        return self.has(model_id)


# Shared default registry
_default_registry: Optional[ModelRegistry] = None
_default_lock = threading.Lock()


def get_model_registry() -> ModelRegistry:
    """Return the shared default registry, creating it on first use."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = ModelRegistry()
        return _default_registry


def reset_model_registry():
    """Dispose every model in the shared registry and drop it."""
    global _default_registry
    with _default_lock:
        registry, _default_registry = _default_registry, None
    if registry is not None:
        registry.dispose_all()
