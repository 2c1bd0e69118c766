"""
Model lifecycle types shared by models, the registry and pipelines.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .tensor import Tensor, TensorShape


class ModelState(Enum):
    """Lifecycle states of a model."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class ModelMetadata:
    """Derived at load time; replaced wholesale on each load."""
    name: str
    version: str
    input_shapes: Dict[str, TensorShape] = field(default_factory=dict)
    output_shapes: Dict[str, TensorShape] = field(default_factory=dict)
    input_names: List[str] = field(default_factory=list)
    output_names: List[str] = field(default_factory=list)
    labels: Optional[List[str]] = None
    author: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class InferenceResult:
    """Outputs and phase timings of one predict() call."""
    outputs: Dict[str, Tensor]
    parsed: Any
    inference_time_ms: float
    preprocess_time_ms: float
    postprocess_time_ms: float

    @property
    def total_time_ms(self) -> float:
        return self.preprocess_time_ms + self.inference_time_ms + self.postprocess_time_ms
