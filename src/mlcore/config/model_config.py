"""
Model configuration for mlcore.
One ModelConfig is created per model and never mutated afterwards.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .base_config import BaseConfig, DeviceType, ModelFormat


def _default_num_threads() -> int:
    return os.cpu_count() or 4


@dataclass(frozen=True)
class ModelConfig(BaseConfig):
    """Configuration for a single model instance."""

    model_path: str = ""
    """Path or URI of the serialized model, resolved by the loader hook."""

    format: ModelFormat = ModelFormat.TORCHSCRIPT
    """Serialized format of the artifact."""

    device: DeviceType = DeviceType.AUTO
    """Compute device; AUTO negotiates the best available one."""

    num_threads: int = field(default_factory=_default_num_threads)
    """Intra-op threads for the CPU backend."""

    enable_quantization: bool = False
    """Apply dynamic int8 quantization when running on CPU."""

    cache_model: bool = True
    """Keep the loaded artifact around between loads."""

    warmup_runs: int = 1
    """Number of dummy inferences after loading."""

    input_shapes: Optional[Dict[str, List[int]]] = None
    """Declared input shapes by name; -1 marks a dynamic dimension."""

    labels: Optional[List[str]] = None
    """Optional class labels carried into the model metadata."""

    name: Optional[str] = None
    """Display name; defaults to the artifact file stem."""

    version: str = "1.0"

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.num_threads <= 0:
            raise ValueError("num_threads must be positive")

        if self.warmup_runs < 0:
            raise ValueError("warmup_runs must be non-negative")

        if self.input_shapes is not None:
            for input_name, dims in self.input_shapes.items():
                if not dims:
                    raise ValueError(f"input shape for '{input_name}' must not be empty")
                if any(d is not None and d < -1 for d in dims):
                    raise ValueError(f"invalid dimension in input shape for '{input_name}': {dims}")

    @property
    def display_name(self) -> str:
        """Name used in logs and metadata."""
        if self.name:
            return self.name
        if self.model_path:
            stem = os.path.splitext(os.path.basename(self.model_path.rstrip('/')))[0]
            return stem or self.model_path
        return "unknown"
