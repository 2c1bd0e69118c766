"""
Base configuration classes for mlcore.
Provides shared enums, serialization and validation helpers.
"""

import json
from dataclasses import asdict, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import numpy as np
import yaml


class DeviceType(Enum):
    """Compute devices a model can be placed on."""
    CPU = "cpu"
    GPU = "gpu"                  # Generic GPU (Apple MPS)
    ACCELERATED = "accelerated"  # Native accelerated GPU API (CUDA)
    AUTO = "auto"


class DataType(Enum):
    """Element types a Tensor buffer may hold."""
    FLOAT32 = "float32"
    INT32 = "int32"
    UINT8 = "uint8"
    INT8 = "int8"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @classmethod
    def from_numpy(cls, dtype: Any) -> 'DataType':
        """Map a numpy dtype onto the closest supported DataType."""
        dtype = np.dtype(dtype)
        if dtype == np.float32:
            return cls.FLOAT32
        if dtype == np.int32:
            return cls.INT32
        if dtype == np.uint8:
            return cls.UINT8
        if dtype == np.int8:
            return cls.INT8
        if np.issubdtype(dtype, np.floating):
            return cls.FLOAT32
        if dtype == np.bool_:
            return cls.UINT8
        if np.issubdtype(dtype, np.integer):
            return cls.INT32
        raise ValueError(f"Unsupported tensor dtype: {dtype}")


class ModelFormat(Enum):
    """Serialized model formats."""
    TORCHSCRIPT = "torchscript"
    TORCH = "torch"
    ONNX = "onnx"
    CUSTOM = "custom"


class BaseConfig:
    """
    Mixin for dataclass configurations.

    Provides dict/JSON/YAML conversion, file round-trips and enum coercion
    when loading. Subclasses must be dataclasses.
    """

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary (enums as values)."""
        return _plain(asdict(self))

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def save(self, filepath: str):
        """Save configuration to a .json or .yaml file."""
        filepath = Path(filepath)
        if filepath.suffix == '.json':
            filepath.write_text(self.to_json())
        elif filepath.suffix in ['.yaml', '.yml']:
            filepath.write_text(self.to_yaml())
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Build a configuration from a dictionary, coercing enum fields."""
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown {cls.__name__} fields: {sorted(unknown)}")

        kwargs = {}
        for key, value in data.items():
            default = getattr(cls, key, None)
            if isinstance(default, Enum) and isinstance(value, str):
                value = type(default)(value)
            kwargs[key] = value
        return cls(**kwargs)

    @classmethod
    def load(cls, filepath: str):
        """Load configuration from a .json or .yaml file."""
        return cls.from_dict(read_config_file(filepath))

    def replace(self, **overrides):
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)


def _plain(value: Any) -> Any:
    """Recursively convert enums and tuples to YAML/JSON friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def read_config_file(filepath) -> Dict[str, Any]:
    """Parse a .json, .yaml or .yml file into a dictionary."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    if filepath.suffix == '.json':
        return json.loads(filepath.read_text())
    if filepath.suffix in ['.yaml', '.yml']:
        return yaml.safe_load(filepath.read_text()) or {}
    raise ValueError(f"Unsupported file format: {filepath.suffix}")
