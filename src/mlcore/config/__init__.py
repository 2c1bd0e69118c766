"""
Configuration for mlcore.

Dataclass configurations for models, image preprocessing, result parsers and
overlays, all loadable from YAML or JSON.
"""

from .base_config import BaseConfig, DataType, DeviceType, ModelFormat, read_config_file
from .model_config import ModelConfig
from .inference_config import (
    PreprocessConfig, PostprocessConfig, DetectionConfig, LandmarkConfig,
    DetectionDrawConfig, LandmarkDrawConfig, ColorSpace, TensorLayout
)

__all__ = [
    'BaseConfig', 'DataType', 'DeviceType', 'ModelFormat', 'read_config_file',
    'ModelConfig',
    'PreprocessConfig', 'PostprocessConfig', 'DetectionConfig', 'LandmarkConfig',
    'DetectionDrawConfig', 'LandmarkDrawConfig', 'ColorSpace', 'TensorLayout',
    'load_config',
]

CONFIG_TYPES = {
    'model': ModelConfig,
    'preprocess': PreprocessConfig,
    'postprocess': PostprocessConfig,
    'detection': DetectionConfig,
    'landmark': LandmarkConfig,
}

# First distinguishing key -> config type, checked in order
_DETECTION_KEYS = (
    ('model_path', 'model'),
    ('num_classes', 'detection'),
    ('num_landmarks', 'landmark'),
    ('top_k', 'postprocess'),
)


def load_config(config_path: str, config_type: str = "model") -> BaseConfig:
    """
    Load a configuration file.

    Args:
        config_path: .json, .yaml or .yml file
        config_type: A key of CONFIG_TYPES, or 'auto' to infer it from the
            file's keys (falling back to 'preprocess')

    Returns:
        Configuration instance
    """
    data = read_config_file(config_path)

    if config_type == "auto":
        config_type = next((kind for key, kind in _DETECTION_KEYS if key in data), 'preprocess')

    if config_type not in CONFIG_TYPES:
        raise ValueError(f"Unknown config type: {config_type}")

    return CONFIG_TYPES[config_type].from_dict(data)
