"""
mlcore: in-process ML inference core.

Wraps a tensor-execution runtime (PyTorch) behind a model lifecycle,
registry, vision parsers and multi-model pipelines.
"""

from .exceptions import (
    MLCoreError, ModelStateError, ModelLoadError, ModelNotRegisteredError, ShapeError
)
from .config import (
    ModelConfig, PreprocessConfig, PostprocessConfig, DetectionConfig, LandmarkConfig,
    DetectionDrawConfig, LandmarkDrawConfig, DeviceType, DataType, ModelFormat,
    ColorSpace, TensorLayout, load_config
)
from .core import (
    Tensor, TensorShape, ImageData, ModelState, ModelMetadata, InferenceResult,
    BoundingBox, Landmark, ClassificationResult, SegmentationMask,
    Detections, Classifications, Landmarks, RawOutputs, ModelEvent
)
from .inference import (
    tensor_utils, Model, TorchInterpreter, ModelRegistry, get_model_registry,
    reset_model_registry, Pipeline, PipelineStage, PipelineResult, PipelineBuilder
)
from .utils import PerformanceMetrics, StructuredLogger

__version__ = "1.0.0"

__all__ = [
    # Errors
    'MLCoreError', 'ModelStateError', 'ModelLoadError', 'ModelNotRegisteredError', 'ShapeError',

    # Config
    'ModelConfig', 'PreprocessConfig', 'PostprocessConfig', 'DetectionConfig',
    'LandmarkConfig', 'DetectionDrawConfig', 'LandmarkDrawConfig', 'DeviceType',
    'DataType', 'ModelFormat', 'ColorSpace', 'TensorLayout', 'load_config',

    # Core types
    'Tensor', 'TensorShape', 'ImageData', 'ModelState', 'ModelMetadata', 'InferenceResult',
    'BoundingBox', 'Landmark', 'ClassificationResult', 'SegmentationMask',
    'Detections', 'Classifications', 'Landmarks', 'RawOutputs', 'ModelEvent',

    # Inference
    'tensor_utils', 'Model', 'TorchInterpreter', 'ModelRegistry', 'get_model_registry',
    'reset_model_registry', 'Pipeline', 'PipelineStage', 'PipelineResult', 'PipelineBuilder',

    # Utils
    'PerformanceMetrics', 'StructuredLogger',
]
