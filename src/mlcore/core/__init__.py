"""
Core value types of mlcore: tensors, results, lifecycle types and events.
"""

from .tensor import Tensor, TensorShape, ImageData, product
from .types import ModelState, ModelMetadata, InferenceResult
from .results import (
    BoundingBox, Landmark, ClassificationResult, SegmentationMask,
    Detections, Classifications, Landmarks, RawOutputs, ParsedOutput
)
from .events import (
    ModelEvent, EventEmitter,
    StateChangeEvent, InferenceStartEvent, InferenceEndEvent,
    ErrorEvent, MetricsUpdateEvent
)

__all__ = [
    'Tensor', 'TensorShape', 'ImageData', 'product',
    'ModelState', 'ModelMetadata', 'InferenceResult',
    'BoundingBox', 'Landmark', 'ClassificationResult', 'SegmentationMask',
    'Detections', 'Classifications', 'Landmarks', 'RawOutputs', 'ParsedOutput',
    'ModelEvent', 'EventEmitter',
    'StateChangeEvent', 'InferenceStartEvent', 'InferenceEndEvent',
    'ErrorEvent', 'MetricsUpdateEvent',
]
