# src/mlcore/inference/__init__.py
"""
Inference Module for mlcore

Features:
1. Pure tensor utilities (image conversion, normalization, softmax, NMS)
2. Abstract Model lifecycle with metrics and events
3. PyTorch interpreter with device negotiation
4. Model registry with single-flight loading and LRU cleanup
5. Vision result parsers and overlay drawing
6. Multi-model pipelines
"""

from . import tensor_utils
from .device import resolve_device, to_torch_device
from .model import Model
from .interpreter import TorchInterpreter, ReleaseScope, live_tensor_count
from .registry import (
    ModelRegistry, RegisteredModel, get_model_registry, reset_model_registry
)
from .tensor_utils import PreprocessGeometry, preprocess_geometry
from .vision_request import (
    parse_detections, parse_classification, parse_pose_landmarks,
    parse_hand_landmarks, parse_segmentation_mask,
    DetectionParser, ClassificationParser, PoseLandmarkParser,
    HandLandmarkParser, SegmentationParser,
    draw_detections, draw_landmarks,
    HAND_LANDMARK_NAMES, HAND_CONNECTIONS
)
from .visualizer import DetectionRenderer, LandmarkRenderer, hex_to_color
from .pipeline import Pipeline, PipelineStage, PipelineResult, PipelineBuilder

__all__ = [
    # Tensors
    'tensor_utils',
    'PreprocessGeometry',
    'preprocess_geometry',

    # Models
    'Model',
    'TorchInterpreter',
    'ReleaseScope',
    'live_tensor_count',
    'resolve_device',
    'to_torch_device',

    # Registry
    'ModelRegistry',
    'RegisteredModel',
    'get_model_registry',
    'reset_model_registry',

    # Vision
    'parse_detections',
    'parse_classification',
    'parse_pose_landmarks',
    'parse_hand_landmarks',
    'parse_segmentation_mask',
    'DetectionParser',
    'ClassificationParser',
    'PoseLandmarkParser',
    'HandLandmarkParser',
    'SegmentationParser',
    'draw_detections',
    'draw_landmarks',
    'HAND_LANDMARK_NAMES',
    'HAND_CONNECTIONS',
    'DetectionRenderer',
    'LandmarkRenderer',
    'hex_to_color',

    # Pipeline
    'Pipeline',
    'PipelineStage',
    'PipelineResult',
    'PipelineBuilder',
]
