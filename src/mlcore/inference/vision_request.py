# src/mlcore/inference/vision_request.py
"""
Vision Requests: parsers from raw output tensors to typed results.

Features:
1. YOLO/SSD-style detection decoding with greedy NMS
2. Classification top-K with optional softmax
3. Pose landmarks and the 21-point hand topology
4. Per-pixel argmax segmentation masks
5. Parser callables usable as TorchInterpreter parsers
6. Overlay drawing entry points

Parsers are stateless and check tensor sizes before reading, raising
ShapeError for tensors too small for the declared layout.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..config.inference_config import (
    DetectionConfig, DetectionDrawConfig, LandmarkConfig, LandmarkDrawConfig,
    PostprocessConfig
)
from ..core.results import (
    BoundingBox, ClassificationResult, Classifications, Detections, Landmark,
    Landmarks, SegmentationMask
)
from ..core.tensor import Tensor
from ..exceptions import ShapeError
from . import tensor_utils
from .visualizer import DetectionRenderer, LandmarkRenderer

# [cx, cy, w, h, objectness]
DETECTION_BOX_FIELDS = 5
LANDMARK_STRIDE = 4

HAND_LANDMARK_NAMES = (
    'wrist',
    'thumb_cmc', 'thumb_mcp', 'thumb_ip', 'thumb_tip',
    'index_mcp', 'index_pip', 'index_dip', 'index_tip',
    'middle_mcp', 'middle_pip', 'middle_dip', 'middle_tip',
    'ring_mcp', 'ring_pip', 'ring_dip', 'ring_tip',
    'pinky_mcp', 'pinky_pip', 'pinky_dip', 'pinky_tip',
)

HAND_CONNECTIONS = (
    # Thumb
    (0, 1), (1, 2), (2, 3), (3, 4),
    # Index
    (0, 5), (5, 6), (6, 7), (7, 8),
    # Middle
    (5, 9), (9, 10), (10, 11), (11, 12),
    # Ring
    (9, 13), (13, 14), (14, 15), (15, 16),
    # Pinky and palm base
    (13, 17), (0, 17), (17, 18), (18, 19), (19, 20),
)


def _require_size(output: Tensor, needed: int, layout: str):
    if output.size < needed:
        raise ShapeError(
            f"{layout} needs {needed} values, tensor {list(output.dims)} has {output.size}",
            details={'needed': needed, 'size': output.size, 'dims': list(output.dims)}
        )


def parse_detections(output: Tensor, config: Optional[DetectionConfig] = None) -> Detections:
    """
    Decode detection rows [cx, cy, w, h, objectness, class_0 .. class_N].

    Coordinates are normalized (0-1) and scaled by the configured input size.
    Rows are kept when objectness and objectness * best class score both reach
    score_threshold. Greedy NMS runs when iou_threshold < 1.

    Args:
        output: Tensor of shape [batch, num_detections, 5 + num_classes] or flat rows
        config: Layout and thresholds

    Returns:
        Detections in confidence order (row order when NMS is disabled)
    """
    config = config or DetectionConfig()
    stride = DETECTION_BOX_FIELDS + config.num_classes

    if output.shape.rank == 3:
        if output.dims[2] != stride:
            raise ShapeError(
                f"Detection rows of width {output.dims[2]} do not match "
                f"{DETECTION_BOX_FIELDS} box fields + {config.num_classes} classes",
                details={'dims': list(output.dims), 'stride': stride}
            )
        num_detections = output.dims[1]
    else:
        num_detections = output.size // stride
    _require_size(output, num_detections * stride, f"{num_detections} detections of stride {stride}")

    rows = output.data[:num_detections * stride].astype(np.float64).reshape(num_detections, stride)
    boxes = []

    for row in rows:
        objectness = row[4]
        if objectness < config.score_threshold:
            continue

        # Best class; scores <= 0 never win
        class_scores = row[DETECTION_BOX_FIELDS:]
        best_index = int(np.argmax(class_scores))
        best_score = float(class_scores[best_index])
        if best_score <= 0:
            best_index, best_score = 0, 0.0

        confidence = float(objectness * best_score)
        if confidence < config.score_threshold:
            continue

        cx, cy, w, h = (float(v) for v in row[:4])
        labels = config.labels
        boxes.append(BoundingBox(
            x=(cx - w / 2) * config.input_width,
            y=(cy - h / 2) * config.input_height,
            width=w * config.input_width,
            height=h * config.input_height,
            confidence=confidence,
            label=labels[best_index] if labels and best_index < len(labels) else None,
            label_index=best_index,
        ))

    if config.iou_threshold < 1 and boxes:
        keep = tensor_utils.nms(
            [box.corners for box in boxes],
            [box.confidence for box in boxes],
            config.iou_threshold,
            float('-inf'),
        )
        boxes = [boxes[i] for i in keep]

    return Detections(tuple(boxes))


def parse_classification(output: Tensor, labels: Optional[Sequence[str]] = None,
                         top_k: int = 5, apply_softmax: bool = True,
                         threshold: float = 0.0) -> Classifications:
    """
    Top-K classification results, labelled 'class_{index}' without a label list.

    Results below threshold are dropped.
    """
    _require_size(output, 1, "Classification")
    scores = tensor_utils.softmax(output) if apply_softmax else output
    indices, values = tensor_utils.top_k(scores, top_k)

    results = []
    for index, value in zip(indices, values):
        if value < threshold:
            continue
        label = labels[index] if labels and index < len(labels) and labels[index] else f"class_{index}"
        results.append(ClassificationResult(label=label, confidence=value, index=index))

    return Classifications(tuple(results))


def parse_pose_landmarks(output: Tensor, config: Optional[LandmarkConfig] = None) -> Landmarks:
    """
    Decode stride-4 [x, y, z, visibility] landmarks.

    Landmarks below the visibility threshold are dropped.
    """
    config = config or LandmarkConfig()
    _require_size(output, config.num_landmarks * LANDMARK_STRIDE,
                  f"{config.num_landmarks} landmarks")

    names = config.landmark_names
    values = output.data[:config.num_landmarks * LANDMARK_STRIDE].astype(np.float64)
    landmarks = []

    for i, (x, y, z, visibility) in enumerate(values.reshape(-1, LANDMARK_STRIDE)):
        if visibility < config.visibility_threshold:
            continue
        landmarks.append(Landmark(
            x=float(x), y=float(y), z=float(z),
            visibility=float(visibility),
            name=names[i] if names and i < len(names) else None,
        ))

    return Landmarks(tuple(landmarks))


def parse_hand_landmarks(output: Tensor) -> Landmarks:
    """Decode the 21 named hand joints; every joint is kept."""
    return parse_pose_landmarks(output, LandmarkConfig(
        num_landmarks=len(HAND_LANDMARK_NAMES),
        landmark_names=HAND_LANDMARK_NAMES,
        visibility_threshold=0.0,
    ))


def parse_segmentation_mask(output: Tensor, width: int, height: int) -> SegmentationMask:
    """
    Per-pixel argmax over the last dimension (class scores).

    Ties resolve to the lowest class id.
    """
    num_classes = output.dims[-1] if output.dims and output.dims[-1] > 0 else 1
    num_pixels = width * height
    _require_size(output, num_pixels * num_classes, f"{width}x{height} mask of {num_classes} classes")

    scores = output.data[:num_pixels * num_classes].reshape(num_pixels, num_classes)
    mask = np.argmax(scores, axis=1).astype(np.uint8)

    return SegmentationMask(data=mask, width=width, height=height, num_classes=num_classes)


def _select_output(outputs: Dict[str, Tensor], output_name: Optional[str]) -> Tensor:
    """Pick the named output, or the first one."""
    if not outputs:
        raise ShapeError("Model produced no outputs")
    if output_name is None:
        return next(iter(outputs.values()))
    if output_name not in outputs:
        raise ShapeError(f"Output '{output_name}' not found in {list(outputs)}")
    return outputs[output_name]


class DetectionParser:
    """Interpreter parser producing Detections."""
    result_type = Detections

    def __init__(self, config: Optional[DetectionConfig] = None, output_name: Optional[str] = None):
        self.config = config or DetectionConfig()
        self.output_name = output_name

    def __call__(self, outputs: Dict[str, Tensor]) -> Detections:
        return parse_detections(_select_output(outputs, self.output_name), self.config)


class ClassificationParser:
    """Interpreter parser producing Classifications."""
    result_type = Classifications

    def __init__(self, labels: Optional[Sequence[str]] = None,
                 config: Optional[PostprocessConfig] = None,
                 output_name: Optional[str] = None):
        self.labels = labels
        self.config = config or PostprocessConfig()
        self.output_name = output_name

    def __call__(self, outputs: Dict[str, Tensor]) -> Classifications:
        return parse_classification(
            _select_output(outputs, self.output_name),
            labels=self.labels,
            top_k=self.config.top_k,
            apply_softmax=self.config.apply_softmax,
            threshold=self.config.threshold,
        )


class PoseLandmarkParser:
    """Interpreter parser producing pose Landmarks."""
    result_type = Landmarks

    def __init__(self, config: Optional[LandmarkConfig] = None, output_name: Optional[str] = None):
        self.config = config or LandmarkConfig()
        self.output_name = output_name

    def __call__(self, outputs: Dict[str, Tensor]) -> Landmarks:
        return parse_pose_landmarks(_select_output(outputs, self.output_name), self.config)


class HandLandmarkParser:
    """Interpreter parser producing the 21 hand Landmarks."""
    result_type = Landmarks

    def __init__(self, output_name: Optional[str] = None):
        self.output_name = output_name

    def __call__(self, outputs: Dict[str, Tensor]) -> Landmarks:
        return parse_hand_landmarks(_select_output(outputs, self.output_name))


class SegmentationParser:
    """Interpreter parser producing a SegmentationMask."""
    result_type = SegmentationMask

    def __init__(self, width: int, height: int, output_name: Optional[str] = None):
        self.width = width
        self.height = height
        self.output_name = output_name

    def __call__(self, outputs: Dict[str, Tensor]) -> SegmentationMask:
        return parse_segmentation_mask(
            _select_output(outputs, self.output_name), self.width, self.height
        )


def draw_detections(image: np.ndarray,
                    detections: Union[Detections, Iterable[BoundingBox]],
                    config: Optional[DetectionDrawConfig] = None) -> np.ndarray:
    """Draw boxes and label plates onto image in place; returns image."""
    return DetectionRenderer(config).draw(image, detections)


def draw_landmarks(image: np.ndarray,
                   landmarks: Union[Landmarks, Sequence[Landmark]],
                   connections: Iterable[Tuple[int, int]] = (),
                   config: Optional[LandmarkDrawConfig] = None) -> np.ndarray:
    """Draw connection lines then points onto image in place; returns image."""
    points: List[Landmark] = list(landmarks)
    return LandmarkRenderer(config).draw(image, points, connections)
