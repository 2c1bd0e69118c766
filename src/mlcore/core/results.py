"""
Vision result value types.

Parsers in vision_request produce these fresh for every frame. The parsed
variants (Detections, Classifications, Landmarks, SegmentationMask,
RawOutputs) form the closed set of outputs a pipeline stage can produce.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from .tensor import Tensor


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in corner format (x, y = top-left)."""
    x: float
    y: float
    width: float
    height: float
    confidence: float
    label: Optional[str] = None
    label_index: Optional[int] = None

    @property
    def corners(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class Landmark:
    """Single labeled keypoint."""
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ClassificationResult:
    label: str
    confidence: float
    index: int


@dataclass(frozen=True)
class SegmentationMask:
    """Per-pixel class ids, row-major, one byte per pixel."""
    data: np.ndarray
    width: int
    height: int
    num_classes: int

    def to_array(self) -> np.ndarray:
        return self.data.reshape(self.height, self.width)


@dataclass(frozen=True)
class Detections:
    boxes: Tuple[BoundingBox, ...]

    def __len__(self) -> int:
        return len(self.boxes)

    def __iter__(self):
        return iter(self.boxes)


@dataclass(frozen=True)
class Classifications:
    results: Tuple[ClassificationResult, ...]

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    @property
    def top(self) -> Optional[ClassificationResult]:
        return self.results[0] if self.results else None


@dataclass(frozen=True)
class Landmarks:
    landmarks: Tuple[Landmark, ...]

    def __len__(self) -> int:
        return len(self.landmarks)

    def __iter__(self):
        return iter(self.landmarks)

    def by_name(self, name: str) -> Optional[Landmark]:
        for landmark in self.landmarks:
            if landmark.name == name:
                return landmark
        return None


@dataclass(frozen=True)
class RawOutputs:
    """Unparsed output tensors, in output order."""
    tensors: Tuple[Tensor, ...]

    def __len__(self) -> int:
        return len(self.tensors)

    def __iter__(self):
        return iter(self.tensors)


ParsedOutput = Union[Detections, Classifications, Landmarks, SegmentationMask, RawOutputs]