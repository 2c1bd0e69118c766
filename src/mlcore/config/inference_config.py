"""
Pre/post-processing and visualization configuration for mlcore.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .base_config import BaseConfig


class ColorSpace(Enum):
    """Channel layout produced by image conversion."""
    RGB = "rgb"
    BGR = "bgr"
    GRAYSCALE = "grayscale"


class TensorLayout(Enum):
    """Dimension order of image tensors."""
    NHWC = "nhwc"
    NCHW = "nchw"


@dataclass
class PreprocessConfig(BaseConfig):
    """Configuration for converting a pixel source into a Tensor."""
    # Geometry
    resize: Optional[Tuple[int, int]] = None  # (width, height)
    pad_to_square: bool = False

    # Value range
    scale_to_unit: bool = True  # divide by 255
    mean: Optional[Tuple[float, ...]] = None
    std: Optional[Tuple[float, ...]] = None

    # Layout
    color_space: ColorSpace = ColorSpace.RGB
    layout: TensorLayout = TensorLayout.NHWC

    def __post_init__(self):
        if self.resize is not None:
            self.resize = tuple(int(v) for v in self.resize)
            if len(self.resize) != 2 or min(self.resize) <= 0:
                raise ValueError(f"resize must be a positive (width, height) pair, got {self.resize}")

        if (self.mean is None) != (self.std is None):
            raise ValueError("mean and std must be given together")

        if self.mean is not None:
            self.mean = tuple(float(v) for v in self.mean)
            self.std = tuple(float(v) for v in self.std)
            if len(self.mean) != len(self.std) or not self.mean:
                raise ValueError("mean and std must be non-empty and of equal length")
            if any(s == 0 for s in self.std):
                raise ValueError("std values must be non-zero")

    @property
    def normalize(self) -> bool:
        return self.mean is not None


@dataclass
class PostprocessConfig(BaseConfig):
    """Configuration for classification-style postprocessing."""
    top_k: int = 5
    apply_softmax: bool = True
    threshold: float = 0.0  # Drop results below this confidence

    def __post_init__(self):
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")


@dataclass
class DetectionConfig(BaseConfig):
    """Layout and thresholds for YOLO/SSD-style detection outputs."""
    num_classes: int = 80
    input_width: int = 640
    input_height: int = 640
    labels: Optional[List[str]] = None
    score_threshold: float = 0.5
    iou_threshold: float = 0.45

    def __post_init__(self):
        if self.num_classes <= 0:
            raise ValueError("num_classes must be positive")
        if self.input_width <= 0 or self.input_height <= 0:
            raise ValueError("input_width and input_height must be positive")


@dataclass
class LandmarkConfig(BaseConfig):
    """Layout for [x, y, z, visibility] landmark outputs."""
    num_landmarks: int = 33
    landmark_names: Optional[Sequence[str]] = None
    visibility_threshold: float = 0.5

    def __post_init__(self):
        if self.num_landmarks <= 0:
            raise ValueError("num_landmarks must be positive")


@dataclass
class DetectionDrawConfig(BaseConfig):
    """Styling for detection overlays."""
    box_color: str = "#00FF00"
    text_color: str = "#FFFFFF"
    line_width: int = 2
    font_size: int = 14
    show_labels: bool = True
    show_confidence: bool = True
    channel_order: str = "rgb"  # rgb or bgr, matching the target image


@dataclass
class LandmarkDrawConfig(BaseConfig):
    """Styling for landmark overlays."""
    point_color: str = "#FF0000"
    line_color: str = "#00FF00"
    point_radius: int = 4
    line_width: int = 2
    channel_order: str = "rgb"
