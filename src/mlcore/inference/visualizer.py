# src/mlcore/inference/visualizer.py
"""
Overlay rendering for vision results.

Features:
1. Detection boxes with filled label plates
2. Landmark skeletons (connection lines under filled points)
3. '#RRGGBB' colour parsing for RGB, BGR and RGBA images

Drawing happens in place on uint8 numpy images with OpenCV.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..config.inference_config import DetectionDrawConfig, LandmarkDrawConfig
from ..core.results import BoundingBox, Landmark

logger = logging.getLogger(__name__)

FONT = cv2.FONT_HERSHEY_SIMPLEX
# Pixel height of FONT glyphs at scale 1.0
FONT_BASE_HEIGHT = 22


def hex_to_color(hex_color: str, channel_order: str = "rgb",
                 channels: int = 3) -> Tuple[int, ...]:
    """
    Convert '#RRGGBB' to a colour tuple for an image of the given layout.

    Args:
        hex_color: Colour string, with or without leading '#'
        channel_order: 'rgb' or 'bgr'
        channels: 1, 3 or 4 image channels (alpha is set opaque)
    """
    value = hex_color.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Invalid colour '{hex_color}', expected #RRGGBB")
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ValueError(f"Invalid colour '{hex_color}', expected #RRGGBB") from None

    if channels == 1:
        return (int(round(0.299 * r + 0.587 * g + 0.114 * b)),)

    order = channel_order.lower()
    if order == "rgb":
        color = (r, g, b)
    elif order == "bgr":
        color = (b, g, r)
    else:
        raise ValueError(f"Unknown channel order '{channel_order}'")

    return color + (255,) if channels == 4 else color


def format_label(box: BoundingBox, show_labels: bool = True,
                 show_confidence: bool = True) -> str:
    """Label plate text, e.g. 'person 87.5%'."""
    parts = []
    if show_labels and box.label:
        parts.append(box.label)
    if show_confidence:
        parts.append(f"{box.confidence * 100:.1f}%")
    return " ".join(parts)


def _channels(image: np.ndarray) -> int:
    if image.ndim == 2:
        return 1
    if image.ndim == 3 and image.shape[2] in (3, 4):
        return image.shape[2]
    raise ValueError(f"Unsupported image shape for drawing: {image.shape}")


class DetectionRenderer:
    """Draws detection boxes with optional label/confidence plates."""

    def __init__(self, config: Optional[DetectionDrawConfig] = None):
        self.config = config or DetectionDrawConfig()
        self.font_scale = self.config.font_size / FONT_BASE_HEIGHT

    def draw(self, image: np.ndarray, detections: Iterable[BoundingBox]) -> np.ndarray:
        channels = _channels(image)
        box_color = hex_to_color(self.config.box_color, self.config.channel_order, channels)
        text_color = hex_to_color(self.config.text_color, self.config.channel_order, channels)
        font_size = self.config.font_size

        for det in detections:
            x1, y1 = int(round(det.x)), int(round(det.y))
            x2, y2 = int(round(det.x + det.width)), int(round(det.y + det.height))

            cv2.rectangle(image, (x1, y1), (x2, y2), box_color, self.config.line_width)

            if not (self.config.show_labels or self.config.show_confidence):
                continue

            text = format_label(det, self.config.show_labels, self.config.show_confidence)
            (text_width, _), _ = cv2.getTextSize(text, FONT, self.font_scale, 1)

            # Plate sits directly above the box
            plate_top = y1 - font_size - 4
            cv2.rectangle(image, (x1, plate_top), (x1 + text_width + 8, y1),
                          box_color, cv2.FILLED)
            cv2.putText(image, text, (x1 + 4, y1 - 4), FONT, self.font_scale,
                        text_color, 1, cv2.LINE_AA)

        return image


class LandmarkRenderer:
    """Draws landmark points and the skeleton connecting them."""

    def __init__(self, config: Optional[LandmarkDrawConfig] = None):
        self.config = config or LandmarkDrawConfig()

    def draw(self, image: np.ndarray, landmarks: Sequence[Landmark],
             connections: Iterable[Tuple[int, int]] = ()) -> np.ndarray:
        channels = _channels(image)
        point_color = hex_to_color(self.config.point_color, self.config.channel_order, channels)
        line_color = hex_to_color(self.config.line_color, self.config.channel_order, channels)

        for i, j in connections:
            if 0 <= i < len(landmarks) and 0 <= j < len(landmarks):
                start = (int(round(landmarks[i].x)), int(round(landmarks[i].y)))
                end = (int(round(landmarks[j].x)), int(round(landmarks[j].y)))
                cv2.line(image, start, end, line_color, self.config.line_width, cv2.LINE_AA)

        for lm in landmarks:
            center = (int(round(lm.x)), int(round(lm.y)))
            cv2.circle(image, center, self.config.point_radius, point_color, cv2.FILLED, cv2.LINE_AA)

        return image
