# src/mlcore/inference/tensor_utils.py
"""
Tensor Utilities for mlcore

Features:
1. Tensor construction from numbers, numpy arrays and pixel sources
2. Image preprocessing (resize, pad to square, normalization, colour space, layout)
3. Coordinate mapping from preprocessed tensors back to source images
4. Shape manipulation (reshape, N-d transpose)
5. Activations and ranking (softmax, top-K, argmax)
6. Box utilities (IoU, greedy non-maximum suppression)

Every function is pure: inputs are never written to, results are new Tensors.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from PIL import Image

from ..config.base_config import DataType
from ..config.inference_config import ColorSpace, PreprocessConfig, TensorLayout
from ..core.results import BoundingBox
from ..core.tensor import ImageData, Tensor, TensorShape, product
from ..exceptions import ShapeError

PixelSource = Union[np.ndarray, Image.Image, ImageData]

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def create_tensor(data, dims: Optional[Sequence[int]] = None,
                  data_type: DataType = DataType.FLOAT32,
                  name: Optional[str] = None) -> Tensor:
    """
    Create a tensor from various input types.

    ImageData is converted with from_image_data, PIL images with
    from_image_element. Numbers and numpy arrays become a tensor of the given
    dims (defaulting to the array shape, or [len] for flat sequences).

    Args:
        data: Numbers, numpy array, ImageData or PIL image
        dims: Target dimensions
        data_type: Element type for numeric data
        name: Optional tensor name

    Returns:
        New Tensor
    """
    if isinstance(data, ImageData):
        return from_image_data(data).with_name(name)

    if isinstance(data, Image.Image):
        return from_image_element(data).with_name(name)

    array = np.asarray(data, dtype=data_type.numpy_dtype)
    if dims is None:
        dims = array.shape if array.ndim > 0 else (1,)

    return Tensor(np.array(array, copy=True).reshape(-1), TensorShape(tuple(dims), data_type), name)


def from_image_data(image_data: ImageData, normalize: bool = True) -> Tensor:
    """
    Convert RGBA image data to a float32 tensor of shape [1, H, W, 3].

    Alpha is dropped; values are divided by 255 unless normalize is False.
    """
    rgb = image_data.to_array()[:, :, :3].astype(np.float32)
    if normalize:
        rgb /= 255.0

    return Tensor(rgb.reshape(-1), TensorShape((1, image_data.height, image_data.width, 3)))


@dataclass(frozen=True)
class PreprocessGeometry:
    """
    Affine mapping between source image and preprocessed tensor coordinates.

    tensor = source * scale + pad
    """
    scale_x: float
    scale_y: float
    pad_x: int
    pad_y: int
    output_width: int
    output_height: int

    def to_source(self, x: float, y: float) -> Tuple[float, float]:
        """Map a point in tensor coordinates back to the source image."""
        return ((x - self.pad_x) / self.scale_x, (y - self.pad_y) / self.scale_y)

    def box_to_source(self, box: BoundingBox) -> BoundingBox:
        """Map a corner-format box in tensor coordinates back to the source image."""
        x, y = self.to_source(box.x, box.y)
        return replace(box, x=x, y=y,
                       width=box.width / self.scale_x,
                       height=box.height / self.scale_y)


def preprocess_geometry(src_width: int, src_height: int,
                        config: Optional[PreprocessConfig] = None) -> PreprocessGeometry:
    """
    Compute the geometry from_image_element applies to a source of the given size.

    Resize happens first, then the (resized) image is centred on a square
    zero canvas when pad_to_square is set.
    """
    config = config or PreprocessConfig()
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Invalid source size: {src_width}x{src_height}")

    width, height = config.resize if config.resize else (src_width, src_height)
    pad_x = pad_y = 0
    output_width, output_height = width, height

    if config.pad_to_square:
        side = max(width, height)
        pad_x = (side - width) // 2
        pad_y = (side - height) // 2
        output_width = output_height = side

    return PreprocessGeometry(
        scale_x=width / src_width,
        scale_y=height / src_height,
        pad_x=pad_x,
        pad_y=pad_y,
        output_width=output_width,
        output_height=output_height,
    )


def from_image_element(source: PixelSource,
                       config: Optional[PreprocessConfig] = None) -> Tensor:
    """
    Convert a pixel source to a float32 tensor.

    Steps, in order:
        1. Resize to config.resize (bilinear)
        2. Pad to square, centred on a zero canvas
        3. Scale to [0, 1]
        4. Mean/std normalization
        5. Colour space conversion
        6. Layout (NHWC or NCHW)

    Args:
        source: numpy array (H, W), (H, W, 3) RGB or (H, W, 4) RGBA,
            PIL image or ImageData. Float arrays whose values are all
            <= 1 are taken as [0, 1] intensities
        config: Preprocessing configuration

    Returns:
        Tensor of shape [1, H, W, C] or [1, C, H, W]
    """
    config = config or PreprocessConfig()
    rgb = _to_rgb_array(source)
    src_height, src_width = rgb.shape[:2]
    geometry = preprocess_geometry(src_width, src_height, config)

    if config.resize and config.resize != (src_width, src_height):
        rgb = cv2.resize(rgb, config.resize, interpolation=cv2.INTER_LINEAR)

    if config.pad_to_square:
        canvas = np.zeros((geometry.output_height, geometry.output_width, 3), dtype=np.uint8)
        height, width = rgb.shape[:2]
        canvas[geometry.pad_y:geometry.pad_y + height, geometry.pad_x:geometry.pad_x + width] = rgb
        rgb = canvas

    pixels = rgb.astype(np.float32)
    if config.scale_to_unit:
        pixels /= 255.0

    tensor = Tensor(pixels.reshape(-1), TensorShape((1,) + pixels.shape))

    if config.normalize:
        tensor = normalize(tensor, config.mean, config.std)

    if config.color_space == ColorSpace.BGR:
        tensor = rgb_to_bgr(tensor)
    elif config.color_space == ColorSpace.GRAYSCALE:
        tensor = to_grayscale(tensor)

    if config.layout == TensorLayout.NCHW:
        tensor = transpose(tensor, (0, 3, 1, 2))

    return tensor


def _to_rgb_array(source: PixelSource) -> np.ndarray:
    """Convert any supported pixel source to an (H, W, 3) uint8 array."""
    if isinstance(source, ImageData):
        return np.ascontiguousarray(source.to_array()[:, :, :3])

    if isinstance(source, Image.Image):
        return np.asarray(source.convert('RGB'), dtype=np.uint8)

    pixels = np.asarray(source)
    if pixels.dtype != np.uint8:
        # Float images already in [0, 1]
        if np.issubdtype(pixels.dtype, np.floating) and pixels.size and pixels.max() <= 1.0:
            pixels = np.rint(pixels * 255.0)
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)

    if pixels.ndim == 2:
        return cv2.cvtColor(pixels, cv2.COLOR_GRAY2RGB)
    if pixels.ndim == 3 and pixels.shape[2] == 3:
        return pixels
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return np.ascontiguousarray(pixels[:, :, :3])

    raise ShapeError(f"Unsupported pixel array shape: {pixels.shape}")


def normalize(tensor: Tensor, mean: Sequence[float], std: Sequence[float]) -> Tensor:
    """
    Normalize per channel: (x - mean[c]) / std[c] with c = i % len(mean).

    Raises:
        ValueError: If mean/std are empty or of different length, or the
            element count is not a multiple of the channel count
    """
    if not mean or len(mean) != len(std):
        raise ValueError("mean and std must be non-empty and of equal length")

    channels = len(mean)
    if tensor.size % channels != 0:
        raise ValueError(
            f"Tensor of size {tensor.size} is not divisible into {channels} channels"
        )

    data = tensor.data.astype(np.float32).reshape(-1, channels)
    normalized = (data - np.asarray(mean, dtype=np.float32)) / np.asarray(std, dtype=np.float32)

    return Tensor(normalized.reshape(-1), TensorShape(tensor.dims, DataType.FLOAT32), tensor.name)


def rgb_to_bgr(tensor: Tensor) -> Tensor:
    """Swap the first and third channel of every interleaved RGB triple."""
    if tensor.size % 3 != 0:
        raise ShapeError(f"Tensor of size {tensor.size} is not interleaved RGB")

    swapped = tensor.data.reshape(-1, 3)[:, ::-1]
    return Tensor(np.ascontiguousarray(swapped).reshape(-1), tensor.shape, tensor.name)


def to_grayscale(tensor: Tensor) -> Tensor:
    """Convert a [B, H, W, 3] RGB tensor to [B, H, W, 1] luma."""
    dims = tensor.dims
    if len(dims) != 4 or dims[3] != 3:
        raise ShapeError(f"Expected [batch, height, width, 3] tensor, got {list(dims)}")

    rgb = tensor.data.astype(np.float32).reshape(-1, 3)
    gray = rgb @ np.asarray(LUMA_WEIGHTS, dtype=np.float32)

    return Tensor(gray, TensorShape((dims[0], dims[1], dims[2], 1), DataType.FLOAT32), tensor.name)


def reshape(tensor: Tensor, dims: Sequence[int]) -> Tensor:
    """Reinterpret the buffer with new dims of equal element count."""
    dims = tuple(int(d) for d in dims)
    if product(dims) != tensor.size:
        raise ShapeError(
            f"Cannot reshape tensor of size {tensor.size} to shape {list(dims)}",
            details={'size': tensor.size, 'dims': list(dims)}
        )

    return Tensor(tensor.data, TensorShape(dims, tensor.data_type), tensor.name)


def transpose(tensor: Tensor, perm: Sequence[int]) -> Tensor:
    """
    Permute tensor dimensions: new_dims[i] = dims[perm[i]].

    Works for any rank, e.g. (0, 3, 1, 2) for NHWC -> NCHW.
    """
    perm = tuple(int(p) for p in perm)
    if len(perm) != len(tensor.dims):
        raise ShapeError(
            f"Permutation {list(perm)} must have same length as tensor dimensions {list(tensor.dims)}"
        )
    if sorted(perm) != list(range(len(perm))):
        raise ShapeError(f"{list(perm)} is not a permutation of {len(perm)} axes")

    permuted = np.transpose(tensor.to_numpy(), perm)
    return Tensor(np.ascontiguousarray(permuted).reshape(-1),
                  TensorShape(permuted.shape, tensor.data_type), tensor.name)


def inverse_permutation(perm: Sequence[int]) -> Tuple[int, ...]:
    """Permutation that undoes perm under transpose."""
    return tuple(int(i) for i in np.argsort(np.asarray(perm)))


def softmax(tensor: Tensor) -> Tensor:
    """Numerically stable softmax over the whole flat buffer."""
    if tensor.size == 0:
        return Tensor(np.zeros(0, dtype=np.float32), TensorShape(tensor.dims), tensor.name)

    data = tensor.data.astype(np.float64)
    exp = np.exp(data - data.max())
    probs = exp / exp.sum()

    return Tensor(probs.astype(np.float32), TensorShape(tensor.dims, DataType.FLOAT32), tensor.name)


def top_k(tensor: Tensor, k: int) -> Tuple[List[int], List[float]]:
    """
    Indices and values of the k largest elements, descending.

    Equal values keep their original relative order.
    """
    if k <= 0:
        return [], []

    order = np.argsort(-tensor.data.astype(np.float64), kind='stable')[:k]
    return [int(i) for i in order], [float(tensor.data[i]) for i in order]


def argmax(tensor: Tensor) -> int:
    """Index of the maximum element; the first occurrence wins."""
    if tensor.size == 0:
        raise ShapeError("argmax of an empty tensor")
    return int(np.argmax(tensor.data))


def iou(box_a: Sequence[float], box_b: Sequence[float]) -> float:
    """
    Intersection over union of two corner boxes [x1, y1, x2, y2].

    Returns 0 when the union is empty.
    """
    x1_a, y1_a, x2_a, y2_a = box_a
    x1_b, y1_b, x2_b, y2_b = box_b

    # Intersection
    inter_width = max(0.0, min(x2_a, x2_b) - max(x1_a, x1_b))
    inter_height = max(0.0, min(y2_a, y2_b) - max(y1_a, y1_b))
    inter_area = inter_width * inter_height

    # Union
    area_a = (x2_a - x1_a) * (y2_a - y1_a)
    area_b = (x2_b - x1_b) * (y2_b - y1_b)
    union_area = area_a + area_b - inter_area

    return float(inter_area / union_area) if union_area > 0 else 0.0


def nms(boxes: Sequence[Sequence[float]], scores: Sequence[float],
        iou_threshold: float, score_threshold: float) -> List[int]:
    """
    Greedy non-maximum suppression.

    Args:
        boxes: Corner boxes [x1, y1, x2, y2]
        scores: One score per box
        iou_threshold: Suppress candidates whose IoU with a kept box exceeds this
        score_threshold: Ignore boxes scoring below this

    Returns:
        Indices into boxes, highest score first
    """
    if len(boxes) != len(scores):
        raise ValueError(f"Got {len(boxes)} boxes but {len(scores)} scores")

    scores = np.asarray(scores, dtype=np.float64)
    candidates = [int(i) for i in np.argsort(-scores, kind='stable')
                  if scores[i] >= score_threshold]

    selected = []
    while candidates:
        best = candidates.pop(0)
        selected.append(best)

        # Remove boxes with high IoU
        candidates = [i for i in candidates
                      if iou(boxes[best], boxes[i]) <= iou_threshold]

    return selected
