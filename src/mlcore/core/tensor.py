"""
Tensor value type for mlcore.

A Tensor is a flat, typed numpy buffer plus a shape descriptor. Tensors are
immutable by convention: every transform in tensor_utils returns a new Tensor.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ..config.base_config import DataType
from ..exceptions import ShapeError


@dataclass(frozen=True)
class TensorShape:
    """Dimensions and element type of a Tensor."""
    dims: Tuple[int, ...]
    data_type: DataType = DataType.FLOAT32

    def __post_init__(self):
        object.__setattr__(self, 'dims', tuple(int(d) for d in self.dims))

    @property
    def size(self) -> int:
        return int(np.prod(self.dims, dtype=np.int64)) if self.dims else 1

    @property
    def rank(self) -> int:
        return len(self.dims)


@dataclass(frozen=True)
class Tensor:
    """Typed numeric buffer with an explicit shape."""
    data: np.ndarray
    shape: TensorShape
    name: Optional[str] = None

    def __post_init__(self):
        data = np.asarray(self.data, dtype=self.shape.data_type.numpy_dtype).reshape(-1)
        if data.size != self.shape.size:
            raise ShapeError(
                f"Tensor data length {data.size} does not match shape {list(self.shape.dims)}",
                details={'length': int(data.size), 'dims': list(self.shape.dims)}
            )
        object.__setattr__(self, 'data', data)

    @property
    def dims(self) -> Tuple[int, ...]:
        return self.shape.dims

    @property
    def data_type(self) -> DataType:
        return self.shape.data_type

    @property
    def size(self) -> int:
        return int(self.data.size)

    def to_numpy(self) -> np.ndarray:
        """Return the buffer reshaped to the tensor dims (a view)."""
        return self.data.reshape(self.dims)

    def with_name(self, name: Optional[str]) -> 'Tensor':
        return Tensor(self.data, self.shape, name)

    @classmethod
    def from_numpy(cls, array: np.ndarray, name: Optional[str] = None,
                   data_type: Optional[DataType] = None) -> 'Tensor':
        """Build a Tensor from an n-d numpy array, copying the buffer."""
        array = np.asarray(array)
        data_type = data_type or DataType.from_numpy(array.dtype)
        data = np.array(array, dtype=data_type.numpy_dtype, copy=True).reshape(-1)
        return cls(data, TensorShape(array.shape, data_type), name)

    def __repr__(self) -> str:
        return (f"Tensor(name={self.name!r}, dims={list(self.dims)}, "
                f"data_type={self.data_type.value})")


@dataclass(frozen=True)
class ImageData:
    """Raw RGBA pixels, row-major, 4 bytes per pixel."""
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self):
        data = np.asarray(self.data, dtype=np.uint8).reshape(-1)
        if data.size != self.width * self.height * 4:
            raise ShapeError(
                f"ImageData of {self.width}x{self.height} needs {self.width * self.height * 4} bytes, "
                f"got {data.size}"
            )
        object.__setattr__(self, 'data', data)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> 'ImageData':
        """Build RGBA image data from an (H, W), (H, W, 3) or (H, W, 4) uint8 array."""
        pixels = np.asarray(pixels)
        if pixels.ndim == 2:
            pixels = np.repeat(pixels[:, :, None], 3, axis=2)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ShapeError(f"Unsupported pixel array shape: {pixels.shape}")
        height, width = pixels.shape[:2]
        if pixels.shape[2] == 3:
            alpha = np.full((height, width, 1), 255, dtype=np.uint8)
            pixels = np.concatenate([pixels.astype(np.uint8), alpha], axis=2)
        return cls(width, height, pixels.astype(np.uint8))

    def to_array(self) -> np.ndarray:
        """Return pixels as an (H, W, 4) array."""
        return self.data.reshape(self.height, self.width, 4)


def product(dims: Sequence[int]) -> int:
    """Number of elements described by dims."""
    total = 1
    for d in dims:
        total *= int(d)
    return total
