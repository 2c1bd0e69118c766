#!/usr/bin/env python3
"""
Test suite for tensor utilities.
Tests include:
1. Tensor construction and shape validation
2. Image conversion (ImageData, numpy, PIL) and preprocessing geometry
3. Normalization and colour space conversion
4. Reshape and N-d transpose
5. Softmax, top-K and argmax
6. IoU and non-maximum suppression
"""

import numpy as np
import pytest
from PIL import Image

from mlcore.config import ColorSpace, DataType, PreprocessConfig, TensorLayout
from mlcore.core.results import BoundingBox
from mlcore.core.tensor import ImageData, Tensor, TensorShape
from mlcore.exceptions import ShapeError
from mlcore.inference import tensor_utils
from mlcore.inference.tensor_utils import (
    argmax, create_tensor, from_image_data, from_image_element, inverse_permutation,
    iou, nms, normalize, preprocess_geometry, reshape, rgb_to_bgr, softmax,
    to_grayscale, top_k, transpose
)

from . import create_test_image, run_test_classes


class TestTensorConstruction:
    """Test Tensor and create_tensor."""

    def test_length_must_match_dims(self):
        """Test that data length is checked against the shape."""
        with pytest.raises(ShapeError):
            Tensor(np.zeros(5, dtype=np.float32), TensorShape((2, 3)))

        tensor = Tensor(np.zeros(6, dtype=np.float32), TensorShape((2, 3)))
        assert tensor.size == 6
        assert tensor.dims == (2, 3)
        print("✓ Length check passed")

    def test_create_from_list(self):
        """Test creating a flat tensor from numbers."""
        tensor = create_tensor([1, 2, 3, 4])

        assert tensor.dims == (4,)
        assert tensor.data_type == DataType.FLOAT32
        assert tensor.data.dtype == np.float32
        print("✓ List construction passed")

    def test_create_with_dims_and_type(self):
        """Test explicit dims and integer data type."""
        tensor = create_tensor(range(6), dims=[2, 3], data_type=DataType.INT32, name="ids")

        assert tensor.dims == (2, 3)
        assert tensor.data.dtype == np.int32
        assert tensor.name == "ids"
        np.testing.assert_array_equal(tensor.to_numpy()[1], [3, 4, 5])

        with pytest.raises(ShapeError):
            create_tensor(range(6), dims=[4, 2])
        print("✓ Explicit dims passed")

    def test_create_does_not_alias_input(self):
        """Test that the tensor owns a copy of the data."""
        source = np.ones(4, dtype=np.float32)
        tensor = create_tensor(source)
        source[0] = 42

        assert tensor.data[0] == 1.0
        print("✓ Copy semantics passed")

    def test_from_numpy_dtype_mapping(self):
        """Test numpy dtypes mapping onto tensor data types."""
        assert Tensor.from_numpy(np.zeros((2, 2), dtype=np.float64)).data_type == DataType.FLOAT32
        assert Tensor.from_numpy(np.zeros(3, dtype=np.int64)).data_type == DataType.INT32
        assert Tensor.from_numpy(np.zeros(3, dtype=np.uint8)).data_type == DataType.UINT8
        assert Tensor.from_numpy(np.zeros(3, dtype=bool)).data_type == DataType.UINT8
        print("✓ Dtype mapping passed")


class TestImageConversion:
    """Test pixel source conversion."""

    def setup_method(self):
        # 2x2 RGBA: red, green / blue, white
        pixels = np.array([
            [[255, 0, 0, 255], [0, 255, 0, 255]],
            [[0, 0, 255, 255], [255, 255, 255, 128]],
        ], dtype=np.uint8)
        self.image_data = ImageData(width=2, height=2, data=pixels)

    def test_from_image_data(self):
        """Test RGBA image data -> [1, H, W, 3] in [0, 1]."""
        tensor = from_image_data(self.image_data)

        assert tensor.dims == (1, 2, 2, 3)
        array = tensor.to_numpy()
        np.testing.assert_allclose(array[0, 0, 0], [1.0, 0.0, 0.0])
        np.testing.assert_allclose(array[0, 1, 1], [1.0, 1.0, 1.0])
        assert array.min() >= 0.0 and array.max() <= 1.0
        print("✓ ImageData conversion passed")

    def test_from_image_data_without_normalization(self):
        tensor = from_image_data(self.image_data, normalize=False)

        assert tensor.to_numpy()[0, 0, 1, 1] == 255.0
        print("✓ Unnormalized conversion passed")

    def test_image_data_size_check(self):
        with pytest.raises(ShapeError):
            ImageData(width=2, height=2, data=np.zeros(15, dtype=np.uint8))
        print("✓ ImageData size check passed")

    def test_create_tensor_dispatches_images(self):
        """Test create_tensor on ImageData and PIL images."""
        tensor = create_tensor(self.image_data, name="pixels")
        assert tensor.dims == (1, 2, 2, 3)
        assert tensor.name == "pixels"

        pil_image = Image.fromarray(create_test_image(width=5, height=4))
        tensor = create_tensor(pil_image)
        assert tensor.dims == (1, 4, 5, 3)
        print("✓ Image dispatch passed")

    def test_resize_and_nchw_layout(self):
        """Test resize followed by NCHW transposition."""
        config = PreprocessConfig(resize=(8, 6), layout=TensorLayout.NCHW)
        tensor = from_image_element(create_test_image(width=32, height=24), config)

        assert tensor.dims == (1, 3, 6, 8)
        print("✓ Resize + NCHW passed")

    def test_pad_to_square_centres_image(self):
        """Test that a wide image is centred on a zero canvas."""
        image = np.full((2, 6, 3), 255, dtype=np.uint8)
        tensor = from_image_element(image, PreprocessConfig(pad_to_square=True))
        array = tensor.to_numpy()[0]

        assert tensor.dims == (1, 6, 6, 3)
        # Rows 0-1 and 4-5 are padding, rows 2-3 hold the image
        assert array[:2].max() == 0.0
        assert array[4:].max() == 0.0
        assert array[2:4].min() == 1.0
        print("✓ Pad to square passed")

    def test_geometry_maps_back_to_source(self):
        """Test that preprocess geometry inverts resize and padding."""
        config = PreprocessConfig(resize=(100, 50), pad_to_square=True)
        geometry = preprocess_geometry(200, 100, config)

        assert (geometry.output_width, geometry.output_height) == (100, 100)
        assert geometry.pad_x == 0 and geometry.pad_y == 25

        x, y = geometry.to_source(50, 50)
        assert x == pytest.approx(100.0)
        assert y == pytest.approx(50.0)

        box = BoundingBox(x=10, y=35, width=20, height=10, confidence=0.9)
        mapped = geometry.box_to_source(box)
        assert mapped.x == pytest.approx(20.0)
        assert mapped.y == pytest.approx(20.0)
        assert mapped.width == pytest.approx(40.0)
        assert mapped.height == pytest.approx(20.0)
        assert mapped.confidence == 0.9
        print("✓ Geometry inversion passed")

    def test_mean_std_normalization(self):
        config = PreprocessConfig(mean=(0.5, 0.5, 0.5), std=(0.5, 0.5, 0.5))
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        tensor = from_image_element(image, config)

        np.testing.assert_allclose(tensor.data, -1.0)
        print("✓ Mean/std normalization passed")

    def test_bgr_and_grayscale(self):
        """Test colour space conversion."""
        image = np.zeros((1, 1, 3), dtype=np.uint8)
        image[0, 0] = (255, 0, 0)

        bgr = from_image_element(image, PreprocessConfig(color_space=ColorSpace.BGR))
        np.testing.assert_allclose(bgr.data, [0.0, 0.0, 1.0])

        gray = from_image_element(image, PreprocessConfig(color_space=ColorSpace.GRAYSCALE))
        assert gray.dims == (1, 1, 1, 1)
        assert gray.data[0] == pytest.approx(0.299, abs=1e-5)
        print("✓ Colour space conversion passed")

    def test_float_pixels_in_unit_range(self):
        """Test float arrays in [0, 1] keep their intensity."""
        tensor = from_image_element(np.full((2, 2, 3), 0.5, dtype=np.float32))

        assert tensor.dims == (1, 2, 2, 3)
        np.testing.assert_allclose(tensor.data, 0.5, atol=1.0 / 255)

        tensor = from_image_element(np.full((2, 2, 3), 200.0, dtype=np.float64))
        np.testing.assert_allclose(tensor.data, 200.0 / 255, atol=1e-6)
        print("✓ Float pixel scaling passed")

    def test_unsupported_pixel_array(self):
        with pytest.raises(ShapeError):
            from_image_element(np.zeros((4, 4, 2), dtype=np.uint8))
        print("✓ Unsupported array rejected")

    def test_inputs_are_not_mutated(self):
        image = create_test_image(width=8, height=8)
        before = image.copy()
        from_image_element(image, PreprocessConfig(resize=(4, 4), pad_to_square=True))

        np.testing.assert_array_equal(image, before)
        print("✓ Input left untouched")


class TestChannelOps:
    """Test normalize, rgb_to_bgr and to_grayscale."""

    def test_normalize_cycles_channels(self):
        tensor = create_tensor([1, 2, 3, 4, 5, 6])
        result = normalize(tensor, mean=[1, 2, 3], std=[1, 2, 3])

        np.testing.assert_allclose(result.data, [0, 0, 0, 3, 1.5, 1])
        print("✓ Channel normalization passed")

    def test_normalize_rejects_bad_parameters(self):
        tensor = create_tensor([1, 2, 3, 4])
        with pytest.raises(ValueError):
            normalize(tensor, mean=[0.5, 0.5], std=[1.0])
        with pytest.raises(ValueError):
            normalize(tensor, mean=[0, 0, 0], std=[1, 1, 1])
        print("✓ Normalization validation passed")

    def test_rgb_to_bgr_is_involution(self):
        tensor = create_tensor([1, 2, 3, 4, 5, 6])
        swapped = rgb_to_bgr(tensor)

        np.testing.assert_array_equal(swapped.data, [3, 2, 1, 6, 5, 4])
        np.testing.assert_array_equal(rgb_to_bgr(swapped).data, tensor.data)

        with pytest.raises(ShapeError):
            rgb_to_bgr(create_tensor([1, 2]))
        print("✓ BGR swap passed")

    def test_grayscale_requires_nhwc(self):
        with pytest.raises(ShapeError):
            to_grayscale(create_tensor([1, 2, 3]))

        tensor = create_tensor([1, 1, 1, 0, 0, 0], dims=[1, 1, 2, 3])
        gray = to_grayscale(tensor)
        assert gray.dims == (1, 1, 2, 1)
        np.testing.assert_allclose(gray.data, [1.0, 0.0], atol=1e-6)
        print("✓ Grayscale passed")


class TestShapeOps:
    """Test reshape and transpose."""

    def test_reshape(self):
        tensor = create_tensor(range(12), dims=[3, 4])
        reshaped = reshape(tensor, [2, 6])

        assert reshaped.dims == (2, 6)
        np.testing.assert_array_equal(reshaped.data, tensor.data)

        with pytest.raises(ShapeError):
            reshape(tensor, [5, 2])
        print("✓ Reshape passed")

    def test_transpose_2d(self):
        tensor = create_tensor([1, 2, 3, 4, 5, 6], dims=[2, 3])
        result = transpose(tensor, (1, 0))

        assert result.dims == (3, 2)
        np.testing.assert_array_equal(result.data, [1, 4, 2, 5, 3, 6])
        print("✓ 2-d transpose passed")

    def test_transpose_nhwc_to_nchw_roundtrip(self):
        tensor = create_tensor(np.arange(24), dims=[1, 2, 4, 3])
        perm = (0, 3, 1, 2)
        nchw = transpose(tensor, perm)

        assert nchw.dims == (1, 3, 2, 4)
        back = transpose(nchw, inverse_permutation(perm))
        assert back.dims == tensor.dims
        np.testing.assert_array_equal(back.data, tensor.data)
        print("✓ NHWC <-> NCHW passed")

    def test_transpose_validation(self):
        tensor = create_tensor(range(6), dims=[2, 3])
        with pytest.raises(ShapeError):
            transpose(tensor, (0,))
        with pytest.raises(ShapeError):
            transpose(tensor, (0, 0))
        print("✓ Transpose validation passed")


class TestActivations:
    """Test softmax, top_k and argmax."""

    def test_softmax_sums_to_one(self):
        result = softmax(create_tensor([1.0, 2.0, 3.0]))

        assert result.data.sum() == pytest.approx(1.0, abs=1e-6)
        assert np.all(np.diff(result.data) > 0)
        print("✓ Softmax sum passed")

    def test_softmax_is_shift_invariant(self):
        a = softmax(create_tensor([1.0, 2.0, 3.0]))
        b = softmax(create_tensor([1001.0, 1002.0, 1003.0]))

        np.testing.assert_allclose(a.data, b.data, atol=1e-6)
        assert np.all(np.isfinite(b.data))
        print("✓ Softmax stability passed")

    def test_top_k_order_and_ties(self):
        indices, values = top_k(create_tensor([0.1, 0.5, 0.3, 0.5]), 3)

        assert indices == [1, 3, 2]
        assert values == pytest.approx([0.5, 0.5, 0.3])

        indices, _ = top_k(create_tensor([0.2, 0.1]), 10)
        assert indices == [0, 1]
        assert top_k(create_tensor([0.2]), 0) == ([], [])
        print("✓ Top-K passed")

    def test_argmax(self):
        assert argmax(create_tensor([0.1, 0.9, 0.9])) == 1
        with pytest.raises(ShapeError):
            argmax(create_tensor([], dims=[0]))
        print("✓ Argmax passed")


class TestBoxes:
    """Test IoU and NMS."""

    def test_iou(self):
        assert iou([0, 0, 10, 10], [0, 0, 10, 10]) == pytest.approx(1.0)
        assert iou([0, 0, 10, 10], [5, 0, 15, 10]) == pytest.approx(50 / 150)
        assert iou([0, 0, 10, 10], [20, 20, 30, 30]) == 0.0
        assert iou([0, 0, 0, 0], [0, 0, 0, 0]) == 0.0
        print("✓ IoU passed")

    def test_nms_suppresses_overlaps(self):
        boxes = [[0, 0, 10, 10], [1, 1, 11, 11], [50, 50, 60, 60]]
        scores = [0.8, 0.9, 0.7]

        keep = nms(boxes, scores, iou_threshold=0.5, score_threshold=0.0)

        assert keep == [1, 2]
        print("✓ NMS suppression passed")

    def test_nms_score_threshold_and_idempotence(self):
        boxes = [[0, 0, 10, 10], [20, 0, 30, 10], [40, 0, 50, 10]]
        scores = [0.9, 0.2, 0.6]

        keep = nms(boxes, scores, iou_threshold=0.5, score_threshold=0.5)
        assert keep == [0, 2]

        kept_boxes = [boxes[i] for i in keep]
        kept_scores = [scores[i] for i in keep]
        again = nms(kept_boxes, kept_scores, iou_threshold=0.5, score_threshold=0.5)
        assert [keep[i] for i in again] == keep
        print("✓ NMS threshold passed")

    def test_nms_length_mismatch(self):
        with pytest.raises(ValueError):
            nms([[0, 0, 1, 1]], [0.5, 0.6], 0.5, 0.0)
        print("✓ NMS validation passed")

    def test_module_is_reexported(self):
        assert tensor_utils.nms is nms
        print("✓ Module export passed")


def run_tensor_utils_tests():
    """Run all tensor utility tests."""
    test_classes = [
        ('Tensor Construction', TestTensorConstruction),
        ('Image Conversion', TestImageConversion),
        ('Channel Ops', TestChannelOps),
        ('Shape Ops', TestShapeOps),
        ('Activations', TestActivations),
        ('Boxes', TestBoxes),
    ]
    return run_test_classes("Tensor Utils", test_classes)


if __name__ == "__main__":
    run_tensor_utils_tests()
