"""
Unit tests for preprocessing (grayscale + smoothing)
"""

import pytest
import numpy as np
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.errors import InvalidImage
from feature_align.preprocess import gaussian_smooth, preprocess_image, preprocess_views, to_gray_u8, validate_image


class TestGrayscale:
    """Test cases for luma conversion"""

    def test_luma_weights_on_primaries(self):
        """Pure R/G/B map to the standard luma weights"""
        img = np.zeros((1, 3, 4), dtype=np.uint8)
        img[0, 0] = (255, 0, 0, 255)
        img[0, 1] = (0, 255, 0, 255)
        img[0, 2] = (0, 0, 255, 255)
        gray = to_gray_u8(img)
        assert gray.shape == (1, 3)
        assert gray[0, 0] == pytest.approx(76, abs=1)
        assert gray[0, 1] == pytest.approx(150, abs=1)
        assert gray[0, 2] == pytest.approx(29, abs=1)

    def test_alpha_is_ignored(self):
        """Changing alpha does not change the gray output"""
        rng = np.random.default_rng(0)
        img = rng.integers(0, 256, (20, 30, 4), dtype=np.uint8)
        other = img.copy()
        other[..., 3] = 0
        assert np.array_equal(to_gray_u8(img), to_gray_u8(other))

    def test_rgb_and_gray_inputs(self):
        """3-channel and single-channel buffers are accepted"""
        gray = np.full((8, 8), 77, dtype=np.uint8)
        assert np.array_equal(to_gray_u8(gray), gray)
        rgb = np.dstack([gray, gray, gray])
        assert np.array_equal(to_gray_u8(rgb), gray)

    def test_non_uint8_is_clipped(self):
        """Float buffers are clipped into uint8"""
        img = np.array([[-5.0, 300.0]], dtype=np.float32)
        out = validate_image(img)
        assert out.dtype == np.uint8
        assert out.tolist() == [[0, 255]]


class TestInvalidImage:
    """Test cases for rejected buffers"""

    @pytest.mark.parametrize(
        "img",
        [
            None,
            [[1, 2], [3, 4]],
            np.zeros((0, 10, 4), dtype=np.uint8),
            np.zeros((10, 0), dtype=np.uint8),
            np.zeros((10,), dtype=np.uint8),
            np.zeros((4, 4, 5), dtype=np.uint8),
        ],
    )
    def test_rejected(self, img):
        with pytest.raises(InvalidImage):
            preprocess_image(img)

    def test_invalid_image_is_value_error(self):
        """Callers catching ValueError still see bad buffers"""
        with pytest.raises(ValueError):
            preprocess_image(np.zeros((0, 0, 4), dtype=np.uint8))


class TestSmoothing:
    """Test cases for the separable Gaussian blur"""

    def test_shape_and_dtype_preserved(self):
        img = np.random.default_rng(1).integers(0, 256, (60, 80, 4), dtype=np.uint8)
        out = preprocess_image(img, blur_radius=10)
        assert out.shape == (60, 80)
        assert out.dtype == np.uint8

    def test_uniform_image_stays_uniform(self):
        img = np.full((40, 50), 123, dtype=np.uint8)
        out = gaussian_smooth(img, 10)
        assert np.all(out == 123)

    def test_zero_radius_is_a_copy(self):
        img = np.random.default_rng(2).integers(0, 256, (10, 10), dtype=np.uint8)
        out = gaussian_smooth(img, 0)
        assert np.array_equal(out, img)
        assert out is not img

    def test_blur_reduces_variance(self):
        img = np.random.default_rng(3).integers(0, 256, (64, 64), dtype=np.uint8)
        out = gaussian_smooth(img, 3)
        assert out.astype(float).std() < img.astype(float).std()

    def test_input_not_modified(self):
        img = np.random.default_rng(4).integers(0, 256, (32, 32), dtype=np.uint8)
        before = img.copy()
        preprocess_image(img, blur_radius=5)
        assert np.array_equal(img, before)

    def test_negative_radius_rejected(self):
        with pytest.raises(ValueError):
            gaussian_smooth(np.zeros((5, 5), dtype=np.uint8), -1)

    def test_views_share_one_gray_conversion(self):
        """Detection image is the heavy blur, sampling image the light one"""
        img = np.random.default_rng(5).integers(0, 256, (48, 64, 4), dtype=np.uint8)
        detect, sample = preprocess_views(img, blur_radius=10, descriptor_blur_radius=3)
        assert np.array_equal(detect, preprocess_image(img, blur_radius=10))
        assert np.array_equal(sample, gaussian_smooth(to_gray_u8(img), 3))
        assert sample.astype(float).std() > detect.astype(float).std()
