"""
Unit tests for intensity-centroid orientation
"""

import math

import pytest
import numpy as np
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import Keypoint
from feature_align.corners import detect_corners
from feature_align.orientation import (
    assign_orientations,
    disk_extents,
    ic_angle,
    intensity_moments,
    patch_in_bounds,
)
from feature_align.preprocess import preprocess_image
from tests.fixtures.synthetic import blob_rgba


def _paired_row_moments(img, x, y, half_k=15):
    """Row-pair accumulation: v=0 line into m10, +v/-v rows processed together."""
    umax = disk_extents(half_k)
    src = img.astype(int)
    m10 = sum(u * src[y, x + u] for u in range(-half_k, half_k + 1))
    m01 = 0
    for v in range(1, half_k + 1):
        v_sum = 0
        d = umax[v]
        for u in range(-d, d + 1):
            val_plus = src[y + v, x + u]
            val_minus = src[y - v, x + u]
            v_sum += val_plus - val_minus
            m10 += u * (val_plus + val_minus)
        m01 += v * v_sum
    return m10, m01


class TestDiskExtents:
    def test_half_k_15_table(self):
        assert disk_extents(15) == (15, 15, 15, 15, 14, 14, 14, 13, 13, 12, 11, 10, 9, 8, 6, 3)

    def test_table_is_self_transposed(self):
        """The disk mask built from d(v) is symmetric under x<->y"""
        for k in (7, 15):
            d = disk_extents(k)
            r = np.arange(-k, k + 1)
            v, u = np.meshgrid(r, r, indexing="ij")
            mask = np.abs(u) <= np.array(d)[np.abs(v)]
            assert np.array_equal(mask, mask.T)


class TestIcAngle:
    """Test cases for ic_angle"""

    def test_moments_match_row_pair_accumulation(self):
        rng = np.random.default_rng(5)
        img = rng.integers(0, 256, (64, 64), dtype=np.uint8)
        for x, y in [(32, 32), (15, 15), (48, 20)]:
            assert intensity_moments(img, x, y) == _paired_row_moments(img, x, y)

    def test_horizontal_ramp_is_zero(self):
        """Patch symmetric about its horizontal axis, brighter to the right -> 0"""
        img = np.tile(np.arange(64, dtype=np.uint8) * 3, (64, 1))
        assert ic_angle(img, 32, 32) == 0.0

    def test_reversed_ramp_is_pi(self):
        """Symmetric patch brighter to the left -> pi"""
        img = np.tile(255 - np.arange(64, dtype=np.uint8) * 3, (64, 1))
        assert ic_angle(img, 32, 32) == math.pi

    def test_vertical_ramp_is_half_pi(self):
        """Brighter downwards (increasing row) -> +pi/2"""
        img = np.tile((np.arange(64, dtype=np.uint8) * 3)[:, None], (1, 64))
        assert ic_angle(img, 32, 32) == pytest.approx(math.pi / 2)

    def test_uniform_patch(self):
        img = np.full((40, 40), 90, dtype=np.uint8)
        assert ic_angle(img, 20, 20) == 0.0

    def test_quarter_turn_rotates_angle(self):
        """np.rot90 turns the patch by -pi/2 in image coordinates"""
        rng = np.random.default_rng(9)
        img = rng.integers(0, 256, (65, 65), dtype=np.uint8)
        a0 = ic_angle(img, 32, 32)
        a1 = ic_angle(np.rot90(img), 32, 32)
        diff = (a1 - a0 + math.pi) % (2 * math.pi) - math.pi
        assert diff == pytest.approx(-math.pi / 2, abs=1e-9)


class TestAssignOrientations:
    """Test cases for assign_orientations"""

    def test_range_on_detected_keypoints(self):
        gray = preprocess_image(blob_rgba(), blur_radius=10)
        kps = assign_orientations(gray, detect_corners(gray))
        assert kps
        for kp in kps:
            assert -math.pi < kp.orientation <= math.pi

    def test_out_of_bounds_keypoint_is_skipped(self):
        img = np.tile(np.arange(64, dtype=np.uint8) * 3, (64, 1))
        near_edge = Keypoint(x=3, y=30, score=1.0)
        inside = Keypoint(x=32, y=32, score=1.0)
        out = assign_orientations(img, [near_edge, inside])
        assert out[0] is near_edge
        assert near_edge.orientation == 0.0
        assert not patch_in_bounds(img.shape, 3, 30)
        assert patch_in_bounds(img.shape, 32, 32)

    def test_mutates_only_orientation(self):
        img = np.tile((np.arange(64, dtype=np.uint8) * 3)[:, None], (1, 64))
        kp = Keypoint(x=30, y=31, score=55.0)
        assign_orientations(img, [kp])
        assert (kp.x, kp.y, kp.score, kp.level) == (30, 31, 55.0, 0)
        assert kp.orientation == pytest.approx(math.pi / 2)
