from __future__ import annotations
"""
Rotated binary intensity-test descriptors (ORB/BRIEF family).

The sample pattern is drawn once per process from a fixed seed, so
descriptors from different images and different runs are comparable.
"""

import logging
from functools import lru_cache
from typing import Sequence

import numpy as np

from common.types import Keypoint
from common.utils import keypoints_to_array


log = logging.getLogger(__name__)

PATCH_RADIUS = 15
PATTERN_SEED = 20190315


def sampling_pattern(n_bits: int = 256, patch_radius: int = PATCH_RADIUS, seed: int = PATTERN_SEED) -> np.ndarray:
    """
    Point-pair pattern, shape (n_bits, 4) as (ax, ay, bx, by) offsets in pixels.

    Offsets are isotropic Gaussian with sigma = patch_size / 5, rounded, and
    kept inside the disk of radius patch_radius, so after any rotation every
    sample stays within patch_radius of the centre on both axes. Points
    outside the disk and pairs whose two points coincide are redrawn. The
    returned array is read-only and shared by every caller asking for the
    same table.
    """
    return _pattern_table(int(n_bits), int(patch_radius), int(seed))


@lru_cache(maxsize=4)
def _pattern_table(n_bits: int, patch_radius: int, seed: int) -> np.ndarray:
    if n_bits <= 0:
        raise ValueError("n_bits must be > 0")
    if patch_radius <= 0:
        raise ValueError("patch_radius must be > 0")
    rng = np.random.default_rng(seed)
    sigma = (2 * patch_radius + 1) / 5.0
    r2 = patch_radius * patch_radius

    def draw(n: int) -> np.ndarray:
        return np.rint(rng.normal(0.0, sigma, size=(n, 4))).astype(np.int32)

    def bad(p: np.ndarray) -> np.ndarray:
        outside = (p[:, 0] ** 2 + p[:, 1] ** 2 > r2) | (p[:, 2] ** 2 + p[:, 3] ** 2 > r2)
        return outside | np.all(p[:, :2] == p[:, 2:], axis=1)

    pat = draw(n_bits)
    redraw = bad(pat)
    while redraw.any():
        pat[redraw] = draw(int(redraw.sum()))
        redraw = bad(pat)
    pat.setflags(write=False)
    return pat


def _rotated_samples(
    gray_u8: np.ndarray,
    centers: np.ndarray,
    cos_t: np.ndarray,
    sin_t: np.ndarray,
    px: np.ndarray,
    py: np.ndarray,
):
    """Intensities at rotated offsets (px, py) around each centre, clamped to the image."""
    h, w = gray_u8.shape
    rx = np.rint(px[None, :] * cos_t - py[None, :] * sin_t).astype(np.int64) + centers[:, 0:1]
    ry = np.rint(px[None, :] * sin_t + py[None, :] * cos_t).astype(np.int64) + centers[:, 1:2]
    clamped = (rx < 0) | (rx >= w) | (ry < 0) | (ry >= h)
    rx = np.clip(rx, 0, w - 1)
    ry = np.clip(ry, 0, h - 1)
    return gray_u8[ry, rx], clamped.any(axis=1)


def describe(
    gray_u8: np.ndarray,
    keypoints: Sequence[Keypoint],
    descriptor_byte_length: int = 32,
    patch_radius: int = PATCH_RADIUS,
) -> np.ndarray:
    """
    Build one descriptor per keypoint.

    Bit i is 1 iff I(R*a_i + p) > I(R*b_i + p), where R rotates by the keypoint
    orientation. Bits are packed little-endian within each byte.

    Returns:
        (N, descriptor_byte_length) uint8; row i belongs to keypoints[i].
    """
    n_bytes = int(descriptor_byte_length)
    if n_bytes <= 0:
        raise ValueError("descriptor_byte_length must be > 0")
    if gray_u8.ndim != 2:
        raise ValueError("describe expects a single-channel image")
    if len(keypoints) == 0:
        return np.zeros((0, n_bytes), dtype=np.uint8)

    pat = sampling_pattern(8 * n_bytes, patch_radius).astype(np.float64)
    centers = keypoints_to_array(keypoints)
    theta = np.array([kp.orientation for kp in keypoints], dtype=np.float64)
    cos_t = np.cos(theta)[:, None]
    sin_t = np.sin(theta)[:, None]

    va, clamp_a = _rotated_samples(gray_u8, centers, cos_t, sin_t, pat[:, 0], pat[:, 1])
    vb, clamp_b = _rotated_samples(gray_u8, centers, cos_t, sin_t, pat[:, 2], pat[:, 3])
    bits = va > vb

    n_clamped = int((clamp_a | clamp_b).sum())
    if n_clamped:
        log.debug("descriptor samples clamped at image edge", extra={"extra": {"keypoints": n_clamped}})
    return np.packbits(bits, axis=1, bitorder="little")
