from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import List, Tuple

import numpy as np

from common.types import Keypoint


log = logging.getLogger(__name__)

HALF_K = 15


@lru_cache(maxsize=8)
def disk_extents(half_k: int = HALF_K) -> Tuple[int, ...]:
    """
    d(v) for v = 0..half_k: largest |u| such that (u, v) lies in the circular
    patch of radius half_k. Built symmetric so that d is its own transpose
    (half_k=15 -> 15,15,15,15,14,14,14,13,13,12,11,10,9,8,6,3).
    """
    umax = [0] * (half_k + 2)
    vmax = int(math.floor(half_k * math.sqrt(2.0) / 2.0 + 1))
    vmin = int(math.ceil(half_k * math.sqrt(2.0) / 2.0))
    for v in range(vmax + 1):
        umax[v] = int(round(math.sqrt(half_k * half_k - v * v)))
    v0 = 0
    for v in range(half_k, vmin - 1, -1):
        while umax[v0] == umax[v0 + 1]:
            v0 += 1
        umax[v] = v0
        v0 += 1
    return tuple(umax[: half_k + 1])


@lru_cache(maxsize=8)
def _moment_kernels(half_k: int) -> Tuple[np.ndarray, np.ndarray]:
    """(u*mask, v*mask) weights over the (2k+1)^2 window, int64, read-only."""
    d = np.array(disk_extents(half_k), dtype=np.int64)
    r = np.arange(-half_k, half_k + 1, dtype=np.int64)
    v, u = np.meshgrid(r, r, indexing="ij")
    mask = np.abs(u) <= d[np.abs(v)]
    wu = np.where(mask, u, 0)
    wv = np.where(mask, v, 0)
    wu.setflags(write=False)
    wv.setflags(write=False)
    return wu, wv


def patch_in_bounds(shape, x: int, y: int, half_k: int = HALF_K) -> bool:
    h, w = shape[:2]
    return half_k <= x < w - half_k and half_k <= y < h - half_k


def intensity_moments(gray_u8: np.ndarray, x: int, y: int, half_k: int = HALF_K) -> Tuple[int, int]:
    """
    First-order moments (m10, m01) of the circular patch centred at (x, y).
    Row offset v grows downwards (image rows). Integer-exact.
    """
    wu, wv = _moment_kernels(half_k)
    patch = gray_u8[y - half_k:y + half_k + 1, x - half_k:x + half_k + 1].astype(np.int64)
    return int((wu * patch).sum()), int((wv * patch).sum())


def ic_angle(gray_u8: np.ndarray, x: int, y: int, half_k: int = HALF_K) -> float:
    """
    Intensity-centroid orientation atan2(m01, m10) in radians, (-pi, pi].
    The caller guarantees the patch lies inside the image.
    """
    m10, m01 = intensity_moments(gray_u8, x, y, half_k)
    return math.atan2(m01, m10)


def assign_orientations(gray_u8: np.ndarray, keypoints: List[Keypoint], half_k: int = HALF_K) -> List[Keypoint]:
    """
    Set .orientation on each keypoint in place and return the same list.
    Keypoints whose patch would leave the image keep orientation 0.0.
    """
    skipped = 0
    for kp in keypoints:
        if not patch_in_bounds(gray_u8.shape, kp.x, kp.y, half_k):
            skipped += 1
            continue
        kp.orientation = ic_angle(gray_u8, kp.x, kp.y, half_k)
    if skipped:
        log.debug("orientation skipped near border", extra={"extra": {"skipped": skipped, "half_k": half_k}})
    return keypoints
