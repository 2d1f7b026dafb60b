from __future__ import annotations

import time
from typing import Sequence

import numpy as np

from common.types import Keypoint


def to_numpy_3x3(x) -> np.ndarray:
    """Ensure input is a 3x3 float64 numpy array (copy if necessary)."""
    a = np.asarray(x, dtype=float)
    if a.shape != (3, 3):
        raise ValueError("Expected 3x3")
    return a.copy()


def keypoints_to_array(keypoints: Sequence[Keypoint]) -> np.ndarray:
    """(N, 2) int64 array of (x, y) keypoint coordinates."""
    if not keypoints:
        return np.zeros((0, 2), dtype=np.int64)
    return np.array([(kp.x, kp.y) for kp in keypoints], dtype=np.int64)


def timer_ms(func):
    """
    Decorator that returns (result, elapsed_ms) for benchmarking small functions.
    """
    def wrapper(*args, **kwargs):
        t0 = time.perf_counter()
        out = func(*args, **kwargs)
        dt_ms = (time.perf_counter() - t0) * 1e3
        return out, dt_ms
    return wrapper
