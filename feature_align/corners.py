from __future__ import annotations
"""
YAPE06-style corner detection on a smoothed grayscale image.

- Laplacian response with a 5-pixel sample step
- strict 3x3 extremum test against a laplacian threshold
- minimum Hessian eigenvalue as the score, gated by an eigenvalue threshold
- stable score-descending selection capped at max_keypoints
"""

import logging
from typing import List

import numpy as np

from common.types import Keypoint


log = logging.getLogger(__name__)

# Sample steps (pixels) of the second-derivative stencils.
_D2 = 5
_DXY = 3
# Smallest margin at which every stencil stays inside the image.
MIN_BORDER = _D2

_NEIGHBOURS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


def _window(shape, border: int):
    h, w = shape
    b = max(MIN_BORDER, int(border))
    return b, b, w - b, h - b  # sx, sy, ex, ey


def laplacian_response(gray_u8: np.ndarray, border: int) -> np.ndarray:
    """
    L(x, y) = I(x-5, y) + I(x+5, y) + I(x, y-5) + I(x, y+5) - 4 I(x, y)
    over the interior window; zero outside it. int32, same shape as input.
    """
    lap = np.zeros(gray_u8.shape, dtype=np.int32)
    sx, sy, ex, ey = _window(gray_u8.shape, border)
    if ex <= sx or ey <= sy:
        return lap
    I = gray_u8.astype(np.int32)
    d = _D2
    lap[sy:ey, sx:ex] = (
        I[sy:ey, sx - d:ex - d] + I[sy:ey, sx + d:ex + d]
        + I[sy - d:ey - d, sx:ex] + I[sy + d:ey + d, sx:ex]
        - 4 * I[sy:ey, sx:ex]
    )
    return lap


def hessian_min_eigen(gray_u8: np.ndarray, ys: np.ndarray, xs: np.ndarray, trace: np.ndarray) -> np.ndarray:
    """Smallest Hessian eigenvalue magnitude at (xs, ys), with trace = laplacian."""
    I = gray_u8.astype(np.int64)
    d, e = _D2, _DXY
    c = I[ys, xs]
    ixx = I[ys, xs + d] + I[ys, xs - d] - 2 * c
    iyy = I[ys + d, xs] + I[ys - d, xs] - 2 * c
    ixy = I[ys + e, xs + e] + I[ys - e, xs - e] - I[ys - e, xs + e] - I[ys + e, xs - e]
    sqrt_delta = np.floor(np.sqrt((ixx - iyy) ** 2 + 4 * ixy ** 2)).astype(np.int64)
    tr = trace.astype(np.int64)
    return np.minimum(np.abs(tr - sqrt_delta), np.abs(tr + sqrt_delta)).astype(np.float64)


def _skip_adjacent(ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """
    Row-major scan rule: once a pixel is accepted, its right neighbour is not
    evaluated. Returns a boolean keep-mask over the (row-major) candidates.
    """
    keep = np.ones(len(xs), dtype=bool)
    last_y, last_x = -1, -2
    for i in range(len(xs)):
        y, x = int(ys[i]), int(xs[i])
        if y == last_y and x == last_x + 1:
            keep[i] = False
            continue
        last_y, last_x = y, x
    return keep


def detect_corners(
    gray_u8: np.ndarray,
    *,
    laplacian_threshold: int = 30,
    min_eigen_threshold: int = 25,
    border: int = 17,
    max_keypoints: int = 500,
) -> List[Keypoint]:
    """
    Detect up to max_keypoints corners.

    Args:
        gray_u8: smoothed grayscale image (H, W) uint8
        laplacian_threshold: |L| must exceed this for a candidate
        min_eigen_threshold: score must exceed this for acceptance
        border: pixels within this distance of an edge are never candidates
            (raised to 5 if smaller)
        max_keypoints: cap applied after a stable score-descending sort

    Returns:
        Keypoints sorted by descending score (ties keep detection order).
        An empty list when nothing qualifies.
    """
    if gray_u8.ndim != 2:
        raise ValueError("detect_corners expects a single-channel image")

    lap = laplacian_response(gray_u8, border)
    sx, sy, ex, ey = _window(gray_u8.shape, border)
    if ex <= sx or ey <= sy:
        return []

    win = lap[sy:ey, sx:ex]
    is_min = win < -int(laplacian_threshold)
    is_max = win > int(laplacian_threshold)
    for dy, dx in _NEIGHBOURS:
        nb = lap[sy + dy:ey + dy, sx + dx:ex + dx]
        is_min &= win < nb
        is_max &= win > nb

    ys, xs = np.nonzero(is_min | is_max)
    ys = ys + sy
    xs = xs + sx
    scores = hessian_min_eigen(gray_u8, ys, xs, lap[ys, xs])

    passed = scores > float(min_eigen_threshold)
    ys, xs, scores = ys[passed], xs[passed], scores[passed]
    keep = _skip_adjacent(ys, xs)
    ys, xs, scores = ys[keep], xs[keep], scores[keep]

    order = np.argsort(-scores, kind="stable")
    detected = len(order)
    order = order[: int(max_keypoints)]

    kps = [Keypoint(x=int(xs[i]), y=int(ys[i]), score=float(scores[i])) for i in order]
    log.debug(
        "corners detected",
        extra={"extra": {"candidates": detected, "kept": len(kps), "max_keypoints": int(max_keypoints)}},
    )
    return kps
