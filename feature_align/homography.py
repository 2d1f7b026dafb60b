from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from common.errors import DegenerateCorrespondences, InsufficientMatches
from common.types import HomographyResult, Keypoint, Match
from common.utils import to_numpy_3x3


log = logging.getLogger(__name__)

MIN_CORRESPONDENCES = 4
# Relative singular-value / determinant floor below which the DLT system is
# treated as rank deficient.
RANK_TOL = 1e-9


def _as_points(pts, name: str) -> np.ndarray:
    a = np.asarray(pts, dtype=np.float64)
    if a.size == 0:
        return np.zeros((0, 2), dtype=np.float64)
    if a.ndim == 3 and a.shape[1] == 1:  # OpenCV (N, 1, 2) layout
        a = a.reshape(-1, 2)
    if a.ndim != 2 or a.shape[1] != 2:
        raise ValueError(f"{name} must be (N, 2) points")
    if not np.isfinite(a).all():
        raise ValueError(f"{name} contains non-finite coordinates")
    return a


def _normalizing_transform(pts: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Similarity moving the centroid to the origin with mean distance sqrt(2).
    Returns (normalized_points, T).
    """
    c = pts.mean(axis=0)
    d = float(np.sqrt(((pts - c) ** 2).sum(axis=1)).mean())
    if d <= 1e-12:
        raise DegenerateCorrespondences("all points coincide")
    s = np.sqrt(2.0) / d
    T = np.array([[s, 0.0, -s * c[0]],
                  [0.0, s, -s * c[1]],
                  [0.0, 0.0, 1.0]], dtype=np.float64)
    return (pts - c) * s, T


def project_points(H: np.ndarray, pts) -> np.ndarray:
    """Apply a 3x3 homography to (N, 2) points; returns (N, 2) float64."""
    p = _as_points(pts, "pts")
    if len(p) == 0:
        return np.zeros((0, 2), dtype=np.float64)
    return cv2.perspectiveTransform(p.reshape(-1, 1, 2), np.asarray(H, dtype=np.float64)).reshape(-1, 2)


def estimate_homography(
    src_pts,
    dst_pts,
    *,
    min_correspondences: int = MIN_CORRESPONDENCES,
) -> HomographyResult:
    """
    Least-squares homography dst ~ H * src by the normalized Direct Linear Transform.

    Args:
        src_pts: (N, 2) points in image A
        dst_pts: (N, 2) corresponding points in image B
        min_correspondences: minimum N accepted (never below 4)

    Returns:
        HomographyResult with H normalized so H[2, 2] == 1.

    Raises:
        InsufficientMatches: N < min_correspondences
        DegenerateCorrespondences: coincident/collinear points or a rank-deficient system
    """
    src = _as_points(src_pts, "src_pts")
    dst = _as_points(dst_pts, "dst_pts")
    if len(src) != len(dst):
        raise ValueError(f"point count mismatch: {len(src)} vs {len(dst)}")
    required = max(MIN_CORRESPONDENCES, int(min_correspondences))
    n = len(src)
    if n < required:
        raise InsufficientMatches(n, required)

    ns, Ts = _normalizing_transform(src)
    nd, Td = _normalizing_transform(dst)

    x, y = ns[:, 0], ns[:, 1]
    u, v = nd[:, 0], nd[:, 1]
    zero = np.zeros(n)
    one = np.ones(n)
    A = np.empty((2 * n, 9), dtype=np.float64)
    A[0::2] = np.stack([-x, -y, -one, zero, zero, zero, u * x, u * y, u], axis=1)
    A[1::2] = np.stack([zero, zero, zero, -x, -y, -one, v * x, v * y, v], axis=1)

    _, s, Vt = np.linalg.svd(A)
    # A unique solution needs rank 8: the 8th singular value must be non-negligible.
    if s[7] <= RANK_TOL * s[0]:
        raise DegenerateCorrespondences(
            f"rank-deficient correspondence system (sigma8/sigma1={s[7] / s[0]:.3e})"
        )

    Hn = Vt[-1].reshape(3, 3)
    if abs(np.linalg.det(Hn)) <= RANK_TOL * np.linalg.norm(Hn) ** 3:
        raise DegenerateCorrespondences("fitted transform is singular")

    H = np.linalg.inv(Td) @ Hn @ Ts
    if abs(H[2, 2]) <= 1e-12 * np.abs(H).max():
        raise DegenerateCorrespondences("homography cannot be normalized (H[2,2] ~ 0)")
    H = H / H[2, 2]

    residuals = project_points(H, src) - dst
    rmse = float(np.sqrt(np.mean(np.sum(residuals ** 2, axis=1))))
    log.debug("homography fitted", extra={"extra": {"count": n, "rmse_px": rmse}})
    return HomographyResult(H=to_numpy_3x3(H), rmse_px=rmse, residuals_px=residuals, count=n)


def homography_from_matches(
    kps_a: Sequence[Keypoint],
    kps_b: Sequence[Keypoint],
    matches: List[Match],
    *,
    min_correspondences: int = MIN_CORRESPONDENCES,
) -> HomographyResult:
    """
    Fit H: image A -> image B from accepted matches (query = A, reference = B).
    """
    if len(matches) == 0:
        raise InsufficientMatches(0, max(MIN_CORRESPONDENCES, int(min_correspondences)))
    pts_a = np.array([kps_a[m.query_index].pt for m in matches], dtype=np.float64)
    pts_b = np.array([kps_b[m.reference_index].pt for m in matches], dtype=np.float64)
    return estimate_homography(pts_a, pts_b, min_correspondences=min_correspondences)
