from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(slots=True)
class Keypoint:
    """
    Salient image point produced by the corner detector.

    Attributes:
        x, y: integer pixel coordinates in the working (grayscale) image.
        score: detector saliency (minimum Hessian eigenvalue magnitude).
        orientation: dominant intensity-centroid angle in radians, (-pi, pi].
        level: pyramid level; single-scale pipeline, always 0.
    """
    x: int
    y: int
    score: float
    orientation: float = 0.0
    level: int = 0

    def __post_init__(self) -> None:
        self.x = int(self.x)
        self.y = int(self.y)
        self.score = float(self.score)

    @property
    def pt(self) -> tuple:
        return (float(self.x), float(self.y))


@dataclass(slots=True, frozen=True)
class Match:
    """
    Accepted nearest-neighbour pair between a query descriptor (image A)
    and a reference descriptor (image B).

    second_distance is the runner-up Hamming distance for the query, or None
    when the reference set held a single descriptor.
    """
    query_index: int
    reference_index: int
    distance: int
    second_distance: Optional[int] = None


@dataclass(slots=True)
class FeatureSet:
    """
    Per-image output of the detection/description stages.

    Attributes:
        gray: smoothed grayscale working image (H, W) uint8.
        keypoints: score-descending keypoints.
        descriptors: (N, byte_length) uint8, row i describes keypoints[i].
    """
    gray: np.ndarray = field(repr=False)
    keypoints: List[Keypoint]
    descriptors: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.descriptors.ndim != 2 or self.descriptors.shape[0] != len(self.keypoints):
            raise ValueError("descriptors must be (N, byte_length) and parallel to keypoints")

    def __len__(self) -> int:
        return len(self.keypoints)


@dataclass(slots=True)
class HomographyResult:
    """
    Fitted planar transform mapping image-A points to image-B points.

    Attributes:
        H: 3x3 float64, normalized so H[2, 2] == 1.
        rmse_px: reprojection RMSE over the fitted correspondences (pixels).
        residuals_px: (N, 2) projected-minus-target residuals.
        count: number of correspondences used.
    """
    H: np.ndarray
    rmse_px: float
    residuals_px: np.ndarray = field(repr=False)
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "H": self.H.tolist(),
            "rmse_px": float(self.rmse_px),
            "count": int(self.count),
        }


@dataclass(slots=True)
class AlignmentResult:
    features_a: FeatureSet
    features_b: FeatureSet
    matches: List[Match]
    homography: HomographyResult

    def to_dict(self) -> Dict[str, Any]:
        """Summary without image buffers (safe to log/serialize)."""
        d = {
            "keypoints_a": len(self.features_a),
            "keypoints_b": len(self.features_b),
            "matches": len(self.matches),
        }
        d.update(self.homography.to_dict())
        return d
