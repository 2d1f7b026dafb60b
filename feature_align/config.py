from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class AlignConfig:
    """
    Tuning values for one alignment run. Passed explicitly into every stage;
    there is no module-level tuning state.

    Defaults reproduce the reference configuration.
    """
    corner_laplacian_threshold: int = 30
    corner_min_eigen_threshold: int = 25
    corner_border: int = 17
    blur_radius: int = 10
    descriptor_blur_radius: int = 3
    max_keypoints: int = 500
    orientation_half_k: int = 15
    descriptor_byte_length: int = 32
    match_distance_threshold: int = 48
    match_max_ratio: Optional[float] = None
    min_correspondences_for_homography: int = 4

    def __post_init__(self) -> None:
        if self.corner_laplacian_threshold < 0 or self.corner_min_eigen_threshold < 0:
            raise ValueError("corner thresholds must be >= 0")
        if self.corner_border < 0:
            raise ValueError("corner_border must be >= 0")
        if self.blur_radius < 0 or self.descriptor_blur_radius < 0:
            raise ValueError("blur radii must be >= 0")
        if self.max_keypoints <= 0:
            raise ValueError("max_keypoints must be > 0")
        if self.orientation_half_k <= 0:
            raise ValueError("orientation_half_k must be > 0")
        if self.descriptor_byte_length <= 0:
            raise ValueError("descriptor_byte_length must be > 0")
        if not (0 <= self.match_distance_threshold <= 8 * self.descriptor_byte_length + 1):
            raise ValueError("match_distance_threshold out of range for descriptor length")
        if self.match_max_ratio is not None and not (0.0 < self.match_max_ratio <= 1.0):
            raise ValueError("match_max_ratio must be in (0, 1] or None")
        if self.min_correspondences_for_homography < 4:
            raise ValueError("min_correspondences_for_homography must be >= 4")

    @property
    def detection_margin(self) -> int:
        """Border excluded from detection; keeps the orientation patch in bounds."""
        return max(int(self.corner_border), int(self.orientation_half_k), 5)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "AlignConfig":
        d = dict(d or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown alignment config keys: {unknown}")
        return cls(**d)

    @classmethod
    def from_yaml(cls, path: str) -> "AlignConfig":
        """
        Load from a YAML file. Values are read from an `alignment:` section
        when present, otherwise from the top-level mapping:

            alignment:
              corner_laplacian_threshold: 30
              blur_radius: 10
              max_keypoints: 500
        """
        with open(path, "r") as f:
            D = yaml.safe_load(f) or {}
        if not isinstance(D, dict):
            raise ValueError(f"Config root must be a mapping: {path}")
        section = D.get("alignment", D)
        if section is D:
            # top-level layout may carry other sections (logging, ...)
            section = {k: v for k, v in D.items() if k in {f.name for f in fields(cls)}}
        return cls.from_dict(section)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
