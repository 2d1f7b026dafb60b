"""
Feature Alignment — keypoints, binary descriptors, planar homography

This package provides:
- Preprocessing of raw RGBA frames (luma grayscale + separable Gaussian blur)
- YAPE06-style corner detection with a bounded, score-sorted keypoint set
- Intensity-centroid orientation and rotated binary descriptors
- Brute-force Hamming matching with a flat acceptance threshold
- Normalized DLT homography fitting with degeneracy detection

Entry point:
    from feature_align import align_images
    result = align_images(rgba_a, rgba_b)
    result.homography.H   # 3x3, H[2, 2] == 1, maps A -> B
"""
from .config import AlignConfig
from .pipeline import align_images, extract_features

__all__ = ["AlignConfig", "align_images", "extract_features"]
