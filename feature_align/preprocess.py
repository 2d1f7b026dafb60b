from __future__ import annotations
"""
Preprocessing for feature alignment:
- validate raw pixel buffers (RGBA, RGB or gray; uint8, row-major)
- grayscale conversion with standard luma weights, alpha ignored
- separable Gaussian smoothing with a fixed kernel radius (heavy for
  detection, light for descriptor sampling)
"""

from typing import Tuple

import cv2
import numpy as np

from common.errors import InvalidImage


def validate_image(img) -> np.ndarray:
    """
    Check an incoming buffer and return it as a uint8 ndarray.
    Accepted shapes: (H, W), (H, W, 3) RGB, (H, W, 4) RGBA.
    """
    if img is None:
        raise InvalidImage("image buffer is None")
    if not isinstance(img, np.ndarray):
        raise InvalidImage(f"image must be a numpy ndarray, got {type(img).__name__}")
    if img.ndim not in (2, 3):
        raise InvalidImage(f"image must be 2D (gray) or 3D (RGB/RGBA), got ndim={img.ndim}")
    if img.ndim == 3 and img.shape[2] not in (3, 4):
        raise InvalidImage(f"unsupported channel count: {img.shape[2]}")
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise InvalidImage(f"zero image dimension: {img.shape[1]}x{img.shape[0]}")
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    return img


def to_gray_u8(img: np.ndarray) -> np.ndarray:
    """Y = 0.299 R + 0.587 G + 0.114 B; alpha is ignored."""
    img = validate_image(img)
    if img.ndim == 2:
        return img
    code = cv2.COLOR_RGBA2GRAY if img.shape[2] == 4 else cv2.COLOR_RGB2GRAY
    return cv2.cvtColor(np.ascontiguousarray(img), code)


def gaussian_smooth(gray_u8: np.ndarray, radius: int) -> np.ndarray:
    """
    Separable Gaussian blur with kernel size 2*radius+1 (sigma derived from the
    kernel size), edges replicated. radius == 0 returns a copy.
    """
    radius = int(radius)
    if radius < 0:
        raise ValueError("blur radius must be >= 0")
    if radius == 0:
        return gray_u8.copy()
    ksize = 2 * radius + 1
    k = cv2.getGaussianKernel(ksize, 0)
    return cv2.sepFilter2D(gray_u8, -1, k, k, borderType=cv2.BORDER_REPLICATE)


def preprocess_image(img: np.ndarray, *, blur_radius: int = 10) -> np.ndarray:
    """
    Prepare a raw image for corner detection:
      - validate
      - to gray (u8)
      - smooth
    Returns a new grayscale uint8 image of the same width/height.
    """
    gray = to_gray_u8(img)
    return gaussian_smooth(gray, blur_radius)


def preprocess_views(
    img: np.ndarray,
    *,
    blur_radius: int = 10,
    descriptor_blur_radius: int = 3,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    One gray conversion, two smoothings of it:
      - detection image (blur_radius): corners and orientations
      - sampling image (descriptor_blur_radius): descriptor intensity tests
    """
    gray = to_gray_u8(img)
    return gaussian_smooth(gray, blur_radius), gaussian_smooth(gray, descriptor_blur_radius)
