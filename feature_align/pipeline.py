from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from common.errors import InsufficientMatches
from common.types import AlignmentResult, FeatureSet
from common.utils import timer_ms
from feature_align.config import AlignConfig
from feature_align.corners import detect_corners
from feature_align.descriptors import describe
from feature_align.homography import homography_from_matches
from feature_align.matching import match_descriptors
from feature_align.orientation import assign_orientations
from feature_align.preprocess import preprocess_views


log = logging.getLogger(__name__)

_preprocess = timer_ms(preprocess_views)
_detect = timer_ms(detect_corners)
_orient = timer_ms(assign_orientations)
_describe = timer_ms(describe)
_match = timer_ms(match_descriptors)
_fit = timer_ms(homography_from_matches)


def extract_features(image: np.ndarray, config: Optional[AlignConfig] = None) -> FeatureSet:
    """
    Raw image -> smoothed gray -> corners -> orientations -> descriptors.

    Corners and orientations use the heavily smoothed image; descriptor
    tests sample the lightly smoothed one (descriptor_blur_radius).

    Raises:
        InvalidImage: empty/None buffer or unsupported layout
    """
    cfg = config or AlignConfig()
    (gray, patch_gray), t_pre = _preprocess(
        image, blur_radius=cfg.blur_radius, descriptor_blur_radius=cfg.descriptor_blur_radius,
    )
    kps, t_det = _detect(
        gray,
        laplacian_threshold=cfg.corner_laplacian_threshold,
        min_eigen_threshold=cfg.corner_min_eigen_threshold,
        border=cfg.detection_margin,
        max_keypoints=cfg.max_keypoints,
    )
    kps, t_ori = _orient(gray, kps, cfg.orientation_half_k)
    des, t_des = _describe(patch_gray, kps, cfg.descriptor_byte_length)

    log.debug(
        "features extracted",
        extra={"extra": {
            "width": int(gray.shape[1]),
            "height": int(gray.shape[0]),
            "keypoints": len(kps),
            "ms": {"preprocess": round(t_pre, 2), "detect": round(t_det, 2),
                   "orient": round(t_ori, 2), "describe": round(t_des, 2)},
        }},
    )
    return FeatureSet(gray=gray, keypoints=kps, descriptors=des)


def align_images(
    image_a: np.ndarray,
    image_b: np.ndarray,
    config: Optional[AlignConfig] = None,
    *,
    parallel: bool = False,
) -> AlignmentResult:
    """
    Estimate the homography mapping image A coordinates onto image B.

    Args:
        image_a, image_b: raw RGBA (or RGB/gray) uint8 buffers
        config: tuning values; defaults to AlignConfig()
        parallel: extract the two images' features on two threads

    Returns:
        AlignmentResult with both feature sets, accepted matches (A query,
        B reference, in query order) and the fitted homography.

    Raises:
        InvalidImage, InsufficientMatches, DegenerateCorrespondences
    """
    cfg = config or AlignConfig()

    if parallel:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="extract") as pool:
            fut_a = pool.submit(extract_features, image_a, cfg)
            fut_b = pool.submit(extract_features, image_b, cfg)
            feats_a, feats_b = fut_a.result(), fut_b.result()
    else:
        feats_a = extract_features(image_a, cfg)
        feats_b = extract_features(image_b, cfg)

    matches, t_match = _match(
        feats_a.descriptors,
        feats_b.descriptors,
        threshold=cfg.match_distance_threshold,
        max_ratio=cfg.match_max_ratio,
    )
    required = cfg.min_correspondences_for_homography
    if len(matches) < required:
        log.info(
            "not enough matches for homography",
            extra={"extra": {"matches": len(matches), "required": required,
                             "keypoints_a": len(feats_a), "keypoints_b": len(feats_b)}},
        )
        raise InsufficientMatches(len(matches), required)

    hom, t_fit = _fit(feats_a.keypoints, feats_b.keypoints, matches, min_correspondences=required)

    result = AlignmentResult(features_a=feats_a, features_b=feats_b, matches=matches, homography=hom)
    log.info(
        "alignment computed",
        extra={"extra": {**result.to_dict(), "ms": {"match": round(t_match, 2), "fit": round(t_fit, 2)}}},
    )
    return result
