#!/usr/bin/env python3
"""
Align two image files and print the fitted homography as JSON.

Example:
  python scripts/align_pair.py data/a.png data/b.png --config config/params.yaml
  LOG_LEVEL=DEBUG python scripts/align_pair.py a.png b.png --max-keypoints 300
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

import cv2
import numpy as np
import yaml

# Allow running from a source checkout without installing.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.errors import AlignmentError  # noqa: E402
from common.logging_setup import get_logger, setup_logging  # noqa: E402
from feature_align.config import AlignConfig  # noqa: E402
from feature_align.pipeline import align_images  # noqa: E402


log = get_logger("scripts.align_pair")


def load_rgba(path: str) -> np.ndarray:
    if not Path(path).exists():
        raise FileNotFoundError(f"Image not found: {path}")
    bgr = cv2.imread(path, cv2.IMREAD_COLOR)
    if bgr is None:
        raise RuntimeError(f"Failed to decode image: {path}")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA)


def main() -> int:
    ap = argparse.ArgumentParser(description="Planar feature alignment of two images")
    ap.add_argument("image_a")
    ap.add_argument("image_b")
    ap.add_argument("--config", default=None, help="YAML with an `alignment:` section")
    ap.add_argument("--max-keypoints", type=int, default=None, help="Override max_keypoints")
    ap.add_argument("--threshold", type=int, default=None, help="Override match_distance_threshold")
    ap.add_argument("--parallel", action="store_true", help="Extract both images concurrently")
    ap.add_argument("--log-level", default=None)
    args = ap.parse_args()

    level = args.log_level
    if level is None and args.config:
        with open(args.config, "r") as f:
            level = (yaml.safe_load(f) or {}).get("logging", {}).get("level")
    setup_logging(level)

    cfg = AlignConfig.from_yaml(args.config) if args.config else AlignConfig()
    overrides = {}
    if args.max_keypoints is not None:
        overrides["max_keypoints"] = args.max_keypoints
    if args.threshold is not None:
        overrides["match_distance_threshold"] = args.threshold
    if overrides:
        cfg = AlignConfig.from_dict({**cfg.to_dict(), **overrides})

    img_a = load_rgba(args.image_a)
    img_b = load_rgba(args.image_b)

    try:
        result = align_images(img_a, img_b, cfg, parallel=args.parallel)
    except AlignmentError as e:
        log.warning("alignment failed", extra={"extra": {"error": type(e).__name__, "detail": str(e)}})
        print(json.dumps({"status": "failed", "error": type(e).__name__, "detail": str(e)}))
        return 1

    print(json.dumps({"status": "ok", **result.to_dict()}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
