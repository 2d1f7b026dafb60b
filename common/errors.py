from __future__ import annotations

from typing import Optional


class AlignmentError(Exception):
    """Base class for failures of a single alignment attempt."""


class InvalidImage(AlignmentError, ValueError):
    """Image buffer is missing, empty, or has an unsupported layout."""


class DegenerateCorrespondences(AlignmentError):
    """
    Point correspondences do not constrain a homography
    (coincident or collinear points, rank-deficient DLT system).
    """


class InsufficientMatches(AlignmentError):
    """Fewer correspondences than required for a homography fit."""

    def __init__(self, found: int, required: int, message: Optional[str] = None):
        self.found = int(found)
        self.required = int(required)
        super().__init__(message or f"need at least {self.required} correspondences, got {self.found}")
