from __future__ import annotations
"""
Brute-force Hamming matching of packed binary descriptors.

- popcount-of-XOR distance (byte lookup table; equals the sum of 32-bit word popcounts)
- nearest neighbour per query with lowest-index tie break
- flat acceptance threshold; optional opt-in distinctiveness ratio
"""

import logging
from typing import List, Optional

import numpy as np

from common.types import Match


log = logging.getLogger(__name__)

_POPCOUNT_U8 = np.array([bin(i).count("1") for i in range(256)], dtype=np.uint16)
_POPCOUNT_U8.setflags(write=False)

# Queries per block when building the distance matrix (bounds peak memory).
_BLOCK = 256


def _as_descriptor_matrix(des: np.ndarray, name: str) -> np.ndarray:
    a = np.asarray(des)
    if a.ndim == 1:
        a = a.reshape(1, -1)
    if a.ndim != 2:
        raise ValueError(f"{name} must be (N, byte_length)")
    if a.dtype != np.uint8:
        raise ValueError(f"{name} must be uint8, got {a.dtype}")
    return a


def hamming_distance(a: np.ndarray, b: np.ndarray) -> int:
    """Number of differing bits between two equal-length packed descriptors."""
    a = np.asarray(a, dtype=np.uint8).ravel()
    b = np.asarray(b, dtype=np.uint8).ravel()
    if a.shape != b.shape:
        raise ValueError("descriptors must have the same length")
    return int(_POPCOUNT_U8[np.bitwise_xor(a, b)].sum())


def hamming_distance_matrix(query: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """(N, M) int32 Hamming distances between every query and reference row."""
    q = _as_descriptor_matrix(query, "query")
    r = _as_descriptor_matrix(reference, "reference")
    if q.shape[1] != r.shape[1]:
        raise ValueError(f"descriptor widths differ: {q.shape[1]} vs {r.shape[1]}")
    out = np.empty((q.shape[0], r.shape[0]), dtype=np.int32)
    for start in range(0, q.shape[0], _BLOCK):
        blk = q[start:start + _BLOCK]
        x = np.bitwise_xor(blk[:, None, :], r[None, :, :])
        out[start:start + _BLOCK] = _POPCOUNT_U8[x].sum(axis=2)
    return out


def match_descriptors(
    query: np.ndarray,
    reference: np.ndarray,
    *,
    threshold: int = 48,
    max_ratio: Optional[float] = None,
) -> List[Match]:
    """
    Nearest reference descriptor for every query descriptor.

    A query is matched iff its best distance < threshold (and, when max_ratio
    is set, best < max_ratio * second best). Ties resolve to the lowest
    reference index. Unmatched queries produce no entry.

    Returns:
        Matches in query order.
    """
    q = _as_descriptor_matrix(query, "query")
    r = _as_descriptor_matrix(reference, "reference")
    if len(q) == 0 or len(r) == 0:
        return []

    dist = hamming_distance_matrix(q, r)
    best_idx = np.argmin(dist, axis=1)
    best = dist[np.arange(len(q)), best_idx]
    if dist.shape[1] >= 2:
        second = np.partition(dist, 1, axis=1)[:, 1]
    else:
        second = None

    accept = best < int(threshold)
    if max_ratio is not None and second is not None:
        accept &= best < float(max_ratio) * second

    matches: List[Match] = []
    for qi in np.flatnonzero(accept):
        matches.append(
            Match(
                query_index=int(qi),
                reference_index=int(best_idx[qi]),
                distance=int(best[qi]),
                second_distance=None if second is None else int(second[qi]),
            )
        )
    log.debug(
        "descriptors matched",
        extra={"extra": {"queries": len(q), "references": len(r), "accepted": len(matches), "threshold": int(threshold)}},
    )
    return matches
