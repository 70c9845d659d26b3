"""
Fundamental matrix estimation with RANSAC.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

MIN_FUNDAMENTAL_POINTS = 8


def fundamental_matrix_ransac(
    pts1: np.ndarray,
    pts2: np.ndarray,
    reproj_threshold: float = 4.0,
    confidence: float = 0.999,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Estimate fundamental matrix using RANSAC.

    Args:
        pts1: Points in first image (N, 2).
        pts2: Points in second image (N, 2).
        reproj_threshold: Maximum distance from a point to an epipolar line
                          for it to be considered an inlier.
        confidence: Confidence level for RANSAC.

    Returns:
        Tuple of (F, inlier_mask) where:
        - F: Fundamental matrix (3x3).
        - inlier_mask: Boolean array (N,) indicating inlier correspondences.
    """
    if len(pts1) < MIN_FUNDAMENTAL_POINTS:
        # Too few points for RANSAC.
        F = np.eye(3)
        inlier_mask = np.zeros(len(pts1), dtype=bool)
        return F, inlier_mask

    F, inlier_mask = cv2.findFundamentalMat(
        np.asarray(pts1, dtype=np.float32),
        np.asarray(pts2, dtype=np.float32),
        cv2.FM_RANSAC,
        reproj_threshold,
        confidence,
    )

    if F is None or inlier_mask is None:
        F = np.eye(3)
        inlier_mask = np.zeros(len(pts1), dtype=bool)
    else:
        # uint8 mask; must be boolean for indexing.
        inlier_mask = inlier_mask.astype(bool)
        # Several solutions may be stacked; keep the first.
        F = F[:3]

    return F, inlier_mask.ravel()


__all__ = ["fundamental_matrix_ransac", "MIN_FUNDAMENTAL_POINTS"]
