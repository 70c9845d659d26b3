"""
Homography estimation with RANSAC.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

MIN_HOMOGRAPHY_POINTS = 4


def homography_ransac(
    pts1: np.ndarray,
    pts2: np.ndarray,
    reproj_threshold: float = 4.0,
    confidence: float = 0.999,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Estimate the homography mapping `pts1` onto `pts2` using RANSAC.

    Returns:
        Tuple of (H, inlier_mask) where:
        - H: Homography (3x3).
        - inlier_mask: Boolean array (N,) indicating inlier correspondences.
    """
    n = len(pts1)
    if n < MIN_HOMOGRAPHY_POINTS:
        return np.eye(3), np.zeros(n, dtype=bool)

    H, inlier_mask = cv2.findHomography(
        np.asarray(pts1, dtype=np.float32),
        np.asarray(pts2, dtype=np.float32),
        cv2.RANSAC,
        reproj_threshold,
        confidence=confidence,
    )
    if H is None or inlier_mask is None:
        return np.eye(3), np.zeros(n, dtype=bool)
    return H, inlier_mask.ravel().astype(bool)


__all__ = ["homography_ransac", "MIN_HOMOGRAPHY_POINTS"]
