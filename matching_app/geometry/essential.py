"""
Essential matrix estimation for calibrated image pairs.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

MIN_ESSENTIAL_POINTS = 5


def normalize_with_intrinsics(pts: np.ndarray, K: np.ndarray) -> np.ndarray:
    """
    Map pixel coordinates to normalized camera coordinates, x_n = K^-1 @ x.

    Args:
        pts: Points in pixel coordinates (N, 2).
        K: Intrinsic camera matrix (3x3).

    Returns:
        Normalized points (N, 2), dtype=float64.
    """
    pts = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    ones = np.ones((pts.shape[0], 1))
    pts_h = np.hstack([pts, ones])
    normalized = (np.linalg.inv(K) @ pts_h.T).T
    return normalized[:, :2] / normalized[:, 2:3]


def essential_matrix_ransac(
    pts1: np.ndarray,
    pts2: np.ndarray,
    K1: np.ndarray,
    K2: np.ndarray,
    reproj_threshold: float = 4.0,
    confidence: float = 0.999,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Estimate the essential matrix between two calibrated views using RANSAC.

    Each image may have its own intrinsics, so points are normalized first
    and the pixel threshold is scaled by the mean focal length.

    Args:
        pts1: Points in first image (N, 2).
        pts2: Points in second image (N, 2).
        K1: Intrinsic matrix of the first camera (3x3).
        K2: Intrinsic matrix of the second camera (3x3).
        reproj_threshold: Inlier threshold in pixels.
        confidence: Confidence level for RANSAC.

    Returns:
        Tuple of (E, inlier_mask) where:
        - E: Essential matrix (3x3).
        - inlier_mask: Boolean array (N,) indicating inlier correspondences.
    """
    n = len(pts1)
    if n < MIN_ESSENTIAL_POINTS:
        return np.eye(3), np.zeros(n, dtype=bool)

    norm1 = normalize_with_intrinsics(pts1, K1)
    norm2 = normalize_with_intrinsics(pts2, K2)
    focal = np.mean([K1[0, 0], K1[1, 1], K2[0, 0], K2[1, 1]])
    threshold = reproj_threshold / focal if focal > 0 else reproj_threshold

    E, inlier_mask = cv2.findEssentialMat(
        norm1,
        norm2,
        focal=1.0,
        pp=(0.0, 0.0),
        method=cv2.RANSAC,
        prob=confidence,
        threshold=threshold,
    )

    if E is None or inlier_mask is None:
        return np.eye(3), np.zeros(n, dtype=bool)

    # Several solutions may be stacked (3k x 3); keep the first.
    return E[:3], inlier_mask.ravel().astype(bool)


__all__ = ["normalize_with_intrinsics", "essential_matrix_ransac", "MIN_ESSENTIAL_POINTS"]
