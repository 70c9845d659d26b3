"""
Robust model fitting strategy used by geometric verification.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from matching_app.geometry.essential import essential_matrix_ransac
from matching_app.geometry.fundamental import fundamental_matrix_ransac
from matching_app.geometry.homography import homography_ransac
from matching_app.pipeline.config import GeometricModel


class ModelEstimator:
    """Fits a geometric model to point correspondences and reports inliers."""

    def fit_model(
        self,
        model: GeometricModel,
        pts1: np.ndarray,
        pts2: np.ndarray,
        threshold: float,
        K1: Optional[np.ndarray] = None,
        K2: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Returns:
            Boolean inlier mask (N,); all False when no model could be fitted.
        """
        raise NotImplementedError


class OpenCVModelEstimator(ModelEstimator):
    """RANSAC estimators from OpenCV."""

    def __init__(self, confidence: float = 0.999) -> None:
        self.confidence = confidence

    def fit_model(
        self,
        model: GeometricModel,
        pts1: np.ndarray,
        pts2: np.ndarray,
        threshold: float,
        K1: Optional[np.ndarray] = None,
        K2: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        if model is GeometricModel.FUNDAMENTAL:
            _, mask = fundamental_matrix_ransac(pts1, pts2, threshold, self.confidence)
        elif model is GeometricModel.HOMOGRAPHY:
            _, mask = homography_ransac(pts1, pts2, threshold, self.confidence)
        elif model is GeometricModel.ESSENTIAL:
            if K1 is None or K2 is None:
                raise ValueError("Essential matrix estimation needs both intrinsics")
            _, mask = essential_matrix_ransac(pts1, pts2, K1, K2, threshold, self.confidence)
        else:
            raise ValueError(f"Unsupported geometric model: {model}")
        return mask


__all__ = ["ModelEstimator", "OpenCVModelEstimator"]
