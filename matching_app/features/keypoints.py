"""
Keypoint detection and descriptor extraction.
"""

from __future__ import annotations

from typing import List, Tuple

import cv2
import numpy as np


def keypoints_to_array(keypoints: List[cv2.KeyPoint]) -> np.ndarray:
    """
    Convert OpenCV keypoints to an (N, 4) float32 array of (x, y, scale, orientation).
    """
    if len(keypoints) == 0:
        return np.zeros((0, 4), dtype=np.float32)
    return np.array(
        [(kp.pt[0], kp.pt[1], kp.size, kp.angle) for kp in keypoints],
        dtype=np.float32,
    )


def detect_keypoints(
    image: np.ndarray,
    use_sift: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Detect keypoints and compute descriptors in an image.

    Args:
        image: Input image (H, W, 3) or (H, W), dtype=uint8.
        use_sift: If True, use SIFT detector; otherwise use ORB.

    Returns:
        Tuple of (keypoints, descriptors) where:
        - keypoints: Array (N, 4) of (x, y, scale, orientation), dtype=float32.
        - descriptors: Array of descriptors (N, D), dtype=float32 (SIFT) or uint8 (ORB).
    """
    # Convert to grayscale if needed
    if len(image.shape) == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    else:
        gray = image

    if use_sift:
        detector = cv2.SIFT_create()
    else:
        detector = cv2.ORB_create()

    keypoints, descriptors = detector.detectAndCompute(gray, None)

    if descriptors is None:
        dtype = np.float32 if use_sift else np.uint8
        descriptors = np.zeros((0, detector.descriptorSize()), dtype=dtype)

    return keypoints_to_array(keypoints), descriptors


class FeatureExtractor:
    """Detector + descriptor strategy used by the feature store."""

    name = "abstract"

    def extract(self, gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError


class OpenCVFeatureExtractor(FeatureExtractor):
    """SIFT (float descriptors) or ORB (binary descriptors) from OpenCV."""

    def __init__(self, descriptor: str = "sift") -> None:
        if descriptor not in ("sift", "orb"):
            raise ValueError(f"Unknown descriptor: {descriptor!r}")
        self.descriptor = descriptor
        self.name = descriptor.upper()

    def extract(self, gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return detect_keypoints(gray, use_sift=self.descriptor == "sift")


__all__ = [
    "keypoints_to_array",
    "detect_keypoints",
    "FeatureExtractor",
    "OpenCVFeatureExtractor",
]
