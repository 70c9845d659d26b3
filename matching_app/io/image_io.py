"""
Image decoding utilities.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np


def read_grayscale(image_path: str) -> Optional[np.ndarray]:
    """
    Decode an image file to a single-channel uint8 array.

    Args:
        image_path: Path to the image file.

    Returns:
        Grayscale image (H, W), dtype=uint8, or None if the file cannot be decoded.
    """
    image = cv2.imread(image_path, cv2.IMREAD_GRAYSCALE)
    if image is None or image.size == 0:
        return None
    return image


def read_image_size(image_path: str) -> Optional[Tuple[int, int]]:
    """
    Return the (width, height) of an image file, or None if it cannot be decoded.
    """
    image = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
    if image is None:
        return None
    h, w = image.shape[:2]
    return w, h


__all__ = ["read_grayscale", "read_image_size"]
