"""
Shared core data structures for the pairwise matching pipeline.

These dataclasses are intentionally simple containers used across:
- feature extraction and caching
- putative and geometric matching
- export and visualization
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np

# Canonical unordered image pair, smaller id first.
Pair = Tuple[int, int]
# Correspondences for one pair: (feature index in image i, feature index in image j).
IndMatches = List[Tuple[int, int]]
# Pair -> ordered correspondences.
PairWiseMatches = Dict[Pair, IndMatches]


def make_pair(i: int, j: int) -> Pair:
    """
    Build the canonical form of an unordered image pair.

    Raises:
        ValueError: If both indices refer to the same image.
    """
    if i == j:
        raise ValueError(f"A pair needs two distinct images, got ({i}, {j})")
    return (i, j) if i < j else (j, i)


@dataclass(frozen=True)
class IntrinsicGroup:
    """Calibration shared by one or more images."""

    # Intrinsic matrix (3x3). Identity when the calibration is unknown.
    K: np.ndarray
    known: bool
    # Focal length in pixels, -1 when unknown.
    focal: float
    width: int
    height: int


@dataclass(frozen=True)
class ImageRecord:
    """A single entry of the image list."""

    id: int
    filename: str
    width: int
    height: int
    # Index into the list of IntrinsicGroup objects.
    intrinsic_id: int


@dataclass
class FeatureSet:
    """
    Keypoints and descriptors extracted from one image.

    Rows of `keypoints` and `descriptors` are aligned by index.
    """

    # keypoints: (N, 4) float32 array of (x, y, scale, orientation).
    keypoints: np.ndarray
    # descriptors: (N, D) array, float32 (SIFT) or uint8 (ORB).
    descriptors: np.ndarray

    def __len__(self) -> int:
        return int(self.keypoints.shape[0])

    @property
    def points(self) -> np.ndarray:
        """Keypoint positions as an (N, 2) float32 array."""
        return self.keypoints[:, :2].astype(np.float32)


@dataclass
class PipelineResult:
    """Everything a pipeline run produced, held in memory for reporting."""

    images: List[ImageRecord] = field(default_factory=list)
    pairs: List[Pair] = field(default_factory=list)
    putative_matches: PairWiseMatches = field(default_factory=dict)
    geometric_matches: PairWiseMatches = field(default_factory=dict)
    # Image ids whose decoding failed during feature extraction.
    skipped_images: List[int] = field(default_factory=list)
    # Image id -> (width, height) for every image with features.
    image_sizes: Dict[int, Tuple[int, int]] = field(default_factory=dict)
    # Stage name -> elapsed seconds.
    timings: Dict[str, float] = field(default_factory=dict)


__all__ = [
    "Pair",
    "IndMatches",
    "PairWiseMatches",
    "make_pair",
    "IntrinsicGroup",
    "ImageRecord",
    "FeatureSet",
    "PipelineResult",
]
