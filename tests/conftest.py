"""
Shared fixtures and test doubles for the matching pipeline tests.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

from matching_app.features.keypoints import FeatureExtractor
from matching_app.features.matching import NearestNeighborMatcher
from matching_app.geometry.robust_estimator import ModelEstimator
from matching_app.io.artifact_store import MemoryArtifactStore
from matching_app.pipeline.config import IMAGE_LIST_FILENAME


class CountingExtractor(FeatureExtractor):
    """Returns `n_features` deterministic features; counts calls."""

    name = "STUB"

    def __init__(self, n_features: int = 30) -> None:
        self.n_features = n_features
        self.calls = 0

    def extract(self, gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        self.calls += 1
        n = self.n_features
        xs = np.linspace(1.0, gray.shape[1] - 1.0, n, dtype=np.float32)
        ys = np.linspace(1.0, gray.shape[0] - 1.0, n, dtype=np.float32)
        keypoints = np.stack(
            [xs, ys, np.full(n, 2.5, np.float32), np.linspace(0, 359, n, dtype=np.float32)],
            axis=1,
        )
        descriptors = np.arange(n * 8, dtype=np.float32).reshape(n, 8) / 7.0
        return keypoints, descriptors


class FixedNeighborMatcher(NearestNeighborMatcher):
    """
    Maps query row k to train row k for the first `n_matches` rows with a
    clear best neighbor; other rows are ambiguous.
    """

    def __init__(self, n_matches: int = 10) -> None:
        self.n_matches = n_matches
        self.calls = 0

    def knn_match(self, descriptors1, descriptors2):
        self.calls += 1
        n1 = len(descriptors1)
        indices = np.zeros((n1, 2), dtype=np.int64)
        distances = np.ones((n1, 2), dtype=np.float64)
        for k in range(n1):
            indices[k] = (k % len(descriptors2), (k + 1) % len(descriptors2))
            if k < self.n_matches:
                distances[k] = (1.0, 10.0)
        return indices, distances


class AcceptAllEstimator(ModelEstimator):
    """Every correspondence is an inlier."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def fit_model(self, model, pts1, pts2, threshold, K1=None, K2=None):
        self.calls.append((model, len(pts1), K1 is not None, K2 is not None))
        return np.ones(len(pts1), dtype=bool)


class FirstNInliersEstimator(ModelEstimator):
    """Marks the first `n_inliers` correspondences of every pair as inliers."""

    def __init__(self, n_inliers: int) -> None:
        self.n_inliers = n_inliers

    def fit_model(self, model, pts1, pts2, threshold, K1=None, K2=None):
        mask = np.zeros(len(pts1), dtype=bool)
        mask[: self.n_inliers] = True
        return mask


def make_image_reader(failing: Optional[List[str]] = None, shape=(48, 64)):
    """Image reader returning a blank image, or None for names in `failing`."""
    failing = failing or []

    def reader(path: str) -> Optional[np.ndarray]:
        if any(path.endswith(name) for name in failing):
            return None
        return np.zeros(shape, dtype=np.uint8)

    return reader


def image_list_text(n_images: int, focal: Optional[float] = None) -> str:
    lines = []
    for k in range(n_images):
        fields = [f"img_{k:02d}.jpg", "64", "48"]
        if focal is not None:
            fields.append(str(focal))
        lines.append(";".join(fields))
    return "\n".join(lines) + "\n"


@pytest.fixture
def memory_store_factory():
    def factory(n_images: int = 3, focal: Optional[float] = None) -> MemoryArtifactStore:
        store = MemoryArtifactStore()
        store.write_text(IMAGE_LIST_FILENAME, image_list_text(n_images, focal))
        store.writes.clear()
        return store

    return factory


def match_blobs(store: MemoryArtifactStore) -> Dict[str, bytes]:
    return {name: data for name, data in store.blobs.items() if name.startswith("matches.")}
