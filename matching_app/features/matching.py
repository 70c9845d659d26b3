"""
Putative descriptor matching using FLANN or brute-force matchers.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Optional, Tuple, Union

import cv2
import numpy as np
from tqdm import tqdm

from matching_app.io.artifact_store import ArtifactStore
from matching_app.io.result_exporter import ResultExporter
from matching_app.pipeline.config import PUTATIVE_MATCHES_FILENAME
from matching_app.pipeline.data_structures import (
    FeatureSet,
    IndMatches,
    Pair,
    PairWiseMatches,
)

FeatureAccessor = Union[Mapping[int, FeatureSet], Callable[[int], Optional[FeatureSet]]]


class NearestNeighborMatcher:
    """Two-nearest-neighbor search strategy."""

    def knn_match(
        self, descriptors1: np.ndarray, descriptors2: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Find the two nearest neighbors in `descriptors2` of each row of `descriptors1`.

        Returns:
            Tuple of (indices, distances), both (N1, 2). Missing neighbors are
            marked with index -1 and distance inf.
        """
        raise NotImplementedError


class OpenCVNearestNeighborMatcher(NearestNeighborMatcher):
    """
    k-NN search with OpenCV.

    Args:
        use_flann: If True, use FLANN matcher (for float descriptors);
                   otherwise use BFMatcher. Binary descriptors always use
                   BFMatcher with HAMMING.
    """

    def __init__(self, use_flann: bool = True) -> None:
        self.use_flann = use_flann

    def _create_matcher(self, is_float: bool, n_train: int):
        # FLANN needs at least k=2 train descriptors
        if self.use_flann and is_float and n_train >= 2:
            # FLANN matcher for SIFT (float descriptors)
            FLANN_INDEX_KDTREE = 1
            index_params = dict(algorithm=FLANN_INDEX_KDTREE, trees=5)
            search_params = dict(checks=50)
            return cv2.FlannBasedMatcher(index_params, search_params)
        # BFMatcher for ORB (binary descriptors) or as fallback
        norm_type = cv2.NORM_HAMMING if not is_float else cv2.NORM_L2
        return cv2.BFMatcher(norm_type, crossCheck=False)

    def knn_match(
        self, descriptors1: np.ndarray, descriptors2: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        n1 = len(descriptors1)
        indices = np.full((n1, 2), -1, dtype=np.int64)
        distances = np.full((n1, 2), np.inf, dtype=np.float64)
        if n1 == 0 or len(descriptors2) == 0:
            return indices, distances

        is_float = descriptors1.dtype != np.uint8
        if is_float:
            descriptors1 = descriptors1.astype(np.float32)
            descriptors2 = descriptors2.astype(np.float32)

        # k-NN matching with k=2 for ratio test
        n_train = len(descriptors2)
        matcher = self._create_matcher(is_float, n_train)
        knn_matches = matcher.knnMatch(descriptors1, descriptors2, k=min(2, n_train))

        for match_pair in knn_matches:
            for rank, m in enumerate(match_pair[:2]):
                indices[m.queryIdx, rank] = m.trainIdx
                distances[m.queryIdx, rank] = m.distance
        return indices, distances


def filter_matches_ratio_test(
    indices: np.ndarray,
    distances: np.ndarray,
    ratio: float = 0.6,
) -> IndMatches:
    """
    Filter nearest-neighbor candidates using Lowe's ratio test.

    A query row is kept iff its nearest distance d1 and second-nearest
    distance d2 satisfy d1 < ratio * d2; d1 == ratio * d2 is rejected.

    Args:
        indices: (N, 2) neighbor indices from `knn_match`.
        distances: (N, 2) neighbor distances from `knn_match`.
        ratio: Ratio threshold in (0, 1).

    Returns:
        List of (query_index, train_index) correspondences in query order,
        duplicates removed.
    """
    if not 0.0 < ratio < 1.0:
        raise ValueError(f"Ratio must be in (0, 1), got {ratio}")

    good_matches: IndMatches = []
    seen = set()
    for query_idx in range(len(indices)):
        # Need both neighbors for the test
        if indices[query_idx, 0] < 0 or indices[query_idx, 1] < 0:
            continue
        d1, d2 = distances[query_idx]
        if d1 < ratio * d2:
            match = (int(query_idx), int(indices[query_idx, 0]))
            if match not in seen:
                seen.add(match)
                good_matches.append(match)
    return good_matches


def lookup_features(features: FeatureAccessor, image_id: int) -> Optional[FeatureSet]:
    if callable(features):
        return features(image_id)
    return features.get(image_id)


class PutativeMatcher:
    """
    Photometric matching of image pairs, resumable at stage level.

    If the putative match artifact exists it is loaded and no matching is done.

    Args:
        store: Artifact store holding `matches.putative.txt`.
        nn_matcher: Nearest-neighbor search strategy.
        ratio: Distance ratio threshold.
    """

    def __init__(
        self,
        store: ArtifactStore,
        nn_matcher: NearestNeighborMatcher,
        ratio: float = 0.6,
    ) -> None:
        if not 0.0 < ratio < 1.0:
            raise ValueError(f"Ratio must be in (0, 1), got {ratio}")
        self.store = store
        self.exporter = ResultExporter(store)
        self.nn_matcher = nn_matcher
        self.ratio = ratio
        self.loaded_from_artifact = False

    def match_pair(self, features1: FeatureSet, features2: FeatureSet) -> IndMatches:
        indices, distances = self.nn_matcher.knn_match(
            features1.descriptors, features2.descriptors
        )
        return filter_matches_ratio_test(indices, distances, self.ratio)

    def match(self, pairs: Iterable[Pair], features: FeatureAccessor) -> PairWiseMatches:
        """
        Compute (or reload) putative matches for all pairs.

        Args:
            pairs: Canonical pairs to match.
            features: Mapping or callable from image id to FeatureSet; missing
                      images (decode failures) cause their pairs to be skipped.

        Returns:
            Mapping of pair -> correspondences, empty pairs omitted.
        """
        if self.store.exists(PUTATIVE_MATCHES_FILENAME):
            self.loaded_from_artifact = True
            return self.exporter.import_matches(PUTATIVE_MATCHES_FILENAME)

        self.loaded_from_artifact = False
        putative: PairWiseMatches = {}
        for i, j in tqdm(list(pairs), desc="Putative matching", unit="pair"):
            features_i = lookup_features(features, i)
            features_j = lookup_features(features, j)
            if features_i is None or features_j is None:
                continue
            corr = self.match_pair(features_i, features_j)
            if corr:
                putative[(i, j)] = corr

        self.exporter.export_matches(PUTATIVE_MATCHES_FILENAME, putative)
        return putative


__all__ = [
    "NearestNeighborMatcher",
    "OpenCVNearestNeighborMatcher",
    "filter_matches_ratio_test",
    "PutativeMatcher",
    "FeatureAccessor",
    "lookup_features",
]
