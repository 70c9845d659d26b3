"""
Tests for geometric verification and essential-model quality gating.
"""

import numpy as np
import pytest

from conftest import AcceptAllEstimator, CountingExtractor, FirstNInliersEstimator
from matching_app.geometry.verification import (
    GeometricVerifier,
    known_intrinsics_by_image,
    passes_essential_quality_gate,
    prune_essential_matches,
)
from matching_app.io.artifact_store import MemoryArtifactStore
from matching_app.io.image_list import parse_image_list
from matching_app.io.match_io import format_pairwise_matches
from matching_app.pipeline.config import GeometricModel
from matching_app.pipeline.data_structures import FeatureSet


@pytest.mark.parametrize(
    "inliers, putative, survives",
    [
        (50, 100, True),
        (60, 200, True),
        (49, 100, False),
        (29999, 100000, False),
        (30000, 100000, True),
        (50, 167, False),
        (0, 0, False),
    ],
)
def test_essential_quality_gate_boundaries(inliers, putative, survives):
    assert passes_essential_quality_gate(inliers, putative) is survives


def test_prune_essential_matches_removes_weak_pairs_in_place():
    putative = {(0, 1): [(k, k) for k in range(100)], (0, 2): [(k, k) for k in range(100)]}
    geometric = {(0, 1): putative[(0, 1)][:50], (0, 2): putative[(0, 2)][:49]}

    removed = prune_essential_matches(geometric, putative)

    assert removed == [(0, 2)]
    assert list(geometric) == [(0, 1)]


def _features(n=200):
    keypoints, descriptors = CountingExtractor(n).extract(np.zeros((480, 640), np.uint8))
    return FeatureSet(keypoints=keypoints, descriptors=descriptors)


def _putative(pairs, n):
    return {pair: [(k, (k * 7) % 200) for k in range(n)] for pair in pairs}


def test_inliers_are_a_subsequence_of_putative_matches():
    putative = _putative([(0, 1)], 20)
    verifier = GeometricVerifier(MemoryArtifactStore(), FirstNInliersEstimator(8))

    result = verifier.verify(putative, GeometricModel.FUNDAMENTAL, {0: _features(), 1: _features()})

    assert result == {(0, 1): putative[(0, 1)][:8]}


def test_failed_fit_leaves_pair_out():
    verifier = GeometricVerifier(MemoryArtifactStore(), FirstNInliersEstimator(0))
    result = verifier.verify(
        _putative([(0, 1)], 20), GeometricModel.HOMOGRAPHY, {0: _features(), 1: _features()}
    )
    assert result == {}


def test_essential_excludes_pairs_without_known_intrinsics():
    images, intrinsics = parse_image_list(
        ["a.jpg;640;480;800", "b.jpg;640;480", "c.jpg;640;480;800"]
    )
    known = known_intrinsics_by_image(images, intrinsics)
    assert sorted(known) == [0, 2]

    estimator = AcceptAllEstimator()
    verifier = GeometricVerifier(MemoryArtifactStore(), estimator)
    features = {k: _features() for k in range(3)}
    putative = _putative([(0, 1), (0, 2), (1, 2)], 60)

    result = verifier.verify(putative, GeometricModel.ESSENTIAL, features, known)

    assert list(result) == [(0, 2)]
    assert estimator.calls == [(GeometricModel.ESSENTIAL, 60, True, True)]


def test_essential_quality_gate_applied_after_estimation():
    images, intrinsics = parse_image_list(["a.jpg;640;480;800", "b.jpg;640;480;800"])
    known = known_intrinsics_by_image(images, intrinsics)
    features = {0: _features(), 1: _features()}

    low_ratio = GeometricVerifier(MemoryArtifactStore(), FirstNInliersEstimator(59))
    assert low_ratio.verify(_putative([(0, 1)], 200), GeometricModel.ESSENTIAL, features, known) == {}
    assert low_ratio.pruned_pairs == [(0, 1)]

    kept = GeometricVerifier(MemoryArtifactStore(), FirstNInliersEstimator(60))
    assert len(kept.verify(_putative([(0, 1)], 200), GeometricModel.ESSENTIAL, features, known)[(0, 1)]) == 60


def test_fundamental_results_are_not_gated():
    verifier = GeometricVerifier(MemoryArtifactStore(), FirstNInliersEstimator(3))
    result = verifier.verify(
        _putative([(0, 1)], 100), GeometricModel.FUNDAMENTAL, {0: _features(), 1: _features()}
    )
    assert len(result[(0, 1)]) == 3


def test_result_persisted_to_model_artifact_and_reloaded():
    store = MemoryArtifactStore()
    putative = _putative([(0, 1)], 10)
    features = {0: _features(), 1: _features()}

    first = GeometricVerifier(store, AcceptAllEstimator()).verify(
        putative, GeometricModel.HOMOGRAPHY, features
    )
    assert store.read_text("matches.h.txt") == format_pairwise_matches(first)
    assert not store.exists("matches.f.txt")

    estimator = AcceptAllEstimator()
    second_verifier = GeometricVerifier(store, estimator)
    second = second_verifier.verify(putative, GeometricModel.HOMOGRAPHY, features)
    assert second == first
    assert estimator.calls == []
    assert second_verifier.loaded_from_artifact
