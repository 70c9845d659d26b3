"""
Tests for the per-image feature cache.
"""

import numpy as np

from conftest import CountingExtractor, make_image_reader
from matching_app.features.feature_store import FeatureStore, extract_all_features
from matching_app.io.artifact_store import MemoryArtifactStore
from matching_app.io.feature_io import (
    decode_feature_set,
    encode_feature_set,
    feature_artifact_names,
)
from matching_app.pipeline.data_structures import FeatureSet, ImageRecord


def _record(image_id=0, filename="img_00.jpg", width=64, height=48):
    return ImageRecord(id=image_id, filename=filename, width=width, height=height, intrinsic_id=0)


def _store_with(extractor, store=None, failing=None, size_reader=None):
    kwargs = {}
    if size_reader is not None:
        kwargs["size_reader"] = size_reader
    return FeatureStore(
        store or MemoryArtifactStore(),
        extractor,
        "images",
        image_reader=make_image_reader(failing),
        **kwargs,
    )


def test_ensure_extracts_and_persists_both_artifacts():
    extractor = CountingExtractor(12)
    feature_store = _store_with(extractor)

    features, size = feature_store.ensure(_record())

    assert extractor.calls == 1
    assert len(features) == 12
    assert size == (64, 48)
    feat_name, desc_name = feature_artifact_names("img_00.jpg")
    assert feature_store.store.exists(feat_name)
    assert feature_store.store.exists(desc_name)


def test_ensure_is_idempotent_once_artifacts_exist():
    extractor = CountingExtractor(12)
    feature_store = _store_with(extractor)
    feature_store.ensure(_record())
    extractor.calls = 0

    first, _ = feature_store.ensure(_record())
    second, _ = feature_store.ensure(_record())

    assert extractor.calls == 0
    assert encode_feature_set(first) == encode_feature_set(second)
    np.testing.assert_array_equal(first.keypoints, second.keypoints)
    np.testing.assert_array_equal(first.descriptors, second.descriptors)


def test_loaded_features_equal_extracted_features():
    extractor = CountingExtractor(9)
    feature_store = _store_with(extractor)
    extracted, _ = feature_store.ensure(_record())
    loaded, _ = feature_store.ensure(_record())

    np.testing.assert_array_equal(extracted.keypoints, loaded.keypoints)
    np.testing.assert_array_equal(extracted.descriptors, loaded.descriptors)
    assert loaded.descriptors.dtype == extracted.descriptors.dtype


def test_cached_image_with_unknown_size_reads_size():
    extractor = CountingExtractor(4)
    feature_store = _store_with(extractor, size_reader=lambda path: (320, 240))
    feature_store.ensure(_record(width=0, height=0))

    _, size = feature_store.ensure(_record(width=0, height=0))

    assert size == (320, 240)


def test_decode_failure_skips_image():
    extractor = CountingExtractor()
    feature_store = _store_with(extractor, failing=["broken.jpg"])

    features, size = feature_store.ensure(_record(filename="broken.jpg"))

    assert features is None and size is None
    assert extractor.calls == 0
    assert feature_store.store.writes == {}


def test_extract_all_features_reports_skipped_images():
    extractor = CountingExtractor(5)
    feature_store = _store_with(extractor, failing=["img_01.jpg"])
    images = [_record(k, f"img_{k:02d}.jpg") for k in range(3)]

    features, sizes, skipped = extract_all_features(feature_store, images)

    assert sorted(features) == [0, 2]
    assert sorted(sizes) == [0, 2]
    assert skipped == [1]


def test_feature_artifacts_round_trip_empty_set():
    empty = FeatureSet(
        keypoints=np.zeros((0, 4), np.float32),
        descriptors=np.zeros((0, 128), np.float32),
    )
    restored = decode_feature_set(*encode_feature_set(empty))
    assert restored.keypoints.shape == (0, 4)
    assert restored.descriptors.shape == (0, 128)


def test_feature_artifact_names_use_basename():
    assert feature_artifact_names("sub/DSC_0001.JPG") == ("DSC_0001.feat", "DSC_0001.desc")
