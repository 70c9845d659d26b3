"""
Per-image feature cache backed by the artifact store.

Extraction runs at most once per image: when both the `.feat` and `.desc`
artifacts already exist they are loaded instead.
"""

from __future__ import annotations

import os
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from matching_app.features.keypoints import FeatureExtractor
from matching_app.io.artifact_store import ArtifactStore
from matching_app.io.feature_io import (
    decode_feature_set,
    encode_feature_set,
    feature_artifact_names,
)
from matching_app.io.image_io import read_grayscale, read_image_size
from matching_app.pipeline.data_structures import FeatureSet, ImageRecord
from matching_app.pipeline.errors import MissingInputError

ImageReader = Callable[[str], Optional[np.ndarray]]
SizeReader = Callable[[str], Optional[Tuple[int, int]]]


class FeatureStore:
    """
    Lazily materialized FeatureSets, one per image.

    Args:
        store: Artifact store holding the feature files.
        extractor: Detector strategy, only invoked for images without artifacts.
        image_dir: Directory the image filenames are relative to.
        image_reader: Decodes an image path to grayscale, None on failure.
        size_reader: Returns (width, height) of an image path, None on failure.
    """

    def __init__(
        self,
        store: ArtifactStore,
        extractor: FeatureExtractor,
        image_dir: str,
        image_reader: ImageReader = read_grayscale,
        size_reader: SizeReader = read_image_size,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.image_dir = image_dir
        self.image_reader = image_reader
        self.size_reader = size_reader

    def image_path(self, record: ImageRecord) -> str:
        return os.path.join(self.image_dir, record.filename)

    def has_features(self, record: ImageRecord) -> bool:
        feat_name, desc_name = feature_artifact_names(record.filename)
        return self.store.exists(feat_name) and self.store.exists(desc_name)

    def load(self, record: ImageRecord) -> FeatureSet:
        feat_name, desc_name = feature_artifact_names(record.filename)
        try:
            return decode_feature_set(
                self.store.read_bytes(feat_name),
                self.store.read_bytes(desc_name),
            )
        except (ValueError, EOFError) as e:
            raise MissingInputError(
                f"Corrupt feature artifacts \"{feat_name}\" / \"{desc_name}\" ({e}); "
                "delete them to re-extract"
            ) from e

    def ensure(
        self, record: ImageRecord
    ) -> Tuple[Optional[FeatureSet], Optional[Tuple[int, int]]]:
        """
        Return the features and (width, height) of an image, extracting if needed.

        Args:
            record: Image to process.

        Returns:
            Tuple of (features, size). Both are None when the image has no
            cached features and cannot be decoded.
        """
        if self.has_features(record):
            if record.width > 0 and record.height > 0:
                size = (record.width, record.height)
            else:
                size = self.size_reader(self.image_path(record))
            return self.load(record), size

        gray = self.image_reader(self.image_path(record))
        if gray is None:
            return None, None

        keypoints, descriptors = self.extractor.extract(gray)
        features = FeatureSet(
            keypoints=np.asarray(keypoints, dtype=np.float32).reshape(-1, 4),
            descriptors=descriptors,
        )
        feat_data, desc_data = encode_feature_set(features)
        feat_name, desc_name = feature_artifact_names(record.filename)
        self.store.write_bytes(feat_name, feat_data)
        self.store.write_bytes(desc_name, desc_data)

        h, w = gray.shape[:2]
        return features, (w, h)


def extract_all_features(
    feature_store: FeatureStore,
    images: List[ImageRecord],
) -> Tuple[Dict[int, FeatureSet], Dict[int, Tuple[int, int]], List[int]]:
    """
    Ensure features for every image, one image at a time.

    Images that cannot be decoded are skipped and reported; the run continues.

    Returns:
        Tuple of (features_by_id, sizes_by_id, skipped_ids).
    """
    features: Dict[int, FeatureSet] = {}
    sizes: Dict[int, Tuple[int, int]] = {}
    skipped: List[int] = []

    for record in tqdm(images, desc="Extracting features", unit="img"):
        feature_set, size = feature_store.ensure(record)
        if feature_set is None:
            skipped.append(record.id)
            tqdm.write(
                f"[features] Warning: could not decode {feature_store.image_path(record)}; "
                "image skipped"
            )
            continue
        features[record.id] = feature_set
        if size is not None:
            sizes[record.id] = size

    return features, sizes, skipped


__all__ = ["FeatureStore", "extract_all_features", "ImageReader", "SizeReader"]
