"""
Serialization of per-image features to the `.feat` / `.desc` artifact pair.
"""

from __future__ import annotations

import io
from pathlib import PurePath
from typing import Tuple

import numpy as np

from matching_app.pipeline.data_structures import FeatureSet


def feature_artifact_names(filename: str) -> Tuple[str, str]:
    """
    Names of the keypoint and descriptor artifacts for an image file.

    Args:
        filename: Image filename as listed in the image list.

    Returns:
        Tuple of (feat_name, desc_name), e.g. ("img_01.feat", "img_01.desc").
    """
    stem = PurePath(filename).stem
    return f"{stem}.feat", f"{stem}.desc"


def encode_keypoints(keypoints: np.ndarray) -> bytes:
    """
    Encode keypoints as text, one `x y scale orientation` line per keypoint.

    Nine significant digits round-trip float32 values exactly.
    """
    buf = io.StringIO()
    if len(keypoints) > 0:
        np.savetxt(buf, np.asarray(keypoints, dtype=np.float32), fmt="%.9g")
    return buf.getvalue().encode("utf-8")


def decode_keypoints(data: bytes) -> np.ndarray:
    text = data.decode("utf-8")
    if not text.strip():
        return np.zeros((0, 4), dtype=np.float32)
    return np.loadtxt(io.StringIO(text), dtype=np.float32, ndmin=2).reshape(-1, 4)


def encode_descriptors(descriptors: np.ndarray) -> bytes:
    """Encode descriptors as an `.npy` payload (dtype and shape preserved)."""
    buf = io.BytesIO()
    np.save(buf, np.ascontiguousarray(descriptors), allow_pickle=False)
    return buf.getvalue()


def decode_descriptors(data: bytes) -> np.ndarray:
    return np.load(io.BytesIO(data), allow_pickle=False)


def encode_feature_set(features: FeatureSet) -> Tuple[bytes, bytes]:
    return encode_keypoints(features.keypoints), encode_descriptors(features.descriptors)


def decode_feature_set(feat_data: bytes, desc_data: bytes) -> FeatureSet:
    """
    Rebuild a FeatureSet from its two artifacts.

    Raises:
        ValueError: If keypoint and descriptor counts disagree.
    """
    keypoints = decode_keypoints(feat_data)
    descriptors = decode_descriptors(desc_data)
    if len(keypoints) != len(descriptors):
        raise ValueError(
            f"Feature count mismatch: {len(keypoints)} keypoints, "
            f"{len(descriptors)} descriptors"
        )
    return FeatureSet(keypoints=keypoints, descriptors=descriptors)


__all__ = [
    "feature_artifact_names",
    "encode_keypoints",
    "decode_keypoints",
    "encode_descriptors",
    "decode_descriptors",
    "encode_feature_set",
    "decode_feature_set",
]
