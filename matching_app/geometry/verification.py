"""
Geometric filtering of putative matches.

Each pair's putative correspondences are fitted with the selected model and
only inliers are kept. Results for the essential model are additionally
pruned when the pair overlap looks weak.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from matching_app.features.matching import FeatureAccessor, lookup_features
from matching_app.geometry.robust_estimator import ModelEstimator
from matching_app.io.artifact_store import ArtifactStore
from matching_app.io.result_exporter import ResultExporter
from matching_app.pipeline.config import GeometricModel
from matching_app.pipeline.data_structures import (
    ImageRecord,
    IndMatches,
    IntrinsicGroup,
    Pair,
    PairWiseMatches,
)


def passes_essential_quality_gate(
    inlier_count: int,
    putative_count: int,
    min_inliers: int = 50,
    min_ratio: float = 0.3,
) -> bool:
    """
    Decide whether an essential-matrix result is trustworthy.

    A pair survives iff it has at least `min_inliers` inliers and at least
    `min_ratio` of its putative matches are inliers.
    """
    if putative_count <= 0:
        return False
    if inlier_count < min_inliers:
        return False
    return inlier_count / putative_count >= min_ratio


def prune_essential_matches(
    geometric: PairWiseMatches,
    putative: PairWiseMatches,
    min_inliers: int = 50,
    min_ratio: float = 0.3,
) -> List[Pair]:
    """
    Remove pairs with poor overlap from `geometric` in place.

    Returns:
        The pairs that were removed.
    """
    to_remove = [
        pair
        for pair, inliers in geometric.items()
        if not passes_essential_quality_gate(
            len(inliers), len(putative.get(pair, [])), min_inliers, min_ratio
        )
    ]
    for pair in to_remove:
        del geometric[pair]
    return to_remove


def known_intrinsics_by_image(
    images: Sequence[ImageRecord],
    intrinsics: Sequence[IntrinsicGroup],
) -> Dict[int, np.ndarray]:
    """Map image id -> K for every image whose calibration is known."""
    return {
        record.id: intrinsics[record.intrinsic_id].K
        for record in images
        if intrinsics[record.intrinsic_id].known
    }


class GeometricVerifier:
    """
    Robust model fitting dispatch plus post-hoc quality pruning.

    Args:
        store: Artifact store receiving the model-specific match file.
        estimator: Robust estimator strategy.
        max_residual_error: Inlier threshold in pixels.
        essential_min_inliers: Absolute floor for essential-model pairs.
        essential_min_ratio: Inlier/putative floor for essential-model pairs.
    """

    def __init__(
        self,
        store: ArtifactStore,
        estimator: ModelEstimator,
        max_residual_error: float = 4.0,
        essential_min_inliers: int = 50,
        essential_min_ratio: float = 0.3,
    ) -> None:
        self.store = store
        self.exporter = ResultExporter(store)
        self.estimator = estimator
        self.max_residual_error = max_residual_error
        self.essential_min_inliers = essential_min_inliers
        self.essential_min_ratio = essential_min_ratio
        self.loaded_from_artifact = False
        self.pruned_pairs: List[Pair] = []

    def filter_pair(
        self,
        model: GeometricModel,
        corr: IndMatches,
        pts_i: np.ndarray,
        pts_j: np.ndarray,
        K_i: Optional[np.ndarray] = None,
        K_j: Optional[np.ndarray] = None,
    ) -> IndMatches:
        """Return the subsequence of `corr` that fits the estimated model."""
        if not corr:
            return []
        idx = np.asarray(corr, dtype=np.int64)
        mask = self.estimator.fit_model(
            model,
            pts_i[idx[:, 0]],
            pts_j[idx[:, 1]],
            self.max_residual_error,
            K_i,
            K_j,
        )
        mask = np.asarray(mask, dtype=bool).ravel()
        return [c for c, keep in zip(corr, mask) if keep]

    def verify(
        self,
        putative: PairWiseMatches,
        model: GeometricModel,
        features: FeatureAccessor,
        intrinsics: Optional[Dict[int, np.ndarray]] = None,
        reuse_artifact: bool = True,
    ) -> PairWiseMatches:
        """
        Filter putative matches with the given model.

        Args:
            putative: Putative match set.
            model: Geometric model to fit.
            features: Mapping or callable from image id to FeatureSet.
            intrinsics: Image id -> K for images with known calibration;
                        required by the essential model.
            reuse_artifact: Load an existing model artifact instead of fitting.
                            Pass False when `putative` was recomputed, since the
                            stored result may not be a subset of it.

        Returns:
            Geometric match set; pairs without inliers are omitted.
        """
        filename = model.matches_filename
        self.pruned_pairs = []
        if reuse_artifact and self.store.exists(filename):
            self.loaded_from_artifact = True
            return self.exporter.import_matches(filename)
        self.loaded_from_artifact = False

        intrinsics = intrinsics or {}
        pairs = sorted(putative)
        if model is GeometricModel.ESSENTIAL:
            # The estimator needs both calibrations.
            pairs = [(i, j) for i, j in pairs if i in intrinsics and j in intrinsics]

        geometric: PairWiseMatches = {}
        for i, j in tqdm(pairs, desc=f"Geometric filtering ({model.name.lower()})", unit="pair"):
            features_i = lookup_features(features, i)
            features_j = lookup_features(features, j)
            if features_i is None or features_j is None:
                continue
            inliers = self.filter_pair(
                model,
                putative[(i, j)],
                features_i.points,
                features_j.points,
                intrinsics.get(i),
                intrinsics.get(j),
            )
            if inliers:
                geometric[(i, j)] = inliers

        if model is GeometricModel.ESSENTIAL:
            self.pruned_pairs = prune_essential_matches(
                geometric,
                putative,
                self.essential_min_inliers,
                self.essential_min_ratio,
            )

        self.exporter.export_matches(filename, geometric)
        return geometric


__all__ = [
    "passes_essential_quality_gate",
    "prune_essential_matches",
    "known_intrinsics_by_image",
    "GeometricVerifier",
]
