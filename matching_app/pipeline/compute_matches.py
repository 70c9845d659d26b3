"""
Pairwise matching pipeline.

Stages run strictly in order:

    a. List images
    b. Compute features and descriptors
    c. Compute putative descriptor matches
    d. Geometric filtering of putative matches
    e. Export adjacency diagnostics

Every stage persists its result in the artifact store and reloads it on the
next run, so an interrupted job resumes at the first incomplete stage.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from matching_app.features.feature_store import (
    FeatureStore,
    ImageReader,
    SizeReader,
    extract_all_features,
)
from matching_app.features.keypoints import FeatureExtractor, OpenCVFeatureExtractor
from matching_app.features.matching import (
    NearestNeighborMatcher,
    OpenCVNearestNeighborMatcher,
    PutativeMatcher,
)
from matching_app.geometry.robust_estimator import ModelEstimator, OpenCVModelEstimator
from matching_app.geometry.verification import GeometricVerifier, known_intrinsics_by_image
from matching_app.io.artifact_store import ArtifactStore, FileArtifactStore
from matching_app.io.image_io import read_grayscale, read_image_size
from matching_app.io.image_list import count_distinct_calibrations, parse_image_list
from matching_app.io.result_exporter import ResultExporter
from matching_app.pairs.pair_selection import describe_mode, select_pairs
from matching_app.pipeline.config import (
    GEOMETRIC_ADJACENCY_FILENAME,
    IMAGE_LIST_FILENAME,
    PUTATIVE_ADJACENCY_FILENAME,
    GeometricModel,
    MatchingConfig,
)
from matching_app.pipeline.data_structures import PipelineResult
from matching_app.pipeline.errors import MissingInputError


class MatchingPipeline:
    """
    Wires the stages together.

    All collaborators are injectable; the defaults use the filesystem and
    OpenCV.
    """

    def __init__(
        self,
        config: MatchingConfig,
        store: Optional[ArtifactStore] = None,
        extractor: Optional[FeatureExtractor] = None,
        nn_matcher: Optional[NearestNeighborMatcher] = None,
        estimator: Optional[ModelEstimator] = None,
        image_reader: ImageReader = read_grayscale,
        size_reader: SizeReader = read_image_size,
    ) -> None:
        config.validate()
        self.config = config
        self.store = store if store is not None else FileArtifactStore(config.output_dir)
        self.extractor = extractor or OpenCVFeatureExtractor(config.descriptor)
        self.nn_matcher = nn_matcher or OpenCVNearestNeighborMatcher(
            use_flann=config.descriptor == "sift"
        )
        self.estimator = estimator or OpenCVModelEstimator(config.ransac_confidence)
        self.feature_store = FeatureStore(
            self.store,
            self.extractor,
            config.image_dir,
            image_reader=image_reader,
            size_reader=size_reader,
        )
        self.exporter = ResultExporter(self.store)
        self.timings: Dict[str, float] = {}

    @contextmanager
    def _stage(self, name: str, banner: str) -> Iterator[None]:
        print(f"\n - {banner} - ")
        start = time.perf_counter()
        yield
        elapsed = time.perf_counter() - start
        self.timings[name] = elapsed
        print(f"Task done in (s): {elapsed:.3f}")

    def run(self) -> PipelineResult:
        """
        Execute every stage.

        Raises:
            MissingInputError: If the image list is absent or invalid.
            ConfigurationError: On a malformed predefined pair list.
            EmptySelectionError: If no pair is selected.
        """
        config = self.config
        result = PipelineResult(timings=self.timings)

        # a. List images
        if not self.store.exists(IMAGE_LIST_FILENAME):
            location = self.store.path_for(IMAGE_LIST_FILENAME) or IMAGE_LIST_FILENAME
            raise MissingInputError(f'The input file "{location}" is missing')
        images, intrinsics = parse_image_list(
            self.store.read_text(IMAGE_LIST_FILENAME).splitlines()
        )
        result.images = images
        print(f"[pipeline] {len(images)} images listed")

        result.pairs = select_pairs(len(images), config.video_mode_overlap, config.pair_list)
        print(
            f"[pipeline] Use: {describe_mode(config.video_mode_overlap, config.pair_list)} "
            f"({len(result.pairs)} pairs)"
        )

        # b. Compute features and descriptors
        with self._stage("features", "EXTRACT FEATURES"):
            print(f"[features] Use the {self.extractor.name} extractor")
            features, sizes, skipped = extract_all_features(self.feature_store, images)
            result.image_sizes = sizes
            result.skipped_images = skipped

        # c. Compute putative descriptor matches
        putative_matcher = PutativeMatcher(self.store, self.nn_matcher, config.distance_ratio)
        with self._stage("putative", "PUTATIVE MATCHES"):
            result.putative_matches = putative_matcher.match(result.pairs, features)
            if putative_matcher.loaded_from_artifact:
                print("\t PREVIOUS RESULTS LOADED")
            print(f"[putative] {len(result.putative_matches)} pairs with putative matches")
        self.exporter.export_adjacency(
            PUTATIVE_ADJACENCY_FILENAME,
            len(images),
            result.putative_matches,
            title="Putative Adjacency Matrix",
        )

        # d. Geometric filtering of putative matches
        model = config.geometric_model
        known_K = None
        if model is GeometricModel.ESSENTIAL:
            known_K = known_intrinsics_by_image(images, intrinsics)
            print(
                f"[geometric] {len(known_K)} of {len(images)} images calibrated, "
                f"{count_distinct_calibrations(intrinsics)} distinct calibration(s)"
            )

        verifier = GeometricVerifier(
            self.store,
            self.estimator,
            max_residual_error=config.max_residual_error,
            essential_min_inliers=config.essential_min_inliers,
            essential_min_ratio=config.essential_min_inlier_ratio,
        )
        with self._stage("geometric", "GEOMETRIC FILTERING"):
            result.geometric_matches = verifier.verify(
                result.putative_matches,
                model,
                features,
                known_K,
                reuse_artifact=putative_matcher.loaded_from_artifact,
            )
            if verifier.loaded_from_artifact:
                print("\t PREVIOUS RESULTS LOADED")
            if verifier.pruned_pairs:
                print(
                    f"[geometric] Removed {len(verifier.pruned_pairs)} pairs with poor overlap"
                )
            print(f"[geometric] {len(result.geometric_matches)} pairs kept")

        # e. Export adjacency matrix
        print("\n Export Adjacency Matrix of the pairwise's geometric matches")
        self.exporter.export_adjacency(
            GEOMETRIC_ADJACENCY_FILENAME,
            len(images),
            result.geometric_matches,
            title="Geometric Adjacency Matrix",
        )

        if result.skipped_images:
            print(
                f"[pipeline] Warning: {len(result.skipped_images)} image(s) could not be "
                f"decoded and were skipped: {result.skipped_images}"
            )
        return result


def run_pipeline(config: MatchingConfig, **collaborators) -> PipelineResult:
    """Convenience wrapper: build a MatchingPipeline and run it."""
    return MatchingPipeline(config, **collaborators).run()


__all__ = ["MatchingPipeline", "run_pipeline"]
