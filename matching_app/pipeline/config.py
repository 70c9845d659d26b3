"""
Run configuration for the pairwise matching pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from matching_app.pipeline.errors import ConfigurationError


class GeometricModel(Enum):
    FUNDAMENTAL = "f"
    ESSENTIAL = "e"
    HOMOGRAPHY = "h"

    @classmethod
    def parse(cls, value: str) -> "GeometricModel":
        """
        Parse a model selector from its first letter (case-insensitive).

        Accepts "f", "E", "homography", etc.

        Raises:
            ConfigurationError: If the selector names no known model.
        """
        key = value.strip()[:1].lower() if value else ""
        for model in cls:
            if model.value == key:
                return model
        raise ConfigurationError(f"Unknown geometric model: {value!r}")

    @property
    def matches_filename(self) -> str:
        """Name of the artifact holding matches verified with this model."""
        return f"matches.{self.value}.txt"


PUTATIVE_MATCHES_FILENAME = "matches.putative.txt"
IMAGE_LIST_FILENAME = "lists.txt"
PUTATIVE_ADJACENCY_FILENAME = "PutativeAdjacencyMatrix.html"
GEOMETRIC_ADJACENCY_FILENAME = "GeometricAdjacencyMatrix.html"


@dataclass
class MatchingConfig:
    """Options controlling one run of the matching pipeline."""

    output_dir: str
    image_dir: str
    distance_ratio: float = 0.6
    geometric_model: GeometricModel = GeometricModel.FUNDAMENTAL
    # Sequence matching window; None disables sequence matching.
    video_mode_overlap: Optional[int] = None
    # Path to a predefined pair list; None disables it.
    pair_list: Optional[str] = None
    # Upper bound on the residual (pixels) for a correspondence to be an inlier.
    max_residual_error: float = 4.0
    ransac_confidence: float = 0.999
    # Quality gate applied to essential-matrix results only.
    essential_min_inliers: int = 50
    essential_min_inlier_ratio: float = 0.3
    descriptor: str = "sift"

    def validate(self) -> None:
        """
        Check the options before any stage runs.

        Raises:
            ConfigurationError: On a missing path or conflicting options.
        """
        if not self.output_dir:
            raise ConfigurationError("It is an invalid output directory")
        if not self.image_dir:
            raise ConfigurationError("It is an invalid image directory")
        if not 0.0 < self.distance_ratio < 1.0:
            raise ConfigurationError(
                f"Distance ratio must be in (0, 1), got {self.distance_ratio}"
            )
        if self.video_mode_overlap is not None and self.video_mode_overlap <= 0:
            raise ConfigurationError(
                f"Sequence overlap must be positive, got {self.video_mode_overlap}"
            )
        if self.video_mode_overlap is not None and self.pair_list:
            raise ConfigurationError(
                "Incompatible options: --video-mode-matching and --pair-list"
            )
        if self.descriptor not in ("sift", "orb"):
            raise ConfigurationError(f"Unknown descriptor: {self.descriptor!r}")


__all__ = [
    "GeometricModel",
    "MatchingConfig",
    "PUTATIVE_MATCHES_FILENAME",
    "IMAGE_LIST_FILENAME",
    "PUTATIVE_ADJACENCY_FILENAME",
    "GEOMETRIC_ADJACENCY_FILENAME",
]
