"""
Export of match sets and their adjacency diagnostics to the artifact store.
"""

from __future__ import annotations

from matching_app.io.artifact_store import ArtifactStore
from matching_app.io.match_io import format_pairwise_matches, parse_pairwise_matches
from matching_app.pipeline.data_structures import PairWiseMatches
from matching_app.pipeline.errors import MissingInputError
from matching_app.viz.plotly_viz import plot_adjacency_matrix


class ResultExporter:
    """Writes match sets and adjacency figures; never mutates its inputs."""

    def __init__(self, store: ArtifactStore) -> None:
        self.store = store

    def export_matches(self, name: str, matches: PairWiseMatches) -> None:
        self.store.write_text(name, format_pairwise_matches(matches))

    def import_matches(self, name: str) -> PairWiseMatches:
        """
        Read back a match set written by `export_matches`.

        Raises:
            MissingInputError: If the artifact is corrupt or truncated.
        """
        try:
            return parse_pairwise_matches(self.store.read_text(name).splitlines())
        except ValueError as e:
            raise MissingInputError(
                f"Corrupt artifact \"{name}\" ({e}); delete it to recompute"
            ) from e

    def export_adjacency(
        self,
        name: str,
        n_images: int,
        matches: PairWiseMatches,
        title: str,
    ) -> None:
        """Render the adjacency heatmap of `matches` to an HTML artifact."""
        fig = plot_adjacency_matrix(n_images, matches, title=title)
        self.store.write_text(name, fig.to_html(include_plotlyjs="cdn"))


__all__ = ["ResultExporter"]
