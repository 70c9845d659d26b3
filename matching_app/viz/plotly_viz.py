"""
Visualization utilities for pairwise matching results using Plotly.
"""

from __future__ import annotations

import numpy as np
import plotly.graph_objs as go

from matching_app.pipeline.data_structures import PairWiseMatches


def adjacency_matrix(n_images: int, matches: PairWiseMatches) -> np.ndarray:
    """
    Build the symmetric image adjacency matrix of a match set.

    Args:
        n_images: Number of images in the collection.
        matches: Match set; pairs with no correspondences are not marked.

    Returns:
        Array (n_images, n_images), dtype=int, where cell (i, j) holds the
        number of correspondences of pair (i, j) and 0 marks no match.
    """
    adjacency = np.zeros((n_images, n_images), dtype=int)
    for (i, j), corr in matches.items():
        if len(corr) == 0:
            continue
        adjacency[i, j] = len(corr)
        adjacency[j, i] = len(corr)
    return adjacency


def plot_adjacency_matrix(
    n_images: int,
    matches: PairWiseMatches,
    title: str = "Pairwise Adjacency Matrix",
) -> go.Figure:
    """
    Create a heatmap of which image pairs share matches.

    Args:
        n_images: Number of images in the collection.
        matches: Match set to display.
        title: Figure title.

    Returns:
        Plotly Figure with one cell per image pair; unmatched cells are blank.
    """
    adjacency = adjacency_matrix(n_images, matches).astype(float)
    adjacency[adjacency == 0] = np.nan

    fig = go.Figure(
        go.Heatmap(
            z=adjacency,
            x=list(range(n_images)),
            y=list(range(n_images)),
            colorscale="Viridis",
            colorbar=dict(title="Matches"),
            hovertemplate="pair (%{y}, %{x}): %{z} matches<extra></extra>",
        )
    )

    fig.update_layout(
        title=title,
        xaxis=dict(title="Image", constrain="domain"),
        yaxis=dict(title="Image", autorange="reversed", scaleanchor="x"),
        width=800,
        height=800,
    )

    return fig


__all__ = ["adjacency_matrix", "plot_adjacency_matrix"]
