"""
Tests for adjacency diagnostics.
"""

import numpy as np

from matching_app.io.artifact_store import MemoryArtifactStore
from matching_app.io.result_exporter import ResultExporter
from matching_app.viz.plotly_viz import adjacency_matrix, plot_adjacency_matrix


def test_adjacency_marks_only_pairs_with_matches():
    matches = {(0, 2): [(1, 1), (2, 2)], (1, 3): [(0, 0)], (2, 3): []}
    adjacency = adjacency_matrix(4, matches)

    expected = np.zeros((4, 4), dtype=int)
    expected[0, 2] = expected[2, 0] = 2
    expected[1, 3] = expected[3, 1] = 1
    np.testing.assert_array_equal(adjacency, expected)


def test_plot_adjacency_matrix_heatmap():
    fig = plot_adjacency_matrix(3, {(0, 1): [(0, 0)]}, title="Putative")
    heatmap = fig.data[0]
    z = np.array(heatmap.z, dtype=float)
    assert z.shape == (3, 3)
    assert z[0, 1] == 1 and z[1, 0] == 1
    assert np.isnan(z[0, 2])
    assert fig.layout.title.text == "Putative"


def test_export_adjacency_writes_html():
    store = MemoryArtifactStore()
    ResultExporter(store).export_adjacency("Adj.html", 2, {(0, 1): [(0, 0)]}, "Geometric")
    html = store.read_text("Adj.html")
    assert "<html>" in html
    assert "Geometric" in html
