#!/usr/bin/env python3
"""Unit tests for visualization utilities."""

import pytest
import numpy as np

# Set matplotlib to use a non-interactive backend for testing
import matplotlib
matplotlib.use('Agg')

from terrain_splat.core.sampling import ConstantSampler
from terrain_splat.core.synthesis import SplatWeightSynthesizer
from terrain_splat.utils.visualization import (
    dominant_layer_map,
    layer_coverage,
    visualize_weight_layers,
)


def sample_weights():
    """Small weight grid with a left/right split between two layers."""
    weights = np.zeros((4, 6, 3), dtype=np.float32)
    weights[:, :3, 0] = 1.0
    weights[:, 3:, 1] = 0.8
    weights[:, 3:, 2] = 0.2
    return weights


class TestDominantLayerMap:
    """Test dominant layer extraction."""

    def test_dominant_layers(self):
        """Test argmax per cell."""
        dominant = dominant_layer_map(sample_weights())

        assert dominant.shape == (4, 6)
        assert np.all(dominant[:, :3] == 0)
        assert np.all(dominant[:, 3:] == 1)

    def test_invalid_shape(self):
        """Test non-grid arrays are rejected."""
        with pytest.raises(ValueError, match="Expected"):
            dominant_layer_map(np.zeros((4, 4)))

    def test_zero_layers(self):
        """Test grids without layers are rejected."""
        with pytest.raises(ValueError, match="N > 0"):
            dominant_layer_map(np.zeros((2, 2, 0)))


class TestVisualizeWeightLayers:
    """Test weight layer previews."""

    def test_basic_visualization(self):
        """Test a preview is rendered to an RGB array."""
        rgb_array = visualize_weight_layers(sample_weights())

        assert rgb_array.ndim == 3
        assert rgb_array.shape[2] == 3
        assert rgb_array.dtype == np.uint8

    def test_with_save_path(self, tmp_path):
        """Test the preview can be written to disk."""
        save_path = tmp_path / "layers.png"

        visualize_weight_layers(sample_weights(), layer_names=["grass", "dirt"],
                                save_path=str(save_path))

        assert save_path.exists()

    def test_single_layer(self):
        """Test a one-layer grid still renders."""
        weights = SplatWeightSynthesizer().synthesize([ConstantSampler(1.0)], 5, 5, 1)
        rgb_array = visualize_weight_layers(weights, figsize=(4, 2))
        assert rgb_array.shape[2] == 3


class TestLayerCoverage:
    """Test per-layer coverage."""

    def test_mean_weights(self):
        """Test coverage is the mean weight per layer."""
        coverage = layer_coverage(sample_weights())
        np.testing.assert_allclose(coverage, [0.5, 0.4, 0.1], atol=1e-6)
        assert coverage.sum() == pytest.approx(1.0)

    def test_empty_grid(self):
        """Test an empty grid has zero coverage."""
        np.testing.assert_array_equal(layer_coverage(np.zeros((0, 3, 2))), [0.0, 0.0])
