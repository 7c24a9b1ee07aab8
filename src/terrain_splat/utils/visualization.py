#!/usr/bin/env python3
"""
Visualization utilities for splat weight grids.

Renders per-layer weight maps and a dominant-layer overview for checking a
synthesized grid before it is handed to the terrain.
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)


def _canvas_to_rgb_array(fig) -> np.ndarray:
    """Convert matplotlib figure canvas to RGB array (H, W, 3) as uint8."""
    fig.canvas.draw()
    rgba = np.asarray(fig.canvas.buffer_rgba())
    return np.ascontiguousarray(rgba[..., :3]).astype(np.uint8)


def dominant_layer_map(weights: np.ndarray) -> np.ndarray:
    """Index of the highest-weighted layer per cell, shape (H, W)."""
    if weights.ndim != 3 or weights.shape[2] == 0:
        raise ValueError(f"Expected (H, W, N) weight grid with N > 0, got shape {weights.shape}")
    return np.argmax(weights, axis=2)


def visualize_weight_layers(
    weights: np.ndarray,
    layer_names: Optional[Sequence[str]] = None,
    colormap: str = "viridis",
    save_path: Optional[str] = None,
    figsize: Optional[Tuple[float, float]] = None
) -> np.ndarray:
    """Plot every layer of a weight grid side by side plus the dominant layer.

    Args:
        weights: Weight grid (H, W, N)
        layer_names: Optional titles, one per layer
        colormap: Matplotlib colormap for the weight panels
        save_path: Optional path to save the figure
        figsize: Figure size in inches, derived from layer count if omitted

    Returns:
        RGB image array (H, W, 3) as uint8
    """
    dominant = dominant_layer_map(weights)
    layer_count = weights.shape[2]
    names = list(layer_names) if layer_names else []
    names += [f"Layer {i}" for i in range(len(names), layer_count)]

    panels = layer_count + 1
    fig, axes = plt.subplots(1, panels, figsize=figsize or (3 * panels, 3.2), squeeze=False)
    axes = axes[0]

    for layer in range(layer_count):
        ax = axes[layer]
        im = ax.imshow(weights[:, :, layer], cmap=colormap, vmin=0.0, vmax=1.0, origin="lower")
        ax.set_title(names[layer], fontsize=10)
        ax.set_xticks([])
        ax.set_yticks([])

    fig.colorbar(im, ax=axes[:layer_count].tolist(), shrink=0.8)

    ax = axes[-1]
    ax.imshow(dominant, cmap="tab10", vmin=0, vmax=max(9, layer_count - 1),
              origin="lower", interpolation="nearest")
    ax.set_title("Dominant layer", fontsize=10)
    ax.set_xticks([])
    ax.set_yticks([])

    if save_path:
        fig.savefig(save_path, dpi=120, bbox_inches="tight")
        logger.info(f"Weight layer preview saved to {save_path}")

    rgb_array = _canvas_to_rgb_array(fig)
    plt.close(fig)
    return rgb_array


def layer_coverage(weights: np.ndarray) -> np.ndarray:
    """Mean weight per layer over the whole grid, shape (N,)."""
    if weights.ndim != 3:
        raise ValueError(f"Expected (H, W, N) weight grid, got shape {weights.shape}")
    if weights.shape[0] == 0 or weights.shape[1] == 0:
        return np.zeros(weights.shape[2])
    return weights.mean(axis=(0, 1), dtype=np.float64)
