"""terrain-splat - Synthesize normalized terrain splat weights from grayscale masks."""

__version__ = "0.1.0"
__author__ = "terrain-splat Team"
__description__ = "Turn grayscale layer masks into normalized per-cell terrain splat weights"

from .core.assignment import LayerAssignment, MaskBinding
from .core.errors import InvalidDimension, SamplerFault, SynthesisCancelled
from .core.sampling import AbsentSampler, ConstantSampler, GraySampler, ImageGraySampler
from .core.synthesis import SplatWeightSynthesizer, SynthesisConfig
from .utils.image import discover_masks, load_mask_sampler

__all__ = [
    "LayerAssignment",
    "MaskBinding",
    "InvalidDimension",
    "SamplerFault",
    "SynthesisCancelled",
    "AbsentSampler",
    "ConstantSampler",
    "GraySampler",
    "ImageGraySampler",
    "SplatWeightSynthesizer",
    "SynthesisConfig",
    "discover_masks",
    "load_mask_sampler",
]
