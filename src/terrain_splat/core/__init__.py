"""Core synthesis modules for terrain-splat."""

from .assignment import LayerAssignment, MaskBinding, MAX_POSITIONAL_SLOTS
from .errors import (
    SplatWeightError,
    InvalidDimension,
    InvalidLayerBinding,
    SamplerFault,
    SynthesisCancelled,
)
from .sampling import (
    GraySampler,
    AbsentSampler,
    ConstantSampler,
    CallableSampler,
    ImageGraySampler,
    SamplerConfig,
)
from .synthesis import (
    DEFAULT_FALLBACK_EPSILON,
    SplatWeightSynthesizer,
    SynthesisConfig,
    SynthesisResult,
    check_weight_grid,
    create_synthesis_config_preset,
    synthesize_splat_weights,
)

__all__ = [
    "LayerAssignment",
    "MaskBinding",
    "MAX_POSITIONAL_SLOTS",
    "SplatWeightError",
    "InvalidDimension",
    "InvalidLayerBinding",
    "SamplerFault",
    "SynthesisCancelled",
    "GraySampler",
    "AbsentSampler",
    "ConstantSampler",
    "CallableSampler",
    "ImageGraySampler",
    "SamplerConfig",
    "DEFAULT_FALLBACK_EPSILON",
    "SplatWeightSynthesizer",
    "SynthesisConfig",
    "SynthesisResult",
    "check_weight_grid",
    "create_synthesis_config_preset",
    "synthesize_splat_weights",
]
