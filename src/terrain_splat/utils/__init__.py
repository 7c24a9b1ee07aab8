"""Utility modules for terrain-splat."""

from .image import (
    MaskLoader,
    MaskSet,
    load_mask,
    load_mask_sampler,
    discover_masks,
    DEFAULT_MASK_NAMES,
)
from .profiler import PerformanceProfiler, benchmark_function, estimate_memory_usage

__all__ = [
    "MaskLoader",
    "MaskSet",
    "load_mask",
    "load_mask_sampler",
    "discover_masks",
    "DEFAULT_MASK_NAMES",
    "PerformanceProfiler",
    "estimate_memory_usage",
    "benchmark_function",
]
