"""
Splat weight synthesis from grayscale terrain masks.

Samples each bound mask over a regular grid at normalized coordinates,
assembles a per-cell weight vector across the output layers and normalizes it,
falling back to a default layer wherever no mask carries signal. The result is
a dense (height, width, layers) array whose per-cell weights sum to one.

Rows are processed in independent batches. Each batch builds its own arrays,
so batches can run on a thread pool and the result does not depend on how the
grid was partitioned.
"""

import numpy as np
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .assignment import LayerAssignment, MaskBinding
from .errors import (
    InvalidDimension,
    InvalidLayerBinding,
    SamplerFault,
    SynthesisCancelled,
)
from .sampling import GraySampler

logger = logging.getLogger(__name__)

# Cells whose summed mask signal is at or below this value use the fallback layer
DEFAULT_FALLBACK_EPSILON = 1e-4

MIN_GRID_SIZE = 2


@dataclass
class SynthesisConfig:
    """Configuration for splat weight synthesis."""

    fallback_epsilon: float = DEFAULT_FALLBACK_EPSILON
    fallback_layer: int = 0
    strict_dimensions: bool = True

    # Row batching
    row_batch_size: int = 64

    # Parallel processing
    enable_parallel_processing: bool = False
    max_workers: Optional[int] = None
    parallel_threshold: int = 256  # minimum grid height before using the pool

    dtype: str = 'float32'

    def __post_init__(self):
        """Validate configuration parameters."""
        if not np.isfinite(self.fallback_epsilon) or self.fallback_epsilon < 0:
            raise ValueError(f"fallback_epsilon must be a non-negative number, got {self.fallback_epsilon}")
        if self.fallback_layer < 0:
            raise ValueError(f"fallback_layer must be non-negative, got {self.fallback_layer}")
        if self.row_batch_size <= 0:
            raise ValueError(f"row_batch_size must be positive, got {self.row_batch_size}")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")
        if self.parallel_threshold < 0:
            raise ValueError(f"parallel_threshold must be non-negative, got {self.parallel_threshold}")

        valid_dtypes = ['float32', 'float64']
        if self.dtype not in valid_dtypes:
            raise ValueError(f"dtype must be one of {valid_dtypes}")


@dataclass
class SynthesisResult:
    """Weight grid together with diagnostics from a synthesis run."""
    weights: np.ndarray                  # (H, W, N) weight grid
    fallback_cells: int                  # cells resolved by the fallback rule
    faults: List[SamplerFault] = field(default_factory=list)
    elapsed: float = 0.0                 # seconds
    batches: int = 0
    parallel: bool = False

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.weights.shape

    @property
    def has_faults(self) -> bool:
        return bool(self.faults)

    @property
    def coverage(self) -> float:
        """Fraction of cells that received mask signal."""
        cells = self.weights.shape[0] * self.weights.shape[1]
        if cells == 0 or self.weights.shape[2] == 0:
            return 0.0
        return 1.0 - self.fallback_cells / cells


class _FaultRecorder:
    """Collects sampler faults, reporting each binding at most once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._faults: Dict[int, SamplerFault] = {}

    def sample(self, index: int, binding: MaskBinding,
               us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        try:
            samples = np.asarray(binding.sampler.sample_grid(us, vs), dtype=np.float64)
            if samples.shape != us.shape:
                raise ValueError(f"sampler returned shape {samples.shape}, expected {us.shape}")
            return samples
        except Exception as e:
            self._record(index, binding, e)
            return self._sample_cells(index, binding, us, vs)

    def _sample_cells(self, index: int, binding: MaskBinding,
                      us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        """Resample a band cell by cell; only the cells that raise read as 0."""
        samples = np.zeros(us.shape, dtype=np.float64)
        for cell in np.ndindex(us.shape):
            try:
                samples[cell] = float(binding.sampler.sample(float(us[cell]), float(vs[cell])))
            except Exception as e:
                self._record(index, binding, e)
        return samples

    def _record(self, index: int, binding: MaskBinding, cause: Exception) -> None:
        with self._lock:
            if index in self._faults:
                return
            fault = SamplerFault(index, binding.label, cause)
            self._faults[index] = fault
        logger.warning(f"{fault}; treating its samples as no signal")

    @property
    def faults(self) -> List[SamplerFault]:
        with self._lock:
            return [self._faults[index] for index in sorted(self._faults)]


class SplatWeightSynthesizer:
    """Build normalized per-layer splat weights from grayscale masks."""

    def __init__(self, config: Optional[SynthesisConfig] = None):
        """Initialize synthesizer.

        Args:
            config: Synthesis configuration, defaults to SynthesisConfig()
        """
        self.config = config or SynthesisConfig()

    def synthesize(self, samplers: Sequence[Optional[GraySampler]], width: int, height: int,
                   layer_count: int, cancel_event: Optional[threading.Event] = None) -> np.ndarray:
        """Synthesize a weight grid from positional mask samplers.

        Sampler slot i feeds layer i; at most four slots are read and slots at
        or beyond ``layer_count`` are ignored. ``None`` marks a missing mask.

        Returns:
            Weight grid of shape (height, width, layer_count)
        """
        return self.run(samplers, width, height, layer_count, cancel_event).weights

    def synthesize_assignment(self, assignment: LayerAssignment, width: int, height: int,
                              layer_count: int,
                              cancel_event: Optional[threading.Event] = None) -> np.ndarray:
        """Synthesize a weight grid from an explicit layer assignment."""
        return self.run_assignment(assignment, width, height, layer_count, cancel_event).weights

    def run(self, samplers: Sequence[Optional[GraySampler]], width: int, height: int,
            layer_count: int, cancel_event: Optional[threading.Event] = None) -> SynthesisResult:
        """Positional synthesis returning the full SynthesisResult."""
        self._validate_dimensions(width, height, layer_count)
        assignment = LayerAssignment.positional(samplers, layer_count)
        return self._run_validated(assignment, width, height, layer_count, cancel_event)

    def run_assignment(self, assignment: LayerAssignment, width: int, height: int,
                       layer_count: int,
                       cancel_event: Optional[threading.Event] = None) -> SynthesisResult:
        """Synthesize from an explicit assignment, returning weights and diagnostics."""
        self._validate_dimensions(width, height, layer_count)
        return self._run_validated(assignment, width, height, layer_count, cancel_event)

    def _run_validated(self, assignment: LayerAssignment, width: int, height: int,
                       layer_count: int,
                       cancel_event: Optional[threading.Event]) -> SynthesisResult:
        start_time = time.time()
        dtype = np.dtype(self.config.dtype)

        if layer_count == 0 or width == 0 or height == 0:
            return SynthesisResult(
                weights=np.zeros((height, width, layer_count), dtype=dtype),
                fallback_cells=0,
                elapsed=time.time() - start_time,
            )

        if self.config.fallback_layer >= layer_count:
            raise InvalidLayerBinding(
                f"Fallback layer {self.config.fallback_layer} is outside a grid "
                f"with {layer_count} layers"
            )

        bindings = [
            (index, binding) for index, binding in enumerate(assignment)
            if binding.layer < layer_count and not binding.sampler.is_absent
        ]

        us = self._axis_coordinates(width)
        vs = self._axis_coordinates(height)
        recorder = _FaultRecorder()

        def work(row_start: int, row_end: int) -> Tuple[np.ndarray, int]:
            return self._synthesize_rows(us, vs[row_start:row_end], bindings,
                                         layer_count, recorder, dtype)

        batch_size = self.config.row_batch_size
        batches = [(row, min(row + batch_size, height)) for row in range(0, height, batch_size)]
        parallel = (self.config.enable_parallel_processing
                    and height >= self.config.parallel_threshold
                    and len(batches) > 1)

        if parallel:
            blocks = self._run_parallel(batches, work, cancel_event)
        else:
            blocks = self._run_sequential(batches, work, cancel_event)

        weights = np.concatenate([block for block, _ in blocks], axis=0)
        fallback_cells = sum(count for _, count in blocks)

        return SynthesisResult(
            weights=weights,
            fallback_cells=fallback_cells,
            faults=recorder.faults,
            elapsed=time.time() - start_time,
            batches=len(batches),
            parallel=parallel,
        )

    def _validate_dimensions(self, width: int, height: int, layer_count: int) -> None:
        """Check grid dimensions against the configured dimension policy."""
        for label, value in (("width", width), ("height", height), ("layer count", layer_count)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidDimension(f"Grid {label} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidDimension(f"Grid {label} must be non-negative, got {value}")

        if layer_count > 0 and self.config.strict_dimensions:
            if width < MIN_GRID_SIZE or height < MIN_GRID_SIZE:
                raise InvalidDimension(
                    f"Grid too small: {width}×{height}. "
                    f"Minimum size: {MIN_GRID_SIZE}×{MIN_GRID_SIZE} cells."
                )

    @staticmethod
    def _axis_coordinates(size: int) -> np.ndarray:
        """Normalized coordinates for each index along one grid axis."""
        if size == 1:
            return np.zeros(1, dtype=np.float64)
        return np.arange(size, dtype=np.float64) / (size - 1)

    def _synthesize_rows(self, us: np.ndarray, vs: np.ndarray,
                         bindings: List[Tuple[int, MaskBinding]], layer_count: int,
                         recorder: _FaultRecorder, dtype: np.dtype) -> Tuple[np.ndarray, int]:
        """Compute the weight block for a band of rows.

        Returns:
            Tuple of (weights block (rows, W, N), number of fallback cells)
        """
        u_grid, v_grid = np.meshgrid(us, vs)
        raw = np.zeros(u_grid.shape + (layer_count,), dtype=np.float64)

        for index, binding in bindings:
            samples = recorder.sample(index, binding, u_grid, v_grid)
            raw[:, :, binding.layer] += np.clip(np.nan_to_num(samples, nan=0.0), 0.0, 1.0)

        total = raw.sum(axis=2)
        fallback = total <= self.config.fallback_epsilon

        weights = np.zeros_like(raw)
        np.divide(raw, total[:, :, np.newaxis], out=weights,
                  where=~fallback[:, :, np.newaxis])
        weights[fallback, self.config.fallback_layer] = 1.0

        return weights.astype(dtype, copy=False), int(np.count_nonzero(fallback))

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SynthesisCancelled("Splat weight synthesis cancelled")

    def _run_sequential(self, batches: List[Tuple[int, int]], work: Callable,
                        cancel_event: Optional[threading.Event]) -> List[Tuple[np.ndarray, int]]:
        blocks = []
        for row_start, row_end in batches:
            self._check_cancelled(cancel_event)
            blocks.append(work(row_start, row_end))
        return blocks

    def _run_parallel(self, batches: List[Tuple[int, int]], work: Callable,
                      cancel_event: Optional[threading.Event]) -> List[Tuple[np.ndarray, int]]:
        def guarded(row_start: int, row_end: int) -> Tuple[np.ndarray, int]:
            self._check_cancelled(cancel_event)
            return work(row_start, row_end)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = [executor.submit(guarded, row_start, row_end)
                       for row_start, row_end in batches]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise


def check_weight_grid(weights: np.ndarray, tolerance: float = 1e-5) -> None:
    """Raise ValueError unless every cell's weights lie in [0, 1] and sum to 1."""
    if weights.ndim != 3:
        raise ValueError(f"Expected (H, W, N) weight grid, got shape {weights.shape}")
    if weights.size == 0:
        return

    if np.any(weights < -tolerance) or np.any(weights > 1.0 + tolerance):
        raise ValueError("Weight grid has values outside [0, 1]")

    sums = weights.sum(axis=2, dtype=np.float64)
    worst = float(np.max(np.abs(sums - 1.0)))
    if worst > tolerance:
        raise ValueError(f"Weight grid cells do not sum to 1 (max deviation {worst:.2e})")


def synthesize_splat_weights(samplers: Sequence[Optional[GraySampler]], width: int, height: int,
                             layer_count: int,
                             config: Optional[SynthesisConfig] = None) -> np.ndarray:
    """Convenience function for one-off positional synthesis."""
    return SplatWeightSynthesizer(config).synthesize(samplers, width, height, layer_count)


def create_synthesis_config_preset(preset: str = "balanced") -> SynthesisConfig:
    """Create predefined synthesis configurations."""
    if preset == "balanced":
        return SynthesisConfig()
    elif preset == "strict":
        return SynthesisConfig(strict_dimensions=True, dtype='float64')
    elif preset == "permissive":
        return SynthesisConfig(strict_dimensions=False)
    elif preset == "large":
        return SynthesisConfig(
            row_batch_size=128,
            enable_parallel_processing=True,
            parallel_threshold=256,
        )
    else:
        raise ValueError(f"Unknown preset: {preset}. Available: balanced, strict, permissive, large")
