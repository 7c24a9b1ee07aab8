"""Mapping of mask samplers onto terrain layers."""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence
import logging

from .errors import InvalidLayerBinding
from .sampling import AbsentSampler, GraySampler

logger = logging.getLogger(__name__)

# Number of positional mask slots (grass, dirt, sand, soil)
MAX_POSITIONAL_SLOTS = 4


@dataclass
class MaskBinding:
    """A single mask sampler feeding one output layer."""
    sampler: GraySampler
    layer: int
    name: Optional[str] = None

    def __post_init__(self):
        """Validate binding."""
        if self.sampler is None:
            self.sampler = AbsentSampler()
        if not isinstance(self.sampler, GraySampler):
            raise InvalidLayerBinding(
                f"Binding sampler must be a GraySampler, got {type(self.sampler).__name__}"
            )
        if isinstance(self.layer, bool) or not isinstance(self.layer, int):
            raise InvalidLayerBinding(f"Layer index must be an integer, got {self.layer!r}")
        if self.layer < 0:
            raise InvalidLayerBinding(f"Layer index must be non-negative, got {self.layer}")

    @property
    def label(self) -> str:
        return self.name or f"layer-{self.layer}"


@dataclass
class LayerAssignment:
    """Ordered list of (sampler, target layer) bindings.

    Several bindings may target the same layer; their samples add up before
    normalization. Bindings addressing a layer outside the output grid are
    skipped when the grid is synthesized.
    """
    bindings: List[MaskBinding] = field(default_factory=list)

    @classmethod
    def positional(cls, samplers: Sequence[Optional[GraySampler]],
                   layer_count: int) -> "LayerAssignment":
        """Bind sampler slot i to layer i.

        Only the first ``MAX_POSITIONAL_SLOTS`` samplers are read, and slots
        at or beyond ``layer_count`` are discarded. ``None`` entries stand for
        missing masks.
        """
        samplers = list(samplers)
        usable = min(max(layer_count, 0), MAX_POSITIONAL_SLOTS)

        if len(samplers) > MAX_POSITIONAL_SLOTS:
            logger.debug(f"Ignoring {len(samplers) - MAX_POSITIONAL_SLOTS} samplers beyond "
                         f"slot {MAX_POSITIONAL_SLOTS - 1}")

        bindings = [
            MaskBinding(sampler=sampler, layer=slot, name=getattr(sampler, 'name', None))
            for slot, sampler in enumerate(samplers[:usable])
        ]
        return cls(bindings)

    def add(self, sampler: Optional[GraySampler], layer: int,
            name: Optional[str] = None) -> "LayerAssignment":
        """Append a binding and return self for chaining."""
        self.bindings.append(MaskBinding(sampler=sampler, layer=layer, name=name))
        return self

    def active_bindings(self, layer_count: int) -> List[MaskBinding]:
        """Bindings that can contribute to a grid with ``layer_count`` layers."""
        return [binding for binding in self.bindings
                if binding.layer < layer_count and not binding.sampler.is_absent]

    @property
    def max_layer(self) -> int:
        """Highest bound layer index, or -1 when empty."""
        return max((binding.layer for binding in self.bindings), default=-1)

    def __iter__(self) -> Iterator[MaskBinding]:
        return iter(self.bindings)

    def __len__(self) -> int:
        return len(self.bindings)
