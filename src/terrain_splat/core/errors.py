"""Exception types raised during splat weight synthesis."""


class SplatWeightError(Exception):
    """Base class for all synthesis errors."""


class InvalidDimension(SplatWeightError, ValueError):
    """Grid width/height below the minimum grid size, or a negative layer count."""


class InvalidLayerBinding(SplatWeightError, ValueError):
    """A mask binding or fallback layer that cannot address the output grid."""


class SamplerFault(SplatWeightError, RuntimeError):
    """A mask sampler raised while being sampled.

    Faults are recorded and treated as "no signal" rather than aborting the
    synthesis, so this is normally reported, not raised.
    """

    def __init__(self, binding_index: int, name: str, cause: BaseException):
        self.binding_index = binding_index
        self.name = name
        self.cause = cause
        super().__init__(
            f"Sampler {name!r} (binding {binding_index}) failed: {cause}"
        )


class SynthesisCancelled(SplatWeightError):
    """The caller cancelled the synthesis between row batches."""
