"""Grayscale mask samplers addressed by normalized (u, v) coordinates."""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Tuple
import logging
from scipy import ndimage
from skimage.util import img_as_float

logger = logging.getLogger(__name__)

# Luma weights used by engine-side Color.grayscale
GRAYSCALE_WEIGHTS = np.array([0.299, 0.587, 0.114])

_SCIPY_BOUNDARY_MODES = {
    'clamp': 'nearest',
    'wrap': 'grid-wrap',
    'mirror': 'reflect',
}


@dataclass
class SamplerConfig:
    """Configuration for image-backed mask sampling.

    Out-of-range coordinates clamp to the edge texels by default. Engine
    texture lookups follow the texture's wrap mode, which is usually repeat;
    set ``boundary_handling='wrap'`` to match a tiling mask.
    """
    interpolation: str = 'bilinear'      # 'bilinear', 'nearest'
    boundary_handling: str = 'clamp'     # 'clamp', 'wrap', 'mirror'
    origin: str = 'lower'                # 'lower': v=0 is the bottom image row
    texel_centers: bool = True           # u=0 addresses the centre of the first texel

    def __post_init__(self):
        """Validate configuration parameters."""
        valid_interpolations = ['bilinear', 'nearest']
        if self.interpolation not in valid_interpolations:
            raise ValueError(f"interpolation must be one of {valid_interpolations}")

        valid_boundary = list(_SCIPY_BOUNDARY_MODES)
        if self.boundary_handling not in valid_boundary:
            raise ValueError(f"boundary_handling must be one of {valid_boundary}")

        valid_origins = ['lower', 'upper']
        if self.origin not in valid_origins:
            raise ValueError(f"origin must be one of {valid_origins}")


class GraySampler(ABC):
    """Read-only grayscale lookup at normalized coordinates.

    Implementations return intensities in [0, 1]. ``sample_grid`` is the hot
    path used by the synthesizer; the default implementation falls back to
    calling ``sample`` once per coordinate.
    """

    is_absent = False

    @abstractmethod
    def sample(self, u: float, v: float) -> float:
        """Sample intensity at (u, v) in [0, 1] x [0, 1]."""

    def sample_grid(self, us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        """Sample intensities at broadcast arrays of u and v coordinates."""
        us, vs = np.broadcast_arrays(np.asarray(us, dtype=np.float64),
                                     np.asarray(vs, dtype=np.float64))
        values = np.empty(us.shape, dtype=np.float64)
        for index in np.ndindex(us.shape):
            values[index] = self.sample(float(us[index]), float(vs[index]))
        return values


class AbsentSampler(GraySampler):
    """Stand-in for a missing mask; always reports no signal."""

    is_absent = True

    def sample(self, u: float, v: float) -> float:
        return 0.0

    def sample_grid(self, us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        return np.zeros(np.broadcast(us, vs).shape, dtype=np.float64)

    def __repr__(self) -> str:
        return "AbsentSampler()"


class ConstantSampler(GraySampler):
    """Returns the same intensity everywhere."""

    def __init__(self, value: float):
        self.value = float(value)

    def sample(self, u: float, v: float) -> float:
        return self.value

    def sample_grid(self, us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        return np.full(np.broadcast(us, vs).shape, self.value, dtype=np.float64)

    def __repr__(self) -> str:
        return f"ConstantSampler({self.value!r})"


class CallableSampler(GraySampler):
    """Adapt a plain ``func(u, v) -> float`` into a sampler.

    With ``vectorized=True`` the function is called once with coordinate
    arrays instead of once per cell.
    """

    def __init__(self, func: Callable, vectorized: bool = False):
        self.func = func
        self.vectorized = vectorized

    def sample(self, u: float, v: float) -> float:
        return float(self.func(u, v))

    def sample_grid(self, us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        if not self.vectorized:
            return super().sample_grid(us, vs)
        us, vs = np.broadcast_arrays(np.asarray(us, dtype=np.float64),
                                     np.asarray(vs, dtype=np.float64))
        values = np.asarray(self.func(us, vs), dtype=np.float64)
        return np.broadcast_to(values, us.shape).copy()


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Reduce an image to a float64 grayscale array in [0, 1].

    Accepts (H, W), (H, W, 1), (H, W, 3) and (H, W, 4) arrays of any integer
    or float dtype. Alpha is ignored.
    """
    image = np.asarray(image)
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    if image.ndim == 3:
        if image.shape[2] not in (3, 4):
            raise ValueError(f"Expected grayscale, RGB or RGBA image, got shape {image.shape}")
        rgb = img_as_float(image[:, :, :3]).astype(np.float64)
        gray = rgb @ GRAYSCALE_WEIGHTS
    elif image.ndim == 2:
        gray = img_as_float(image).astype(np.float64)
    else:
        raise ValueError(f"Expected 2-D or 3-D image array, got {image.ndim} dimensions")

    if gray.size == 0:
        raise ValueError(f"Mask image is empty: shape {image.shape}")

    return np.clip(np.nan_to_num(gray, nan=0.0), 0.0, 1.0)


class ImageGraySampler(GraySampler):
    """Bilinear grayscale sampler over a decoded image array."""

    def __init__(self, image: np.ndarray, config: SamplerConfig = None, name: str = None):
        """Initialize image sampler.

        Args:
            image: Mask pixels, (H, W) or (H, W, C) with C in {1, 3, 4}
            config: Sampling configuration, defaults to SamplerConfig()
            name: Optional label used in fault reports
        """
        self.config = config or SamplerConfig()
        self.name = name
        self._gray = to_grayscale(image)
        self._gray.setflags(write=False)

    @property
    def shape(self) -> Tuple[int, int]:
        """Mask size as (height, width)."""
        return self._gray.shape

    @property
    def pixels(self) -> np.ndarray:
        """Read-only grayscale pixel array."""
        return self._gray

    def sample(self, u: float, v: float) -> float:
        return float(self.sample_grid(np.array([u]), np.array([v]))[0])

    def sample_grid(self, us: np.ndarray, vs: np.ndarray) -> np.ndarray:
        us, vs = np.broadcast_arrays(np.asarray(us, dtype=np.float64),
                                     np.asarray(vs, dtype=np.float64))
        rows, cols = self._to_pixel_coordinates(us.ravel(), vs.ravel())

        order = 1 if self.config.interpolation == 'bilinear' else 0
        values = ndimage.map_coordinates(
            self._gray,
            np.vstack([rows, cols]),
            order=order,
            mode=_SCIPY_BOUNDARY_MODES[self.config.boundary_handling],
        )
        return values.reshape(us.shape)

    def _to_pixel_coordinates(self, us: np.ndarray, vs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Map normalized coordinates onto fractional (row, col) pixel positions."""
        h, w = self._gray.shape

        if self.config.texel_centers:
            cols = us * w - 0.5
            rows = vs * h - 0.5
        else:
            cols = us * (w - 1)
            rows = vs * (h - 1)

        if self.config.origin == 'lower':
            rows = (h - 1) - rows

        return rows, cols

    def __repr__(self) -> str:
        h, w = self._gray.shape
        label = f" {self.name!r}" if self.name else ""
        return f"<ImageGraySampler{label} {w}x{h} {self.config.interpolation}>"
