"""Mask image loading and discovery utilities."""

from PIL import Image, ImageOps
import numpy as np
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import logging

from ..core.sampling import AbsentSampler, GraySampler, ImageGraySampler, SamplerConfig

logger = logging.getLogger(__name__)

# Conventional mask file stems, in slot order
DEFAULT_MASK_NAMES = ("grass-heightmap", "dirt", "sand", "soil")


class MaskLoader:
    """Handle loading and validation of grayscale mask images."""

    SUPPORTED_FORMATS = {".png", ".jpg", ".jpeg", ".gif", ".tif", ".tiff", ".bmp"}

    def __init__(self, path: Path):
        self.path = Path(path)
        self._validate_format()

    def _validate_format(self) -> None:
        """Validate mask format is supported."""
        if not self.path.exists():
            raise FileNotFoundError(f"Mask file not found: {self.path}")

        if not self.path.is_file():
            raise ValueError(f"Path is not a file: {self.path}")

        suffix = self.path.suffix.lower()
        if suffix not in self.SUPPORTED_FORMATS:
            supported = ", ".join(sorted(self.SUPPORTED_FORMATS))
            raise ValueError(
                f"Unsupported format '{suffix}'. Supported formats: {supported}"
            )

    def load(self) -> np.ndarray:
        """Load mask as a float32 grayscale array in [0, 1]."""
        try:
            with Image.open(self.path) as img:
                logger.debug(f"Loaded mask: {img.format} {img.mode} {img.size}")

                # Verify the image is not corrupted
                img.verify()

            # Reopen for actual processing (verify() closes the image)
            with Image.open(self.path) as img:
                return self._to_gray_array(img)

        except (OSError, IOError) as e:
            raise RuntimeError(f"Failed to load mask {self.path}: {e}")
        except RuntimeError:
            raise
        except Exception as e:
            raise RuntimeError(f"Failed to load mask {self.path}: unexpected error: {e}")

    def _to_gray_array(self, img: Image.Image) -> np.ndarray:
        """Convert a PIL image to a normalized grayscale array."""
        img = ImageOps.exif_transpose(img)

        if img.mode in ("I;16", "I;16B", "I;16L"):
            array = np.asarray(img, dtype=np.float32) / 65535.0
        elif img.mode == "I":
            # 32-bit integer mode, as Pillow opens most 16-bit PNGs
            array = np.asarray(img, dtype=np.float32) / 65535.0
        elif img.mode == "F":
            array = np.asarray(img, dtype=np.float32)
        else:
            if img.mode != "L":
                original_mode = img.mode
                # Luma conversion with the same weights as the sampler
                img = img.convert("RGB").convert("L")
                logger.debug(f"Converted mask from {original_mode} to L")
            array = np.asarray(img, dtype=np.float32) / 255.0

        if array.ndim != 2:
            raise RuntimeError(f"Expected 2-D grayscale array, got shape {array.shape}")

        return np.clip(array, 0.0, 1.0)


def load_mask(path: Path) -> np.ndarray:
    """Convenience function to load a mask as a grayscale array."""
    return MaskLoader(path).load()


def load_mask_sampler(path: Optional[Path], config: Optional[SamplerConfig] = None,
                      required: bool = False) -> GraySampler:
    """Load a mask file into a sampler.

    A missing file gives an AbsentSampler unless ``required`` is set, in which
    case FileNotFoundError propagates.
    """
    if path is None:
        return AbsentSampler()

    path = Path(path)
    if not path.exists() and not required:
        logger.info(f"Mask not found, treating as no signal: {path}")
        return AbsentSampler()

    pixels = load_mask(path)
    return ImageGraySampler(pixels, config=config, name=path.stem)


@dataclass
class MaskSet:
    """Masks discovered for the positional slots, in slot order."""
    names: List[str]
    samplers: List[GraySampler]
    paths: Dict[str, Path] = field(default_factory=dict)

    @property
    def found(self) -> List[str]:
        return [name for name in self.names if name in self.paths]

    @property
    def missing(self) -> List[str]:
        return [name for name in self.names if name not in self.paths]

    @property
    def any_found(self) -> bool:
        return bool(self.paths)


def find_mask_file(directory: Path, name: str) -> Optional[Path]:
    """Return the first supported image named ``name`` in ``directory``."""
    for suffix in sorted(MaskLoader.SUPPORTED_FORMATS):
        candidate = directory / f"{name}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def discover_masks(directory: Union[str, Path], names: Sequence[str] = DEFAULT_MASK_NAMES,
                   config: Optional[SamplerConfig] = None) -> MaskSet:
    """Look up one mask per slot name in a directory.

    Missing masks become AbsentSampler entries so slot positions are kept.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Mask directory not found: {directory}")

    samplers: List[GraySampler] = []
    paths: Dict[str, Path] = {}
    for name in names:
        path = find_mask_file(directory, name)
        if path is None:
            samplers.append(AbsentSampler())
            continue
        paths[name] = path
        samplers.append(load_mask_sampler(path, config=config, required=True))

    mask_set = MaskSet(names=list(names), samplers=samplers, paths=paths)
    if not mask_set.any_found:
        logger.warning(f"No mask images found in {directory}. Painting will default to layer 0.")
    elif mask_set.missing:
        logger.info(f"Masks missing from {directory}: {', '.join(mask_set.missing)}")

    return mask_set


def get_mask_info(path: Path) -> dict:
    """Get basic information about a mask without loading it fully."""
    try:
        with Image.open(path) as img:
            return {
                "format": img.format,
                "mode": img.mode,
                "size": img.size,
                "width": img.width,
                "height": img.height,
                "is_grayscale": img.mode in ("1", "L", "LA", "I", "I;16", "F"),
            }
    except Exception as e:
        raise RuntimeError(f"Failed to get mask info for {path}: {e}")
