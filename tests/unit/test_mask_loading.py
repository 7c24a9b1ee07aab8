"""Tests for mask loading and discovery."""

import logging
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from terrain_splat.core.sampling import AbsentSampler, ImageGraySampler, SamplerConfig
from terrain_splat.utils.image import (
    DEFAULT_MASK_NAMES,
    MaskLoader,
    discover_masks,
    find_mask_file,
    get_mask_info,
    load_mask,
    load_mask_sampler,
)


def write_image(path, array):
    """Save an array as an image file and return the path."""
    Image.fromarray(array).save(path)
    return path


class TestMaskLoader:
    """Test the MaskLoader class."""

    def test_supported_formats(self):
        """Test that supported formats are correctly defined."""
        for suffix in (".png", ".jpg", ".jpeg", ".gif", ".tif", ".tiff", ".bmp"):
            assert suffix in MaskLoader.SUPPORTED_FORMATS

    def test_grayscale_png(self, tmp_path):
        """Test loading an 8-bit grayscale PNG."""
        path = write_image(tmp_path / "grass.png", np.full((4, 6), 128, dtype=np.uint8))

        array = MaskLoader(path).load()

        assert array.shape == (4, 6)
        assert array.dtype == np.float32
        np.testing.assert_allclose(array, 128 / 255, atol=1e-6)

    def test_rgb_png_uses_luma(self, tmp_path):
        """Test RGB masks are reduced to luma."""
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        image[..., 0] = 255
        path = write_image(tmp_path / "dirt.png", image)

        array = load_mask(path)

        np.testing.assert_allclose(array, 0.299, atol=0.01)

    def test_rgba_png_ignores_alpha(self, tmp_path):
        """Test transparent white still reads as full intensity."""
        image = np.full((3, 3, 4), 255, dtype=np.uint8)
        image[..., 3] = 0
        path = write_image(tmp_path / "sand.png", image)

        np.testing.assert_allclose(load_mask(path), 1.0)

    def test_sixteen_bit_png(self, tmp_path):
        """Test 16-bit masks are scaled by 65535."""
        image = np.full((3, 5), 65535, dtype=np.uint16)
        image[0, 0] = 0
        path = tmp_path / "soil.png"
        Image.fromarray(image).save(path)

        array = load_mask(path)

        assert array.shape == (3, 5)
        assert array[0, 0] == 0.0
        np.testing.assert_allclose(array[1:], 1.0, atol=1e-6)

    def test_unsupported_format(self, tmp_path):
        """Test error handling for unsupported file formats."""
        path = tmp_path / "mask.webp"
        path.write_bytes(b"not an image")

        with pytest.raises(ValueError, match="Unsupported format"):
            MaskLoader(path)

    def test_nonexistent_file(self, tmp_path):
        """Test error handling for non-existent files."""
        with pytest.raises(FileNotFoundError, match="Mask file not found"):
            MaskLoader(tmp_path / "does_not_exist.png")

    def test_directory_path(self, tmp_path):
        """Test error handling when path is a directory."""
        dir_path = tmp_path / "mask.png"
        dir_path.mkdir()

        with pytest.raises(ValueError, match="Path is not a file"):
            MaskLoader(dir_path)

    def test_corrupted_image(self, tmp_path):
        """Test error handling for corrupted mask files."""
        path = tmp_path / "grass.png"
        path.write_bytes(b"fake image data")

        loader = MaskLoader(path)
        with pytest.raises(RuntimeError, match="Failed to load mask"):
            loader.load()

    @pytest.mark.parametrize("error", [SyntaxError("broken PNG file"), ValueError("bad mode")])
    def test_decoder_errors_wrapped(self, tmp_path, error):
        """Test non-IO decoder errors surface as load failures."""
        path = write_image(tmp_path / "dirt.png", np.zeros((2, 2), dtype=np.uint8))
        loader = MaskLoader(path)

        with patch("terrain_splat.utils.image.Image.open", side_effect=error):
            with pytest.raises(RuntimeError, match="Failed to load mask.*unexpected error"):
                loader.load()

    def test_mask_info(self, tmp_path):
        """Test header information without full decoding."""
        path = write_image(tmp_path / "grass.png", np.zeros((5, 7), dtype=np.uint8))

        info = get_mask_info(path)

        assert info["format"] == "PNG"
        assert info["width"] == 7
        assert info["height"] == 5
        assert info["is_grayscale"] is True


class TestLoadMaskSampler:
    """Test building samplers from mask files."""

    def test_existing_mask(self, tmp_path):
        """Test an existing mask becomes a named image sampler."""
        path = write_image(tmp_path / "dirt.png", np.full((4, 4), 255, dtype=np.uint8))

        sampler = load_mask_sampler(path, config=SamplerConfig(origin='upper'))

        assert isinstance(sampler, ImageGraySampler)
        assert sampler.name == "dirt"
        assert sampler.config.origin == 'upper'
        assert sampler.sample(0.5, 0.5) == pytest.approx(1.0)

    def test_missing_optional_mask(self, tmp_path):
        """Test a missing optional mask is absent, not an error."""
        sampler = load_mask_sampler(tmp_path / "missing.png")
        assert isinstance(sampler, AbsentSampler)

    def test_missing_required_mask(self, tmp_path):
        """Test a missing required mask raises."""
        with pytest.raises(FileNotFoundError):
            load_mask_sampler(tmp_path / "missing.png", required=True)

    def test_none_path(self):
        """Test no path at all gives an absent sampler."""
        assert isinstance(load_mask_sampler(None), AbsentSampler)


class TestDiscoverMasks:
    """Test conventional mask discovery in a directory."""

    def test_default_names(self):
        """Test the slot order of the conventional mask names."""
        assert DEFAULT_MASK_NAMES == ("grass-heightmap", "dirt", "sand", "soil")

    def test_partial_directory(self, tmp_path):
        """Test missing masks keep their slot as absent samplers."""
        write_image(tmp_path / "grass-heightmap.png", np.full((4, 4), 200, dtype=np.uint8))
        write_image(tmp_path / "sand.jpg", np.full((4, 4), 100, dtype=np.uint8))

        mask_set = discover_masks(tmp_path)

        assert isinstance(mask_set.samplers[0], ImageGraySampler)
        assert isinstance(mask_set.samplers[1], AbsentSampler)
        assert isinstance(mask_set.samplers[2], ImageGraySampler)
        assert isinstance(mask_set.samplers[3], AbsentSampler)
        assert mask_set.found == ["grass-heightmap", "sand"]
        assert mask_set.missing == ["dirt", "soil"]
        assert mask_set.paths["sand"].name == "sand.jpg"

    def test_empty_directory_warns(self, tmp_path, caplog):
        """Test a directory without masks warns that layer 0 is used."""
        with caplog.at_level(logging.WARNING):
            mask_set = discover_masks(tmp_path)

        assert not mask_set.any_found
        assert all(sampler.is_absent for sampler in mask_set.samplers)
        assert "default to layer 0" in caplog.text

    def test_custom_names(self, tmp_path):
        """Test discovery with caller-chosen names."""
        write_image(tmp_path / "rock.png", np.zeros((2, 2), dtype=np.uint8))

        mask_set = discover_masks(tmp_path, names=["rock", "snow"])

        assert mask_set.names == ["rock", "snow"]
        assert mask_set.found == ["rock"]

    def test_missing_directory(self, tmp_path):
        """Test a missing directory raises."""
        with pytest.raises(FileNotFoundError, match="Mask directory not found"):
            discover_masks(tmp_path / "nope")

    def test_find_mask_file_ignores_other_suffixes(self, tmp_path):
        """Test only supported image suffixes are matched."""
        (tmp_path / "dirt.txt").write_text("not a mask")
        assert find_mask_file(tmp_path, "dirt") is None
