"""Command-line interface for terrain-splat."""

import logging
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple

import click
import numpy as np

from . import __version__
from .core.assignment import MAX_POSITIONAL_SLOTS
from .core.sampling import GraySampler, SamplerConfig
from .core.synthesis import (
    DEFAULT_FALLBACK_EPSILON,
    SplatWeightSynthesizer,
    SynthesisConfig,
    check_weight_grid,
)
from .utils.image import DEFAULT_MASK_NAMES, discover_masks, load_mask_sampler
from .utils.profiler import PerformanceProfiler, available_memory_mb, estimate_memory_usage


class ProgressBar:
    """Simple progress bar for CLI operations."""

    def __init__(self, total_steps: int, description: str = "Processing"):
        self.total_steps = total_steps
        self.current_step = 0
        self.description = description
        self.start_time = time.time()

    def update(self, step_name: str) -> None:
        """Update progress bar with current step."""
        self.current_step = min(self.current_step + 1, self.total_steps)
        percentage = (self.current_step / self.total_steps) * 100
        elapsed = time.time() - self.start_time

        bar_length = 30
        filled_length = int(bar_length * self.current_step // self.total_steps)
        bar = "█" * filled_length + "░" * (bar_length - filled_length)

        click.echo(
            f"\r{self.description}: [{bar}] {percentage:.1f}% - {step_name}",
            nl=False,
        )

        if self.current_step == self.total_steps:
            click.echo(f" ✓ Complete ({elapsed:.1f}s)")


def _load_samplers(masks: Tuple[Path, ...], mask_dir: Optional[Path],
                   sampler_config: SamplerConfig) -> Tuple[List[GraySampler], List[str]]:
    """Resolve CLI mask arguments into positional samplers and their labels."""
    if mask_dir is not None:
        mask_set = discover_masks(mask_dir, config=sampler_config)
        return mask_set.samplers, [
            f"{name} ({'found' if name in mask_set.paths else 'missing'})"
            for name in mask_set.names
        ]

    if len(masks) > MAX_POSITIONAL_SLOTS:
        ignored = ", ".join(str(path) for path in masks[MAX_POSITIONAL_SLOTS:])
        click.echo(f"Warning: only {MAX_POSITIONAL_SLOTS} masks are used; ignoring {ignored}", err=True)
        masks = masks[:MAX_POSITIONAL_SLOTS]

    samplers = [load_mask_sampler(path, config=sampler_config) for path in masks]
    labels = [
        f"{path.name} ({'missing' if sampler.is_absent else 'found'})"
        for path, sampler in zip(masks, samplers)
    ]

    if samplers and all(sampler.is_absent for sampler in samplers):
        click.echo("Warning: none of the given masks exist. Painting will default to layer 0.", err=True)

    return samplers, labels


def _stage_weights(output: Path, weights: np.ndarray) -> Path:
    """Write weights to a temporary file beside ``output`` and return its path."""
    handle = tempfile.NamedTemporaryFile(
        dir=output.parent, prefix=f".{output.name}.", suffix=".tmp", delete=False
    )
    staged = Path(handle.name)
    try:
        with handle:
            np.save(handle, weights)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
    return staged


@click.command()
@click.argument("masks", nargs=-1, type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--mask-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help=f"Discover masks by name ({', '.join(DEFAULT_MASK_NAMES)})",
)
@click.option("--width", required=True, type=click.IntRange(1, 16384), help="Grid width in cells")
@click.option("--height", required=True, type=click.IntRange(1, 16384), help="Grid height in cells")
@click.option(
    "--layers",
    default=4,
    help="Terrain layer count (default: 4)",
    type=click.IntRange(0, 64),
)
@click.option(
    "--epsilon",
    default=DEFAULT_FALLBACK_EPSILON,
    help=f"Fallback threshold on summed mask signal (default: {DEFAULT_FALLBACK_EPSILON})",
    type=click.FloatRange(0.0, 1.0),
)
@click.option(
    "--origin",
    default="lower",
    type=click.Choice(["lower", "upper"]),
    help="Image row addressed by v=0 (default: lower)",
)
@click.option("--permissive", is_flag=True, help="Accept 1-cell wide or tall grids")
@click.option("--parallel", is_flag=True, help="Synthesize row batches on a thread pool")
@click.option("--workers", default=None, type=click.IntRange(1, 64), help="Thread pool size")
@click.option(
    "--preview",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write a PNG preview of every layer",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing output without asking")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option(
    "-o",
    "--output",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output .npy file path",
)
def main(
    masks: Tuple[Path, ...],
    mask_dir: Optional[Path],
    output: Path,
    width: int,
    height: int,
    layers: int,
    epsilon: float,
    origin: str,
    permissive: bool,
    parallel: bool,
    workers: Optional[int],
    preview: Optional[Path],
    force: bool,
    verbose: bool,
) -> None:
    """Synthesize normalized terrain splat weights from grayscale masks.

    Mask i feeds layer i. Cells without mask signal default to layer 0.

    Examples:
        terrain-splat grass.png dirt.png sand.png soil.png --width 513 --height 513 -o splat.npy
        terrain-splat --mask-dir Textures --width 1024 --height 1024 --layers 6 -o splat.npy
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    click.echo(f"🗺️  terrain-splat v{__version__} - Mask to Splat Weight Synthesizer")
    click.echo()

    if masks and mask_dir is not None:
        raise click.UsageError("Pass mask files or --mask-dir, not both.")

    if output.exists() and not force:
        if not click.confirm(f"Output file {output} exists. Overwrite?"):
            click.echo("Aborted.")
            return

    output.parent.mkdir(parents=True, exist_ok=True)

    total_steps = 5 if preview else 4  # Load, Synthesize, Validate, Save, [Preview]
    progress = ProgressBar(total_steps, "Synthesizing")
    profiler = PerformanceProfiler()

    try:
        # Step 1: Load masks
        progress.update("Loading masks")
        sampler_config = SamplerConfig(origin=origin)
        samplers, labels = _load_samplers(masks, mask_dir, sampler_config)

        if not samplers:
            click.echo("\nWarning: no masks given. Painting will default to layer 0.", err=True)

        if verbose:
            for slot, label in enumerate(labels):
                click.echo(f"\nSlot {slot}: {label}")

        estimated_mb = estimate_memory_usage(width, height, layers, len(samplers))
        if estimated_mb > available_memory_mb() * 0.8:
            click.echo(f"\nWarning: grid needs about {estimated_mb:.0f}MB, "
                       f"close to available memory", err=True)

        # Step 2: Synthesize
        progress.update("Synthesizing weights")
        config = SynthesisConfig(
            fallback_epsilon=epsilon,
            strict_dimensions=not permissive,
            enable_parallel_processing=parallel,
            max_workers=workers,
        )
        synthesizer = SplatWeightSynthesizer(config)
        run = profiler.profile_function("synthesize")(synthesizer.run)
        result = run(samplers, width, height, layers)

        # Step 3: Validate
        progress.update("Validating grid")
        check_weight_grid(result.weights)

        # Step 4: Save to a staging file next to the output
        progress.update("Saving weights")
        staged = _stage_weights(output, result.weights)

        try:
            if preview and layers == 0:
                progress.update("Skipping preview")
                click.echo("\nNote: no layers to preview, skipping --preview", err=True)
            elif preview:
                progress.update("Rendering preview")
                from .utils.visualization import visualize_weight_layers

                preview.parent.mkdir(parents=True, exist_ok=True)
                visualize_weight_layers(result.weights, save_path=str(preview))

            os.replace(staged, output)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise

        file_size_mb = output.stat().st_size / (1024 * 1024)

        click.echo(f"\n✅ Successfully created {output}")
        click.echo("📊 Final statistics:")
        click.echo(f"   Grid: {width}x{height}x{layers}")
        click.echo(f"   Mask coverage: {result.coverage:.1%}")
        click.echo(f"   Fallback cells: {result.fallback_cells}")
        click.echo(f"   File size: {file_size_mb:.2f} MB")

        for fault in result.faults:
            click.echo(f"   ⚠️  {fault}", err=True)

        if verbose:
            click.echo(f"   Batches: {result.batches} ({'parallel' if result.parallel else 'sequential'})")
            click.echo(profiler.format_summary("Synthesis Performance"))

    except Exception as e:
        progress.update("Error")
        click.echo(f"\n❌ Error: {e}", err=True)
        if verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
