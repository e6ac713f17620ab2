"""
Processing pipeline orchestration for deflicker.

Runs the three phases strictly one after another:

1. original luminance of every frame (parallel, cached in XMP sidecars)
2. rolling-average smoothing of the luminance curve (sequential passes)
3. brightness change of every frame toward the smoothed curve (parallel)
"""

import functools
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .brightness import apply_brightness
from .config import DeflickerConfig
from .errors import ConfigError
from .executor import run_parallel
from .frames import Frame, FrameRegistry
from .image_io import PillowCodec
from .luminance import compute_original_luminance
from .metadata import XmpLuminanceStore
from .smoothing import smooth
from .utils import collect_sources, find_flat_collisions, make_output_dir

LOGGER = logging.getLogger("deflicker")


@dataclass
class RunResult:
    frames: List[Frame]
    output_dir: Path
    elapsed: float


def _check_output_not_input(out_root: Path, files: List[Path]):
    out_resolved = out_root.resolve()
    for f in files:
        if f.resolve().parent == out_resolved:
            raise ConfigError(
                f"Output directory {out_root} holds input frame {f}; choose a different output directory.")


def compute_luminance_phase(registry: FrameRegistry, config: DeflickerConfig, store, codec):
    """Fill in the original luminance of every frame."""
    op = functools.partial(compute_original_luminance, store=store, codec=codec)
    frames = run_parallel(op, registry.frames, config.workers, description="Luminance",
                          show_progress=config.show_progress, verbose=config.verbose)
    registry.replace_all(frames)


def smoothing_phase(registry: FrameRegistry, config: DeflickerConfig):
    """Replace every frame's current luminance by its smoothed value."""
    if not registry.all_computed:
        raise RuntimeError("Smoothing requires the luminance of every frame")
    values = smooth(registry.current_luminances(), config.window, config.passes,
                    show_progress=config.show_progress)
    registry.set_current_luminances(values.tolist())


def apply_phase(registry: FrameRegistry, config: DeflickerConfig, codec):
    """Write every frame with its brightness adjusted."""
    op = functools.partial(
        apply_brightness,
        codec=codec,
        out_root=str(config.output_dir),
        exiftool_mode=config.exiftool_mode,
        debug_json=config.debug_json,
    )
    run_parallel(op, registry.frames, config.workers, description="Brightness",
                 show_progress=config.show_progress, verbose=config.verbose)


def process_sequence(config: DeflickerConfig, store=None, codec=None) -> RunResult:
    """
    Deflicker the frames found at ``config.input_source``.

    Args:
        config: Validated run settings
        store: LuminanceStore for cached luminance (default: XMP sidecars)
        codec: Image codec (default: Pillow)

    Returns:
        RunResult with the final frames, output directory and elapsed seconds
    """
    start = time.time()
    store = store if store is not None else XmpLuminanceStore()
    codec = codec if codec is not None else PillowCodec(jpeg_quality=config.jpeg_quality)

    files = collect_sources(config.input_source)
    registry = FrameRegistry.from_paths(files)
    _check_output_not_input(config.output_dir, files)
    make_output_dir(config.output_dir)
    LOGGER.info("Found %d image files to be processed.", len(registry))

    LOGGER.info("Original luminance of images is being calculated")
    compute_luminance_phase(registry, config, store, codec)

    LOGGER.info("Smoothing luminance: window %d, %d pass(es)", config.window, config.passes)
    smoothing_phase(registry, config)

    dups = find_flat_collisions(files)
    if dups:
        LOGGER.warning("Detected %d duplicate file name(s); these frames overwrite each other in %s:",
                       len(dups), config.output_dir)
        for first, dup in dups:
            LOGGER.warning("  %s and %s", first, dup)

    LOGGER.info("Changing brightness with the calculated values")
    apply_phase(registry, config, codec)

    elapsed = time.time() - start
    return RunResult(frames=registry.frames, output_dir=config.output_dir, elapsed=elapsed)
