"""
deflicker - Time-lapse brightness flicker removal.

Measures the luminance of every frame, smooths the luminance curve with a
rolling average and re-exposes each frame to follow it. Luminance is cached
in XMP sidecars so repeated runs skip decoding; measuring and converting run
across worker processes.
"""

__version__ = "1.0.0"

from .config import DeflickerConfig, build_config, parse_args
from .errors import (
    DeflickerError,
    ConfigError,
    InputError,
    WorkerError,
    ZeroLuminanceError,
    OutputError,
)
from .frames import Frame, FrameRegistry
from .executor import partition_indices, run_parallel
from .luminance import luminance_from_channels, compute_original_luminance
from .smoothing import window_halves, window_bounds, smooth_pass, smooth
from .brightness import brightness_percent, apply_brightness
from .image_io import PillowCodec
from .metadata import LuminanceStore, XmpLuminanceStore
from .pipeline import process_sequence, RunResult
from .utils import collect_sources, find_flat_collisions

__all__ = [
    # Version
    "__version__",
    # Config
    "DeflickerConfig",
    "build_config",
    "parse_args",
    # Errors
    "DeflickerError",
    "ConfigError",
    "InputError",
    "WorkerError",
    "ZeroLuminanceError",
    "OutputError",
    # Frames
    "Frame",
    "FrameRegistry",
    # Parallel execution
    "partition_indices",
    "run_parallel",
    # Phases
    "luminance_from_channels",
    "compute_original_luminance",
    "window_halves",
    "window_bounds",
    "smooth_pass",
    "smooth",
    "brightness_percent",
    "apply_brightness",
    # Collaborators
    "PillowCodec",
    "LuminanceStore",
    "XmpLuminanceStore",
    # Pipeline
    "process_sequence",
    "RunResult",
    # Discovery
    "collect_sources",
    "find_flat_collisions",
]
