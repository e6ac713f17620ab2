"""
Configuration and argument parsing for deflicker.

Handles YAML config files, command-line argument parsing and the immutable
settings object handed to the pipeline.
"""

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

from .errors import ConfigError

DEFAULT_WINDOW = 15
DEFAULT_PASSES = 1
DEFAULT_WORKERS = 2
DEFAULT_OUTPUT_NAME = "Deflickered"

# Keys a YAML config may set, i.e. everything except the input and the config options themselves
CONFIG_KEYS = ("window", "passes", "workers", "output", "jpeg_quality", "exiftool_mode",
               "no_progress", "verbose", "debug", "debug_json")


@dataclass(frozen=True)
class DeflickerConfig:
    """Validated settings for one run."""
    input_source: Path
    output_dir: Path
    window: int = DEFAULT_WINDOW
    passes: int = DEFAULT_PASSES
    workers: int = DEFAULT_WORKERS
    jpeg_quality: int = 95
    exiftool_mode: str = "all"
    show_progress: bool = True
    verbose: bool = False
    debug: bool = False
    debug_json: bool = False

    def __post_init__(self):
        _require_int("window", self.window, 2,
                     "The rolling average window for luminance smoothing should be an integer >= 2")
        _require_int("passes", self.passes, 1, "The number of passes should be an integer >= 1")
        _require_int("workers", self.workers, 1, "The number of workers should be an integer >= 1")
        _require_int("jpeg_quality", self.jpeg_quality, 1, "JPEG quality should be an integer in 1..100")
        if self.jpeg_quality > 100:
            raise ConfigError(f"JPEG quality should be an integer in 1..100 (got {self.jpeg_quality})")
        if self.exiftool_mode not in ("all", "none"):
            raise ConfigError(f"exiftool mode must be 'all' or 'none' (got {self.exiftool_mode!r})")


def _require_int(name: str, value: Any, minimum: int, message: str):
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"{message} (got {name}={value!r})")


def default_output_dir(input_source: Path) -> Path:
    """``Deflickered`` next to the frames: inside the input directory, or beside the list file."""
    base = input_source if input_source.is_dir() else input_source.parent
    return base / DEFAULT_OUTPUT_NAME


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load YAML config file and return dict of settings.

    Args:
        config_path: Path to config file

    Returns:
        Dict of configuration settings (keys use underscores)
    """
    p = Path(config_path)
    if not p.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        with open(p, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {p}: {e}")
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Config file {p} must contain a mapping of option names to values")

    normalised = {str(k).replace("-", "_"): v for k, v in config.items()}
    unknown = sorted(set(normalised) - set(CONFIG_KEYS))
    if unknown:
        raise ConfigError(f"Unknown option(s) in {p}: {', '.join(unknown)}")
    return normalised


def save_config(config_path: str, args: argparse.Namespace):
    """
    Save current args to a YAML config file.

    Args:
        config_path: Path to save config file
        args: Parsed arguments namespace
    """
    config = {}
    for key in CONFIG_KEYS:
        value = getattr(args, key, None)
        if value is None:
            continue
        config[key] = str(value) if isinstance(value, Path) else value

    p = Path(config_path)
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Failed to save config {p}: {e}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description=("Deflicker a time-lapse image sequence: measure each frame's luminance, "
                     "smooth it with a rolling average and re-expose every frame to match.")
    )
    p.add_argument("input", nargs="?", default=".",
                   help="Directory of frames, or a text file listing one frame per line (default: current directory).")
    p.add_argument("-o", "--output", type=str, default=None,
                   help=f"Output directory (default: '{DEFAULT_OUTPUT_NAME}' next to the frames).")
    p.add_argument("-w", "--window", type=int, default=DEFAULT_WINDOW,
                   help=f"Rolling average window for luminance smoothing (default: {DEFAULT_WINDOW}).")
    p.add_argument("-p", "--passes", type=int, default=DEFAULT_PASSES,
                   help=(f"Number of luminance smoothing passes (default: {DEFAULT_PASSES}). "
                         "Sometimes 2 passes give better results; more is rarely useful."))
    p.add_argument("-t", "--workers", type=int, default=DEFAULT_WORKERS,
                   help=(f"Worker processes for measuring and converting (default: {DEFAULT_WORKERS}). "
                         "Speed gain depends heavily on disk performance."))
    p.add_argument("--jpeg-quality", type=int, default=95,
                   help="Quality used when re-encoding JPEG frames (default: 95).")
    p.add_argument("--exiftool-mode", type=str, choices=["all", "none"], default="all",
                   help="Copy metadata with exiftool after writing. 'none' skips the external call (faster).")
    p.add_argument("--no-progress", action="store_true", help="Disable progress bars.")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose output.")
    p.add_argument("-d", "--debug", action="store_true", help="Print per-frame luminance details.")
    p.add_argument("--debug-json", action="store_true", help="Emit per-frame brightness details as JSON lines.")
    p.add_argument("--config", type=str, default=None, help="Load settings from a YAML config file.")
    p.add_argument("--save-config", type=str, default=None,
                   help="Save current settings to a YAML config file and exit.")
    return p


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments with config file support.

    Two-pass parsing: the config file supplies defaults, CLI args override them.
    """
    p = build_parser()
    argv_list = list(argv) if argv is not None else None

    args_temp, _ = p.parse_known_args(argv_list)
    if args_temp.config:
        p.set_defaults(**load_config(args_temp.config))

    return p.parse_args(argv_list)


def build_config(args: argparse.Namespace) -> DeflickerConfig:
    """Turn parsed arguments into a validated DeflickerConfig."""
    input_source = Path(args.input).expanduser()
    if not input_source.exists():
        raise ConfigError(f"Input not found (expected a directory or a list file): {input_source}")
    output_dir = Path(args.output).expanduser() if args.output else default_output_dir(input_source)
    return DeflickerConfig(
        input_source=input_source,
        output_dir=output_dir,
        window=args.window,
        passes=args.passes,
        workers=args.workers,
        jpeg_quality=args.jpeg_quality,
        exiftool_mode=args.exiftool_mode,
        show_progress=not args.no_progress,
        verbose=args.verbose,
        debug=args.debug,
        debug_json=args.debug_json,
    )
