"""
Brightness remapping of each frame toward its smoothed luminance.
"""

import json
import logging
from pathlib import Path

from .errors import OutputError, ZeroLuminanceError
from .frames import Frame
from .metadata import copy_all_metadata_with_exiftool
from .utils import dest_path_for

LOGGER = logging.getLogger("deflicker")


def brightness_percent(frame: Frame) -> float:
    """Brightness change in percent (100 = unchanged) that moves the frame to its smoothed luminance."""
    if frame.original_luminance is None or frame.current_luminance is None:
        raise ValueError(f"Frame {frame.id} ({frame.filename}) has no luminance yet")
    if frame.original_luminance == 0:
        raise ZeroLuminanceError(
            f"Original luminance of {frame.filename} is zero (fully black frame); cannot compute brightness ratio")
    return frame.current_luminance / frame.original_luminance * 100


def apply_brightness(
        frame: Frame,
        codec,
        out_root: str,
        exiftool_mode: str = "none",
        debug_json: bool = False,
) -> Frame:
    """
    Write the brightness-adjusted frame to ``out_root`` under its base name.

    Args:
        frame: Smoothed frame
        codec: Object providing apply_brightness_percent(path, percent) -> bytes
        out_root: Output directory (must exist)
        exiftool_mode: 'all' copies every tag from the source with exiftool, 'none' skips it
        debug_json: Print a JSON line with the frame's values

    Returns:
        The frame, unchanged
    """
    percent = brightness_percent(frame)
    src = Path(frame.filename)
    dst = dest_path_for(src, Path(out_root))
    LOGGER.debug("Original luminance of %s: %s", frame.filename, frame.original_luminance)
    LOGGER.debug(" Changed luminance of %s: %s", frame.filename, frame.current_luminance)
    LOGGER.debug("Brightness of %s will be set to: %s", frame.filename, percent)
    if debug_json:
        print(json.dumps({
            "file": frame.filename,
            "id": frame.id,
            "original": frame.original_luminance,
            "smoothed": frame.current_luminance,
            "brightness": percent,
        }, ensure_ascii=False))

    data = codec.apply_brightness_percent(frame.filename, percent)
    try:
        dst.write_bytes(data)
    except OSError as e:
        raise OutputError(f"Cannot write {dst}: {e}")
    if exiftool_mode == "all":
        copy_all_metadata_with_exiftool(src, dst)
    return frame
