"""
Original luminance of each frame, with sidecar caching.
"""

import logging
import math

from .frames import Frame

LOGGER = logging.getLogger("deflicker")

# Rec. 601 luma weights
R_WEIGHT = 0.299
G_WEIGHT = 0.587
B_WEIGHT = 0.114


def luminance_from_channels(r: float, g: float, b: float) -> float:
    """Perceived luminance from average R, G and B."""
    return R_WEIGHT * r + G_WEIGHT * g + B_WEIGHT * b


def compute_original_luminance(frame: Frame, store, codec) -> Frame:
    """
    Return ``frame`` with its original (and starting current) luminance set.

    A finite cached value from ``store`` wins and the codec is not touched;
    otherwise the image is decoded, its luminance computed and written back
    to the store.

    Args:
        frame: Frame without luminance
        store: LuminanceStore (get/set by filename)
        codec: Object providing read_average_channels(path)
    """
    cached = store.get(frame.filename)
    if cached is not None and math.isfinite(cached):
        LOGGER.debug("Using cached luminance %s for %s", cached, frame.filename)
        return frame.with_original(cached)

    r, g, b = codec.read_average_channels(frame.filename)
    lum = luminance_from_channels(r, g, b)
    LOGGER.debug("Computed luminance %s for %s (R=%.3f G=%.3f B=%.3f)", lum, frame.filename, r, g, b)
    store.set(frame.filename, lum)
    return frame.with_original(lum)
