"""
Image loading and re-encoding for deflicker.

Pillow decodes the frames; numpy computes channel means and applies the
brightness factor. Re-encoding keeps the source format plus its EXIF and ICC
data where the format supports them.
"""

import io
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

import numpy as np
from PIL import Image, ImageFile

from .errors import InputError

# Allow truncated reads for JPEG/TIFF frames from flaky cards
ImageFile.LOAD_TRUNCATED_IMAGES = True

LOGGER = logging.getLogger("deflicker")

# Modes whose bands can be scaled directly; anything else is converted to RGB.
_DIRECT_MODES = {"L", "LA", "RGB", "RGBA"}
_ALPHA_MODES = {"LA", "RGBA"}
# Single-band integer modes Pillow uses for 16-bit grayscale PNG/TIFF.
_WIDE_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N"}
_WIDE_MAX = 65535
_WIDE_TO_8BIT = 257.0


def load_image(path: Path) -> Tuple[Image.Image, Dict[str, Any]]:
    """
    Load an image fully into memory.

    Returns:
        (PIL Image in L/LA/RGB/RGBA or 16-bit grayscale mode,
         info dict with 'format', 'exif', 'icc_profile')
    """
    with Image.open(path) as img0:
        if img0.mode == "F":
            raise InputError(f"Unsupported floating point image: {path}")
        info = {
            "format": img0.format,
            "exif": img0.info.get("exif"),
            "icc_profile": img0.info.get("icc_profile"),
        }
        if img0.mode in _DIRECT_MODES or img0.mode in _WIDE_MODES:
            img = img0.copy()
        else:
            img = img0.convert("RGB")
            # The profile describes the source color space (e.g. CMYK), not RGB
            info["icc_profile"] = None
    return img, info


def average_channels(img: Image.Image) -> Tuple[float, float, float]:
    """Mean R, G, B over the whole image on a 0-255 scale. Alpha is ignored."""
    if img.mode in _WIDE_MODES:
        mean = float(np.asarray(img, dtype=np.float64).mean()) / _WIDE_TO_8BIT
        return mean, mean, mean
    rgb = img if img.mode == "RGB" else img.convert("RGB")
    arr = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
    r, g, b = arr.mean(axis=0)
    return float(r), float(g), float(b)


def scale_brightness(img: Image.Image, percent: float) -> Image.Image:
    """
    Multiply the color bands by ``percent / 100``, clipping to the mode's range.

    Alpha bands are left as they are; 100 returns an identical image. 16-bit
    grayscale stays 16-bit.
    """
    factor = percent / 100.0
    if img.mode in _WIDE_MODES:
        arr = np.asarray(img, dtype=np.float64) * factor
        return Image.fromarray(np.clip(np.rint(arr), 0, _WIDE_MAX).astype(np.uint16))
    arr = np.asarray(img, dtype=np.float32)
    if img.mode in _ALPHA_MODES:
        arr = arr.copy()
        arr[..., :-1] *= factor
    else:
        arr = arr * factor
    out = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
    return Image.fromarray(out)


def encode_image(img: Image.Image, info: Dict[str, Any], jpeg_quality: int = 95) -> bytes:
    """
    Encode to the source's format, attaching EXIF/ICC if present.

    Args:
        img: Image to encode
        info: Dict from load_image
        jpeg_quality: JPEG quality (1-100), ignored for other formats
    """
    fmt = info.get("format") or "PNG"
    save_kwargs: Dict[str, Any] = dict(format=fmt)
    if fmt == "JPEG":
        save_kwargs["quality"] = jpeg_quality
        save_kwargs["optimize"] = True
        if img.mode in _ALPHA_MODES:
            img = img.convert("RGB" if img.mode == "RGBA" else "L")
    if info.get("exif") and fmt in ("JPEG", "PNG", "TIFF", "WEBP"):
        save_kwargs["exif"] = info["exif"]
    if info.get("icc_profile"):
        save_kwargs["icc_profile"] = info["icc_profile"]
    buf = io.BytesIO()
    img.save(buf, **save_kwargs)
    return buf.getvalue()


class PillowCodec:
    """
    Image codec used by the luminance and apply phases.

    Instances are plain values so they pickle into worker processes.
    """

    def __init__(self, jpeg_quality: int = 95):
        self.jpeg_quality = jpeg_quality

    def read_average_channels(self, path: str) -> Tuple[float, float, float]:
        img, _info = load_image(Path(path))
        return average_channels(img)

    def apply_brightness_percent(self, path: str, percent: float) -> bytes:
        img, info = load_image(Path(path))
        if percent != 100.0:
            img = scale_brightness(img, percent)
        return encode_image(img, info, jpeg_quality=self.jpeg_quality)
