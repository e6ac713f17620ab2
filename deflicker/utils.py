"""
Utility functions for deflicker.

Frame discovery (directory listing or list file), output path mapping and
small filesystem helpers.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Tuple, List, Dict

from PIL import Image, UnidentifiedImageError

from .errors import ConfigError, InputError, OutputError

LOGGER = logging.getLogger("deflicker")

SIDECAR_EXTS = {".xmp"}


def has_exiftool() -> bool:
    """Check if exiftool is available on the system."""
    try:
        subprocess.run(["exiftool", "-ver"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
        return True
    except OSError:
        return False


def sniff_image_format(path: Path) -> Optional[str]:
    """
    Identify an image by its content, not its extension.

    Returns:
        Lower-case format name as reported by Pillow (e.g. 'jpeg', 'png', 'tiff'),
        or None if the file is not an image Pillow can read.
    """
    try:
        with Image.open(path) as im:
            return (im.format or "").lower() or None
    except (UnidentifiedImageError, OSError):
        return None


def list_directory_images(directory: Path) -> List[Path]:
    """
    Collect the images directly inside ``directory``, sorted by name.

    Prints a single warning if more than one image format shows up, since a
    time-lapse is normally shot in one format.
    """
    files: List[Path] = []
    first_fmt: Optional[str] = None
    warned = False
    for p in sorted(directory.iterdir(), key=lambda q: q.name):
        if not p.is_file() or p.suffix.lower() in SIDECAR_EXTS:
            continue
        fmt = sniff_image_format(p)
        if fmt is None:
            continue
        if first_fmt is None:
            first_fmt = fmt
        elif not warned and fmt != first_fmt:
            LOGGER.warning("Images of type %s and %s detected! Are you sure this is just one image sequence?",
                           first_fmt, fmt)
            warned = True
        files.append(p)
    return files


def read_list_file(list_file: Path) -> List[Path]:
    """
    Read frame paths from a newline-delimited list file, keeping file order.

    Blank lines and lines starting with '#' are skipped; every other line is
    taken verbatim as a path.
    """
    try:
        lines = list_file.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigError(f"Cannot read list file {list_file}: {e}")
    files: List[Path] = []
    for line in lines:
        if not line.strip() or line.startswith("#"):
            continue
        p = Path(line)
        if not p.is_file():
            raise InputError(f"Listed file not found: {line}")
        files.append(p)
    return files


def collect_sources(input_source: Path) -> List[Path]:
    """
    Collect frame paths from a directory or a list file.

    Args:
        input_source: Directory of images, or a text file listing one image per line

    Returns:
        Frame paths in processing order
    """
    if input_source.is_dir():
        return list_directory_images(input_source)
    if input_source.is_file():
        return read_list_file(input_source)
    raise ConfigError(f"Input not found (expected a directory or a list file): {input_source}")


def dest_path_for(src_path: Path, out_root: Path) -> Path:
    """Output path for a frame: its base name inside the flat output directory."""
    return out_root / src_path.name


def find_flat_collisions(files: List[Path]) -> List[Tuple[Path, Path]]:
    """
    Find filename collisions in the flat output directory.

    Args:
        files: List of source file paths

    Returns:
        List of (first_file, duplicate_file) tuples
    """
    seen: Dict[str, Path] = {}
    dups: List[Tuple[Path, Path]] = []
    for p in files:
        name = p.name
        if name in seen:
            dups.append((seen[name], p))
        else:
            seen[name] = p
    return dups


def make_output_dir(out_root: Path):
    try:
        out_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Error creating directory {out_root}: {e}")
    if not out_root.is_dir():
        raise OutputError(f"Output path is not a directory: {out_root}")
