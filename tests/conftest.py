from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest
from PIL import Image

from deflicker import DeflickerConfig


class MemoryStore:
    """LuminanceStore kept in a dict, counting reads and writes."""

    def __init__(self, values: Optional[Dict[str, float]] = None):
        self.values = dict(values or {})
        self.gets: List[str] = []
        self.sets: List[str] = []

    def get(self, filename: str) -> Optional[float]:
        self.gets.append(filename)
        return self.values.get(filename)

    def set(self, filename: str, value: float) -> None:
        self.sets.append(filename)
        self.values[filename] = value


class FakeCodec:
    """Codec returning fixed channel averages per filename and recording every call."""

    def __init__(self, channels: Optional[Dict[str, Sequence[float]]] = None):
        self.channels = dict(channels or {})
        self.reads: List[str] = []
        self.applied: List[tuple] = []

    def read_average_channels(self, path: str):
        self.reads.append(path)
        return tuple(self.channels[path])

    def apply_brightness_percent(self, path: str, percent: float) -> bytes:
        self.applied.append((path, percent))
        return f"{path}@{percent:.6f}".encode("utf-8")


def write_gray(path: Path, level: int, size=(8, 6), fmt: Optional[str] = None) -> Path:
    arr = np.full((size[1], size[0], 3), level, dtype=np.uint8)
    Image.fromarray(arr).save(path, format=fmt)
    return path


@pytest.fixture
def make_sequence(tmp_path):
    """Write one uniform gray PNG per level into tmp_path/frames and return the directory."""

    def _make(levels: Sequence[int], name: str = "frames", ext: str = "png") -> Path:
        d = tmp_path / name
        d.mkdir()
        for i, level in enumerate(levels):
            write_gray(d / f"frame_{i:04d}.{ext}", level)
        return d

    return _make


@pytest.fixture
def quiet_config():
    """DeflickerConfig factory with progress bars and exiftool disabled."""

    def _config(input_source: Path, output_dir: Path, **kwargs) -> DeflickerConfig:
        kwargs.setdefault("workers", 1)
        kwargs.setdefault("exiftool_mode", "none")
        kwargs.setdefault("show_progress", False)
        return DeflickerConfig(input_source=input_source, output_dir=output_dir, **kwargs)

    return _config
