"""
Frame records and the ordered registry that owns them between phases.
"""

import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .errors import InputError

MIN_FRAMES = 2


def _check_finite(name: str, value: Optional[float]):
    if value is not None and not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class Frame:
    """
    One input image plus its luminance values.

    ``original_luminance`` and ``current_luminance`` stay ``None`` until the
    luminance phase has run for the frame.
    """
    id: int
    filename: str
    original_luminance: Optional[float] = None
    current_luminance: Optional[float] = None

    def __post_init__(self):
        if self.id < 0:
            raise ValueError(f"Frame id must be non-negative, got {self.id}")
        _check_finite("original_luminance", self.original_luminance)
        _check_finite("current_luminance", self.current_luminance)

    @property
    def computed(self) -> bool:
        return self.original_luminance is not None and self.current_luminance is not None

    def with_original(self, luminance: float) -> "Frame":
        """Set the original luminance; the working value starts out equal to it."""
        if self.original_luminance is not None:
            raise ValueError(f"Original luminance of frame {self.id} is already set")
        return replace(self, original_luminance=float(luminance), current_luminance=float(luminance))

    def with_current(self, luminance: float) -> "Frame":
        return replace(self, current_luminance=float(luminance))


class FrameRegistry:
    """
    Ordered frames addressed by their ordinal id.

    Ids are assigned once from discovery order and never change; phase results
    are swapped in by id via ``replace_all``.
    """

    def __init__(self, frames: Sequence[Frame]):
        for idx, frame in enumerate(frames):
            if frame.id != idx:
                raise ValueError(f"Frame ids must be contiguous from 0; position {idx} holds id {frame.id}")
        self._frames: List[Frame] = list(frames)

    @classmethod
    def from_paths(cls, paths: Iterable[Path]) -> "FrameRegistry":
        frames = [Frame(id=i, filename=str(p)) for i, p in enumerate(paths)]
        if len(frames) < MIN_FRAMES:
            raise InputError(f"Cannot process less than {MIN_FRAMES} files (found {len(frames)}).")
        return cls(frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __getitem__(self, idx: int) -> Frame:
        return self._frames[idx]

    @property
    def frames(self) -> List[Frame]:
        return list(self._frames)

    @property
    def all_computed(self) -> bool:
        return all(f.computed for f in self._frames)

    def original_luminances(self) -> List[float]:
        return [f.original_luminance for f in self._frames]

    def current_luminances(self) -> List[float]:
        return [f.current_luminance for f in self._frames]

    def replace_all(self, frames: Sequence[Frame]):
        """Swap in a complete, id-ordered set of frames returned by a phase."""
        if len(frames) != len(self._frames):
            raise ValueError(f"Expected {len(self._frames)} frames, got {len(frames)}")
        for old, new in zip(self._frames, frames):
            if old.id != new.id or old.filename != new.filename:
                raise ValueError(f"Frame {old.id} ({old.filename}) does not match replacement {new.id} ({new.filename})")
            if old.original_luminance is not None and new.original_luminance != old.original_luminance:
                raise ValueError(f"Original luminance of frame {old.id} cannot change once set")
        self._frames = list(frames)

    def set_current_luminances(self, values: Sequence[float]):
        if len(values) != len(self._frames):
            raise ValueError(f"Expected {len(self._frames)} values, got {len(values)}")
        self._frames = [f.with_current(v) for f, v in zip(self._frames, values)]
