"""
Sliding-window luminance smoothing.

For window size W the neighborhood of index i is [i - W//2, i - W//2 + W),
clipped to the sequence. Near either end the window shrinks: the average is
taken over the samples that exist, never padded or wrapped.

Every pass reads only the previous pass's values (double buffering), so the
result does not depend on the order indices are visited in.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

try:
    from tqdm.auto import tqdm
    HAVE_TQDM = True
except Exception:
    HAVE_TQDM = False

LOGGER = logging.getLogger("deflicker")


def window_halves(window: int) -> Tuple[int, int]:
    """Return (low, high): samples taken before i, and from i onwards."""
    if window < 2:
        raise ValueError(f"window must be >= 2, got {window}")
    low = window // 2
    return low, window - low


def window_bounds(index: int, count: int, window: int) -> Tuple[int, int]:
    """Half-open [start, stop) range of in-range neighbor indices for ``index``."""
    low, high = window_halves(window)
    return max(0, index - low), min(count, index + high)


def smooth_pass(values: Sequence[float], window: int) -> np.ndarray:
    """One smoothing pass; returns a new array and leaves ``values`` untouched."""
    src = np.asarray(values, dtype=np.float64)
    count = src.shape[0]
    out = np.empty_like(src)
    for i in range(count):
        start, stop = window_bounds(i, count, window)
        out[i] = src[start:stop].sum() / (stop - start)
    return out


def smooth(values: Sequence[float], window: int, passes: int, show_progress: bool = False) -> np.ndarray:
    """Run ``passes`` sequential smoothing passes, each over the previous pass's output."""
    if passes < 1:
        raise ValueError(f"passes must be >= 1, got {passes}")
    out = np.asarray(values, dtype=np.float64).copy()
    steps = range(1, passes + 1)
    if show_progress and HAVE_TQDM:
        steps = tqdm(steps, unit="pass", desc="Smoothing")
    for current_pass in steps:
        LOGGER.info("Luminance smoothing pass %d/%d", current_pass, passes)
        out = smooth_pass(out, window)
    return out
