import numpy as np
import pytest

from deflicker import smooth, smooth_pass, window_bounds, window_halves


def _reference_pass(values, window):
    """Straightforward rendition reading only the previous pass's values."""
    low = window // 2
    high = window - low
    out = []
    for i in range(len(values)):
        samples = [values[j] for j in range(i - low, i + high) if 0 <= j < len(values)]
        out.append(sum(samples) / len(samples))
    return out


@pytest.mark.parametrize("window", [2, 3, 4, 5, 15])
def test_uniform_sequence_is_unchanged(window):
    values = [42.5] * 9
    assert smooth_pass(values, window) == pytest.approx(values)


def test_window_halves():
    assert window_halves(2) == (1, 1)
    assert window_halves(3) == (1, 2)
    assert window_halves(5) == (2, 3)
    assert window_halves(15) == (7, 8)
    with pytest.raises(ValueError):
        window_halves(1)


def test_boundary_divisor_window_5_on_three_frames():
    # high half is 3: the first frame sees indices 0..2, not a nominal 5 samples
    start, stop = window_bounds(0, 3, 5)
    assert (start, stop) == (0, 3)
    assert stop - start == window_halves(5)[1]
    # every frame of a 3-frame sequence sees the whole sequence
    assert [window_bounds(i, 3, 5) for i in range(3)] == [(0, 3)] * 3
    assert smooth_pass([3.0, 6.0, 9.0], 5) == pytest.approx([6.0, 6.0, 6.0])


def test_boundary_windows_shrink_in_long_sequence():
    count = 20
    assert window_bounds(0, count, 5) == (0, 3)
    assert window_bounds(1, count, 5) == (0, 4)
    assert window_bounds(10, count, 5) == (8, 13)
    assert window_bounds(count - 1, count, 5) == (count - 3, count)


def test_alternating_sequence_window_3():
    out = smooth_pass([10, 20, 10, 20, 10], 3)
    assert out == pytest.approx([15.0, 40 / 3, 50 / 3, 40 / 3, 15.0])


def test_pass_reads_previous_values_only():
    values = [5.0, 100.0, 1.0, 7.0, 30.0, 2.0, 0.5]
    assert smooth_pass(values, 4) == pytest.approx(_reference_pass(values, 4))


def test_pass_does_not_modify_input():
    values = np.array([1.0, 2.0, 3.0, 4.0])
    smooth_pass(values, 3)
    assert values.tolist() == [1.0, 2.0, 3.0, 4.0]


def test_multiple_passes_compound():
    values = [10.0, 20.0, 10.0, 20.0, 10.0]
    once = _reference_pass(values, 3)
    twice = _reference_pass(once, 3)
    assert smooth(values, 3, 2) == pytest.approx(twice)
    assert smooth(values, 3, 1) == pytest.approx(once)


def test_smooth_rejects_zero_passes():
    with pytest.raises(ValueError):
        smooth([1.0, 2.0], 3, 0)
