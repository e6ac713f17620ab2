import logging

import numpy as np
import pytest
from PIL import Image

from conftest import FakeCodec, MemoryStore, write_gray
from deflicker import ConfigError, InputError, OutputError, PillowCodec, ZeroLuminanceError, process_sequence
from deflicker.utils import collect_sources, find_flat_collisions


class CountingCodec(PillowCodec):
    def __init__(self):
        super().__init__()
        self.reads = 0

    def read_average_channels(self, path):
        self.reads += 1
        return super().read_average_channels(path)


EXPECTED = [15.0, 40 / 3, 50 / 3, 40 / 3, 15.0]


def _mean(path):
    with Image.open(path) as im:
        return float(np.asarray(im.convert("RGB"), dtype=np.float64).mean())


def test_end_to_end_alternating_frames(make_sequence, quiet_config, tmp_path):
    frames_dir = make_sequence([10, 20, 10, 20, 10])
    out = tmp_path / "out"

    result = process_sequence(quiet_config(frames_dir, out, window=3, passes=1))

    assert [f.original_luminance for f in result.frames] == pytest.approx([10, 20, 10, 20, 10])
    assert [f.current_luminance for f in result.frames] == pytest.approx(EXPECTED)
    written = sorted(p.name for p in out.iterdir())
    assert written == [f"frame_{i:04d}.png" for i in range(5)]
    for i, expected in enumerate(EXPECTED):
        assert _mean(out / f"frame_{i:04d}.png") == pytest.approx(round(expected), abs=0.5)


def test_end_to_end_with_worker_processes(make_sequence, quiet_config, tmp_path):
    frames_dir = make_sequence([10, 20, 10, 20, 10, 20, 10])
    serial = process_sequence(quiet_config(frames_dir, tmp_path / "serial", window=3, passes=2))
    parallel = process_sequence(quiet_config(frames_dir, tmp_path / "parallel", window=3, passes=2, workers=3))

    assert [f.current_luminance for f in parallel.frames] == pytest.approx(
        [f.current_luminance for f in serial.frames])
    for p in (tmp_path / "serial").iterdir():
        assert (tmp_path / "parallel" / p.name).read_bytes() == p.read_bytes()


def test_rerun_uses_cached_luminance(make_sequence, quiet_config, tmp_path):
    frames_dir = make_sequence([50, 60, 70])
    first = process_sequence(quiet_config(frames_dir, tmp_path / "out1"))
    assert sorted(p.name for p in frames_dir.glob("*.xmp")) == [f"frame_{i:04d}.png.xmp" for i in range(3)]

    codec = CountingCodec()
    second = process_sequence(quiet_config(frames_dir, tmp_path / "out2"), codec=codec)

    assert codec.reads == 0
    assert [f.original_luminance for f in second.frames] == [f.original_luminance for f in first.frames]


def test_fewer_than_two_frames_is_fatal_before_luminance(make_sequence, quiet_config, tmp_path):
    frames_dir = make_sequence([50])
    codec = FakeCodec()
    store = MemoryStore()
    with pytest.raises(InputError):
        process_sequence(quiet_config(frames_dir, tmp_path / "out"), store=store, codec=codec)
    assert codec.reads == []
    assert store.gets == []
    assert not (tmp_path / "out").exists()


def test_zero_luminance_frame_is_fatal(make_sequence, quiet_config, tmp_path):
    frames_dir = make_sequence([0, 40, 40])
    with pytest.raises(ZeroLuminanceError):
        process_sequence(quiet_config(frames_dir, tmp_path / "out"))


def test_list_file_keeps_order_and_skips_comments(tmp_path, quiet_config):
    a = write_gray(tmp_path / "a.png", 10)
    b = write_gray(tmp_path / "b.png", 30)
    c = write_gray(tmp_path / "c.png", 20)
    listing = tmp_path / "frames.txt"
    listing.write_text(f"# shot order\n{c}\n\n{a}\n#{b}\n{b}\n", encoding="utf-8")

    assert collect_sources(listing) == [c, a, b]

    result = process_sequence(quiet_config(listing, tmp_path / "out", window=2))
    assert [f.filename for f in result.frames] == [str(c), str(a), str(b)]
    assert [f.original_luminance for f in result.frames] == pytest.approx([20, 10, 30])


def test_list_file_with_missing_frame(tmp_path):
    listing = tmp_path / "frames.txt"
    listing.write_text(str(tmp_path / "gone.png") + "\n", encoding="utf-8")
    with pytest.raises(InputError):
        collect_sources(listing)


def test_directory_discovery_sorts_and_filters(make_sequence):
    frames_dir = make_sequence([10, 20, 30])
    (frames_dir / "notes.txt").write_text("not an image", encoding="utf-8")
    (frames_dir / "frame_0000.png.xmp").write_text("<x/>", encoding="utf-8")
    (frames_dir / "sub").mkdir()

    assert [p.name for p in collect_sources(frames_dir)] == [f"frame_{i:04d}.png" for i in range(3)]


def test_mixed_formats_warn_once(tmp_path, caplog):
    d = tmp_path / "mixed"
    d.mkdir()
    write_gray(d / "a.png", 10)
    write_gray(d / "b.jpg", 10)
    write_gray(d / "c.png", 10)
    write_gray(d / "d.bmp", 10)

    with caplog.at_level(logging.WARNING, logger="deflicker"):
        files = collect_sources(d)

    assert len(files) == 4
    warnings = [r for r in caplog.records if "ARE YOU SURE" in r.getMessage().upper()]
    assert len(warnings) == 1


def test_flat_collisions_are_reported(tmp_path, quiet_config, caplog):
    (tmp_path / "day1").mkdir()
    (tmp_path / "day2").mkdir()
    a = write_gray(tmp_path / "day1" / "IMG_1.png", 10)
    b = write_gray(tmp_path / "day2" / "IMG_1.png", 20)
    c = write_gray(tmp_path / "day2" / "IMG_2.png", 30)
    listing = tmp_path / "frames.txt"
    listing.write_text(f"{a}\n{b}\n{c}\n", encoding="utf-8")

    assert find_flat_collisions([a, b, c]) == [(a, b)]
    with caplog.at_level(logging.WARNING, logger="deflicker"):
        process_sequence(quiet_config(listing, tmp_path / "out"))
    assert any("duplicate file name" in r.getMessage() for r in caplog.records)


def test_output_directory_must_differ_from_input(make_sequence, quiet_config):
    frames_dir = make_sequence([10, 20])
    with pytest.raises(ConfigError):
        process_sequence(quiet_config(frames_dir, frames_dir))


def test_output_directory_creation_failure(make_sequence, quiet_config, tmp_path):
    frames_dir = make_sequence([10, 20])
    blocker = tmp_path / "blocker"
    blocker.write_text("file in the way", encoding="utf-8")
    store, codec = MemoryStore(), FakeCodec()
    with pytest.raises(OutputError):
        process_sequence(quiet_config(frames_dir, blocker / "out"), store=store, codec=codec)
    assert codec.reads == []
    assert store.sets == []
