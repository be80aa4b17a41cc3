"""Tests for ReadStats."""

import pytest

from obspec_stream.readers import SeekableStoreReader
from obspec_stream.stats import ReadStats, size_bucket

from .mocks import StreamingStore

DATA = bytes(range(100))


@pytest.mark.parametrize(
    "size,bucket",
    [(0, 0), (-1, 0), (1, 1), (2, 2), (3, 2), (4, 4), (1023, 512), (1024, 1024)],
)
def test_size_bucket(size, bucket):
    assert size_bucket(size) == bucket


def test_read_sizes_histogram():
    stats = ReadStats()
    reader = SeekableStoreReader(StreamingStore({"f": DATA}), "f", stats=stats)

    reader.read(0)
    reader.read(3)
    reader.read(2)
    reader.read(8)

    assert stats.reads == 4
    assert stats.read_sizes == {0: 1, 2: 2, 8: 1}


def test_summary():
    stats = ReadStats()
    reader = SeekableStoreReader(StreamingStore({"f": DATA}), "f", stats=stats)

    reader.read_at(0, 4)  # fast: cursor already at 0
    reader.read_at(4, 4)  # fast
    reader.read_at(50, 4)  # slow: reopen at 50
    reader.read_at(10, 4)  # slow: backward seek

    summary = stats.summary()
    assert summary["reads"] == 4
    assert summary["read_at_fast"] == 2
    assert summary["read_at_slow"] == 2
    assert summary["read_at_fast_ratio"] == 0.5
    assert summary["sessions_opened"] == 3
    assert summary["read_sizes"] == {4: 4}


def test_summary_without_read_at():
    assert ReadStats().summary()["read_at_fast_ratio"] is None


def test_bytes_skipped():
    stats = ReadStats()
    reader = SeekableStoreReader(StreamingStore({"f": DATA}), "f", stats=stats)

    reader.seek(10, 1)
    reader.seek(5, 1)
    assert stats.bytes_skipped == 15
    assert stats.sessions_opened == 1


def test_on_event_callback():
    events = []
    stats = ReadStats(on_event=lambda event, value: events.append((event, value)))
    reader = SeekableStoreReader(StreamingStore({"f": DATA}), "f", stats=stats)

    reader.read_at(0, 2)
    reader.seek(3, 1)
    reader.seek(0)

    assert events == [
        ("session_open", 100),
        ("read_at_fast", 1),
        ("read", 2),
        ("skip", 3),
        ("session_open", 100),
    ]


def test_shared_between_readers():
    stats = ReadStats()
    store = StreamingStore({"a": DATA, "b": DATA})
    first = SeekableStoreReader(store, "a", stats=stats)
    second = SeekableStoreReader(store, "b", stats=stats)

    first.read(4)
    second.read(4)

    assert stats.sessions_opened == 2
    assert stats.reads == 2


def test_reset():
    stats = ReadStats()
    reader = SeekableStoreReader(StreamingStore({"f": DATA}), "f", stats=stats)
    reader.read(4)

    stats.reset()
    assert stats.summary() == ReadStats().summary()


def test_stats_do_not_change_reads():
    store = StreamingStore({"f": DATA})
    plain = SeekableStoreReader(store, "f")
    counted = SeekableStoreReader(store, "f", stats=ReadStats())

    for reader in (plain, counted):
        reader.seek(40)
    assert plain.read(3) == counted.read(3) == DATA[40:43]
