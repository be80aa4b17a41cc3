"""Read diagnostics for seekable readers.

[ReadStats][obspec_stream.stats.ReadStats] is an optional collaborator that a
[SeekableStoreReader][obspec_stream.readers.SeekableStoreReader] reports to. It
never changes how a reader behaves; it only counts what the reader did.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

StatEvent = Literal["read", "read_at_fast", "read_at_slow", "session_open", "skip"]


def size_bucket(size: int) -> int:
    """Return the largest power of two that is <= `size` (0 for empty reads)."""
    if size <= 0:
        return 0
    return 1 << (size.bit_length() - 1)


@dataclass
class ReadStats:
    """
    Counters describing how a reader is used.

    A single instance may be shared by several readers; updates are guarded by
    an internal lock.

    Attributes
    ----------
    read_sizes
        Histogram of requested read sizes, keyed by power-of-two bucket.
    reads
        Number of read calls, including zero-length ones.
    read_at_fast
        `read_at` calls served from the open session without a seek.
    read_at_slow
        `read_at` calls that required a seek (and usually a new session).
    sessions_opened
        Range sessions opened against the store.
    bytes_skipped
        Bytes discarded from open sessions by forward seeks.
    on_event
        Optional callback invoked as `on_event(event, value)` after each update,
        e.g. to forward counters to a metrics system.

    Examples
    --------
    ```python
    from obspec_stream.readers import SeekableStoreReader
    from obspec_stream.stats import ReadStats

    stats = ReadStats()
    with SeekableStoreReader(store, "data.bin", stats=stats) as reader:
        reader.read_at(0, 1024)
        reader.read_at(1024, 1024)
    print(stats.summary())
    ```
    """

    read_sizes: Counter[int] = field(default_factory=Counter)
    reads: int = 0
    read_at_fast: int = 0
    read_at_slow: int = 0
    sessions_opened: int = 0
    bytes_skipped: int = 0
    on_event: Callable[[StatEvent, int], None] | None = None
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def record_read(self, size: int) -> None:
        with self._lock:
            self.reads += 1
            self.read_sizes[size_bucket(size)] += 1
        self._emit("read", size)

    def record_read_at(self, fast: bool) -> None:
        with self._lock:
            if fast:
                self.read_at_fast += 1
            else:
                self.read_at_slow += 1
        self._emit("read_at_fast" if fast else "read_at_slow", 1)

    def record_session_open(self, length: int) -> None:
        with self._lock:
            self.sessions_opened += 1
        self._emit("session_open", length)

    def record_skip(self, count: int) -> None:
        with self._lock:
            self.bytes_skipped += count
        self._emit("skip", count)

    def _emit(self, event: StatEvent, value: int) -> None:
        if self.on_event is not None:
            self.on_event(event, value)

    def reset(self) -> None:
        """Zero all counters."""
        with self._lock:
            self.read_sizes.clear()
            self.reads = 0
            self.read_at_fast = 0
            self.read_at_slow = 0
            self.sessions_opened = 0
            self.bytes_skipped = 0

    def summary(self) -> dict[str, Any]:
        """Get summary statistics."""
        with self._lock:
            total_read_at = self.read_at_fast + self.read_at_slow
            return {
                "reads": self.reads,
                "read_sizes": dict(sorted(self.read_sizes.items())),
                "read_at_fast": self.read_at_fast,
                "read_at_slow": self.read_at_slow,
                "read_at_fast_ratio": (
                    self.read_at_fast / total_read_at if total_read_at else None
                ),
                "sessions_opened": self.sessions_opened,
                "bytes_skipped": self.bytes_skipped,
            }


__all__ = ["ReadStats", "StatEvent", "size_bucket"]
