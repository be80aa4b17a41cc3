"""Forward-only range sessions over a single object."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from obspec import Get, GetResult

_EMPTY = memoryview(b"")


class RangeSession:
    """
    A forward-only byte stream covering `[start, end)` of one object.

    The session wraps the chunk iterator of an obspec `GetResult`. Bytes can
    only be consumed in order, either by reading them or by skipping them;
    going backwards requires opening a new session.
    """

    def __init__(self, result: GetResult, start: int, end: int) -> None:
        self.start = start
        self.end = end
        self.position = start
        self._chunks: Iterator | None = iter(result)
        self._pending = _EMPTY

    @classmethod
    def open(cls, store: Get, path: str, start: int, end: int) -> RangeSession:
        """Issue a ranged `get()` for `[start, end)` and wrap the result."""
        result = store.get(path, options={"range": (start, end)})
        return cls(result, start, end)

    @property
    def remaining(self) -> int:
        return self.end - self.position

    @property
    def exhausted(self) -> bool:
        return self._chunks is None and not self._pending

    def _fill(self) -> bool:
        """Make sure a pending chunk is available. Returns False at end of range."""
        while not self._pending:
            if self._chunks is None or self.position >= self.end:
                self._finish()
                return False
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._finish()
                return False
            view = memoryview(chunk).cast("B")
            # Stores may hand back more than asked for; never read past `end`.
            self._pending = view[: self.remaining]
        return True

    def _take(self, size: int) -> memoryview:
        n = min(size, len(self._pending))
        data = self._pending[:n]
        self._pending = self._pending[n:] if n < len(self._pending) else _EMPTY
        self.position += n
        return data

    def read(self, size: int) -> bytes:
        """
        Read up to `size` bytes from at most one chunk.

        Returns `b""` only when the range is exhausted.
        """
        if size <= 0 or not self._fill():
            return b""
        return bytes(self._take(size))

    def readinto(self, buffer: memoryview) -> int:
        """Like `read`, but copies into `buffer` and returns the byte count."""
        if not len(buffer) or not self._fill():
            return 0
        data = self._take(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def skip(self, count: int) -> int:
        """Discard up to `count` bytes. Returns the number actually discarded."""
        skipped = 0
        while skipped < count and self._fill():
            skipped += len(self._take(count - skipped))
        return skipped

    def _finish(self) -> None:
        self._chunks = None
        self._pending = _EMPTY

    def close(self) -> None:
        """Release the underlying stream. Safe to call more than once."""
        chunks = self._chunks
        self._finish()
        close = getattr(chunks, "close", None)
        if close is not None:
            close()


__all__ = ["RangeSession"]
