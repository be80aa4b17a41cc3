"""A bounded in-process byte pipe between one writer and one consumer thread."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Buffer, Iterator


class BytePipe:
    """
    Connects a producer calling `write()` to a consumer iterating the pipe.

    At most `capacity` bytes are held at a time: `write()` blocks while the pipe
    is full and iteration blocks while it is empty. Closing the write end ends
    the iteration once the remaining bytes are drained. Aborting the read end
    discards buffered bytes and makes further writes raise `BrokenPipeError`.
    A writer still blocked on a full pipe when the write end is closed raises
    `ValueError`.
    """

    def __init__(self, capacity: int = 8 * 1024 * 1024) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._write_closed = False
        self._write_error: BaseException | None = None
        self._read_closed = False

    @property
    def write_closed(self) -> bool:
        return self._write_closed

    def write(self, data: Buffer) -> int:
        view = memoryview(data).cast("B")
        written = 0
        with self._cond:
            if self._write_closed:
                raise ValueError("write to closed pipe")
            while written < len(view):
                while not (
                    len(self._buffer) < self._capacity
                    or self._read_closed
                    or self._write_closed
                ):
                    self._cond.wait()
                if self._read_closed:
                    raise BrokenPipeError("pipe consumer has stopped reading")
                if self._write_closed:
                    raise ValueError("write to closed pipe")
                room = self._capacity - len(self._buffer)
                chunk = view[written : written + room]
                self._buffer += chunk
                written += len(chunk)
                self._cond.notify_all()
        return written

    def close_write(self, error: BaseException | None = None) -> None:
        """
        Signal end of input. Idempotent.

        If `error` is given, buffered bytes are dropped and the consumer's
        iteration raises `error` instead of ending normally.
        """
        with self._cond:
            if self._write_closed:
                return
            self._write_closed = True
            if error is not None:
                self._write_error = error
                self._buffer.clear()
            self._cond.notify_all()

    def close_read(self) -> None:
        """Stop consuming. Buffered bytes are dropped and blocked writers wake up."""
        with self._cond:
            self._read_closed = True
            self._buffer.clear()
            self._cond.notify_all()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            with self._cond:
                while not (self._buffer or self._write_closed or self._read_closed):
                    self._cond.wait()
                if self._write_error is not None:
                    raise self._write_error
                if not self._buffer or self._read_closed:
                    return
                chunk = bytes(self._buffer)
                self._buffer.clear()
                self._cond.notify_all()
            yield chunk


__all__ = ["BytePipe"]
