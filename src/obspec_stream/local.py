"""Local files exposed through the same interface as remote readers."""

from __future__ import annotations

import io
import os


class LocalFile(io.FileIO):
    """
    An unbuffered OS file with `size()` and `read_at()`.

    Reads, seeks and writes go straight to the operating system; this class only
    adds the two methods remote readers have on top of a plain file object.
    """

    def size(self) -> int:
        """Return the current size of the file in bytes."""
        return os.fstat(self.fileno()).st_size

    def read_at(self, offset: int, size: int, /) -> bytes:
        """
        Read up to `size` bytes starting at `offset`, leaving the position after
        the bytes returned.
        """
        self.seek(offset, os.SEEK_SET)
        return self.read(size)


__all__ = ["LocalFile"]
