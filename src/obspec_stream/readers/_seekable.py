"""Seekable store reader backed by forward-only range sessions."""

from __future__ import annotations

import logging
import os
import threading
from typing import TYPE_CHECKING

from obspec_stream.errors import (
    BackendError,
    InconsistentStateError,
    OutOfRangeError,
    backend_error,
)
from obspec_stream.readers._session import RangeSession
from obspec_stream.readers._state import Detached, Failed, Positioned, ReaderState

if TYPE_CHECKING:
    from collections.abc import Buffer

    from obspec_stream.protocols import SeekableStore
    from obspec_stream.stats import ReadStats

logger = logging.getLogger(__name__)


class SeekableStoreReader:
    """
    A file-like reader that streams an object through range sessions.

    This class provides the random-access interface of a local file (read,
    seek, tell, read_at) on top of any store implementing [Head][obspec.Head]
    and [Get][obspec.Get]. Instead of fetching and caching blocks it keeps a
    single ranged download open from the cursor to the end of the object and
    serves reads directly from it, so sequential reads cost one request in
    total no matter how small they are.

    Seeking forward relative to the cursor (`seek(n, SEEK_CUR)` with `n >= 0`)
    skips bytes on the open download instead of starting a new one. Any other
    seek that lands before the end of the object closes the download and opens
    a new one at the target. Seeking to or past the end never touches the store.

    When to Use
    -----------
    Use SeekableStoreReader when:

    - **Mostly sequential access**: Parsers that read a file front to back,
      skipping over sections they do not need.
    - **Large objects**: Only the bytes actually read (or skipped) are
      transferred; nothing is cached.
    - **Shared handles**: All operations are serialized by an internal lock,
      so one reader can be used from several threads.

    Failure Semantics
    -----------------
    A failed range request is raised as a
    [BackendError][obspec_stream.errors.BackendError] and also remembered: every
    later read raises the same error until a seek succeeds. The cursor always
    moves to the requested target, even when opening the range failed.

    Examples
    --------
    ```python
    import os
    from obstore.store import MemoryStore
    from obspec_stream.readers import SeekableStoreReader

    store = MemoryStore()
    store.put("data.bin", b"0123456789")

    with SeekableStoreReader(store, "data.bin") as reader:
        reader.read(2)                # b"01"
        reader.seek(3, os.SEEK_CUR)   # skips on the open download
        reader.read(2)                # b"56"
        reader.read_at(0, 4)          # reopens at offset 0: b"0123"
    ```
    """

    def __init__(
        self,
        store: SeekableStore,
        path: str,
        *,
        stats: ReadStats | None = None,
    ) -> None:
        """
        Open a reader over `path`.

        The object size is probed once with `head()`, then a ranged download
        covering the whole object is opened.

        Parameters
        ----------
        store
            Any object implementing [Head][obspec.Head] and [Get][obspec.Get].
        path
            The path to the file within the store.
        stats
            Optional [ReadStats][obspec_stream.stats.ReadStats] to report usage to.

        Raises
        ------
        ObjectNotFoundError
            If the object does not exist.
        BackendError
            If the size probe or the initial range request fails.
        """
        self._store = store
        self._path = path
        self._stats = stats
        self._lock = threading.Lock()
        self._closed = False
        self._size = self._probe_size()
        self._state: ReaderState = Detached(0)
        with self._lock:
            self._seek(0, os.SEEK_SET)

    def _probe_size(self) -> int:
        try:
            meta = self._store.head(self._path)
        except Exception as e:
            raise backend_error(f"head {self._path!r} failed", e)
        size = meta.get("size")
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            raise BackendError(
                f"store reported no usable size for {self._path!r}: {size!r}"
            )
        return size

    @property
    def path(self) -> str:
        return self._path

    @property
    def state(self) -> ReaderState:
        """The current cursor state. Intended for diagnostics and tests."""
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed file")

    # Everything below that starts with an underscore expects self._lock to be held.

    def _discard_session(self) -> None:
        state = self._state
        if isinstance(state, Positioned):
            self._state = Detached(state.cursor)
            state.session.close()

    def _fail(self, cursor: int, message: str, cause: Exception) -> BackendError:
        self._discard_session()
        err = backend_error(message, cause)
        self._state = Failed(cursor, err)
        return err

    def _open_range(self, target: int) -> None:
        self._discard_session()
        logger.debug("Opening range [%d, %d) of %r", target, self._size, self._path)
        try:
            session = RangeSession.open(self._store, self._path, target, self._size)
        except Exception as e:
            raise self._fail(
                target,
                f"get range [{target}, {self._size}) of {self._path!r} failed",
                e,
            )
        if self._stats is not None:
            self._stats.record_session_open(self._size - target)
        self._state = Positioned(target, session)

    def _fast_forward(self, state: Positioned, offset: int) -> int:
        target = state.cursor + offset
        logger.debug(
            "Skipping %d bytes of %r from offset %d", offset, self._path, state.cursor
        )
        try:
            skipped = state.session.skip(offset)
        except Exception as e:
            raise self._fail(
                target, f"skip to offset {target} of {self._path!r} failed", e
            )
        state.cursor += skipped
        if self._stats is not None:
            self._stats.record_skip(skipped)
        if skipped < offset:
            self._discard_session()
            raise InconsistentStateError(
                f"range session of {self._path!r} ended at offset {state.cursor}, "
                f"before seek target {target} (size {self._size})"
            )
        return state.cursor

    def _seek(self, offset: int, whence: int) -> int:
        cursor = self._state.cursor
        if whence == os.SEEK_SET:
            target = offset
        elif whence == os.SEEK_CUR:
            target = cursor + offset
        elif whence == os.SEEK_END:
            target = self._size + offset
        else:
            raise ValueError(f"Invalid whence value: {whence}")

        if target < 0:
            raise OutOfRangeError(
                f"seek to negative offset {target} in {self._path!r}"
            )

        if target >= self._size:
            self._discard_session()
            self._state = Detached(target)
            return target

        state = self._state
        if whence == os.SEEK_CUR and offset >= 0 and isinstance(state, Positioned):
            return self._fast_forward(state, offset)

        self._open_range(target)
        return target

    def _readable_state(self, size: int) -> Positioned | None:
        """Return the state to read from, or None when the read yields nothing."""
        if self._stats is not None:
            self._stats.record_read(size)
        if size == 0:
            return None
        state = self._state
        if state.cursor >= self._size:
            return None
        if isinstance(state, Failed):
            raise state.error
        if not isinstance(state, Positioned):
            raise InconsistentStateError(
                f"no open range session for {self._path!r} at offset "
                f"{state.cursor} (size {self._size})"
            )
        return state

    def _advance(self, state: Positioned, count: int) -> None:
        state.cursor += count
        if count == 0:
            self._discard_session()
            raise InconsistentStateError(
                f"range session of {self._path!r} ended at offset {state.cursor}, "
                f"before the end of the object (size {self._size})"
            )
        if state.cursor >= self._size:
            self._discard_session()

    def _read(self, size: int) -> bytes:
        state = self._readable_state(size)
        if state is None:
            return b""
        try:
            data = state.session.read(size)
        except Exception as e:
            raise self._fail(
                state.cursor,
                f"read of {self._path!r} at offset {state.cursor} failed",
                e,
            )
        self._advance(state, len(data))
        return data

    def _readinto(self, view: memoryview) -> int:
        state = self._readable_state(len(view))
        if state is None:
            return 0
        try:
            count = state.session.readinto(view)
        except Exception as e:
            raise self._fail(
                state.cursor,
                f"read of {self._path!r} at offset {state.cursor} failed",
                e,
            )
        self._advance(state, count)
        return count

    def _read_to_end(self) -> bytes:
        parts = []
        while self._state.cursor < self._size:
            parts.append(self._read(self._size - self._state.cursor))
        return b"".join(parts)

    def read(self, size: int | None = -1, /) -> bytes:
        """
        Read up to `size` bytes from the file.

        A single call returns whatever the open download yields next, which may
        be fewer bytes than requested. An empty result means end of file,
        except for `read(0)`, which always returns `b""`.

        Parameters
        ----------
        size
            Number of bytes to read. If -1 or None, read from the current
            position to the end of the file.

        Returns
        -------
        bytes
            The data read from the file.
        """
        with self._lock:
            self._check_open()
            if size is None or size < 0:
                return self._read_to_end()
            return self._read(size)

    def readall(self) -> bytes:
        """Read from the current position to the end of the file."""
        return self.read(-1)

    def readinto(self, buffer: Buffer, /) -> int:
        """
        Read bytes into a pre-allocated, writable buffer.

        Returns
        -------
        int
            The number of bytes read. 0 means end of file unless `buffer` is empty.
        """
        view = memoryview(buffer).cast("B")
        with self._lock:
            self._check_open()
            return self._readinto(view)

    def seek(self, offset: int, whence: int = os.SEEK_SET, /) -> int:
        """
        Move the file position.

        Parameters
        ----------
        offset
            Position offset.
        whence
            Reference point: 0=start (SEEK_SET), 1=current (SEEK_CUR), 2=end (SEEK_END).

        Returns
        -------
        int
            The new absolute position. Positions past the end are allowed;
            reads there return `b""`.

        Raises
        ------
        OutOfRangeError
            If the target is negative. The position is left unchanged.
        BackendError
            If a new range could not be opened. The position still moves to
            the target and reads raise this error until the next seek.
        """
        with self._lock:
            self._check_open()
            return self._seek(offset, whence)

    def read_at(self, offset: int, size: int, /) -> bytes:
        """
        Read up to `size` bytes starting at `offset`.

        When `offset` is the current position and a download is open the read
        is served directly; otherwise the reader seeks first. Either way the
        position ends up after the bytes returned.
        """
        with self._lock:
            self._check_open()
            self._seek_for_read_at(offset)
            if size < 0:
                return self._read_to_end()
            return self._read(size)

    def readinto_at(self, buffer: Buffer, offset: int, /) -> int:
        """Like `read_at`, but copies into `buffer` and returns the byte count."""
        view = memoryview(buffer).cast("B")
        with self._lock:
            self._check_open()
            self._seek_for_read_at(offset)
            return self._readinto(view)

    def _seek_for_read_at(self, offset: int) -> None:
        state = self._state
        fast = offset == state.cursor and isinstance(state, Positioned)
        if self._stats is not None:
            self._stats.record_read_at(fast)
        if not fast:
            self._seek(offset, os.SEEK_SET)

    def tell(self) -> int:
        """
        Return the current file position.

        Returns
        -------
        int
            Current position in bytes from start of file.
        """
        with self._lock:
            self._check_open()
            return self._state.cursor

    def size(self) -> int:
        """Return the object size probed when the reader was opened."""
        return self._size

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def writable(self) -> bool:
        return False

    def close(self) -> None:
        """Close the open download and reset the position. Closing twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._discard_session()
            finally:
                self._state = Detached(0)

    def __enter__(self) -> "SeekableStoreReader":
        """Enter the context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the context manager and close the reader."""
        self.close()


__all__ = ["SeekableStoreReader"]
