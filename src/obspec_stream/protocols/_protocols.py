"""Core protocol definitions for object store interfaces."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from obspec import Get, Head, Put


@runtime_checkable
class SeekableStore(Get, Head, Protocol):
    """
    Read interface required by [SeekableStoreReader][obspec_stream.readers.SeekableStoreReader].

    The protocol includes:

    - [Head][obspec.Head]: a single metadata probe to learn the object size
    - [Get][obspec.Get]: ranged downloads, consumed as a forward-only stream of
      chunks by iterating the returned `GetResult`

    obstore's stores (`AzureStore`, `S3Store`, `MemoryStore`, ...) all satisfy it.
    """

    pass


@runtime_checkable
class WritableStore(Put, Protocol):
    """
    Write interface required by [SequentialStoreWriter][obspec_stream.writers.SequentialStoreWriter].

    Only [Put][obspec.Put] is needed; the writer hands the store an iterator of
    chunks that is consumed to completion as the new object body.
    """

    pass


@runtime_checkable
class SeekableFile(Protocol):
    """
    Protocol for read-only, seekable file-like objects.

    Both [SeekableStoreReader][obspec_stream.readers.SeekableStoreReader] and
    [LocalFile][obspec_stream.local.LocalFile] implement it, so callers of
    [Opener.open_reader][obspec_stream.opener.Opener.open_reader] can treat
    remote and local objects alike.

    Examples
    --------

    ```python
    from obspec_stream import Opener
    from obspec_stream.protocols import SeekableFile

    with Opener().open_reader("file:///tmp/data.bin") as f:
        assert isinstance(f, SeekableFile)
        header = f.read_at(0, 16)
    ```
    """

    def read(self, size: int = -1, /) -> bytes:
        """Read up to `size` bytes; `-1` reads to the end of the object."""
        ...

    def seek(self, offset: int, whence: int = 0, /) -> int:
        """Move the cursor and return the new absolute position."""
        ...

    def tell(self) -> int:
        """Return the current cursor position."""
        ...

    def read_at(self, offset: int, size: int, /) -> bytes:
        """Read up to `size` bytes starting at `offset`."""
        ...

    def size(self) -> int:
        """Return the total size of the object in bytes."""
        ...

    def close(self) -> None:
        """Release the underlying resources."""
        ...


__all__ = ["SeekableStore", "WritableStore", "SeekableFile"]
