"""Sequential writer streaming incremental writes into a single upload."""

from __future__ import annotations

import logging
import threading
import weakref
from typing import TYPE_CHECKING, Any

from obspec_stream.errors import BackendError, backend_error
from obspec_stream.writers._pipe import BytePipe

if TYPE_CHECKING:
    from collections.abc import Buffer

    from obspec_stream.protocols import WritableStore

logger = logging.getLogger(__name__)


class UploadAborted(Exception):
    """Raised into the upload stream when the writer is abandoned mid-write."""


class _UploadOutcome:
    """The failure of a background upload, shared with the thread running it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._error: BackendError | None = None

    @property
    def error(self) -> BackendError | None:
        with self._lock:
            return self._error

    def fail(self, error: BackendError) -> None:
        with self._lock:
            self._error = error


def _run_upload(
    store: WritableStore,
    path: str,
    pipe: BytePipe,
    put_kwargs: dict[str, Any],
    outcome: _UploadOutcome,
) -> None:
    # Holds no reference to the writer, so an abandoned writer can be collected.
    try:
        store.put(path, iter(pipe), **put_kwargs)
    except Exception as e:
        outcome.fail(backend_error(f"upload of {path!r} failed", e))
        logger.debug("Upload of %r failed: %s", path, e)
        return
    finally:
        # Unblock any writer still waiting on a full pipe.
        pipe.close_read()
    logger.debug("Finished upload of %r", path)


def _abandon(pipe: BytePipe, path: str) -> None:
    logger.warning("Upload of %r was never closed, aborting", path)
    pipe.close_write(UploadAborted(f"upload of {path!r} was abandoned"))


class SequentialStoreWriter:
    """
    A file-like writer that turns `write()` calls into one streamed upload.

    Object stores accept an object body in a single `put()` call. This writer
    starts that call on a background thread as soon as it is created, feeding
    it from a bounded pipe; each `write()` pushes bytes into the pipe and
    blocks while the upload is not keeping up. `close()` ends the stream and
    waits for the upload to finish, so a successful `close()` means the object
    has been stored.

    A writer that is garbage collected, or still open at interpreter exit,
    without being closed aborts its upload and commits nothing.

    Examples
    --------
    ```python
    from obstore.store import MemoryStore
    from obspec_stream.writers import SequentialStoreWriter

    store = MemoryStore()
    with SequentialStoreWriter(store, "out.bin") as writer:
        writer.write(b"hello ")
        writer.write(b"world")
    assert bytes(store.get("out.bin").bytes()) == b"hello world"
    ```
    """

    def __init__(
        self,
        store: WritableStore,
        path: str,
        *,
        pipe_capacity: int = 8 * 1024 * 1024,
        **put_kwargs: Any,
    ) -> None:
        """
        Start an upload to `path`.

        Parameters
        ----------
        store
            Any object implementing [Put][obspec.Put].
        path
            The path to write within the store.
        pipe_capacity
            Maximum number of bytes buffered between `write()` and the upload.
        **put_kwargs
            Extra keyword arguments forwarded to `store.put()` (e.g. `attributes`,
            `chunk_size`, `max_concurrency`).
        """
        self._path = path
        self._pipe = BytePipe(pipe_capacity)
        # Guards the closed flag; never held while blocked on the pipe.
        self._lock = threading.Lock()
        # Keeps each write's bytes contiguous in the stream.
        self._write_lock = threading.Lock()
        self._outcome = _UploadOutcome()
        self._closed = False
        # Daemon thread, so an unclosed writer cannot keep the interpreter alive.
        self._thread = threading.Thread(
            target=_run_upload,
            args=(store, path, self._pipe, put_kwargs, self._outcome),
            name=f"obspec-stream-upload-{path}",
            daemon=True,
        )
        self._finalizer = weakref.finalize(self, _abandon, self._pipe, path)
        logger.debug("Starting upload of %r", path)
        self._thread.start()

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> BackendError | None:
        """The upload failure recorded so far, if any."""
        return self._outcome.error

    def write(self, data: Buffer, /) -> int:
        """
        Write `data` to the object.

        Returns
        -------
        int
            The number of bytes written, always `len(data)` on success.

        Raises
        ------
        BackendError
            If the upload has already failed.
        ValueError
            If the writer is closed, including by `close()` or `abort()` from
            another thread while this write was blocked.
        """
        with self._lock:
            if self._closed:
                raise ValueError("I/O operation on closed file")
            err = self.error
            if err is not None:
                raise err
        with self._write_lock:
            try:
                return self._pipe.write(data)
            except ValueError:
                if not self._pipe.write_closed:
                    raise
                raise ValueError("I/O operation on closed file") from None
            except BrokenPipeError:
                # The upload stopped consuming; report why once it has finished.
                self._thread.join()
                err = self.error
                if err is not None:
                    raise err
                raise BackendError(
                    f"upload of {self._path!r} finished before all data was written"
                )

    def close(self) -> None:
        """
        Finish the upload and wait for the store to acknowledge it.

        Closing twice is a no-op.

        Raises
        ------
        BackendError
            If the upload failed.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._finish(None)

    def abort(self) -> None:
        """Abandon the upload so that no object is committed."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.warning("Aborting upload of %r", self._path)
        try:
            self._finish(UploadAborted(f"upload of {self._path!r} was aborted"))
        except BackendError as e:
            logger.debug("Aborted upload of %r ended with: %s", self._path, e)

    def _finish(self, abort_error: BaseException | None) -> None:
        self._finalizer.detach()
        self._pipe.close_write(abort_error)
        self._thread.join()
        err = self.error
        if err is not None:
            raise err

    def writable(self) -> bool:
        return True

    def readable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return False

    def __enter__(self) -> "SequentialStoreWriter":
        """Enter the context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Finish the upload, or abort it if the block raised."""
        if exc_type is not None:
            self.abort()
        else:
            self.close()


__all__ = ["SequentialStoreWriter", "UploadAborted"]
