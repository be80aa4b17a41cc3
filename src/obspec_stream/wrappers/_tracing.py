"""Request tracing utilities for obspec-stream.

This module provides a wrapper to trace the requests a reader or writer makes
against a store, useful for debugging, profiling, and checking how many range
sessions an access pattern costs.
"""

from __future__ import annotations

import time
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Literal, TypedDict

if TYPE_CHECKING:
    from collections.abc import Buffer, Iterator

    from obspec import GetOptions, GetResult, ObjectMeta

Method = Literal["get", "head", "put"]


class _TraceInfo(TypedDict, total=False):
    """Info collected during a traced operation."""

    start: int
    length: int


@dataclass
class RequestRecord:
    """Record of a single store request.

    Note
    ----
    For `get`, ``duration`` only covers opening the download; the body is
    streamed afterwards as the caller reads it. For `put`, ``duration`` covers
    the whole upload.
    """

    path: str
    start: int
    length: int
    end: int  # start + length
    timestamp: float
    duration: float | None = None
    method: Method = "get"


@dataclass
class RequestTrace:
    """Collection of request records with analysis methods."""

    requests: list[RequestRecord] = field(default_factory=list)

    def add(
        self,
        path: str,
        start: int,
        length: int,
        timestamp: float,
        duration: float | None = None,
        method: Method = "get",
    ) -> None:
        """Add a request record."""
        self.requests.append(
            RequestRecord(
                path=path,
                start=start,
                length=length,
                end=start + length,
                timestamp=timestamp,
                duration=duration,
                method=method,
            )
        )

    def clear(self) -> None:
        """Clear all recorded requests."""
        self.requests.clear()

    def count(self, method: Method) -> int:
        """Number of recorded requests made with `method`."""
        return sum(1 for r in self.requests if r.method == method)

    def to_dataframe(self):
        """Convert to pandas DataFrame."""
        import pandas as pd

        columns = ["path", "start", "length", "end", "timestamp", "duration", "method"]
        if not self.requests:
            return pd.DataFrame(columns=columns)

        return pd.DataFrame(
            [{name: getattr(r, name) for name in columns} for r in self.requests]
        )

    @property
    def total_bytes(self) -> int:
        """Total bytes requested."""
        return sum(r.length for r in self.requests)

    @property
    def total_requests(self) -> int:
        """Total number of requests."""
        return len(self.requests)

    def summary(self) -> dict[str, Any]:
        """Get summary statistics."""
        if not self.requests:
            return {
                "total_requests": 0,
                "total_bytes": 0,
                "unique_files": 0,
            }

        paths = set(r.path for r in self.requests)
        lengths = [r.length for r in self.requests]

        return {
            "total_requests": len(self.requests),
            "total_bytes": sum(lengths),
            "unique_files": len(paths),
            "requests_by_method": {
                m: self.count(m) for m in ("head", "get", "put") if self.count(m)
            },
            "min_request_size": min(lengths),
            "max_request_size": max(lengths),
            "mean_request_size": sum(lengths) / len(lengths),
        }


def _counting(chunks: Iterable[Buffer], info: _TraceInfo) -> Iterator[Buffer]:
    info["length"] = 0
    for chunk in chunks:
        info["length"] += len(memoryview(chunk).cast("B"))
        yield chunk


class TracingStore:
    """
    A wrapper that traces all requests made to an underlying store.

    The wrapper records `head`, `get` and `put` calls and forwards every other
    attribute to the wrapped store, so it can stand in for the store anywhere.

    Examples
    --------
    ```python
    from obstore.store import MemoryStore
    from obspec_stream.readers import SeekableStoreReader
    from obspec_stream.wrappers import RequestTrace, TracingStore

    trace = RequestTrace()
    store = TracingStore(MemoryStore(), trace)
    store.put("data.bin", b"0123456789")

    reader = SeekableStoreReader(store, "data.bin")
    reader.seek(8)
    print(trace.count("get"))  # 2: the initial download and the reopen at 8
    ```
    """

    def __init__(
        self,
        store: Any,
        trace: RequestTrace,
        *,
        on_request: Callable[[RequestRecord], None] | None = None,
    ) -> None:
        """
        Create a tracing wrapper around a store.

        Parameters
        ----------
        store
            Any object implementing some of [Head][obspec.Head],
            [Get][obspec.Get] and [Put][obspec.Put].
        trace
            RequestTrace instance to record requests to.
        on_request
            Optional callback called for each request (e.g., for logging).
        """
        self._store = store
        self._trace = trace
        self._on_request = on_request

    def __getattr__(self, name: str) -> Any:
        """Forward unknown attributes to the underlying store."""
        return getattr(self._store, name)

    @contextmanager
    def _record(self, path: str, method: Method) -> Generator[_TraceInfo, None, None]:
        """Context manager to record a request with automatic timing.

        Yields a dict that the caller populates with start and length.
        Records are saved even if the operation raises an exception.
        """
        info: _TraceInfo = {}
        start_time = time.time()
        try:
            yield info
        finally:
            duration = time.time() - start_time
            self._trace.add(
                path=path,
                start=info.get("start", 0),
                length=info.get("length", 0),
                timestamp=start_time,
                duration=duration,
                method=method,
            )
            if self._on_request:
                self._on_request(self._trace.requests[-1])

    def head(self, path: str) -> ObjectMeta:
        """Get file metadata (delegates to underlying store)."""
        with self._record(path, "head") as info:
            info["start"] = 0
            info["length"] = 0  # HEAD requests don't transfer data
            return self._store.head(path)

    def get(self, path: str, *, options: GetOptions | None = None) -> GetResult:
        """Open a download (delegates to underlying store)."""
        with self._record(path, "get") as info:
            byte_range = (options or {}).get("range")
            if isinstance(byte_range, (tuple, list)) and len(byte_range) == 2:
                start, end = byte_range
                info["start"] = start
                info["length"] = end - start
                return self._store.get(path, options=options)
            result = self._store.get(path, options=options)
            size = result.meta.get("size", 0) if hasattr(result, "meta") else 0
            info["start"] = 0
            info["length"] = size
            return result

    def put(self, path: str, file: Any, **kwargs: Any) -> Any:
        """Upload an object (delegates to underlying store)."""
        with self._record(path, "put") as info:
            info["start"] = 0
            if isinstance(file, (bytes, bytearray, memoryview)):
                info["length"] = len(file)
                return self._store.put(path, file, **kwargs)
            if isinstance(file, Iterable):
                return self._store.put(path, _counting(file, info), **kwargs)
            return self._store.put(path, file, **kwargs)


__all__ = [
    "RequestRecord",
    "RequestTrace",
    "TracingStore",
]
