"""Store wrappers that add functionality to underlying stores.

This module provides a transparent wrapper that records the requests made to
any store.
"""

from obspec_stream.wrappers._tracing import (
    RequestRecord,
    RequestTrace,
    TracingStore,
)

__all__ = [
    "TracingStore",
    "RequestTrace",
    "RequestRecord",
]
