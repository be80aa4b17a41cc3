"""File-like readers for object stores.

This module provides readers that wrap object stores with a file-like interface
(read, seek, tell, read_at), enabling use with libraries that expect file handles.
"""

from obspec_stream.readers._seekable import SeekableStoreReader
from obspec_stream.readers._session import RangeSession
from obspec_stream.readers._state import Detached, Failed, Positioned, ReaderState

__all__ = [
    "Detached",
    "Failed",
    "Positioned",
    "RangeSession",
    "ReaderState",
    "SeekableStoreReader",
]
