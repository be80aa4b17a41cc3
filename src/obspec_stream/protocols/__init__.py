"""Protocols for object store interfaces.

This module defines the core protocols used throughout obspec-stream.
"""

from obspec_stream.protocols._protocols import (
    SeekableFile,
    SeekableStore,
    WritableStore,
)

__all__ = ["SeekableStore", "WritableStore", "SeekableFile"]
