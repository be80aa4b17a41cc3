from typing import TypeAlias

Url: TypeAlias = str
"""A URL string (e.g., 'abs://account/container/path' or 'file:///tmp/data.bin')."""

Path: TypeAlias = str
"""A path string within an object store."""


__all__ = ["Url", "Path"]
