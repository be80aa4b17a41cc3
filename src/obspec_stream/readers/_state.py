"""Cursor states of a [SeekableStoreReader][obspec_stream.readers.SeekableStoreReader].

A reader is always in exactly one of three states:

- [Positioned][obspec_stream.readers.Positioned]: a range session is open and
  covers `[cursor, size)`.
- [Detached][obspec_stream.readers.Detached]: no session is open. This is only
  valid when `cursor >= size`; reading before the end in this state raises
  [InconsistentStateError][obspec_stream.errors.InconsistentStateError].
- [Failed][obspec_stream.readers.Failed]: opening or reading a session failed.
  The error is raised by every read until a seek succeeds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from obspec_stream.errors import BackendError
from obspec_stream.readers._session import RangeSession


@dataclass
class Positioned:
    cursor: int
    session: RangeSession


@dataclass(frozen=True)
class Detached:
    cursor: int


@dataclass(frozen=True)
class Failed:
    cursor: int
    error: BackendError


ReaderState = Union[Positioned, Detached, Failed]


__all__ = ["Detached", "Failed", "Positioned", "ReaderState"]
