"""Exceptions raised by obspec-stream.

Every exception derives from [RemoteFileError][obspec_stream.errors.RemoteFileError].
Where a builtin exception describes the same failure, the error also derives
from it, so callers written against local files (catching `ValueError`,
`OSError` or `FileNotFoundError`) keep working.
"""

from __future__ import annotations


class RemoteFileError(Exception):
    """Base class for all obspec-stream errors."""


class InvalidLocatorError(RemoteFileError, ValueError):
    """A URL is malformed or is missing its account, container or blob path."""


class RelativePathError(InvalidLocatorError):
    """A `file://` URL points at a relative path."""


class UnsupportedSchemeError(RemoteFileError, ValueError):
    """No backend is available for the URL's scheme."""


class MissingCredentialsError(RemoteFileError):
    """A scheme that requires authentication was opened without credentials."""


class OutOfRangeError(RemoteFileError, ValueError):
    """A seek would move the cursor before the start of the object."""


class BackendError(RemoteFileError, OSError):
    """
    The remote store failed.

    The message names the operation and the path; the store's own exception is
    chained as `__cause__`.
    """


class ObjectNotFoundError(BackendError, FileNotFoundError):
    """The remote object does not exist."""


class InconsistentStateError(RemoteFileError, RuntimeError):
    """
    A reader found no open range session before the end of the object.

    This indicates a bug or a store that ended a range early, and is never
    converted into an end-of-stream.
    """


def backend_error(message: str, cause: BaseException) -> BackendError:
    """Wrap a store exception, keeping not-found failures distinguishable."""
    if isinstance(cause, FileNotFoundError):
        err: BackendError = ObjectNotFoundError(f"{message}: {cause}")
    else:
        err = BackendError(f"{message}: {cause}")
    err.__cause__ = cause
    return err


__all__ = [
    "BackendError",
    "InconsistentStateError",
    "InvalidLocatorError",
    "MissingCredentialsError",
    "ObjectNotFoundError",
    "OutOfRangeError",
    "RelativePathError",
    "RemoteFileError",
    "UnsupportedSchemeError",
    "backend_error",
]
