from ._version import __version__
from .errors import (
    BackendError,
    InconsistentStateError,
    InvalidLocatorError,
    MissingCredentialsError,
    ObjectNotFoundError,
    OutOfRangeError,
    RelativePathError,
    RemoteFileError,
    UnsupportedSchemeError,
)
from .local import LocalFile
from .locator import BlobLocator, parse_blob_url
from .opener import Opener
from .readers import SeekableStoreReader
from .registry import ObjectStoreRegistry
from .stats import ReadStats
from .writers import SequentialStoreWriter

__all__ = [
    "__version__",
    "BackendError",
    "BlobLocator",
    "InconsistentStateError",
    "InvalidLocatorError",
    "LocalFile",
    "MissingCredentialsError",
    "ObjectNotFoundError",
    "ObjectStoreRegistry",
    "Opener",
    "OutOfRangeError",
    "ReadStats",
    "RelativePathError",
    "RemoteFileError",
    "SeekableStoreReader",
    "SequentialStoreWriter",
    "UnsupportedSchemeError",
    "parse_blob_url",
]
