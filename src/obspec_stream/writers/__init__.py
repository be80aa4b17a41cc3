"""File-like writers for object stores."""

from obspec_stream.writers._pipe import BytePipe
from obspec_stream.writers._sequential import SequentialStoreWriter, UploadAborted

__all__ = ["BytePipe", "SequentialStoreWriter", "UploadAborted"]
