"""Open readers and writers from URLs, choosing the backend by scheme."""

from __future__ import annotations

import copy
import logging
import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import ParseResult, unquote, urlparse

from obstore.store import AzureStore

from obspec_stream.errors import (
    InvalidLocatorError,
    MissingCredentialsError,
    RelativePathError,
    UnsupportedSchemeError,
)
from obspec_stream.local import LocalFile
from obspec_stream.locator import AZURE_BLOB_HOST_SUFFIX, parse_blob_url
from obspec_stream.readers import SeekableStoreReader
from obspec_stream.registry import ObjectStoreRegistry
from obspec_stream.writers import SequentialStoreWriter

if TYPE_CHECKING:
    from obstore.auth.azure import AzureCredentialProvider
    from obstore.store import AzureConfig

    from obspec_stream.protocols import SeekableFile
    from obspec_stream.stats import ReadStats
    from obspec_stream.typing import Path, Url

logger = logging.getLogger(__name__)

SCHEME_FILE = "file"
SCHEME_AZURE = "abs"


def _parse(url: Url) -> ParseResult:
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidLocatorError(f"parse url {url!r} failed: {e}") from e
    if not parsed.scheme:
        raise InvalidLocatorError(
            f"Urls are expected to contain a scheme (e.g., `file://` or `abs://`), received {url!r}"
        )
    return parsed


def _local_path(parsed: ParseResult, url: Url) -> str:
    if parsed.netloc not in ("", "localhost") or not parsed.path.startswith("/"):
        raise RelativePathError(f"{url!r}: relative paths are not supported")
    return unquote(parsed.path)


def _is_azure(parsed: ParseResult) -> bool:
    if parsed.scheme == SCHEME_AZURE:
        return True
    return parsed.scheme == "https" and parsed.netloc.lower().endswith(
        AZURE_BLOB_HOST_SUFFIX
    )


class Opener:
    """
    Resolves URLs to file-like readers and writers.

    Resolution order:

    1. Stores registered with [register][obspec_stream.opener.Opener.register]
       (longest matching URL prefix wins), for any scheme.
    2. `file:///absolute/path` opens the local file through the operating system.
    3. `abs://<account>/<container>/<path>` (or the Azure blob `https://` form)
       opens the blob through an obstore `AzureStore`, which requires Azure
       credentials.

    Examples
    --------
    ```python
    from datetime import timedelta

    from obstore.auth.azure import AzureCredentialProvider
    from obspec_stream import Opener

    opener = Opener().with_azure_credentials(
        AzureCredentialProvider(), timeout=timedelta(seconds=30)
    )
    with opener.open_reader("abs://myaccount/data/file.nc") as f:
        magic = f.read_at(0, 8)
    ```
    """

    def __init__(
        self,
        *,
        registry: ObjectStoreRegistry | None = None,
        azure_credential_provider: AzureCredentialProvider | None = None,
        azure_config: AzureConfig | None = None,
        timeout: timedelta | str | None = None,
    ) -> None:
        """
        Parameters
        ----------
        registry
            Stores to resolve URLs against before falling back to scheme defaults.
        azure_credential_provider
            Credential provider passed to `AzureStore`.
        azure_config
            Extra `AzureConfig` keys (e.g. `access_key`, `sas_key`,
            `use_emulator`) passed to `AzureStore`. Supplying either this or a
            credential provider enables `abs://` urls.
        timeout
            Request timeout for Azure stores created by this opener.
        """
        self._registry: ObjectStoreRegistry = registry or ObjectStoreRegistry()
        self._azure_credential_provider = azure_credential_provider
        self._azure_config = dict(azure_config or {})
        self._timeout = timeout
        self._azure_stores: dict[Url, AzureStore] = {}
        self._lock = threading.Lock()

    def with_azure_credentials(
        self,
        credential_provider: AzureCredentialProvider | None = None,
        *,
        config: AzureConfig | None = None,
        timeout: timedelta | str | None = None,
    ) -> Opener:
        """Return a copy of this opener that can open `abs://` urls."""
        opener = copy.copy(self)
        opener._azure_credential_provider = credential_provider
        opener._azure_config = dict(config or {})
        opener._timeout = timeout
        opener._azure_stores = {}
        opener._lock = threading.Lock()
        return opener

    @property
    def registry(self) -> ObjectStoreRegistry:
        return self._registry

    def register(self, url: Url, store: Any) -> None:
        """Serve every url under `url` from `store`."""
        self._registry.register(url, store)

    def _azure_store(self, url: Url) -> tuple[AzureStore, Path]:
        if self._azure_credential_provider is None and not self._azure_config:
            raise MissingCredentialsError(
                f"{url!r}: missing Azure credentials, use Opener.with_azure_credentials"
            )
        locator = parse_blob_url(url)
        with self._lock:
            store = self._azure_stores.get(locator.container_url)
            if store is None:
                client_options: dict[str, Any] = {}
                if self._timeout is not None:
                    client_options["timeout"] = self._timeout
                logger.debug("Creating AzureStore for %s", locator.container_url)
                store = AzureStore(
                    locator.container,
                    config={**self._azure_config, "account_name": locator.account},
                    client_options=client_options or None,
                    credential_provider=self._azure_credential_provider,
                )
                self._azure_stores[locator.container_url] = store
        return store, locator.path

    def _resolve(self, url: Url) -> tuple[Any, Path] | str:
        """Return `(store, path)` for object store urls, or a local file path."""
        parsed = _parse(url)
        found = self._registry.find(url)
        if found is not None:
            return found
        if parsed.scheme == SCHEME_FILE:
            return _local_path(parsed, url)
        if _is_azure(parsed):
            return self._azure_store(url)
        raise UnsupportedSchemeError(f"unsupported scheme {parsed.scheme!r} in {url!r}")

    def open_reader(self, url: Url, *, stats: ReadStats | None = None) -> SeekableFile:
        """
        Open `url` for random-access reading.

        Returns
        -------
        SeekableFile
            A [LocalFile][obspec_stream.local.LocalFile] for `file://` urls, a
            [SeekableStoreReader][obspec_stream.readers.SeekableStoreReader]
            otherwise.

        Raises
        ------
        InvalidLocatorError
            If the url has no scheme or an `abs://` url is incomplete.
        RelativePathError
            If a `file://` url is relative.
        MissingCredentialsError
            If an `abs://` url is opened without Azure credentials.
        UnsupportedSchemeError
            If no backend handles the url.
        """
        resolved = self._resolve(url)
        if isinstance(resolved, str):
            return LocalFile(resolved, "r")
        store, path = resolved
        return SeekableStoreReader(store, path, stats=stats)

    def open_writer(
        self, url: Url, **put_kwargs: Any
    ) -> SequentialStoreWriter | LocalFile:
        """
        Open `url` for sequential writing, replacing any existing object.

        `put_kwargs` are forwarded to
        [SequentialStoreWriter][obspec_stream.writers.SequentialStoreWriter]
        for object store urls. Raises the same errors as
        [open_reader][obspec_stream.opener.Opener.open_reader].
        """
        resolved = self._resolve(url)
        if isinstance(resolved, str):
            return LocalFile(resolved, "w")
        store, path = resolved
        return SequentialStoreWriter(store, path, **put_kwargs)


__all__ = ["Opener", "SCHEME_AZURE", "SCHEME_FILE"]
