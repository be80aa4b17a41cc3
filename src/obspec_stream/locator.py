"""Parsing of Azure Blob Storage URLs into structured locators."""

from __future__ import annotations

import string
from dataclasses import dataclass
from urllib.parse import urlparse

from obspec_stream.errors import InvalidLocatorError
from obspec_stream.typing import Url

AZURE_BLOB_HOST_SUFFIX = ".blob.core.windows.net"

_ACCOUNT_CHARS = frozenset(string.ascii_lowercase + string.digits)
_CONTAINER_CHARS = _ACCOUNT_CHARS | {"-"}


@dataclass(frozen=True)
class BlobLocator:
    """
    A fully-qualified blob in Azure Blob Storage.

    Attributes
    ----------
    account
        Storage account name.
    container
        Container name.
    path
        Blob path within the container, without a leading slash.
    """

    account: str
    container: str
    path: str

    @property
    def url(self) -> Url:
        """The canonical `abs://` form of the locator."""
        return f"abs://{self.account}/{self.container}/{self.path}"

    @property
    def container_url(self) -> Url:
        """The `abs://` URL of the container, used as a registry key."""
        return f"abs://{self.account}/{self.container}"

    @property
    def https_url(self) -> Url:
        """The blob endpoint URL of the locator."""
        return (
            f"https://{self.account}{AZURE_BLOB_HOST_SUFFIX}"
            f"/{self.container}/{self.path}"
        )


def parse_blob_url(url: Url) -> BlobLocator:
    """
    Parse an Azure blob URL.

    Accepted forms are `abs://<account>/<container>/<path>` and
    `https://<account>.blob.core.windows.net/<container>/<path>`. In the `abs`
    form the authority may also be written as the full blob host name.

    Parameters
    ----------
    url
        URL to parse.

    Returns
    -------
    BlobLocator
        The account, container and blob path named by the URL.

    Raises
    ------
    InvalidLocatorError
        If the URL uses another scheme or any component is missing or invalid.

    Examples
    --------
    ```python
    >>> parse_blob_url("abs://myaccount/data/2024/file.nc")
    BlobLocator(account='myaccount', container='data', path='2024/file.nc')
    ```
    """
    parsed = urlparse(url)
    host = parsed.netloc.lower()
    if parsed.scheme == "abs":
        account = host.removesuffix(AZURE_BLOB_HOST_SUFFIX)
    elif parsed.scheme == "https" and host.endswith(AZURE_BLOB_HOST_SUFFIX):
        account = host[: -len(AZURE_BLOB_HOST_SUFFIX)]
    else:
        raise InvalidLocatorError(
            f"Expected an `abs://` or Azure blob `https://` url, received {url!r}"
        )
    if parsed.query or parsed.fragment:
        raise InvalidLocatorError(
            f"Blob urls must not carry a query or fragment, received {url!r}"
        )

    if not (3 <= len(account) <= 24) or not set(account) <= _ACCOUNT_CHARS:
        raise InvalidLocatorError(
            f"Invalid storage account {account!r} in {url!r}: expected 3-24 "
            "lowercase letters or digits"
        )

    container, _, path = parsed.path.lstrip("/").partition("/")
    if not (3 <= len(container) <= 63) or not set(container) <= _CONTAINER_CHARS:
        raise InvalidLocatorError(
            f"Invalid container {container!r} in {url!r}: expected 3-63 "
            "lowercase letters, digits or hyphens"
        )
    if not path or path.endswith("/"):
        raise InvalidLocatorError(f"Missing blob path in {url!r}")

    return BlobLocator(account=account, container=container, path=path)


__all__ = ["AZURE_BLOB_HOST_SUFFIX", "BlobLocator", "parse_blob_url"]
