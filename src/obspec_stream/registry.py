"""
Based on https://docs.rs/object_store/0.12.2/src/object_store/registry.rs.html#176-218
"""

from __future__ import annotations

from collections import namedtuple
from collections.abc import Iterator
from typing import Generic, TypeVar
from urllib.parse import urlparse

from obspec import Get

from obspec_stream.errors import InvalidLocatorError, UnsupportedSchemeError
from obspec_stream.typing import Path, Url

T = TypeVar("T", bound=Get)
"""Type variable for store types, bounded by [Get][obspec.Get]."""

UrlKey = namedtuple("UrlKey", ["scheme", "netloc"])
"""
A named tuple containing a URL's scheme and authority/netloc.

Used as the primary key in ObjectStoreRegistry.map.

Attributes
----------
scheme
    The URL scheme (e.g., 'abs', 's3', 'file').
netloc
    The network location/authority (e.g., 'myaccount', 'bucket-name').
"""


def get_url_key(url: Url) -> UrlKey:
    """
    Generate the UrlKey containing a url's scheme and authority/netloc that is used as
    the primary key in [ObjectStoreRegistry.map][obspec_stream.registry.ObjectStoreRegistry.map]

    Raises
    ------
    InvalidLocatorError
        If provided Url does not contain a scheme based on [urllib.parse.urlparse][]
    """
    parsed = urlparse(url)
    if not parsed.scheme:
        raise InvalidLocatorError(
            f"Urls are expected to contain a scheme (e.g., `file://` or `abs://`), received {url}"
        )
    return UrlKey(parsed.scheme, parsed.netloc)


class PathEntry(Generic[T]):
    """
    Construct a tree of path segments starting from the root

    For example the following paths:
    * `/` => store1
    * `/foo/bar` => store2

    Would be represented by:
    store: Some(store1)
    children:
      foo:
        store: None
        children:
          bar:
            store: Some(store2)
    """

    def __init__(self) -> None:
        self.store: T | None = None
        self.children: dict[str, PathEntry[T]] = {}

    def lookup(self, to_resolve: str) -> tuple[T, int] | None:
        """
        Lookup a store based on URL path

        Returns the store and its path segment depth
        """
        current = self
        ret = (self.store, 0) if self.store is not None else None
        depth = 0

        # Traverse the PathEntry tree to find the longest match
        for segment in path_segments(to_resolve):
            if segment in current.children:
                current = current.children[segment]
                depth += 1
                if current.store is not None:
                    ret = (current.store, depth)
            else:
                break

        return ret


class ObjectStoreRegistry(Generic[T]):
    """
    A generic registry that maps URLs to object stores.

    URLs are matched on scheme and authority, then on the longest prefix of
    whole path segments. The path handed back by
    [resolve][obspec_stream.registry.ObjectStoreRegistry.resolve] is relative to
    the registered URL, so a store registered for a container receives blob
    paths within that container.

    Examples
    --------

    ```python
    from obstore.store import MemoryStore
    from obspec_stream.registry import ObjectStoreRegistry

    store = MemoryStore()
    registry = ObjectStoreRegistry({"abs://myaccount/data": store})
    ret, path = registry.resolve("abs://myaccount/data/2024/file.nc")
    assert ret is store
    assert path == "2024/file.nc"
    ```
    """

    def __init__(self, stores: dict[Url, T] | None = None) -> None:
        """
        Create a new store registry.

        Parameters
        ----------
        stores
            Mapping of URLs to stores to register.
        """
        # Mapping from UrlKey (containing scheme and netlocs) to PathEntry
        self.map: dict[UrlKey, PathEntry[T]] = {}
        stores = stores or {}
        for url, store in stores.items():
            self.register(url, store)

    def register(self, url: Url, store: T) -> None:
        """
        Register a new store for the provided URL.

        If a store with the same URL existed before, it is replaced.
        """
        parsed = urlparse(url)

        key = get_url_key(url)

        if key not in self.map:
            self.map[key] = PathEntry()

        entry = self.map[key]

        # Navigate to the correct path in the tree
        for segment in path_segments(parsed.path):
            if segment not in entry.children:
                entry.children[segment] = PathEntry()
            entry = entry.children[segment]
        # Update the store
        entry.store = store

    def find(self, url: Url) -> tuple[T, Path] | None:
        """
        Like [resolve][obspec_stream.registry.ObjectStoreRegistry.resolve], but
        returns None when no store matches.
        """
        parsed = urlparse(url)
        key = UrlKey(parsed.scheme, parsed.netloc)

        if key not in self.map:
            return None
        result = self.map[key].lookup(parsed.path)
        if result is None:
            return None
        store, depth = result
        remaining = "/".join(list(path_segments(parsed.path))[depth:])
        prefix = str(getattr(store, "prefix", None) or "").strip("/")
        if prefix and (remaining == prefix or remaining.startswith(prefix + "/")):
            remaining = remaining.removeprefix(prefix).lstrip("/")
        return store, remaining

    def resolve(self, url: Url) -> tuple[T, Path]:
        """
        Resolve a URL within the [ObjectStoreRegistry][obspec_stream.registry.ObjectStoreRegistry].

        Returns
        -------
        T
            The store registered at the resolved url.
        Path
            The trailing portion of the url after the registered url. If the store
            has a `prefix` and the trailing portion starts with it, the prefix is
            removed as well.

        Raises
        ------
        UnsupportedSchemeError
            If no registered url has the same scheme and authority/netloc as `url`
            and a path that is a prefix of its path.
        """
        result = self.find(url)
        if result is None:
            raise UnsupportedSchemeError(
                f"Could not find an ObjectStore matching the url `{url}`"
            )
        return result


def path_segments(path: str) -> Iterator[str]:
    """
    Returns the non-empty segments of a path

    Note: We filter out empty segments unlike urllib.parse
    """
    return filter(lambda x: x, path.split("/"))


__all__ = ["ObjectStoreRegistry"]
