"""
Object Store Protocol

This module defines the protocol for the persistent tier of the object
cache, enabling dependency injection and testability.

Implementations:
- RedisObjectStore: hashes per partition plus an id → partition index
- FileObjectStore: one directory per partition, one file per object

Both keep an explicit id → partition index so a lookup by id never scans
partitions.
"""

from typing import Any, Protocol, runtime_checkable

from feedgate.models.fetched_object import FetchedObject


@runtime_checkable
class ObjectStore(Protocol):
    """
    Protocol defining the persistent object store interface.

    Usage:
        async def warm(store: ObjectStore, object_id: str) -> FetchedObject | None:
            return await store.load(object_id)
    """

    async def load(self, object_id: str) -> FetchedObject | None:
        """
        Load an object by id via the partition index.

        Returns:
            The object, or None if it was never stored

        Raises:
            CacheKeyError: If the backend operation fails
            CacheCorruptionError: If the stored entry cannot be decoded
        """
        ...

    async def save(self, obj: FetchedObject) -> None:
        """
        Persist an object under its partition and index it.

        Must be durable when the coroutine returns.
        """
        ...

    async def locate(self, object_id: str) -> str | None:
        """Return the partition an object is stored under, or None."""
        ...

    async def get_meta(self, name: str) -> str | None:
        """Read a small named value (e.g. the last checked object id)."""
        ...

    async def set_meta(self, name: str, value: str) -> None:
        ...

    async def health_check(self) -> dict[str, Any]:
        ...
