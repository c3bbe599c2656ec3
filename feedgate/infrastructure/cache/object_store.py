"""
Persistent Object Stores

The L2 tier of the object cache. Two implementations of the ObjectStore
protocol:

RedisObjectStore:
    {prefix}:group:{partition}  hash, field = object id, value = JSON entry
    {prefix}:index              hash, field = object id, value = partition
    {prefix}:meta               hash, small named values

FileObjectStore:
    {root}/groups/{partition}/{id}.json   one JSON entry per object
    {root}/index/{id}                     partition name
    {root}/meta/{name}                    small named values

Entries are written before their index entry, so an indexed id always
resolves to a stored object.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote

import orjson

from feedgate.core.config.constants import (
    REDIS_KEY_GROUP_SUFFIX,
    REDIS_KEY_INDEX_SUFFIX,
    REDIS_KEY_META_SUFFIX,
    REDIS_KEY_OBJECTS,
    CacheBackend,
    Stage,
)
from feedgate.core.config.settings import Settings, get_settings
from feedgate.core.exceptions import CacheCorruptionError, CacheKeyError, ConfigurationError
from feedgate.core.interfaces.object_store import ObjectStore
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.infrastructure.cache.redis_client import RedisClient, get_redis_client
from feedgate.models.fetched_object import FetchedObject

logger = get_logger(__name__)


def _decode_entry(raw: bytes | str, object_id: str, location: str) -> FetchedObject:
    try:
        return FetchedObject.from_json(raw)
    except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise CacheCorruptionError(
            f"Stored entry for object '{object_id}' is unreadable",
            details={"object_id": object_id, "location": location, "error": str(e)},
        ) from e


class RedisObjectStore:
    """
    Object store backed by Redis hashes.

    Usage:
        client = RedisClient()
        await client.connect()
        store = RedisObjectStore(client)
    """

    def __init__(self, client: RedisClient, prefix: str = REDIS_KEY_OBJECTS):
        self._client = client
        self._prefix = prefix

    def group_key(self, partition: str) -> str:
        return f"{self._prefix}:{REDIS_KEY_GROUP_SUFFIX}:{partition}"

    @property
    def index_key(self) -> str:
        return f"{self._prefix}:{REDIS_KEY_INDEX_SUFFIX}"

    @property
    def meta_key(self) -> str:
        return f"{self._prefix}:{REDIS_KEY_META_SUFFIX}"

    async def locate(self, object_id: str) -> str | None:
        return await self._client.hget(self.index_key, object_id)

    async def load(self, object_id: str) -> FetchedObject | None:
        partition = await self.locate(object_id)
        if partition is None:
            return None

        group_key = self.group_key(partition)
        raw = await self._client.hget(group_key, object_id)
        if raw is None:
            logger.warning(
                "Index points at a missing entry",
                stage=Stage.REDIS.value,
                object_id=object_id,
                partition=partition,
            )
            return None

        return _decode_entry(raw, object_id, group_key)

    async def save(self, obj: FetchedObject) -> None:
        await self._client.hset(self.group_key(obj.partition), obj.id, obj.to_json().decode())
        await self._client.hset(self.index_key, obj.id, obj.partition)

    async def get_meta(self, name: str) -> str | None:
        return await self._client.hget(self.meta_key, name)

    async def set_meta(self, name: str, value: str) -> None:
        await self._client.hset(self.meta_key, name, value)

    async def health_check(self) -> dict[str, Any]:
        return await self._client.health_check()


class FileObjectStore:
    """
    Object store backed by a directory tree.

    Blocking file I/O runs in a worker thread. Writes go to a temporary
    file in the target directory and are moved into place with os.replace,
    so readers see either the old entry or the new one.
    """

    def __init__(self, root: str | os.PathLike):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def _segment(value: str) -> str:
        encoded = quote(value, safe="")
        if encoded in ("", ".", ".."):
            encoded = encoded.replace(".", "%2E") or "%00"
        return encoded

    def entry_path(self, partition: str, object_id: str) -> Path:
        return self._root / "groups" / self._segment(partition) / f"{self._segment(object_id)}.json"

    def index_path(self, object_id: str) -> Path:
        return self._root / "index" / self._segment(object_id)

    def meta_path(self, name: str) -> Path:
        return self._root / "meta" / self._segment(name)

    # -------------------------------------------------------------------------
    # Blocking helpers (run via asyncio.to_thread)
    # -------------------------------------------------------------------------

    @staticmethod
    def _read(path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheKeyError(
                f"Failed to read {path}: {e}",
                details={"path": str(path)},
            ) from e

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise CacheKeyError(
                f"Failed to write {path}: {e}",
                details={"path": str(path)},
            ) from e

    def _save_sync(self, obj: FetchedObject) -> None:
        self._atomic_write(self.entry_path(obj.partition, obj.id), obj.to_json())
        self._atomic_write(self.index_path(obj.id), obj.partition.encode())

    def _count_indexed(self) -> int:
        index_dir = self._root / "index"
        if not index_dir.is_dir():
            return 0
        return sum(1 for name in os.listdir(index_dir) if not name.startswith(".tmp-"))

    # -------------------------------------------------------------------------
    # ObjectStore protocol
    # -------------------------------------------------------------------------

    async def locate(self, object_id: str) -> str | None:
        raw = await asyncio.to_thread(self._read, self.index_path(object_id))
        return raw.decode() if raw is not None else None

    async def load(self, object_id: str) -> FetchedObject | None:
        partition = await self.locate(object_id)
        if partition is None:
            return None

        path = self.entry_path(partition, object_id)
        raw = await asyncio.to_thread(self._read, path)
        if raw is None:
            logger.warning("Index points at a missing entry", object_id=object_id, path=str(path))
            return None

        return _decode_entry(raw, object_id, str(path))

    async def save(self, obj: FetchedObject) -> None:
        await asyncio.to_thread(self._save_sync, obj)

    async def get_meta(self, name: str) -> str | None:
        raw = await asyncio.to_thread(self._read, self.meta_path(name))
        return raw.decode() if raw is not None else None

    async def set_meta(self, name: str, value: str) -> None:
        await asyncio.to_thread(self._atomic_write, self.meta_path(name), value.encode())

    async def health_check(self) -> dict[str, Any]:
        writable = await asyncio.to_thread(
            lambda: self._root.is_dir() and os.access(self._root, os.W_OK)
        )
        return {
            "status": "healthy" if writable else "unhealthy",
            "backend": "file",
            "root": str(self._root),
            "objects": await asyncio.to_thread(self._count_indexed),
        }


async def create_object_store(settings: Settings | None = None) -> ObjectStore:
    """
    Build the persistent store selected by CACHE_BACKEND.

    Raises:
        ConfigurationError: If the backend is unknown
        CacheConnectionError: If Redis is selected and unreachable
    """
    settings = settings or get_settings()
    cache_settings = settings.cache

    try:
        backend = CacheBackend(cache_settings.CACHE_BACKEND)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown cache backend '{cache_settings.CACHE_BACKEND}'",
            details={"allowed": [b.value for b in CacheBackend]},
        ) from e

    if backend == CacheBackend.REDIS:
        client = await get_redis_client()
        store: ObjectStore = RedisObjectStore(client, prefix=cache_settings.CACHE_KEY_PREFIX)
    else:
        root = Path(cache_settings.CACHE_DIRECTORY)
        await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
        store = FileObjectStore(root)

    log_stage(logger, Stage.CACHE_POPULATE, "Object store ready", backend=backend.value)
    return store
