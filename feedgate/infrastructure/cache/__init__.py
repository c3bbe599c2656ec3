"""
Cache Module

Two-tier object cache: an in-memory LRU in front of a persistent store.
"""

from .object_cache import L1Storage, ObjectCache
from .object_store import FileObjectStore, RedisObjectStore, create_object_store
from .redis_client import RedisClient, close_redis_client, get_redis_client

__all__ = [
    "ObjectCache",
    "L1Storage",
    "FileObjectStore",
    "RedisObjectStore",
    "create_object_store",
    "RedisClient",
    "get_redis_client",
    "close_redis_client",
]
