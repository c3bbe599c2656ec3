"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .fakes import (
    FakeCredentialStore,
    FakeRecordStore,
    FakeRemote,
    FakeTokenRefresher,
    GatedSleep,
    InMemoryRedis,
    RecordingSleep,
)
from .object_factory import make_object, make_wire_object

__all__ = [
    "InMemoryRedis",
    "FakeCredentialStore",
    "FakeTokenRefresher",
    "FakeRemote",
    "FakeRecordStore",
    "RecordingSleep",
    "GatedSleep",
    "make_object",
    "make_wire_object",
]
