"""
Data Models

Immutable value types shared by the queue, guard, cache and reconciliation layers.
"""

from feedgate.models.credential import ClientHandle, Credential, TokenPair
from feedgate.models.fetched_object import FetchedObject, ObjectReference
from feedgate.models.records import (
    IngestionRecord,
    InsertOutcome,
    derive_key,
    effective_group,
    fallback_group,
    record_key,
    room_key,
)

__all__ = [
    "ClientHandle",
    "Credential",
    "TokenPair",
    "FetchedObject",
    "ObjectReference",
    "IngestionRecord",
    "InsertOutcome",
    "derive_key",
    "effective_group",
    "fallback_group",
    "record_key",
    "room_key",
]
