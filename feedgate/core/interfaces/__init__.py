"""
Interfaces Module

Protocol definitions for everything the gateway talks to but does not own.
"""

from feedgate.core.interfaces.collaborators import (
    CredentialStore,
    RecordStore,
    RemoteObjectStore,
    TokenRefresher,
)
from feedgate.core.interfaces.object_store import ObjectStore

__all__ = [
    "CredentialStore",
    "TokenRefresher",
    "RemoteObjectStore",
    "RecordStore",
    "ObjectStore",
]
