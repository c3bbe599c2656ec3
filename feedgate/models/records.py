"""
Ingestion Record Model

Records handed to the external record store, and the deterministic keys
that make reconciliation possible. Keys are uuid5 values derived from the
object id (or group id) and the owning agent, so the same object fetched
twice maps to the same record.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from feedgate.core.config.constants import FALLBACK_GROUP_PREFIX, RECORD_KEY_NAMESPACE
from feedgate.models.fetched_object import FetchedObject


class InsertOutcome(str, Enum):
    """Result of RecordStore.insert_record."""

    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


def derive_key(value: str) -> str:
    """Deterministic uuid5 string for an arbitrary value."""
    return str(uuid.uuid5(RECORD_KEY_NAMESPACE, value))


def record_key(object_id: str, agent_id: str) -> str:
    return derive_key(f"{object_id}-{agent_id}")


def fallback_group(agent_id: str) -> str:
    """Group assigned to objects without one; distinct per agent."""
    return f"{FALLBACK_GROUP_PREFIX}{agent_id}"


def effective_group(obj: FetchedObject, agent_id: str) -> str:
    return obj.group_id or fallback_group(agent_id)


def room_key(group_id: str, agent_id: str) -> str:
    return derive_key(f"{group_id}-{agent_id}")


@dataclass(frozen=True)
class IngestionRecord:
    """
    A record describing one fetched object, as stored by the record store.

    Attributes:
        key: record_key(object.id, agent_id)
        room_id: room_key(effective group, agent_id)
        user_id: agent_id when the author is the gateway's own account,
            otherwise derive_key(author_id)
        agent_id: Owning agent
        content: text, url, source and in_reply_to (a record key) of the object
        created_at_ms: Creation time in epoch milliseconds
    """

    key: str
    room_id: str
    user_id: str
    agent_id: str
    content: dict[str, Any] = field(default_factory=dict)
    created_at_ms: int = 0

    @classmethod
    def from_object(
        cls,
        obj: FetchedObject,
        agent_id: str,
        self_user_id: str | None = None,
        source: str = "twitter",
    ) -> "IngestionRecord":
        user_id = agent_id if self_user_id and obj.author_id == self_user_id else derive_key(obj.author_id)
        content: dict[str, Any] = {
            "text": obj.text,
            "url": obj.permanent_url,
            "source": source,
        }
        if obj.in_reply_to_id:
            content["in_reply_to"] = record_key(obj.in_reply_to_id, agent_id)

        return cls(
            key=record_key(obj.id, agent_id),
            room_id=room_key(effective_group(obj, agent_id), agent_id),
            user_id=user_id,
            agent_id=agent_id,
            content=content,
            created_at_ms=int(obj.timestamp * 1000),
        )
