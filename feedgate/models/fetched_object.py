"""
Fetched Object Model

A remote post as the gateway sees it: immutable, identified by ``id`` and
partitioned by ``group_id`` (the conversation it belongs to).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson

from feedgate.core.exceptions import PermanentError


@dataclass(frozen=True)
class ObjectReference:
    """A link from one object to another (replied_to, quoted, retweeted)."""

    kind: str
    object_id: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "object_id": self.object_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ObjectReference":
        return cls(kind=data["kind"], object_id=str(data["object_id"]))


@dataclass(frozen=True)
class FetchedObject:
    """
    Remote entity fetched through the gateway.

    Identity is ``id``. ``group_id`` may be absent for objects fetched from
    endpoints that do not expand the conversation; ``partition`` then falls
    back to the object's own id so every object has a cache partition.

    Serializable for the persistent cache via to_json/from_json.
    """

    id: str
    group_id: str | None
    author_id: str
    created_at: str
    text: str
    references: tuple[ObjectReference, ...] = ()
    in_reply_to_id: str | None = None
    author_username: str | None = None
    author_name: str | None = None
    permanent_url: str | None = None
    hashtags: tuple[str, ...] = ()
    mentions: tuple[str, ...] = ()
    urls: tuple[str, ...] = field(default=())

    @property
    def partition(self) -> str:
        """Cache partition key."""
        return self.group_id or self.id

    @property
    def timestamp(self) -> float:
        """Creation time as epoch seconds."""
        return _parse_timestamp(self.created_at).timestamp()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for cache storage."""
        return {
            "id": self.id,
            "group_id": self.group_id,
            "author_id": self.author_id,
            "created_at": self.created_at,
            "text": self.text,
            "references": [ref.to_dict() for ref in self.references],
            "in_reply_to_id": self.in_reply_to_id,
            "author_username": self.author_username,
            "author_name": self.author_name,
            "permanent_url": self.permanent_url,
            "hashtags": list(self.hashtags),
            "mentions": list(self.mentions),
            "urls": list(self.urls),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FetchedObject":
        """Deserialize from dictionary."""
        return cls(
            id=str(data["id"]),
            group_id=data.get("group_id"),
            author_id=str(data.get("author_id", "")),
            created_at=data["created_at"],
            text=data.get("text", ""),
            references=tuple(ObjectReference.from_dict(ref) for ref in data.get("references", [])),
            in_reply_to_id=data.get("in_reply_to_id"),
            author_username=data.get("author_username"),
            author_name=data.get("author_name"),
            permanent_url=data.get("permanent_url"),
            hashtags=tuple(data.get("hashtags", [])),
            mentions=tuple(data.get("mentions", [])),
            urls=tuple(data.get("urls", [])),
        )

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: bytes | str) -> "FetchedObject":
        return cls.from_dict(orjson.loads(raw))

    @classmethod
    def from_wire(cls, data: dict[str, Any], users: list[dict[str, Any]] | None = None) -> "FetchedObject":
        """
        Map a remote v2 post payload into a FetchedObject.

        Args:
            data: The post object (``data`` element of the response)
            users: The ``includes.users`` expansion, used for author names when
                the post carries no merged ``author`` entry

        Raises:
            PermanentError: If the payload has no id or an unparseable created_at
        """
        object_id = data.get("id")
        if not object_id:
            raise PermanentError("Wire object has no id", details={"keys": sorted(data)})
        object_id = str(object_id)

        created_at = data.get("created_at") or _utcnow_iso()
        try:
            _parse_timestamp(created_at)
        except (AttributeError, TypeError, ValueError) as e:
            raise PermanentError(
                "Wire object has an unparseable created_at",
                details={"id": object_id, "created_at": str(created_at)},
            ) from e

        author_id = str(data.get("author_id") or "")
        author = data.get("author") or next(
            (u for u in users or [] if str(u.get("id")) == author_id), {}
        )
        entities = data.get("entities") or {}

        references = tuple(
            ObjectReference(kind=ref.get("type", "unknown"), object_id=str(ref["id"]))
            for ref in data.get("referenced_tweets") or []
            if ref.get("id")
        )
        in_reply_to = next(
            (ref.object_id for ref in references if ref.kind == "replied_to"), None
        )

        return cls(
            id=object_id,
            group_id=data.get("conversation_id") or None,
            author_id=author_id,
            created_at=created_at,
            text=data.get("text", ""),
            references=references,
            in_reply_to_id=in_reply_to,
            author_username=author.get("username"),
            author_name=author.get("name"),
            permanent_url=f"https://twitter.com/i/web/status/{object_id}",
            hashtags=tuple(h.get("tag", "") for h in entities.get("hashtags") or []),
            mentions=tuple(m.get("username", "") for m in entities.get("mentions") or []),
            urls=tuple(
                u.get("expanded_url") or u.get("url", "") for u in entities.get("urls") or []
            ),
        )


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
