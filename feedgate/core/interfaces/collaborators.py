"""
External Collaborator Protocols

The gateway depends on four collaborators it does not implement the storage
engines of: the credential store, the token endpoint, the remote object
store and the durable record store.

Architectural Decision: Protocol-based abstraction
- Collaborators are injected into GatewaySession
- Tests substitute in-memory fakes
- Type-safe interface with runtime checking
"""

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from feedgate.core.config.constants import SearchMode
from feedgate.models.credential import TokenPair
from feedgate.models.records import IngestionRecord, InsertOutcome


@runtime_checkable
class CredentialStore(Protocol):
    """
    Durable home of the access/refresh pair for each identity.

    ``persist`` must store both tokens atomically.
    """

    async def get_access_token(self, identity: str) -> str | None:
        ...

    async def get_refresh_token(self, identity: str) -> str | None:
        ...

    async def persist(self, identity: str, access_token: str, refresh_token: str) -> None:
        ...


@runtime_checkable
class TokenRefresher(Protocol):
    """Exchanges a refresh token for a new access/refresh pair."""

    async def refresh(self, refresh_token: str) -> TokenPair:
        ...


@runtime_checkable
class RemoteObjectStore(Protocol):
    """
    The rate-limited remote API.

    Every method performs exactly one remote call and may raise
    CredentialExpiredError, RateLimitedError, TransientTransportError or
    PermanentError. Objects are returned in wire shape; each post dict
    may carry an ``author`` entry with the expanded user.
    """

    async def fetch_profile(self) -> dict[str, Any]:
        """Return the authenticated account: id, username, name, description."""
        ...

    async def fetch_by_id(self, object_id: str) -> dict[str, Any]:
        ...

    async def search_recent(
        self, query: str, limit: int, mode: SearchMode = SearchMode.LATEST
    ) -> list[dict[str, Any]]:
        ...

    async def fetch_home_timeline(self, count: int) -> list[dict[str, Any]]:
        ...


@runtime_checkable
class RecordStore(Protocol):
    """
    Durable record store that ingested objects end up in.

    Records are only queried for existence and inserted; the gateway never
    updates or deletes them.
    """

    async def query_existing_keys(self, room_ids: Iterable[str]) -> set[str]:
        """Return the keys of all records in the given rooms."""
        ...

    async def record_exists(self, key: str) -> bool:
        ...

    async def ensure_participant(
        self,
        user_id: str,
        room_id: str,
        username: str | None,
        name: str | None,
        source: str,
    ) -> None:
        ...

    async def ensure_agent(
        self,
        agent_id: str,
        username: str | None,
        name: str | None,
        source: str,
    ) -> None:
        """Register the gateway account itself as a known user."""
        ...

    async def insert_record(self, record: IngestionRecord) -> InsertOutcome:
        ...
