"""
Reconciliation Engine

Decides which freshly fetched objects are new relative to the record store,
and ingests only those.

Flow:
    reconcile(batch):
        1. Deduplicate by id (first occurrence wins, order kept)
        2. Derive each record key and the room of each distinct group
        3. One query_existing_keys(rooms) round-trip
        4. Keep the objects whose key is absent

    ingest(batch):
        1. reconcile(batch)
        2. Per candidate, right before writing:
           - record_exists(key) → skip (another writer got there first)
           - ensure_participant(author, room)
           - insert_record(record) → INSERTED | ALREADY_EXISTS
        3. Publish OBJECTS_INGESTED

Arriving at "already recorded" twice is the expected terminal state of a
race, never an error.
"""

from dataclasses import dataclass, field
from typing import Any

from feedgate.core.config.constants import DEFAULT_RECORD_SOURCE, Stage
from feedgate.core.events import EventChannel, GatewayEventType
from feedgate.core.exceptions import FeedgateError, ReconciliationError
from feedgate.core.interfaces import RecordStore
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.infrastructure.monitoring.metrics_collector import MetricsCollector
from feedgate.models.fetched_object import FetchedObject
from feedgate.models.records import (
    IngestionRecord,
    InsertOutcome,
    effective_group,
    record_key,
    room_key,
)

logger = get_logger(__name__)


@dataclass
class IngestionReport:
    """Outcome of one ingest() call."""

    inserted: list[FetchedObject] = field(default_factory=list)
    skipped: list[FetchedObject] = field(default_factory=list)
    candidates: int = 0

    @property
    def inserted_ids(self) -> list[str]:
        return [obj.id for obj in self.inserted]


class ReconciliationEngine:
    """
    Set difference between a fetched batch and the record store.

    Usage:
        engine = ReconciliationEngine(record_store, agent_id="agent-1")
        new_objects = await engine.reconcile(batch)
        report = await engine.ingest(batch)
    """

    def __init__(
        self,
        record_store: RecordStore,
        agent_id: str,
        *,
        self_user_id: str | None = None,
        source: str = DEFAULT_RECORD_SOURCE,
        events: EventChannel | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._store = record_store
        self._agent_id = agent_id
        self.self_user_id = self_user_id
        self._source = source
        self._events = events
        self._metrics = metrics

    @property
    def agent_id(self) -> str:
        return self._agent_id

    async def register_agent(self, profile: dict[str, Any]) -> None:
        """
        Register the gateway account as the agent's own user.

        Objects authored by ``profile["id"]`` are attributed to the agent
        from then on.

        Raises:
            ReconciliationError: If the record store fails
        """
        self.self_user_id = str(profile["id"])
        try:
            await self._store.ensure_agent(
                self._agent_id, profile.get("username"), profile.get("name"), self._source
            )
        except FeedgateError as e:
            self._record_error(e)
            raise
        except Exception as e:
            self._record_error(e)
            raise ReconciliationError.from_exception(
                e, message="Failed to register agent", agent_id=self._agent_id
            ) from e

        logger.debug("Agent registered", agent_id=self._agent_id, user_id=self.self_user_id)

    def key_for(self, obj: FetchedObject) -> str:
        return record_key(obj.id, self._agent_id)

    def room_for(self, obj: FetchedObject) -> str:
        return room_key(effective_group(obj, self._agent_id), self._agent_id)

    async def reconcile(self, batch: list[FetchedObject]) -> list[FetchedObject]:
        """
        Return the members of ``batch`` not yet recorded.

        Raises:
            ReconciliationError: If the record store query fails
        """
        unique: dict[str, FetchedObject] = {}
        for obj in batch:
            unique.setdefault(obj.id, obj)

        if not unique:
            return []

        rooms = sorted({self.room_for(obj) for obj in unique.values()})
        try:
            existing = await self._store.query_existing_keys(rooms)
        except FeedgateError as e:
            self._record_error(e)
            raise
        except Exception as e:
            self._record_error(e)
            raise ReconciliationError.from_exception(
                e, message="Record store query failed", rooms=len(rooms)
            ) from e

        fresh = [obj for obj in unique.values() if self.key_for(obj) not in existing]

        log_stage(
            logger,
            Stage.RECONCILE_QUERY,
            "Batch reconciled",
            batch_size=len(batch),
            unique=len(unique),
            rooms=len(rooms),
            existing=len(unique) - len(fresh),
            fresh=len(fresh),
        )
        return fresh

    async def ingest(self, batch: list[FetchedObject]) -> IngestionReport:
        """
        Reconcile ``batch`` and insert every new object.

        Raises:
            ReconciliationError: If the record store fails
        """
        candidates = await self.reconcile(batch)
        report = IngestionReport(candidates=len(candidates))

        for obj in candidates:
            try:
                record = IngestionRecord.from_object(
                    obj, self._agent_id, self_user_id=self.self_user_id, source=self._source
                )
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(
                    "Skipping object that cannot be recorded",
                    object_id=obj.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                report.skipped.append(obj)
                continue
            try:
                if await self._store.record_exists(record.key):
                    report.skipped.append(obj)
                    continue

                await self._store.ensure_participant(
                    record.user_id,
                    record.room_id,
                    obj.author_username,
                    obj.author_name,
                    self._source,
                )
                outcome = await self._store.insert_record(record)
            except FeedgateError as e:
                self._record_error(e)
                raise
            except Exception as e:
                self._record_error(e)
                raise ReconciliationError.from_exception(
                    e, message=f"Failed to ingest object '{obj.id}'", object_id=obj.id
                ) from e

            if outcome == InsertOutcome.ALREADY_EXISTS:
                report.skipped.append(obj)
            else:
                report.inserted.append(obj)

        log_stage(
            logger,
            Stage.RECONCILE_INGEST,
            "Batch ingested",
            candidates=report.candidates,
            inserted=len(report.inserted),
            skipped=len(report.skipped),
        )
        if self._metrics:
            self._metrics.record_reconciliation("inserted", len(report.inserted))
            self._metrics.record_reconciliation("skipped", len(report.skipped))
        if self._events:
            self._events.publish(
                GatewayEventType.OBJECTS_INGESTED,
                inserted=report.inserted_ids,
                skipped=[obj.id for obj in report.skipped],
            )

        return report

    def _record_error(self, error: Exception) -> None:
        if self._metrics:
            self._metrics.record_error(type(error).__name__, "reconcile")
