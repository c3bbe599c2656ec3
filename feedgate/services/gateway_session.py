"""
Gateway Session - Process-Level Owner of the Client Gateway

Owns the shared ClientHandle and wires every component around it.

Architecture:
    GatewaySession (Public API)
        ├── ClientHandle (the one live credential, passed explicitly)
        ├── CredentialManager + AuthGuard (refresh / cooldown retry)
        ├── TaskQueue (serialized mutating calls)
        ├── ObjectCache (read-through L1 + persistent store)
        ├── ReconciliationEngine (dedupe against the record store)
        └── EventChannel (typed notifications)

Lifecycle:
    1. start(): load credentials → fetch profile → register the agent →
       read last checked id → optionally populate the timeline → resolve
       ready, publish READY
    2. Operations: fetch_by_id, search_recent, fetch_home_timeline, submit
    3. close(): drain the queue, release the remote client
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack
from typing import Any

from feedgate.core.config.constants import META_LAST_CHECKED_ID, SearchMode, Stage
from feedgate.core.config.settings import Settings, get_settings
from feedgate.core.events import EventChannel, GatewayEventType
from feedgate.core.exceptions import NotReadyError, PermanentError
from feedgate.core.interfaces import (
    CredentialStore,
    ObjectStore,
    RecordStore,
    RemoteObjectStore,
    TokenRefresher,
)
from feedgate.core.logging.logger import get_logger, log_stage, setup_logging
from feedgate.core.resilience.auth_guard import AuthGuard, CredentialManager
from feedgate.core.resilience.task_queue import QueueConfig, TaskQueue
from feedgate.infrastructure.cache.object_cache import ObjectCache
from feedgate.infrastructure.cache.object_store import create_object_store
from feedgate.infrastructure.monitoring.metrics_collector import (
    MetricsCollector,
    get_metrics_collector,
)
from feedgate.infrastructure.remote.http_client import HttpRemoteObjectStore
from feedgate.infrastructure.remote.oauth import OAuth2TokenRefresher
from feedgate.models.credential import ClientHandle
from feedgate.models.fetched_object import FetchedObject
from feedgate.reconciliation.engine import IngestionReport, ReconciliationEngine

logger = get_logger(__name__)

RemoteFactory = Callable[[ClientHandle], RemoteObjectStore]


def _id_order(object_id: str) -> tuple[int, str]:
    # Numeric ids compare by length first, then lexically
    return (len(object_id), object_id)


class GatewaySession:
    """
    Resilient client session for the remote posts API.

    Usage:
        session = GatewaySession(
            credential_store=store,
            token_refresher=OAuth2TokenRefresher(),
            remote_factory=lambda handle: HttpRemoteObjectStore(handle),
            object_store=FileObjectStore(".feedgate/cache"),
            record_store=records,
        )
        async with session:
            post = await session.fetch_by_id("1234")
            await session.submit(lambda: remote.like("1234"), name="like")
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStore,
        token_refresher: TokenRefresher,
        remote_factory: RemoteFactory,
        object_store: ObjectStore,
        record_store: RecordStore,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._settings = settings or get_settings()
        self._metrics = metrics or get_metrics_collector()

        self.events = EventChannel()
        self.handle = ClientHandle(self._settings.auth.CREDENTIAL_IDENTITY)

        self.credentials = CredentialManager(
            credential_store,
            token_refresher,
            self.handle,
            events=self.events,
            metrics=self._metrics,
        )
        self.guard = AuthGuard(
            self.credentials,
            cooldown_seconds=self._settings.auth.cooldown_seconds,
            sleep=sleep,
            events=self.events,
            metrics=self._metrics,
        )
        self.queue = TaskQueue(
            QueueConfig.from_settings(self._settings),
            sleep=sleep,
            rng=rng,
            events=self.events,
            metrics=self._metrics,
        )
        self.cache = ObjectCache(
            object_store,
            l1_max_size=self._settings.cache.CACHE_L1_MAX_SIZE,
            metrics=self._metrics,
        )
        self.reconciler = ReconciliationEngine(
            record_store,
            self._settings.reconciliation.AGENT_ID,
            source=self._settings.reconciliation.RECORD_SOURCE,
            events=self.events,
            metrics=self._metrics,
        )
        self.remote = remote_factory(self.handle)

        self.profile: dict[str, Any] | None = None
        self.last_checked_id: str | None = None

        self._exit_stack = AsyncExitStack()
        self._ready: asyncio.Future | None = None
        self._start_task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "GatewaySession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ready_future(self) -> asyncio.Future:
        if self._ready is None:
            self._ready = asyncio.get_running_loop().create_future()
        return self._ready

    @property
    def is_ready(self) -> bool:
        return self._ready is not None and self._ready.done() and not self._ready.exception()

    async def start(self) -> dict[str, Any]:
        """
        Bring the session up. Concurrent and repeated calls share one start;
        after a failure the next call starts over.

        Returns:
            The authenticated profile

        Raises:
            Whatever stopped the session from becoming ready
        """
        if self._start_task is None or self._start_failed():
            if self._ready is not None and self._ready.done():
                # Fresh attempt after a failed start
                self._ready = None
            self._start_task = asyncio.create_task(self._start())
        return await asyncio.shield(self._start_task)

    def _start_failed(self) -> bool:
        task = self._start_task
        return task is not None and task.done() and (task.cancelled() or task.exception() is not None)

    async def _start(self) -> dict[str, Any]:
        ready = self._ready_future()
        log_stage(logger, Stage.SESSION_START, "Starting gateway session", identity=self.handle.identity)

        try:
            if hasattr(self.remote, "__aenter__"):
                await self._exit_stack.enter_async_context(self.remote)

            await self.credentials.load()
            profile = await self.guard.execute(self.remote.fetch_profile, name="fetch_profile")
            self.profile = profile
            await self.reconciler.register_agent(profile)

            self.last_checked_id = await self.cache.store.get_meta(META_LAST_CHECKED_ID)

            if self._settings.reconciliation.POPULATE_TIMELINE_ON_START:
                await self.populate_timeline()
        except Exception as e:
            log_stage(
                logger,
                Stage.SESSION_START,
                "Gateway session failed to start",
                level="error",
                error=str(e),
                error_type=type(e).__name__,
            )
            self.profile = None
            await self._exit_stack.aclose()
            self._metrics.record_error(type(e).__name__, "session")
            if not ready.done():
                ready.set_exception(e)
                # Mark retrieved; wait_ready() may never be called
                ready.exception()
            raise

        ready.set_result(profile)
        log_stage(
            logger,
            Stage.SESSION_READY,
            "Gateway session ready",
            username=profile.get("username"),
            last_checked_id=self.last_checked_id,
        )
        self.events.publish(
            GatewayEventType.READY,
            user_id=str(profile["id"]),
            username=profile.get("username"),
        )
        return profile

    async def wait_ready(self) -> dict[str, Any]:
        """Wait for start() to finish; re-raises its failure."""
        return await asyncio.shield(self._ready_future())

    def _require_profile(self) -> dict[str, Any]:
        if self.profile is None:
            raise NotReadyError(
                "Gateway session has not been started",
                details={"identity": self.handle.identity},
            ).with_suggestion("Await session.start() before issuing operations")
        return self.profile

    async def close(self) -> None:
        """Drain queued work, then release the remote client."""
        await self.queue.join()
        await self._exit_stack.aclose()
        log_stage(logger, Stage.SESSION_CLOSE, "Gateway session closed", queue=self.queue.stats())

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _map_items(self, items: list[Any], source: str) -> list[FetchedObject]:
        objects = []
        for item in items:
            try:
                objects.append(FetchedObject.from_wire(item))
            except (PermanentError, AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "Skipping malformed remote object",
                    source=source,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return objects

    async def fetch_by_id(self, object_id: str) -> FetchedObject:
        """Cached fetch; the remote store is asked at most once per id."""
        self._require_profile()

        async def fetch() -> FetchedObject:
            item = await self.guard.execute(
                lambda: self.remote.fetch_by_id(object_id), name="fetch_by_id"
            )
            return FetchedObject.from_wire(item)

        return await self.cache.get_or_fetch(object_id, fetch)

    async def search_recent(
        self, query: str, limit: int, mode: SearchMode = SearchMode.LATEST
    ) -> list[FetchedObject]:
        self._require_profile()
        items = await self.guard.execute(
            lambda: self.remote.search_recent(query, limit, mode), name="search_recent"
        )
        return self._map_items(items, "search_recent")

    async def fetch_home_timeline(self, count: int) -> list[FetchedObject]:
        self._require_profile()
        items = await self.guard.execute(
            lambda: self.remote.fetch_home_timeline(count), name="fetch_home_timeline"
        )
        return self._map_items(items, "fetch_home_timeline")

    async def submit(self, operation: Callable[[], Awaitable[Any]], name: str = "") -> Any:
        """
        Run a mutating remote call through the queue, guarded per attempt.

        Raises:
            GivenUpError: If the queue dead-lettered the call
        """
        self._require_profile()
        return await self.queue.enqueue(
            lambda: self.guard.execute(operation, name=name),
            name=name or getattr(operation, "__name__", "submit"),
        )

    async def populate_timeline(self) -> IngestionReport:
        """
        Fetch recent mentions, cache them and ingest the new ones.

        Persists the greatest seen object id as the last checked id.
        """
        profile = self._require_profile()
        limit = self._settings.reconciliation.TIMELINE_FETCH_LIMIT

        objects = await self.search_recent(f"@{profile.get('username')}", limit)
        for obj in objects:
            await self.cache.put(obj)

        report = await self.reconciler.ingest(objects)

        if objects:
            newest = max((obj.id for obj in objects), key=_id_order)
            if self.last_checked_id is None or _id_order(newest) > _id_order(self.last_checked_id):
                self.last_checked_id = newest
                await self.cache.store.set_meta(META_LAST_CHECKED_ID, newest)

        return report


async def create_gateway_session(
    credential_store: CredentialStore,
    record_store: RecordStore,
    *,
    settings: Settings | None = None,
    configure_logging: bool = True,
) -> GatewaySession:
    """
    Build a session wired to the HTTP bindings and the configured object store.

    Usage:
        session = await create_gateway_session(credential_store, record_store)
        async with session:
            mentions = await session.search_recent("@me", 20)
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.logging.LOG_LEVEL, settings.logging.LOG_FORMAT)

    remote = settings.remote
    refresher = OAuth2TokenRefresher(
        remote.REMOTE_TOKEN_URL,
        remote.REMOTE_CLIENT_ID,
        remote.REMOTE_CLIENT_SECRET,
        max_attempts=remote.REMOTE_REFRESH_MAX_ATTEMPTS,
        timeout=remote.REMOTE_TIMEOUT,
    )

    def remote_factory(handle: ClientHandle) -> HttpRemoteObjectStore:
        return HttpRemoteObjectStore(
            handle, base_url=remote.REMOTE_BASE_URL, timeout=remote.REMOTE_TIMEOUT
        )

    return GatewaySession(
        credential_store=credential_store,
        token_refresher=refresher,
        remote_factory=remote_factory,
        object_store=await create_object_store(settings),
        record_store=record_store,
        settings=settings,
    )
