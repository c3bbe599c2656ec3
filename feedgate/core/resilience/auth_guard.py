"""
Authentication Guard - Transparent Credential Refresh and Rate-Limit Absorption

Wraps any single remote call so callers never see token expiry or throttling.

MECHANISM OF ACTION:
-------------------
1.  **Execute**: Invoke the operation. Success returns immediately.

2.  **Credential expired** (CredentialExpiredError, HTTP 401, or a message
    naming an expired/invalid/revoked token):
    - Refresh through CredentialManager (single-flight, generation-checked)
    - Retry the operation exactly once; a second failure propagates as-is

3.  **Rate limited** (RateLimitedError, HTTP 429):
    - Suspend for the fixed platform window plus a margin
    - Retry the operation exactly once
    - Concurrent throttled callers wait on one shared cooldown

4.  **Anything else** propagates unchanged.

REFRESH PROTOCOL:
----------------
read refresh token → exchange via TokenRefresher → persist both tokens →
swap the ClientHandle credential → publish TOKEN_REFRESHED

Only one refresh runs at a time. A caller whose failed call used an older
credential generation than the current one skips the refresh entirely:
someone else already rotated the pair.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from feedgate.core.config.constants import (
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
    TOKEN_ERROR_MARKERS,
    Stage,
)
from feedgate.core.config.settings import get_settings
from feedgate.core.events import EventChannel, GatewayEventType
from feedgate.core.exceptions import (
    CredentialExpiredError,
    MissingCredentialError,
    RateLimitedError,
    RefreshFailedError,
)
from feedgate.core.interfaces import CredentialStore, TokenRefresher
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.infrastructure.monitoring.metrics_collector import MetricsCollector
from feedgate.models.credential import ClientHandle, Credential

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class FailureKind(str, Enum):
    """How the guard treats a failed remote call."""

    CREDENTIAL_EXPIRED = "credential_expired"
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value

    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def classify_failure(error: BaseException) -> FailureKind:
    """
    Classify a remote call failure.

    Examples:
        CredentialExpiredError(...)                 → CREDENTIAL_EXPIRED
        error with status_code == 401               → CREDENTIAL_EXPIRED
        Exception("access token expired")           → CREDENTIAL_EXPIRED
        RateLimitedError(...) / status_code == 429  → RATE_LIMITED
        anything else                               → OTHER
    """
    if isinstance(error, CredentialExpiredError):
        return FailureKind.CREDENTIAL_EXPIRED
    if isinstance(error, RateLimitedError):
        return FailureKind.RATE_LIMITED

    status = _status_code(error)
    if status == HTTP_STATUS_UNAUTHORIZED:
        return FailureKind.CREDENTIAL_EXPIRED
    if status == HTTP_STATUS_TOO_MANY_REQUESTS:
        return FailureKind.RATE_LIMITED

    message = str(error).lower()
    if "token" in message and any(marker in message for marker in TOKEN_ERROR_MARKERS):
        return FailureKind.CREDENTIAL_EXPIRED

    return FailureKind.OTHER


class CredentialManager:
    """
    Loads and rotates the shared credential held by a ClientHandle.

    Usage:
        manager = CredentialManager(store, refresher, handle)
        await manager.load()
        ...
        await manager.refresh(observed_generation=handle.generation)
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: TokenRefresher,
        handle: ClientHandle,
        *,
        events: EventChannel | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._store = store
        self._refresher = refresher
        self._handle = handle
        self._events = events
        self._metrics = metrics
        self._refresh_task: asyncio.Task | None = None
        self._refresh_count = 0

    @property
    def handle(self) -> ClientHandle:
        return self._handle

    @property
    def generation(self) -> int:
        return self._handle.generation

    @property
    def refresh_count(self) -> int:
        """Refreshes that actually reached the token endpoint."""
        return self._refresh_count

    async def load(self) -> Credential:
        """
        Install the stored credential into the handle.

        Raises:
            MissingCredentialError: If the store has no access token
        """
        identity = self._handle.identity
        access_token = await self._store.get_access_token(identity)
        if not access_token:
            raise MissingCredentialError(
                f"No access token stored for identity '{identity}'",
                details={"identity": identity},
            ).with_suggestion("Authorize the account and persist its tokens first")

        refresh_token = await self._store.get_refresh_token(identity)
        credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            generation=self._handle.generation + 1,
        )
        self._handle.install(credential)

        logger.info("Credential loaded", identity=identity, generation=credential.generation)
        return credential

    async def refresh(self, observed_generation: int) -> Credential:
        """
        Rotate the credential unless someone already did.

        Args:
            observed_generation: Generation the failed call was made with

        Returns:
            The live credential after the refresh

        Raises:
            RefreshFailedError: If any step of the refresh protocol fails
        """
        current = self._handle.credential
        if current is not None and current.generation > observed_generation:
            logger.debug(
                "Credential already rotated, skipping refresh",
                observed_generation=observed_generation,
                generation=current.generation,
            )
            return current

        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._run_refresh())

        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> Credential:
        identity = self._handle.identity
        log_stage(logger, Stage.AUTH_REFRESH, "Refreshing credential", identity=identity)

        try:
            refresh_token = await self._store.get_refresh_token(identity)
            if not refresh_token:
                raise MissingCredentialError(
                    f"No refresh token stored for identity '{identity}'",
                    details={"identity": identity},
                )

            self._refresh_count += 1
            pair = await self._refresher.refresh(refresh_token)
            await self._store.persist(identity, pair.access_token, pair.refresh_token)

            current = self._handle.credential
            credential = current.rotate(pair) if current else Credential(
                access_token=pair.access_token,
                refresh_token=pair.refresh_token,
            )
            self._handle.install(credential)
        except RefreshFailedError as e:
            self._record_refresh("failure", e)
            raise
        except Exception as e:
            self._record_refresh("failure", e)
            logger.error(
                "Credential refresh failed",
                identity=identity,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RefreshFailedError.from_exception(
                e, message=f"Credential refresh failed for identity '{identity}'", identity=identity
            ) from e
        finally:
            self._refresh_task = None

        self._record_refresh("success")
        log_stage(
            logger,
            Stage.AUTH_REFRESH,
            "Credential refreshed",
            identity=identity,
            generation=credential.generation,
        )
        if self._events:
            self._events.publish(
                GatewayEventType.TOKEN_REFRESHED,
                identity=identity,
                generation=credential.generation,
            )
        return credential

    def _record_refresh(self, status: str, error: BaseException | None = None) -> None:
        if self._metrics:
            self._metrics.record_credential_refresh(status)
            if error is not None:
                self._metrics.record_error(type(error).__name__, "auth")


class AuthGuard:
    """
    Executes remote operations with one refresh-or-cooldown retry.

    Usage:
        guard = AuthGuard(credentials)
        profile = await guard.execute(remote.fetch_profile, name="fetch_profile")
    """

    def __init__(
        self,
        credentials: CredentialManager,
        *,
        cooldown_seconds: float | None = None,
        sleep: SleepFunc = asyncio.sleep,
        events: EventChannel | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._credentials = credentials
        self._cooldown_seconds = (
            cooldown_seconds if cooldown_seconds is not None else get_settings().auth.cooldown_seconds
        )
        self._sleep = sleep
        self._events = events
        self._metrics = metrics
        self._cooldown_task: asyncio.Task | None = None

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_seconds

    @property
    def cooling_down(self) -> bool:
        return self._cooldown_task is not None and not self._cooldown_task.done()

    async def execute(self, operation: Callable[[], Awaitable[Any]], *, name: str = "") -> Any:
        """
        Run an operation that performs exactly one remote call.

        Raises:
            RefreshFailedError: If the credential could not be refreshed
            Exception: The retry's failure, or any unhandled failure, unchanged
        """
        generation = self._credentials.generation

        try:
            return await operation()
        except Exception as e:
            kind = classify_failure(e)
            if kind == FailureKind.OTHER:
                raise

            log_stage(
                logger,
                Stage.AUTH_EXECUTE,
                "Remote call failed, recovering",
                level="warning",
                operation=name,
                failure=kind.value,
                error_type=type(e).__name__,
            )
            if kind == FailureKind.CREDENTIAL_EXPIRED:
                await self._credentials.refresh(generation)
            else:
                await self._cooldown(name)

        return await operation()

    async def _cooldown(self, name: str) -> None:
        if not self.cooling_down:
            self._cooldown_task = asyncio.ensure_future(self._sleep(self._cooldown_seconds))
            log_stage(
                logger,
                Stage.AUTH_COOLDOWN,
                "Rate limited, cooling down",
                level="warning",
                operation=name,
                cooldown_seconds=self._cooldown_seconds,
            )
            if self._events:
                self._events.publish(
                    GatewayEventType.RATE_LIMITED,
                    operation=name,
                    cooldown_seconds=self._cooldown_seconds,
                )
            if self._metrics:
                self._metrics.record_rate_limit_cooldown()
        else:
            logger.debug("Joining active cooldown", operation=name)

        await asyncio.shield(self._cooldown_task)
