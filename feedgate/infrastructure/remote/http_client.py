"""
HTTP Remote Object Store

Thin httpx binding of the RemoteObjectStore protocol for the v2 posts API.

HTTPX CLIENT LIFECYCLE:
----------------------
The AsyncClient is created in __aenter__ and closed in __aexit__, so the
connection pool lives exactly as long as the owning session.

FAILURE MAPPING:
---------------
    401                         → CredentialExpiredError
    429                         → RateLimitedError
    5xx, transport errors       → TransientTransportError
    other 4xx, undecodable body → PermanentError

Every method performs exactly one HTTP request and reads the bearer token
from the ClientHandle at request time, so a refresh between two calls is
picked up without rebuilding the client.
"""

from typing import Any

import httpx

from feedgate.core.config.constants import (
    EXPANSIONS,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
    OBJECT_FIELDS,
    USER_FIELDS,
    SearchMode,
    Stage,
)
from feedgate.core.config.settings import get_settings
from feedgate.core.exceptions import (
    CredentialExpiredError,
    MissingCredentialError,
    NotReadyError,
    PermanentError,
    RateLimitedError,
    TransientTransportError,
)
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.models.credential import ClientHandle

logger = get_logger(__name__)

# Platform bounds for max_results on search and timeline endpoints
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

_SORT_ORDER = {
    SearchMode.LATEST: "recency",
    SearchMode.TOP: "relevancy",
}


def _object_params() -> dict[str, str]:
    return {
        "tweet.fields": ",".join(OBJECT_FIELDS),
        "user.fields": ",".join(USER_FIELDS),
        "expansions": ",".join(EXPANSIONS),
    }


def _clamp_page_size(count: int) -> int:
    return max(MIN_PAGE_SIZE, min(count, MAX_PAGE_SIZE))


def _merge_authors(items: list[dict[str, Any]], includes: dict[str, Any]) -> list[dict[str, Any]]:
    users = {str(u.get("id")): u for u in includes.get("users") or [] if isinstance(u, dict)}
    merged = []
    for item in items:
        if isinstance(item, dict):
            author = users.get(str(item.get("author_id")))
            if author is not None:
                item = {**item, "author": author}
        merged.append(item)
    return merged


def map_http_error(response: httpx.Response, endpoint: str) -> Exception:
    """Translate a non-2xx response into the remote failure taxonomy."""
    status = response.status_code
    details = {"endpoint": endpoint, "body": response.text[:500] if response.text else None}

    if status == HTTP_STATUS_UNAUTHORIZED:
        return CredentialExpiredError("Access token rejected", status_code=status, details=details)
    if status == HTTP_STATUS_TOO_MANY_REQUESTS:
        reset = response.headers.get("x-rate-limit-reset")
        if reset:
            details["rate_limit_reset"] = reset
        return RateLimitedError("Remote API rate limit reached", status_code=status, details=details)
    if status >= 500:
        return TransientTransportError(f"Remote API returned HTTP {status}", status_code=status, details=details)
    return PermanentError(f"Remote API returned HTTP {status}", status_code=status, details=details)


class HttpRemoteObjectStore:
    """
    RemoteObjectStore over HTTP.

    Usage:
        async with HttpRemoteObjectStore(handle) as remote:
            profile = await remote.fetch_profile()
            items = await remote.search_recent("@feedgate", 20)
    """

    def __init__(
        self,
        handle: ClientHandle,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        remote_settings = get_settings().remote
        self._handle = handle
        self._base_url = (base_url or remote_settings.REMOTE_BASE_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else remote_settings.REMOTE_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._user_id: str | None = None

    async def __aenter__(self) -> "HttpRemoteObjectStore":
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if self._client is None:
            raise NotReadyError(
                "HttpRemoteObjectStore used outside its async context",
                details={"endpoint": path},
            )

        token = self._handle.access_token
        if not token:
            raise MissingCredentialError(
                "No access token installed on the client handle",
                details={"identity": self._handle.identity},
            )

        try:
            response = await self._client.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TransportError as e:
            log_stage(
                logger,
                Stage.REMOTE_HTTP,
                "Remote request failed",
                level="warning",
                endpoint=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransientTransportError(
                f"Transport error calling {path}: {e}",
                details={"endpoint": path, "original_error": type(e).__name__},
            ) from e

        if response.is_error:
            raise map_http_error(response, path)

        try:
            body = response.json()
        except ValueError as e:
            raise PermanentError(
                f"Undecodable response from {path}",
                status_code=response.status_code,
                details={"endpoint": path},
            ) from e

        if not isinstance(body, dict):
            raise PermanentError(f"Unexpected response shape from {path}", details={"endpoint": path})

        log_stage(logger, Stage.REMOTE_HTTP, "Remote request succeeded", level="debug", endpoint=path)
        return body

    async def fetch_profile(self) -> dict[str, Any]:
        body = await self._get("/users/me", {"user.fields": "id,username,name,description"})
        profile = body.get("data")
        if not isinstance(profile, dict) or not profile.get("id"):
            raise PermanentError("Profile response has no user", details={"endpoint": "/users/me"})

        self._user_id = str(profile["id"])
        return profile

    async def fetch_by_id(self, object_id: str) -> dict[str, Any]:
        path = f"/tweets/{object_id}"
        body = await self._get(path, _object_params())
        item = body.get("data")
        if not isinstance(item, dict):
            # The platform reports unknown ids as 200 with an errors array
            raise PermanentError(
                f"Object '{object_id}' not found",
                details={"endpoint": path, "errors": body.get("errors")},
            )
        return _merge_authors([item], body.get("includes") or {})[0]

    async def search_recent(
        self, query: str, limit: int, mode: SearchMode = SearchMode.LATEST
    ) -> list[dict[str, Any]]:
        params = {
            **_object_params(),
            "query": query,
            "max_results": _clamp_page_size(limit),
            "sort_order": _SORT_ORDER[SearchMode(mode)],
        }
        body = await self._get("/tweets/search/recent", params)
        items = body.get("data") or []
        return _merge_authors(items, body.get("includes") or {})[:limit]

    async def fetch_home_timeline(self, count: int) -> list[dict[str, Any]]:
        if self._user_id is None:
            raise NotReadyError(
                "Home timeline needs the authenticated profile",
                details={"endpoint": "/users/{id}/timelines/reverse_chronological"},
            ).with_suggestion("Call fetch_profile() first")

        path = f"/users/{self._user_id}/timelines/reverse_chronological"
        params = {**_object_params(), "max_results": _clamp_page_size(count)}
        body = await self._get(path, params)
        items = body.get("data") or []
        return _merge_authors(items, body.get("includes") or {})[:count]
