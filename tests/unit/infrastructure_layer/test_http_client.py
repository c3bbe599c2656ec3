"""
Unit Tests for HttpRemoteObjectStore

Tests request shaping and failure mapping against an httpx MockTransport.
"""

import httpx
import pytest

from feedgate.core.exceptions import (
    CredentialExpiredError,
    MissingCredentialError,
    NotReadyError,
    PermanentError,
    RateLimitedError,
    TransientTransportError,
)
from feedgate.infrastructure.remote.http_client import HttpRemoteObjectStore, map_http_error
from feedgate.models.credential import ClientHandle, Credential, TokenPair
from tests.test_fixtures import make_wire_object

BASE_URL = "https://api.test/2"


def _handle(token: str | None = "tok-1") -> ClientHandle:
    handle = ClientHandle("bot")
    if token:
        handle.install(Credential(access_token=token, refresh_token="ref-1"))
    return handle


def _remote(handler, handle=None) -> HttpRemoteObjectStore:
    return HttpRemoteObjectStore(
        handle or _handle(), base_url=BASE_URL, transport=httpx.MockTransport(handler)
    )


def _status_handler(status: int, headers: dict | None = None):
    def handler(request):
        return httpx.Response(status, headers=headers, text="error body")
    return handler


@pytest.mark.unit
class TestHttpRemoteObjectStoreRequests:
    """Test suite for HttpRemoteObjectStore request handling."""

    @pytest.mark.asyncio
    async def test_fetch_profile_sends_bearer_token(self):
        """Test that the handle's token is sent on every request."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": {"id": "100", "username": "feedgate"}})

        async with _remote(handler) as remote:
            profile = await remote.fetch_profile()

        assert profile["username"] == "feedgate"
        assert seen[0].headers["Authorization"] == "Bearer tok-1"
        assert seen[0].url.path == "/2/users/me"

    @pytest.mark.asyncio
    async def test_token_read_at_request_time(self):
        """Test that a rotated credential is used without rebuilding the client."""
        handle = _handle("tok-1")
        tokens = []

        def handler(request):
            tokens.append(request.headers["Authorization"])
            return httpx.Response(200, json={"data": {"id": "100", "username": "feedgate"}})

        async with _remote(handler, handle) as remote:
            await remote.fetch_profile()
            handle.install(handle.credential.rotate(TokenPair("tok-2", "ref-2")))
            await remote.fetch_profile()

        assert tokens == ["Bearer tok-1", "Bearer tok-2"]

    @pytest.mark.asyncio
    async def test_search_recent_params_and_author_merge(self):
        """Test search parameters, page-size clamping and author merging."""
        seen = []
        items = [make_wire_object(str(i)) for i in range(12)]
        for item in items:
            item.pop("author")

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "data": items,
                    "includes": {"users": [{"id": "200", "username": "alice", "name": "Alice"}]},
                },
            )

        async with _remote(handler) as remote:
            results = await remote.search_recent("@feedgate", 5)

        params = seen[0].url.params
        assert params["query"] == "@feedgate"
        assert params["max_results"] == "10"
        assert params["sort_order"] == "recency"
        assert "author_id" in params["expansions"]

        assert len(results) == 5
        assert results[0]["author"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_search_top_mode(self):
        """Test that TOP search asks for relevancy ordering."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"meta": {"result_count": 0}})

        async with _remote(handler) as remote:
            assert await remote.search_recent("python", 500, "Top") == []

        assert seen[0].url.params["sort_order"] == "relevancy"
        assert seen[0].url.params["max_results"] == "100"

    @pytest.mark.asyncio
    async def test_fetch_by_id(self):
        """Test single object fetch with author expansion."""
        item = make_wire_object("1234")
        item.pop("author")

        def handler(request):
            assert request.url.path == "/2/tweets/1234"
            return httpx.Response(
                200, json={"data": item, "includes": {"users": [{"id": "200", "username": "alice"}]}}
            )

        async with _remote(handler) as remote:
            result = await remote.fetch_by_id("1234")

        assert result["id"] == "1234"
        assert result["author"]["username"] == "alice"

    @pytest.mark.asyncio
    async def test_fetch_by_id_not_found(self):
        """Test that an errors-only body is a permanent failure."""

        def handler(request):
            return httpx.Response(200, json={"errors": [{"title": "Not Found Error"}]})

        async with _remote(handler) as remote:
            with pytest.raises(PermanentError) as exc_info:
                await remote.fetch_by_id("999")

        assert exc_info.value.details["errors"] == [{"title": "Not Found Error"}]

    @pytest.mark.asyncio
    async def test_home_timeline_requires_profile(self):
        """Test that the timeline endpoint needs the authenticated user id."""
        async with _remote(_status_handler(200)) as remote:
            with pytest.raises(NotReadyError):
                await remote.fetch_home_timeline(20)

    @pytest.mark.asyncio
    async def test_home_timeline_after_profile(self):
        """Test that the timeline is read for the authenticated user."""
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path.endswith("/users/me"):
                return httpx.Response(200, json={"data": {"id": "100", "username": "feedgate"}})
            return httpx.Response(200, json={"data": [make_wire_object("1"), make_wire_object("2")]})

        async with _remote(handler) as remote:
            await remote.fetch_profile()
            items = await remote.fetch_home_timeline(1)

        assert paths[1] == "/2/users/100/timelines/reverse_chronological"
        assert [item["id"] for item in items] == ["1"]

    @pytest.mark.asyncio
    async def test_use_outside_context_rejected(self):
        """Test that calls before __aenter__ raise NotReadyError."""
        remote = _remote(_status_handler(200))
        with pytest.raises(NotReadyError):
            await remote.fetch_profile()

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self):
        """Test that a request without a credential is not sent."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        async with _remote(handler, _handle(None)) as remote:
            with pytest.raises(MissingCredentialError):
                await remote.fetch_profile()

        assert calls == []


@pytest.mark.unit
class TestHttpRemoteObjectStoreFailures:
    """Test suite for remote failure mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,expected",
        [
            (401, CredentialExpiredError),
            (429, RateLimitedError),
            (500, TransientTransportError),
            (503, TransientTransportError),
            (400, PermanentError),
            (404, PermanentError),
        ],
    )
    async def test_status_mapping(self, status, expected):
        """Test that HTTP statuses map onto the failure taxonomy."""
        async with _remote(_status_handler(status)) as remote:
            with pytest.raises(expected) as exc_info:
                await remote.fetch_profile()

        assert exc_info.value.status_code == status

    def test_rate_limit_reset_recorded(self):
        """Test that the platform reset header is kept in details."""
        response = httpx.Response(429, headers={"x-rate-limit-reset": "1717000000"})
        error = map_http_error(response, "/tweets/search/recent")

        assert isinstance(error, RateLimitedError)
        assert error.details["rate_limit_reset"] == "1717000000"

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self):
        """Test that connection failures become TransientTransportError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _remote(handler) as remote:
            with pytest.raises(TransientTransportError) as exc_info:
                await remote.fetch_profile()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_undecodable_body_is_permanent(self):
        """Test that a non-JSON body is a permanent failure."""

        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        async with _remote(handler) as remote:
            with pytest.raises(PermanentError):
                await remote.fetch_profile()
