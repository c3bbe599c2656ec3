"""
OAuth2 Token Refresher

Exchanges a refresh token for a new access/refresh pair at the platform's
token endpoint (grant_type=refresh_token).

Transport errors against the endpoint are retried with exponential backoff
and jitter (tenacity). HTTP error responses are not retried: a rejected
refresh token will be rejected again.
"""

from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from feedgate.core.config.constants import Stage
from feedgate.core.config.settings import get_settings
from feedgate.core.exceptions import ConfigurationError, RefreshFailedError
from feedgate.core.logging.logger import get_logger, log_stage
from feedgate.models.credential import TokenPair

logger = get_logger(__name__)


class OAuth2TokenRefresher:
    """
    TokenRefresher over HTTP.

    Usage:
        refresher = OAuth2TokenRefresher()
        pair = await refresher.refresh(stored_refresh_token)
    """

    def __init__(
        self,
        token_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        *,
        max_attempts: int | None = None,
        retry_base_delay: float = 0.5,
        retry_max_delay: float = 5.0,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        remote_settings = get_settings().remote
        self._token_url = token_url or remote_settings.REMOTE_TOKEN_URL
        self._client_id = client_id or remote_settings.REMOTE_CLIENT_ID
        self._client_secret = client_secret or remote_settings.REMOTE_CLIENT_SECRET
        self._max_attempts = max_attempts or remote_settings.REMOTE_REFRESH_MAX_ATTEMPTS
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._timeout = timeout if timeout is not None else remote_settings.REMOTE_TIMEOUT
        self._transport = transport

        if not self._client_id:
            raise ConfigurationError(
                "OAuth2 client id is not configured",
                details={"setting": "REMOTE_CLIENT_ID"},
            )

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token.

        Raises:
            RefreshFailedError: On a non-2xx response, a malformed body, or
                transport errors on every attempt
        """
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._client_id,
        }
        auth = httpx.BasicAuth(self._client_id, self._client_secret) if self._client_secret else None

        log_stage(logger, Stage.AUTH_REFRESH, "Requesting token refresh", token_url=self._token_url)

        try:
            response = await self._post_with_retry(form, auth)
        except httpx.TransportError as e:
            raise RefreshFailedError.from_exception(
                e,
                message=f"Token endpoint unreachable after {self._max_attempts} attempts",
                token_url=self._token_url,
            ) from e

        if response.is_error:
            raise RefreshFailedError(
                f"Token endpoint returned HTTP {response.status_code}",
                details={
                    "status_code": response.status_code,
                    "token_url": self._token_url,
                    "body": response.text[:500] if response.text else None,
                },
            )

        try:
            body: dict[str, Any] = response.json()
            access_token = body["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise RefreshFailedError.from_exception(
                e,
                message="Token endpoint response has no access_token",
                token_url=self._token_url,
            ) from e

        # Without offline.access rotation the platform keeps the old refresh token
        return TokenPair(
            access_token=access_token,
            refresh_token=body.get("refresh_token") or refresh_token,
        )

    async def _post_with_retry(self, form: dict[str, str], auth: httpx.Auth | None) -> httpx.Response:
        """
        POST the refresh form, retrying transport errors only.

        RETRIED: httpx.TransportError (connect errors, timeouts, dropped connections)
        NOT RETRIED: any HTTP response, including 5xx
        """

        @retry(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential_jitter(
                initial=self._retry_base_delay,
                max=self._retry_max_delay,
                jitter=self._retry_base_delay,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        async def _do_request() -> httpx.Response:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout), transport=self._transport
            ) as client:
                return await client.post(self._token_url, data=form, auth=auth)

        return await _do_request()
