"""
HTTP transport with bounded retries for the ShowStart API.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from .exceptions import TransportError, UpstreamStatusError
from .models import Credentials, TransportConfig
from .signing import PreparedRequest, SignedRequestBuilder

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def is_temporary(error: BaseException) -> bool:
    """Whether a transport-level failure is worth retrying."""
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return True
    return isinstance(error, httpx.NetworkError)


def create_http_client(config: TransportConfig) -> httpx.AsyncClient:
    """Create the pooled HTTP client used for upstream calls."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            config.request_timeout,
            connect=config.connect_timeout,
            read=config.read_timeout,
        ),
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_keepalive_connections,
            keepalive_expiry=config.keepalive_expiry,
        ),
    )


class ResilientTransport:
    """Sends signed requests, retrying transient failures with exponential backoff."""

    def __init__(
        self,
        builder: SignedRequestBuilder,
        config: Optional[TransportConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.builder = builder
        self.config = config or TransportConfig()
        self.client = client or create_http_client(self.config)
        self._sleep = sleep

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def post(self, path: str, body: str, credentials: Credentials) -> bytes:
        """POST ``body`` to ``path`` and return the raw response body.

        A new trace id and signature are produced for every attempt.

        Raises:
            RequestBuildError: signing or encryption failed (not retried).
            UpstreamStatusError: the upstream answered 4xx, or 5xx on every attempt.
            TransportError: the request could not be completed.
        """
        max_attempts = max(1, self.config.max_attempts)
        backoff = self.config.base_backoff
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            request = self.builder.build("POST", path, body, credentials)
            final = attempt == max_attempts

            try:
                response = await self._send(request)
            except (httpx.HTTPError, asyncio.TimeoutError) as e:
                cause = e if str(e) else type(e).__name__
                last_error = TransportError(f"POST {path} failed: {cause}")
                if final or not is_temporary(e):
                    raise last_error from e
                logger.warning(f"⚠️ Request to {path} failed (attempt {attempt}/{max_attempts}), retrying in {backoff:.1f}s: {cause}")
                await self._sleep(backoff)
                backoff *= 2
                continue

            if response.status_code >= 500:
                last_error = UpstreamStatusError(response.status_code, response.text, path=path)
                if final:
                    raise last_error
                logger.warning(f"⚠️ Upstream returned {response.status_code} for {path} (attempt {attempt}/{max_attempts}), retrying in {backoff:.1f}s")
                await self._sleep(backoff)
                backoff *= 2
                continue

            if response.status_code >= 400:
                raise UpstreamStatusError(response.status_code, response.text, path=path)

            return response.content

        raise last_error or TransportError(f"POST {path} failed")

    async def _send(self, request: PreparedRequest) -> httpx.Response:
        headers = {name: value.encode("utf-8") for name, value in request.headers.items()}
        return await asyncio.wait_for(
            self.client.request(
                request.method,
                request.url,
                content=request.body.encode("utf-8"),
                headers=headers,
            ),
            timeout=self.config.request_timeout,
        )
