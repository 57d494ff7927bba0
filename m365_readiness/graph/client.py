"""
Async Graph API client with pagination, throttling backoff, and structured errors.
The bearer token is read from the shared Session on every request, so a session
renewal takes effect without rebuilding the client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    GRAPH_BETA_VERSION,
    MAX_THROTTLE_RETRIES,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
)
from ..errors import DirectoryError, ErrorKind
from ..session import Session

logger = logging.getLogger("m365_readiness.graph")

THROTTLE_STATUSES = (429, 503, 504)

_STATUS_KINDS = {
    401: ErrorKind.AUTH,
    403: ErrorKind.PERMISSION,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.THROTTLED,
    503: ErrorKind.THROTTLED,
    504: ErrorKind.THROTTLED,
}


class GraphAPIError(DirectoryError):
    """Raised when Graph API returns an error status."""
    def __init__(self, status_code: int, message: str, url: str):
        self.url = url
        super().__init__(
            f"Graph API Error {status_code} for {url}: {message}",
            kind=_STATUS_KINDS.get(status_code, ErrorKind.OTHER),
            status_code=status_code,
        )


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Bearer token taken from the shared Session per request
      - Automatic pagination with @odata.nextLink
      - Exponential backoff on 429/503/504
      - v1.0 and beta endpoint support
    """

    def __init__(self, session: Session, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.session = session
        self._transport = transport
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            transport=self._transport,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str, beta: bool = False) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        version = GRAPH_BETA_VERSION if beta else GRAPH_API_VERSION
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{version}/{endpoint}"

    async def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
    ) -> dict:
        """Execute a single GET request with throttle handling."""
        url = self._build_url(endpoint, beta=beta)
        return await self._execute_with_backoff(url, params=params)

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
    ) -> list[dict]:
        """Fetch all pages of a paginated endpoint into a list."""
        items = []
        async for item in self.get_all_pages_stream(endpoint, params, beta):
            items.append(item)
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        beta: bool = False,
    ) -> AsyncGenerator[dict, None]:
        """Stream all pages of a paginated endpoint, one item at a time."""
        params = dict(params or {})
        params.setdefault("$top", str(DEFAULT_PAGE_SIZE))

        url: Optional[str] = self._build_url(endpoint, beta=beta)
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            data = await self._execute_with_backoff(url, params=params)

            for item in data.get("value", []):
                yield item

            # nextLink already carries the query
            url = data.get("@odata.nextLink")
            params = None
            pages += 1

        if url and pages >= MAX_PAGES_PER_ENDPOINT:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {endpoint}"
            )

    async def _execute_with_backoff(self, url: str, params: Optional[dict] = None) -> dict:
        """Execute a GET with exponential backoff on throttling."""
        backoff = INITIAL_BACKOFF_SECONDS

        for attempt in range(MAX_THROTTLE_RETRIES + 1):
            try:
                response = await self._execute_raw(url, params=params)
            except httpx.TransportError as e:
                logger.warning(f"Transport error on {url}: {type(e).__name__}: {e}")
                if attempt == MAX_THROTTLE_RETRIES:
                    raise DirectoryError(
                        f"Network failure for {url}: {e}", kind=ErrorKind.NETWORK
                    ) from e
                await asyncio.sleep(backoff)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
                continue

            self._request_count += 1

            if response.status_code == 200:
                if not response.content or not response.content.strip():
                    return {"value": []}
                try:
                    return response.json()
                except ValueError as e:
                    raise GraphAPIError(
                        response.status_code,
                        f"Non-JSON response body: {response.text[:200]}",
                        url,
                    ) from e

            if response.status_code == 204:
                return {}

            if response.status_code in THROTTLE_STATUSES and attempt < MAX_THROTTLE_RETRIES:
                self._throttle_count += 1
                retry_after = float(response.headers.get("Retry-After", backoff))
                wait_time = max(retry_after, backoff)
                logger.warning(
                    f"Throttled ({response.status_code}) on {url}. "
                    f"Retry {attempt + 1}/{MAX_THROTTLE_RETRIES} in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
                continue

            raise GraphAPIError(response.status_code, self._error_message(response), url)

        raise GraphAPIError(429, "Throttling persisted", url)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error_body = response.json() if response.content else {}
        except ValueError:
            return response.text[:200]
        if not isinstance(error_body, dict):
            return response.text[:200]
        return error_body.get("error", {}).get("message", response.text[:200])

    async def _execute_raw(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """Execute raw HTTP GET with the session's current token."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")
        headers = {"Authorization": f"Bearer {self.session.bearer_token}"}
        return await self._client.get(url, params=params, headers=headers)

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }
