"""HTTP adapter for marketplace API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import APIError

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Retries 5xx answers and transport
    errors with a short linear backoff.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 60,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 3,
        backoff: float = 0.5,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._max_retries = max(1, max_retries)
        self._backoff = backoff
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def post(self, endpoint: str, json: Dict) -> Any:
        return await self._request("POST", endpoint, json=json)

    async def get(self, endpoint: str) -> Any:
        return await self._request("GET", endpoint)

    async def _request(self, method: str, endpoint: str, json: Optional[Dict] = None) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        for attempt in range(self._max_retries):
            last_attempt = attempt == self._max_retries - 1
            try:
                response = await self._client.request(method, endpoint, json=json)
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                if last_attempt:
                    raise
                logger.warning(f"{method} {endpoint} failed ({exc}), retrying")
                await asyncio.sleep(self._backoff * (attempt + 1))
                continue

            if response.status_code >= 500 and not last_attempt:
                logger.warning(f"{method} {endpoint} answered {response.status_code}, retrying")
                await asyncio.sleep(self._backoff * (attempt + 1))
                continue

            if response.status_code >= 400:
                try:
                    error_detail = response.json()
                except Exception:
                    error_detail = response.text
                raise APIError(response.status_code, method, endpoint, error_detail)

            return response
