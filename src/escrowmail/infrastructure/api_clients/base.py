"""
Shared async HTTP client for the external services (custody, directory,
email provider, remote transfer API).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Non-2xx response. `payload` holds the decoded JSON body when there is one."""

    def __init__(self, status: int, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(f"API error {status}: {message}")
        self.status = status
        self.message = message
        self.payload = payload or {}


class APIClient:
    """Async JSON-over-HTTP client with bearer auth and a minimal request interval."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: int = 30,
        request_interval: float = 0.0,
        user_agent: str = "EscrowMail/0.1",
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = ClientTimeout(total=timeout)
        self.request_interval = request_interval
        self.user_agent = user_agent
        self._last_request_time = 0.0
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self._session

    async def _wait_for_rate_limit(self):
        if self.request_interval <= 0:
            return
        now = time.time()
        elapsed = now - self._last_request_time
        if elapsed < self.request_interval:
            await asyncio.sleep(self.request_interval - elapsed)
        self._last_request_time = time.time()

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allow_404: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Send one request and decode the JSON body.

        With allow_404=True a 404 returns None instead of raising. A 429 is
        retried once after a short pause.
        """
        await self._wait_for_rate_limit()

        url = f"{self.base_url}/{endpoint.lstrip('/')}" if endpoint else self.base_url
        session = await self._get_session()
        try:
            for attempt in (1, 2):
                async with session.request(method, url, params=params, json=json_data, headers=headers) as response:
                    if response.status == 429 and attempt == 1:
                        logger.warning(f"Rate limit exceeded for {url}; retrying once")
                        await asyncio.sleep(5)
                        continue
                    if response.status == 404 and allow_404:
                        return None
                    if 200 <= response.status < 300:
                        if response.status == 204:
                            return {}
                        return await response.json(content_type=None) or {}
                    raise await self._error(response)
        except asyncio.TimeoutError:
            logger.error(f"Request timeout: {method} {url}")
            raise
        except aiohttp.ClientError as e:
            logger.error(f"Request failed: {method} {url} - {e}")
            raise
        raise APIError(429, "rate limit still exceeded")

    @staticmethod
    async def _error(response: aiohttp.ClientResponse) -> APIError:
        text = await response.text()
        payload: Dict[str, Any] = {}
        try:
            decoded = await response.json(content_type=None)
            if isinstance(decoded, dict):
                payload = decoded
        except ValueError:
            pass
        message = str(payload.get("error") or payload.get("message") or text[:200])
        logger.error(f"API error {response.status}: {message}")
        return APIError(response.status, message, payload)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Optional[Dict[str, Any]]:
        return await self.request("GET", endpoint, params=params, **kwargs)

    async def post(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None, **kwargs) -> Optional[Dict[str, Any]]:
        return await self.request("POST", endpoint, json_data=json_data, **kwargs)

    async def patch(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None, **kwargs) -> Optional[Dict[str, Any]]:
        return await self.request("PATCH", endpoint, json_data=json_data, **kwargs)

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
