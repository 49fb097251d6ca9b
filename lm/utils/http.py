"""
HTTP client utilities
"""

import asyncio
import json
import logging
from typing import Any, Dict, Literal, Optional

import aiohttp
from typing_extensions import Self

from ..errors import NetworkError
from ..types import APIResponse

_LOGGER = logging.getLogger(__name__)

REDACTED_HEADERS = ("Authorization", "X-Request-Signature", "X-Request-Proof")


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Copy of headers safe for logging"""
    return {
        name: "[REDACTED]" if name in REDACTED_HEADERS else value
        for name, value in headers.items()
    }


class HttpClient:
    """Thin aiohttp wrapper. Retries, if any, belong to the caller."""

    def __init__(
        self,
        timeout: int = 30,
        debug: bool = False,
    ):
        self.timeout = timeout
        self.debug = debug
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> Self:
        """Async context manager entry"""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit"""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session exists"""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session"""
        if self._session and not self._session.closed:
            await self._session.close()

    async def request(
        self,
        method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"],
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """
        Make a single HTTP request

        Args:
            method: HTTP method
            url: Full URL
            headers: Request headers
            body: JSON body

        Returns:
            API response (any status; callers decide what is an error)

        Raises:
            NetworkError: Connection failure or timeout
        """
        await self._ensure_session()

        headers = dict(headers or {})
        headers["Content-Type"] = "application/json"

        if self.debug:
            _LOGGER.debug("%s %s headers=%s", method, url, redact_headers(headers))

        try:
            return await self._make_request(method, url, headers, body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {url} failed: {e}", e)

    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
    ) -> APIResponse:
        """Make single HTTP request"""
        assert self._session is not None, "Session not initialized. Use async with or call _ensure_session()"
        async with self._session.request(
            method,
            url,
            headers=headers,
            data=json.dumps(body) if body is not None else None,
        ) as response:
            text = await response.text()

            try:
                data = json.loads(text) if text else None
            except json.JSONDecodeError:
                data = None

            _LOGGER.debug("%s %s -> %s", method, url, response.status)
            return APIResponse(status=response.status, text=text, data=data)
