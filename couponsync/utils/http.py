"""Single HTTP call construction."""

from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import urlsplit, urlunsplit

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "CouponSync/0.1"


class HttpClient:
    """One request per call; retry decisions belong to :class:`RetryPolicy`."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        session: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = session or httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT})
        self._owns_session = session is None

    async def close(self) -> None:
        if self._owns_session:
            await self._session.aclose()

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if not endpoint:
            return self.base_url
        return self.base_url.rstrip("/") + "/" + endpoint.lstrip("/")

    async def send(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return await self._session.request(
            method,
            self.url_for(endpoint),
            json=json,
            data=data,
            headers=dict(headers or {}),
            timeout=self.timeout,
        )


def redact(url: str) -> str:
    """Drop the query string so tokens and credentials never reach the log."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
