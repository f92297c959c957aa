"""Shared provider client on top of the retry core.

Each provider supplies three hooks: ``authenticate`` (auth headers),
``build_request`` (how the body travels) and ``parse_response`` (unwrapping
the provider envelope). Everything else, including retries, backoff and the
read-through cache, lives here.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Any, Mapping

import httpx

from couponsync.config import Settings
from couponsync.errors import CredentialMissing, ProviderError
from couponsync.utils.cache import DEFAULT_TTL, ResponseCache
from couponsync.utils.http import HttpClient
from couponsync.utils.retry import RetryPolicy, Sleep

logger = logging.getLogger(__name__)


class ProviderClient(abc.ABC):
    name = "provider"
    base_url = ""

    def __init__(
        self,
        settings: Settings,
        *,
        session: httpx.AsyncClient | None = None,
        cache: ResponseCache | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.http = HttpClient(self.resolve_base_url(), timeout=settings.api_timeout, session=session)
        self.retry = RetryPolicy(self.http, provider=self.name, sleep=sleep)

    async def close(self) -> None:
        await self.http.close()

    def resolve_base_url(self) -> str:
        return self.base_url

    @abc.abstractmethod
    def is_configured(self) -> bool:
        """Whether the credentials this provider needs are present."""

    def authenticate(self) -> dict[str, str]:
        return {}

    def build_request(self, method: str, body: Mapping[str, Any] | None) -> dict[str, Any]:
        if body is None:
            return {}
        return {"json": dict(body)}

    def parse_response(self, payload: Any) -> Any:
        return payload

    @abc.abstractmethod
    async def test_connection(self) -> bool:
        """Cheapest authenticated call; False on any provider failure."""

    def credentials_missing(self, operation: str) -> CredentialMissing:
        error = CredentialMissing(f"{self.name} is not configured", provider=self.name, endpoint=operation)
        logger.error("Configuration error: %s credentials missing; skipping %s", self.name, operation)
        return error

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Mapping[str, Any] | None = None,
        *,
        cache_key: str | None = None,
        ttl: float = DEFAULT_TTL,
    ) -> Any:
        if cache_key and self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("%s cache hit for %s", self.name, cache_key)
                return cached
        headers = {"Accept": "application/json", **self.authenticate()}
        payload = await self.retry.request(endpoint, method, headers=headers, **self.build_request(method, body))
        result = self.parse_response(payload)
        if cache_key and self.cache is not None:
            self.cache.put(cache_key, result, ttl)
        return result

    async def ping(self, endpoint: str, method: str = "GET", body: Mapping[str, Any] | None = None) -> bool:
        try:
            await self.call(endpoint, method, body)
        except ProviderError as exc:
            logger.warning("%s connection test failed: %s", self.name, exc)
            return False
        return True
