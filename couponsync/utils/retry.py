"""Attempt budget, backoff and 429 handling around :class:`HttpClient`."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Mapping

import httpx

from couponsync.errors import (
    ClientRejected,
    ParseFailure,
    ProviderError,
    RateLimited,
    ServerFailure,
    TransportFailure,
)
from couponsync.utils.http import HttpClient, redact
from couponsync.utils.rate_limit import rate_limit_delay

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

Sleep = Callable[[float], Awaitable[Any]]


def backoff_delay(attempt: int) -> float:
    return float(2**attempt)


class RetryPolicy:
    def __init__(
        self,
        client: HttpClient,
        *,
        provider: str = "",
        attempts: int = MAX_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.provider = provider
        self.attempts = attempts
        self._sleep = sleep

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        target = redact(self.client.url_for(endpoint))
        failure: ProviderError | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                response = await self.client.send(endpoint, method, json=json, data=data, headers=headers)
            except httpx.TransportError as exc:
                logger.warning(
                    "%s %s %s attempt %d/%d: transport error %s",
                    self.provider, method, target, attempt, self.attempts, exc,
                )
                failure = TransportFailure(
                    f"{method} {target} failed: {exc}",
                    provider=self.provider, endpoint=target, attempts=attempt,
                )
                await self._pause(attempt, backoff_delay(attempt))
                continue

            status = response.status_code
            if 200 <= status < 300:
                logger.info(
                    "%s %s %s attempt %d/%d: %d",
                    self.provider, method, target, attempt, self.attempts, status,
                )
                try:
                    return response.json()
                except ValueError as exc:
                    logger.error("%s %s %s returned malformed JSON: %s", self.provider, method, target, exc)
                    raise ParseFailure(
                        f"{method} {target} returned malformed JSON",
                        provider=self.provider, endpoint=target, status=status, attempts=attempt,
                    ) from exc

            if status == 429:
                delay = rate_limit_delay(response.headers.get("Retry-After"), attempt)
                logger.warning(
                    "%s %s %s attempt %d/%d: rate limited, waiting %.0fs",
                    self.provider, method, target, attempt, self.attempts, delay,
                )
                failure = RateLimited(
                    f"{method} {target} rate limited",
                    provider=self.provider, endpoint=target, status=status, attempts=attempt,
                )
                await self._pause(attempt, delay)
                continue

            if 400 <= status < 500:
                logger.error(
                    "%s %s %s attempt %d/%d: rejected with %d",
                    self.provider, method, target, attempt, self.attempts, status,
                )
                raise ClientRejected(
                    f"{method} {target} rejected with {status}",
                    provider=self.provider, endpoint=target, status=status, attempts=attempt,
                )

            logger.warning(
                "%s %s %s attempt %d/%d: server error %d",
                self.provider, method, target, attempt, self.attempts, status,
            )
            failure = ServerFailure(
                f"{method} {target} failed with {status}",
                provider=self.provider, endpoint=target, status=status, attempts=attempt,
            )
            await self._pause(attempt, backoff_delay(attempt))

        if failure is None:
            raise ProviderError(f"{method} {target} was not attempted", provider=self.provider, endpoint=target)
        logger.error("%s %s %s gave up after %d attempts", self.provider, method, target, self.attempts)
        raise failure

    async def _pause(self, attempt: int, delay: float) -> None:
        if attempt < self.attempts:
            await self._sleep(delay)
