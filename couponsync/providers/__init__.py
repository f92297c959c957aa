"""Provider clients and the shared bundle the sync pipeline works with."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import httpx

from couponsync.config import Settings
from couponsync.providers.addrevenue import AddRevenueClient
from couponsync.providers.awin import AwinClient
from couponsync.providers.base import ProviderClient
from couponsync.providers.openai import OpenAIClient
from couponsync.providers.yourls import YourlsClient
from couponsync.utils.cache import ResponseCache
from couponsync.utils.retry import Sleep

PROVIDER_NAMES = ("addrevenue", "awin", "openai", "yourls")


@dataclass(slots=True)
class ProviderClients:
    addrevenue: AddRevenueClient
    awin: AwinClient
    openai: OpenAIClient
    yourls: YourlsClient

    def get(self, name: str) -> ProviderClient:
        if name not in PROVIDER_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    async def close(self) -> None:
        for name in PROVIDER_NAMES:
            await self.get(name).close()


def build_clients(
    settings: Settings,
    *,
    cache: ResponseCache | None = None,
    session: httpx.AsyncClient | None = None,
    sleep: Sleep = asyncio.sleep,
) -> ProviderClients:
    kwargs = {"session": session, "cache": cache, "sleep": sleep}
    return ProviderClients(
        addrevenue=AddRevenueClient(settings, **kwargs),
        awin=AwinClient(settings, **kwargs),
        openai=OpenAIClient(settings, **kwargs),
        yourls=YourlsClient(settings, **kwargs),
    )
