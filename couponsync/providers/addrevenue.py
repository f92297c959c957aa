"""AddRevenue affiliate network."""

from __future__ import annotations

from typing import Any

from couponsync.errors import ParseFailure
from couponsync.providers.base import ProviderClient

ADDREVENUE_BASE_URL = "https://addrevenue.io/api/v2/"


class AddRevenueClient(ProviderClient):
    name = "addrevenue"
    base_url = ADDREVENUE_BASE_URL

    @property
    def channel_id(self) -> str:
        return self.settings.addrevenue_channel_id

    def is_configured(self) -> bool:
        return bool(self.settings.addrevenue_token)

    def authenticate(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.addrevenue_token}"}

    def parse_response(self, payload: Any) -> Any:
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise ParseFailure("AddRevenue response missing results", provider=self.name)
        return payload["results"]

    async def list_advertisers(self) -> list[dict[str, Any]]:
        if not self.is_configured():
            self.credentials_missing("list_advertisers")
            return []
        return await self.call(
            f"advertisers?channelId={self.channel_id}",
            cache_key=f"addrevenue:advertisers:{self.channel_id}",
        )

    async def list_campaigns(self) -> list[dict[str, Any]]:
        if not self.is_configured():
            self.credentials_missing("list_campaigns")
            return []
        return await self.call(
            f"campaigns?channelId={self.channel_id}",
            cache_key=f"addrevenue:campaigns:{self.channel_id}",
        )

    async def test_connection(self) -> bool:
        if not self.is_configured():
            self.credentials_missing("test_connection")
            return False
        return await self.ping(f"advertisers?channelId={self.channel_id}&limit=1")
