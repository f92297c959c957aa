"""Awin affiliate network."""

from __future__ import annotations

import logging
from typing import Any

from couponsync.errors import ParseFailure
from couponsync.providers.base import ProviderClient

logger = logging.getLogger(__name__)

AWIN_BASE_URL = "https://api.awin.com/"
PAGE_SIZE = 150
MAX_PAGES = 10


class AwinClient(ProviderClient):
    name = "awin"
    base_url = AWIN_BASE_URL

    @property
    def publisher_id(self) -> str | None:
        return self.settings.awin_publisher_id

    def is_configured(self) -> bool:
        return bool(self.settings.awin_token and self.settings.awin_publisher_id)

    def authenticate(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.awin_token}"}

    def promotions_query(self, page: int) -> dict[str, Any]:
        return {
            "filters": {
                "exclusiveOnly": False,
                "membership": "joined",
                "regionCodes": [self.settings.region],
                "status": "active",
                "type": "all",
                "updatedSince": "2000-01-01",
            },
            "pagination": {"page": page, "pageSize": PAGE_SIZE},
        }

    async def list_promotions(self) -> list[dict[str, Any]]:
        if not self.is_configured():
            self.credentials_missing("list_promotions")
            return []
        cache_key = f"awin:promotions:{self.publisher_id}:{self.settings.region}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached
        promotions: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            payload = await self.call(f"publisher/{self.publisher_id}/promotions/", "POST", self.promotions_query(page))
            if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
                raise ParseFailure("Awin promotions response missing data", provider=self.name)
            batch = payload["data"]
            promotions.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
        else:
            logger.warning("Awin promotions truncated at %d pages", MAX_PAGES)
        if self.cache is not None:
            self.cache.put(cache_key, promotions)
        return promotions

    async def get_programme_details(self, advertiser_id: int | str) -> dict[str, Any] | None:
        if not self.is_configured():
            self.credentials_missing("get_programme_details")
            return None
        payload = await self.call(
            f"publishers/{self.publisher_id}/programmedetails?advertiserId={advertiser_id}",
            cache_key=f"awin:programme:{self.publisher_id}:{advertiser_id}",
        )
        if not isinstance(payload, dict):
            return None
        return payload.get("programmeInfo")

    async def test_connection(self) -> bool:
        if not self.is_configured():
            self.credentials_missing("test_connection")
            return False
        return await self.ping(f"publishers/{self.publisher_id}/programmes")
