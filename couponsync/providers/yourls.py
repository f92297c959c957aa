"""YOURLS link shortener.

Shortening is best-effort: every failure is logged and reported as ``None`` so
callers fall back to the long URL.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from couponsync.errors import ProviderError
from couponsync.providers.base import ProviderClient
from couponsync.utils.text import slugify

logger = logging.getLogger(__name__)


class YourlsClient(ProviderClient):
    name = "yourls"

    def resolve_base_url(self) -> str:
        return self.settings.yourls_url or ""

    def is_configured(self) -> bool:
        s = self.settings
        return bool(s.yourls_url and s.yourls_username and s.yourls_password)

    def build_request(self, method: str, body: Mapping[str, Any] | None) -> dict[str, Any]:
        form = dict(body or {})
        form["username"] = self.settings.yourls_username
        form["password"] = self.settings.yourls_password
        return {"data": form}

    async def create_short_link(self, url: str, keyword: str = "") -> str | None:
        if not url:
            return None
        if not self.is_configured():
            self.credentials_missing("create_short_link")
            return None
        form = {"action": "shorturl", "url": url, "format": "json"}
        if keyword:
            form["keyword"] = slugify(keyword)
        try:
            payload = await self.call("", "POST", form)
        except ProviderError as exc:
            logger.warning("Short link for %s not created: %s", keyword or "offer", exc)
            return None
        if isinstance(payload, dict) and payload.get("shorturl"):
            return str(payload["shorturl"])
        logger.warning("YOURLS response carried no shorturl for %s", keyword or "offer")
        return None

    async def test_connection(self) -> bool:
        if not self.is_configured():
            self.credentials_missing("test_connection")
            return False
        return await self.ping("", "POST", {"action": "stats", "format": "json"})
