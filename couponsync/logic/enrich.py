"""Generated brand content and coupon titles."""

from __future__ import annotations

import logging
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from couponsync.config import Prompts
from couponsync.db.catalog import CatalogStore
from couponsync.errors import ProviderError
from couponsync.ingest.models import Brand
from couponsync.providers.openai import OpenAIClient
from couponsync.utils.text import bullet_phrases, hashtags_for, strip_quotes

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "Special Offer"

PROMPT_ENV = Environment(undefined=StrictUndefined, autoescape=False)
HTML_ENV = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

WHY_WE_LOVE_TEMPLATE = HTML_ENV.from_string(
    "<ul>\n"
    "{% for phrase in phrases %}\n"
    "<li>{{ phrase }}</li>\n"
    "{% endfor %}\n"
    "</ul>"
)


def render_prompt(template: str, **context: Any) -> str:
    return PROMPT_ENV.from_string(template).render(**context).strip()


def brand_context(name: str, sector: str | None = None) -> str:
    lines = [f"Brand Name: {name}"]
    if sector:
        lines.append(f"Sector: {sector}")
    return "\n".join(lines)


def format_why_we_love(content: str) -> str | None:
    phrases = bullet_phrases(content)
    if not phrases:
        return None
    return WHY_WE_LOVE_TEMPLATE.render(phrases=phrases)


class BrandEnricher:
    def __init__(self, catalog: CatalogStore, openai: OpenAIClient, prompts: Prompts) -> None:
        self.catalog = catalog
        self.openai = openai
        self.prompts = prompts

    async def _generate(
        self, purpose: str, template: str, max_tokens: int, *, brand_name: str, context: str, description: str
    ) -> str | None:
        try:
            prompt = render_prompt(template, brand_name=brand_name, context=context, description=description)
        except TemplateError as exc:
            logger.warning("Prompt for %s could not be rendered: %s", purpose, exc)
            return None
        try:
            return await self.openai.generate_text(prompt, max_tokens=max_tokens)
        except ProviderError as exc:
            logger.warning("Generating %s failed: %s", purpose, exc)
            return None

    async def enrich_brand(self, brand: Brand, *, sector: str | None = None) -> list[str]:
        """Fill missing description, why-we-love and hashtags; returns the fields written."""
        missing = brand.missing_content()
        if not missing:
            return []
        variables = {
            "brand_name": brand.name,
            "context": brand_context(brand.name, sector),
            "description": brand.description or "",
        }
        fields: dict[str, Any] = {}
        if "description" in missing:
            description = await self._generate(
                f"description for {brand.name}", self.prompts.brand_description, 1000, **variables
            )
            if description:
                fields["description"] = description
        if "why_we_love" in missing:
            content = await self._generate(f"why-we-love for {brand.name}", self.prompts.why_we_love, 500, **variables)
            formatted = format_why_we_love(content) if content else None
            if content and formatted is None:
                logger.warning("No bullet phrases in why-we-love for %s", brand.name)
            if formatted:
                fields["why_we_love"] = formatted
        if "hashtags" in missing:
            fields["hashtags"] = hashtags_for(brand.name)
        self.catalog.update_brand(brand.id, **fields)
        if fields:
            logger.info("Enriched brand %s: %s", brand.name, ", ".join(sorted(fields)))
        return sorted(fields)

    async def coupon_title(self, description: str, brand_name: str = "") -> str:
        if not description.strip():
            logger.warning("Coupon description empty; using fallback title")
            return FALLBACK_TITLE
        title = await self._generate(
            "coupon title",
            self.prompts.coupon_title,
            120,
            brand_name=brand_name,
            context=brand_context(brand_name) if brand_name else "",
            description=description,
        )
        title = strip_quotes(title) if title else ""
        if not title:
            logger.warning("Using fallback title for %r", description[:100])
            return FALLBACK_TITLE
        return title
