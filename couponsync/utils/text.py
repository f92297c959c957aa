"""Text helpers for brand names, slugs and generated content."""

from __future__ import annotations

import re
import unicodedata

COUNTRY_SUFFIXES = ("EU", "UK", "US", "CA", "AU", "NZ", "SE", "NO", "DK", "FI")
COUNTRY_SUFFIX_RE = re.compile(r"\s+(?:" + "|".join(COUNTRY_SUFFIXES) + r")\s*$", re.IGNORECASE)
BULLET_RE = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s*(.+?)\s*$")
HASHTAG_SUFFIXES = ("discountcodes", "savings", "sales", "bargains", "vouchers", "codes")


def slugify(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "brand"


def name_key(name: str) -> str:
    """Case-insensitive lookup key for brand names."""
    return unicodedata.normalize("NFC", name.strip()).casefold()


def clean_brand_name(name: str) -> str:
    cleaned = name.strip()
    while True:
        stripped = COUNTRY_SUFFIX_RE.sub("", cleaned).strip()
        if stripped == cleaned or not stripped:
            return cleaned
        cleaned = stripped


def hashtags_for(brand_name: str) -> list[str]:
    slug = slugify(brand_name)
    return [f"#{slug}-{suffix}" for suffix in HASHTAG_SUFFIXES]


def bullet_phrases(content: str, limit: int = 3) -> list[str]:
    """Bulleted lines from generated text, title-cased, at most ``limit``."""
    phrases = []
    for line in content.splitlines():
        match = BULLET_RE.match(line)
        if not match:
            continue
        phrase = match.group(1).strip().strip('"').strip()
        if phrase:
            phrases.append(phrase.title())
        if len(phrases) == limit:
            break
    return phrases


def strip_quotes(value: str) -> str:
    return value.replace('"', "").replace("'", "").strip()
