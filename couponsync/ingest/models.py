"""Catalog and offer data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Mapping


@dataclass(slots=True)
class BrandMeta:
    image_url: str | None = None
    affiliate_link: str | None = None
    site_link: str | None = None
    popular: bool | None = None
    sector: str | None = None


@dataclass(slots=True)
class NormalizedOffer:
    brand_name: str
    code: str
    terms: str
    expires_at: datetime | None
    source: str
    source_id: str
    description: str = ""
    url: str = ""
    valid_from: datetime | None = None
    brand_meta: BrandMeta = field(default_factory=BrandMeta)

    @property
    def coupon_type(self) -> str:
        return "Code" if self.code else "Sale"


@dataclass(slots=True)
class Brand:
    id: int
    name: str
    slug: str
    description: str | None = None
    why_we_love: str | None = None
    hashtags: list[str] = field(default_factory=list)
    featured_image: str | None = None
    site_link: str | None = None
    affiliate_link: str | None = None
    popular: bool = False
    source: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Brand":
        return cls(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            description=row["description"],
            why_we_love=row["why_we_love"],
            hashtags=list(row["hashtags"] or []),
            featured_image=row["featured_image"],
            site_link=row["site_link"],
            affiliate_link=row["affiliate_link"],
            popular=bool(row["popular"]),
            source=row["source"],
            created_at=row["created_at"],
        )

    def missing_content(self) -> list[str]:
        issues = []
        if not (self.description or "").strip():
            issues.append("description")
        if not self.hashtags:
            issues.append("hashtags")
        if not (self.why_we_love or "").strip():
            issues.append("why_we_love")
        return issues


@dataclass(slots=True)
class Coupon:
    id: int
    source: str | None
    source_id: str | None
    brand_id: int
    title: str
    code: str = ""
    terms: str = ""
    url: str | None = None
    short_url: str | None = None
    coupon_type: str = "Sale"
    valid_from: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Coupon":
        return cls(**{name: row[name] for name in cls.__dataclass_fields__})


@dataclass(slots=True)
class SyncStats:
    processed: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
