"""Provider records to :class:`NormalizedOffer`."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from couponsync.ingest.models import BrandMeta, NormalizedOffer
from couponsync.utils.dates import parse_offer_date
from couponsync.utils.text import clean_brand_name

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _market(record: Mapping[str, Any], region: str) -> Mapping[str, Any] | None:
    markets = record.get("markets")
    if not isinstance(markets, Mapping):
        return None
    market = markets.get(region)
    return market if isinstance(market, Mapping) else None


def addrevenue_brand_meta(advertiser: Mapping[str, Any], region: str) -> BrandMeta:
    market = _market(advertiser, region) or {}
    relation = advertiser.get("relation") or {}
    featured = advertiser.get("featured")
    return BrandMeta(
        image_url=_text(advertiser.get("logoImageFilename")) or None,
        affiliate_link=_text(relation.get("trackingLink")) or None,
        site_link=_text(market.get("url")) or None,
        popular=None if featured is None else bool(featured),
        sector=_text(advertiser.get("primarySector")) or None,
    )


def normalize_addrevenue(
    advertisers: Iterable[Mapping[str, Any]],
    campaigns: Iterable[Mapping[str, Any]],
    region: str,
) -> list[NormalizedOffer]:
    """Join regional advertisers to their regional campaigns by display name."""
    by_advertiser: dict[str, list[Mapping[str, Any]]] = {}
    for campaign in campaigns:
        if _market(campaign, region) is None:
            continue
        by_advertiser.setdefault(_text(campaign.get("advertiserName")), []).append(campaign)

    offers: list[NormalizedOffer] = []
    for advertiser in advertisers:
        market = _market(advertiser, region)
        if market is None:
            continue
        display_name = _text(market.get("displayName"))
        if not display_name:
            continue
        meta = addrevenue_brand_meta(advertiser, region)
        for campaign in by_advertiser.get(display_name, []):
            source_id = _text(campaign.get("id"))
            if not source_id:
                logger.warning("Skipping AddRevenue campaign without id for %s", display_name)
                continue
            offers.append(
                NormalizedOffer(
                    brand_name=clean_brand_name(display_name),
                    code=_text(campaign.get("discountCode")),
                    terms=_text(campaign.get("terms")),
                    expires_at=parse_offer_date(campaign.get("validTo"), end_of_day=True),
                    source="addrevenue",
                    source_id=source_id,
                    description=_text(campaign.get("description")),
                    url=_text(campaign.get("trackingLink")),
                    valid_from=parse_offer_date(campaign.get("validFrom")),
                    brand_meta=meta,
                )
            )
    return offers


def awin_brand_meta(programme: Mapping[str, Any] | None) -> BrandMeta:
    if not programme:
        return BrandMeta()
    return BrandMeta(
        image_url=_text(programme.get("logoUrl")) or None,
        affiliate_link=_text(programme.get("clickThroughUrl")) or None,
        site_link=_text(programme.get("displayUrl")) or None,
        sector=_text(programme.get("primarySector")) or None,
    )


def normalize_awin(
    promotions: Iterable[Mapping[str, Any]],
    programmes: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[NormalizedOffer]:
    """Promotions keyed to brands; programme details win over the promotion's advertiser name."""
    programmes = programmes or {}
    offers: list[NormalizedOffer] = []
    for promotion in promotions:
        advertiser = promotion.get("advertiser") or {}
        advertiser_id = _text(advertiser.get("id"))
        programme = programmes.get(advertiser_id)
        name = _text((programme or {}).get("name")) or _text(advertiser.get("name"))
        source_id = _text(promotion.get("promotionId"))
        if not name or not source_id:
            logger.warning("Skipping Awin promotion %r without brand or id", source_id or None)
            continue
        voucher = promotion.get("voucher") or {}
        offers.append(
            NormalizedOffer(
                brand_name=clean_brand_name(name),
                code=_text(voucher.get("code")),
                terms=_text(promotion.get("terms")),
                expires_at=parse_offer_date(promotion.get("endDate"), end_of_day=True),
                source="awin",
                source_id=source_id,
                description=_text(promotion.get("description")),
                url=_text(promotion.get("urlTracking")),
                valid_from=parse_offer_date(promotion.get("startDate")),
                brand_meta=awin_brand_meta(programme),
            )
        )
    return offers


def awin_advertiser_ids(promotions: Iterable[Mapping[str, Any]]) -> list[str]:
    """Distinct advertiser ids in first-seen order."""
    seen: dict[str, None] = {}
    for promotion in promotions:
        advertiser_id = _text((promotion.get("advertiser") or {}).get("id"))
        if advertiser_id:
            seen.setdefault(advertiser_id, None)
    return list(seen)
