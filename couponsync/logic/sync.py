"""Fetch, normalize and reconcile provider offers into the catalog."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from couponsync.config import Settings
from couponsync.db.catalog import CatalogStore
from couponsync.errors import ProviderError, SyncBusyError
from couponsync.ingest.models import Brand, BrandMeta, NormalizedOffer
from couponsync.ingest.normalize import awin_advertiser_ids, normalize_addrevenue, normalize_awin
from couponsync.logic.enrich import BrandEnricher
from couponsync.logic.run_state import BATCH, RunHandle, RunStateController, StartResult
from couponsync.providers import ProviderClients
from couponsync.utils.notifications import NotificationKind, NotificationLog

logger = logging.getLogger(__name__)

BATCH_TIME_BUDGET = 25.0

CREATED = "created"
UPDATED = "updated"
UNCHANGED = "unchanged"


@dataclass(slots=True)
class BatchResult:
    processed: int
    total: int
    completed: bool
    log: list[str] = field(default_factory=list)
    next_after_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SyncOrchestrator:
    def __init__(
        self,
        settings: Settings,
        catalog: CatalogStore,
        clients: ProviderClients,
        controller: RunStateController,
        notifications: NotificationLog,
        *,
        enricher: BrandEnricher | None = None,
        monotonic: Callable[[], float] = time.monotonic,
        batch_budget: float = BATCH_TIME_BUDGET,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.clients = clients
        self.controller = controller
        self.notifications = notifications
        self.enricher = enricher or BrandEnricher(catalog, clients.openai, settings.prompts)
        self.monotonic = monotonic
        self.batch_budget = batch_budget

    async def run(self, actor: str) -> StartResult:
        result = self.controller.try_start(actor)
        if result.started:
            await self.execute(result.handle)
        return result

    async def execute(self, handle: RunHandle) -> None:
        stats = handle.stats
        try:
            offers = await self.fetch_offers()
            if not self.controller.checkpoint(handle):
                logger.info("Run %s stopped before reconciling %d offers", handle.run_id, len(offers))
                offers = []
            logger.info("Run %s reconciling %d offers", handle.run_id, len(offers))
            enriched: set[int] = set()
            for offer in offers:
                try:
                    outcome = await self.reconcile(offer, enriched)
                except (ProviderError, SQLAlchemyError) as exc:
                    stats.failed += 1
                    logger.error("Offer %s:%s failed: %s", offer.source, offer.source_id, exc)
                else:
                    if outcome == CREATED:
                        stats.created += 1
                    elif outcome == UPDATED:
                        stats.updated += 1
                stats.processed += 1
                if not self.controller.checkpoint(handle):
                    break
        except Exception as exc:
            self.controller.abort(handle, exc)
            raise
        self.controller.finish(handle)

    # fetch

    async def fetch_offers(self) -> list[NormalizedOffer]:
        offers: list[NormalizedOffer] = []
        offers.extend(await self._fetch("addrevenue", self._fetch_addrevenue))
        offers.extend(await self._fetch("awin", self._fetch_awin))
        return offers

    async def _fetch(
        self, provider: str, fetch: Callable[[], Awaitable[list[NormalizedOffer]]]
    ) -> list[NormalizedOffer]:
        try:
            offers = await fetch()
        except ProviderError as exc:
            logger.error("Fetching %s offers failed: %s", provider, exc)
            self.notifications.add(NotificationKind.ERROR, {"provider": provider, "message": str(exc)})
            return []
        logger.info("Fetched %d %s offers", len(offers), provider)
        return offers

    async def _fetch_addrevenue(self) -> list[NormalizedOffer]:
        client = self.clients.addrevenue
        advertisers = await client.list_advertisers()
        if not advertisers:
            return []
        campaigns = await client.list_campaigns()
        return normalize_addrevenue(advertisers, campaigns, self.settings.region)

    async def _fetch_awin(self) -> list[NormalizedOffer]:
        client = self.clients.awin
        promotions = await client.list_promotions()
        programmes: dict[str, dict[str, Any]] = {}
        for advertiser_id in awin_advertiser_ids(promotions):
            try:
                details = await client.get_programme_details(advertiser_id)
            except ProviderError as exc:
                logger.warning("Programme details for Awin advertiser %s unavailable: %s", advertiser_id, exc)
                continue
            if details:
                programmes[advertiser_id] = details
        return normalize_awin(promotions, programmes)

    # reconcile

    async def reconcile(self, offer: NormalizedOffer, enriched: set[int]) -> str:
        brand = self.resolve_brand(offer)
        await self.apply_brand_meta(brand, offer.brand_meta)
        if brand.id not in enriched:
            enriched.add(brand.id)
            await self.enricher.enrich_brand(brand, sector=offer.brand_meta.sector)

        existing = self.catalog.get_coupon(offer.source, offer.source_id)
        if existing is None:
            return await self.create_coupon(offer, brand)

        changes: dict[str, Any] = {}
        if existing.terms != offer.terms:
            changes["terms"] = offer.terms
        if existing.expires_at != offer.expires_at:
            changes["expires_at"] = offer.expires_at
        if not changes:
            return UNCHANGED
        self.catalog.update_coupon(existing.id, **changes)
        logger.info("Updated coupon %s:%s (%s)", offer.source, offer.source_id, ", ".join(sorted(changes)))
        return UPDATED

    def resolve_brand(self, offer: NormalizedOffer) -> Brand:
        brand = self.catalog.find_brand_by_name(offer.brand_name)
        if brand is not None:
            return brand
        brand = self.catalog.create_brand(offer.brand_name, source=offer.source)
        self.notifications.add(NotificationKind.BRAND_CREATED, {"brand": brand.name, "id": brand.id})
        return brand

    async def apply_brand_meta(self, brand: Brand, meta: BrandMeta) -> None:
        """Fill empty brand fields from provider meta; existing values win."""
        fields: dict[str, Any] = {}
        if not brand.featured_image and meta.image_url:
            fields["featured_image"] = meta.image_url
        if not brand.site_link and meta.site_link:
            fields["site_link"] = meta.site_link
        if meta.popular is not None and brand.popular != meta.popular:
            fields["popular"] = meta.popular
        if not brand.affiliate_link and meta.affiliate_link:
            short = await self.clients.yourls.create_short_link(meta.affiliate_link, brand.name)
            fields["affiliate_link"] = short or meta.affiliate_link
        if not fields:
            return
        self.catalog.update_brand(brand.id, **fields)
        for name, value in fields.items():
            setattr(brand, name, value)

    async def create_coupon(self, offer: NormalizedOffer, brand: Brand) -> str:
        title = await self.enricher.coupon_title(offer.description, brand.name)
        short_url = await self.clients.yourls.create_short_link(offer.url) if offer.url else None
        coupon, created = self.catalog.create_coupon(
            source=offer.source,
            source_id=offer.source_id,
            brand_id=brand.id,
            title=title,
            code=offer.code,
            terms=offer.terms,
            url=offer.url or None,
            short_url=short_url,
            coupon_type=offer.coupon_type,
            valid_from=offer.valid_from,
            expires_at=offer.expires_at,
        )
        if not created:
            logger.info("Coupon %s:%s already present", offer.source, offer.source_id)
            return UNCHANGED
        logger.info("Created coupon %s for %s (id=%s)", coupon.title, brand.name, coupon.id)
        self.notifications.add(
            NotificationKind.COUPON_CREATED,
            {"title": coupon.title, "brand": brand.name, "id": coupon.id},
        )
        return CREATED

    # interactive brand batches

    async def process_brand_batch(
        self, offset: int = 0, batch_size: int | None = None, *, after_id: int | None = None
    ) -> BatchResult:
        """Enrich one slice of the brand queue.

        Brands leave the queue once enriched, so a plain ``offset`` skips brands on
        later calls. Passing the previous ``next_after_id`` as ``after_id`` pages by
        brand id instead and ignores ``offset``.
        """
        size = batch_size or self.settings.batch_size
        offset = max(offset, 0)
        log: list[str] = []
        try:
            with self.controller.hold(BATCH) as handle:
                pending = self.catalog.brands_needing_update()
                total = len(pending)
                if after_id is None:
                    page = pending[offset : offset + size]
                else:
                    page = [item for item in pending if item[0].id > after_id][:size]
                cursor = after_id
                started = self.monotonic()
                for brand, issues in page:
                    if self.monotonic() - started > self.batch_budget:
                        log.append("Time budget reached; continue with the next batch")
                        break
                    written = await self.enricher.enrich_brand(brand)
                    handle.stats.processed += 1
                    cursor = brand.id
                    if written:
                        handle.stats.updated += 1
                    log.append(f"{brand.name}: missing {', '.join(issues)}; updated {', '.join(written) or 'nothing'}")
                    if not self.controller.checkpoint(handle):
                        log.append("Stop requested")
                        break
        except SyncBusyError:
            logger.info("Brand batch at offset %d refused: a run is active", offset)
            total = len(self.catalog.brands_needing_update())
            return BatchResult(
                processed=0,
                total=total,
                completed=False,
                log=["A sync run is active; try again later"],
                next_after_id=after_id,
            )
        processed = handle.stats.processed
        if after_id is None:
            completed = offset + processed >= total
        else:
            completed = not any(brand.id > cursor for brand, _ in pending)
        return BatchResult(processed=processed, total=total, completed=completed, log=log, next_after_id=cursor)
