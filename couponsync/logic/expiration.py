"""Expired coupon removal."""

from __future__ import annotations

import logging
from datetime import datetime

from couponsync.db.catalog import CatalogStore
from couponsync.logic.run_state import MAINTENANCE, RunStateController
from couponsync.utils.dates import utcnow

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    def __init__(self, catalog: CatalogStore, controller: RunStateController) -> None:
        self.catalog = catalog
        self.controller = controller

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete coupons whose expiry lies before ``now``; coupons without one never expire."""
        cutoff = now or utcnow()
        with self.controller.hold(MAINTENANCE) as handle:
            deleted = self.catalog.delete_expired(cutoff)
            handle.stats.processed = deleted
        logger.info("Removed %d expired coupons (cutoff %s)", deleted, cutoff.isoformat())
        return deleted
