"""Duplicate coupon detection and removal."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from couponsync.db.catalog import CatalogStore
from couponsync.ingest.models import Coupon
from couponsync.logic.run_state import MAINTENANCE, RunStateController

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DuplicateGroup:
    brand_id: int
    code: str
    keep: int
    remove: list[int]


@dataclass(slots=True)
class DedupStats:
    groups: int = 0
    duplicates: int = 0
    deleted: int = 0
    dry_run: bool = True


@dataclass(slots=True)
class DedupReport:
    stats: DedupStats
    groups: list[DuplicateGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _age_key(coupon: Coupon) -> tuple[datetime, int]:
    return (coupon.created_at or datetime.max, coupon.id)


def canonical(members: list[Coupon]) -> Coupon:
    """Oldest coupon that still maps to a provider record, else the oldest one."""
    sourced = [coupon for coupon in members if (coupon.source_id or "").strip()]
    return min(sourced or members, key=_age_key)


class DedupEngine:
    def __init__(self, catalog: CatalogStore, controller: RunStateController) -> None:
        self.catalog = catalog
        self.controller = controller

    def find_duplicates(self) -> list[DuplicateGroup]:
        grouped: dict[tuple[int, str], list[Coupon]] = defaultdict(list)
        for coupon in self.catalog.list_coupons():
            code = (coupon.code or "").strip().lower()
            if not code:
                continue
            grouped[(coupon.brand_id, code)].append(coupon)

        groups = []
        for (brand_id, code), members in grouped.items():
            if len(members) < 2:
                continue
            keep = canonical(members)
            remove = sorted(coupon.id for coupon in members if coupon.id != keep.id)
            groups.append(DuplicateGroup(brand_id=brand_id, code=code, keep=keep.id, remove=remove))
        return groups

    def purge(self, dry_run: bool = True) -> DedupReport:
        if dry_run:
            return self._report(self.find_duplicates(), dry_run=True)
        with self.controller.hold(MAINTENANCE) as handle:
            groups = self.find_duplicates()
            report = self._report(groups, dry_run=False)
            report.stats.deleted = self.catalog.delete_coupons(
                coupon_id for group in groups for coupon_id in group.remove
            )
            handle.stats.processed = report.stats.duplicates
            handle.stats.updated = report.stats.deleted
        logger.info("Removed %d duplicate coupons in %d groups", report.stats.deleted, report.stats.groups)
        return report

    def _report(self, groups: list[DuplicateGroup], *, dry_run: bool) -> DedupReport:
        stats = DedupStats(
            groups=len(groups),
            duplicates=sum(len(group.remove) for group in groups),
            dry_run=dry_run,
        )
        if dry_run:
            logger.info("Dry run: %d duplicate coupons in %d groups", stats.duplicates, stats.groups)
        return DedupReport(stats=stats, groups=groups)
