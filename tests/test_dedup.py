from datetime import datetime

import pytest
from sqlalchemy import update

from couponsync.db.tables import coupons
from couponsync.errors import SyncBusyError
from couponsync.logic.dedup import DedupEngine
from couponsync.logic.run_state import SCHEDULED


def add_coupon(engine, catalog, brand_id, source_id, code, created_at, source="addrevenue"):
    coupon, _ = catalog.create_coupon(
        source=source,
        source_id=source_id,
        brand_id=brand_id,
        title=f"Coupon {source_id}",
        code=code,
    )
    with engine.begin() as conn:
        conn.execute(update(coupons).where(coupons.c.id == coupon.id).values(created_at=created_at))
    return coupon.id


@pytest.fixture()
def brand_id(catalog):
    return catalog.create_brand("Nordic Gear").id


def test_codes_match_after_trim_and_lowercase(engine, catalog, controller, brand_id):
    first = add_coupon(engine, catalog, brand_id, "1", "SAVE10", datetime(2024, 1, 1))
    second = add_coupon(engine, catalog, brand_id, "2", "save10 ", datetime(2024, 2, 1))
    groups = DedupEngine(catalog, controller).find_duplicates()
    assert len(groups) == 1
    assert groups[0].code == "save10"
    assert groups[0].keep == first
    assert groups[0].remove == [second]


def test_dry_run_deletes_nothing(engine, catalog, controller, brand_id):
    add_coupon(engine, catalog, brand_id, "1", "SAVE10", datetime(2024, 1, 1))
    add_coupon(engine, catalog, brand_id, "2", "SAVE10", datetime(2024, 2, 1))
    report = DedupEngine(catalog, controller).purge(dry_run=True)
    assert report.stats.groups == 1
    assert report.stats.duplicates == 1
    assert report.stats.deleted == 0
    assert len(catalog.list_coupons()) == 2


def test_live_purge_keeps_oldest_sourced_coupon(engine, catalog, controller, brand_id):
    manual = add_coupon(engine, catalog, brand_id, None, "SAVE10", datetime(2023, 12, 1), source=None)
    sourced = add_coupon(engine, catalog, brand_id, "1", "SAVE10", datetime(2024, 1, 1))
    add_coupon(engine, catalog, brand_id, "2", "SAVE10", datetime(2024, 2, 1))
    add_coupon(engine, catalog, brand_id, "3", "OTHER", datetime(2024, 2, 1))
    report = DedupEngine(catalog, controller).purge(dry_run=False)
    assert report.stats.deleted == 2
    remaining = {coupon.id for coupon in catalog.list_coupons()}
    assert sourced in remaining
    assert manual not in remaining
    assert len(remaining) == 2
    assert controller.status().status == "idle"


def test_empty_codes_and_other_brands_are_not_grouped(engine, catalog, controller, brand_id):
    other = catalog.create_brand("Glow Lab").id
    add_coupon(engine, catalog, brand_id, "1", "", datetime(2024, 1, 1))
    add_coupon(engine, catalog, brand_id, "2", "  ", datetime(2024, 1, 2))
    add_coupon(engine, catalog, brand_id, "3", "SAVE10", datetime(2024, 1, 3))
    add_coupon(engine, catalog, other, "4", "SAVE10", datetime(2024, 1, 4))
    assert DedupEngine(catalog, controller).find_duplicates() == []


def test_live_purge_refused_while_sync_runs(engine, catalog, controller, brand_id):
    add_coupon(engine, catalog, brand_id, "1", "SAVE10", datetime(2024, 1, 1))
    add_coupon(engine, catalog, brand_id, "2", "SAVE10", datetime(2024, 2, 1))
    controller.try_start(SCHEDULED)
    engine_ = DedupEngine(catalog, controller)
    with pytest.raises(SyncBusyError):
        engine_.purge(dry_run=False)
    assert engine_.purge(dry_run=True).stats.duplicates == 1
    assert len(catalog.list_coupons()) == 2


def test_unsourced_group_keeps_earliest_then_lowest_id(engine, catalog, controller, brand_id):
    later = add_coupon(engine, catalog, brand_id, None, "SAVE10", datetime(2024, 3, 1), source=None)
    first = add_coupon(engine, catalog, brand_id, None, "SAVE10", datetime(2024, 1, 1), source=None)
    tied = add_coupon(engine, catalog, brand_id, None, "SAVE10", datetime(2024, 1, 1), source=None)
    groups = DedupEngine(catalog, controller).find_duplicates()
    assert len(groups) == 1
    assert groups[0].keep == first
    assert sorted(groups[0].remove) == sorted([later, tied])
