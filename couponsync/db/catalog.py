"""Brand and coupon persistence."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import Table, delete, select, update
from sqlalchemy.engine import Engine

from couponsync.db.tables import brands, coupons
from couponsync.ingest.models import Brand, Coupon
from couponsync.utils.dates import utcnow
from couponsync.utils.text import name_key, slugify

logger = logging.getLogger(__name__)

BRAND_FIELDS = {
    "description",
    "why_we_love",
    "hashtags",
    "featured_image",
    "site_link",
    "affiliate_link",
    "popular",
}
COUPON_FIELDS = {"title", "code", "terms", "url", "short_url", "coupon_type", "valid_from", "expires_at"}


class CatalogStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # brands

    def find_brand_by_name(self, name: str) -> Brand | None:
        query = select(brands).where(brands.c.name_key == name_key(name))
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        return Brand.from_row(row) if row else None

    def get_brand(self, brand_id: int) -> Brand | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(brands).where(brands.c.id == brand_id)).mappings().first()
        return Brand.from_row(row) if row else None

    def create_brand(self, name: str, *, source: str | None = None) -> Brand:
        """Insert a brand; an existing brand with the same name key is returned instead."""
        values = {
            "name": name.strip(),
            "name_key": name_key(name),
            "slug": slugify(name),
            "hashtags": [],
            "popular": False,
            "source": source,
            "created_at": utcnow(),
        }
        stmt = _insert_ignoring_conflict(self.engine, brands, values, ["name_key"])
        with self.engine.begin() as conn:
            brand_id = conn.execute(stmt).scalar_one_or_none()
        if brand_id is None:
            existing = self.find_brand_by_name(name)
            if existing is None:  # pragma: no cover - concurrent delete
                raise LookupError(f"Brand {name!r} vanished after insert")
            return existing
        logger.info("Created brand %s (id=%s)", values["name"], brand_id)
        return Brand(id=int(brand_id), name=values["name"], slug=values["slug"], source=source, created_at=values["created_at"])

    def update_brand(self, brand_id: int, **fields: Any) -> None:
        unknown = set(fields) - BRAND_FIELDS
        if unknown:
            raise ValueError(f"Unknown brand fields: {sorted(unknown)}")
        if not fields:
            return
        with self.engine.begin() as conn:
            conn.execute(update(brands).where(brands.c.id == brand_id).values(**fields))

    def brands_needing_update(self, after_id: int | None = None) -> list[tuple[Brand, list[str]]]:
        """Brands with missing content in id order, optionally only those after ``after_id``."""
        query = select(brands).order_by(brands.c.id)
        if after_id is not None:
            query = query.where(brands.c.id > after_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        pending = []
        for row in rows:
            brand = Brand.from_row(row)
            issues = brand.missing_content()
            if issues:
                pending.append((brand, issues))
        return pending

    # coupons

    def get_coupon(self, source: str, source_id: str) -> Coupon | None:
        query = select(coupons).where(coupons.c.source == source, coupons.c.source_id == source_id)
        with self.engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        return Coupon.from_row(row) if row else None

    def get_coupon_by_id(self, coupon_id: int) -> Coupon | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(coupons).where(coupons.c.id == coupon_id)).mappings().first()
        return Coupon.from_row(row) if row else None

    def create_coupon(self, *, source: str, source_id: str, brand_id: int, **fields: Any) -> tuple[Coupon, bool]:
        """Insert unless ``(source, source_id)`` exists; returns the row and whether it was new."""
        unknown = set(fields) - COUPON_FIELDS
        if unknown:
            raise ValueError(f"Unknown coupon fields: {sorted(unknown)}")
        now = utcnow()
        values = {
            "source": source,
            "source_id": source_id,
            "brand_id": brand_id,
            "created_at": now,
            "updated_at": now,
            **fields,
        }
        stmt = _insert_ignoring_conflict(self.engine, coupons, values, ["source", "source_id"])
        with self.engine.begin() as conn:
            new_id = conn.execute(stmt).scalar_one_or_none()
        coupon = self.get_coupon_by_id(new_id) if new_id is not None else self.get_coupon(source, source_id)
        if coupon is None:  # pragma: no cover - concurrent delete
            raise LookupError(f"Coupon {source}:{source_id} vanished after insert")
        return coupon, new_id is not None

    def update_coupon(self, coupon_id: int, **fields: Any) -> None:
        unknown = set(fields) - COUPON_FIELDS
        if unknown:
            raise ValueError(f"Unknown coupon fields: {sorted(unknown)}")
        if not fields:
            return
        with self.engine.begin() as conn:
            conn.execute(
                update(coupons).where(coupons.c.id == coupon_id).values(updated_at=utcnow(), **fields)
            )

    def list_coupons(self) -> list[Coupon]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(coupons).order_by(coupons.c.id)).mappings().all()
        return [Coupon.from_row(row) for row in rows]

    def delete_coupons(self, coupon_ids: Iterable[int]) -> int:
        ids = list(coupon_ids)
        if not ids:
            return 0
        with self.engine.begin() as conn:
            result = conn.execute(delete(coupons).where(coupons.c.id.in_(ids)))
        return result.rowcount

    def delete_expired(self, now: datetime) -> int:
        stmt = delete(coupons).where(coupons.c.expires_at.is_not(None), coupons.c.expires_at < now)
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount


def _insert_ignoring_conflict(engine: Engine, table: Table, values: dict[str, Any], index_elements: list[str]):
    if engine.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    elif engine.dialect.name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    else:  # pragma: no cover - unsupported backend
        raise RuntimeError(f"Unsupported database dialect: {engine.dialect.name}")
    return (
        dialect_insert(table)
        .values(**values)
        .on_conflict_do_nothing(index_elements=index_elements)
        .returning(table.c.id)
    )
