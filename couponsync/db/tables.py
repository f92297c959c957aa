"""Table definitions."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

brands = Table(
    "brands",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("name_key", Text, nullable=False),
    Column("slug", Text, nullable=False),
    Column("description", Text),
    Column("why_we_love", Text),
    Column("hashtags", JSON, nullable=False, default=list),
    Column("featured_image", Text),
    Column("site_link", Text),
    Column("affiliate_link", Text),
    Column("popular", Boolean, nullable=False, default=False),
    Column("source", Text),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint("name_key", name="uq_brands_name_key"),
)

coupons = Table(
    "coupons",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source", Text),
    Column("source_id", Text),
    Column("brand_id", Integer, ForeignKey("brands.id"), nullable=False),
    Column("title", Text, nullable=False),
    Column("code", Text, nullable=False, default=""),
    Column("terms", Text, nullable=False, default=""),
    Column("url", Text),
    Column("short_url", Text),
    Column("coupon_type", Text, nullable=False, default="Sale"),
    Column("valid_from", DateTime),
    Column("expires_at", DateTime),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    UniqueConstraint("source", "source_id", name="uq_coupons_source"),
)

sync_state = Table(
    "sync_state",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("status", Text, nullable=False, default="idle"),
    Column("run_id", Text),
    Column("actor", Text),
    Column("started_at", DateTime),
    Column("heartbeat_at", DateTime),
    Column("processed", Integer, nullable=False, default=0),
    Column("failed", Integer, nullable=False, default=0),
    Column("created", Integer, nullable=False, default=0),
    Column("updated", Integer, nullable=False, default=0),
    Column("last_run_at", DateTime),
    Column("last_success_date", Date),
    Column("last_manual_trigger_at", DateTime),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("kind", Text, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("read", Boolean, nullable=False, default=False),
)
