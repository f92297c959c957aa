"""Capacity-bounded notification log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Engine

from couponsync.db.tables import notifications
from couponsync.utils.dates import utcnow

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 100


class NotificationKind(str, Enum):
    COUPON_CREATED = "coupon_created"
    BRAND_CREATED = "brand_created"
    ERROR = "error"
    SYNC_SUMMARY = "sync_summary"


@dataclass(slots=True)
class Notification:
    id: int
    kind: str
    payload: dict[str, Any]
    created_at: datetime
    read: bool


class NotificationLog:
    def __init__(self, engine: Engine, *, capacity: int = MAX_NOTIFICATIONS) -> None:
        self.engine = engine
        self.capacity = capacity

    def add(self, kind: NotificationKind | str, payload: Mapping[str, Any]) -> bool:
        """Append unless identical to the newest entry; evicts the oldest past capacity."""
        kind_value = NotificationKind(kind).value
        data = dict(payload)
        with self.engine.begin() as conn:
            latest = conn.execute(
                select(notifications.c.kind, notifications.c.payload)
                .order_by(notifications.c.id.desc())
                .limit(1)
            ).first()
            if latest is not None and latest.kind == kind_value and latest.payload == data:
                return False
            conn.execute(insert(notifications).values(kind=kind_value, payload=data, created_at=utcnow(), read=False))
            count = conn.execute(select(func.count()).select_from(notifications)).scalar_one()
            overflow = count - self.capacity
            if overflow > 0:
                oldest = select(notifications.c.id).order_by(notifications.c.id).limit(overflow)
                conn.execute(delete(notifications).where(notifications.c.id.in_(oldest)))
        return True

    def all(self) -> list[Notification]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(notifications).order_by(notifications.c.id)).mappings().all()
        return [Notification(**row) for row in rows]

    def unread(self) -> list[Notification]:
        return [item for item in self.all() if not item.read]

    def mark_all_read(self) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(update(notifications).where(notifications.c.read.is_(False)).values(read=True))
        return result.rowcount

    def clear(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(notifications))
