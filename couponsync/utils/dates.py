"""Datetime helpers."""

from __future__ import annotations

import os
import re
from datetime import date, datetime

import pendulum

DEFAULT_TZ = "Europe/Stockholm"

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz(now: datetime | None = None) -> date:
    if now is None:
        return now_in_tz().date()
    return to_local(now).date()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses."""
    return pendulum.now("UTC").naive()


def to_local(value: datetime) -> pendulum.DateTime:
    if value.tzinfo is None:
        value = pendulum.instance(value, tz="UTC")
    return pendulum.instance(value).in_timezone(timezone_name())


def parse_offer_date(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    """Parse a provider date into naive UTC.

    Date-only values are read in the local timezone; with ``end_of_day`` they
    cover the whole day so an offer valid "until 2024-05-01" survives that day.
    """
    if not value or not str(value).strip():
        return None
    text = str(value).strip()
    try:
        parsed = pendulum.parse(text, tz=timezone_name())
    except ValueError:
        return None
    if not isinstance(parsed, pendulum.DateTime):
        return None
    if end_of_day and DATE_ONLY_RE.match(text):
        parsed = parsed.end_of("day")
    return parsed.in_timezone("UTC").naive()


def next_scheduled_run(now: datetime | None = None) -> datetime:
    """Next daily sync slot in the configured timezone, as naive UTC."""
    hour = int(os.environ.get("SYNC_HOUR", "2"))
    minute = int(os.environ.get("SYNC_MINUTE", "0"))
    local_now = to_local(now) if now is not None else now_in_tz()
    scheduled = local_now.set(hour=hour, minute=minute, second=0, microsecond=0)
    if scheduled <= local_now:
        scheduled = scheduled.add(days=1)
    return scheduled.in_timezone("UTC").naive()
