"""Single-flight run gate with a cooperative stop flag.

The gate is the ``sync_state`` row. Moving it from free to ``running`` is one
conditional ``UPDATE``, so the Celery worker and the API process cannot both
win. A run that stops heartbeating for ``LOCK_TTL`` is considered dead and
its lock may be taken over.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.engine import Connection, Engine

from couponsync.db.migrate import STATE_ROW_ID
from couponsync.db.tables import sync_state
from couponsync.errors import SyncBusyError
from couponsync.ingest.models import SyncStats
from couponsync.utils.dates import next_scheduled_run, today_in_tz, utcnow
from couponsync.utils.notifications import NotificationKind, NotificationLog

logger = logging.getLogger(__name__)

LOCK_TTL = timedelta(minutes=30)
MANUAL_SPACING = timedelta(seconds=30)

SCHEDULED = "scheduled"
MANUAL = "manual"
BATCH = "batch"
MAINTENANCE = "maintenance"
ACTORS = (SCHEDULED, MANUAL, BATCH, MAINTENANCE)
# actors whose counters and run time are reported by status()
SYNC_ACTORS = (SCHEDULED, MANUAL)

IDLE = "idle"
RUNNING = "running"
STOP_REQUESTED = "stop_requested"
STOPPED = "stopped"
ACTIVE_STATUSES = (RUNNING, STOP_REQUESTED)


class StartStatus(str, Enum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    RATE_LIMITED = "rate_limited"
    ALREADY_COMPLETED = "already_completed"


@dataclass(slots=True)
class RunHandle:
    run_id: str
    actor: str
    started_at: datetime
    stats: SyncStats = field(default_factory=SyncStats)


@dataclass(slots=True)
class StartResult:
    status: StartStatus
    handle: RunHandle | None = None
    retry_after: int = 0

    @property
    def started(self) -> bool:
        return self.status is StartStatus.STARTED


@dataclass(slots=True)
class RunStatus:
    status: str
    running: bool
    run_id: str | None
    actor: str | None
    started_at: datetime | None
    heartbeat_at: datetime | None
    stats: SyncStats
    last_run_at: datetime | None
    last_success_date: date | None
    next_run_at: datetime

    def to_dict(self) -> dict[str, Any]:
        def iso(value: date | datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "status": self.status,
            "running": self.running,
            "run_id": self.run_id,
            "actor": self.actor,
            "started_at": iso(self.started_at),
            "heartbeat_at": iso(self.heartbeat_at),
            "stats": self.stats.to_dict(),
            "last_run_at": iso(self.last_run_at),
            "last_success_date": iso(self.last_success_date),
            "next_run_at": iso(self.next_run_at),
        }


class RunStateController:
    def __init__(
        self,
        engine: Engine,
        notifications: NotificationLog | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        lock_ttl: timedelta = LOCK_TTL,
        manual_spacing: timedelta = MANUAL_SPACING,
    ) -> None:
        self.engine = engine
        self.notifications = notifications
        self.clock = clock
        self.lock_ttl = lock_ttl
        self.manual_spacing = manual_spacing

    def _row(self, conn: Connection) -> Any:
        row = conn.execute(select(sync_state).where(sync_state.c.id == STATE_ROW_ID)).first()
        if row is None:
            raise RuntimeError("sync_state row missing; run migrations first")
        return row

    def _is_active(self, row: Any, now: datetime) -> bool:
        if row.status not in ACTIVE_STATUSES:
            return False
        return row.heartbeat_at is not None and row.heartbeat_at >= now - self.lock_ttl

    def try_start(self, actor: str, now: datetime | None = None) -> StartResult:
        if actor not in ACTORS:
            raise ValueError(f"Unknown actor: {actor}")
        now = now or self.clock()
        with self.engine.begin() as conn:
            row = self._row(conn)
            if self._is_active(row, now):
                logger.info("Start by %s refused: run %s is active", actor, row.run_id)
                return StartResult(StartStatus.ALREADY_RUNNING)

            if actor == MANUAL and row.last_manual_trigger_at is not None:
                elapsed = now - row.last_manual_trigger_at
                if elapsed < self.manual_spacing:
                    remaining = max(math.ceil((self.manual_spacing - elapsed).total_seconds()), 1)
                    logger.info("Manual start refused: retry in %ds", remaining)
                    return StartResult(StartStatus.RATE_LIMITED, retry_after=remaining)

            if actor == SCHEDULED and row.last_success_date == today_in_tz(now):
                logger.info("Scheduled start skipped: already completed %s", row.last_success_date)
                return StartResult(StartStatus.ALREADY_COMPLETED)

            if row.status in ACTIVE_STATUSES:
                logger.warning("Taking over stale run %s (heartbeat %s)", row.run_id, row.heartbeat_at)

            run_id = uuid.uuid4().hex
            values: dict[str, Any] = {
                "status": RUNNING,
                "run_id": run_id,
                "actor": actor,
                "started_at": now,
                "heartbeat_at": now,
            }
            if actor in SYNC_ACTORS:
                values.update(SyncStats().to_dict())
            if actor == MANUAL:
                values["last_manual_trigger_at"] = now
            free = or_(
                sync_state.c.status.not_in(ACTIVE_STATUSES),
                sync_state.c.heartbeat_at.is_(None),
                sync_state.c.heartbeat_at < now - self.lock_ttl,
            )
            result = conn.execute(
                update(sync_state).where(and_(sync_state.c.id == STATE_ROW_ID, free)).values(**values)
            )
            if result.rowcount != 1:
                logger.info("Start by %s lost the race for the run gate", actor)
                return StartResult(StartStatus.ALREADY_RUNNING)

        logger.info("Run %s started by %s", run_id, actor)
        return StartResult(StartStatus.STARTED, handle=RunHandle(run_id=run_id, actor=actor, started_at=now))

    def request_stop(self) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(sync_state)
                .where(sync_state.c.id == STATE_ROW_ID, sync_state.c.status.in_(ACTIVE_STATUSES))
                .values(status=STOP_REQUESTED)
            )
        if result.rowcount:
            logger.info("Stop requested")
            return True
        logger.info("Stop requested but nothing is running")
        return False

    def checkpoint(self, handle: RunHandle, stats: SyncStats | None = None) -> bool:
        """Heartbeat plus progress; False means the run should stop now."""
        stats = stats or handle.stats
        values: dict[str, Any] = {"heartbeat_at": self.clock()}
        if handle.actor in SYNC_ACTORS:
            values.update(stats.to_dict())
        with self.engine.begin() as conn:
            result = conn.execute(
                update(sync_state)
                .where(
                    sync_state.c.id == STATE_ROW_ID,
                    sync_state.c.run_id == handle.run_id,
                    sync_state.c.status == RUNNING,
                )
                .values(**values)
            )
        if result.rowcount == 1:
            return True
        logger.info("Run %s asked to stop at checkpoint (%d processed)", handle.run_id, stats.processed)
        return False

    def finish(self, handle: RunHandle, stats: SyncStats | None = None) -> None:
        stats = stats or handle.stats
        now = self.clock()
        with self.engine.begin() as conn:
            row = self._row(conn)
            if row.run_id != handle.run_id:
                logger.warning("Run %s finished after losing the gate to %s", handle.run_id, row.run_id)
                return
            stopped = row.status == STOP_REQUESTED
            if stopped:
                conn.execute(
                    update(sync_state).where(sync_state.c.id == STATE_ROW_ID).values(status=STOPPED)
                )
            values: dict[str, Any] = {"status": IDLE, "heartbeat_at": None}
            if handle.actor in SYNC_ACTORS:
                values.update(last_run_at=now, **stats.to_dict())
            succeeded = not stopped and handle.actor in (SCHEDULED, MANUAL)
            if succeeded:
                values["last_success_date"] = today_in_tz(now)
            conn.execute(update(sync_state).where(sync_state.c.id == STATE_ROW_ID).values(**values))

        logger.info(
            "Run %s %s: processed=%d failed=%d created=%d updated=%d",
            handle.run_id, "stopped" if stopped else "finished",
            stats.processed, stats.failed, stats.created, stats.updated,
        )
        if succeeded and self.notifications is not None:
            self.notifications.add(
                NotificationKind.SYNC_SUMMARY,
                {"run_id": handle.run_id, "actor": handle.actor, **stats.to_dict()},
            )

    def abort(self, handle: RunHandle, error: BaseException) -> None:
        values: dict[str, Any] = {"status": IDLE, "heartbeat_at": None}
        if handle.actor in SYNC_ACTORS:
            values.update(last_run_at=self.clock(), **handle.stats.to_dict())
        with self.engine.begin() as conn:
            conn.execute(
                update(sync_state)
                .where(sync_state.c.id == STATE_ROW_ID, sync_state.c.run_id == handle.run_id)
                .values(**values)
            )
        logger.error("Run %s aborted: %s", handle.run_id, error)
        if self.notifications is not None:
            self.notifications.add(
                NotificationKind.ERROR,
                {"run_id": handle.run_id, "actor": handle.actor, "message": str(error)},
            )

    @contextmanager
    def hold(self, actor: str) -> Iterator[RunHandle]:
        result = self.try_start(actor)
        if not result.started:
            raise SyncBusyError(f"Run gate unavailable for {actor}: {result.status.value}")
        handle = result.handle
        try:
            yield handle
        except Exception as exc:
            self.abort(handle, exc)
            raise
        self.finish(handle)

    def status(self, now: datetime | None = None) -> RunStatus:
        now = now or self.clock()
        with self.engine.connect() as conn:
            row = self._row(conn)
        return RunStatus(
            status=row.status,
            running=self._is_active(row, now),
            run_id=row.run_id,
            actor=row.actor,
            started_at=row.started_at,
            heartbeat_at=row.heartbeat_at,
            stats=SyncStats(processed=row.processed, failed=row.failed, created=row.created, updated=row.updated),
            last_run_at=row.last_run_at,
            last_success_date=row.last_success_date,
            next_run_at=next_scheduled_run(now),
        )

    def reset(self) -> None:
        """Force the gate idle and forget the manual trigger spacing."""
        with self.engine.begin() as conn:
            conn.execute(
                update(sync_state)
                .where(sync_state.c.id == STATE_ROW_ID)
                .values(status=IDLE, heartbeat_at=None, last_manual_trigger_at=None)
            )
        logger.info("Run state reset")
