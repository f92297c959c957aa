"""Database migration helpers."""

from __future__ import annotations

import sys

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from couponsync.db.session import create_engine_from_env
from couponsync.db.tables import metadata, sync_state

STATE_ROW_ID = 1


def run_migrations(engine: Engine) -> None:
    """Create missing tables and the single run-state row."""
    metadata.create_all(engine)
    with engine.begin() as conn:
        exists = conn.execute(select(sync_state.c.id).where(sync_state.c.id == STATE_ROW_ID)).first()
        if exists is None:
            conn.execute(insert(sync_state).values(id=STATE_ROW_ID, status="idle"))


def main() -> None:
    try:
        engine = create_engine_from_env()
    except KeyError as exc:  # pragma: no cover - env failure is user error
        print(f"Missing environment variable: {exc}", file=sys.stderr)
        sys.exit(1)
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
