"""Weekly catalog cleanup."""

from __future__ import annotations

import asyncio
import logging

from couponsync.errors import SyncBusyError
from couponsync.service import SyncService, build_service
from couponsync.utils.logs import configure_logging

logger = logging.getLogger(__name__)


def run_cleanup(service: SyncService | None = None) -> dict:
    """Remove expired coupons, then duplicates; skipped while a sync holds the gate."""
    owned = service is None
    if owned:
        service = build_service()
        configure_logging(service.settings.logging_enabled)
    try:
        try:
            expired = service.purge_expired()
            report = service.purge_duplicates(dry_run=False)
        except SyncBusyError as exc:
            logger.warning("Cleanup skipped: %s", exc)
            return {"status": "busy"}
        return {"status": "ok", "expired": expired, "duplicates": report.stats.deleted}
    finally:
        if owned:
            asyncio.run(service.close())


if __name__ == "__main__":
    print(run_cleanup())
