"""Sync job entry point."""

from __future__ import annotations

import asyncio
import logging
import sys

from couponsync.logic.run_state import SCHEDULED
from couponsync.service import SyncService, build_service
from couponsync.utils.logs import configure_logging

logger = logging.getLogger(__name__)


async def run_sync(actor: str = SCHEDULED, service: SyncService | None = None) -> dict:
    """Run one sync; returns the start outcome and the final counters."""
    owned = service is None
    if owned:
        service = build_service()
        configure_logging(service.settings.logging_enabled)
    try:
        result = await service.start_run(actor)
        if not result.started:
            logger.info("Sync by %s not started: %s", actor, result.status.value)
            return {"status": result.status.value, "retry_after": result.retry_after}
        return {"status": result.status.value, "run_id": result.handle.run_id, **result.handle.stats.to_dict()}
    finally:
        if owned:
            await service.close()


if __name__ == "__main__":
    print(asyncio.run(run_sync(sys.argv[1] if len(sys.argv) > 1 else SCHEDULED)))
