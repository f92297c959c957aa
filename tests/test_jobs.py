import pytest

from couponsync.jobs.cleanup import run_cleanup
from couponsync.jobs.sync import run_sync
from couponsync.logic.run_state import MANUAL, SCHEDULED
from couponsync.providers import build_clients
from couponsync.service import SyncService


@pytest.fixture()
def service(engine, bare_settings, cache, clock):
    return SyncService(bare_settings, engine, build_clients(bare_settings, cache=cache), cache=cache, clock=clock)


@pytest.mark.asyncio
async def test_scheduled_sync_runs_once_per_day(service):
    first = await run_sync(SCHEDULED, service=service)
    assert first["status"] == "started"
    assert first["processed"] == 0
    second = await run_sync(SCHEDULED, service=service)
    assert second == {"status": "already_completed", "retry_after": 0}


def test_cleanup_skips_while_sync_runs(service):
    service.controller.try_start(MANUAL)
    assert run_cleanup(service=service) == {"status": "busy"}


def test_cleanup_reports_counts(service):
    assert run_cleanup(service=service) == {"status": "ok", "expired": 0, "duplicates": 0}


def test_reset_state_clears_gate_and_cache(service, cache):
    cache.put("awin:promotions:777:SE", [])
    service.controller.try_start(MANUAL)
    service.reset_state()
    assert cache.get("awin:promotions:777:SE") is None
    assert service.controller.try_start(MANUAL).started
