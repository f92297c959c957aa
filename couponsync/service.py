"""Operations exposed to the API, the scheduler and scripts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

import httpx
from sqlalchemy.engine import Engine

from couponsync.config import Settings, load_settings
from couponsync.db.catalog import CatalogStore
from couponsync.db.migrate import run_migrations
from couponsync.db.session import create_engine_from_env
from couponsync.logic.dedup import DedupEngine, DedupReport
from couponsync.logic.expiration import ExpirationSweeper
from couponsync.logic.run_state import MANUAL, RunHandle, RunStateController, RunStatus, StartResult
from couponsync.logic.sync import BatchResult, SyncOrchestrator
from couponsync.providers import ProviderClients, build_clients
from couponsync.utils.cache import ResponseCache
from couponsync.utils.dates import utcnow
from couponsync.utils.notifications import NotificationLog
from couponsync.utils.retry import Sleep

logger = logging.getLogger(__name__)


class SyncService:
    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        clients: ProviderClients,
        *,
        cache: ResponseCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.clients = clients
        self.cache = cache
        self.catalog = CatalogStore(engine)
        self.notifications = NotificationLog(engine)
        self.controller = RunStateController(engine, self.notifications, clock=clock)
        self.orchestrator = SyncOrchestrator(settings, self.catalog, clients, self.controller, self.notifications)
        self.dedup = DedupEngine(self.catalog, self.controller)
        self.sweeper = ExpirationSweeper(self.catalog, self.controller)

    async def close(self) -> None:
        await self.clients.close()

    async def start_run(self, actor: str = MANUAL) -> StartResult:
        """Acquire the gate and run the full pipeline in this coroutine."""
        return await self.orchestrator.run(actor)

    def try_start(self, actor: str = MANUAL) -> StartResult:
        return self.controller.try_start(actor)

    async def execute(self, handle: RunHandle) -> None:
        await self.orchestrator.execute(handle)

    def request_stop(self) -> bool:
        return self.controller.request_stop()

    def get_status(self) -> RunStatus:
        return self.controller.status()

    def purge_expired(self, now: datetime | None = None) -> int:
        return self.sweeper.purge_expired(now)

    def purge_duplicates(self, dry_run: bool = True) -> DedupReport:
        return self.dedup.purge(dry_run=dry_run)

    async def test_provider_connection(self, provider: str) -> bool:
        client = self.clients.get(provider)
        ok = await client.test_connection()
        logger.info("Connection test for %s: %s", provider, "ok" if ok else "failed")
        return ok

    async def process_brand_batch(
        self, offset: int = 0, batch_size: int | None = None, *, after_id: int | None = None
    ) -> BatchResult:
        return await self.orchestrator.process_brand_batch(offset, batch_size, after_id=after_id)

    def reset_state(self) -> None:
        """Clear run flags and cached provider responses."""
        self.controller.reset()
        if self.cache is not None:
            self.cache.clear()
        logger.info("Processing flags and response cache cleared")


def build_service(
    engine: Engine | None = None,
    settings: Settings | None = None,
    *,
    session: httpx.AsyncClient | None = None,
    sleep: Sleep = asyncio.sleep,
    migrate: bool = True,
) -> SyncService:
    settings = settings or load_settings()
    engine = engine or create_engine_from_env()
    if migrate:
        run_migrations(engine)
    cache = ResponseCache(settings.cache_path)
    clients = build_clients(settings, cache=cache, session=session, sleep=sleep)
    return SyncService(settings, engine, clients, cache=cache)
