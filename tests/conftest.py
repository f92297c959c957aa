from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from couponsync.config import Settings
from couponsync.db.catalog import CatalogStore
from couponsync.db.migrate import run_migrations
from couponsync.logic.run_state import RunStateController
from couponsync.utils.cache import ResponseCache
from couponsync.utils.notifications import NotificationLog


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        addrevenue_token="ar-token",
        addrevenue_channel_id="3454851",
        awin_token="awin-token",
        awin_publisher_id="777",
        region="SE",
        openai_api_key="sk-test",
        yourls_url="https://sho.rt/yourls-api.php",
        yourls_username="admin",
        yourls_password="secret",
        cache_path=tmp_path / "cache" / "responses.json",
    )


@pytest.fixture()
def bare_settings(tmp_path):
    return Settings(cache_path=tmp_path / "cache" / "responses.json")


@pytest.fixture()
def cache(tmp_path):
    return ResponseCache(tmp_path / "cache" / "responses.json")


@pytest.fixture()
def clock():
    return FakeClock(datetime(2024, 5, 10, 8, 0, 0))


@pytest.fixture()
def sleeper():
    return RecordingSleep()


@pytest.fixture()
def notifications(engine):
    return NotificationLog(engine)


@pytest.fixture()
def controller(engine, notifications, clock):
    return RunStateController(engine, notifications, clock=clock)


@pytest.fixture()
def catalog(engine):
    return CatalogStore(engine)
