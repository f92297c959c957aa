"""Runtime settings."""

from __future__ import annotations

import logging
import os
import pathlib
from dataclasses import dataclass, field

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROMPTS_PATH = pathlib.Path(__file__).with_name("prompts.yml")

DEFAULT_TIMEOUT = 30.0
MIN_TIMEOUT = 15.0
MAX_TIMEOUT = 180.0


@dataclass(slots=True)
class Prompts:
    coupon_title: str
    brand_description: str
    why_we_love: str


@dataclass(slots=True)
class Settings:
    addrevenue_token: str | None = None
    addrevenue_channel_id: str = "3454851"
    awin_token: str | None = None
    awin_publisher_id: str | None = None
    region: str = "SE"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    yourls_url: str | None = None
    yourls_username: str | None = None
    yourls_password: str | None = None
    batch_size: int = 10
    api_timeout: float = DEFAULT_TIMEOUT
    logging_enabled: bool = True
    cache_path: pathlib.Path = pathlib.Path(".cache/responses.json")
    prompts: Prompts = field(default_factory=lambda: load_prompts())


def clamp_timeout(value: float | str | None) -> float:
    try:
        timeout = float(value) if value not in (None, "") else DEFAULT_TIMEOUT
    except (TypeError, ValueError):
        logger.warning("Invalid API timeout %r; using %s", value, DEFAULT_TIMEOUT)
        timeout = DEFAULT_TIMEOUT
    return min(max(timeout, MIN_TIMEOUT), MAX_TIMEOUT)


def load_prompts(path: pathlib.Path | None = None) -> Prompts:
    data = yaml.safe_load((path or PROMPTS_PATH).read_text()) or {}
    return Prompts(
        coupon_title=data["coupon_title"],
        brand_description=data["brand_description"],
        why_we_love=data["why_we_love"],
    )


def _flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    load_dotenv()
    env = os.environ
    prompts_path = env.get("PROMPTS_PATH")
    return Settings(
        addrevenue_token=env.get("ADDREVENUE_API_TOKEN") or None,
        addrevenue_channel_id=env.get("ADDREVENUE_CHANNEL_ID", "3454851"),
        awin_token=env.get("AWIN_API_TOKEN") or None,
        awin_publisher_id=env.get("AWIN_PUBLISHER_ID") or None,
        region=env.get("OFFER_REGION", "SE").upper(),
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
        yourls_url=env.get("YOURLS_URL") or None,
        yourls_username=env.get("YOURLS_USERNAME") or None,
        yourls_password=env.get("YOURLS_PASSWORD") or None,
        batch_size=max(int(env.get("BATCH_SIZE", "10")), 1),
        api_timeout=clamp_timeout(env.get("API_TIMEOUT")),
        logging_enabled=_flag(env.get("LOGGING_ENABLED"), True),
        cache_path=pathlib.Path(env.get("CACHE_PATH", ".cache/responses.json")),
        prompts=load_prompts(pathlib.Path(prompts_path) if prompts_path else None),
    )
