"""Time-boxed response cache shared through a JSON file."""

from __future__ import annotations

import json
import logging
import pathlib
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

CACHE_PATH = pathlib.Path(".cache/responses.json")
DEFAULT_TTL = 60 * 60


class ResponseCache:
    def __init__(self, path: pathlib.Path = CACHE_PATH, *, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self._clock = clock

    def get(self, key: str) -> Any | None:
        entry = self._load().get(key)
        if entry is None:
            return None
        return entry.get("value")

    def put(self, key: str, value: Any, ttl: float = DEFAULT_TTL) -> None:
        data = self._load()
        data[key] = {"value": value, "expires_at": self._clock() + ttl}
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._write(data)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning("Invalid response cache at %s; resetting", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Invalid response cache at %s; resetting", self.path)
            return {}
        now = self._clock()
        return {
            key: entry
            for key, entry in data.items()
            if isinstance(entry, dict) and entry.get("expires_at", 0) > now
        }

    def _write(self, data: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data))
        tmp.replace(self.path)
