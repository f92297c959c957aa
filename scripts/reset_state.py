"""Clear run flags and cached provider responses."""

from __future__ import annotations

import asyncio

from couponsync.service import build_service
from couponsync.utils.logs import configure_logging


def main() -> None:
    service = build_service()
    configure_logging(service.settings.logging_enabled)
    try:
        service.reset_state()
    finally:
        asyncio.run(service.close())
    print("Run state and response cache cleared")


if __name__ == "__main__":
    main()
