"""FastAPI control surface for sync runs and maintenance."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from couponsync.errors import SyncBusyError
from couponsync.logic.run_state import MANUAL, RunHandle, StartStatus
from couponsync.providers import PROVIDER_NAMES
from couponsync.service import SyncService, build_service

logger = logging.getLogger(__name__)

app = FastAPI(title="CouponSync API")


class BatchRequest(BaseModel):
    offset: int = Field(default=0, ge=0)
    batch_size: int | None = Field(default=None, ge=1)
    after_id: int | None = Field(default=None, ge=0)


class NotificationOut(BaseModel):
    id: int
    kind: str
    payload: dict[str, Any]
    created_at: str
    read: bool


async def get_service() -> AsyncIterator[SyncService]:
    service = build_service()
    try:
        yield service
    finally:
        await service.close()


async def _run_in_background(service: SyncService, handle: RunHandle) -> None:
    runner = build_service(service.engine, service.settings, migrate=False)
    try:
        await runner.execute(handle)
    finally:
        await runner.close()


@app.post("/runs", status_code=202)
async def start_run(background: BackgroundTasks, service: SyncService = Depends(get_service)) -> JSONResponse:
    result = service.try_start(MANUAL)
    if result.status is StartStatus.RATE_LIMITED:
        return JSONResponse(
            {"status": result.status.value, "retry_after": result.retry_after},
            status_code=429,
            headers={"Retry-After": str(result.retry_after)},
        )
    if not result.started:
        return JSONResponse({"status": result.status.value}, status_code=409)
    background.add_task(_run_in_background, service, result.handle)
    return JSONResponse({"status": result.status.value, "run_id": result.handle.run_id}, status_code=202)


@app.post("/runs/stop")
async def stop_run(service: SyncService = Depends(get_service)) -> JSONResponse:
    return JSONResponse({"stop_requested": service.request_stop()})


@app.get("/runs/status")
async def run_status(service: SyncService = Depends(get_service)) -> JSONResponse:
    return JSONResponse(service.get_status().to_dict())


@app.post("/maintenance/expired")
async def purge_expired(service: SyncService = Depends(get_service)) -> JSONResponse:
    try:
        deleted = service.purge_expired()
    except SyncBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return JSONResponse({"deleted": deleted})


@app.post("/maintenance/duplicates")
async def purge_duplicates(
    dry_run: bool = Query(True),
    service: SyncService = Depends(get_service),
) -> JSONResponse:
    try:
        report = service.purge_duplicates(dry_run=dry_run)
    except SyncBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return JSONResponse(report.to_dict())


@app.get("/providers/{name}/test")
async def test_provider(name: str, service: SyncService = Depends(get_service)) -> JSONResponse:
    if name not in PROVIDER_NAMES:
        raise HTTPException(status_code=404, detail=f"Unknown provider {name}")
    ok = await service.test_provider_connection(name)
    return JSONResponse({"provider": name, "ok": ok})


@app.post("/brands/batch")
async def brand_batch(payload: BatchRequest, service: SyncService = Depends(get_service)) -> JSONResponse:
    result = await service.process_brand_batch(payload.offset, payload.batch_size, after_id=payload.after_id)
    return JSONResponse(result.to_dict())


@app.get("/notifications", response_model=list[NotificationOut])
async def list_notifications(
    unread_only: bool = Query(False),
    service: SyncService = Depends(get_service),
) -> list[NotificationOut]:
    items = service.notifications.unread() if unread_only else service.notifications.all()
    return [
        NotificationOut(
            id=item.id,
            kind=item.kind,
            payload=item.payload,
            created_at=item.created_at.isoformat(),
            read=item.read,
        )
        for item in items
    ]


@app.post("/notifications/read")
async def mark_notifications_read(service: SyncService = Depends(get_service)) -> JSONResponse:
    return JSONResponse({"marked": service.notifications.mark_all_read()})


@app.delete("/notifications")
async def clear_notifications(service: SyncService = Depends(get_service)) -> JSONResponse:
    service.notifications.clear()
    return JSONResponse({"status": "ok"})
