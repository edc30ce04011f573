"""Reel generation routes."""

import asyncio
import logging

from api.dependencies import (
    get_config,
    get_reel_store,
    get_reel_worker,
    get_storage,
    get_usage_service,
    ws_manager,
)
from api.reel_worker import ReelWorker
from api.schemas import (
    MessageResponse,
    ReelCreateRequest,
    ReelCreateResponse,
    ReelListResponse,
    ReelResponse,
    UsageLimitResponse,
)
from api.websocket_manager import reel_status_message
from fastapi import APIRouter, Depends, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from models.reel import ReelRequest, ReelStatus
from services.object_storage import ObjectStorage, StorageError
from services.reel_store import ReelStore
from services.usage_service import UsageCheck, UsageService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reels"])


def _limit_exceeded(check: UsageCheck) -> JSONResponse:
    body = UsageLimitResponse(
        message=(
            f"You have reached your monthly limit of {check.limit} reels on the "
            f"{check.plan_name}. Upgrade your plan to create more."
        ),
        details=check.to_dict(),
    )
    return JSONResponse(status_code=429, content=body.model_dump())


def _resolve_user(x_user_id: str | None, config: dict) -> str:
    return (x_user_id or "").strip() or config["default_user_id"]


@router.post(
    "/api/reels",
    response_model=ReelCreateResponse,
    summary="Generate a reel",
    description="Create a pending reel and queue it for generation. Returns immediately.",
    responses={429: {"model": UsageLimitResponse, "description": "Monthly reel limit reached"}},
)
async def create_reel(
    body: ReelCreateRequest,
    x_user_id: str | None = Header(default=None),
    config: dict = Depends(get_config),
    store: ReelStore = Depends(get_reel_store),
    usage: UsageService = Depends(get_usage_service),
    worker: ReelWorker = Depends(get_reel_worker),
):
    """Validate, check the quota, record the reel and hand it to the worker."""
    user_id = _resolve_user(x_user_id, config)

    check = await usage.check_limit(user_id)
    if not check.allowed:
        return _limit_exceeded(check)

    request = ReelRequest(
        product_id=body.product_id,
        title=body.title,
        user_id=user_id,
        photo_ids=body.photo_ids,
        video_ids=body.video_ids,
        script_id=body.script_id,
        voice_id=body.voice_id,
        font_size=body.font_size,
    )
    reel = await store.create_reel(request)
    await worker.enqueue(reel.id, request)

    logger.info(f"Reel {reel.id} queued for product {body.product_id} by {user_id}")
    return {
        "message": "Reel generation started",
        "reel_id": reel.id,
        "status": reel.status.value,
        "usage": check.to_dict(),
    }


@router.get(
    "/api/reels",
    response_model=ReelListResponse,
    summary="List reels",
)
async def list_reels(
    product_id: str | None = Query(default=None),
    status: ReelStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    store: ReelStore = Depends(get_reel_store),
) -> dict:
    reels = await store.list_reels(
        product_id=product_id, status=status.value if status else None, limit=limit
    )
    return {"reels": [r.to_dict() for r in reels], "total": len(reels)}


@router.get(
    "/api/reels/{reel_id}",
    response_model=ReelResponse,
    summary="Get reel status",
    responses={404: {"description": "Reel not found"}},
)
async def get_reel(reel_id: str, store: ReelStore = Depends(get_reel_store)) -> dict:
    reel = await store.get_reel(reel_id)
    if reel is None:
        raise HTTPException(status_code=404, detail=f"Reel {reel_id} not found")
    return reel.to_dict()


@router.post(
    "/api/reels/{reel_id}/retry",
    response_model=ReelCreateResponse,
    summary="Retry a reel",
    description="Re-run generation for a failed or stalled reel with its original inputs.",
    responses={
        404: {"description": "Reel not found"},
        409: {"description": "Reel completed, running, or has no stored inputs"},
        429: {"model": UsageLimitResponse, "description": "Monthly reel limit reached"},
    },
)
async def retry_reel(
    reel_id: str,
    store: ReelStore = Depends(get_reel_store),
    usage: UsageService = Depends(get_usage_service),
    worker: ReelWorker = Depends(get_reel_worker),
):
    """Reset the reel to pending and queue it again.

    Args:
        reel_id: Reel to retry

    Returns:
        Accepted response with the reel id
    """
    reel = await store.get_reel(reel_id)
    if reel is None:
        raise HTTPException(status_code=404, detail=f"Reel {reel_id} not found")
    if reel.status == ReelStatus.COMPLETED:
        raise HTTPException(status_code=409, detail="Reel already completed")
    if worker.is_busy(reel_id):
        raise HTTPException(status_code=409, detail="Reel is already being generated")
    if reel.request is None:
        raise HTTPException(status_code=409, detail="Reel has no stored inputs to retry with")

    check = await usage.check_limit(reel.user_id)
    if not check.allowed:
        return _limit_exceeded(check)

    reel = await store.reset_reel(reel_id)
    await worker.enqueue(reel_id, reel.request)

    logger.info(f"Reel {reel_id} re-queued for retry")
    return {
        "message": "Reel generation restarted",
        "reel_id": reel_id,
        "status": reel.status.value,
        "usage": check.to_dict(),
    }


@router.delete(
    "/api/reels/{reel_id}",
    response_model=MessageResponse,
    summary="Delete a reel",
    responses={404: {"description": "Reel not found"}, 409: {"description": "Reel is running"}},
)
async def delete_reel(
    reel_id: str,
    config: dict = Depends(get_config),
    store: ReelStore = Depends(get_reel_store),
    storage: ObjectStorage = Depends(get_storage),
    worker: ReelWorker = Depends(get_reel_worker),
) -> dict:
    """Delete the reel row, its audio rows and the rendered file."""
    if worker.is_busy(reel_id):
        raise HTTPException(status_code=409, detail="Reel is being generated")
    reel = await store.get_reel(reel_id)
    if reel is None or not await store.delete_reel(reel_id):
        raise HTTPException(status_code=404, detail=f"Reel {reel_id} not found")
    ws_manager.cleanup(reel_id)

    if reel.file_name:
        try:
            await asyncio.to_thread(storage.delete_object, config["output_bucket"], reel.file_name)
        except StorageError as e:
            logger.warning(f"Reel {reel_id} deleted but its file was left in storage: {e}")
    return {"message": f"Reel {reel_id} deleted"}


# =============================================================================
# Reel WebSocket
# =============================================================================


@router.websocket("/ws/reels/{reel_id}")
async def websocket_reel(websocket: WebSocket, reel_id: str) -> None:
    """Push status and progress changes for one reel.

    Args:
        websocket: WebSocket connection
        reel_id: Reel to monitor
    """
    store = await get_reel_store()
    reel = await store.get_reel(reel_id)
    if reel is None:
        await websocket.accept()
        await websocket.send_json({"type": "error", "message": "Reel not found"})
        await websocket.close()
        return

    await ws_manager.connect(reel_id, websocket)
    try:
        await websocket.send_json(reel_status_message(reel))
        while True:
            # Keep the connection open; clients may send pings
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(reel_id, websocket)
