# stardeck/api/images.py
import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from stardeck.api.dependencies import get_image_inspector
from stardeck.api.sessions import CLOSE_PROTOCOL_ERROR, receive_model, watch_disconnect
from stardeck.domain.errors import ProtocolError
from stardeck.schemas.image import InspectMessage, InspectRequest
from stardeck.services.image_inspector import ImageInspector

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/images", tags=["images"])


# ---------------------------
# Inspect an image, streaming pull progress
# ---------------------------
@router.websocket("/inspect")
async def inspect_image_stream(
    websocket: WebSocket,
    inspector: ImageInspector = Depends(get_image_inspector),
):
    await websocket.accept()
    try:
        request = await receive_model(websocket, InspectRequest)
    except ProtocolError as e:
        logger.warning("Rejected inspect request", error=str(e))
        await websocket.close(code=CLOSE_PROTOCOL_ERROR)
        return

    if not request.image.strip():
        await websocket.send_json(InspectMessage(status="error", error="image is required").to_wire())
        await websocket.close()
        return

    cancelled = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(websocket, cancelled))
    messages = inspector.inspect(request.image.strip(), request.pull)
    try:
        async for message in messages:
            if cancelled.is_set():
                break
            await websocket.send_json(message.to_wire())
        if not cancelled.is_set():
            await websocket.close()
    except WebSocketDisconnect:
        logger.info("Inspect observer disconnected", image=request.image)
    finally:
        watcher.cancel()
        await messages.aclose()


# ---------------------------
# Inspect an image, final result only
# ---------------------------
@router.get(
    "/inspect",
    summary="Inspect an image",
    description="Returns the configuration hints of an image, pulling it first when pull=true.",
)
async def inspect_image(
    image: str = Query(..., description="Image reference, e.g. redis:7"),
    pull: bool = Query(False, description="Pull the image when it is not present locally"),
    inspector: ImageInspector = Depends(get_image_inspector),
):
    if not image.strip():
        raise HTTPException(status_code=400, detail="image parameter is required")

    result = await inspector.inspect_once(image.strip(), pull)
    if result.status == "error":
        raise HTTPException(status_code=500, detail=result.error)
    return result.to_wire()
