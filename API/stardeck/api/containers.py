import asyncio
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from stardeck.api.dependencies import get_deploy_auditor, get_deploy_controller, get_validation_service
from stardeck.api.sessions import CLOSE_PROTOCOL_ERROR, receive_model, watch_disconnect
from stardeck.domain.errors import EngineInvocationError, ProtocolError
from stardeck.schemas.container import ContainerSpec
from stardeck.schemas.deploy import ValidationResultResponse
from stardeck.services.deploy_audit import DeployAuditor
from stardeck.services.deploy_controller import DeployController
from stardeck.services.validation_service import ValidationService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/containers", tags=["containers"])


@router.post(
    "/validate",
    response_model=List[ValidationResultResponse],
    response_model_exclude_none=True,
    summary="Pre-flight checks for a container spec",
)
async def validate_container(
    payload: ContainerSpec,
    replace: Optional[str] = Query(None, description="Container being replaced in edit mode"),
    validation_service: ValidationService = Depends(get_validation_service),
):
    try:
        results = await validation_service.validate(payload, replace_id=replace)
    except EngineInvocationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return [ValidationResultResponse.model_validate(r, from_attributes=True) for r in results]


@router.websocket("/deploy")
async def deploy_container(
    websocket: WebSocket,
    replace: Optional[str] = None,
    controller: DeployController = Depends(get_deploy_controller),
    auditor: DeployAuditor = Depends(get_deploy_auditor),
):
    await websocket.accept()
    try:
        spec = await receive_model(websocket, ContainerSpec)
    except ProtocolError as e:
        logger.warning("Rejected deploy request", error=str(e))
        await websocket.close(code=CLOSE_PROTOCOL_ERROR)
        return

    cancelled = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(websocket, cancelled))
    deployment = controller.deploy(spec, replace_id=replace, cancelled=cancelled)
    events = auditor.record(spec, deployment, replace_id=replace)
    try:
        # Drain to the next stage boundary even after the observer leaves.
        async for event in events:
            if not cancelled.is_set():
                await websocket.send_json(event.to_wire())
        if not cancelled.is_set():
            await websocket.close()
    except WebSocketDisconnect:
        cancelled.set()
        logger.info("Deploy observer disconnected", image=spec.image)
    finally:
        watcher.cancel()
        await events.aclose()
        await deployment.aclose()
