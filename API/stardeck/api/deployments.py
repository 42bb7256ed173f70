from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Query

from stardeck.api.dependencies import get_deploy_auditor
from stardeck.schemas.deploy import DeployLogResponse
from stardeck.services.deploy_audit import DeployAuditor

router = APIRouter(prefix="/deployments", tags=["deployments"])


@router.get("", response_model=list[DeployLogResponse])
async def list_deployments(
    limit: int = Query(50, ge=1, le=500),
    auditor: DeployAuditor = Depends(get_deploy_auditor),
):
    logs = await auditor.list(limit)
    return [DeployLogResponse.model_validate(log, from_attributes=True) for log in logs]


@router.get("/{session_id}", response_model=DeployLogResponse)
async def get_deployment(
    session_id: UUID,
    auditor: DeployAuditor = Depends(get_deploy_auditor),
):
    try:
        log = await auditor.get(session_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Deploy session not found")
    return DeployLogResponse.model_validate(log, from_attributes=True)
