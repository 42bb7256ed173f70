from fastapi import APIRouter, Depends

from stardeck.api.dependencies import get_engine
from stardeck.domain.errors import EngineInvocationError
from stardeck.domain.ports import ContainerEngine
from stardeck.schemas.deploy import EngineInfoResponse

router = APIRouter(prefix="/engine", tags=["engine"])


@router.get("", response_model=EngineInfoResponse, response_model_exclude_none=True)
async def engine_info(engine: ContainerEngine = Depends(get_engine)):
    try:
        info = await engine.version()
    except EngineInvocationError as e:
        return EngineInfoResponse(available=False, error=str(e))
    return EngineInfoResponse(
        available=True,
        version=info.get("Version"),
        api_version=info.get("ApiVersion"),
    )
