from functools import lru_cache

from fastapi import Depends

from stardeck.core.config import settings
from stardeck.domain.ports import ContainerEngine
from stardeck.repositories.deploy_log_repository import SQLDeployLogRepository
from stardeck.services.deploy_audit import DeployAuditor
from stardeck.services.deploy_controller import DeployController
from stardeck.services.docker_runtime import DockerSDKRuntime
from stardeck.services.image_inspector import ImageInspector
from stardeck.services.validation_service import ValidationService


# One engine handle per process. It connects lazily, so this never blocks startup.
@lru_cache
def get_engine() -> ContainerEngine:
    return DockerSDKRuntime(settings)


def get_deploy_controller(engine: ContainerEngine = Depends(get_engine)) -> DeployController:
    return DeployController(engine)


def get_image_inspector(engine: ContainerEngine = Depends(get_engine)) -> ImageInspector:
    return ImageInspector(engine)


def get_validation_service(engine: ContainerEngine = Depends(get_engine)) -> ValidationService:
    return ValidationService(engine)


@lru_cache
def get_deploy_auditor() -> DeployAuditor:
    return DeployAuditor(SQLDeployLogRepository())
