import asyncio
from typing import AsyncIterator, Optional

import structlog

from stardeck.domain.deploy import DeployEvent, DeploySession, DeployStep, Stage, StepOutput
from stardeck.domain.errors import EngineInvocationError
from stardeck.domain.ports import ContainerEngine
from stardeck.schemas.container import ContainerSpec, normalize

logger = structlog.get_logger(__name__)


class DeployController:
    """Turns a ContainerSpec into a running container, one stage at a time.

    ``deploy`` is an async generator: every status it yields has already been
    recorded on the session, and the first error step is the last thing it yields.
    Stages already applied are never undone.
    """

    def __init__(self, engine: ContainerEngine):
        self.engine = engine

    async def deploy(
        self,
        spec: ContainerSpec,
        *,
        replace_id: Optional[str] = None,
        cancelled: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[DeployEvent]:
        spec = normalize(spec)
        session = DeploySession(replace_id=replace_id)
        log = logger.bind(image=spec.image, name=spec.name, replace_id=replace_id)

        plan = [
            (Stage.PULL, self._pull),
            (Stage.VOLUMES, self._volumes),
            (Stage.CREATE, self._create),
            (Stage.START, self._start),
            (Stage.COMPLETE, self._complete),
        ]
        if replace_id:
            plan.insert(0, (Stage.REPLACE, self._replace))

        for stage, run in plan:
            if cancelled is not None and cancelled.is_set():
                log.info("Observer gone, not starting next stage", stage=stage.value)
                return
            session.advance(stage)
            async for event in run(session, spec):
                yield session.record(event)
            if session.failed:
                log.warning("Deploy failed", stage=stage.value)
                return

        log.info("Deploy complete", container_id=session.container_id)

    # -------------------------------
    # Stages
    # -------------------------------
    async def _replace(self, session: DeploySession, spec: ContainerSpec):
        old_id = session.replace_id
        yield DeployStep(Stage.REPLACE, "Stopping existing container...")
        try:
            await self.engine.stop(old_id)
        except EngineInvocationError as e:
            # Already stopped is expected here.
            logger.info("Stop before replace failed, continuing", container_id=old_id, error=str(e))

        try:
            await self.engine.remove(old_id, force=True)
        except EngineInvocationError as e:
            yield DeployStep(Stage.REPLACE, f"Failed to remove existing container: {e}", error=True)
            return
        yield DeployStep(Stage.REPLACE, "Existing container removed", complete=True)

    async def _pull(self, session: DeploySession, spec: ContainerSpec):
        yield DeployStep(Stage.PULL, "Checking for image...")
        try:
            present = await self.engine.image_exists(spec.image)
        except EngineInvocationError as e:
            yield DeployStep(Stage.PULL, f"Failed to check image: {e}", error=True)
            return
        if present:
            yield DeployStep(Stage.PULL, "Image found locally", complete=True)
            return

        yield DeployStep(Stage.PULL, "Pulling image from registry...")
        try:
            async for line in self.engine.pull(spec.image):
                yield StepOutput(Stage.PULL, line)
        except EngineInvocationError as e:
            yield DeployStep(Stage.PULL, f"Failed to pull image: {e}", error=True)
            return
        yield DeployStep(Stage.PULL, "Image pulled successfully", complete=True)

    async def _volumes(self, session: DeploySession, spec: ContainerSpec):
        wanted = spec.managed_volumes
        if not wanted:
            yield DeployStep(Stage.VOLUMES, "No volumes to create", complete=True)
            return

        yield DeployStep(Stage.VOLUMES, "Creating volumes...")
        try:
            existing = {v.get("name") for v in await self.engine.volume_list()}
        except EngineInvocationError as e:
            yield DeployStep(Stage.VOLUMES, f"Failed to list volumes: {e}", error=True)
            return

        created = 0
        for volume in wanted:
            if volume.volume_name in existing:
                continue
            try:
                await self.engine.volume_create(volume.volume_name)
            except EngineInvocationError as e:
                yield DeployStep(Stage.VOLUMES, f"Failed to create volume '{volume.volume_name}': {e}", error=True)
                return
            existing.add(volume.volume_name)
            created += 1
        yield DeployStep(Stage.VOLUMES, f"Volumes ready ({created} created)", complete=True)

    async def _create(self, session: DeploySession, spec: ContainerSpec):
        yield DeployStep(Stage.CREATE, "Creating container...")
        try:
            session.container_id = await self.engine.create(spec)
        except EngineInvocationError as e:
            yield DeployStep(Stage.CREATE, f"Failed to create container: {e}", error=True)
            return
        yield DeployStep(Stage.CREATE, "Container created", complete=True, container_id=session.container_id)

    async def _start(self, session: DeploySession, spec: ContainerSpec):
        if not spec.auto_start:
            yield DeployStep(Stage.START, "Auto-start disabled, container left stopped", complete=True)
            return

        yield DeployStep(Stage.START, "Starting container...")
        try:
            await self.engine.start(session.container_id)
        except EngineInvocationError as e:
            yield DeployStep(Stage.START, f"Failed to start container: {e}", error=True)
            return
        yield DeployStep(Stage.START, "Container started", complete=True)

    async def _complete(self, session: DeploySession, spec: ContainerSpec):
        yield DeployStep(
            Stage.COMPLETE,
            "Container deployed successfully!",
            complete=True,
            container_id=session.container_id,
            container_name=spec.name,
        )
