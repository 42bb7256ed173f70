from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional
from uuid import UUID

import structlog

from stardeck.domain.audit import DeployLog, DeployLogEntry
from stardeck.domain.deploy import DeployEvent, DeployStep, Stage, StepOutput
from stardeck.domain.ports import DeployLogRepository
from stardeck.schemas.container import ContainerSpec

logger = structlog.get_logger(__name__)


def to_entry(seq: int, event: DeployEvent) -> DeployLogEntry:
    if isinstance(event, StepOutput):
        return DeployLogEntry(seq=seq, step=event.step.value, message=event.line, output=True)
    return DeployLogEntry(
        seq=seq,
        step=event.step.value,
        message=event.message,
        error=event.error,
        complete=event.complete,
    )


class DeployAuditor:
    """Persists the ordered emission log of every deploy session.

    Storage failures are logged and never reach the deploy stream.
    """

    def __init__(self, repo: DeployLogRepository):
        self.repo = repo

    async def record(
        self,
        spec: ContainerSpec,
        events: AsyncIterator[DeployEvent],
        *,
        replace_id: Optional[str] = None,
    ) -> AsyncIterator[DeployEvent]:
        log = DeployLog(image=spec.image, name=spec.name, replace_id=replace_id)
        await self._safely("create", self.repo.create(log))

        seq = 0
        try:
            async for event in events:
                seq += 1
                entry = to_entry(seq, event)
                log.entries.append(entry)
                if isinstance(event, DeployStep):
                    if event.error:
                        log.outcome = "failed"
                    elif event.step is Stage.COMPLETE and event.complete:
                        log.outcome = "complete"
                    if event.container_id:
                        log.container_id = event.container_id
                await self._safely("append", self.repo.append(log.id, entry))
                yield event
        finally:
            if log.outcome == "running":
                log.outcome = "abandoned"
            log.finished_at = datetime.now(timezone.utc)
            await self._safely("finish", self.repo.finish(log))
            logger.info("Deploy session recorded", session_id=str(log.id), outcome=log.outcome, steps=seq)

    async def _safely(self, action: str, awaitable) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.warning("Deploy audit write failed", action=action, error=str(e))

    async def get(self, log_id: UUID) -> DeployLog:
        log = await self.repo.get(log_id)
        if not log:
            raise ValueError("Deploy log not found")
        return log

    async def list(self, limit: int = 50) -> List[DeployLog]:
        return await self.repo.list(limit)
