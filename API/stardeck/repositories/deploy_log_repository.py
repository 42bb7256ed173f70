from uuid import UUID
from sqlalchemy import select, insert, update

from stardeck.core.database import database
from stardeck.models.db import DeployLogDB, DeployLogEntryDB
from stardeck.domain.audit import DeployLog, DeployLogEntry
from stardeck.domain.ports import DeployLogRepository


def _to_log(row) -> DeployLog:
    return DeployLog(
        id=UUID(row["id"]),
        image=row["image"],
        name=row["name"],
        replace_id=row["replace_id"],
        container_id=row["container_id"],
        outcome=row["outcome"],
        started_at=row["started_at"],
        finished_at=row["finished_at"],
    )


class SQLDeployLogRepository(DeployLogRepository):
    async def create(self, log: DeployLog) -> None:
        await database.execute(
            insert(DeployLogDB).values(
                id=str(log.id),
                image=log.image,
                name=log.name,
                replace_id=log.replace_id,
                outcome=log.outcome,
                started_at=log.started_at,
            )
        )

    async def append(self, log_id: UUID, entry: DeployLogEntry) -> None:
        await database.execute(
            insert(DeployLogEntryDB).values(
                log_id=str(log_id),
                seq=entry.seq,
                step=entry.step,
                message=entry.message,
                error=entry.error,
                complete=entry.complete,
                output=entry.output,
            )
        )

    async def finish(self, log: DeployLog) -> None:
        await database.execute(
            update(DeployLogDB)
            .where(DeployLogDB.id == str(log.id))
            .values(
                container_id=log.container_id,
                outcome=log.outcome,
                finished_at=log.finished_at,
            )
        )

    async def get(self, log_id: UUID) -> DeployLog | None:
        row = await database.fetch_one(
            select(DeployLogDB).where(DeployLogDB.id == str(log_id))
        )
        if not row:
            return None

        log = _to_log(row)
        rows = await database.fetch_all(
            select(DeployLogEntryDB)
            .where(DeployLogEntryDB.log_id == str(log_id))
            .order_by(DeployLogEntryDB.seq)
        )
        log.entries = [
            DeployLogEntry(
                seq=r["seq"],
                step=r["step"],
                message=r["message"],
                error=r["error"],
                complete=r["complete"],
                output=r["output"],
            )
            for r in rows
        ]
        return log

    async def list(self, limit: int = 50) -> list[DeployLog]:
        rows = await database.fetch_all(
            select(DeployLogDB).order_by(DeployLogDB.started_at.desc()).limit(limit)
        )
        return [_to_log(r) for r in rows]
