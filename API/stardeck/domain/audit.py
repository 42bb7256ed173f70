from uuid import UUID, uuid4
from datetime import datetime, timezone
from dataclasses import dataclass, field


@dataclass
class DeployLogEntry:
    seq: int
    step: str
    message: str
    error: bool = False
    complete: bool = False
    output: bool = False


@dataclass
class DeployLog:
    id: UUID = field(default_factory=uuid4)
    image: str = ""
    name: str | None = None
    replace_id: str | None = None
    container_id: str | None = None
    outcome: str = "running"  # running / complete / failed / abandoned
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    entries: list[DeployLogEntry] = field(default_factory=list)
