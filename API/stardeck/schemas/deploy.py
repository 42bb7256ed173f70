from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional


class ValidationResultResponse(BaseModel):
    check: str
    status: Literal["ok", "warning", "error"]
    message: str
    details: Optional[str] = None


class DeployLogEntryResponse(BaseModel):
    seq: int
    step: str
    message: str
    error: bool
    complete: bool
    output: bool


class DeployLogResponse(BaseModel):
    id: UUID
    image: str
    name: Optional[str]
    replace_id: Optional[str]
    container_id: Optional[str]
    outcome: Literal["running", "complete", "failed", "abandoned"]
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    entries: list[DeployLogEntryResponse] = []


class EngineInfoResponse(BaseModel):
    available: bool
    version: Optional[str] = None
    api_version: Optional[str] = None
    error: Optional[str] = None
