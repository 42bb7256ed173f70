import os
from dataclasses import dataclass, field
from typing import Callable, Literal, Optional

Status = Literal["ok", "warning", "error"]


@dataclass(frozen=True)
class ValidationResult:
    check: str
    status: Status
    message: str
    details: Optional[str] = None


@dataclass(frozen=True)
class PortBinding:
    host_port: int
    protocol: str
    owner: str
    owner_id: str = ""


@dataclass(frozen=True)
class EngineState:
    """Snapshot of the engine facts pre-flight validation looks at."""
    port_bindings: tuple[PortBinding, ...] = ()
    container_names: frozenset[str] = frozenset()
    image_present: Optional[bool] = None
    path_exists: Callable[[str], bool] = field(default=os.path.exists, compare=False)
