from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Stage(str, Enum):
    RECEIVED = "received"
    REPLACE = "replace"
    PULL = "pull"
    VOLUMES = "volumes"
    CREATE = "create"
    START = "start"
    COMPLETE = "complete"
    FAILED = "failed"


# Legal successors of every stage. FAILED is reachable from any non-terminal stage.
TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.RECEIVED: frozenset({Stage.REPLACE, Stage.PULL, Stage.FAILED}),
    Stage.REPLACE: frozenset({Stage.PULL, Stage.FAILED}),
    Stage.PULL: frozenset({Stage.VOLUMES, Stage.FAILED}),
    Stage.VOLUMES: frozenset({Stage.CREATE, Stage.FAILED}),
    Stage.CREATE: frozenset({Stage.START, Stage.FAILED}),
    Stage.START: frozenset({Stage.COMPLETE, Stage.FAILED}),
    Stage.COMPLETE: frozenset(),
    Stage.FAILED: frozenset(),
}


class IllegalTransition(RuntimeError):
    pass


class SessionClosed(RuntimeError):
    pass


@dataclass(frozen=True)
class DeployStep:
    """Structured status for one stage. Re-emitting a stage supersedes its previous status."""
    step: Stage
    message: str
    error: bool = False
    complete: bool = False
    container_id: Optional[str] = None
    container_name: Optional[str] = None

    def to_wire(self) -> dict:
        payload = {"step": self.step.value, "message": self.message, "error": self.error}
        if self.complete:
            payload["complete"] = True
        if self.container_id is not None:
            payload["container_id"] = self.container_id
        if self.container_name is not None:
            payload["container_name"] = self.container_name
        return payload


@dataclass(frozen=True)
class StepOutput:
    """One raw line of engine output, relayed under the stage that produced it."""
    step: Stage
    line: str

    def to_wire(self) -> dict:
        return {"step": self.step.value, "message": self.line, "error": False, "output": True}


DeployEvent = Union[DeployStep, StepOutput]


@dataclass
class DeploySession:
    replace_id: Optional[str] = None
    stage: Stage = Stage.RECEIVED
    container_id: Optional[str] = None
    events: list = field(default_factory=list)
    closed: bool = False

    @property
    def failed(self) -> bool:
        return self.stage is Stage.FAILED

    def advance(self, stage: Stage) -> None:
        if self.closed or stage not in TRANSITIONS[self.stage]:
            raise IllegalTransition(f"{self.stage.value} -> {stage.value}")
        self.stage = stage

    def record(self, event: DeployEvent) -> DeployEvent:
        """Append an emission to the log. Nothing may follow an error or the final step."""
        if self.closed:
            raise SessionClosed(f"session already {self.stage.value}")
        if event.step is not self.stage:
            raise IllegalTransition(f"{event.step.value} emitted during {self.stage.value}")
        self.events.append(event)
        if isinstance(event, DeployStep):
            if event.error:
                self.advance(Stage.FAILED)
                self.closed = True
            elif event.step is Stage.COMPLETE and event.complete:
                self.closed = True
        return event
