from typing import AsyncIterator, Protocol, List
from uuid import UUID

from stardeck.domain.audit import DeployLog, DeployLogEntry
from stardeck.domain.validation import PortBinding
from stardeck.schemas.container import ContainerSpec


class ContainerEngine(Protocol):
    # -------------------------------
    # Images
    # -------------------------------
    def pull(self, image: str) -> AsyncIterator[str]:
        """Pull an image, yielding progress lines as the engine produces them.
        Raises EngineInvocationError when the pull fails."""
        ...

    async def image_exists(self, image: str) -> bool:
        """Check if the image is present locally at the requested tag."""
        ...

    async def inspect_image(self, image: str) -> dict:
        """Return the raw image configuration (the engine's ``Config`` block)."""
        ...

    # -------------------------------
    # Volumes
    # -------------------------------
    async def volume_list(self) -> List[dict]:
        """List managed volumes, each a dict with at least ``name``."""
        ...

    async def volume_create(self, name: str) -> None:
        ...

    # -------------------------------
    # Containers
    # -------------------------------
    async def create(self, spec: ContainerSpec) -> str:
        """Create (but do not start) a container. Returns the engine id."""
        ...

    async def start(self, container_id: str) -> None:
        ...

    async def stop(self, container_id: str) -> None:
        ...

    async def remove(self, container_id: str, force: bool = False) -> None:
        ...

    async def container_name(self, container_id: str) -> str | None:
        """Name of an existing container, None if it does not exist."""
        ...

    async def list_container_names(self) -> List[str]:
        ...

    async def list_active_port_bindings(self) -> List[PortBinding]:
        """Host ports currently published by running containers."""
        ...

    async def version(self) -> dict:
        ...


class DeployLogRepository(Protocol):
    async def create(self, log: DeployLog) -> None: ...

    async def append(self, log_id: UUID, entry: DeployLogEntry) -> None: ...

    async def finish(self, log: DeployLog) -> None: ...

    async def get(self, log_id: UUID) -> DeployLog | None: ...

    async def list(self, limit: int = 50) -> List[DeployLog]: ...
