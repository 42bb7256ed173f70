from typing import AsyncIterator, Optional

import structlog

from stardeck.domain.errors import EngineInvocationError, ImageNotFoundError
from stardeck.domain.ports import ContainerEngine
from stardeck.schemas.image import ImageConfig, ImageEnvVar, ImagePort, InspectMessage

logger = structlog.get_logger(__name__)


def parse_port_token(token: str) -> Optional[ImagePort]:
    """``"80/tcp"`` -> ImagePort(80, "tcp"); None for anything unparseable."""
    port, _, protocol = token.partition("/")
    try:
        number = int(port)
    except ValueError:
        return None
    if not 0 < number <= 65535:
        return None
    return ImagePort(port=number, protocol=protocol.lower() or "tcp")


def parse_env_token(token: str) -> Optional[ImageEnvVar]:
    key, sep, value = token.partition("=")
    if not key:
        return None
    return ImageEnvVar(key=key, value=value, has_value=bool(sep))


def _token_list(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def project_image_config(raw: dict) -> ImageConfig:
    """Project a raw image ``Config`` block onto ImageConfig.

    Malformed entries are dropped one by one; the rest of the configuration is still
    returned.
    """
    raw = raw or {}

    exposed_ports = []
    for token in raw.get("ExposedPorts") or {}:
        port = parse_port_token(str(token))
        if port is None:
            logger.debug("Dropping unparseable exposed port", token=token)
            continue
        exposed_ports.append(port)

    environment = []
    for token in raw.get("Env") or []:
        var = parse_env_token(str(token))
        if var is None:
            logger.debug("Dropping malformed environment entry", token=token)
            continue
        environment.append(var)

    # dict.fromkeys keeps first-seen order
    volumes = list(dict.fromkeys(str(path) for path in (raw.get("Volumes") or {})))

    labels = {str(k): str(v) for k, v in (raw.get("Labels") or {}).items()}

    return ImageConfig(
        exposed_ports=exposed_ports,
        environment=environment,
        volumes=volumes,
        labels=labels,
        working_dir=raw.get("WorkingDir") or "",
        user=raw.get("User") or "",
        entrypoint=_token_list(raw.get("Entrypoint")),
        cmd=_token_list(raw.get("Cmd")),
    )


class ImageInspector:
    """Optionally pull an image, then report its configuration hints."""

    def __init__(self, engine: ContainerEngine):
        self.engine = engine

    async def inspect(self, image: str, pull: bool = False) -> AsyncIterator[InspectMessage]:
        yield InspectMessage(status="connecting", message=f"Looking up {image}...")

        try:
            present = await self.engine.image_exists(image)
        except EngineInvocationError as e:
            yield InspectMessage(status="error", error=str(e))
            return

        if not present:
            if not pull:
                yield InspectMessage(status="not_found", found=False, error="Image not found locally")
                return

            yield InspectMessage(status="pulling", message="Pulling image...")
            try:
                async for line in self.engine.pull(image):
                    yield InspectMessage(status="pulling", output=line)
            except EngineInvocationError as e:
                logger.warning("Image pull failed", image=image, error=str(e))
                yield InspectMessage(status="error", error=f"Failed to pull image: {e}")
                return
            yield InspectMessage(status="pulled", message="Image pulled successfully")

        yield InspectMessage(status="inspecting", message="Inspecting image configuration...")
        try:
            raw = await self.engine.inspect_image(image)
        except ImageNotFoundError as e:
            yield InspectMessage(status="not_found", found=False, error=str(e))
            return
        except EngineInvocationError as e:
            yield InspectMessage(status="error", error=f"Failed to inspect image: {e}")
            return

        yield InspectMessage(status="complete", found=True, config=project_image_config(raw))

    async def inspect_once(self, image: str, pull: bool = False) -> InspectMessage:
        """Run an inspection to the end and return only its final message."""
        final = None
        async for message in self.inspect(image, pull):
            if message.output is None:
                final = message
        return final
