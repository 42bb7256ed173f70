import asyncio
from typing import AsyncIterator, List, Optional

import docker
import structlog
from docker.errors import DockerException, NotFound
from docker.types import Mount
from docker.utils import parse_repository_tag
from requests.exceptions import RequestException

from stardeck.core.config import Settings
from stardeck.domain.errors import EngineInvocationError, ImageNotFoundError
from stardeck.domain.ports import ContainerEngine
from stardeck.domain.validation import PortBinding
from stardeck.schemas.container import BindMount, ContainerSpec

logger = structlog.get_logger(__name__)

_PULL_DONE = object()

# The SDK only wraps HTTP errors; transport failures surface as requests exceptions.
ENGINE_ERRORS = (DockerException, RequestException)

# Pull workers outlive an abandoned session; keep them referenced until they finish.
_pull_workers: set = set()


def split_image_ref(image: str) -> tuple[str, str]:
    """``nginx`` -> (``nginx``, ``latest``); digests are kept as the tag part."""
    repository, tag = parse_repository_tag(image)
    return repository, tag or "latest"


def format_pull_event(event: dict) -> str:
    """Render one decoded pull progress event the way the engine CLI prints it."""
    parts = []
    if event.get("id"):
        parts.append(f"{event['id']}:")
    if event.get("status"):
        parts.append(event["status"])
    if event.get("progress"):
        parts.append(event["progress"])
    return " ".join(parts)


def desktop_labels(spec: ContainerSpec) -> dict[str, str]:
    labels = dict(spec.labels)
    if spec.has_web_ui:
        labels["stardeck.webui"] = "true"
        if spec.web_ui_port:
            labels["stardeck.webui.port"] = str(spec.web_ui_port)
        if spec.web_ui_path:
            labels["stardeck.webui.path"] = spec.web_ui_path
    for key, value in (
        ("stardeck.icon", spec.icon),
        ("stardeck.icon.light", spec.icon_light),
        ("stardeck.icon.dark", spec.icon_dark),
    ):
        if value:
            labels[key] = value
    return labels


def build_create_kwargs(spec: ContainerSpec) -> dict:
    """Translate a normalized spec into ``containers.create`` keyword arguments."""
    kwargs: dict = {
        "image": spec.image,
        "detach": True,
        "environment": dict(spec.environment),
        "labels": desktop_labels(spec),
        "network_mode": spec.network_mode,
        "restart_policy": {"Name": spec.restart_policy},
        "privileged": spec.privileged,
    }
    if spec.name:
        kwargs["name"] = spec.name
    if spec.ports:
        kwargs["ports"] = {
            f"{p.container_port}/{p.protocol}": (p.host_port or None) for p in spec.ports
        }
    if spec.volumes:
        kwargs["mounts"] = [
            Mount(
                target=v.target,
                source=v.source,
                type="bind" if isinstance(v, BindMount) else "volume",
                read_only=v.read_only,
            )
            for v in spec.volumes
        ]
    if spec.command:
        kwargs["command"] = list(spec.command)
    if spec.entrypoint:
        kwargs["entrypoint"] = list(spec.entrypoint)
    if spec.work_dir:
        kwargs["working_dir"] = spec.work_dir
    if spec.user:
        kwargs["user"] = spec.user
    if spec.hostname:
        kwargs["hostname"] = spec.hostname
    if spec.cpu_limit:
        kwargs["nano_cpus"] = int(spec.cpu_limit * 1e9)
    if spec.memory_limit:
        kwargs["mem_limit"] = spec.memory_limit
    return kwargs


def container_display_name(summary: dict) -> str:
    """First name of a ``GET /containers/json`` entry, without the leading slash."""
    names = summary.get("Names") or []
    if names:
        return names[0].lstrip("/")
    return (summary.get("Id") or "")[:12]


def parse_port_bindings(container_name: str, container_id: str, ports: Optional[list]) -> List[PortBinding]:
    """``Ports`` of a container list entry -> one binding per published (host_port, protocol)."""
    seen: set[tuple[int, str]] = set()
    bindings = []
    for port in ports or []:
        try:
            host_port = int(port.get("PublicPort") or 0)
        except (TypeError, ValueError):
            continue
        protocol = (port.get("Type") or "tcp").lower()
        if not host_port or (host_port, protocol) in seen:
            continue
        seen.add((host_port, protocol))
        bindings.append(PortBinding(host_port, protocol, container_name, container_id))
    return bindings


class DockerSDKRuntime(ContainerEngine):
    """Step executor over the docker SDK.

    The client is created on first use, in a worker thread, so neither building the
    runtime nor a stalled engine socket blocks the event loop. The engine version is
    cached after the first successful query.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self._docker_client: Optional[docker.DockerClient] = None
        self._connect_lock = asyncio.Lock()
        self._version: Optional[dict] = None

    def _connect(self) -> docker.DockerClient:
        if self.settings.DOCKER_BASE_URL:
            return docker.DockerClient(
                base_url=self.settings.DOCKER_BASE_URL,
                timeout=self.settings.DOCKER_TIMEOUT,
            )
        return docker.from_env(timeout=self.settings.DOCKER_TIMEOUT)

    async def client(self) -> docker.DockerClient:
        if self._docker_client is None:
            async with self._connect_lock:
                if self._docker_client is None:
                    try:
                        self._docker_client = await asyncio.to_thread(self._connect)
                    except ENGINE_ERRORS as e:
                        raise EngineInvocationError(f"Container engine not available: {e}")
                    logger.info("Docker client connected")
        return self._docker_client

    async def _call(self, func, *args, keep: tuple = (), **kwargs):
        """Run a blocking SDK call in a worker thread.

        Engine failures become EngineInvocationError, except the types in ``keep``
        that the caller handles itself.
        """
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except keep:
            raise
        except ENGINE_ERRORS as e:
            raise EngineInvocationError(str(e))

    async def version(self) -> dict:
        if self._version is None:
            client = await self.client()
            try:
                self._version = await self._call(client.version)
            except EngineInvocationError as e:
                raise EngineInvocationError(f"Engine version query failed: {e}")
        return self._version

    # -------------------------------
    # Image lifecycle
    # -------------------------------
    async def pull(self, image: str) -> AsyncIterator[str]:
        """Relay pull progress line by line.

        The blocking progress stream is drained in a worker thread that hands lines
        to the event loop, so the caller can keep emitting its own status.
        """
        repository, tag = split_image_ref(image)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        client = await self.client()

        def drain():
            try:
                for event in client.api.pull(repository, tag=tag, stream=True, decode=True):
                    if event.get("error"):
                        raise EngineInvocationError(event["error"])
                    line = format_pull_event(event)
                    if line:
                        loop.call_soon_threadsafe(queue.put_nowait, line)
            except Exception as e:
                loop.call_soon_threadsafe(queue.put_nowait, e)
            finally:
                loop.call_soon_threadsafe(queue.put_nowait, _PULL_DONE)

        worker = asyncio.create_task(asyncio.to_thread(drain))
        _pull_workers.add(worker)
        worker.add_done_callback(_pull_workers.discard)
        logger.info("Pulling image", image=image)
        while True:
            item = await queue.get()
            if item is _PULL_DONE:
                break
            if isinstance(item, EngineInvocationError):
                raise item
            if isinstance(item, Exception):
                raise EngineInvocationError(str(item))
            yield item
        await worker

    async def image_exists(self, image: str) -> bool:
        client = await self.client()
        try:
            await self._call(client.images.get, image, keep=(NotFound,))
        except NotFound:
            return False
        except EngineInvocationError as e:
            raise EngineInvocationError(f"Image lookup failed: {e}")
        return True

    async def inspect_image(self, image: str) -> dict:
        client = await self.client()
        try:
            docker_img = await self._call(client.images.get, image, keep=(NotFound,))
        except NotFound:
            raise ImageNotFoundError(f"Image not found locally: {image}")
        except EngineInvocationError as e:
            raise EngineInvocationError(f"Failed to inspect image: {e}")
        return docker_img.attrs.get("Config") or {}

    # -------------------------------
    # Volumes
    # -------------------------------
    async def volume_list(self) -> List[dict]:
        client = await self.client()
        try:
            volumes = await self._call(client.volumes.list)
        except EngineInvocationError as e:
            raise EngineInvocationError(f"Failed to list volumes: {e}")
        return [{"name": v.name, "driver": v.attrs.get("Driver", "")} for v in volumes]

    async def volume_create(self, name: str) -> None:
        client = await self.client()
        await self._call(client.volumes.create, name=name)

    # -------------------------------
    # Container lifecycle
    # -------------------------------
    async def _get_container(self, container_id: str):
        client = await self.client()
        return await self._call(client.containers.get, container_id)

    async def create(self, spec: ContainerSpec) -> str:
        client = await self.client()
        kwargs = build_create_kwargs(spec)
        container = await self._call(client.containers.create, **kwargs)
        return container.id

    async def start(self, container_id: str) -> None:
        container = await self._get_container(container_id)
        await self._call(container.start)

    async def stop(self, container_id: str) -> None:
        container = await self._get_container(container_id)
        await self._call(container.stop)

    async def remove(self, container_id: str, force: bool = False) -> None:
        container = await self._get_container(container_id)
        await self._call(container.remove, force=force)

    async def container_name(self, container_id: str) -> Optional[str]:
        client = await self.client()
        try:
            container = await self._call(client.containers.get, container_id, keep=(NotFound,))
        except NotFound:
            return None
        return container.name

    # -------------------------------
    # Listings for pre-flight validation: one list call each, no per-container fetch
    # -------------------------------
    async def _list_summaries(self, all: bool) -> List[dict]:
        client = await self.client()
        try:
            return await self._call(client.api.containers, all=all)
        except EngineInvocationError as e:
            raise EngineInvocationError(f"Failed to list containers: {e}")

    async def list_container_names(self) -> List[str]:
        return [container_display_name(c) for c in await self._list_summaries(all=True)]

    async def list_active_port_bindings(self) -> List[PortBinding]:
        bindings: List[PortBinding] = []
        for c in await self._list_summaries(all=False):
            bindings.extend(parse_port_bindings(container_display_name(c), c.get("Id", ""), c.get("Ports")))
        return bindings
