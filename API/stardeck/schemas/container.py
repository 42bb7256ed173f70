import re
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from stardeck.schemas.image import ImageConfig

NETWORK_MODES = ("bridge", "host", "none")
RESTART_POLICIES = ("no", "always", "unless-stopped", "on-failure")
PROTOCOLS = ("tcp", "udp")

DEFAULT_NETWORK_MODE = "bridge"
DEFAULT_RESTART_POLICY = "no"
DEFAULT_WEB_UI_PATH = "/"


class PortMapping(BaseModel):
    host_port: int = Field(0, description="Host port, 0 lets the engine pick one")
    container_port: int
    protocol: str = "tcp"


class BindMount(BaseModel):
    type: Literal["bind"] = "bind"
    source: str = Field(..., description="Absolute host path")
    target: str
    read_only: bool = False

    @property
    def host_path(self) -> str:
        return self.source


class ManagedVolume(BaseModel):
    type: Literal["volume"] = "volume"
    source: str = Field(..., description="Engine volume name")
    target: str
    read_only: bool = False

    @property
    def volume_name(self) -> str:
        return self.source


VolumeMount = Annotated[Union[BindMount, ManagedVolume], Field(discriminator="type")]


class ContainerSpec(BaseModel):
    """Everything needed to turn an image into a running container."""

    name: Optional[str] = Field(None, description="Container name, generated by the engine when empty")
    image: str = Field("", description="Image reference, e.g. nginx:latest")
    auto_start: bool = False
    privileged: bool = False
    # Free strings so that pre-flight validation can report unknown values.
    network_mode: str = ""
    restart_policy: str = ""
    ports: list[PortMapping] = Field(default_factory=list)
    volumes: list[VolumeMount] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    command: Optional[list[str]] = None
    entrypoint: Optional[list[str]] = None
    work_dir: Optional[str] = None
    user: Optional[str] = None
    hostname: Optional[str] = None
    cpu_limit: Optional[float] = Field(None, description="CPU cores")
    memory_limit: Optional[int] = Field(None, description="Memory limit in bytes")

    # Desktop integration, passed through to the engine as labels only.
    has_web_ui: bool = False
    web_ui_port: Optional[int] = None
    web_ui_path: Optional[str] = None
    icon: Optional[str] = None
    icon_light: Optional[str] = None
    icon_dark: Optional[str] = None

    @field_validator("volumes", mode="before")
    @classmethod
    def infer_volume_type(cls, value):
        if not isinstance(value, list):
            return value
        inferred = []
        for item in value:
            if isinstance(item, dict) and not item.get("type"):
                source = item.get("source") or ""
                item = {**item, "type": "bind" if source.startswith("/") else "volume"}
            inferred.append(item)
        return inferred

    @property
    def managed_volumes(self) -> list[ManagedVolume]:
        return [v for v in self.volumes if isinstance(v, ManagedVolume)]


def normalize(spec: ContainerSpec) -> ContainerSpec:
    """Return a canonical copy of ``spec``; the input is left untouched."""
    environment: dict[str, str] = {}
    for key, value in spec.environment.items():
        environment[key.strip().upper()] = value

    ports = [
        port.model_copy(update={"protocol": (port.protocol or "tcp").strip().lower()})
        for port in spec.ports
    ]

    return spec.model_copy(
        update={
            "image": spec.image.strip(),
            "name": (spec.name or "").strip() or None,
            "environment": environment,
            "ports": ports,
            "network_mode": spec.network_mode.strip() or DEFAULT_NETWORK_MODE,
            "restart_policy": spec.restart_policy.strip() or DEFAULT_RESTART_POLICY,
            "web_ui_path": spec.web_ui_path or DEFAULT_WEB_UI_PATH,
        },
        deep=True,
    )


def _slug(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]+", "-", value).strip("-.").lower() or "data"


def _image_basename(image: str) -> str:
    repo = image.split("@", 1)[0].rsplit("/", 1)[-1]
    return repo.split(":", 1)[0]


def merge(spec: ContainerSpec, image_config: ImageConfig) -> ContainerSpec:
    """Suggest values from an inspected image without overwriting anything already set."""
    ports = list(spec.ports)
    mapped = {(p.container_port, (p.protocol or "tcp").lower()) for p in ports}
    for exposed in image_config.exposed_ports:
        key = (exposed.port, exposed.protocol)
        if key in mapped:
            continue
        ports.append(PortMapping(host_port=exposed.port, container_port=exposed.port, protocol=exposed.protocol))
        mapped.add(key)

    environment = dict(spec.environment)
    known_keys = {k.upper() for k in environment}
    for var in image_config.environment:
        if var.key.upper() in known_keys:
            continue
        environment[var.key] = var.value if var.has_value else ""
        known_keys.add(var.key.upper())

    volumes = list(spec.volumes)
    targets = {v.target for v in volumes}
    prefix = _slug(spec.name or _image_basename(spec.image))
    for path in image_config.volumes:
        if path in targets:
            continue
        volumes.append(ManagedVolume(source=f"{prefix}-{_slug(path)}", target=path))
        targets.add(path)

    return spec.model_copy(
        update={
            "ports": ports,
            "environment": environment,
            "volumes": volumes,
            "work_dir": spec.work_dir or image_config.working_dir or None,
            "user": spec.user or image_config.user or None,
            "entrypoint": spec.entrypoint or (list(image_config.entrypoint) or None),
            "command": spec.command or (list(image_config.cmd) or None),
        },
        deep=True,
    )
