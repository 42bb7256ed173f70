import posixpath
from collections import Counter
from typing import List, Optional

import structlog

from stardeck.domain.ports import ContainerEngine
from stardeck.domain.validation import EngineState, ValidationResult
from stardeck.schemas.container import (
    NETWORK_MODES,
    PROTOCOLS,
    RESTART_POLICIES,
    BindMount,
    ContainerSpec,
    normalize,
)

logger = structlog.get_logger(__name__)


# -------------------------------
# Individual checks. Each returns every violation it finds.
# -------------------------------
def check_image(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    if not spec.image:
        return [ValidationResult("image", "error", "No image specified",
                                 "An image is required to create a container")]
    if state.image_present is False:
        return [ValidationResult("image", "warning", "Image not found locally",
                                 "Image will be pulled from registry during deployment")]
    if state.image_present:
        return [ValidationResult("image", "ok", "Image found locally", spec.image)]
    return []


def check_name(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    if not spec.name:
        return [ValidationResult("container_name", "warning", "No container name specified",
                                 "A random name will be generated")]
    if spec.name in state.container_names:
        return [ValidationResult("container_name", "error", "Container name already exists",
                                 f"A container named '{spec.name}' already exists")]
    return [ValidationResult("container_name", "ok", "Container name is available")]


def check_ports(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    results = []
    for port in spec.ports:
        if port.protocol not in PROTOCOLS:
            results.append(ValidationResult("ports", "error", "Unsupported protocol",
                                            f"'{port.protocol}' on container port {port.container_port}"))
        if not 1 <= port.container_port <= 65535:
            results.append(ValidationResult("ports", "error", "Container port out of range",
                                            str(port.container_port)))
        if not 0 <= port.host_port <= 65535:
            results.append(ValidationResult("ports", "error", "Host port out of range",
                                            str(port.host_port)))

    container_keys = Counter((p.container_port, p.protocol) for p in spec.ports)
    for (container_port, protocol), count in container_keys.items():
        for _ in range(count - 1):
            results.append(ValidationResult("ports", "error", "Duplicate container port",
                                            f"{container_port}/{protocol} is mapped more than once"))

    host_keys = Counter((p.host_port, p.protocol) for p in spec.ports if p.host_port)
    for (host_port, protocol), count in host_keys.items():
        for _ in range(count - 1):
            results.append(ValidationResult("ports", "error", "Duplicate host port",
                                            f"{host_port}/{protocol} is published more than once"))

    owners = {(b.host_port, b.protocol): b.owner for b in state.port_bindings}
    for port in spec.ports:
        owner = owners.get((port.host_port, port.protocol))
        if port.host_port and owner is not None:
            results.append(ValidationResult("ports", "error", "Port conflict",
                                            f"{port.host_port}/{port.protocol} is already used by container '{owner}'"))

    if spec.ports and not results:
        results.append(ValidationResult("ports", "ok", f"{len(spec.ports)} port mapping(s) configured"))
    return results


def check_volumes(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    results = []
    for volume in spec.volumes:
        if not volume.source:
            results.append(ValidationResult("volumes", "error", "Volume source is required",
                                            f"Mount at '{volume.target}' has no source"))
        if not posixpath.isabs(volume.target):
            results.append(ValidationResult("volumes", "error", "Volume target must be an absolute path",
                                            f"'{volume.target}' is not an absolute path"))
        if isinstance(volume, BindMount) and volume.source:
            if not posixpath.isabs(volume.source):
                results.append(ValidationResult("volumes", "error", "Bind mount source must be an absolute path",
                                                f"'{volume.source}' is not an absolute path"))
            elif not state.path_exists(volume.source):
                results.append(ValidationResult("volumes", "warning", "Host path does not exist",
                                                f"'{volume.source}' does not exist"))

    targets = Counter(v.target for v in spec.volumes)
    for target, count in targets.items():
        for _ in range(count - 1):
            results.append(ValidationResult("volumes", "error", "Duplicate volume target",
                                            f"'{target}' is mounted more than once"))

    if spec.volumes and not results:
        results.append(ValidationResult("volumes", "ok", f"{len(spec.volumes)} volume mount(s) configured"))
    return results


def check_resources(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    results = []
    if spec.cpu_limit is not None and spec.cpu_limit < 0:
        results.append(ValidationResult("resources", "error", "CPU limit cannot be negative", str(spec.cpu_limit)))
    if spec.memory_limit is not None and spec.memory_limit < 0:
        results.append(ValidationResult("resources", "error", "Memory limit cannot be negative", str(spec.memory_limit)))
    return results


def check_privileged(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    if spec.privileged:
        return [ValidationResult("privileged", "warning", "Container runs privileged",
                                 "Privileged containers have full access to the host")]
    return []


def check_modes(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    results = []
    if spec.network_mode not in NETWORK_MODES:
        results.append(ValidationResult("network_mode", "error", "Unknown network mode",
                                        f"'{spec.network_mode}' is not one of {', '.join(NETWORK_MODES)}"))
    if spec.restart_policy not in RESTART_POLICIES:
        results.append(ValidationResult("restart_policy", "error", "Unknown restart policy",
                                        f"'{spec.restart_policy}' is not one of {', '.join(RESTART_POLICIES)}"))
    return results


def check_environment(raw: ContainerSpec) -> List[ValidationResult]:
    results = []
    keys = Counter(key.strip().upper() for key in raw.environment)
    for key, count in keys.items():
        if not key:
            results.append(ValidationResult("environment", "error", "Empty environment variable name"))
        elif count > 1:
            results.append(ValidationResult("environment", "error", "Duplicate environment variable",
                                            f"'{key}' is set {count} times with different casing"))
    return results


CHECKS = (
    check_name,
    check_image,
    check_ports,
    check_volumes,
    check_resources,
    check_privileged,
    check_modes,
)


def validate(spec: ContainerSpec, state: EngineState) -> List[ValidationResult]:
    """Pre-flight checks. Pure: the same spec and state always give the same list."""
    normalized = normalize(spec)
    results = check_environment(spec)
    for check in CHECKS:
        results.extend(check(normalized, state))
    return results


class ValidationService:
    def __init__(self, engine: ContainerEngine):
        self.engine = engine

    async def collect_state(self, spec: ContainerSpec, replace_id: Optional[str] = None) -> EngineState:
        """Snapshot engine facts, leaving out the container that is about to be replaced."""
        bindings = await self.engine.list_active_port_bindings()
        names = set(await self.engine.list_container_names())
        image = spec.image.strip()
        image_present = await self.engine.image_exists(image) if image else None

        if replace_id:
            replaced_name = await self.engine.container_name(replace_id)
            names.discard(replaced_name)
            bindings = [
                b for b in bindings
                if not b.owner_id.startswith(replace_id) and b.owner != replaced_name
            ]

        return EngineState(
            port_bindings=tuple(bindings),
            container_names=frozenset(names),
            image_present=image_present,
        )

    async def validate(self, spec: ContainerSpec, replace_id: Optional[str] = None) -> List[ValidationResult]:
        state = await self.collect_state(spec, replace_id)
        results = validate(spec, state)
        logger.debug(
            "Validated container spec",
            image=spec.image,
            errors=sum(1 for r in results if r.status == "error"),
        )
        return results
