from stardeck.schemas.container import (
    BindMount,
    ContainerSpec,
    ManagedVolume,
    PortMapping,
    merge,
    normalize,
)
from stardeck.schemas.image import ImageConfig, ImageEnvVar, ImagePort


# -------------------------------
# normalize
# -------------------------------
def test_normalize_canonicalizes_without_touching_input():
    spec = ContainerSpec(
        name="  ",
        image=" redis:7 ",
        environment={" tz ": "UTC", "Lang": "C"},
        ports=[PortMapping(container_port=6379, protocol="TCP"), PortMapping(container_port=53, protocol="")],
    )

    result = normalize(spec)

    assert result.image == "redis:7"
    assert result.name is None
    assert result.environment == {"TZ": "UTC", "LANG": "C"}
    assert [p.protocol for p in result.ports] == ["tcp", "tcp"]
    assert result.network_mode == "bridge"
    assert result.restart_policy == "no"
    assert result.web_ui_path == "/"

    assert spec.image == " redis:7 "
    assert spec.ports[0].protocol == "TCP"


def test_normalize_keeps_explicit_modes():
    result = normalize(ContainerSpec(image="nginx", network_mode="host", restart_policy="always"))
    assert result.network_mode == "host"
    assert result.restart_policy == "always"


# -------------------------------
# Volume type inference
# -------------------------------
def test_volume_type_is_inferred_from_source():
    spec = ContainerSpec.model_validate({
        "image": "postgres:16",
        "volumes": [
            {"source": "/srv/pg", "target": "/var/lib/postgresql/data"},
            {"source": "pgdata", "target": "/backups"},
            {"type": "volume", "source": "explicit", "target": "/x"},
        ],
    })

    assert isinstance(spec.volumes[0], BindMount)
    assert spec.volumes[0].host_path == "/srv/pg"
    assert isinstance(spec.volumes[1], ManagedVolume)
    assert [v.volume_name for v in spec.managed_volumes] == ["pgdata", "explicit"]


# -------------------------------
# merge
# -------------------------------
def test_merge_fills_gaps_from_image():
    spec = ContainerSpec(
        image="library/redis:7",
        ports=[PortMapping(host_port=16379, container_port=6379)],
        environment={"redis_password": "secret"},
    )
    image = ImageConfig(
        exposed_ports=[ImagePort(port=6379), ImagePort(port=26379)],
        environment=[
            ImageEnvVar(key="REDIS_PASSWORD", value="changeme", has_value=True),
            ImageEnvVar(key="REDIS_VERSION", value="7.2.4", has_value=True),
            ImageEnvVar(key="REDIS_EXTRA", has_value=False),
        ],
        volumes=["/data"],
        working_dir="/data",
        entrypoint=["docker-entrypoint.sh"],
        cmd=["redis-server"],
    )

    result = merge(spec, image)

    assert [(p.host_port, p.container_port) for p in result.ports] == [(16379, 6379), (26379, 26379)]
    assert result.environment == {"redis_password": "secret", "REDIS_VERSION": "7.2.4", "REDIS_EXTRA": ""}
    assert [(v.source, v.target) for v in result.volumes] == [("redis-data", "/data")]
    assert result.work_dir == "/data"
    assert result.entrypoint == ["docker-entrypoint.sh"]
    assert result.command == ["redis-server"]


def test_merge_never_overwrites_user_values():
    spec = ContainerSpec(
        name="cache",
        image="redis:7",
        volumes=[ManagedVolume(source="mine", target="/data")],
        work_dir="/srv",
        command=["redis-server", "--appendonly", "yes"],
    )
    image = ImageConfig(volumes=["/data", "/var/log/redis"], working_dir="/data", cmd=["redis-server"])

    result = merge(spec, image)

    assert [(v.source, v.target) for v in result.volumes] == [
        ("mine", "/data"),
        ("cache-var-log-redis", "/var/log/redis"),
    ]
    assert result.work_dir == "/srv"
    assert result.command == ["redis-server", "--appendonly", "yes"]
