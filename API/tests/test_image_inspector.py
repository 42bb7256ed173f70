import pytest

from stardeck.domain.errors import EngineInvocationError, ImageNotFoundError
from stardeck.schemas.image import ImageConfig, ImagePort
from stardeck.services.image_inspector import (
    ImageInspector,
    parse_env_token,
    parse_port_token,
    project_image_config,
)

REDIS_CONFIG = {
    "ExposedPorts": {"6379/tcp": {}},
    "Env": [
        "PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin",
        "REDIS_VERSION=7.2.4",
    ],
    "Volumes": {"/data": {}},
    "WorkingDir": "/data",
    "Entrypoint": ["docker-entrypoint.sh"],
    "Cmd": ["redis-server"],
    "Labels": None,
}


async def collect(messages):
    return [m async for m in messages]


def statuses(messages):
    collapsed = []
    for m in messages:
        if not collapsed or collapsed[-1] != m.status:
            collapsed.append(m.status)
    return collapsed


# -------------------------------
# Inspect sessions
# -------------------------------
@pytest.mark.asyncio
async def test_absent_image_without_pull_is_not_found(engine):
    engine.image_exists.return_value = False

    messages = await collect(ImageInspector(engine).inspect("ghcr.io/acme/missing:1", pull=False))

    assert [m.status for m in messages] == ["connecting", "not_found"]
    assert messages[-1].found is False
    engine.pull.assert_not_called()
    engine.inspect_image.assert_not_awaited()


@pytest.mark.asyncio
async def test_pull_then_inspect_redis(engine, pull_lines):
    engine.image_exists.return_value = False
    engine.pull = pull_lines("7: Pulling from library/redis", "Digest: sha256:abc", "Status: Downloaded newer image")
    engine.inspect_image.return_value = REDIS_CONFIG

    messages = await collect(ImageInspector(engine).inspect("redis:7", pull=True))

    assert statuses(messages) == ["connecting", "pulling", "pulled", "inspecting", "complete"]
    assert len([m for m in messages if m.output]) == 3

    final = messages[-1]
    assert final.found is True
    assert ImagePort(port=6379, protocol="tcp") in final.config.exposed_ports
    assert final.config.volumes == ["/data"]
    assert final.to_wire()["config"]["working_dir"] == "/data"


@pytest.mark.asyncio
async def test_present_image_is_not_pulled(engine):
    engine.inspect_image.return_value = REDIS_CONFIG

    messages = await collect(ImageInspector(engine).inspect("redis:7", pull=True))

    assert statuses(messages) == ["connecting", "inspecting", "complete"]
    engine.pull.assert_not_called()


@pytest.mark.asyncio
async def test_pull_failure_ends_with_error(engine, pull_lines):
    engine.image_exists.return_value = False
    engine.pull = pull_lines(error=EngineInvocationError("pull access denied for acme/private"))

    messages = await collect(ImageInspector(engine).inspect("acme/private", pull=True))

    assert messages[-1].status == "error"
    assert "pull access denied" in messages[-1].error
    engine.inspect_image.assert_not_awaited()


@pytest.mark.asyncio
async def test_image_vanishing_before_inspect(engine):
    engine.inspect_image.side_effect = ImageNotFoundError("Image not found locally: redis:7")

    messages = await collect(ImageInspector(engine).inspect("redis:7"))

    assert messages[-1].status == "not_found"
    assert messages[-1].found is False


@pytest.mark.asyncio
async def test_inspect_once_returns_final_message(engine, pull_lines):
    engine.image_exists.return_value = False
    engine.pull = pull_lines("layer 1", "layer 2")
    engine.inspect_image.return_value = REDIS_CONFIG

    result = await ImageInspector(engine).inspect_once("redis:7", pull=True)

    assert result.status == "complete"
    assert result.config.cmd == ["redis-server"]


# -------------------------------
# Projection
# -------------------------------
def test_port_tokens():
    assert parse_port_token("80/tcp") == ImagePort(port=80, protocol="tcp")
    assert parse_port_token("53/UDP") == ImagePort(port=53, protocol="udp")
    assert parse_port_token("9000") == ImagePort(port=9000, protocol="tcp")
    assert parse_port_token("abc/tcp") is None
    assert parse_port_token("8000-8010/tcp") is None
    assert parse_port_token("0/tcp") is None


def test_env_tokens_keep_first_separator_only():
    var = parse_env_token("DSN=postgres://u:p@db/app?sslmode=disable")
    assert var.key == "DSN"
    assert var.value == "postgres://u:p@db/app?sslmode=disable"

    assert parse_env_token("EMPTY=").has_value is True
    assert parse_env_token("BARE").has_value is False
    assert parse_env_token("=orphan") is None


def test_projection_drops_only_malformed_entries():
    config = project_image_config({
        "ExposedPorts": {"80/tcp": {}, "bogus/tcp": {}, "443/tcp": {}},
        "Env": ["=nope", "A=1"],
        "Volumes": ["/data", "/logs", "/data"],
        "Labels": {"version": 3},
        "Entrypoint": "/entrypoint.sh",
    })

    assert [p.port for p in config.exposed_ports] == [80, 443]
    assert [v.key for v in config.environment] == ["A"]
    assert config.volumes == ["/data", "/logs"]
    assert config.labels == {"version": "3"}
    assert config.entrypoint == ["/entrypoint.sh"]
    assert config.cmd == []


def test_projection_of_empty_config():
    assert project_image_config({}) == ImageConfig()
    assert project_image_config(None) == ImageConfig()
