import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def pull_lines():
    """Build a stand-in for ``engine.pull`` that yields ``lines`` then optionally fails."""
    def factory(*lines, error=None):
        async def _pull(image):
            for line in lines:
                yield line
            if error is not None:
                raise error
        return MagicMock(side_effect=_pull)
    return factory


@pytest.fixture
def engine(pull_lines):
    engine = AsyncMock()
    engine.image_exists = AsyncMock(return_value=True)
    engine.pull = pull_lines()
    engine.inspect_image = AsyncMock(return_value={})
    engine.volume_list = AsyncMock(return_value=[])
    engine.create = AsyncMock(return_value="c0ffee")
    engine.container_name = AsyncMock(return_value=None)
    engine.list_container_names = AsyncMock(return_value=[])
    engine.list_active_port_bindings = AsyncMock(return_value=[])
    engine.version = AsyncMock(return_value={"Version": "5.0.0", "ApiVersion": "1.41"})
    return engine
