from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer
from loguru import logger
from platform_server import API_KEY, PlatformServer

from devic_cli.client import DevicApiClient


class FakeClock:
    """Deterministic monotonic clock whose sleep just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []
        self.events: List[tuple] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.events.append(("sleep", seconds))
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # CLI runs attach sinks to captured streams that are closed afterwards
    logger.remove()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config storage at a temp dir and clear credential env vars."""
    config_dir = tmp_path / "devic"
    monkeypatch.setenv("DEVIC_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("DEVIC_API_KEY", raising=False)
    monkeypatch.delenv("DEVIC_BASE_URL", raising=False)
    return config_dir


@pytest_asyncio.fixture
async def platform() -> AsyncGenerator[PlatformServer, None]:
    """Start a scripted platform server on a free port."""
    platform_server = PlatformServer()
    server = TestServer(platform_server.app)
    await server.start_server()
    platform_server.base_url = str(server.make_url("")).rstrip("/")
    try:
        yield platform_server
    finally:
        await server.close()


@pytest_asyncio.fixture
async def api_client(platform) -> AsyncGenerator[DevicApiClient, None]:
    async with DevicApiClient(API_KEY, platform.base_url) as client:
        yield client
