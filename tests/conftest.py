"""Pytest configuration and fixtures"""

import asyncio
import shutil
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from rtransfer.config import TransferConfig
from rtransfer.client.client import TransferClient
from rtransfer.server.server import TransferServer


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def source_dir(temp_dir):
    path = temp_dir / "outgoing"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(temp_dir):
    path = temp_dir / "received"
    path.mkdir()
    return path


@pytest.fixture
def make_file(source_dir):
    """Write a source file with the given content"""
    def _make(name: str, content: bytes, subdir: str = None) -> Path:
        directory = source_dir / subdir if subdir else source_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(content)
        return path
    return _make


@pytest.fixture
def sample_content():
    """150 bytes, not a multiple of the 64-byte test chunk size"""
    return bytes(range(150))


@pytest_asyncio.fixture
async def server_factory(output_dir):
    """Start servers on an ephemeral loopback port"""
    servers = []

    async def _start(**overrides) -> TransferServer:
        settings = dict(bind_host='127.0.0.1', port=0, output_dir=output_dir,
                        chunk_size=64, log_file=None)
        settings.update(overrides)
        server = TransferServer(TransferConfig(**settings))
        await server.start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        await server.stop()


@pytest_asyncio.fixture
async def server(server_factory):
    return await server_factory()


@pytest.fixture
def client_for():
    """Client pointed at a running server"""
    def _client(server: TransferServer, **overrides) -> TransferClient:
        settings = dict(host='127.0.0.1', port=server.bound_port,
                        chunk_size=64, log_file=None, connect_timeout=5.0)
        ssl_context = overrides.pop('ssl_context', None)
        settings.update(overrides)
        return TransferClient(TransferConfig(**settings), ssl_context=ssl_context)
    return _client


@pytest.fixture
def wait_until():
    """Poll a condition from inside the event loop"""
    async def _wait(predicate, timeout: float = 5.0, interval: float = 0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(interval)
    return _wait
