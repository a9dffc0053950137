"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import json
import socket
from contextlib import closing
from typing import AsyncGenerator, Dict, Optional, Set

import httpx
import pytest
import pytest_asyncio

from cache_bench.backends.base import CacheBackend
from cache_bench.backends.http import HttpCacheClient
from cache_bench.backends.line_protocol import LineProtocolClient
from cache_bench.cache.store import TTLStore
from cache_bench.errors import RemoteFailure
from cache_bench.network.tcp_server import CacheServer
from cache_bench.protocol.parser import ProtocolParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Store and Protocol Fixtures
# ============================================================================

@pytest.fixture
def store() -> TTLStore:
    """Create a fresh TTLStore with the default 60s TTL."""
    return TTLStore(default_ttl=60)


@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int) -> AsyncGenerator[CacheServer, None]:
    """
    Create and start a reference server on a free port.

    The server runs in a background task and is stopped after the test.
    """
    srv = CacheServer(host='127.0.0.1', port=server_port)
    server_task = asyncio.create_task(srv.start())
    await asyncio.wait_for(srv.wait_started(), timeout=5)

    yield srv

    await srv.stop()
    server_task.cancel()
    try:
        await server_task
    except asyncio.CancelledError:
        pass


class AsyncClient:
    """
    Raw protocol client for testing server interactions.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            response = await client.send_command("SET key value")
            assert response == "OK"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        self.reader, self.writer = await asyncio.open_connection(self.host, self.port)

    async def disconnect(self) -> None:
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except OSError:
                pass

    async def send_command(self, command: str) -> str:
        """Send one command line and return the stripped reply line."""
        if not command.endswith('\n'):
            command += '\n'

        self.writer.write(command.encode())
        await self.writer.drain()

        response = await self.reader.readline()
        return response.decode().strip()

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create raw test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("GET key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server_port)
    return factory


@pytest_asyncio.fixture
async def line_client(
    server: CacheServer,
    server_port: int,
) -> AsyncGenerator[LineProtocolClient, None]:
    """A LineProtocolClient pointed at the running reference server."""
    client = LineProtocolClient(
        '127.0.0.1', server_port, connect_timeout=2.0, read_timeout=2.0
    )
    yield client
    await client.close()


# ============================================================================
# HTTP Cache Service Fixtures
# ============================================================================

class FakeHttpCacheService:
    """
    In-memory stand-in for the HTTP cache service, served through
    httpx.MockTransport.

    Set ``status`` to force every response to that status code.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.requests = []
        self.status: Optional[int] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(self.status, text="forced")

        if request.method == "POST" and request.url.path == "/set":
            body = json.loads(request.content)
            self.data[body["key"]] = body["value"]
            self.ttls[body["key"]] = body["ttl"]
            return httpx.Response(200, json={"status": "success"})

        if request.method == "GET" and request.url.path == "/get":
            key = request.url.params["key"]
            if key in self.data:
                return httpx.Response(200, json={"key": key, "value": self.data[key]})
            return httpx.Response(200, json={"error": "Key not found"})

        return httpx.Response(404)


@pytest.fixture
def http_service() -> FakeHttpCacheService:
    return FakeHttpCacheService()


@pytest_asyncio.fixture
async def http_client(http_service) -> AsyncGenerator[HttpCacheClient, None]:
    """An HttpCacheClient wired to the fake HTTP cache service."""
    client = HttpCacheClient(
        "http://cache.test",
        transport=httpx.MockTransport(http_service.handler),
    )
    yield client
    await client.close()


# ============================================================================
# Fake Backend Fixtures
# ============================================================================

class FakeBackend(CacheBackend):
    """
    In-memory backend with configurable latency and failures.

    Attributes:
        delay: Seconds each call sleeps before completing
        fail_indices: Call numbers (0-based, counted across get and set)
            that raise RemoteFailure
        fail_always: Every call raises RemoteFailure
        hang: Calls never complete
    """

    def __init__(
        self,
        name: str = "fake",
        delay: float = 0.0,
        fail_indices: Optional[Set[int]] = None,
        fail_always: bool = False,
        hang: bool = False,
    ):
        self.name = name
        self.delay = delay
        self.fail_indices = fail_indices or set()
        self.fail_always = fail_always
        self.hang = hang
        self.data: Dict[str, str] = {}
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def _enter(self) -> None:
        number = self.calls
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.hang:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_always or number in self.fail_indices:
                raise RemoteFailure(f"injected failure on call {number}", backend=self.name)
        finally:
            self.in_flight -= 1

    async def get(self, key: str) -> Optional[str]:
        await self._enter()
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> str:
        await self._enter()
        self.data[key] = value
        return "OK"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_backend():
    """
    Factory fixture for FakeBackend instances.

    Usage:
        def test_something(make_backend):
            backend = make_backend("slow", delay=0.01)
    """
    def factory(name: str = "fake", **options) -> FakeBackend:
        return FakeBackend(name, **options)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# ============================================================================
# Scripted Server Fixtures
# ============================================================================

class ScriptedServer:
    """
    Minimal TCP server whose replies come from a test-supplied coroutine.

    ``respond(line, writer, connection_number)`` is awaited for every
    request line; returning False closes that connection.

    Usage:
        async with ScriptedServer(respond) as srv:
            client = LineProtocolClient('127.0.0.1', srv.port)
    """

    def __init__(self, respond):
        self.respond = respond
        self.received = []
        self.connections = 0
        self.port = None
        self._server = None
        self._writers = set()

    async def _handle(self, reader, writer):
        self.connections += 1
        number = self.connections
        self._writers.add(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                self.received.append(line)
                if await self.respond(line, writer, number) is False:
                    break
        except (ConnectionError, OSError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    async def __aenter__(self):
        self._server = await asyncio.start_server(self._handle, '127.0.0.1', 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()


@pytest.fixture
def scripted_server():
    """Factory fixture for ScriptedServer instances."""
    def factory(respond) -> ScriptedServer:
        return ScriptedServer(respond)
    return factory
