"""
Line-protocol cache backend.

Talks to a remote cache process over one persistent TCP connection using
the newline-framed text protocol defined in cache_bench.protocol.

Connection lifecycle:
    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> AWAITING_RESPONSE -> CONNECTED    (successful round-trip)
    any I/O failure, timeout or cancellation       -> FAULTED
    FAULTED -> CONNECTING                          (lazily, on the next call)

A per-connection asyncio.Lock covers the whole write+read exchange, so one
client instance can be shared by any number of concurrent tasks without
replies being attributed to the wrong request.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from enum import Enum
from typing import List, Optional

from .base import CacheBackend
from ..config.settings import settings
from ..errors import CallTimeout, ConnectFailure, ProtocolFailure, RemoteFailure
from ..protocol.commands import ACK, Command, CommandType, Reply, ReplyKind
from ..protocol.parser import ProtocolParser

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle states of a LineProtocolClient connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AWAITING_RESPONSE = "awaiting_response"
    FAULTED = "faulted"


class LineProtocolClient(CacheBackend):
    """
    CacheBackend over a single persistent line-protocol connection.

    The connection is opened on first use and reused until close() or a
    fault. Replies are read until the newline terminator however many TCP
    segments that takes, up to ``max_frame_size`` bytes.

    Usage:
        async with LineProtocolClient('localhost', 6060) as client:
            await client.set("weathers", "sunny-25")
            value = await client.get("weathers")

    Attributes:
        host: Server host
        port: Server port
        connect_timeout: Seconds allowed for the TCP connect
        read_timeout: Seconds allowed for one write+read exchange
        max_frame_size: Largest accepted reply line in bytes
        state: Current ConnectionState
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            *,
            connect_timeout: float = None,
            read_timeout: float = None,
            max_frame_size: int = None,
            name: str = "line",
    ):
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT
        )
        self.read_timeout = read_timeout if read_timeout is not None else settings.READ_TIMEOUT
        self.max_frame_size = (
            max_frame_size if max_frame_size is not None else settings.MAX_FRAME_SIZE
        )
        self.name = name
        self.parser = ProtocolParser()

        self.state = ConnectionState.DISCONNECTED
        self._reader: Optional[StreamReader] = None
        self._writer: Optional[StreamWriter] = None
        self._lock = asyncio.Lock()
        self._connects = 0

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connect_count(self) -> int:
        """Number of connections opened so far (1 + reconnects)."""
        return self._connects

    async def get(self, key: str) -> Optional[str]:
        reply = await self._round_trip(Command(type=CommandType.GET, key=key))
        if reply.kind == ReplyKind.MISS:
            return None
        return reply.value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> str:
        # Plain SET leaves the expiry to the server's own default
        if ttl is None:
            command = Command(type=CommandType.SET, key=key, value=value)
        else:
            command = Command(type=CommandType.SETEX, key=key, value=value, ttl=ttl)
        await self._round_trip(command)
        return ACK

    async def _round_trip(self, command: Command) -> Reply:
        """Send one request and read its reply while holding the connection."""
        # Malformed keys/values raise ValueError before any I/O
        request = self.parser.format_request(command).encode('utf-8')

        async with self._lock:
            await self._ensure_connected()
            self.state = ConnectionState.AWAITING_RESPONSE

            try:
                line = await asyncio.wait_for(
                    self._exchange(request), timeout=self.read_timeout
                )
                reply = self.parser.parse_response(line, command.type)
            except asyncio.TimeoutError as exc:
                self._fault(f"no reply within {self.read_timeout}s")
                raise CallTimeout(
                    f"{command.type.name} timed out after {self.read_timeout}s",
                    backend=self.name,
                ) from exc
            except ProtocolFailure as exc:
                self._fault(str(exc))
                raise
            except ValueError as exc:
                # Reply does not match the request; the stream is out of step
                self._fault(str(exc))
                raise ProtocolFailure(str(exc), backend=self.name) from exc
            except OSError as exc:
                self._fault(str(exc))
                raise ProtocolFailure(
                    f"connection to {self.address} failed: {exc}", backend=self.name
                ) from exc
            except asyncio.CancelledError:
                # A reply may still arrive; it must not be read by the next request
                self._fault("call cancelled mid-exchange")
                raise

            self.state = ConnectionState.CONNECTED

        if reply.kind == ReplyKind.ERROR:
            raise RemoteFailure(
                f"{command.type.name} rejected: {reply.message}", backend=self.name
            )
        return reply

    async def _exchange(self, request: bytes) -> str:
        self._writer.write(request)
        await self._writer.drain()
        return await self._read_frame()

    async def _read_frame(self) -> str:
        """Read bytes until the newline terminator and decode them."""
        try:
            data = await self._reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            raise ProtocolFailure(
                f"connection closed after {len(exc.partial)} bytes of a reply",
                backend=self.name,
            ) from exc
        except asyncio.LimitOverrunError as exc:
            raise ProtocolFailure(
                f"reply exceeds {self.max_frame_size} bytes", backend=self.name
            ) from exc

        try:
            return data.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise ProtocolFailure("reply is not valid UTF-8", backend=self.name) from exc

    async def _ensure_connected(self) -> None:
        """Open the connection if there is none or the old one is gone."""
        if self.state == ConnectionState.CONNECTED and self._writer is not None:
            if not self._writer.is_closing() and not self._reader.at_eof():
                return
            logger.debug(f"Connection to {self.address} closed by peer")
            self._discard()

        self.state = ConnectionState.CONNECTING
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port, limit=self.max_frame_size),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as exc:
            self.state = ConnectionState.FAULTED
            raise ConnectFailure(
                f"connect to {self.address} timed out after {self.connect_timeout}s",
                backend=self.name,
            ) from exc
        except OSError as exc:
            self.state = ConnectionState.FAULTED
            raise ConnectFailure(
                f"connect to {self.address} failed: {exc}", backend=self.name
            ) from exc
        except asyncio.CancelledError:
            self.state = ConnectionState.FAULTED
            raise

        self._connects += 1
        self.state = ConnectionState.CONNECTED
        logger.debug(f"Connected to {self.address} (connection #{self._connects})")

    def _fault(self, reason: str) -> None:
        logger.warning(f"Connection to {self.address} faulted: {reason}")
        self._discard()
        self.state = ConnectionState.FAULTED

    def _discard(self) -> None:
        if self._writer is not None:
            self._writer.close()
        self._reader = None
        self._writer = None

    async def close(self) -> None:
        """Close the connection; the next call reconnects."""
        writer = self._writer
        self._reader = None
        self._writer = None
        self.state = ConnectionState.DISCONNECTED
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass


class LineProtocolPool(CacheBackend):
    """
    CacheBackend over ``size`` independent line-protocol connections.

    Each call borrows one client for its whole round-trip, so up to
    ``size`` calls are in flight at once instead of queueing on a single
    connection lock.
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            size: int = None,
            *,
            name: str = "line-pool",
            **client_options,
    ):
        self.size = size if size is not None else settings.POOL_SIZE
        if self.size < 1:
            raise ValueError(f"pool size must be at least 1, got {self.size}")
        self.name = name
        self.clients: List[LineProtocolClient] = [
            LineProtocolClient(host, port, name=name, **client_options)
            for _ in range(self.size)
        ]
        self._idle: "asyncio.Queue[LineProtocolClient]" = asyncio.Queue()
        for client in self.clients:
            self._idle.put_nowait(client)

    async def get(self, key: str) -> Optional[str]:
        client = await self._idle.get()
        try:
            return await client.get(key)
        finally:
            self._idle.put_nowait(client)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> str:
        client = await self._idle.get()
        try:
            return await client.set(key, value, ttl)
        finally:
            self._idle.put_nowait(client)

    async def close(self) -> None:
        for client in self.clients:
            await client.close()
