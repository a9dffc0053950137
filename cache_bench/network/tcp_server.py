"""
Async TCP Server Module

Reference cache process speaking the line protocol, so the line-protocol
backend can be benchmarked and tested without an external service.

Each client connection is served by its own coroutine: read a line, parse
it, execute it on the shared TTLStore, write the reply, repeat until QUIT
or disconnect.
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from typing import Optional, Set

from ..cache.store import TTLStore
from ..config.settings import settings
from ..protocol.commands import Command, CommandType, Reply
from ..protocol.parser import ProtocolParser

logger = logging.getLogger(__name__)


class CacheServer:
    """
    Asynchronous TCP server for the cache line protocol.

    Features:
    - Non-blocking I/O with asyncio
    - Persistent connections (multiple commands per connection)
    - Request lines up to settings.MAX_FRAME_SIZE bytes
    - Background sweep of expired keys

    Usage:
        server = CacheServer(host='0.0.0.0', port=6060)
        await server.start()  # Runs until stop() or cancellation

    Attributes:
        host: Server bind address
        port: Server port number (updated to the bound port once started)
        store: The TTLStore instance shared by all connections
        parser: The ProtocolParser for parsing commands
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: TTLStore = None,
            max_frame_size: int = None,
    ):
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.store = store if store is not None else TTLStore()
        self.max_frame_size = (
            max_frame_size if max_frame_size is not None else settings.MAX_FRAME_SIZE
        )
        self.parser = ProtocolParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self._started = asyncio.Event()
        self._writers: Set[StreamWriter] = set()
        self._running = False
        self._connection_count = 0
        self._total_requests = 0

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """Serve one client connection until QUIT, disconnect or error."""
        addr = writer.get_extra_info('peername')
        self._connection_count += 1
        self._writers.add(writer)
        logger.debug(f"Client connected: {addr}")

        try:
            while True:
                try:
                    data = await reader.readline()
                except ValueError:
                    # Line exceeded the stream limit; framing is lost
                    logger.warning(f"Request line too long from {addr}, closing")
                    await self._send(writer, Reply.error("line too long"))
                    break

                if not data:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                try:
                    raw = data.decode('utf-8')
                except UnicodeDecodeError:
                    await self._send(writer, Reply.error("invalid encoding"))
                    continue

                command = self.parser.parse_request(raw)

                if command.type == CommandType.QUIT:
                    logger.debug(f"Client requested quit: {addr}")
                    break

                if not command.is_valid:
                    reply = Reply.error(command.error or "invalid command")
                else:
                    self._total_requests += 1
                    reply = self._execute_command(command)

                await self._send(writer, reply)

        except ConnectionResetError:
            logger.debug(f"Connection reset by client: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            self._writers.discard(writer)
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def _send(self, writer: StreamWriter, reply: Reply) -> None:
        writer.write(self.parser.format_response(reply).encode('utf-8'))
        await writer.drain()

    def _execute_command(self, command: Command) -> Reply:
        """Execute a parsed command on the store."""
        if command.type == CommandType.GET:
            value = self.store.get(command.key)
            return Reply.hit(value) if value is not None else Reply.miss()

        if command.type in (CommandType.SET, CommandType.SETEX):
            self.store.set(command.key, command.value, ttl=command.ttl)
            return Reply.ack()

        return Reply.error("invalid command")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(settings.CLEANUP_INTERVAL)
            removed = self.store.cleanup_expired()
            if removed:
                logger.debug(f"Expired {removed} keys")

    async def start(self) -> None:
        """
        Start the server and serve until stopped or cancelled.

        Example:
            server = CacheServer(port=6060)
            asyncio.run(server.start())
        """
        if self._running:
            return

        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=self.max_frame_size,
        )
        self._running = True

        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        addrs = ', '.join(str(sock.getsockname()) for sock in sockets)
        logger.info(f"Serving on {addrs}")

        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        self._started.set()

        try:
            async with self._server:
                await self._server.serve_forever()
        except asyncio.CancelledError:
            # Expected during shutdown/fixture cleanup
            logger.debug("Server start cancelled")
        finally:
            self._running = False
            self._cancel_cleanup()

    async def wait_started(self) -> None:
        """Block until the listening socket is bound."""
        await self._started.wait()

    def _cancel_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    async def stop(self) -> None:
        """Stop the server gracefully."""
        self._cancel_cleanup()
        if self._server is None:
            return

        self._server.close()
        # wait_closed() also waits for open client connections
        for writer in list(self._writers):
            writer.close()
        try:
            await self._server.wait_closed()
        finally:
            self._server = None
            self._running = False
            self._started.clear()

    def is_running(self) -> bool:
        """Check if the server is currently running."""
        return self._running

    def get_stats(self) -> dict:
        """Return connection and request counters plus store statistics."""
        return {
            "running": self._running,
            "host": self.host,
            "port": self.port,
            "total_connections": self._connection_count,
            "total_requests": self._total_requests,
            "store_stats": self.store.get_stats(),
        }


async def run_server(host: str = None, port: int = None) -> None:
    """
    Convenience function to create and run the server.

    Usage:
        asyncio.run(run_server(port=6060))
    """
    server = CacheServer(host=host, port=port)

    try:
        await server.start()
    except asyncio.CancelledError:
        logger.info("Server shutdown requested")
    finally:
        await server.stop()
