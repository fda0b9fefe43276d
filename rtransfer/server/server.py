"""Receiving server: accepts connections and runs one session per connection"""

import asyncio
from collections import deque
from typing import Deque, Dict, Optional, Set
import logging

from ..config import TransferConfig
from ..crypto.trust import build_server_context
from ..errors import TransferError
from ..network.protocol import SessionState
from ..network.transport import Transport
from ..storage.checksum import ChecksumEngine
from ..storage.locks import NameLockRegistry
from ..storage.partial import PartialFileStore
from ..transfer.receiver import ReceiverSession
from ..transfer.session import SessionResult

logger = logging.getLogger(__name__)


class TransferServer:
    """
    Connection dispatcher

    At most max_workers sessions run at once. Further connections are
    accepted by the OS and wait here for a free slot; the client is not
    told that it is waiting.
    """

    def __init__(self, config: TransferConfig, ssl_context=None):
        self.config = config
        self.host = config.bind_host
        self.port = config.port
        self.max_workers = config.max_workers

        if ssl_context is None and config.tls_enabled:
            ssl_context = self._build_ssl_context(config)
        self.ssl_context = ssl_context

        self.store = PartialFileStore(config.output_dir)
        self.locks = NameLockRegistry()
        self.checksum = ChecksumEngine(config.checksum_algorithm, config.chunk_size)

        self.server: Optional[asyncio.AbstractServer] = None
        self._slots: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()

        self.active_sessions = 0
        self.waiting_connections = 0
        self.stats: Dict[str, int] = {state.value: 0 for state in SessionState if state.is_terminal}
        self.recent_results: Deque[SessionResult] = deque(maxlen=100)

    @staticmethod
    def _build_ssl_context(config: TransferConfig):
        if not config.cert_file or not config.key_file:
            raise ValueError("TLS enabled but cert_file/key_file not configured")
        return build_server_context(config.cert_file, config.key_file, config.key_password)

    @property
    def bound_port(self) -> Optional[int]:
        if not self.server or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[1]

    async def handle_client(self, reader: asyncio.StreamReader,
                            writer: asyncio.StreamWriter):
        """Handle one connection from accept to close"""
        transport = Transport(reader, writer, read_timeout=self.config.idle_timeout)
        addr = transport.peername
        logger.info(f"Client connected: {addr[0] if addr else 'unknown'}")

        task = asyncio.current_task()
        self._tasks.add(task)

        admitted = False
        self.waiting_connections += 1
        try:
            if self._slots.locked():
                logger.info(f"All {self.max_workers} workers busy, {addr} waiting for a slot")

            async with self._slots:
                admitted = True
                self.waiting_connections -= 1
                self.active_sessions += 1
                try:
                    await self._run_session(transport)
                finally:
                    self.active_sessions -= 1

        except TransferError as e:
            self.stats[SessionState.FAILED.value] += 1
            logger.error(f"✗ Transfer from {addr} failed: {e}")
        except Exception as e:
            self.stats[SessionState.FAILED.value] += 1
            logger.error(f"Error handling client {addr}: {e}", exc_info=True)
        finally:
            if not admitted:
                self.waiting_connections -= 1
            await transport.close()
            self._tasks.discard(task)
            logger.debug(f"Connection closed: {addr}")

    async def _run_session(self, transport: Transport):
        session = ReceiverSession(
            transport,
            self.store,
            self.locks,
            checksum=self.checksum,
            chunk_size=self.config.chunk_size
        )
        result = await session.run()

        self.stats[result.state.value] += 1
        self.recent_results.append(result)
        logger.info(
            f"Session finished: {result.descriptor.name} -> {result.state.value} "
            f"({result.bytes_transferred} bytes this attempt)"
        )

    async def start(self) -> int:
        """Bind and start accepting; returns the bound port"""
        self._slots = asyncio.Semaphore(self.max_workers)
        self.server = await asyncio.start_server(
            self.handle_client, self.host, self.port, ssl=self.ssl_context
        )

        logger.info(f"Server starting on port {self.bound_port}")
        if self.ssl_context is not None:
            logger.info("✓ SSL/TLS encryption enabled")
        else:
            logger.warning("⚠ WARNING: Running in plain-text mode (no encryption)")
        logger.info(f"Files will be saved to: {self.store.output_dir.resolve()}")
        logger.info(f"Server is ready ({self.max_workers} workers). Waiting for connections...")
        return self.bound_port

    async def stop(self):
        """Stop accepting and abandon in-flight sessions where they stand"""
        if self.server is None:
            return
        self.server.close()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self.server.wait_closed()
        self.server = None
        logger.info("Server stopped")

    async def run(self):
        """Start server and serve until cancelled"""
        await self.start()
        try:
            await self.server.serve_forever()
        finally:
            await self.stop()
