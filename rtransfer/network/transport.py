"""Byte-stream transport over asyncio streams (plain or TLS)"""

import asyncio
from typing import Optional, Tuple
import logging

from ..errors import ProtocolFailure
from .protocol import (
    TEXT_LENGTH, INTEGER, encode_text, decode_text, encode_int, decode_int
)

logger = logging.getLogger(__name__)


class Transport:
    """
    Reliable, ordered, bidirectional byte stream

    Wraps an asyncio reader/writer pair. When the pair was opened with an
    SSL context the bytes are encrypted on the wire; nothing here depends
    on whether that is the case.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 read_timeout: Optional[float] = None):
        self.reader = reader
        self.writer = writer
        self.read_timeout = read_timeout or None
        self._closed = False

    @classmethod
    async def connect(cls, host: str, port: int, ssl_context=None,
                      server_hostname: Optional[str] = None,
                      timeout: Optional[float] = None) -> 'Transport':
        """Open a connection to a receiver"""
        kwargs = {}
        if ssl_context is not None:
            kwargs['ssl'] = ssl_context
            kwargs['server_hostname'] = server_hostname or host
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, **kwargs),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ProtocolFailure(f"Timed out connecting to {host}:{port}") from e
        except OSError as e:
            raise ProtocolFailure(f"Cannot connect to {host}:{port}: {e}") from e
        return cls(reader, writer)

    @property
    def peername(self) -> Optional[Tuple]:
        return self.writer.get_extra_info('peername')

    @property
    def is_encrypted(self) -> bool:
        return self.writer.get_extra_info('ssl_object') is not None

    async def send_text(self, value: str):
        await self._write(encode_text(value))

    async def recv_text(self) -> str:
        length = TEXT_LENGTH.unpack(await self._read_exactly(TEXT_LENGTH.size))[0]
        return decode_text(await self._read_exactly(length))

    async def send_int(self, value: int):
        await self._write(encode_int(value))

    async def recv_int(self) -> int:
        return decode_int(await self._read_exactly(INTEGER.size))

    async def send_bytes(self, data: bytes):
        await self._write(data)

    async def recv_chunk(self, max_bytes: int) -> bytes:
        """
        Read up to max_bytes of raw payload

        May return fewer bytes than asked for; the caller loops on the
        remaining count. End of stream is an error because the payload
        length is always known in advance.
        """
        try:
            data = await self._wait_for_peer(self.reader.read(max_bytes))
        except (ConnectionError, OSError) as e:
            raise ProtocolFailure(f"Connection error while receiving data: {e}") from e
        if not data:
            raise ProtocolFailure("Connection closed by peer during data transfer")
        return data

    async def close(self):
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error while closing connection: {e}")

    async def _write(self, data: bytes):
        if self._closed:
            raise ProtocolFailure("Connection closed")
        try:
            self.writer.write(data)
            await self.writer.drain()
        except (ConnectionError, OSError) as e:
            raise ProtocolFailure(f"Connection error while sending: {e}") from e

    async def _wait_for_peer(self, read):
        try:
            return await asyncio.wait_for(read, timeout=self.read_timeout)
        except asyncio.TimeoutError as e:
            raise ProtocolFailure(
                f"Peer sent nothing for {self.read_timeout:g}s, giving up"
            ) from e

    async def _read_exactly(self, size: int) -> bytes:
        try:
            return await self._wait_for_peer(self.reader.readexactly(size))
        except asyncio.IncompleteReadError as e:
            raise ProtocolFailure(
                f"Connection closed after {len(e.partial)} of {size} expected bytes"
            ) from e
        except (ConnectionError, OSError) as e:
            raise ProtocolFailure(f"Connection error while receiving: {e}") from e
