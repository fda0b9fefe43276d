"""Sending side of a transfer session"""

from pathlib import Path
import logging

import aiofiles
import aiofiles.os

from ..errors import TransferError, ProtocolFailure, IOFailure
from ..network.chunks import next_chunk_size
from ..network.protocol import ControlToken, OutcomeToken, SessionState, parse_token
from ..utils import format_size
from .session import TransferSession, TransferDescriptor, SessionResult

logger = logging.getLogger(__name__)


class SenderSession(TransferSession):
    """Drives the protocol for one local file"""

    role = 'sender'

    def __init__(self, transport, source: Path, **kwargs):
        super().__init__(transport, **kwargs)
        self.source = Path(source)

    async def run(self) -> SessionResult:
        try:
            await self._negotiate()

            # Digest before streaming so a source modified mid-transfer
            # shows up as a mismatch on the receiver.
            logger.info(f"Calculating {self.checksum.algorithm.upper()} checksum...")
            self.descriptor.checksum = await self.checksum.digest_file(self.source)
            logger.info(f"{self.checksum.algorithm.upper()}: {self.descriptor.checksum}")

            await self._stream()
            return await self._verify()
        except TransferError:
            self._transition(SessionState.FAILED)
            raise

    async def _negotiate(self):
        await self.transport.send_text(self.source.name)

        offset = await self.transport.recv_int()
        if offset < 0:
            raise ProtocolFailure(f"Receiver sent a negative resume offset: {offset}")

        try:
            size = (await aiofiles.os.stat(self.source)).st_size
        except OSError as e:
            raise IOFailure(f"Cannot stat {self.source}: {e}") from e

        self.descriptor = TransferDescriptor(name=self.source.name, size=size)
        await self.transport.send_int(size)

        token = parse_token(await self.transport.recv_text(), ControlToken)
        if token == ControlToken.RESTART:
            logger.info("Server requested restart. Starting from beginning...")
            self.restarted = True
            offset = 0
        elif offset > size:
            raise ProtocolFailure(
                f"Receiver resume offset {offset} is beyond the file size {size}"
            )
        elif offset > 0:
            logger.info(f"⚠ Resuming previous transfer from: {format_size(offset)}")
            logger.info(f"Already transferred: {format_size(offset)} / {format_size(size)}")
        else:
            logger.info("Sending file...")

        self.resume_offset = offset

    async def _stream(self):
        self._transition(SessionState.STREAMING)

        size = self.descriptor.size
        offset = self.resume_offset
        remaining = size - offset
        self._start_progress(size, offset)

        try:
            async with aiofiles.open(self.source, 'rb') as f:
                if offset > 0:
                    await f.seek(offset)
                    logger.info(f"Skipped to offset: {format_size(offset)}")

                logger.info(f"Sending remaining: {format_size(remaining)}")
                while remaining > 0:
                    chunk = await f.read(next_chunk_size(remaining, self.chunk_size))
                    if not chunk:
                        raise IOFailure(
                            f"{self.source} ended {remaining} bytes early; "
                            f"was it truncated during the transfer?"
                        )
                    await self.transport.send_bytes(chunk)
                    remaining -= len(chunk)
                    self._advance(len(chunk))
        except OSError as e:
            raise IOFailure(f"Cannot read {self.source}: {e}") from e

    async def _verify(self) -> SessionResult:
        self._transition(SessionState.VERIFYING)

        await self.transport.send_text(self.descriptor.checksum)
        outcome = parse_token(await self.transport.recv_text(), OutcomeToken)

        if outcome == OutcomeToken.SUCCESS:
            self._transition(SessionState.COMPLETE)
            logger.info("✓ File transferred successfully and verified!")
        else:
            self._transition(SessionState.MISMATCH)
            logger.error("✗ Error: File corruption detected on server!")

        return self._result(self.source)
