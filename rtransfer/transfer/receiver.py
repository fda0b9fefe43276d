"""Receiving side of a transfer session"""

from typing import Optional
import logging

from ..errors import TransferError, ProtocolFailure, IOFailure
from ..network.chunks import next_chunk_size
from ..network.protocol import ControlToken, OutcomeToken, SessionState
from ..storage.locks import NameLockRegistry
from ..storage.partial import PartialFileStore
from ..utils import format_size
from .session import TransferSession, TransferDescriptor, SessionResult

logger = logging.getLogger(__name__)


class ReceiverSession(TransferSession):
    """
    Receives one file into a PartialFileStore

    The destination name is held in the lock registry for the whole
    session, so the offset query, the length re-check and every append
    see no other session writing the same partial.
    """

    role = 'receiver'

    def __init__(self, transport, store: PartialFileStore,
                 locks: Optional[NameLockRegistry] = None, **kwargs):
        super().__init__(transport, **kwargs)
        self.store = store
        self.locks = locks or NameLockRegistry()
        self.name: Optional[str] = None

    async def run(self) -> SessionResult:
        try:
            declared = await self.transport.recv_text()
            self.name = self.store.destination_name(declared)
            logger.info(f"Receiving file: {self.name}")

            async with self.locks.hold(self.name):
                await self._negotiate(declared)
                await self._stream()
                return await self._verify()
        except TransferError:
            self._transition(SessionState.FAILED)
            raise

    async def _negotiate(self, declared: str):
        offset = await self.store.resume_offset_for(self.name)
        await self.transport.send_int(offset)

        size = await self.transport.recv_int()
        if size < 0:
            raise ProtocolFailure(f"Sender declared a negative file size: {size}")
        self.descriptor = TransferDescriptor(name=declared, size=size)
        logger.info(f"Total file size: {format_size(size)}")

        token = ControlToken.CONTINUE
        if offset > size:
            logger.warning(
                f"⚠ Partial file ({format_size(offset)}) is larger than the "
                f"declared size. Restarting from beginning."
            )
            await self.store.discard(self.name)
            token = ControlToken.RESTART
        elif offset > 0:
            if await self.store.validate_offset(self.name, offset):
                logger.info(f"Resuming transfer. Remaining: {format_size(size - offset)}")
            else:
                logger.warning("⚠ Partial file size mismatch. Restarting from beginning.")
                token = ControlToken.RESTART
        else:
            logger.info("Starting new transfer")

        if token == ControlToken.RESTART:
            self.restarted = True
            offset = 0

        self.resume_offset = offset
        await self.transport.send_text(token.value)

    async def _stream(self):
        self._transition(SessionState.STREAMING)

        size = self.descriptor.size
        remaining = size - self.resume_offset
        self._start_progress(size, self.resume_offset)

        handle = await self.store.open_for_append(
            self.name, self.resume_offset, expected_bytes=remaining
        )
        try:
            try:
                while remaining > 0:
                    chunk = await self.transport.recv_chunk(
                        next_chunk_size(remaining, self.chunk_size)
                    )
                    await handle.write(chunk)
                    await handle.flush()
                    remaining -= len(chunk)
                    self._advance(len(chunk))
            finally:
                await handle.close()
        except OSError as e:
            raise IOFailure(f"Cannot write {self.store.partial_path(self.name)}: {e}") from e
        except ProtocolFailure:
            # Flushed bytes stay as the resume point for the next attempt
            await self.store.promote(self.name, size, self.progress.transferred)
            raise

    async def _verify(self):
        self._transition(SessionState.VERIFYING)

        expected = (await self.transport.recv_text()).strip().lower()
        self.descriptor.checksum = expected

        partial = self.store.partial_path(self.name)
        actual = await self.checksum.digest_file(partial)
        algorithm = self.checksum.algorithm.upper()

        if actual == expected:
            path = await self.store.promote(
                self.name, self.descriptor.size, self.progress.transferred
            )
            logger.info(f"✓ File integrity verified ({algorithm}: {actual})")
            self._transition(SessionState.COMPLETE)
            await self.transport.send_text(OutcomeToken.SUCCESS.value)
        else:
            logger.error("✗ File corruption detected!")
            logger.error(f"  Expected: {expected}")
            logger.error(f"  Received: {actual}")
            await self.store.mark_suspect(self.name, expected, actual)
            path = partial
            self._transition(SessionState.MISMATCH)
            await self.transport.send_text(OutcomeToken.CHECKSUM_MISMATCH.value)

        return self._result(path)
