"""Transfer session state shared by the sending and receiving roles"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
import logging

from ..network.chunks import ProgressTracker, CHUNK_SIZE
from ..network.protocol import SessionState
from ..network.transport import Transport
from ..storage.checksum import ChecksumEngine
from ..utils import format_size

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class TransferDescriptor:
    """
    One transfer attempt

    name is the sender's declared name, used only as a base name.
    size is fixed once declared in protocol step 3.
    """
    name: str
    size: int
    checksum: Optional[str] = None


@dataclass
class SessionResult:
    """What a finished session reports to its caller"""
    state: SessionState
    descriptor: TransferDescriptor
    resume_offset: int
    bytes_transferred: int
    restarted: bool = False
    path: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return self.state == SessionState.COMPLETE


class TransferSession:
    """
    One run of the wire protocol over one transport

    Subclasses implement run() for their role. State moves
    NEGOTIATING -> STREAMING -> VERIFYING -> COMPLETE | MISMATCH | FAILED.
    """

    role = 'session'

    def __init__(self, transport: Transport,
                 checksum: Optional[ChecksumEngine] = None,
                 chunk_size: int = CHUNK_SIZE,
                 on_progress: Optional[ProgressCallback] = None):
        self.transport = transport
        self.checksum = checksum or ChecksumEngine(chunk_size=chunk_size)
        self.chunk_size = chunk_size
        self.on_progress = on_progress

        self.state = SessionState.NEGOTIATING
        self.descriptor: Optional[TransferDescriptor] = None
        self.resume_offset = 0
        self.restarted = False
        self.progress: Optional[ProgressTracker] = None

    def _transition(self, state: SessionState):
        logger.debug(f"{self.role}: {self.state.value} -> {state.value}")
        self.state = state

    def _start_progress(self, total: int, start: int):
        self.progress = ProgressTracker(total=total, transferred=start)

    def _advance(self, nbytes: int):
        milestone = self.progress.advance(nbytes)
        if milestone is not None:
            logger.info(
                f"Progress: {milestone}% ("
                f"{format_size(self.progress.transferred)} / "
                f"{format_size(self.progress.total)})"
            )
        if self.on_progress:
            self.on_progress(self.progress.transferred, self.progress.total)

    def _result(self, path: Optional[Path] = None) -> SessionResult:
        transferred = 0
        if self.progress is not None:
            transferred = self.progress.transferred - self.resume_offset
        return SessionResult(
            state=self.state,
            descriptor=self.descriptor,
            resume_offset=self.resume_offset,
            bytes_transferred=transferred,
            restarted=self.restarted,
            path=path
        )
