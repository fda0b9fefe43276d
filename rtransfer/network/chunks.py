"""Chunked streaming helpers"""

from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024  # 64KB
MILESTONE_STEP = 10  # percent


def next_chunk_size(remaining: int, chunk_size: int = CHUNK_SIZE) -> int:
    """Bytes to request next without overrunning the payload"""
    return min(chunk_size, remaining)


@dataclass
class ProgressTracker:
    """
    Per-session progress counter

    Only used to report coarse milestones; never shared between sessions
    and never sent over the wire.
    """
    total: int
    transferred: int = 0
    step: int = MILESTONE_STEP
    _last_milestone: int = field(init=False, default=0)

    def __post_init__(self):
        self._last_milestone = self._milestone()

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return (self.transferred * 100) // self.total

    def _milestone(self) -> int:
        return self.percent - self.percent % self.step

    def advance(self, nbytes: int) -> Optional[int]:
        """
        Count nbytes and return the milestone just crossed, if any
        """
        self.transferred += nbytes
        milestone = self._milestone()
        if milestone > self._last_milestone:
            self._last_milestone = milestone
            return milestone
        return None
