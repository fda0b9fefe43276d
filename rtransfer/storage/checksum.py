"""Streaming file checksums"""

import hashlib
from pathlib import Path
import logging

import aiofiles

from ..errors import IOFailure
from ..network.chunks import CHUNK_SIZE

logger = logging.getLogger(__name__)


class ChecksumEngine:
    """
    Computes a fixed-length hex fingerprint of a file

    Fast and non-adversarial: used to detect corruption, not tampering.
    Stateless apart from its settings, so a single instance may be shared,
    but every digest gets its own hash object.
    """

    def __init__(self, algorithm: str = 'md5', chunk_size: int = CHUNK_SIZE):
        try:
            hashlib.new(algorithm)
        except ValueError as e:
            raise ValueError(f"Unsupported checksum algorithm: {algorithm}") from e
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    @property
    def hex_length(self) -> int:
        return hashlib.new(self.algorithm).digest_size * 2

    def digest_bytes(self, data: bytes) -> str:
        hasher = hashlib.new(self.algorithm)
        hasher.update(data)
        return hasher.hexdigest()

    async def digest_file(self, path: Path) -> str:
        """Stream the whole file through the digest"""
        hasher = hashlib.new(self.algorithm)
        try:
            async with aiofiles.open(path, 'rb') as f:
                while chunk := await f.read(self.chunk_size):
                    hasher.update(chunk)
        except OSError as e:
            raise IOFailure(f"Cannot read {path} for checksum: {e}") from e
        return hasher.hexdigest()
