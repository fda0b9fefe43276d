"""Sending client: validates the source, connects and runs one session"""

import os
from pathlib import Path
from typing import Optional
import logging

from ..config import TransferConfig
from ..crypto.trust import build_client_context
from ..errors import ValidationFailure, IntegrityFailure
from ..network.protocol import SessionState
from ..network.transport import Transport
from ..storage.checksum import ChecksumEngine
from ..transfer.sender import SenderSession
from ..transfer.session import SessionResult, ProgressCallback
from ..utils import format_size

logger = logging.getLogger(__name__)


class TransferClient:
    """Sends a single file to a TransferServer"""

    def __init__(self, config: TransferConfig, ssl_context=None,
                 on_progress: Optional[ProgressCallback] = None):
        self.config = config
        self.host = config.host
        self.port = config.port

        if ssl_context is None and config.tls_enabled:
            ssl_context = build_client_context(config.ca_file, config.verify_hostname)
        self.ssl_context = ssl_context

        self.checksum = ChecksumEngine(config.checksum_algorithm, config.chunk_size)
        self.on_progress = on_progress

    @staticmethod
    def validate_source(path) -> Path:
        """Pre-flight checks, run before any connection is attempted"""
        source = Path(path)
        if not source.exists():
            raise ValidationFailure(f"File not found: {source}")
        if not source.is_file():
            raise ValidationFailure(f"Path is not a file: {source}")
        if not os.access(source, os.R_OK):
            raise ValidationFailure(f"Cannot read file: {source}")
        return source

    async def send(self, path) -> SessionResult:
        """
        Transfer path, resuming whatever the receiver already holds

        Raises IntegrityFailure when the receiver reports a checksum mismatch.
        """
        source = self.validate_source(path)

        logger.info(f"Connecting to {self.host}:{self.port}")
        logger.info(f"SSL/TLS: {'Enabled' if self.ssl_context else 'Disabled'}")
        logger.info(f"File: {source.resolve()}")
        logger.info(f"Size: {format_size(source.stat().st_size)}")

        transport = await Transport.connect(
            self.host, self.port,
            ssl_context=self.ssl_context,
            timeout=self.config.connect_timeout
        )

        if transport.is_encrypted:
            logger.info("✓ Connected to server (SSL/TLS encrypted)")
        else:
            logger.info("✓ Connected to server (plain-text)")
            logger.warning("⚠ WARNING: Connection is not encrypted!")

        try:
            session = SenderSession(
                transport,
                source,
                checksum=self.checksum,
                chunk_size=self.config.chunk_size,
                on_progress=self.on_progress
            )
            result = await session.run()
        finally:
            await transport.close()

        if result.state == SessionState.MISMATCH:
            raise IntegrityFailure(
                f"Receiver reported a checksum mismatch for {source.name}"
            )
        return result
