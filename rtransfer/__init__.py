"""Resumable single-file transfer over TCP"""

__version__ = "1.0.0"

from .errors import (
    TransferError, ValidationFailure, ProtocolFailure, IOFailure, IntegrityFailure
)
from .config import TransferConfig, load_config

__all__ = [
    'TransferError',
    'ValidationFailure',
    'ProtocolFailure',
    'IOFailure',
    'IntegrityFailure',
    'TransferConfig',
    'load_config',
    '__version__'
]
