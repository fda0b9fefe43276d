from .checksum import ChecksumEngine
from .partial import PartialFileStore, PARTIAL_SUFFIX
from .locks import NameLockRegistry

__all__ = [
    'ChecksumEngine',
    'PartialFileStore',
    'PARTIAL_SUFFIX',
    'NameLockRegistry'
]
