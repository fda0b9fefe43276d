"""Transfer error taxonomy"""


class TransferError(Exception):
    """Base class for every failure raised by a transfer"""


class ValidationFailure(TransferError):
    """Source file missing or unreadable (sender pre-flight only)"""


class ProtocolFailure(TransferError):
    """Malformed or out-of-sequence frame, or connection dropped"""


class IOFailure(TransferError):
    """Filesystem error on read/write/rename/delete"""


class IntegrityFailure(TransferError):
    """Checksum mismatch after a structurally complete transfer"""
