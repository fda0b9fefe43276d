from .session import TransferSession, TransferDescriptor, SessionResult
from .sender import SenderSession
from .receiver import ReceiverSession

__all__ = [
    'TransferSession',
    'TransferDescriptor',
    'SessionResult',
    'SenderSession',
    'ReceiverSession'
]
