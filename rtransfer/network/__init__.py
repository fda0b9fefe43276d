from .protocol import ControlToken, OutcomeToken, SessionState, encode_text, encode_int
from .transport import Transport
from .chunks import ProgressTracker, CHUNK_SIZE

__all__ = [
    'ControlToken',
    'OutcomeToken',
    'SessionState',
    'encode_text',
    'encode_int',
    'Transport',
    'ProgressTracker',
    'CHUNK_SIZE'
]
