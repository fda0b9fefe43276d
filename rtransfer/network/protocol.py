"""
Wire protocol for a single-file resumable transfer

Message sequence, sender (S) and receiver (R):

    1. S -> R  file name            (text)
    2. R -> S  resume offset        (int)
    3. S -> R  declared file size   (int)
    4. R -> S  CONTINUE | RESTART   (text)
    5. S -> R  payload              (declared size - effective offset raw bytes)
    6. S -> R  checksum of the file (text)
    7. R -> S  SUCCESS | CHECKSUM_MISMATCH (text)

Text fields are a 2-byte big-endian length followed by UTF-8 bytes.
Integers are 8-byte signed big-endian. The payload carries no framing;
both ends know its length from steps 2-4. There is no version negotiation.
"""

import struct
from enum import Enum
import logging

from ..errors import ProtocolFailure

logger = logging.getLogger(__name__)

TEXT_LENGTH = struct.Struct('!H')
INTEGER = struct.Struct('!q')

MAX_TEXT_BYTES = 0xFFFF


class ControlToken(Enum):
    """Step 4: receiver's answer to the declared size"""
    CONTINUE = "CONTINUE"
    RESTART = "RESTART"


class OutcomeToken(Enum):
    """Step 7: receiver's verdict after verification"""
    SUCCESS = "SUCCESS"
    CHECKSUM_MISMATCH = "CHECKSUM_MISMATCH"


class SessionState(Enum):
    """Transfer session states"""
    NEGOTIATING = "negotiating"
    STREAMING = "streaming"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    MISMATCH = "mismatch"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETE, SessionState.MISMATCH, SessionState.FAILED)


def encode_text(value: str) -> bytes:
    """Length-prefixed UTF-8 text frame"""
    data = value.encode('utf-8')
    if len(data) > MAX_TEXT_BYTES:
        raise ProtocolFailure(f"Text field too long: {len(data)} bytes")
    return TEXT_LENGTH.pack(len(data)) + data


def decode_text(data: bytes) -> str:
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise ProtocolFailure(f"Text field is not valid UTF-8: {e}") from e


def encode_int(value: int) -> bytes:
    """Fixed-width 64-bit integer frame"""
    try:
        return INTEGER.pack(value)
    except struct.error as e:
        raise ProtocolFailure(f"Integer out of range: {value}") from e


def decode_int(data: bytes) -> int:
    return INTEGER.unpack(data)[0]


def parse_token(raw: str, token_type):
    """Map a received text field to a token enum, rejecting anything else"""
    try:
        return token_type(raw)
    except ValueError as e:
        raise ProtocolFailure(f"Unexpected {token_type.__name__}: {raw!r}") from e
