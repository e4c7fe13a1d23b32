"""Radio protocol layer - byte channel, frames and per-model drivers."""

from .errors import (
    RadioError,
    RadioTransportError,
    RadioTimeoutError,
    ShortReadError,
    ProtocolMismatchError,
    BadAckError,
    IdentMismatchError,
    NotConnectedError,
    UnsupportedModelError,
    CodeplugValidationError,
    VerificationMismatchError,
)
from .transport import RadioBackend
from .serial_backend import SerialBackend
from .frames import (
    FrameHeader,
    build_header,
    build_frame,
    parse_header,
    headers_match,
)
from .driver import RadioDriver, SessionState, ChecksumValidator
from .bf888 import BF888Driver
from .kt8900 import KT8900Driver

__all__ = [
    # Errors
    "RadioError",
    "RadioTransportError",
    "RadioTimeoutError",
    "ShortReadError",
    "ProtocolMismatchError",
    "BadAckError",
    "IdentMismatchError",
    "NotConnectedError",
    "UnsupportedModelError",
    "CodeplugValidationError",
    "VerificationMismatchError",
    # Transport
    "RadioBackend",
    "SerialBackend",
    # Frames
    "FrameHeader",
    "build_header",
    "build_frame",
    "parse_header",
    "headers_match",
    # Drivers
    "RadioDriver",
    "SessionState",
    "ChecksumValidator",
    "BF888Driver",
    "KT8900Driver",
]
