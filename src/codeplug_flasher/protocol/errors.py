"""
Exception hierarchy for codeplug transfers.

Every error raised by the transport, the drivers and the verification
scenarios derives from RadioError so callers can catch one type.
"""

from typing import Optional


class RadioError(Exception):
    """Base exception for all codeplug programming errors"""
    pass


class RadioTransportError(RadioError):
    """Serial channel could not be opened, written or read"""
    pass


class RadioTimeoutError(RadioTransportError):
    """Radio did not deliver the requested bytes before the deadline"""
    pass


class ShortReadError(RadioError):
    """Response was shorter than its fixed frame layout requires"""
    pass


class ProtocolMismatchError(RadioError):
    """Unexpected header, acknowledgement or identification payload"""
    pass


class BadAckError(ProtocolMismatchError):
    """An acknowledgement byte was missing or not an accepted value"""
    pass


class IdentMismatchError(ProtocolMismatchError):
    """Radio identification did not match the expected model"""
    pass


class NotConnectedError(RadioError):
    """Driver operation invoked before connect()"""
    pass


class UnsupportedModelError(RadioError, ValueError):
    """Model selector does not name a supported radio"""
    pass


class CodeplugValidationError(RadioError, ValueError):
    """Candidate image was rejected before any write I/O"""
    pass


class VerificationMismatchError(RadioError):
    """
    Post-write readback differs from what was written.

    Attributes:
        channel: Zero-based index of the first differing channel record
        offset: Byte offset of the first differing byte
    """

    def __init__(
        self,
        message: str,
        channel: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        self.channel = channel
        self.offset = offset
        super().__init__(message)


# Failures worth another identification attempt on radios that are slow to
# wake up or were reset mid-session.
TRANSIENT_IDENT_ERRORS = (RadioTimeoutError, BadAckError, IdentMismatchError)
