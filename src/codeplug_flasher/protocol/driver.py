"""
Driver contract shared by all supported radios.

Scenarios and the CLI only talk to RadioDriver; model specifics live in
the bf888 and kt8900 modules.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

from .errors import CodeplugValidationError, NotConnectedError
from .transport import RadioBackend

logger = logging.getLogger(__name__)

# Rejects an image by raising CodeplugValidationError or returning False.
ChecksumValidator = Callable[[bytes], Optional[bool]]

ProgressCallback = Callable[[int, int], None]


class SessionState(Enum):
    """Lifecycle of a driver bound to one backend."""
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    IDENTIFYING = "identifying"
    CONNECTED = "connected"


class RadioDriver(ABC):
    """
    Base class for codeplug drivers.

    A driver exclusively owns its backend for its whole lifetime.
    """

    def __init__(
        self,
        backend: RadioBackend,
        dry_run: bool = False,
        checksum_validators: Optional[List[ChecksumValidator]] = None,
    ):
        self.backend = backend
        self.dry_run = dry_run
        self.checksum_validators: List[ChecksumValidator] = list(checksum_validators or [])
        self._state = SessionState.DISCONNECTED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    @abstractmethod
    def connect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def read_codeplug(self, progress_cb: Optional[ProgressCallback] = None) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def write_codeplug(
        self,
        data: bytes,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> None:
        raise NotImplementedError

    def _ensure_connected(self) -> None:
        if not self.is_connected:
            raise NotConnectedError("Radio is not connected. Call connect() first.")

    def _require_length(self, data: bytes, minimum: int) -> None:
        if len(data) < minimum:
            raise CodeplugValidationError(
                f"Codeplug is too small: {len(data)} bytes (minimum {minimum})"
            )

    def _validate_checksums(self, data: bytes) -> None:
        """Run registered validators in order; the first rejection aborts."""
        for validator in self.checksum_validators:
            name = getattr(validator, "__name__", repr(validator))
            if validator(data) is False:
                raise CodeplugValidationError(f"Checksum validator {name} rejected codeplug")
            logger.debug(f"Checksum validator {name} passed")
