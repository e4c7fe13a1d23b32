"""
Byte channel contract consumed by the radio drivers.

A backend owns one physical (or simulated) link and its receive buffer.
Drivers never share a backend: one driver instance, one backend, issued
strictly sequentially.
"""

from abc import ABC, abstractmethod
from typing import Optional


DEFAULT_READ_TIMEOUT = 1.0


class RadioBackend(ABC):
    """
    Abstract byte channel to a radio.

    read_exactly() blocks until ``length`` bytes are available or the
    timeout elapses. Bytes received beyond ``length`` stay buffered for the
    next call, in order. A deadline miss raises RadioTimeoutError; there is
    no partial result.

    close() must be idempotent and safe after a failed open or handshake.
    """

    @abstractmethod
    def open(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def write(self, data: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def read_exactly(self, length: int, timeout: Optional[float] = None) -> bytes:
        raise NotImplementedError
