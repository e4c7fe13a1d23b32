"""
Serial Port Backend

Handles low-level serial communication with handheld radios over a
USB programming cable.

This module provides:
- Serial port initialization and configuration
- Raw frame writes
- Timeout-bounded exact-length reads with an internal receive buffer
"""

import time
import logging
from typing import Optional

try:
    import serial
except ImportError:
    raise ImportError("PySerial required: pip install pyserial")

from .errors import RadioTransportError, RadioTimeoutError
from .transport import RadioBackend, DEFAULT_READ_TIMEOUT

logger = logging.getLogger(__name__)


class SerialBackend(RadioBackend):
    """
    pyserial implementation of the radio byte channel.

    Bytes that arrive beyond what a read_exactly() call asked for are kept
    in a private buffer and handed out first on the next call.

    Example:
        backend = SerialBackend(port="/dev/ttyUSB0")
        backend.open()
        backend.write(b"\\x02PROGRAM")
        ack = backend.read_exactly(1, timeout=2.0)
        backend.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        timeout: float = DEFAULT_READ_TIMEOUT,
        rtscts: bool = False,
    ):
        """
        Initialize backend.

        Args:
            port: Serial port (e.g., "/dev/ttyUSB0", "COM3")
            baudrate: Serial baud rate (default 9600)
            timeout: Default read timeout in seconds
            rtscts: Enable RTS/CTS hardware flow control (default False)
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.rtscts = rtscts
        self.ser: Optional[serial.Serial] = None
        self._pending = bytearray()

    @property
    def is_open(self) -> bool:
        return bool(self.ser and self.ser.is_open)

    def open(self) -> None:
        """
        Open serial port and configure for radio communication.

        Raises:
            RadioTransportError: If port cannot be opened
        """
        if self.is_open:
            return
        try:
            self.ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=8,
                parity='N',
                stopbits=1,
                timeout=self.timeout,
                write_timeout=self.timeout,
                rtscts=self.rtscts,
            )
            self.ser.rts = True
            self.ser.dtr = True

            # Clear any junk in buffer
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()
            self._pending.clear()

            logger.debug(
                f"Opened {self.port} at {self.baudrate} bps "
                f"(timeout={self.timeout}s, rtscts={self.rtscts})"
            )
        except serial.SerialException as e:
            self.ser = None
            raise RadioTransportError(f"Cannot open port {self.port}: {e}")

    def close(self) -> None:
        """Close serial port. Safe to call repeatedly."""
        self._pending.clear()
        ser, self.ser = self.ser, None
        if ser and ser.is_open:
            ser.close()
            logger.debug(f"Closed {self.port}")

    def write(self, data: bytes) -> None:
        """
        Send raw bytes to radio.

        Raises:
            RadioTransportError: If port is closed or write fails
        """
        if not self.is_open:
            raise RadioTransportError("Serial port not open")

        try:
            written = self.ser.write(data)
            if written is not None and written != len(data):
                raise RadioTransportError(
                    f"Incomplete write: sent {written}/{len(data)} bytes"
                )
            self.ser.flush()
            logger.debug(f">>> {bytes(data).hex().upper()}")
        except serial.SerialException as e:
            raise RadioTransportError(f"Write error: {e}")

    def read_exactly(self, length: int, timeout: Optional[float] = None) -> bytes:
        """
        Receive exactly ``length`` bytes from radio.

        Args:
            length: Number of bytes to receive
            timeout: Deadline in seconds (defaults to the backend timeout)

        Returns:
            Bytes received

        Raises:
            RadioTimeoutError: If the bytes did not arrive in time
            RadioTransportError: If the port is closed or read fails
        """
        if length <= 0:
            return b""
        if not self.is_open:
            raise RadioTransportError("Serial port not open")

        if timeout is None:
            timeout = self.timeout
        deadline = time.monotonic() + timeout

        try:
            while len(self._pending) < length:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise RadioTimeoutError(
                        f"Timeout waiting for {length} bytes "
                        f"(got {len(self._pending)})"
                    )
                self.ser.timeout = remaining
                wanted = max(length - len(self._pending), self.ser.in_waiting)
                chunk = self.ser.read(wanted)
                if chunk:
                    logger.debug(f"<<< {chunk.hex().upper()}")
                    self._pending.extend(chunk)
        except serial.SerialException as e:
            raise RadioTransportError(f"Read error: {e}")

        data = bytes(self._pending[:length])
        del self._pending[:length]
        return data
