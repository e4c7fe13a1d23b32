"""
BF-888 Codeplug Driver

Handshake-gated clone protocol for Baofeng BF-888S class radios.

Protocol sequence:
1. Send 0x02 + "PROGRAM" -> expect 0x06
2. Send 0x02 -> receive 8-byte ident starting with "P3107"
3. Send 0x06 -> expect 0x06
4. Read:  ['R', addr_hi, addr_lo, 8] -> ['W', addr_hi, addr_lo, 8] + 8 bytes,
          then host ACK -> radio ACK
5. Write: ['W', addr_hi, addr_lo, 8] + 8 bytes -> 0x06
6. Send "E" to leave programming mode
"""

import os
import logging
from typing import List, Optional

from .driver import ChecksumValidator, ProgressCallback, RadioDriver, SessionState
from .errors import BadAckError, IdentMismatchError, ProtocolMismatchError, ShortReadError
from .frames import HEADER_SIZE, build_frame, build_header, format_hex, headers_match
from .transport import RadioBackend

logger = logging.getLogger(__name__)

# Protocol constants
ACK = 0x06
PROGRAM_CMD = b"\x02PROGRAM"
IDENT_REQUEST = b"\x02"
IDENT_LENGTH = 8
IDENT_PREFIX = b"P3107"
EXIT_CMD = b"E"

# Memory layout
MEM_SIZE = 0x03E0
BLOCK_SIZE = 8
WRITE_RANGES = (
    (0x0000, 0x0110),
    (0x02B0, 0x02C0),
    (0x0380, 0x03E0),
)

DEFAULT_TIMEOUT = 2.0
DRY_RUN_ENV = "BF888_DRY_RUN"


def dry_run_from_env() -> bool:
    """True when BF888_DRY_RUN=1 is set."""
    return os.environ.get(DRY_RUN_ENV) == "1"


def write_region_size() -> int:
    """Total bytes transferred by one upload."""
    return sum(end - start for start, end in WRITE_RANGES)


class BF888Driver(RadioDriver):
    """
    Driver for BF-888 class radios.

    connect() performs the full handshake; read/write require it and run
    over fixed 8-byte blocks.

    Example:
        driver = BF888Driver(SerialBackend("/dev/ttyUSB0"))
        driver.connect()
        try:
            image = driver.read_codeplug()
        finally:
            driver.disconnect()
    """

    def __init__(
        self,
        backend: RadioBackend,
        dry_run: Optional[bool] = None,
        checksum_validators: Optional[List[ChecksumValidator]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize driver.

        Args:
            backend: Byte channel to the radio (not yet open)
            dry_run: Log write blocks instead of sending them. Defaults to
                the BF888_DRY_RUN environment variable.
            checksum_validators: Checks run over an image before writing
            timeout: Per-read timeout in seconds
        """
        if dry_run is None:
            dry_run = dry_run_from_env()
        super().__init__(backend, dry_run=dry_run, checksum_validators=checksum_validators)
        self.timeout = timeout
        self._ident: Optional[bytes] = None

    @property
    def ident(self) -> Optional[bytes]:
        """Identification string returned by the last handshake"""
        return self._ident

    def connect(self) -> None:
        """
        Open the backend and enter programming mode.

        Any failure closes the backend before the error propagates.

        Raises:
            BadAckError: If an acknowledgement is not 0x06
            IdentMismatchError: If the ident does not start with "P3107"
            RadioTimeoutError: If the radio stops answering
        """
        self._state = SessionState.HANDSHAKING
        try:
            self.backend.open()

            logger.info("BF-888: entering programming mode")
            self.backend.write(PROGRAM_CMD)
            self._expect_ack("after PROGRAM")

            self.backend.write(IDENT_REQUEST)
            ident = self.backend.read_exactly(IDENT_LENGTH, self.timeout)
            if len(ident) < IDENT_LENGTH:
                raise ShortReadError(f"Short ident: {len(ident)} bytes")
            if not ident.startswith(IDENT_PREFIX):
                raise IdentMismatchError(
                    f"Unexpected ident string: {ident.decode('latin-1')!r}"
                )
            logger.info(f"BF-888: ident {ident.decode('latin-1')!r}")

            self.backend.write(bytes([ACK]))
            self._expect_ack("after ident")
        except Exception:
            self._state = SessionState.DISCONNECTED
            self.backend.close()
            raise

        self._ident = ident
        self._state = SessionState.CONNECTED

    def disconnect(self) -> None:
        """Leave programming mode (if entered) and release the backend."""
        try:
            if self.is_connected:
                self.backend.write(EXIT_CMD)
        finally:
            self._state = SessionState.DISCONNECTED
            self.backend.close()

    def read_codeplug(self, progress_cb: Optional[ProgressCallback] = None) -> bytes:
        """
        Download the full memory image.

        Returns:
            MEM_SIZE bytes

        Raises:
            NotConnectedError: If connect() has not succeeded
            ProtocolMismatchError: If a response header does not echo the block
        """
        self._ensure_connected()

        logger.info("BF-888: reading codeplug...")
        buffer = bytearray(MEM_SIZE)
        for addr in range(0, MEM_SIZE, BLOCK_SIZE):
            buffer[addr:addr + BLOCK_SIZE] = self._read_block(addr, BLOCK_SIZE)
            if progress_cb:
                progress_cb(addr + BLOCK_SIZE, MEM_SIZE)

        logger.info(f"BF-888: read complete ({len(buffer)} bytes)")
        return bytes(buffer)

    def write_codeplug(
        self,
        data: bytes,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Upload the writable ranges of ``data``.

        Only WRITE_RANGES are sent; the rest of the image is left untouched
        on the radio.

        Raises:
            NotConnectedError: If connect() has not succeeded
            CodeplugValidationError: If the image is short or a validator fails
            BadAckError: If the radio does not ACK a block
        """
        self._ensure_connected()
        self._require_length(data, MEM_SIZE)
        self._validate_checksums(data)

        total = write_region_size()
        sent = 0
        logger.info(f"BF-888: writing {total} bytes{' (dry run)' if self.dry_run else ''}...")

        for start, end in WRITE_RANGES:
            for addr in range(start, end, BLOCK_SIZE):
                block = bytes(data[addr:addr + BLOCK_SIZE])
                if self.dry_run:
                    logger.info(f"DRY-RUN write 0x{addr:04x}: {format_hex(block)}")
                else:
                    self._write_block(addr, block)
                sent += len(block)
                if progress_cb:
                    progress_cb(sent, total)

        logger.info("BF-888: write complete")

    def _read_block(self, address: int, length: int) -> bytes:
        self.backend.write(build_frame('R', address, length=length))

        response = self.backend.read_exactly(HEADER_SIZE + length, self.timeout)
        if len(response) < HEADER_SIZE + length:
            raise ShortReadError(
                f"Short block at 0x{address:04x}: {len(response)} bytes"
            )

        header = response[:HEADER_SIZE]
        if not headers_match(build_header('W', address, length), header):
            raise ProtocolMismatchError(
                f"Unexpected block header at 0x{address:04x}: {format_hex(header)}"
            )

        self.backend.write(bytes([ACK]))
        self._expect_ack("after read")

        logger.debug(f"Read block at {address:04X}: {length} bytes")
        return response[HEADER_SIZE:]

    def _write_block(self, address: int, data: bytes) -> None:
        if len(data) != BLOCK_SIZE:
            raise ValueError(f"Invalid block size: {len(data)}")

        self.backend.write(build_frame('W', address, data))
        self._expect_ack("after write")
        logger.debug(f"Write block at {address:04X}: {len(data)} bytes")

    def _expect_ack(self, context: str) -> None:
        # Strict: any byte other than ACK is an error, never skipped.
        ack = self.backend.read_exactly(1, self.timeout)
        if ack != bytes([ACK]):
            raise BadAckError(f"Unexpected ACK {context}: 0x{ack.hex() or '--'}")
