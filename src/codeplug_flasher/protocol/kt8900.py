"""
KT-8900 Codeplug Driver

Identify-per-operation clone protocol for QYT KT-8900 class mobile radios.

Protocol sequence (repeated at the start of every read or write):
1. Send 8-byte magic 55 20 15 09 16 45 4D 02
2. Receive 50-byte ident: 0x06 followed by a payload holding a model id
3. Pause 100 ms, then read the 16-byte extra-ID block at 0x3DF0
4. Upload only: pause 300 ms, send 0x06, expect 0x06 back

Block frames:
    READ:   [06 | 'S' | addr_hi | addr_lo | 0x40]
            -> [06 | 'X' | addr_hi | addr_lo | 0x40 | 64 bytes]
    WRITE:  [06 | 'X' | addr_hi | addr_lo | 0x10 | 16 bytes] -> 0x06 or 0x05
            (the first block of an upload is sent without the leading 06)
"""

import time
import logging
from typing import List, Optional

from .driver import ChecksumValidator, ProgressCallback, RadioDriver, SessionState
from .errors import (
    BadAckError,
    IdentMismatchError,
    ProtocolMismatchError,
    RadioTimeoutError,
    ShortReadError,
    TRANSIENT_IDENT_ERRORS,
)
from .frames import build_frame, contains_subsequence, format_hex, parse_header
from .transport import RadioBackend

logger = logging.getLogger(__name__)

# Protocol constants
ACK = 0x06
ACK_ALT = 0x05
WRITE_ACKS = (ACK, ACK_ALT)
MAGIC = bytes([0x55, 0x20, 0x15, 0x09, 0x16, 0x45, 0x4D, 0x02])
IDENT_LENGTH = 50
RESPONSE_HEADER_SIZE = 5  # ack + tag + addr (2) + len

# Model ids found inside the ident frame
FILE_IDS = [
    b"M29154",
    b"M2C234",
    b"M2G1F4",
    b"M2G2F4",
    b"M2G304",
    b"M2G314",
    b"M2G424",
    b"M27184",
    b"M2C194",
]

# Memory layout
MEM_SIZE = 0x4000
UPLOAD_MEM_SIZE = 0x3100
READ_BLOCK_SIZE = 0x40
WRITE_BLOCK_SIZE = 0x10
EXTRA_ID_ADDR = 0x3DF0
EXTRA_ID_LEN = 16

# Timing (seconds)
DEFAULT_TIMEOUT = 2.0
WRITE_ACK_TIMEOUT = 1.0
EXTRA_ID_DELAY = 0.1
UPLOAD_MODE_DELAY = 0.3
UPLOAD_ACK_WINDOW = 0.5
UPLOAD_ACK_MAX_BYTES = 2
IDENT_ATTEMPTS = 3
IDENT_RETRY_DELAY = 0.5


def match_file_id(ident: bytes) -> Optional[bytes]:
    """
    Find a known model id inside an ident payload.

    The id may sit anywhere in the payload; a positional match is not
    assumed because radios in the field report it at varying offsets.
    """
    for file_id in FILE_IDS:
        if contains_subsequence(ident, file_id):
            return file_id
    return None


class KT8900Driver(RadioDriver):
    """
    Driver for KT-8900 class radios.

    connect() only opens the backend. Identification is re-run at the start
    of each read and write, with a bounded retry, so a radio that was reset
    or missed the first magic can still be programmed.
    """

    def __init__(
        self,
        backend: RadioBackend,
        dry_run: bool = False,
        checksum_validators: Optional[List[ChecksumValidator]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize driver.

        Args:
            backend: Byte channel to the radio (not yet open)
            dry_run: Log write blocks instead of sending them
            checksum_validators: Checks run over an image before writing
            timeout: Per-read timeout in seconds for ident and read blocks
        """
        super().__init__(backend, dry_run=dry_run, checksum_validators=checksum_validators)
        self.timeout = timeout
        self._fingerprint: Optional[bytes] = None
        self._extra_ident: Optional[bytes] = None

    @property
    def fingerprint(self) -> Optional[bytes]:
        """Model id matched by the last successful identification"""
        return self._fingerprint

    @property
    def extra_ident(self) -> Optional[bytes]:
        """16-byte extra-ID block read during the last identification"""
        return self._extra_ident

    def connect(self) -> None:
        """Open the backend. No bytes are exchanged."""
        self.backend.open()
        self._state = SessionState.CONNECTED

    def disconnect(self) -> None:
        """Release the backend. The radio needs no exit command."""
        self._state = SessionState.DISCONNECTED
        self.backend.close()

    def identify_with_retry(self, for_upload: bool = False) -> None:
        """
        Identify the radio, retrying transient failures.

        Up to IDENT_ATTEMPTS attempts with IDENT_RETRY_DELAY between them.
        Timeouts, bad ACKs, unknown ids and a missing upload ACK are retried;
        anything else propagates immediately.
        """
        self._ensure_connected()
        for attempt in range(1, IDENT_ATTEMPTS + 1):
            try:
                self.identify(for_upload)
                return
            except TRANSIENT_IDENT_ERRORS as e:
                if attempt >= IDENT_ATTEMPTS:
                    raise
                logger.warning(
                    f"KT-8900: ident failed (attempt {attempt}): {e}, retrying..."
                )
                time.sleep(IDENT_RETRY_DELAY)

    def identify(self, for_upload: bool = False) -> None:
        """
        Run one identification exchange.

        Args:
            for_upload: Also switch the radio into upload mode

        Raises:
            BadAckError: Ident or extra-ID not acknowledged, or no upload ACK
            IdentMismatchError: Ident payload holds no known model id
            ShortReadError: A fixed-size response came back short
            RadioTimeoutError: Radio did not answer
        """
        self._ensure_connected()
        self._state = SessionState.IDENTIFYING
        try:
            self._identify_once(for_upload)
        finally:
            self._state = SessionState.CONNECTED

    def _identify_once(self, for_upload: bool) -> None:
        logger.info("KT-8900: sending magic")
        self.backend.write(MAGIC)

        ident = self.backend.read_exactly(IDENT_LENGTH, self.timeout)
        if not ident or ident[0] != ACK:
            raise BadAckError(f"Bad ACK from radio: 0x{ident[:1].hex() or '--'}")
        if len(ident) != IDENT_LENGTH:
            raise ShortReadError(f"Short ident block: {len(ident)} bytes")

        file_id = match_file_id(ident[1:])
        if file_id is None:
            raise IdentMismatchError("Radio identification failed. Unsupported KT-8900 ident.")
        logger.info(f"KT-8900: ident matched {file_id.decode('ascii')}")

        time.sleep(EXTRA_ID_DELAY)

        self.backend.write(build_frame('S', EXTRA_ID_ADDR, length=EXTRA_ID_LEN, lead=bytes([ACK])))
        extra = self.backend.read_exactly(RESPONSE_HEADER_SIZE + EXTRA_ID_LEN, self.timeout)
        if not extra or extra[0] not in WRITE_ACKS:
            raise BadAckError(f"Bad ACK for extra ID block: 0x{extra[:1].hex() or '--'}")
        if len(extra) < RESPONSE_HEADER_SIZE + EXTRA_ID_LEN:
            raise ShortReadError(f"Extra ID block is short: {len(extra)} bytes")

        if for_upload:
            time.sleep(UPLOAD_MODE_DELAY)
            self.backend.write(bytes([ACK]))
            reply = self._read_optional(UPLOAD_ACK_MAX_BYTES, UPLOAD_ACK_WINDOW)
            if not reply or reply[-1] != ACK:
                raise BadAckError("Radio did not ACK upload mode")

        self._fingerprint = file_id
        self._extra_ident = bytes(extra[RESPONSE_HEADER_SIZE:])

    def read_codeplug(self, progress_cb: Optional[ProgressCallback] = None) -> bytes:
        """
        Identify, then download the full memory image.

        Returns:
            MEM_SIZE bytes
        """
        self._ensure_connected()
        self.identify_with_retry(for_upload=False)

        logger.info("KT-8900: reading codeplug...")
        buffer = bytearray(MEM_SIZE)
        for addr in range(0, MEM_SIZE, READ_BLOCK_SIZE):
            buffer[addr:addr + READ_BLOCK_SIZE] = self._read_block(addr, READ_BLOCK_SIZE)
            if progress_cb:
                progress_cb(addr + READ_BLOCK_SIZE, MEM_SIZE)

        logger.info(f"KT-8900: read complete ({len(buffer)} bytes)")
        return bytes(buffer)

    def write_codeplug(
        self,
        data: bytes,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Identify in upload mode, then send the upload region of ``data``.

        Raises:
            CodeplugValidationError: If the image is shorter than
                UPLOAD_MEM_SIZE or a validator fails (before any I/O)
            BadAckError: If a block is not acknowledged
        """
        self._ensure_connected()
        self._require_length(data, UPLOAD_MEM_SIZE)
        self._validate_checksums(data)

        self.identify_with_retry(for_upload=True)

        logger.info(
            f"KT-8900: writing {UPLOAD_MEM_SIZE} bytes{' (dry run)' if self.dry_run else ''}..."
        )
        for addr in range(0, UPLOAD_MEM_SIZE, WRITE_BLOCK_SIZE):
            block = bytes(data[addr:addr + WRITE_BLOCK_SIZE])
            if self.dry_run:
                logger.info(f"DRY-RUN write 0x{addr:04x}: {format_hex(block)}")
            else:
                self._write_block(addr, block, omit_leading_ack=(addr == 0))
            if progress_cb:
                progress_cb(addr + WRITE_BLOCK_SIZE, UPLOAD_MEM_SIZE)

        logger.info("KT-8900: write complete")

    def _read_block(self, address: int, length: int) -> bytes:
        self.backend.write(build_frame('S', address, length=length, lead=bytes([ACK])))

        response = self.backend.read_exactly(RESPONSE_HEADER_SIZE + length, self.timeout)
        if len(response) < RESPONSE_HEADER_SIZE + length:
            raise ShortReadError(
                f"Short block at 0x{address:04x}: {len(response)} bytes"
            )
        if response[0] != ACK:
            raise BadAckError(f"Bad ACK for read at 0x{address:04x}")

        header = parse_header(response[1:RESPONSE_HEADER_SIZE])
        if header.command != ord('X') or header.address != address or header.length != length:
            raise ProtocolMismatchError(
                f"Invalid header for block 0x{address:04x}: "
                f"{format_hex(response[1:RESPONSE_HEADER_SIZE])}"
            )

        logger.debug(f"Read block at {address:04X}: {length} bytes")
        return response[RESPONSE_HEADER_SIZE:]

    def _write_block(self, address: int, data: bytes, omit_leading_ack: bool) -> None:
        if len(data) != WRITE_BLOCK_SIZE:
            raise ValueError(f"Invalid block size: {len(data)}")

        # The radio rejects the first block of an upload if it carries the
        # leading ACK byte.
        lead = b"" if omit_leading_ack else bytes([ACK])
        self.backend.write(build_frame('X', address, data, lead=lead))

        ack = self.backend.read_exactly(1, WRITE_ACK_TIMEOUT)
        if not ack or ack[0] not in WRITE_ACKS:
            raise BadAckError(
                f"Bad ACK writing block 0x{address:04x}: 0x{ack.hex() or '--'}"
            )
        logger.debug(f"Write block at {address:04X}: {len(data)} bytes")

    def _read_optional(self, max_bytes: int, window: float) -> bytes:
        """Collect up to ``max_bytes`` single bytes until ``window`` elapses."""
        deadline = time.monotonic() + window
        received = bytearray()
        for _ in range(max_bytes):
            remaining = max(0.001, deadline - time.monotonic())
            try:
                received += self.backend.read_exactly(1, remaining)
            except RadioTimeoutError:
                break
        return bytes(received)
