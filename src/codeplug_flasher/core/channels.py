"""
BF-888 channel table: frequency encoding, synthesis and readback checks.

Channel record layout (16 bytes, 16 records from 0x0010):
    0-3   receive frequency, LBCD, tens of Hz
    4-7   transmit frequency, LBCD, tens of Hz
    8-9   receive tone (0xFFFF = unset)
    10-11 transmit tone (0xFFFF = unset)
    12    flags
    13-15 trailer
"""

from dataclasses import dataclass
from typing import List, Optional

from codeplug_flasher.protocol.bf888 import MEM_SIZE
from codeplug_flasher.protocol.errors import CodeplugValidationError, VerificationMismatchError

CHANNEL_COUNT = 16
CHANNEL_SIZE = 16
CHANNEL_BASE = 0x0010
RX_FREQ_OFFSET = 0
TX_FREQ_OFFSET = 4
RX_TONE_OFFSET = 8
TX_TONE_OFFSET = 10
FLAGS_OFFSET = 12
TRAILER_OFFSET = 13
TRAILER_SIZE = 3

TONE_UNSET = b"\xFF\xFF"

BASE_FREQUENCY_HZ = 462_000_000
CHANNEL_STEP_HZ = 12_500


def channel_offset(index: int) -> int:
    """Start offset of channel record ``index`` (zero-based)."""
    if not 0 <= index < CHANNEL_COUNT:
        raise IndexError(f"Channel index out of range: {index}")
    return CHANNEL_BASE + index * CHANNEL_SIZE


def encode_lbcd_frequency(freq_hz: int) -> bytes:
    """
    Encode a frequency as 4 bytes of little-endian BCD.

    The value is stored in tens of Hz, rounded half up, as eight decimal
    digits packed two per byte with the least significant pair first.
    462.000 MHz -> 46200000 -> 00 00 20 46.
    """
    if freq_hz < 0:
        raise ValueError(f"Frequency must be positive: {freq_hz}")
    value = (freq_hz + 5) // 10
    digits = f"{value:08d}"
    if len(digits) > 8:
        raise ValueError(f"Frequency too large for 8 BCD digits: {freq_hz} Hz")
    # A decimal digit pair read as hex is exactly its packed BCD byte.
    return bytes(int(digits[6 - 2 * i:8 - 2 * i], 16) for i in range(4))


def decode_lbcd_frequency(data: bytes) -> Optional[int]:
    """
    Decode a 4-byte LBCD frequency field to Hz.

    Returns:
        Frequency in Hz, or None for an erased (all 0xFF) field

    Raises:
        ValueError: If a nibble is not a decimal digit
    """
    if len(data) != 4:
        raise ValueError(f"LBCD field must be 4 bytes, got {len(data)}")
    if bytes(data) == b"\xFF" * 4:
        return None
    digits = "".join(f"{byte:02x}" for byte in reversed(bytes(data)))
    if not digits.isdigit():
        raise ValueError(f"Invalid BCD digits: {bytes(data).hex()}")
    return int(digits) * 10


def is_empty_channel(record: bytes) -> bool:
    """A record whose receive frequency is erased counts as empty."""
    return bytes(record[:4]) == b"\xFF" * 4


def synthesize_full_codeplug(base: bytes) -> bytes:
    """
    Fill every channel slot of ``base`` with a known test pattern.

    Channel N gets BASE_FREQUENCY_HZ + N * CHANNEL_STEP_HZ on both receive
    and transmit, no tones, and the flags/trailer of channel 0 (or zeroes
    when channel 0 is erased). Everything outside the channel table is kept.

    Raises:
        CodeplugValidationError: If ``base`` is shorter than the BF-888 memory
    """
    if len(base) < MEM_SIZE:
        raise CodeplugValidationError(f"Unexpected codeplug length: {len(base)}")

    image = bytearray(base)
    template = bytes(base[CHANNEL_BASE:CHANNEL_BASE + CHANNEL_SIZE])
    if is_empty_channel(template):
        flags = 0x00
        trailer = bytes(TRAILER_SIZE)
    else:
        flags = template[FLAGS_OFFSET]
        trailer = template[TRAILER_OFFSET:TRAILER_OFFSET + TRAILER_SIZE]

    for channel in range(CHANNEL_COUNT):
        offset = channel_offset(channel)
        freq = encode_lbcd_frequency(BASE_FREQUENCY_HZ + channel * CHANNEL_STEP_HZ)

        image[offset + RX_FREQ_OFFSET:offset + RX_FREQ_OFFSET + 4] = freq
        image[offset + TX_FREQ_OFFSET:offset + TX_FREQ_OFFSET + 4] = freq
        image[offset + RX_TONE_OFFSET:offset + RX_TONE_OFFSET + 2] = TONE_UNSET
        image[offset + TX_TONE_OFFSET:offset + TX_TONE_OFFSET + 2] = TONE_UNSET
        image[offset + FLAGS_OFFSET] = flags
        image[offset + TRAILER_OFFSET:offset + TRAILER_OFFSET + TRAILER_SIZE] = trailer

    return bytes(image)


def verify_channel_blocks(expected: bytes, actual: bytes) -> None:
    """
    Compare every channel record of two images.

    Raises:
        VerificationMismatchError: For the first differing channel; its
            ``channel`` attribute is the zero-based index
    """
    for channel in range(CHANNEL_COUNT):
        offset = channel_offset(channel)
        exp = bytes(expected[offset:offset + CHANNEL_SIZE])
        act = bytes(actual[offset:offset + CHANNEL_SIZE])
        if exp != act:
            raise VerificationMismatchError(
                f"Channel {channel + 1} did not match after write/read "
                f"(expected {exp.hex()}, got {act.hex()})",
                channel=channel,
                offset=offset,
            )


def verify_written_region(expected: bytes, actual: bytes, limit: int) -> None:
    """
    Byte-compare the first ``min(len(expected), len(actual), limit)`` bytes.

    Raises:
        VerificationMismatchError: With ``offset`` of the first differing byte
    """
    length = min(len(expected), len(actual), limit)
    for i in range(length):
        if expected[i] != actual[i]:
            raise VerificationMismatchError(f"Mismatch at 0x{i:04x}", offset=i)


@dataclass
class Channel:
    """Decoded view of one BF-888 channel record."""
    index: int
    rx_freq_hz: Optional[int]
    tx_freq_hz: Optional[int]
    rx_tone: Optional[int]
    tx_tone: Optional[int]
    flags: int
    trailer: bytes

    @property
    def empty(self) -> bool:
        return self.rx_freq_hz is None


def _decode_tone(data: bytes) -> Optional[int]:
    if bytes(data) == TONE_UNSET:
        return None
    return int.from_bytes(data, "little")


def decode_channels(image: bytes) -> List[Channel]:
    """
    Decode all channel records of a BF-888 image.

    Raises:
        CodeplugValidationError: If the image is shorter than the BF-888 memory
        ValueError: If a frequency field holds non-decimal nibbles
    """
    if len(image) < MEM_SIZE:
        raise CodeplugValidationError(f"Unexpected codeplug length: {len(image)}")

    channels = []
    for index in range(CHANNEL_COUNT):
        offset = channel_offset(index)
        record = bytes(image[offset:offset + CHANNEL_SIZE])
        channels.append(Channel(
            index=index,
            rx_freq_hz=decode_lbcd_frequency(record[RX_FREQ_OFFSET:RX_FREQ_OFFSET + 4]),
            tx_freq_hz=decode_lbcd_frequency(record[TX_FREQ_OFFSET:TX_FREQ_OFFSET + 4]),
            rx_tone=_decode_tone(record[RX_TONE_OFFSET:RX_TONE_OFFSET + 2]),
            tx_tone=_decode_tone(record[TX_TONE_OFFSET:TX_TONE_OFFSET + 2]),
            flags=record[FLAGS_OFFSET],
            trailer=record[TRAILER_OFFSET:TRAILER_OFFSET + TRAILER_SIZE],
        ))
    return channels
