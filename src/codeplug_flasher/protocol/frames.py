"""
Fixed-layout command frames shared by both radio protocols.

Frame format:
    [ lead (0-1 bytes) | tag | addr_hi | addr_lo | len | payload (len bytes) ]

BF-888 frames have no lead byte. KT-8900 frames lead with the ACK byte
(0x06), except the very first write block of an upload.
"""

import struct
from typing import NamedTuple, Optional, Union

HEADER_SIZE = 4

Command = Union[str, int]


class FrameHeader(NamedTuple):
    """Decoded command/address/length header."""
    command: int
    address: int
    length: int


def _command_byte(command: Command) -> int:
    if isinstance(command, str):
        if len(command) != 1:
            raise ValueError(f"Command tag must be one character, got {command!r}")
        return ord(command)
    return command


def build_header(command: Command, address: int, length: int) -> bytes:
    """
    Build a 4-byte frame header.

    Args:
        command: Command tag ('R', 'W', 'S', 'X' or its byte value)
        address: 16-bit memory address (big-endian on the wire)
        length: Block length (0-255)

    Returns:
        Header bytes [tag, addr_hi, addr_lo, len]
    """
    if not 0 <= address <= 0xFFFF:
        raise ValueError(f"Address out of range: 0x{address:X}")
    if not 0 <= length <= 0xFF:
        raise ValueError(f"Block too large: {length} bytes (max 255)")
    return struct.pack(">BHB", _command_byte(command), address, length)


def build_frame(
    command: Command,
    address: int,
    payload: bytes = b"",
    length: Optional[int] = None,
    lead: bytes = b"",
) -> bytes:
    """
    Build a complete frame.

    The length field always equals the payload length. Read requests carry
    no payload, so they pass the requested block length explicitly.

    Args:
        command: Command tag
        address: 16-bit memory address
        payload: Block data for write frames
        length: Declared length for payload-less requests
        lead: Optional prefix byte(s), e.g. the KT-8900 ACK byte

    Returns:
        Frame as bytes
    """
    if length is None:
        length = len(payload)
    elif payload and length != len(payload):
        raise ValueError(
            f"Declared length {length} does not match payload length {len(payload)}"
        )
    return bytes(lead) + build_header(command, address, length) + bytes(payload)


def parse_header(data: bytes) -> FrameHeader:
    """Decode the first 4 bytes of ``data`` as a frame header."""
    if len(data) < HEADER_SIZE:
        raise ValueError(f"Header needs {HEADER_SIZE} bytes, got {len(data)}")
    command, address, length = struct.unpack(">BHB", bytes(data[:HEADER_SIZE]))
    return FrameHeader(command, address, length)


def headers_match(expected: bytes, observed: bytes) -> bool:
    """Check command, address and length equality of two frame headers."""
    if len(expected) < HEADER_SIZE or len(observed) < HEADER_SIZE:
        return False
    return parse_header(expected) == parse_header(observed)


def format_hex(data: bytes) -> str:
    """Space separated lower-case hex, as used in dry-run log lines."""
    return bytes(data).hex(" ")


def contains_subsequence(haystack: bytes, needle: bytes) -> bool:
    """True if ``needle`` appears contiguously anywhere in ``haystack``."""
    if not needle:
        return False
    return bytes(needle) in bytes(haystack)
