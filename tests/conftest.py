"""Scripted radio backends that answer frames the way real radios do."""

import time
from typing import List, Optional, Set

import pytest

from codeplug_flasher.protocol import bf888, kt8900
from codeplug_flasher.protocol.errors import RadioTimeoutError, RadioTransportError
from codeplug_flasher.protocol.transport import RadioBackend


def pattern_image(size: int, seed: int = 3) -> bytes:
    """Deterministic non-uniform test image."""
    return bytes((i * 7 + seed) & 0xFF for i in range(size))


class ScriptedBackend(RadioBackend):
    """
    In-memory backend. Subclasses queue replies from handle().

    Reads never block: a read the script cannot satisfy times out at once,
    leaving queued bytes in place.
    """

    def __init__(self) -> None:
        self.is_open = False
        self.opened = 0
        self.closed = 0
        self.writes: List[bytes] = []
        self.reads: List[int] = []
        self._rx = bytearray()

    def open(self) -> None:
        self.opened += 1
        self.is_open = True

    def close(self) -> None:
        self.closed += 1
        self.is_open = False
        self._rx.clear()

    def write(self, data: bytes) -> None:
        if not self.is_open:
            raise RadioTransportError("Serial port not open")
        data = bytes(data)
        self.writes.append(data)
        self.handle(data)

    def read_exactly(self, length: int, timeout: Optional[float] = None) -> bytes:
        if not self.is_open:
            raise RadioTransportError("Serial port not open")
        self.reads.append(length)
        if len(self._rx) < length:
            raise RadioTimeoutError(f"Timeout waiting for {length} bytes")
        out = bytes(self._rx[:length])
        del self._rx[:length]
        return out

    def queue(self, data: bytes) -> None:
        self._rx.extend(data)

    def handle(self, data: bytes) -> None:
        pass

    @property
    def io_count(self) -> int:
        return len(self.writes) + len(self.reads)


class FakeBF888(ScriptedBackend):
    """BF-888 emulator over an 0x3E0-byte memory."""

    def __init__(
        self,
        memory: Optional[bytes] = None,
        ident: bytes = b"P3107\x00\xff\xff",
        program_ack: int = bf888.ACK,
        corrupt_header_at: Optional[int] = None,
        ignore_writes_at: Optional[Set[int]] = None,
    ) -> None:
        super().__init__()
        self.memory = bytearray(memory if memory is not None else pattern_image(bf888.MEM_SIZE))
        self.ident = ident
        self.program_ack = program_ack
        self.corrupt_header_at = corrupt_header_at
        self.ignore_writes_at = ignore_writes_at or set()
        self.written_blocks: List[int] = []
        self.exits = 0

    def handle(self, data: bytes) -> None:
        if data == bf888.PROGRAM_CMD:
            self.queue(bytes([self.program_ack]))
        elif data == bf888.IDENT_REQUEST:
            self.queue(self.ident)
        elif data == bytes([bf888.ACK]):
            self.queue(bytes([bf888.ACK]))
        elif data == bf888.EXIT_CMD:
            self.exits += 1
        elif data[:1] == b"R" and len(data) == 4:
            addr = (data[1] << 8) | data[2]
            size = data[3]
            tag = b"X" if addr == self.corrupt_header_at else b"W"
            self.queue(tag + data[1:4] + bytes(self.memory[addr:addr + size]))
        elif data[:1] == b"W" and len(data) > 4:
            addr = (data[1] << 8) | data[2]
            size = data[3]
            assert len(data) == 4 + size
            self.written_blocks.append(addr)
            if addr not in self.ignore_writes_at:
                self.memory[addr:addr + size] = data[4:]
            self.queue(bytes([bf888.ACK]))
        else:
            raise AssertionError(f"Unexpected BF-888 frame: {data.hex()}")


class SilentBackend(ScriptedBackend):
    """Radio that never answers."""


class FakeKT8900(ScriptedBackend):
    """KT-8900 emulator over an 0x4000-byte memory."""

    def __init__(
        self,
        memory: Optional[bytes] = None,
        file_id: bytes = b"M2G1F4",
        silent_magics: int = 0,
        bad_ident_magics: int = 0,
        extra_ack: int = kt8900.ACK_ALT,
        upload_ack: Optional[int] = kt8900.ACK,
        write_acks: Optional[List[int]] = None,
        corrupt_read_addr: Optional[int] = None,
        corrupt_write_at: Optional[int] = None,
    ) -> None:
        super().__init__()
        self.memory = bytearray(memory if memory is not None else pattern_image(kt8900.MEM_SIZE))
        self.file_id = file_id
        self.silent_magics = silent_magics
        self.bad_ident_magics = bad_ident_magics
        self.extra_ack = extra_ack
        self.upload_ack = upload_ack
        self.write_acks = write_acks or [kt8900.ACK]
        self.corrupt_read_addr = corrupt_read_addr
        self.corrupt_write_at = corrupt_write_at
        self.magic_count = 0
        self.write_frames: List[bytes] = []

    def handle(self, data: bytes) -> None:
        if data == kt8900.MAGIC:
            self.magic_count += 1
            if self.magic_count <= self.silent_magics:
                return
            if self.magic_count <= self.silent_magics + self.bad_ident_magics:
                file_id = b"Z9Z9Z9"
            else:
                file_id = self.file_id
            ident = bytes([kt8900.ACK]) + b"\x00" * 17 + file_id
            self.queue(ident.ljust(kt8900.IDENT_LENGTH, b"\x00"))
        elif data == bytes([kt8900.ACK]):
            if self.upload_ack is not None:
                self.queue(bytes([self.upload_ack]))
        elif len(data) == 5 and data[:2] == b"\x06S":
            addr = (data[2] << 8) | data[3]
            size = data[4]
            ack = self.extra_ack if addr == kt8900.EXTRA_ID_ADDR else kt8900.ACK
            tag = b"Y" if addr == self.corrupt_read_addr else b"X"
            self.queue(bytes([ack]) + tag + data[2:5] + bytes(self.memory[addr:addr + size]))
        elif data[:1] == b"X" or data[:2] == b"\x06X":
            self.write_frames.append(data)
            body = data[1:] if data[:1] == b"\x06" else data
            addr = (body[1] << 8) | body[2]
            size = body[3]
            assert len(body) == 4 + size
            payload = bytearray(body[4:])
            if addr == self.corrupt_write_at:
                payload[0] ^= 0xFF
            self.memory[addr:addr + size] = payload
            ack = self.write_acks[(len(self.write_frames) - 1) % len(self.write_acks)]
            self.queue(bytes([ack]))
        else:
            raise AssertionError(f"Unexpected KT-8900 frame: {data.hex()}")


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Replace time.sleep so protocol delays cost nothing; record them."""
    recorded: List[float] = []
    monkeypatch.setattr(time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


@pytest.fixture(autouse=True)
def no_dry_run_env(monkeypatch):
    monkeypatch.delenv(bf888.DRY_RUN_ENV, raising=False)
