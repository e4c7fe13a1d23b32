import pytest

from codeplug_flasher.protocol.frames import (
    FrameHeader,
    build_frame,
    build_header,
    contains_subsequence,
    format_hex,
    headers_match,
    parse_header,
)


def test_header_is_tag_big_endian_address_and_length():
    assert build_header('R', 0x03D8, 8) == b"R\x03\xd8\x08"
    assert build_header(0x53, 0x3DF0, 0x10) == b"S\x3d\xf0\x10"


def test_read_request_declares_length_without_payload():
    assert build_frame('R', 0x0010, length=8) == b"R\x00\x10\x08"


def test_write_frame_length_follows_payload():
    frame = build_frame('W', 0x0380, b"\x11" * 8)
    assert frame == b"W\x03\x80\x08" + b"\x11" * 8


def test_lead_byte_prefixes_frame():
    frame = build_frame('X', 0x0010, b"\xAA" * 16, lead=b"\x06")
    assert frame[:5] == b"\x06X\x00\x10\x10"
    assert len(frame) == 21


def test_declared_length_must_match_payload():
    with pytest.raises(ValueError):
        build_frame('W', 0, b"\x00" * 8, length=16)


@pytest.mark.parametrize("address,length", [(-1, 8), (0x10000, 8), (0, 256)])
def test_header_rejects_out_of_range_fields(address, length):
    with pytest.raises(ValueError):
        build_header('R', address, length)


def test_multi_character_tag_rejected():
    with pytest.raises(ValueError):
        build_header("RW", 0, 8)


def test_parse_header_fields():
    assert parse_header(b"W\x02\xb0\x08extra") == FrameHeader(ord('W'), 0x02B0, 8)


def test_parse_header_needs_four_bytes():
    with pytest.raises(ValueError):
        parse_header(b"W\x00")


def test_headers_match_compares_all_fields():
    expected = build_header('W', 0x0100, 8)
    assert headers_match(expected, b"W\x01\x00\x08")
    assert not headers_match(expected, b"X\x01\x00\x08")
    assert not headers_match(expected, b"W\x01\x08\x08")
    assert not headers_match(expected, b"W\x01\x00\x10")
    assert not headers_match(expected, b"W\x01")


def test_format_hex_is_space_separated_lowercase():
    assert format_hex(b"\x0a\xff\x00") == "0a ff 00"


def test_contains_subsequence():
    assert contains_subsequence(b"\x00\x00M2G1F4\x00", b"M2G1F4")
    assert not contains_subsequence(b"\x00M2G1\x00F4", b"M2G1F4")
    assert not contains_subsequence(b"abc", b"")
