"""
Tests for emulation prevention removal and insertion.
"""

import random

import pytest

from avcparse.errors import EmulationPreventionError
from avcparse.rbsp import decode_rbsp, encode_rbsp, nal_header_len


class TestDecode:
    """Test decode_rbsp()."""

    def test_no_escape_borrows_buffer(self):
        data = b"\x67\x42\x00\x1e\x80"
        out = decode_rbsp(data)
        assert isinstance(out, memoryview)
        assert bytes(out) == b"\x42\x00\x1e\x80"

    def test_escape_removed(self):
        data = b"\x06\x00\x00\x03\x01\x80"
        assert bytes(decode_rbsp(data)) == b"\x00\x00\x01\x80"

    def test_consecutive_escapes(self):
        data = b"\x01\x00\x00\x03\x00\x00\x03\x00\x80"
        assert bytes(decode_rbsp(data)) == b"\x00\x00\x00\x00\x00\x80"

    def test_escape_at_end_of_unit(self):
        data = b"\x01\xaa\x00\x00\x03"
        assert bytes(decode_rbsp(data)) == b"\xaa\x00\x00"

    def test_extended_header_skipped(self):
        data = b"\x74\x40\x00\x43\x55"
        assert nal_header_len(data[0]) == 4
        assert bytes(decode_rbsp(data)) == b"\x55"

    def test_explicit_header_len_and_range(self):
        data = b"\xff\xff\x11\x00\x00\x03\x02\xff"
        out = decode_rbsp(data, header_len=0, start=2, end=7)
        assert bytes(out) == b"\x11\x00\x00\x02"

    def test_bytes_after_end_not_examined(self):
        # The 00 00 00 belongs to the next unit.
        data = b"\x09\x10\x00\x00\x00\x01"
        assert bytes(decode_rbsp(data, end=3)) == b"\x10\x00"

    def test_three_zero_bytes_rejected(self):
        with pytest.raises(EmulationPreventionError) as exc:
            decode_rbsp(b"\x01\x22\x00\x00\x00\x80")
        assert exc.value.offset == 2

    def test_escape_followed_by_large_byte_rejected(self):
        with pytest.raises(EmulationPreventionError):
            decode_rbsp(b"\x01\x00\x00\x03\x04")

    def test_short_payload(self):
        assert bytes(decode_rbsp(b"\x09\xf0")) == b"\xf0"
        assert bytes(decode_rbsp(b"")) == b""


class TestEncode:
    """Test encode_rbsp()."""

    def test_inserts_escapes(self):
        assert encode_rbsp(b"\x00\x00\x01") == b"\x00\x00\x03\x01"
        assert encode_rbsp(b"\x00\x00\x00\x00") == b"\x00\x00\x03\x00\x00\x03"

    def test_untouched_without_zero_pairs(self):
        assert encode_rbsp(b"\x00\x10\x00\x80") == b"\x00\x10\x00\x80"

    def test_zero_pair_followed_by_large_byte(self):
        assert encode_rbsp(b"\x00\x00\x04") == b"\x00\x00\x04"

    def test_decode_inverts_encode(self):
        payload = bytes([0, 0, 3, 0, 0, 0, 7, 0, 0, 1, 0x80])
        assert bytes(decode_rbsp(encode_rbsp(payload), header_len=0)) == payload


# Byte values that trigger or interact with emulation prevention.
DENSE_BYTES = [0x00] * 8 + [0x01, 0x02, 0x03, 0x03, 0x04, 0x80, 0xff]


class TestRandomPayloads:
    """Seeded payloads dense in 00 and 03 bytes."""

    @pytest.mark.parametrize("seed", range(30))
    def test_encode_then_decode(self, seed):
        rng = random.Random(seed)
        for _ in range(50):
            payload = bytes(rng.choice(DENSE_BYTES) for _ in range(rng.randrange(0, 64)))
            escaped = encode_rbsp(payload)
            assert b"\x00\x00\x00" not in escaped
            assert b"\x00\x00\x01" not in escaped
            assert b"\x00\x00\x02" not in escaped
            assert not escaped.endswith(b"\x00\x00")
            assert bytes(decode_rbsp(escaped, header_len=0)) == payload

    @pytest.mark.parametrize("seed", range(10))
    def test_decode_within_framed_unit(self, seed):
        rng = random.Random(seed)
        payload = bytes(rng.choice(DENSE_BYTES) for _ in range(200)) + b"\x80"
        unit = b"\x06" + encode_rbsp(payload)
        data = b"\xff" * 3 + unit + b"\x00\x00\x00\x01"
        out = decode_rbsp(data, start=3, end=3 + len(unit))
        assert bytes(out) == payload
