"""
Tests for the bit reader and writer.

Covers fixed-width reads across byte boundaries, Exp-Golomb decoding,
and the rbsp_trailing_bits() checks used by every parameter set parser.
"""

import random

import pytest

from avcparse.bitstream import BitstreamReader, BitstreamWriter
from avcparse.errors import RangeViolationError, TruncatedError, ValueOverflowError

UE_MAX = (1 << 32) - 2
SE_MAX = (1 << 31) - 1


class TestFixedWidth:
    """Test u(n), f(n) and i(n) reads."""

    def test_reads_across_byte_boundary(self):
        r = BitstreamReader(bytes([0b10110011, 0b01010101]))
        assert r.read_bits(3) == 0b101
        assert r.read_bits(7) == 0b1001101
        assert r.position == 10
        assert r.bits_left == 6

    def test_read_32_bits(self):
        r = BitstreamReader(b"\x80\x00\x00\x01\xff")
        assert r.read_bits(4) == 8
        assert r.read_bits(32) == 0x0000001F

    def test_zero_bits_reads_nothing(self):
        r = BitstreamReader(b"\xff")
        assert r.read_bits(0) == 0
        assert r.position == 0

    def test_more_than_32_bits_is_programming_error(self):
        with pytest.raises(ValueError):
            BitstreamReader(b"\x00" * 8).read_bits(33)

    def test_truncated_names_field(self):
        r = BitstreamReader(b"\xff")
        r.read_bits(6)
        with pytest.raises(TruncatedError) as exc:
            r.read_bits(3, "frame_num")
        assert exc.value.field == "frame_num"

    def test_signed(self):
        r = BitstreamReader(bytes([0b11110000]))
        assert r.read_signed(4) == -1
        assert r.read_signed(4) == 0


class TestExpGolomb:
    """Test ue(v) and se(v)."""

    @pytest.mark.parametrize("bits,expected", [
        ("1", 0), ("010", 1), ("011", 2), ("00100", 3), ("0001000", 7),
    ])
    def test_ue_codes(self, bits, expected):
        padded = bits + "1" + "0" * (-(len(bits) + 1) % 8)
        r = BitstreamReader(int(padded, 2).to_bytes(len(padded) // 8, "big"))
        assert r.read_ue() == expected

    def test_se_mapping(self):
        w = BitstreamWriter()
        for code_num in range(1, 6):
            w.write_ue(code_num)
        r = BitstreamReader(w.getvalue())
        assert [r.read_se() for _ in range(5)] == [1, -1, 2, -2, 3]

    def test_largest_code(self):
        w = BitstreamWriter()
        w.write_ue((1 << 32) - 2)
        r = BitstreamReader(w.getvalue())
        assert r.read_ue() == (1 << 32) - 2

    def test_overlong_prefix_overflows(self):
        r = BitstreamReader(b"\x00" * 4 + b"\x80" + b"\x00" * 4)
        with pytest.raises(ValueOverflowError):
            r.read_ue("max_num_ref_frames")

    def test_all_zero_data_is_truncated(self):
        with pytest.raises(TruncatedError):
            BitstreamReader(b"\x00\x00").read_ue()

    def test_bounded_reads(self):
        w = BitstreamWriter()
        w.write_ue(40)
        w.write_se(-7)
        r = BitstreamReader(w.getvalue())
        with pytest.raises(RangeViolationError) as exc:
            r.read_ue_max("pic_parameter_set_id", 31)
        assert exc.value.value == 40
        with pytest.raises(RangeViolationError):
            r.read_se_range("slice_alpha_c0_offset_div2", -6, 6)

    @pytest.mark.parametrize("seed", range(20))
    def test_random_ue_se_sequences(self, seed):
        rng = random.Random(seed)
        fields = []
        for _ in range(200):
            # Pick the bit length first so short and long codes are equally likely.
            bits = rng.randint(0, 32)
            magnitude = rng.getrandbits(bits) if bits else 0
            if rng.random() < 0.5:
                fields.append(("ue", min(magnitude, UE_MAX)))
            else:
                value = min(magnitude, SE_MAX)
                fields.append(("se", value if rng.random() < 0.5 else -value))
        fields += [("ue", 0), ("ue", UE_MAX), ("se", SE_MAX), ("se", -SE_MAX)]

        w = BitstreamWriter()
        for kind, value in fields:
            if kind == "ue":
                w.write_ue(value)
            else:
                w.write_se(value)
        w.write_rbsp_trailing_bits()

        r = BitstreamReader(w.getvalue())
        decoded = [(kind, r.read_ue() if kind == "ue" else r.read_se()) for kind, _ in fields]
        assert decoded == fields
        r.finish_rbsp()


class TestTrailingBits:
    """Test more_rbsp_data() and rbsp_trailing_bits()."""

    def test_has_more_rbsp_data(self):
        r = BitstreamReader(bytes([0b10110000]))
        assert r.has_more_rbsp_data()
        r.read_bits(2)
        assert r.has_more_rbsp_data()
        r.read_flag()
        assert not r.has_more_rbsp_data()
        r.finish_rbsp()
        assert r.bits_left == 0

    def test_finish_requires_stop_bit(self):
        r = BitstreamReader(bytes([0b01000000]))
        with pytest.raises(RangeViolationError):
            r.finish_rbsp()

    def test_finish_rejects_leftover_data(self):
        r = BitstreamReader(bytes([0b11000000]))
        with pytest.raises(RangeViolationError):
            r.finish_rbsp()

    def test_finish_on_empty_is_truncated(self):
        r = BitstreamReader(b"\x80")
        r.read_bits(8)
        with pytest.raises(TruncatedError):
            r.finish_rbsp()

    def test_skip_to_trailing_bits(self):
        r = BitstreamReader(bytes([0b10101100, 0b10000000]))
        r.read_flag()
        r.skip_to_trailing_bits()
        r.finish_rbsp()


class TestWriter:
    """Test BitstreamWriter packing."""

    def test_fields_pack_msb_first(self):
        w = BitstreamWriter()
        w.write_bits(3, 0b101)
        w.write_flag(True)
        w.write_rbsp_trailing_bits()
        assert w.getvalue() == bytes([0b10111000])

    def test_value_must_fit(self):
        with pytest.raises(ValueError):
            BitstreamWriter().write_bits(2, 4)

    def test_reader_reads_what_writer_wrote(self):
        w = BitstreamWriter()
        w.write_u8(100)
        w.write_ue(31)
        w.write_se(-26)
        w.write_signed(24, -5)
        w.write_rbsp_trailing_bits()
        r = BitstreamReader(w.getvalue())
        assert (r.read_u8(), r.read_ue(), r.read_se(), r.read_signed(24)) == (100, 31, -26, -5)
        r.finish_rbsp()
