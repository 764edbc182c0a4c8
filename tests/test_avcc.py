"""
Tests for the avcC decoder configuration record.
"""

import pytest

from avcparse.avcc import AvcDecoderConfigurationRecord
from avcparse.errors import MalformedFramingError
from avcparse.nal_extractor import UnitType
from avcparse.sps import Level, Profile

from streams import make_pps, make_sps, nal


def entry(unit: bytes) -> bytes:
    return len(unit).to_bytes(2, "big") + unit


def make_avcc(profile_idc=66, sps_units=None, pps_units=None, tail=b"", version=1):
    if sps_units is None:
        sps_units = [nal(7, make_sps(profile_idc=profile_idc))]
    if pps_units is None:
        pps_units = [nal(8, make_pps())]
    out = bytes([version, profile_idc, 0xC0, 30, 0xFF, 0xE0 | len(sps_units)])
    out += b"".join(entry(u) for u in sps_units)
    out += bytes([len(pps_units)]) + b"".join(entry(u) for u in pps_units)
    return out + tail


class TestAvcDecoderConfigurationRecord:
    """Test record layout and the Context built from it."""

    @pytest.fixture
    def record(self):
        return AvcDecoderConfigurationRecord(make_avcc())

    def test_header_fields(self, record):
        assert record.configuration_version == 1
        assert record.profile == Profile.BASELINE
        assert record.profile_compatibility.flag0
        assert record.avc_level_indication == Level.L3
        assert record.length_size_minus_one == 3
        assert record.num_of_sequence_parameter_sets == 1

    def test_parameter_set_entries(self, record):
        (sps,) = record.sequence_parameter_sets()
        (pps,) = record.picture_parameter_sets()
        assert sps.type == UnitType.SEQ_PARAMETER_SET
        assert pps.type == UnitType.PIC_PARAMETER_SET
        assert record.sequence_parameter_set_extensions() == []

    def test_no_extension_for_baseline(self, record):
        assert record.chroma_format is None
        assert record.bit_depth_luma_minus8 is None

    def test_create_context(self, record):
        ctx = record.create_context()
        assert ctx.sps_by_id(0).pixel_dimensions() == (352, 288)
        assert ctx.pps_by_id(0).seq_parameter_set_id.id == 0

    def test_nal_extractor(self, record):
        assert record.nal_extractor().nalu_length_size == 4

    def test_several_sps(self):
        units = [nal(7, make_sps(sps_id=i)) for i in range(3)]
        record = AvcDecoderConfigurationRecord(make_avcc(sps_units=units))
        assert record.num_of_sequence_parameter_sets == 3
        assert sorted(s.id.id for s in record.create_context().sps()) == [0, 1, 2]

    def test_high_profile_extension(self):
        sps_ext = nal(13, b"\xd0")
        data = make_avcc(profile_idc=100, tail=bytes([0xFD, 0xFA, 0xF8, 0x01]) + entry(sps_ext))
        record = AvcDecoderConfigurationRecord(data)
        assert record.chroma_format == 1
        assert record.bit_depth_luma_minus8 == 2
        assert record.bit_depth_chroma_minus8 == 0
        (ext,) = record.sequence_parameter_set_extensions()
        assert bytes(ext) == sps_ext

    def test_high_profile_without_extension(self):
        record = AvcDecoderConfigurationRecord(make_avcc(profile_idc=100))
        assert record.chroma_format is None

    def test_trailing_bytes_ignored(self, caplog):
        with caplog.at_level("DEBUG", logger="avcparse.avcc"):
            AvcDecoderConfigurationRecord(make_avcc(tail=b"\x00\x00"))
        assert "trailing" in caplog.text


class TestMalformedRecords:
    """Test the framing errors raised while walking the record."""

    def test_bad_version(self):
        with pytest.raises(MalformedFramingError) as exc:
            AvcDecoderConfigurationRecord(make_avcc(version=0))
        assert exc.value.offset == 0

    def test_too_short(self):
        with pytest.raises(MalformedFramingError):
            AvcDecoderConfigurationRecord(b"\x01\x42\xc0")

    def test_entry_past_end(self):
        data = make_avcc()
        with pytest.raises(MalformedFramingError):
            AvcDecoderConfigurationRecord(data[:12])

    def test_missing_pps_count(self):
        data = make_avcc()
        sps_end = 6 + 2 + len(nal(7, make_sps()))
        with pytest.raises(MalformedFramingError):
            AvcDecoderConfigurationRecord(data[:sps_end])

    def test_empty_entry(self):
        with pytest.raises(MalformedFramingError):
            AvcDecoderConfigurationRecord(make_avcc(sps_units=[b""]))

    def test_wrong_unit_type(self):
        with pytest.raises(MalformedFramingError) as exc:
            AvcDecoderConfigurationRecord(make_avcc(sps_units=[nal(8, make_pps())]))
        assert "SEQ_PARAMETER_SET" in exc.value.detail
