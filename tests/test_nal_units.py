"""
Tests for the small unit types: access unit delimiter, SPS extension,
subset SPS and prefix NAL units.
"""

import pytest

from avcparse.aud import AccessUnitDelimiter, PrimaryPicType
from avcparse.bitstream import BitstreamReader
from avcparse.errors import RangeViolationError
from avcparse.nal_extractor import MvcHeaderExtension, NALUnit, SvcHeaderExtension
from avcparse.prefix import PrefixNalUnit
from avcparse.sps import Profile
from avcparse.sps_extension import SeqParameterSetExtension
from avcparse.subset_sps import MvcdSubsetExtension, MvcSubsetExtension, SubsetSps

from streams import make_subset_sps


class TestAccessUnitDelimiter:

    def test_all_slice_types(self):
        aud = AccessUnitDelimiter.from_nal(NALUnit(b"\x09\xf0"))
        assert aud.primary_pic_type == PrimaryPicType.I_SI_P_SP_B
        assert aud.primary_pic_type.slice_types == ("I", "SI", "P", "SP", "B")

    def test_intra_only(self):
        aud = AccessUnitDelimiter.from_nal(NALUnit(b"\x09\x10"))
        assert aud.primary_pic_type.slice_types == ("I",)

    def test_missing_stop_bit(self):
        with pytest.raises(RangeViolationError):
            AccessUnitDelimiter.from_nal(NALUnit(b"\x09\xe8"))


class TestSeqParameterSetExtension:

    def test_no_aux_format(self):
        ext = SeqParameterSetExtension.from_nal(NALUnit(b"\x6d\xd0"))
        assert ext.seq_parameter_set_id.id == 0
        assert ext.aux_format_idc == 0
        assert ext.aux_format_info is None
        assert not ext.additional_extension_flag

    def test_alpha_plane(self):
        ext = SeqParameterSetExtension.read(BitstreamReader(b"\xab\xfe\x00\x40"))
        assert ext.aux_format_idc == 1
        info = ext.aux_format_info
        assert info.bit_depth_aux_minus8 == 0
        assert not info.alpha_incr_flag
        assert info.alpha_opaque_value == 0x1FF
        assert info.alpha_transparent_value == 0


class TestSubsetSps:

    def test_without_extension(self):
        subset = SubsetSps.read(BitstreamReader(b"\x42\xc0\x1e\xfb\x84"))
        assert subset.sps.profile == Profile.BASELINE
        assert subset.sps.pixel_dimensions() == (16, 16)
        assert subset.extension is None
        assert not subset.additional_extension2_flag

    def test_mvc_extension(self):
        subset = SubsetSps.read(BitstreamReader(make_subset_sps(view_ids=(0, 1), profile_idc=118, sps_id=2)))
        assert subset.id.id == 2
        assert isinstance(subset.extension, MvcSubsetExtension)
        mvc = subset.extension.extension
        assert [v.view_id for v in mvc.views] == [0, 1]
        assert mvc.views[1].anchor_refs_l0 == ()
        op = mvc.level_values[0].applicable_ops[0]
        assert op.target_view_ids == (1,)
        assert op.num_views_minus1 == 1
        assert not subset.extension.mvc_vui_parameters_present_flag

    def test_depth_extension_not_decoded(self):
        subset = SubsetSps.read(BitstreamReader(make_subset_sps(profile_idc=138)))
        assert isinstance(subset.extension, MvcdSubsetExtension)


class TestPrefixNalUnit:

    def test_mvc_prefix(self):
        prefix = PrefixNalUnit.from_nal(NALUnit(b"\x0e\x40\x00\x43"))
        assert prefix.header.nal_ref_idc == 0
        assert isinstance(prefix.header_extension, MvcHeaderExtension)
        assert prefix.header_extension.view_id == 1
        assert prefix.header_extension.non_idr_flag
        assert prefix.header_extension.inter_view_flag
        assert prefix.ref_base_pic is None

    def test_mvc_prefix_with_reference(self):
        prefix = PrefixNalUnit.from_nal(NALUnit(b"\x6e\x00\x00\x01"))
        assert prefix.header.nal_ref_idc == 3
        assert prefix.ref_base_pic is None

    def test_svc_non_reference(self):
        prefix = PrefixNalUnit.from_nal(NALUnit(b"\x0e\x80\x00\x03"))
        assert isinstance(prefix.header_extension, SvcHeaderExtension)
        assert prefix.ref_base_pic is None

    def test_svc_reference(self):
        prefix = PrefixNalUnit.from_nal(NALUnit(b"\x6e\x80\x00\x03\x20"))
        ref = prefix.ref_base_pic
        assert not ref.store_ref_base_pic_flag
        assert ref.dec_ref_base_pic_marking is None
        assert not ref.additional_prefix_nal_unit_extension_flag

    def test_svc_base_pic_marking(self):
        prefix = PrefixNalUnit.from_nal(NALUnit(b"\x6e\x80\x00\x03\xd6\x80"))
        ref = prefix.ref_base_pic
        assert ref.store_ref_base_pic_flag
        marking = ref.dec_ref_base_pic_marking
        assert marking.adaptive_ref_base_pic_marking_mode_flag
        assert len(marking.operations) == 1
        assert marking.operations[0].operation == 1
        assert marking.operations[0].difference_of_base_pic_nums_minus1 == 0
