"""
Tests for Picture Parameter Set parsing.
"""

import numpy as np
import pytest

from avcparse.bitstream import BitstreamReader, BitstreamWriter
from avcparse.errors import RangeViolationError, UnresolvedReferenceError
from avcparse.pps import PicParameterSet, PicParamSetId, ceil_log2, scaling_list_count
from avcparse.scaling import DEFAULT_8X8_INTRA, to_raster
from avcparse.sps import ChromaFormat, SeqParameterSet, SeqParamSetId

from streams import context_with, make_pps, make_sps

# CABAC PPS from x264 with transform_8x8_mode_flag set and no scaling matrix.
X264_PPS_RBSP = bytes.fromhex("e8438f132130")


def pps_with_scaling_matrix(list_count: int) -> bytes:
    """A PPS with transform_8x8_mode_flag and list_count absent scaling lists."""
    w = BitstreamWriter()
    w.write_ue(0)  # pic_parameter_set_id
    w.write_ue(0)  # seq_parameter_set_id
    w.write_bits(2, 0)  # entropy_coding_mode_flag, bottom_field_pic_order_in_frame_present_flag
    w.write_ue(0)  # num_slice_groups_minus1
    w.write_ue(0)
    w.write_ue(0)
    w.write_bits(3, 0)  # weighted_pred_flag, weighted_bipred_idc
    w.write_se(0)
    w.write_se(0)
    w.write_se(0)
    w.write_bits(3, 0b100)
    w.write_flag(True)  # transform_8x8_mode_flag
    w.write_flag(True)  # pic_scaling_matrix_present_flag
    for _ in range(list_count):
        w.write_flag(False)
    w.write_se(2)  # second_chroma_qp_index_offset
    w.write_rbsp_trailing_bits()
    return w.getvalue()


class TestRealEncoderPps:
    """Test a known PPS from a real encoder."""

    @pytest.fixture
    def pps(self):
        return PicParameterSet.read(BitstreamReader(X264_PPS_RBSP))

    def test_ids(self, pps):
        assert pps.id == PicParamSetId(0)
        assert pps.seq_parameter_set_id == SeqParamSetId(0)

    def test_coding_tools(self, pps):
        assert pps.entropy_coding_mode_flag
        assert not pps.bottom_field_pic_order_in_frame_present_flag
        assert pps.slice_groups is None
        assert pps.num_slice_groups_minus1 == 0
        assert pps.weighted_pred_flag
        assert pps.weighted_bipred_idc == 2

    def test_reference_defaults(self, pps):
        assert pps.num_ref_idx_l0_default_active_minus1 == 15
        assert pps.num_ref_idx_l1_default_active_minus1 == 0

    def test_quantiser_offsets(self, pps):
        assert pps.pic_init_qp_minus26 == -3
        assert pps.pic_init_qs_minus26 == 0
        assert pps.chroma_qp_index_offset == -4
        assert pps.second_chroma_qp_index_offset == -4

    def test_extension(self, pps):
        assert pps.deblocking_filter_control_present_flag
        assert pps.transform_8x8_mode_flag
        assert pps.extension.pic_scaling_matrix is None


class TestSyntheticPps:
    """Test PPS fields built with BitstreamWriter."""

    def test_without_trailing_fields(self):
        pps = PicParameterSet.read(BitstreamReader(make_pps(chroma_qp_index_offset=3)))
        assert pps.extension is None
        assert not pps.transform_8x8_mode_flag
        assert pps.second_chroma_qp_index_offset == 3

    def test_slice_group_change_rate(self):
        rbsp = make_pps(num_slice_groups_minus1=1, slice_group_map_type=4, slice_group_change_rate_minus1=9)
        pps = PicParameterSet.read(BitstreamReader(rbsp))
        assert pps.slice_groups.slice_group_map_type == 4
        assert pps.slice_groups.slice_group_change_rate == 10
        assert pps.num_slice_groups_minus1 == 1

    def test_too_many_slice_groups(self):
        with pytest.raises(RangeViolationError):
            PicParameterSet.read(BitstreamReader(make_pps(num_slice_groups_minus1=8)))

    def test_weighted_bipred_idc_3_rejected(self):
        with pytest.raises(RangeViolationError) as exc:
            PicParameterSet.read(BitstreamReader(make_pps(weighted_bipred_idc=3)))
        assert exc.value.field == "weighted_bipred_idc"

    @pytest.mark.parametrize("field,kwargs", [
        ("pic_init_qp_minus26", {"pic_init_qp_minus26": 26}),
        ("pic_init_qs_minus26", {"pic_init_qs_minus26": -27}),
        ("chroma_qp_index_offset", {"chroma_qp_index_offset": 13}),
        ("num_ref_idx_l0_default_active_minus1", {"num_ref_idx_l0_default_minus1": 32}),
    ])
    def test_ranges(self, field, kwargs):
        with pytest.raises(RangeViolationError) as exc:
            PicParameterSet.read(BitstreamReader(make_pps(**kwargs)))
        assert exc.value.field == field

    def test_pps_id_range(self):
        assert PicParameterSet.read(BitstreamReader(make_pps(pps_id=255))).id.id == 255
        with pytest.raises(RangeViolationError):
            PicParameterSet.read(BitstreamReader(make_pps(pps_id=256)))

    def test_does_not_need_sps_without_scaling_matrix(self):
        pps = PicParameterSet.read(BitstreamReader(make_pps(sps_id=5, transform_8x8_mode=True)))
        assert pps.seq_parameter_set_id.id == 5


class TestPicScalingMatrix:
    """Test the one PPS field whose layout depends on the SPS."""

    def test_needs_sps_for_8x8_lists(self):
        with pytest.raises(UnresolvedReferenceError) as exc:
            PicParameterSet.read(BitstreamReader(pps_with_scaling_matrix(8)))
        assert exc.value.field == "seq_parameter_set_id"

    def test_missing_sps_in_context(self):
        ctx = context_with(sps=make_sps(sps_id=3))
        with pytest.raises(UnresolvedReferenceError):
            PicParameterSet.read(BitstreamReader(pps_with_scaling_matrix(8)), ctx)

    def test_420_has_eight_lists(self):
        ctx = context_with()
        pps = PicParameterSet.read(BitstreamReader(pps_with_scaling_matrix(8)), ctx)
        assert len(pps.extension.pic_scaling_matrix) == 8
        assert pps.second_chroma_qp_index_offset == 2

        matrices = pps.scaling_matrices(ctx.sps_by_id(0))
        assert len(matrices) == 8
        assert np.array_equal(matrices[6], to_raster(DEFAULT_8X8_INTRA))

    def test_444_has_twelve_lists(self):
        ctx = context_with(sps=make_sps(profile_idc=244, chroma_format_idc=3))
        pps = PicParameterSet.read(BitstreamReader(pps_with_scaling_matrix(12)), ctx)
        assert len(pps.extension.pic_scaling_matrix) == 12

    def test_flat_when_nothing_sent(self):
        sps = SeqParameterSet.read(BitstreamReader(make_sps()))
        pps = PicParameterSet.read(BitstreamReader(make_pps()))
        assert all(np.all(m == 16) for m in pps.scaling_matrices(sps))


def test_scaling_list_count():
    assert scaling_list_count(False, ChromaFormat.YUV444) == 6
    assert scaling_list_count(True, ChromaFormat.YUV420) == 8
    assert scaling_list_count(True, ChromaFormat.YUV444) == 12


def test_ceil_log2():
    assert [ceil_log2(v) for v in (1, 2, 3, 4, 5, 8, 9)] == [0, 1, 2, 2, 3, 3, 4]
