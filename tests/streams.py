"""
Builders for synthetic H.264 test streams.

Everything is written with BitstreamWriter so each test can state the
exact field values it depends on instead of carrying opaque hex blobs.
"""

from typing import Iterable, Optional, Tuple

from avcparse.bitstream import BitstreamReader, BitstreamWriter
from avcparse.context import Context
from avcparse.nal_extractor import NALUnit
from avcparse.pps import PicParameterSet
from avcparse.rbsp import encode_rbsp
from avcparse.sps import HIGH_PROFILE_IDCS, SeqParameterSet


def write_hrd(w: BitstreamWriter, delay_length: int = 24, time_offset_length: int = 24):
    w.write_ue(0)  # cpb_cnt_minus1
    w.write_bits(4, 0)  # bit_rate_scale
    w.write_bits(4, 0)  # cpb_size_scale
    w.write_ue(999)  # bit_rate_value_minus1
    w.write_ue(999)  # cpb_size_value_minus1
    w.write_flag(False)  # cbr_flag
    w.write_bits(5, delay_length - 1)  # initial_cpb_removal_delay_length_minus1
    w.write_bits(5, delay_length - 1)  # cpb_removal_delay_length_minus1
    w.write_bits(5, delay_length - 1)  # dpb_output_delay_length_minus1
    w.write_bits(5, time_offset_length)


def write_sps_data(
    w: BitstreamWriter,
    profile_idc: int = 66,
    constraint_flags: int = 0,
    level_idc: int = 30,
    sps_id: int = 0,
    chroma_format_idc: int = 1,
    separate_colour_plane: bool = False,
    bit_depth_luma_minus8: int = 0,
    log2_max_frame_num_minus4: int = 0,
    poc_type: int = 0,
    log2_max_poc_lsb_minus4: int = 0,
    delta_pic_order_always_zero: bool = False,
    max_num_ref_frames: int = 1,
    width_in_mbs: int = 22,
    height_in_map_units: int = 18,
    frame_mbs_only: bool = True,
    crop: Optional[Tuple[int, int, int, int]] = None,
    timing: Optional[Tuple[int, int]] = None,
    nal_hrd: bool = False,
    pic_struct_present: bool = False,
    time_offset_length: int = 24,
):
    """seq_parameter_set_data() with the given fields; other fields off."""
    w.write_u8(profile_idc)
    w.write_u8(constraint_flags)
    w.write_u8(level_idc)
    w.write_ue(sps_id)
    if profile_idc in HIGH_PROFILE_IDCS:
        w.write_ue(chroma_format_idc)
        if chroma_format_idc == 3:
            w.write_flag(separate_colour_plane)
        w.write_ue(bit_depth_luma_minus8)
        w.write_ue(0)  # bit_depth_chroma_minus8
        w.write_flag(False)  # qpprime_y_zero_transform_bypass_flag
        w.write_flag(False)  # seq_scaling_matrix_present_flag
    w.write_ue(log2_max_frame_num_minus4)
    w.write_ue(poc_type)
    if poc_type == 0:
        w.write_ue(log2_max_poc_lsb_minus4)
    elif poc_type == 1:
        w.write_flag(delta_pic_order_always_zero)
        w.write_se(0)  # offset_for_non_ref_pic
        w.write_se(0)  # offset_for_top_to_bottom_field
        w.write_ue(0)  # num_ref_frames_in_pic_order_cnt_cycle
    w.write_ue(max_num_ref_frames)
    w.write_flag(False)  # gaps_in_frame_num_value_allowed_flag
    w.write_ue(width_in_mbs - 1)
    w.write_ue(height_in_map_units - 1)
    w.write_flag(frame_mbs_only)
    if not frame_mbs_only:
        w.write_flag(False)  # mb_adaptive_frame_field_flag
    w.write_flag(True)  # direct_8x8_inference_flag
    w.write_flag(crop is not None)
    if crop is not None:
        for offset in crop:
            w.write_ue(offset)
    vui = timing is not None or nal_hrd or pic_struct_present
    w.write_flag(vui)
    if vui:
        w.write_flag(False)  # aspect_ratio_info_present_flag
        w.write_flag(False)  # overscan_info_present_flag
        w.write_flag(False)  # video_signal_type_present_flag
        w.write_flag(False)  # chroma_loc_info_present_flag
        w.write_flag(timing is not None)
        if timing is not None:
            w.write_bits(32, timing[0])
            w.write_bits(32, timing[1])
            w.write_flag(True)  # fixed_frame_rate_flag
        w.write_flag(nal_hrd)
        if nal_hrd:
            write_hrd(w, time_offset_length=time_offset_length)
        w.write_flag(False)  # vcl_hrd_parameters_present_flag
        if nal_hrd:
            w.write_flag(False)  # low_delay_hrd_flag
        w.write_flag(pic_struct_present)
        w.write_flag(False)  # bitstream_restriction_flag


def make_sps(**fields) -> bytes:
    """seq_parameter_set_rbsp(); see write_sps_data() for the fields."""
    w = BitstreamWriter()
    write_sps_data(w, **fields)
    w.write_rbsp_trailing_bits()
    return w.getvalue()


def make_subset_sps(view_ids: Tuple[int, ...] = (), **fields) -> bytes:
    """
    subset_seq_parameter_set_rbsp(). With view_ids the profile should be an
    MVC one (e.g. 118) and a minimal MVC extension listing the views is
    written; without, no extension is written.
    """
    w = BitstreamWriter()
    write_sps_data(w, **fields)
    if view_ids:
        w.write_flag(True)  # bit_equal_to_one
        w.write_ue(len(view_ids) - 1)
        for view_id in view_ids:
            w.write_ue(view_id)
        for _ in range(2 * (len(view_ids) - 1)):
            w.write_ue(0)  # num_anchor_refs_l0 / l1
        for _ in range(2 * (len(view_ids) - 1)):
            w.write_ue(0)  # num_non_anchor_refs_l0 / l1
        w.write_ue(0)  # num_level_values_signalled_minus1
        w.write_u8(fields.get("level_idc", 30))
        w.write_ue(0)  # num_applicable_ops_minus1
        w.write_bits(3, 0)  # applicable_op_temporal_id
        w.write_ue(0)  # applicable_op_num_target_views_minus1
        w.write_ue(view_ids[-1])
        w.write_ue(len(view_ids) - 1)  # applicable_op_num_views_minus1
        w.write_flag(False)  # mvc_vui_parameters_present_flag
    w.write_flag(False)  # additional_extension2_flag
    w.write_rbsp_trailing_bits()
    return w.getvalue()


def make_pps(
    pps_id: int = 0,
    sps_id: int = 0,
    entropy_coding_mode: bool = False,
    bottom_field_pic_order_in_frame_present: bool = False,
    num_slice_groups_minus1: int = 0,
    slice_group_map_type: int = 4,
    slice_group_change_rate_minus1: int = 0,
    num_ref_idx_l0_default_minus1: int = 0,
    num_ref_idx_l1_default_minus1: int = 0,
    weighted_pred: bool = False,
    weighted_bipred_idc: int = 0,
    pic_init_qp_minus26: int = 0,
    pic_init_qs_minus26: int = 0,
    chroma_qp_index_offset: int = 0,
    deblocking_filter_control_present: bool = True,
    redundant_pic_cnt_present: bool = False,
    transform_8x8_mode: Optional[bool] = None,
) -> bytes:
    """pic_parameter_set_rbsp(); the trailing 8x8 fields only when transform_8x8_mode is given."""
    w = BitstreamWriter()
    w.write_ue(pps_id)
    w.write_ue(sps_id)
    w.write_flag(entropy_coding_mode)
    w.write_flag(bottom_field_pic_order_in_frame_present)
    w.write_ue(num_slice_groups_minus1)
    if num_slice_groups_minus1 > 0:
        w.write_ue(slice_group_map_type)
        if slice_group_map_type in (3, 4, 5):
            w.write_flag(False)  # slice_group_change_direction_flag
            w.write_ue(slice_group_change_rate_minus1)
        else:
            raise ValueError("only map types 3..5 are built here")
    w.write_ue(num_ref_idx_l0_default_minus1)
    w.write_ue(num_ref_idx_l1_default_minus1)
    w.write_flag(weighted_pred)
    w.write_bits(2, weighted_bipred_idc)
    w.write_se(pic_init_qp_minus26)
    w.write_se(pic_init_qs_minus26)
    w.write_se(chroma_qp_index_offset)
    w.write_flag(deblocking_filter_control_present)
    w.write_flag(False)  # constrained_intra_pred_flag
    w.write_flag(redundant_pic_cnt_present)
    if transform_8x8_mode is not None:
        w.write_flag(transform_8x8_mode)
        w.write_flag(False)  # pic_scaling_matrix_present_flag
        w.write_se(chroma_qp_index_offset)
    w.write_rbsp_trailing_bits()
    return w.getvalue()


def nal(nal_type: int, rbsp: bytes, ref_idc: int = 3, extension: bytes = b"") -> bytes:
    """A complete NAL unit: header byte, header extension, escaped payload."""
    return bytes([(ref_idc << 5) | nal_type]) + extension + encode_rbsp(rbsp)


def nal_unit(nal_type: int, rbsp: bytes, ref_idc: int = 3, extension: bytes = b"") -> NALUnit:
    return NALUnit(nal(nal_type, rbsp, ref_idc, extension))


def annex_b(units: Iterable[bytes]) -> bytes:
    return b"".join(b"\x00\x00\x00\x01" + unit for unit in units)


def length_prefixed(units: Iterable[bytes], size: int = 4) -> bytes:
    return b"".join(len(unit).to_bytes(size, "big") + unit for unit in units)


def reader(rbsp: bytes) -> BitstreamReader:
    return BitstreamReader(rbsp)


def context_with(sps: Optional[bytes] = None, pps: Optional[bytes] = None) -> Context:
    """A Context holding the given SPS and PPS RBSPs (defaults when omitted)."""
    ctx = Context()
    ctx.put_seq_param_set(SeqParameterSet.read(BitstreamReader(sps or make_sps())))
    ctx.put_pic_param_set(PicParameterSet.read(BitstreamReader(pps or make_pps()), ctx))
    return ctx


def idr_slice(qp_delta: int = 0, idr_pic_id: int = 0, poc_lsb: int = 0) -> bytes:
    """I slice header for the default SPS/PPS, followed by a stub of slice data."""
    w = BitstreamWriter()
    w.write_ue(0)  # first_mb_in_slice
    w.write_ue(7)  # slice_type: I, all slices
    w.write_ue(0)  # pic_parameter_set_id
    w.write_bits(4, 0)  # frame_num
    w.write_ue(idr_pic_id)
    w.write_bits(4, poc_lsb)
    w.write_flag(False)  # no_output_of_prior_pics_flag
    w.write_flag(False)  # long_term_reference_flag
    w.write_se(qp_delta)
    w.write_ue(0)  # disable_deblocking_filter_idc
    w.write_se(0)  # slice_alpha_c0_offset_div2
    w.write_se(0)  # slice_beta_offset_div2
    w.write_rbsp_trailing_bits()
    return w.getvalue()


def write_fields(*fields) -> bytes:
    """
    Pack a list of ("ue", v), ("se", v), ("u", bits, v) or ("f", flag)
    tuples, followed by rbsp_trailing_bits().
    """
    w = BitstreamWriter()
    for kind, *args in fields:
        if kind == "ue":
            w.write_ue(*args)
        elif kind == "se":
            w.write_se(*args)
        elif kind == "u":
            w.write_bits(*args)
        elif kind == "f":
            w.write_flag(*args)
        else:
            raise ValueError(f"unknown field kind {kind!r}")
    w.write_rbsp_trailing_bits()
    return w.getvalue()
