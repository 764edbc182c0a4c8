"""
Slice header parsing (H.264 7.3.3), including the MVC variant used by
coded slice extension units (types 20 and 21).

The slice header is the first place where the parameter sets of a
stream have to fit together: the PPS named by the slice must be known,
and the SPS named by that PPS must be known too.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .bitstream import BitstreamReader
from .context import Context
from .errors import (
    ParamSetNotFoundError,
    RangeViolationError,
    UnresolvedReferenceError,
    UnsupportedSyntaxError,
)
from .nal_extractor import (
    HeaderExtension,
    MvcHeaderExtension,
    NALUnit,
    NalHeader,
    UnitType,
)
from .pps import PicParameterSet, PicParamSetId
from .sps import SeqParameterSet

logger = logging.getLogger(__name__)

MVC_SLICE_TYPES = (UnitType.SLICE_EXTENSION, UnitType.SLICE_EXTENSION_DEPTH_VIEW)
SLICE_TYPES = (UnitType.SLICE_NON_IDR, UnitType.SLICE_IDR) + MVC_SLICE_TYPES

# One entry per reference index plus the terminating code.
MAX_RPLM_COUNT = 33
MAX_MMCO_COUNT = 66
MAX_SLICE_QP = 51


class SliceFamily(Enum):
    P = 0
    B = 1
    I = 2
    SP = 3
    SI = 4


@dataclass(frozen=True)
class SliceType:
    """slice_type: a family, and whether every slice of the picture shares it (5..9)."""
    family: SliceFamily
    all_slices_same: bool

    @classmethod
    def from_id(cls, slice_type: int) -> "SliceType":
        if not 0 <= slice_type <= 9:
            raise RangeViolationError("slice_type", slice_type)
        return cls(SliceFamily(slice_type % 5), slice_type >= 5)

    @property
    def is_intra(self) -> bool:
        return self.family in (SliceFamily.I, SliceFamily.SI)

    @property
    def uses_l0(self) -> bool:
        return self.family in (SliceFamily.P, SliceFamily.SP, SliceFamily.B)


class FieldPic(Enum):
    FRAME = "frame"
    TOP_FIELD = "top"
    BOTTOM_FIELD = "bottom"


@dataclass(frozen=True)
class PicNumModification:
    """One step of ref_pic_list_modification() or its MVC variant."""
    modification_of_pic_nums_idc: int
    value: int

    @property
    def kind(self) -> str:
        return {
            0: "subtract_abs_diff_pic_num",
            1: "add_abs_diff_pic_num",
            2: "long_term_pic_num",
            4: "subtract_abs_diff_view_idx",
            5: "add_abs_diff_view_idx",
        }[self.modification_of_pic_nums_idc]


@dataclass(frozen=True)
class RefPicListModification:
    l0: Tuple[PicNumModification, ...] = ()
    l1: Tuple[PicNumModification, ...] = ()

    @classmethod
    def read(cls, r: BitstreamReader, slice_type: SliceType, mvc: bool) -> "RefPicListModification":
        l0: Tuple[PicNumModification, ...] = ()
        l1: Tuple[PicNumModification, ...] = ()
        if not slice_type.is_intra:
            if r.read_flag("ref_pic_list_modification_flag_l0"):
                l0 = cls._read_list(r, mvc)
        if slice_type.family == SliceFamily.B:
            if r.read_flag("ref_pic_list_modification_flag_l1"):
                l1 = cls._read_list(r, mvc)
        return cls(l0, l1)

    @staticmethod
    def _read_list(r: BitstreamReader, mvc: bool) -> Tuple[PicNumModification, ...]:
        allowed = (0, 1, 2, 4, 5) if mvc else (0, 1, 2)
        ops = []
        while True:
            idc = r.read_ue("modification_of_pic_nums_idc")
            if idc == 3:
                break
            if idc not in allowed:
                raise RangeViolationError("modification_of_pic_nums_idc", idc)
            if len(ops) == MAX_RPLM_COUNT:
                raise RangeViolationError("modification_of_pic_nums_idc", idc,
                                          f"more than {MAX_RPLM_COUNT} modifications")
            if idc in (0, 1):
                value = r.read_ue("abs_diff_pic_num_minus1")
            elif idc == 2:
                value = r.read_ue("long_term_pic_num")
            else:
                value = r.read_ue("abs_diff_view_idx_minus1")
            ops.append(PicNumModification(idc, value))
        return tuple(ops)


@dataclass(frozen=True)
class PredWeight:
    weight: int
    offset: int


@dataclass(frozen=True)
class PredWeightEntry:
    """Explicit weights for one reference index; None means defaults."""
    luma: Optional[PredWeight]
    chroma: Optional[Tuple[PredWeight, PredWeight]]


@dataclass(frozen=True)
class PredWeightTable:
    luma_log2_weight_denom: int
    chroma_log2_weight_denom: Optional[int]
    l0: Tuple[PredWeightEntry, ...]
    l1: Tuple[PredWeightEntry, ...] = ()

    @classmethod
    def read(cls, r: BitstreamReader, slice_type: SliceType, chroma_array_type: int,
             num_ref_idx_l0_active_minus1: int, num_ref_idx_l1_active_minus1: int) -> "PredWeightTable":
        luma_log2_weight_denom = r.read_ue_max("luma_log2_weight_denom", 7)
        chroma_log2_weight_denom = None
        if chroma_array_type != 0:
            chroma_log2_weight_denom = r.read_ue_max("chroma_log2_weight_denom", 7)
        l0 = cls._read_entries(r, num_ref_idx_l0_active_minus1 + 1, chroma_array_type, "l0")
        l1: Tuple[PredWeightEntry, ...] = ()
        if slice_type.family == SliceFamily.B:
            l1 = cls._read_entries(r, num_ref_idx_l1_active_minus1 + 1, chroma_array_type, "l1")
        return cls(luma_log2_weight_denom, chroma_log2_weight_denom, l0, l1)

    @staticmethod
    def _read_entries(r: BitstreamReader, count: int, chroma_array_type: int,
                      suffix: str) -> Tuple[PredWeightEntry, ...]:
        entries = []
        for _ in range(count):
            luma = None
            if r.read_flag(f"luma_weight_{suffix}_flag"):
                luma = PredWeight(
                    r.read_se_range(f"luma_weight_{suffix}", -128, 127),
                    r.read_se_range(f"luma_offset_{suffix}", -128, 127),
                )
            chroma = None
            if chroma_array_type != 0 and r.read_flag(f"chroma_weight_{suffix}_flag"):
                chroma = tuple(
                    PredWeight(
                        r.read_se_range(f"chroma_weight_{suffix}", -128, 127),
                        r.read_se_range(f"chroma_offset_{suffix}", -128, 127),
                    )
                    for _ in range(2)
                )
            entries.append(PredWeightEntry(luma, chroma))
        return tuple(entries)


@dataclass(frozen=True)
class MemoryManagementOp:
    """One memory_management_control_operation (Table 7-9)."""
    operation: int
    difference_of_pic_nums_minus1: Optional[int] = None
    long_term_pic_num: Optional[int] = None
    long_term_frame_idx: Optional[int] = None
    max_long_term_frame_idx_plus1: Optional[int] = None


@dataclass(frozen=True)
class DecRefPicMarking:
    """dec_ref_pic_marking(); IDR pictures use the two flags, others the MMCO list."""
    no_output_of_prior_pics_flag: bool = False
    long_term_reference_flag: bool = False
    adaptive_ref_pic_marking_mode_flag: bool = False
    operations: Tuple[MemoryManagementOp, ...] = ()

    @classmethod
    def read(cls, r: BitstreamReader, idr_pic_flag: bool) -> "DecRefPicMarking":
        if idr_pic_flag:
            return cls(
                no_output_of_prior_pics_flag=r.read_flag("no_output_of_prior_pics_flag"),
                long_term_reference_flag=r.read_flag("long_term_reference_flag"),
            )
        if not r.read_flag("adaptive_ref_pic_marking_mode_flag"):
            return cls()
        ops = []
        while True:
            op = r.read_ue("memory_management_control_operation")
            if op == 0:
                break
            if op > 6:
                raise RangeViolationError("memory_management_control_operation", op)
            if len(ops) == MAX_MMCO_COUNT:
                raise RangeViolationError("memory_management_control_operation", op,
                                          f"more than {MAX_MMCO_COUNT} operations")
            fields = {}
            if op in (1, 3):
                fields["difference_of_pic_nums_minus1"] = r.read_ue("difference_of_pic_nums_minus1")
            if op == 2:
                fields["long_term_pic_num"] = r.read_ue("long_term_pic_num")
            if op in (3, 6):
                fields["long_term_frame_idx"] = r.read_ue("long_term_frame_idx")
            if op == 4:
                fields["max_long_term_frame_idx_plus1"] = r.read_ue("max_long_term_frame_idx_plus1")
            ops.append(MemoryManagementOp(op, **fields))
        return cls(adaptive_ref_pic_marking_mode_flag=True, operations=tuple(ops))


def slice_group_change_cycle_bits(pic_size_in_map_units: int, change_rate: int) -> int:
    """Ceil(Log2(PicSizeInMapUnits / SliceGroupChangeRate + 1)), exact division."""
    bits = 0
    while (1 << bits) * change_rate < pic_size_in_map_units + change_rate:
        bits += 1
    return bits


@dataclass(frozen=True)
class SliceHeader:
    first_mb_in_slice: int
    slice_type: SliceType
    pic_parameter_set_id: PicParamSetId
    colour_plane_id: Optional[int]
    frame_num: int
    field_pic: FieldPic
    idr_pic_flag: bool
    idr_pic_id: Optional[int]
    pic_order_cnt_lsb: Optional[int]
    delta_pic_order_cnt_bottom: Optional[int]
    delta_pic_order_cnt: Tuple[int, int]
    redundant_pic_cnt: Optional[int]
    direct_spatial_mv_pred_flag: Optional[bool]
    num_ref_idx_active_override_flag: bool
    num_ref_idx_l0_active_minus1: int
    num_ref_idx_l1_active_minus1: int
    ref_pic_list_modification: RefPicListModification
    pred_weight_table: Optional[PredWeightTable]
    dec_ref_pic_marking: Optional[DecRefPicMarking]
    cabac_init_idc: Optional[int]
    slice_qp_delta: int
    sp_for_switch_flag: bool
    slice_qs_delta: Optional[int]
    disable_deblocking_filter_idc: int
    slice_alpha_c0_offset_div2: int
    slice_beta_offset_div2: int
    slice_group_change_cycle: Optional[int]
    slice_qp: int

    @classmethod
    def read(cls, r: BitstreamReader, ctx: Context, header: NalHeader,
             extension: Optional[HeaderExtension] = None) -> "SliceHeader":
        """
        Parse slice_header() for a unit of type 1, 5, 20 or 21.

        For types 20 and 21 the header extension supplies the IDR
        indicator, and the SPS is taken from the subset SPS map.

        Raises:
            UnresolvedReferenceError: PPS or SPS not present in ctx
            RangeViolationError: a value outside its legal range, including
                a derived slice QP outside [-QpBdOffsetY, 51]
            UnsupportedSyntaxError: SVC slice extension
        """
        nal_type = header.nal_unit_type
        if nal_type not in SLICE_TYPES:
            raise ValueError(f"{nal_type.name} does not carry a slice header")
        mvc = nal_type in MVC_SLICE_TYPES
        if mvc:
            if extension is None:
                raise ValueError(f"{nal_type.name} slice header needs the NAL header extension")
            if not isinstance(extension, MvcHeaderExtension):
                raise UnsupportedSyntaxError("slice_header", "scalable (SVC) slice extensions are not decoded")
            idr_pic_flag = not extension.non_idr_flag
        else:
            idr_pic_flag = nal_type == UnitType.SLICE_IDR

        first_mb_in_slice = r.read_ue("first_mb_in_slice")
        slice_type = SliceType.from_id(r.read_ue("slice_type"))
        # Non-base MVC IDR view components may use inter-view P or B slices.
        if nal_type == UnitType.SLICE_IDR and not slice_type.is_intra:
            raise RangeViolationError("slice_type", slice_type.family.name, "IDR slices must be I or SI")
        pps_id = PicParamSetId.read(r)
        pps, sps = _resolve(ctx, pps_id, mvc)

        colour_plane_id = None
        if sps.chroma_info.separate_colour_plane_flag:
            colour_plane_id = r.read_bits(2, "colour_plane_id")
            if colour_plane_id > 2:
                raise RangeViolationError("colour_plane_id", colour_plane_id)
        frame_num = r.read_bits(sps.log2_max_frame_num, "frame_num")

        field_pic = FieldPic.FRAME
        if not sps.frame_mbs_only_flag and r.read_flag("field_pic_flag"):
            field_pic = FieldPic.BOTTOM_FIELD if r.read_flag("bottom_field_flag") else FieldPic.TOP_FIELD
        is_field = field_pic != FieldPic.FRAME

        idr_pic_id = r.read_ue_max("idr_pic_id", 65535) if idr_pic_flag else None

        poc = sps.pic_order_cnt
        pic_order_cnt_lsb = None
        delta_pic_order_cnt_bottom = None
        delta_pic_order_cnt = (0, 0)
        bottom_present = pps.bottom_field_pic_order_in_frame_present_flag and not is_field
        if poc.pic_order_cnt_type == 0:
            pic_order_cnt_lsb = r.read_bits(poc.log2_max_pic_order_cnt_lsb_minus4 + 4, "pic_order_cnt_lsb")
            if bottom_present:
                delta_pic_order_cnt_bottom = r.read_se("delta_pic_order_cnt_bottom")
        elif poc.pic_order_cnt_type == 1 and not poc.delta_pic_order_always_zero_flag:
            first = r.read_se("delta_pic_order_cnt[0]")
            second = r.read_se("delta_pic_order_cnt[1]") if bottom_present else 0
            delta_pic_order_cnt = (first, second)

        redundant_pic_cnt = None
        if pps.redundant_pic_cnt_present_flag:
            redundant_pic_cnt = r.read_ue_max("redundant_pic_cnt", 127)

        is_b = slice_type.family == SliceFamily.B
        direct_spatial_mv_pred_flag = r.read_flag("direct_spatial_mv_pred_flag") if is_b else None

        num_ref_idx_active_override_flag = False
        num_ref_idx_l0_active_minus1 = pps.num_ref_idx_l0_default_active_minus1
        num_ref_idx_l1_active_minus1 = pps.num_ref_idx_l1_default_active_minus1
        if slice_type.uses_l0:
            num_ref_idx_active_override_flag = r.read_flag("num_ref_idx_active_override_flag")
            if num_ref_idx_active_override_flag:
                max_idx = 31 if is_field else 15
                num_ref_idx_l0_active_minus1 = r.read_ue_max("num_ref_idx_l0_active_minus1", max_idx)
                if is_b:
                    num_ref_idx_l1_active_minus1 = r.read_ue_max("num_ref_idx_l1_active_minus1", max_idx)

        ref_pic_list_modification = RefPicListModification.read(r, slice_type, mvc)

        pred_weight_table = None
        if ((pps.weighted_pred_flag and slice_type.family in (SliceFamily.P, SliceFamily.SP))
                or (pps.weighted_bipred_idc == 1 and is_b)):
            pred_weight_table = PredWeightTable.read(
                r, slice_type, sps.chroma_array_type,
                num_ref_idx_l0_active_minus1, num_ref_idx_l1_active_minus1)

        dec_ref_pic_marking = None
        if header.nal_ref_idc != 0:
            dec_ref_pic_marking = DecRefPicMarking.read(r, idr_pic_flag)

        cabac_init_idc = None
        if pps.entropy_coding_mode_flag and not slice_type.is_intra:
            cabac_init_idc = r.read_ue_max("cabac_init_idc", 2)

        slice_qp_delta = r.read_se("slice_qp_delta")
        slice_qp = 26 + pps.pic_init_qp_minus26 + slice_qp_delta
        if not -sps.qp_bd_offset_y <= slice_qp <= MAX_SLICE_QP:
            raise RangeViolationError(
                "slice_qp_delta", slice_qp_delta,
                f"SliceQPY {slice_qp} outside {-sps.qp_bd_offset_y}..{MAX_SLICE_QP}")

        sp_for_switch_flag = False
        slice_qs_delta = None
        if slice_type.family in (SliceFamily.SP, SliceFamily.SI):
            if slice_type.family == SliceFamily.SP:
                sp_for_switch_flag = r.read_flag("sp_for_switch_flag")
            slice_qs_delta = r.read_se("slice_qs_delta")
            slice_qs = 26 + pps.pic_init_qs_minus26 + slice_qs_delta
            if not 0 <= slice_qs <= MAX_SLICE_QP:
                raise RangeViolationError("slice_qs_delta", slice_qs_delta,
                                          f"QSY {slice_qs} outside 0..{MAX_SLICE_QP}")

        disable_deblocking_filter_idc = 0
        slice_alpha_c0_offset_div2 = 0
        slice_beta_offset_div2 = 0
        if pps.deblocking_filter_control_present_flag:
            disable_deblocking_filter_idc = r.read_ue_max("disable_deblocking_filter_idc", 2)
            if disable_deblocking_filter_idc != 1:
                slice_alpha_c0_offset_div2 = r.read_se_range("slice_alpha_c0_offset_div2", -6, 6)
                slice_beta_offset_div2 = r.read_se_range("slice_beta_offset_div2", -6, 6)

        slice_group_change_cycle = None
        groups = pps.slice_groups
        if groups is not None and 3 <= groups.slice_group_map_type <= 5:
            rate = groups.slice_group_change_rate
            bits = slice_group_change_cycle_bits(sps.pic_size_in_map_units, rate)
            slice_group_change_cycle = r.read_bits(bits, "slice_group_change_cycle")
            limit = -(-sps.pic_size_in_map_units // rate)
            if slice_group_change_cycle > limit:
                raise RangeViolationError("slice_group_change_cycle", slice_group_change_cycle,
                                          f"maximum is {limit}")

        return cls(
            first_mb_in_slice=first_mb_in_slice,
            slice_type=slice_type,
            pic_parameter_set_id=pps_id,
            colour_plane_id=colour_plane_id,
            frame_num=frame_num,
            field_pic=field_pic,
            idr_pic_flag=idr_pic_flag,
            idr_pic_id=idr_pic_id,
            pic_order_cnt_lsb=pic_order_cnt_lsb,
            delta_pic_order_cnt_bottom=delta_pic_order_cnt_bottom,
            delta_pic_order_cnt=delta_pic_order_cnt,
            redundant_pic_cnt=redundant_pic_cnt,
            direct_spatial_mv_pred_flag=direct_spatial_mv_pred_flag,
            num_ref_idx_active_override_flag=num_ref_idx_active_override_flag,
            num_ref_idx_l0_active_minus1=num_ref_idx_l0_active_minus1,
            num_ref_idx_l1_active_minus1=num_ref_idx_l1_active_minus1,
            ref_pic_list_modification=ref_pic_list_modification,
            pred_weight_table=pred_weight_table,
            dec_ref_pic_marking=dec_ref_pic_marking,
            cabac_init_idc=cabac_init_idc,
            slice_qp_delta=slice_qp_delta,
            sp_for_switch_flag=sp_for_switch_flag,
            slice_qs_delta=slice_qs_delta,
            disable_deblocking_filter_idc=disable_deblocking_filter_idc,
            slice_alpha_c0_offset_div2=slice_alpha_c0_offset_div2,
            slice_beta_offset_div2=slice_beta_offset_div2,
            slice_group_change_cycle=slice_group_change_cycle,
            slice_qp=slice_qp,
        )

    @classmethod
    def from_nal(cls, nal: NALUnit, ctx: Context) -> "SliceHeader":
        return cls.read(nal.reader(), ctx, nal.check_header(), nal.header_extension)

    @property
    def is_i_slice(self) -> bool:
        return self.slice_type.family == SliceFamily.I

    @property
    def is_p_slice(self) -> bool:
        return self.slice_type.family == SliceFamily.P

    @property
    def is_b_slice(self) -> bool:
        return self.slice_type.family == SliceFamily.B


def _resolve(ctx: Context, pps_id: PicParamSetId, mvc: bool) -> Tuple[PicParameterSet, SeqParameterSet]:
    """Find the PPS and the SPS it names, converting misses to parse errors."""
    try:
        pps = ctx.pps_by_id(pps_id)
    except ParamSetNotFoundError:
        raise UnresolvedReferenceError("pic_parameter_set_id", pps_id.id) from None
    try:
        if mvc:
            return pps, ctx.subset_sps_by_id(pps.seq_parameter_set_id).sps
        return pps, ctx.sps_by_id(pps.seq_parameter_set_id)
    except ParamSetNotFoundError:
        logger.debug("PPS %d refers to missing SPS %d", pps_id.id, pps.seq_parameter_set_id.id)
        raise UnresolvedReferenceError("seq_parameter_set_id", pps.seq_parameter_set_id.id) from None
