"""
Picture Parameter Set (H.264 7.3.2.2).

A PPS names its SPS by id only. Parsing normally needs nothing from the
SPS; the one exception is the size of the scaling matrix, which depends
on chroma_format_idc when transform_8x8_mode_flag is set.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np

from .bitstream import BitstreamReader
from .errors import ParamSetNotFoundError, RangeViolationError, UnresolvedReferenceError
from .nal_extractor import NALUnit
from .scaling import ScalingMatrix
from .sps import ChromaFormat, SeqParameterSet, SeqParamSetId

if TYPE_CHECKING:
    from .context import Context

MAX_PPS_ID = 255
MAX_SLICE_GROUPS_MINUS1 = 7


@dataclass(frozen=True)
class PicParamSetId:
    """pic_parameter_set_id, 0..255."""
    id: int

    def __post_init__(self):
        if not 0 <= self.id <= MAX_PPS_ID:
            raise RangeViolationError("pic_parameter_set_id", self.id)

    def __int__(self) -> int:
        return self.id

    @classmethod
    def read(cls, r: BitstreamReader) -> "PicParamSetId":
        return cls(r.read_ue_max("pic_parameter_set_id", MAX_PPS_ID))


def ceil_log2(value: int) -> int:
    """Ceil(Log2(value)) for value >= 1."""
    return (value - 1).bit_length()


@dataclass(frozen=True)
class SliceGroupRect:
    top_left: int
    bottom_right: int


@dataclass(frozen=True)
class SliceGroup:
    """
    Slice group (FMO) configuration. Only the fields used by
    slice_group_map_type are populated.
    """
    num_slice_groups_minus1: int
    slice_group_map_type: int
    run_length_minus1: Tuple[int, ...] = ()
    rectangles: Tuple[SliceGroupRect, ...] = ()
    slice_group_change_direction_flag: bool = False
    slice_group_change_rate_minus1: int = 0
    pic_size_in_map_units_minus1: int = 0
    slice_group_id: Tuple[int, ...] = ()

    @classmethod
    def read(cls, r: BitstreamReader, num_slice_groups_minus1: int) -> "SliceGroup":
        map_type = r.read_ue_max("slice_group_map_type", 6)
        num_groups = num_slice_groups_minus1 + 1
        if map_type == 0:
            runs = tuple(r.read_ue("run_length_minus1") for _ in range(num_groups))
            return cls(num_slice_groups_minus1, map_type, run_length_minus1=runs)
        if map_type == 2:
            rects = []
            # The last group is the background and has no rectangle.
            for _ in range(num_slice_groups_minus1):
                rects.append(SliceGroupRect(r.read_ue("top_left"), r.read_ue("bottom_right")))
            return cls(num_slice_groups_minus1, map_type, rectangles=tuple(rects))
        if map_type in (3, 4, 5):
            return cls(
                num_slice_groups_minus1,
                map_type,
                slice_group_change_direction_flag=r.read_flag("slice_group_change_direction_flag"),
                slice_group_change_rate_minus1=r.read_ue("slice_group_change_rate_minus1"),
            )
        if map_type == 6:
            pic_size_in_map_units_minus1 = r.read_ue("pic_size_in_map_units_minus1")
            bits = ceil_log2(num_groups)
            ids = []
            for _ in range(pic_size_in_map_units_minus1 + 1):
                group_id = r.read_bits(bits, "slice_group_id")
                if group_id > num_slice_groups_minus1:
                    raise RangeViolationError("slice_group_id", group_id)
                ids.append(group_id)
            return cls(
                num_slice_groups_minus1,
                map_type,
                pic_size_in_map_units_minus1=pic_size_in_map_units_minus1,
                slice_group_id=tuple(ids),
            )
        return cls(num_slice_groups_minus1, map_type)

    @property
    def slice_group_change_rate(self) -> int:
        return self.slice_group_change_rate_minus1 + 1


@dataclass(frozen=True)
class PicScalingExtension:
    """Trailing PPS fields present only when more_rbsp_data()."""
    transform_8x8_mode_flag: bool
    pic_scaling_matrix: Optional[ScalingMatrix]
    second_chroma_qp_index_offset: int


def scaling_list_count(transform_8x8_mode_flag: bool, chroma_format: ChromaFormat) -> int:
    """Number of scaling lists in a PPS: 6, 8 or 12."""
    if not transform_8x8_mode_flag:
        return 6
    return 6 + (6 if chroma_format == ChromaFormat.YUV444 else 2)


@dataclass(frozen=True)
class PicParameterSet:
    pic_parameter_set_id: PicParamSetId
    seq_parameter_set_id: SeqParamSetId
    entropy_coding_mode_flag: bool
    bottom_field_pic_order_in_frame_present_flag: bool
    slice_groups: Optional[SliceGroup]
    num_ref_idx_l0_default_active_minus1: int
    num_ref_idx_l1_default_active_minus1: int
    weighted_pred_flag: bool
    weighted_bipred_idc: int
    pic_init_qp_minus26: int
    pic_init_qs_minus26: int
    chroma_qp_index_offset: int
    deblocking_filter_control_present_flag: bool
    constrained_intra_pred_flag: bool
    redundant_pic_cnt_present_flag: bool
    extension: Optional[PicScalingExtension] = None

    @classmethod
    def read(cls, r: BitstreamReader, ctx: Optional["Context"] = None) -> "PicParameterSet":
        """
        Parse pic_parameter_set_rbsp().

        ctx is consulted only when the PPS carries 8x8 scaling lists; in
        that case the referenced SPS must already be known.
        """
        pps_id = PicParamSetId.read(r)
        sps_id = SeqParamSetId.read(r)
        entropy_coding_mode_flag = r.read_flag("entropy_coding_mode_flag")
        bottom_field_pic_order_in_frame_present_flag = r.read_flag(
            "bottom_field_pic_order_in_frame_present_flag")
        num_slice_groups_minus1 = r.read_ue_max("num_slice_groups_minus1", MAX_SLICE_GROUPS_MINUS1)
        slice_groups = None
        if num_slice_groups_minus1 > 0:
            slice_groups = SliceGroup.read(r, num_slice_groups_minus1)
        num_ref_idx_l0 = r.read_ue_max("num_ref_idx_l0_default_active_minus1", 31)
        num_ref_idx_l1 = r.read_ue_max("num_ref_idx_l1_default_active_minus1", 31)
        weighted_pred_flag = r.read_flag("weighted_pred_flag")
        weighted_bipred_idc = r.read_bits(2, "weighted_bipred_idc")
        if weighted_bipred_idc > 2:
            raise RangeViolationError("weighted_bipred_idc", weighted_bipred_idc)
        # Lower bound is -(26 + QpBdOffsetY) for the largest bit depth.
        pic_init_qp_minus26 = r.read_se_range("pic_init_qp_minus26", -62, 25)
        pic_init_qs_minus26 = r.read_se_range("pic_init_qs_minus26", -26, 25)
        chroma_qp_index_offset = r.read_se_range("chroma_qp_index_offset", -12, 12)
        deblocking_filter_control_present_flag = r.read_flag("deblocking_filter_control_present_flag")
        constrained_intra_pred_flag = r.read_flag("constrained_intra_pred_flag")
        redundant_pic_cnt_present_flag = r.read_flag("redundant_pic_cnt_present_flag")

        extension = None
        if r.has_more_rbsp_data():
            transform_8x8_mode_flag = r.read_flag("transform_8x8_mode_flag")
            pic_scaling_matrix = None
            if r.read_flag("pic_scaling_matrix_present_flag"):
                chroma_format = ChromaFormat.YUV420
                if transform_8x8_mode_flag:
                    chroma_format = _referenced_sps(ctx, sps_id).chroma_info.chroma_format
                count = scaling_list_count(transform_8x8_mode_flag, chroma_format)
                pic_scaling_matrix = ScalingMatrix.read(r, count)
            extension = PicScalingExtension(
                transform_8x8_mode_flag=transform_8x8_mode_flag,
                pic_scaling_matrix=pic_scaling_matrix,
                second_chroma_qp_index_offset=r.read_se_range("second_chroma_qp_index_offset", -12, 12),
            )
        r.finish_rbsp()

        return cls(
            pic_parameter_set_id=pps_id,
            seq_parameter_set_id=sps_id,
            entropy_coding_mode_flag=entropy_coding_mode_flag,
            bottom_field_pic_order_in_frame_present_flag=bottom_field_pic_order_in_frame_present_flag,
            slice_groups=slice_groups,
            num_ref_idx_l0_default_active_minus1=num_ref_idx_l0,
            num_ref_idx_l1_default_active_minus1=num_ref_idx_l1,
            weighted_pred_flag=weighted_pred_flag,
            weighted_bipred_idc=weighted_bipred_idc,
            pic_init_qp_minus26=pic_init_qp_minus26,
            pic_init_qs_minus26=pic_init_qs_minus26,
            chroma_qp_index_offset=chroma_qp_index_offset,
            deblocking_filter_control_present_flag=deblocking_filter_control_present_flag,
            constrained_intra_pred_flag=constrained_intra_pred_flag,
            redundant_pic_cnt_present_flag=redundant_pic_cnt_present_flag,
            extension=extension,
        )

    @classmethod
    def from_nal(cls, nal: NALUnit, ctx: Optional["Context"] = None) -> "PicParameterSet":
        return cls.read(nal.reader(), ctx)

    @property
    def id(self) -> PicParamSetId:
        return self.pic_parameter_set_id

    @property
    def num_slice_groups_minus1(self) -> int:
        return self.slice_groups.num_slice_groups_minus1 if self.slice_groups else 0

    @property
    def transform_8x8_mode_flag(self) -> bool:
        return bool(self.extension and self.extension.transform_8x8_mode_flag)

    @property
    def second_chroma_qp_index_offset(self) -> int:
        """Defaults to chroma_qp_index_offset when not transmitted."""
        if self.extension is None:
            return self.chroma_qp_index_offset
        return self.extension.second_chroma_qp_index_offset

    def scaling_matrices(self, sps: SeqParameterSet) -> List[np.ndarray]:
        """
        Picture-level weight matrices: rule B over the SPS matrices when
        the SPS sent any, rule A otherwise.
        """
        matrix = self.extension.pic_scaling_matrix if self.extension else None
        if matrix is None:
            return sps.scaling_matrices()
        fallback = sps.scaling_matrices() if sps.chroma_info.scaling_matrix else None
        return matrix.resolve(fallback)


def _referenced_sps(ctx: Optional["Context"], sps_id: SeqParamSetId) -> SeqParameterSet:
    if ctx is None:
        raise UnresolvedReferenceError("seq_parameter_set_id", sps_id.id)
    try:
        return ctx.sps_by_id(sps_id)
    except ParamSetNotFoundError:
        raise UnresolvedReferenceError("seq_parameter_set_id", sps_id.id) from None
