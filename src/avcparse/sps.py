"""
Sequence Parameter Set (H.264 7.3.2.1.1) and VUI parameters (Annex E).

The SPS carries the values every later unit of the sequence depends on:
frame size, chroma format, bit depth, frame_num and picture order count
widths, and optionally timing and buffering information in the VUI.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from fractions import Fraction
from typing import List, Optional, Tuple

import numpy as np

from .bitstream import BitstreamReader
from .errors import RangeViolationError
from .nal_extractor import NALUnit
from .scaling import ScalingMatrix, flat_matrices

MAX_SPS_ID = 31
MAX_DPB_FRAMES = 16

# profile_idc values whose SPS carries chroma_format_idc and friends.
HIGH_PROFILE_IDCS = (100, 110, 122, 244, 44, 83, 86, 118, 128, 138, 139, 134, 135)
# Intra profiles; with constraint_set3_flag the DPB holds no frames.
INTRA_PROFILE_IDCS = (44, 86, 100, 110, 122, 244)


@dataclass(frozen=True)
class SeqParamSetId:
    """seq_parameter_set_id, 0..31."""
    id: int

    def __post_init__(self):
        if not 0 <= self.id <= MAX_SPS_ID:
            raise RangeViolationError("seq_parameter_set_id", self.id)

    def __int__(self) -> int:
        return self.id

    @classmethod
    def read(cls, r: BitstreamReader) -> "SeqParamSetId":
        return cls(r.read_ue_max("seq_parameter_set_id", MAX_SPS_ID))


class Profile(Enum):
    """Profiles by profile_idc (H.264 Annex A, G and H)."""
    UNKNOWN = 0
    CAVLC444_INTRA = 44
    BASELINE = 66
    MAIN = 77
    SCALABLE_BASELINE = 83
    SCALABLE_HIGH = 86
    EXTENDED = 88
    HIGH = 100
    HIGH10 = 110
    MULTIVIEW_HIGH = 118
    HIGH422 = 122
    STEREO_HIGH = 128
    MFC_HIGH = 134
    MFC_DEPTH_HIGH = 135
    MULTIVIEW_DEPTH_HIGH = 138
    ENHANCED_MULTIVIEW_DEPTH_HIGH = 139
    HIGH444 = 244

    @classmethod
    def from_profile_idc(cls, profile_idc: int) -> "Profile":
        try:
            return cls(profile_idc)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_high(self) -> bool:
        return self.value in HIGH_PROFILE_IDCS


@dataclass(frozen=True)
class ConstraintFlags:
    """The constraint_setN_flag byte following profile_idc."""
    value: int

    def _flag(self, n: int) -> bool:
        return bool(self.value & (0x80 >> n))

    @property
    def flag0(self) -> bool:
        return self._flag(0)

    @property
    def flag1(self) -> bool:
        return self._flag(1)

    @property
    def flag2(self) -> bool:
        return self._flag(2)

    @property
    def flag3(self) -> bool:
        return self._flag(3)

    @property
    def flag4(self) -> bool:
        return self._flag(4)

    @property
    def flag5(self) -> bool:
        return self._flag(5)

    @property
    def reserved_zero_2bits(self) -> int:
        return self.value & 0x03


class Level(Enum):
    UNKNOWN = "unknown"
    L1 = "1"
    L1B = "1b"
    L1_1 = "1.1"
    L1_2 = "1.2"
    L1_3 = "1.3"
    L2 = "2"
    L2_1 = "2.1"
    L2_2 = "2.2"
    L3 = "3"
    L3_1 = "3.1"
    L3_2 = "3.2"
    L4 = "4"
    L4_1 = "4.1"
    L4_2 = "4.2"
    L5 = "5"
    L5_1 = "5.1"
    L5_2 = "5.2"
    L6 = "6"
    L6_1 = "6.1"
    L6_2 = "6.2"

    @classmethod
    def from_constraint_flags_and_level_idc(
        cls, profile_idc: int, constraint_flags: ConstraintFlags, level_idc: int
    ) -> "Level":
        if level_idc == 9:
            return cls.L1B
        if level_idc == 11 and constraint_flags.flag3 and profile_idc in (66, 77, 88):
            return cls.L1B
        return _LEVELS_BY_IDC.get(level_idc, cls.UNKNOWN)

    @property
    def max_dpb_mbs(self) -> Optional[int]:
        """MaxDpbMbs from Table A-1."""
        return _MAX_DPB_MBS.get(self)


_LEVELS_BY_IDC = {
    10: Level.L1, 11: Level.L1_1, 12: Level.L1_2, 13: Level.L1_3,
    20: Level.L2, 21: Level.L2_1, 22: Level.L2_2,
    30: Level.L3, 31: Level.L3_1, 32: Level.L3_2,
    40: Level.L4, 41: Level.L4_1, 42: Level.L4_2,
    50: Level.L5, 51: Level.L5_1, 52: Level.L5_2,
    60: Level.L6, 61: Level.L6_1, 62: Level.L6_2,
}

_MAX_DPB_MBS = {
    Level.L1: 396, Level.L1B: 396, Level.L1_1: 900, Level.L1_2: 2376, Level.L1_3: 2376,
    Level.L2: 2376, Level.L2_1: 4752, Level.L2_2: 8100,
    Level.L3: 8100, Level.L3_1: 18000, Level.L3_2: 20480,
    Level.L4: 32768, Level.L4_1: 32768, Level.L4_2: 34816,
    Level.L5: 110400, Level.L5_1: 184320, Level.L5_2: 184320,
    Level.L6: 696320, Level.L6_1: 696320, Level.L6_2: 696320,
}


class ChromaFormat(IntEnum):
    MONOCHROME = 0
    YUV420 = 1
    YUV422 = 2
    YUV444 = 3

    @property
    def sub_width_c(self) -> int:
        return 2 if self in (ChromaFormat.YUV420, ChromaFormat.YUV422) else 1

    @property
    def sub_height_c(self) -> int:
        return 2 if self == ChromaFormat.YUV420 else 1


@dataclass(frozen=True)
class ChromaInfo:
    chroma_format: ChromaFormat = ChromaFormat.YUV420
    separate_colour_plane_flag: bool = False
    bit_depth_luma_minus8: int = 0
    bit_depth_chroma_minus8: int = 0
    qpprime_y_zero_transform_bypass_flag: bool = False
    scaling_matrix: Optional[ScalingMatrix] = None

    @classmethod
    def read(cls, r: BitstreamReader, profile_idc: int) -> "ChromaInfo":
        if profile_idc not in HIGH_PROFILE_IDCS:
            return cls()
        chroma_format = ChromaFormat(r.read_ue_max("chroma_format_idc", 3))
        separate_colour_plane_flag = False
        if chroma_format == ChromaFormat.YUV444:
            separate_colour_plane_flag = r.read_flag("separate_colour_plane_flag")
        bit_depth_luma_minus8 = r.read_ue_max("bit_depth_luma_minus8", 6)
        bit_depth_chroma_minus8 = r.read_ue_max("bit_depth_chroma_minus8", 6)
        qpprime_y_zero_transform_bypass_flag = r.read_flag("qpprime_y_zero_transform_bypass_flag")
        scaling_matrix = None
        if r.read_flag("seq_scaling_matrix_present_flag"):
            count = 12 if chroma_format == ChromaFormat.YUV444 else 8
            scaling_matrix = ScalingMatrix.read(r, count)
        return cls(
            chroma_format=chroma_format,
            separate_colour_plane_flag=separate_colour_plane_flag,
            bit_depth_luma_minus8=bit_depth_luma_minus8,
            bit_depth_chroma_minus8=bit_depth_chroma_minus8,
            qpprime_y_zero_transform_bypass_flag=qpprime_y_zero_transform_bypass_flag,
            scaling_matrix=scaling_matrix,
        )

    @property
    def chroma_array_type(self) -> int:
        return 0 if self.separate_colour_plane_flag else int(self.chroma_format)


@dataclass(frozen=True)
class PicOrderCnt:
    """pic_order_cnt_type and the fields that belong to it."""
    pic_order_cnt_type: int
    log2_max_pic_order_cnt_lsb_minus4: Optional[int] = None
    delta_pic_order_always_zero_flag: bool = False
    offset_for_non_ref_pic: int = 0
    offset_for_top_to_bottom_field: int = 0
    offset_for_ref_frame: Tuple[int, ...] = ()

    @classmethod
    def read(cls, r: BitstreamReader) -> "PicOrderCnt":
        poc_type = r.read_ue("pic_order_cnt_type")
        if poc_type == 0:
            return cls(0, log2_max_pic_order_cnt_lsb_minus4=r.read_ue_max(
                "log2_max_pic_order_cnt_lsb_minus4", 12))
        if poc_type == 1:
            delta_pic_order_always_zero_flag = r.read_flag("delta_pic_order_always_zero_flag")
            offset_for_non_ref_pic = r.read_se("offset_for_non_ref_pic")
            offset_for_top_to_bottom_field = r.read_se("offset_for_top_to_bottom_field")
            count = r.read_ue_max("num_ref_frames_in_pic_order_cnt_cycle", 255)
            offsets = tuple(r.read_se("offset_for_ref_frame") for _ in range(count))
            return cls(
                1,
                delta_pic_order_always_zero_flag=delta_pic_order_always_zero_flag,
                offset_for_non_ref_pic=offset_for_non_ref_pic,
                offset_for_top_to_bottom_field=offset_for_top_to_bottom_field,
                offset_for_ref_frame=offsets,
            )
        if poc_type == 2:
            return cls(2)
        raise RangeViolationError("pic_order_cnt_type", poc_type, "must be 0, 1 or 2")


@dataclass(frozen=True)
class FrameCropping:
    frame_crop_left_offset: int
    frame_crop_right_offset: int
    frame_crop_top_offset: int
    frame_crop_bottom_offset: int

    @classmethod
    def read(cls, r: BitstreamReader) -> "FrameCropping":
        return cls(
            r.read_ue("frame_crop_left_offset"),
            r.read_ue("frame_crop_right_offset"),
            r.read_ue("frame_crop_top_offset"),
            r.read_ue("frame_crop_bottom_offset"),
        )


# Table E-1, indexed by aspect_ratio_idc.
_SAMPLE_ASPECT_RATIOS = {
    1: (1, 1), 2: (12, 11), 3: (10, 11), 4: (16, 11), 5: (40, 33), 6: (24, 11),
    7: (20, 11), 8: (32, 11), 9: (80, 33), 10: (18, 11), 11: (15, 11), 12: (64, 33),
    13: (160, 99), 14: (4, 3), 15: (3, 2), 16: (2, 1),
}
ASPECT_RATIO_EXTENDED_SAR = 255


@dataclass(frozen=True)
class AspectRatioInfo:
    aspect_ratio_idc: int
    sar_width: int = 0
    sar_height: int = 0

    @classmethod
    def read(cls, r: BitstreamReader) -> "AspectRatioInfo":
        idc = r.read_u8("aspect_ratio_idc")
        if idc == ASPECT_RATIO_EXTENDED_SAR:
            return cls(idc, r.read_bits(16, "sar_width"), r.read_bits(16, "sar_height"))
        return cls(idc)

    def sample_aspect_ratio(self) -> Optional[Tuple[int, int]]:
        """(width, height) of a sample, or None if unspecified."""
        if self.aspect_ratio_idc == ASPECT_RATIO_EXTENDED_SAR:
            if self.sar_width and self.sar_height:
                return self.sar_width, self.sar_height
            return None
        return _SAMPLE_ASPECT_RATIOS.get(self.aspect_ratio_idc)


@dataclass(frozen=True)
class ColourDescription:
    colour_primaries: int
    transfer_characteristics: int
    matrix_coefficients: int


@dataclass(frozen=True)
class VideoSignalType:
    video_format: int
    video_full_range_flag: bool
    colour_description: Optional[ColourDescription]

    @classmethod
    def read(cls, r: BitstreamReader) -> "VideoSignalType":
        video_format = r.read_bits(3, "video_format")
        video_full_range_flag = r.read_flag("video_full_range_flag")
        colour_description = None
        if r.read_flag("colour_description_present_flag"):
            colour_description = ColourDescription(
                r.read_u8("colour_primaries"),
                r.read_u8("transfer_characteristics"),
                r.read_u8("matrix_coefficients"),
            )
        return cls(video_format, video_full_range_flag, colour_description)


@dataclass(frozen=True)
class ChromaLocInfo:
    chroma_sample_loc_type_top_field: int
    chroma_sample_loc_type_bottom_field: int

    @classmethod
    def read(cls, r: BitstreamReader) -> "ChromaLocInfo":
        return cls(
            r.read_ue_max("chroma_sample_loc_type_top_field", 5),
            r.read_ue_max("chroma_sample_loc_type_bottom_field", 5),
        )


@dataclass(frozen=True)
class TimingInfo:
    num_units_in_tick: int
    time_scale: int
    fixed_frame_rate_flag: bool

    @classmethod
    def read(cls, r: BitstreamReader) -> "TimingInfo":
        return cls(
            r.read_bits(32, "num_units_in_tick"),
            r.read_bits(32, "time_scale"),
            r.read_flag("fixed_frame_rate_flag"),
        )

    def frame_rate(self) -> Optional[Fraction]:
        """Frames per second assuming two fields (ticks) per frame."""
        if not self.num_units_in_tick or not self.time_scale:
            return None
        return Fraction(self.time_scale, 2 * self.num_units_in_tick)


@dataclass(frozen=True)
class CpbSpec:
    bit_rate_value_minus1: int
    cpb_size_value_minus1: int
    cbr_flag: bool


@dataclass(frozen=True)
class HrdParameters:
    """hrd_parameters() (E.1.2)."""
    bit_rate_scale: int
    cpb_size_scale: int
    cpb_specs: Tuple[CpbSpec, ...]
    initial_cpb_removal_delay_length_minus1: int
    cpb_removal_delay_length_minus1: int
    dpb_output_delay_length_minus1: int
    time_offset_length: int

    @classmethod
    def read(cls, r: BitstreamReader) -> "HrdParameters":
        cpb_cnt_minus1 = r.read_ue_max("cpb_cnt_minus1", 31)
        bit_rate_scale = r.read_bits(4, "bit_rate_scale")
        cpb_size_scale = r.read_bits(4, "cpb_size_scale")
        cpb_specs = []
        for _ in range(cpb_cnt_minus1 + 1):
            cpb_specs.append(CpbSpec(
                r.read_ue("bit_rate_value_minus1"),
                r.read_ue("cpb_size_value_minus1"),
                r.read_flag("cbr_flag"),
            ))
        return cls(
            bit_rate_scale=bit_rate_scale,
            cpb_size_scale=cpb_size_scale,
            cpb_specs=tuple(cpb_specs),
            initial_cpb_removal_delay_length_minus1=r.read_bits(5, "initial_cpb_removal_delay_length_minus1"),
            cpb_removal_delay_length_minus1=r.read_bits(5, "cpb_removal_delay_length_minus1"),
            dpb_output_delay_length_minus1=r.read_bits(5, "dpb_output_delay_length_minus1"),
            time_offset_length=r.read_bits(5, "time_offset_length"),
        )

    @property
    def cpb_cnt(self) -> int:
        return len(self.cpb_specs)

    def bit_rate(self, index: int = 0) -> int:
        """BitRate[index] in bits per second (E-37)."""
        return (self.cpb_specs[index].bit_rate_value_minus1 + 1) << (6 + self.bit_rate_scale)


@dataclass(frozen=True)
class BitstreamRestrictions:
    motion_vectors_over_pic_boundaries_flag: bool
    max_bytes_per_pic_denom: int
    max_bits_per_mb_denom: int
    log2_max_mv_length_horizontal: int
    log2_max_mv_length_vertical: int
    max_num_reorder_frames: int
    max_dec_frame_buffering: int

    @classmethod
    def read(cls, r: BitstreamReader) -> "BitstreamRestrictions":
        return cls(
            motion_vectors_over_pic_boundaries_flag=r.read_flag("motion_vectors_over_pic_boundaries_flag"),
            max_bytes_per_pic_denom=r.read_ue("max_bytes_per_pic_denom"),
            max_bits_per_mb_denom=r.read_ue("max_bits_per_mb_denom"),
            log2_max_mv_length_horizontal=r.read_ue("log2_max_mv_length_horizontal"),
            log2_max_mv_length_vertical=r.read_ue("log2_max_mv_length_vertical"),
            max_num_reorder_frames=r.read_ue("max_num_reorder_frames"),
            max_dec_frame_buffering=r.read_ue("max_dec_frame_buffering"),
        )


@dataclass(frozen=True)
class VuiParameters:
    aspect_ratio_info: Optional[AspectRatioInfo] = None
    overscan_appropriate: Optional[bool] = None
    video_signal_type: Optional[VideoSignalType] = None
    chroma_loc_info: Optional[ChromaLocInfo] = None
    timing_info: Optional[TimingInfo] = None
    nal_hrd_parameters: Optional[HrdParameters] = None
    vcl_hrd_parameters: Optional[HrdParameters] = None
    low_delay_hrd_flag: Optional[bool] = None
    pic_struct_present_flag: bool = False
    bitstream_restrictions: Optional[BitstreamRestrictions] = None

    @classmethod
    def read(cls, r: BitstreamReader) -> "VuiParameters":
        aspect_ratio_info = None
        if r.read_flag("aspect_ratio_info_present_flag"):
            aspect_ratio_info = AspectRatioInfo.read(r)
        overscan_appropriate = None
        if r.read_flag("overscan_info_present_flag"):
            overscan_appropriate = r.read_flag("overscan_appropriate_flag")
        video_signal_type = None
        if r.read_flag("video_signal_type_present_flag"):
            video_signal_type = VideoSignalType.read(r)
        chroma_loc_info = None
        if r.read_flag("chroma_loc_info_present_flag"):
            chroma_loc_info = ChromaLocInfo.read(r)
        timing_info = None
        if r.read_flag("timing_info_present_flag"):
            timing_info = TimingInfo.read(r)
        nal_hrd = HrdParameters.read(r) if r.read_flag("nal_hrd_parameters_present_flag") else None
        vcl_hrd = HrdParameters.read(r) if r.read_flag("vcl_hrd_parameters_present_flag") else None
        low_delay_hrd_flag = None
        if nal_hrd or vcl_hrd:
            low_delay_hrd_flag = r.read_flag("low_delay_hrd_flag")
        pic_struct_present_flag = r.read_flag("pic_struct_present_flag")
        bitstream_restrictions = None
        if r.read_flag("bitstream_restriction_flag"):
            bitstream_restrictions = BitstreamRestrictions.read(r)
        return cls(
            aspect_ratio_info=aspect_ratio_info,
            overscan_appropriate=overscan_appropriate,
            video_signal_type=video_signal_type,
            chroma_loc_info=chroma_loc_info,
            timing_info=timing_info,
            nal_hrd_parameters=nal_hrd,
            vcl_hrd_parameters=vcl_hrd,
            low_delay_hrd_flag=low_delay_hrd_flag,
            pic_struct_present_flag=pic_struct_present_flag,
            bitstream_restrictions=bitstream_restrictions,
        )


@dataclass(frozen=True)
class SeqParameterSet:
    """
    Parsed seq_parameter_set_rbsp().

    Field names follow the syntax element names of H.264 so derived
    values can be computed with the formulas of the standard.
    """
    profile_idc: int
    constraint_flags: ConstraintFlags
    level_idc: int
    seq_parameter_set_id: SeqParamSetId
    chroma_info: ChromaInfo
    log2_max_frame_num_minus4: int
    pic_order_cnt: PicOrderCnt
    max_num_ref_frames: int
    gaps_in_frame_num_value_allowed_flag: bool
    pic_width_in_mbs_minus1: int
    pic_height_in_map_units_minus1: int
    frame_mbs_only_flag: bool
    mb_adaptive_frame_field_flag: bool
    direct_8x8_inference_flag: bool
    frame_cropping: Optional[FrameCropping] = None
    vui_parameters: Optional[VuiParameters] = None

    @classmethod
    def read_data(cls, r: BitstreamReader) -> "SeqParameterSet":
        """Parse seq_parameter_set_data(), leaving the reader after it."""
        profile_idc = r.read_u8("profile_idc")
        constraint_flags = ConstraintFlags(r.read_u8("constraint_flags"))
        level_idc = r.read_u8("level_idc")
        sps_id = SeqParamSetId.read(r)
        chroma_info = ChromaInfo.read(r, profile_idc)
        log2_max_frame_num_minus4 = r.read_ue_max("log2_max_frame_num_minus4", 12)
        pic_order_cnt = PicOrderCnt.read(r)
        max_num_ref_frames = r.read_ue("max_num_ref_frames")
        gaps_in_frame_num_value_allowed_flag = r.read_flag("gaps_in_frame_num_value_allowed_flag")
        pic_width_in_mbs_minus1 = r.read_ue("pic_width_in_mbs_minus1")
        pic_height_in_map_units_minus1 = r.read_ue("pic_height_in_map_units_minus1")
        frame_mbs_only_flag = r.read_flag("frame_mbs_only_flag")
        mb_adaptive_frame_field_flag = False
        if not frame_mbs_only_flag:
            mb_adaptive_frame_field_flag = r.read_flag("mb_adaptive_frame_field_flag")
        direct_8x8_inference_flag = r.read_flag("direct_8x8_inference_flag")
        frame_cropping = None
        if r.read_flag("frame_cropping_flag"):
            frame_cropping = FrameCropping.read(r)
        vui_parameters = None
        if r.read_flag("vui_parameters_present_flag"):
            vui_parameters = VuiParameters.read(r)

        sps = cls(
            profile_idc=profile_idc,
            constraint_flags=constraint_flags,
            level_idc=level_idc,
            seq_parameter_set_id=sps_id,
            chroma_info=chroma_info,
            log2_max_frame_num_minus4=log2_max_frame_num_minus4,
            pic_order_cnt=pic_order_cnt,
            max_num_ref_frames=max_num_ref_frames,
            gaps_in_frame_num_value_allowed_flag=gaps_in_frame_num_value_allowed_flag,
            pic_width_in_mbs_minus1=pic_width_in_mbs_minus1,
            pic_height_in_map_units_minus1=pic_height_in_map_units_minus1,
            frame_mbs_only_flag=frame_mbs_only_flag,
            mb_adaptive_frame_field_flag=mb_adaptive_frame_field_flag,
            direct_8x8_inference_flag=direct_8x8_inference_flag,
            frame_cropping=frame_cropping,
            vui_parameters=vui_parameters,
        )
        sps.validate()
        return sps

    @classmethod
    def read(cls, r: BitstreamReader) -> "SeqParameterSet":
        """Parse a complete seq_parameter_set_rbsp()."""
        sps = cls.read_data(r)
        r.finish_rbsp()
        return sps

    @classmethod
    def from_nal(cls, nal: NALUnit) -> "SeqParameterSet":
        return cls.read(nal.reader())

    def validate(self):
        """Check the constraints that span several fields."""
        self.pixel_dimensions()
        restrictions = self.vui_parameters and self.vui_parameters.bitstream_restrictions
        if restrictions:
            max_dpb_frames = self.max_dpb_frames()
            if restrictions.max_dec_frame_buffering > max_dpb_frames:
                raise RangeViolationError(
                    "max_dec_frame_buffering",
                    restrictions.max_dec_frame_buffering,
                    f"{self.profile.name} level {self.level.value} allows at most {max_dpb_frames}",
                )
            if restrictions.max_num_reorder_frames > restrictions.max_dec_frame_buffering:
                raise RangeViolationError(
                    "max_num_reorder_frames",
                    restrictions.max_num_reorder_frames,
                    "exceeds max_dec_frame_buffering",
                )

    @property
    def id(self) -> SeqParamSetId:
        return self.seq_parameter_set_id

    @property
    def profile(self) -> Profile:
        return Profile.from_profile_idc(self.profile_idc)

    @property
    def level(self) -> Level:
        return Level.from_constraint_flags_and_level_idc(
            self.profile_idc, self.constraint_flags, self.level_idc)

    @property
    def chroma_array_type(self) -> int:
        return self.chroma_info.chroma_array_type

    @property
    def bit_depth_luma(self) -> int:
        return self.chroma_info.bit_depth_luma_minus8 + 8

    @property
    def bit_depth_chroma(self) -> int:
        return self.chroma_info.bit_depth_chroma_minus8 + 8

    @property
    def qp_bd_offset_y(self) -> int:
        return 6 * self.chroma_info.bit_depth_luma_minus8

    @property
    def log2_max_frame_num(self) -> int:
        return self.log2_max_frame_num_minus4 + 4

    @property
    def max_frame_num(self) -> int:
        return 1 << self.log2_max_frame_num

    @property
    def pic_width_in_mbs(self) -> int:
        return self.pic_width_in_mbs_minus1 + 1

    @property
    def pic_height_in_map_units(self) -> int:
        return self.pic_height_in_map_units_minus1 + 1

    @property
    def pic_size_in_map_units(self) -> int:
        return self.pic_width_in_mbs * self.pic_height_in_map_units

    @property
    def frame_height_in_mbs(self) -> int:
        return (2 - int(self.frame_mbs_only_flag)) * self.pic_height_in_map_units

    def max_dpb_frames(self) -> int:
        """MaxDpbFrames (A.3.1 item h, A.3.2 item f)."""
        if self.profile_idc in INTRA_PROFILE_IDCS and self.constraint_flags.flag3:
            return 0
        max_dpb_mbs = self.level.max_dpb_mbs
        if max_dpb_mbs is None:
            return MAX_DPB_FRAMES
        frame_size_in_mbs = self.pic_width_in_mbs * self.frame_height_in_mbs
        return min(max_dpb_mbs // frame_size_in_mbs, MAX_DPB_FRAMES)

    def pixel_dimensions(self) -> Tuple[int, int]:
        """Decoded picture size in luma samples, after frame cropping."""
        width = self.pic_width_in_mbs * 16
        height = self.frame_height_in_mbs * 16
        crop = self.frame_cropping
        if crop is None:
            return width, height

        field_factor = 2 - int(self.frame_mbs_only_flag)
        if self.chroma_array_type == 0:
            crop_unit_x = 1
            crop_unit_y = field_factor
        else:
            chroma_format = self.chroma_info.chroma_format
            crop_unit_x = chroma_format.sub_width_c
            crop_unit_y = chroma_format.sub_height_c * field_factor

        crop_x = crop_unit_x * (crop.frame_crop_left_offset + crop.frame_crop_right_offset)
        crop_y = crop_unit_y * (crop.frame_crop_top_offset + crop.frame_crop_bottom_offset)
        if crop_x >= width:
            raise RangeViolationError("frame_crop_left_offset", crop.frame_crop_left_offset,
                                      f"cropping removes all of the {width} columns")
        if crop_y >= height:
            raise RangeViolationError("frame_crop_top_offset", crop.frame_crop_top_offset,
                                      f"cropping removes all of the {height} rows")
        return width - crop_x, height - crop_y

    def frame_rate(self) -> Optional[Fraction]:
        timing = self.vui_parameters and self.vui_parameters.timing_info
        return timing.frame_rate() if timing else None

    def scaling_matrices(self) -> List[np.ndarray]:
        """Sequence-level weight matrices, fall-back rule A applied."""
        matrix = self.chroma_info.scaling_matrix
        if matrix is None:
            return flat_matrices(12 if self.chroma_info.chroma_format == ChromaFormat.YUV444 else 8)
        return matrix.resolve()
