"""
Subset Sequence Parameter Set (H.264 7.3.2.1.3).

A subset SPS is an ordinary seq_parameter_set_data() followed by an
extension for scalable (Annex G) or multiview (Annex H) profiles. Its id
space is separate from that of ordinary SPS units.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .bitstream import BitstreamReader
from .nal_extractor import NALUnit
from .sps import SeqParameterSet, SeqParamSetId

SVC_PROFILE_IDCS = (83, 86)
MVC_PROFILE_IDCS = (118, 128, 134)
MVCD_PROFILE_IDCS = (135, 138, 139)

MAX_VIEW_ID = 1023
MAX_VIEW_REFS = 15
MAX_LEVEL_VALUES_MINUS1 = 63


@dataclass(frozen=True)
class SvcSpsExtension:
    """seq_parameter_set_svc_extension() (G.7.3.2.1.4)."""
    inter_layer_deblocking_filter_control_present_flag: bool
    extended_spatial_scalability_idc: int
    chroma_phase_x_plus1_flag: bool
    chroma_phase_y_plus1: int
    seq_ref_layer_chroma_phase_x_plus1_flag: bool
    seq_ref_layer_chroma_phase_y_plus1: int
    seq_scaled_ref_layer_left_offset: int
    seq_scaled_ref_layer_top_offset: int
    seq_scaled_ref_layer_right_offset: int
    seq_scaled_ref_layer_bottom_offset: int
    seq_tcoeff_level_prediction_flag: bool
    adaptive_tcoeff_level_prediction_flag: bool
    slice_header_restriction_flag: bool
    svc_vui_parameters_present_flag: bool

    @classmethod
    def read(cls, r: BitstreamReader, sps: SeqParameterSet) -> "SvcSpsExtension":
        inter_layer_deblocking = r.read_flag("inter_layer_deblocking_filter_control_present_flag")
        extended_spatial_scalability_idc = r.read_bits(2, "extended_spatial_scalability_idc")
        chroma_array_type = sps.chroma_array_type
        # Inferred value of the chroma_phase_y fields when absent.
        default_phase_y = 0 if chroma_array_type == 0 else 1

        chroma_phase_x_plus1_flag = False
        if chroma_array_type in (1, 2):
            chroma_phase_x_plus1_flag = r.read_flag("chroma_phase_x_plus1_flag")
        chroma_phase_y_plus1 = default_phase_y
        if chroma_array_type == 1:
            chroma_phase_y_plus1 = r.read_bits(2, "chroma_phase_y_plus1")

        ref_phase_x = False
        ref_phase_y = default_phase_y
        offsets = (0, 0, 0, 0)
        if extended_spatial_scalability_idc == 1:
            if chroma_array_type in (1, 2):
                ref_phase_x = r.read_flag("seq_ref_layer_chroma_phase_x_plus1_flag")
            if chroma_array_type == 1:
                ref_phase_y = r.read_bits(2, "seq_ref_layer_chroma_phase_y_plus1")
            offsets = (
                r.read_se("seq_scaled_ref_layer_left_offset"),
                r.read_se("seq_scaled_ref_layer_top_offset"),
                r.read_se("seq_scaled_ref_layer_right_offset"),
                r.read_se("seq_scaled_ref_layer_bottom_offset"),
            )

        seq_tcoeff_level_prediction_flag = r.read_flag("seq_tcoeff_level_prediction_flag")
        adaptive_tcoeff_level_prediction_flag = False
        if seq_tcoeff_level_prediction_flag:
            adaptive_tcoeff_level_prediction_flag = r.read_flag("adaptive_tcoeff_level_prediction_flag")
        return cls(
            inter_layer_deblocking_filter_control_present_flag=inter_layer_deblocking,
            extended_spatial_scalability_idc=extended_spatial_scalability_idc,
            chroma_phase_x_plus1_flag=chroma_phase_x_plus1_flag,
            chroma_phase_y_plus1=chroma_phase_y_plus1,
            seq_ref_layer_chroma_phase_x_plus1_flag=ref_phase_x,
            seq_ref_layer_chroma_phase_y_plus1=ref_phase_y,
            seq_scaled_ref_layer_left_offset=offsets[0],
            seq_scaled_ref_layer_top_offset=offsets[1],
            seq_scaled_ref_layer_right_offset=offsets[2],
            seq_scaled_ref_layer_bottom_offset=offsets[3],
            seq_tcoeff_level_prediction_flag=seq_tcoeff_level_prediction_flag,
            adaptive_tcoeff_level_prediction_flag=adaptive_tcoeff_level_prediction_flag,
            slice_header_restriction_flag=r.read_flag("slice_header_restriction_flag"),
            svc_vui_parameters_present_flag=r.read_flag("svc_vui_parameters_present_flag"),
        )


@dataclass(frozen=True)
class MvcView:
    view_id: int
    anchor_refs_l0: Tuple[int, ...] = ()
    anchor_refs_l1: Tuple[int, ...] = ()
    non_anchor_refs_l0: Tuple[int, ...] = ()
    non_anchor_refs_l1: Tuple[int, ...] = ()


@dataclass(frozen=True)
class MvcApplicableOp:
    temporal_id: int
    target_view_ids: Tuple[int, ...]
    num_views_minus1: int


@dataclass(frozen=True)
class MvcLevelValue:
    level_idc: int
    applicable_ops: Tuple[MvcApplicableOp, ...]


def _read_refs(r: BitstreamReader, count_name: str, ref_name: str) -> Tuple[int, ...]:
    count = r.read_ue_max(count_name, MAX_VIEW_REFS)
    return tuple(r.read_ue_max(ref_name, MAX_VIEW_ID) for _ in range(count))


@dataclass(frozen=True)
class MvcSpsExtension:
    """seq_parameter_set_mvc_extension() (H.7.3.2.1.4)."""
    views: Tuple[MvcView, ...]
    level_values: Tuple[MvcLevelValue, ...]

    @classmethod
    def read(cls, r: BitstreamReader) -> "MvcSpsExtension":
        num_views_minus1 = r.read_ue_max("num_views_minus1", MAX_VIEW_ID)
        view_ids = [r.read_ue_max("view_id", MAX_VIEW_ID) for _ in range(num_views_minus1 + 1)]

        # Reference lists are sent for every view except the base view.
        anchor = [((), ())]
        for _ in range(num_views_minus1):
            l0 = _read_refs(r, "num_anchor_refs_l0", "anchor_ref_l0")
            l1 = _read_refs(r, "num_anchor_refs_l1", "anchor_ref_l1")
            anchor.append((l0, l1))
        non_anchor = [((), ())]
        for _ in range(num_views_minus1):
            l0 = _read_refs(r, "num_non_anchor_refs_l0", "non_anchor_ref_l0")
            l1 = _read_refs(r, "num_non_anchor_refs_l1", "non_anchor_ref_l1")
            non_anchor.append((l0, l1))

        views = tuple(
            MvcView(view_id, anchor[i][0], anchor[i][1], non_anchor[i][0], non_anchor[i][1])
            for i, view_id in enumerate(view_ids)
        )

        num_level_values_minus1 = r.read_ue_max(
            "num_level_values_signalled_minus1", MAX_LEVEL_VALUES_MINUS1)
        level_values = []
        for _ in range(num_level_values_minus1 + 1):
            level_idc = r.read_u8("level_idc")
            num_ops_minus1 = r.read_ue_max("num_applicable_ops_minus1", MAX_VIEW_ID)
            ops = []
            for _ in range(num_ops_minus1 + 1):
                temporal_id = r.read_bits(3, "applicable_op_temporal_id")
                num_targets_minus1 = r.read_ue_max("applicable_op_num_target_views_minus1", MAX_VIEW_ID)
                targets = tuple(
                    r.read_ue_max("applicable_op_target_view_id", MAX_VIEW_ID)
                    for _ in range(num_targets_minus1 + 1)
                )
                ops.append(MvcApplicableOp(
                    temporal_id=temporal_id,
                    target_view_ids=targets,
                    num_views_minus1=r.read_ue_max("applicable_op_num_views_minus1", MAX_VIEW_ID),
                ))
            level_values.append(MvcLevelValue(level_idc, tuple(ops)))
        return cls(views, tuple(level_values))


@dataclass(frozen=True)
class MvcSubsetExtension:
    extension: MvcSpsExtension
    mvc_vui_parameters_present_flag: bool


@dataclass(frozen=True)
class MvcdSubsetExtension:
    """Depth (MVCD / 3D-AVC) extension; present but not decoded."""


SubsetSpsExtension = Union[SvcSpsExtension, MvcSubsetExtension, MvcdSubsetExtension]


@dataclass(frozen=True)
class SubsetSps:
    sps: SeqParameterSet
    extension: Optional[SubsetSpsExtension] = None
    additional_extension2_flag: bool = False

    @classmethod
    def read(cls, r: BitstreamReader) -> "SubsetSps":
        sps = SeqParameterSet.read_data(r)
        extension = None
        # Parsing stops early when VUI extensions follow that are not decoded.
        unparsed_tail = False
        if sps.profile_idc in SVC_PROFILE_IDCS:
            r.read_flag("bit_equal_to_one")
            extension = SvcSpsExtension.read(r, sps)
            unparsed_tail = extension.svc_vui_parameters_present_flag
        elif sps.profile_idc in MVC_PROFILE_IDCS:
            r.read_flag("bit_equal_to_one")
            mvc = MvcSpsExtension.read(r)
            vui_present = r.read_flag("mvc_vui_parameters_present_flag")
            extension = MvcSubsetExtension(mvc, vui_present)
            unparsed_tail = vui_present
        elif sps.profile_idc in MVCD_PROFILE_IDCS:
            r.read_flag("bit_equal_to_one")
            extension = MvcdSubsetExtension()
            unparsed_tail = True

        additional_extension2_flag = False
        if not unparsed_tail:
            additional_extension2_flag = r.read_flag("additional_extension2_flag")
            if additional_extension2_flag:
                r.skip_to_trailing_bits()
            r.finish_rbsp()
        return cls(sps, extension, additional_extension2_flag)

    @classmethod
    def from_nal(cls, nal: NALUnit) -> "SubsetSps":
        return cls.read(nal.reader())

    @property
    def id(self) -> SeqParamSetId:
        return self.sps.seq_parameter_set_id
