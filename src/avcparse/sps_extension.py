from dataclasses import dataclass
from typing import Optional

from .bitstream import BitstreamReader
from .nal_extractor import NALUnit
from .sps import SeqParamSetId


@dataclass(frozen=True)
class AuxFormatInfo:
    """Alpha plane description for auxiliary coded pictures."""
    bit_depth_aux_minus8: int
    alpha_incr_flag: bool
    alpha_opaque_value: int
    alpha_transparent_value: int


@dataclass(frozen=True)
class SeqParameterSetExtension:
    """seq_parameter_set_extension_rbsp() (H.264 7.3.2.1.2)."""
    seq_parameter_set_id: SeqParamSetId
    aux_format_idc: int
    aux_format_info: Optional[AuxFormatInfo]
    additional_extension_flag: bool

    @classmethod
    def read(cls, r: BitstreamReader) -> "SeqParameterSetExtension":
        sps_id = SeqParamSetId.read(r)
        aux_format_idc = r.read_ue_max("aux_format_idc", 3)
        aux_format_info = None
        if aux_format_idc != 0:
            bit_depth_aux_minus8 = r.read_ue_max("bit_depth_aux_minus8", 4)
            alpha_incr_flag = r.read_flag("alpha_incr_flag")
            bits = bit_depth_aux_minus8 + 9
            aux_format_info = AuxFormatInfo(
                bit_depth_aux_minus8=bit_depth_aux_minus8,
                alpha_incr_flag=alpha_incr_flag,
                alpha_opaque_value=r.read_bits(bits, "alpha_opaque_value"),
                alpha_transparent_value=r.read_bits(bits, "alpha_transparent_value"),
            )
        additional_extension_flag = r.read_flag("additional_extension_flag")
        r.finish_rbsp()
        return cls(sps_id, aux_format_idc, aux_format_info, additional_extension_flag)

    @classmethod
    def from_nal(cls, nal: NALUnit) -> "SeqParameterSetExtension":
        return cls.read(nal.reader())
