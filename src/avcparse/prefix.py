"""
Prefix NAL unit (type 14), which precedes base-layer / base-view slices
in SVC and MVC streams and carries their header extension.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .bitstream import BitstreamReader
from .errors import RangeViolationError
from .nal_extractor import HeaderExtension, NALUnit, NalHeader, SvcHeaderExtension


@dataclass(frozen=True)
class BaseMarkingOp:
    """One memory_management_base_control_operation."""
    operation: int
    difference_of_base_pic_nums_minus1: Optional[int] = None
    long_term_base_pic_num: Optional[int] = None


@dataclass(frozen=True)
class DecRefBasePicMarking:
    """dec_ref_base_pic_marking() (G.7.3.3.5)."""
    adaptive_ref_base_pic_marking_mode_flag: bool
    operations: Tuple[BaseMarkingOp, ...] = ()

    @classmethod
    def read(cls, r: BitstreamReader) -> "DecRefBasePicMarking":
        if not r.read_flag("adaptive_ref_base_pic_marking_mode_flag"):
            return cls(False)
        ops = []
        while True:
            op = r.read_ue("memory_management_base_control_operation")
            if op == 0:
                break
            if op == 1:
                ops.append(BaseMarkingOp(op, difference_of_base_pic_nums_minus1=r.read_ue(
                    "difference_of_base_pic_nums_minus1")))
            elif op == 2:
                ops.append(BaseMarkingOp(op, long_term_base_pic_num=r.read_ue(
                    "long_term_base_pic_num")))
            else:
                raise RangeViolationError("memory_management_base_control_operation", op)
        return cls(True, tuple(ops))


@dataclass(frozen=True)
class PrefixRefBasePic:
    store_ref_base_pic_flag: bool
    dec_ref_base_pic_marking: Optional[DecRefBasePicMarking]
    additional_prefix_nal_unit_extension_flag: bool


@dataclass(frozen=True)
class PrefixNalUnit:
    header: NalHeader
    header_extension: HeaderExtension
    ref_base_pic: Optional[PrefixRefBasePic] = None

    @classmethod
    def from_nal(cls, nal: NALUnit) -> "PrefixNalUnit":
        header = nal.check_header()
        extension = nal.header_extension
        ref_base_pic = None
        # MVC prefix units have an empty body.
        if isinstance(extension, SvcHeaderExtension) and header.nal_ref_idc != 0:
            r = nal.reader()
            store_ref_base_pic_flag = r.read_flag("store_ref_base_pic_flag")
            marking = None
            if (store_ref_base_pic_flag or extension.use_ref_base_pic_flag) and not extension.idr_flag:
                marking = DecRefBasePicMarking.read(r)
            additional_flag = r.read_flag("additional_prefix_nal_unit_extension_flag")
            if additional_flag:
                r.skip_to_trailing_bits()
            r.finish_rbsp()
            ref_base_pic = PrefixRefBasePic(
                store_ref_base_pic_flag=store_ref_base_pic_flag,
                dec_ref_base_pic_marking=marking,
                additional_prefix_nal_unit_extension_flag=additional_flag,
            )
        return cls(header, extension, ref_base_pic)
