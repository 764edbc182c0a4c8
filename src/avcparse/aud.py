from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .bitstream import BitstreamReader
from .nal_extractor import NALUnit


class PrimaryPicType(IntEnum):
    """primary_pic_type (Table 7-5): which slice types the picture may hold."""
    I = 0
    I_P = 1
    I_P_B = 2
    SI = 3
    SI_SP = 4
    I_SI = 5
    I_SI_P_SP = 6
    I_SI_P_SP_B = 7

    @property
    def slice_types(self) -> Tuple[str, ...]:
        return tuple(self.name.split("_"))


@dataclass(frozen=True)
class AccessUnitDelimiter:
    primary_pic_type: PrimaryPicType

    @classmethod
    def read(cls, r: BitstreamReader) -> "AccessUnitDelimiter":
        primary_pic_type = PrimaryPicType(r.read_bits(3, "primary_pic_type"))
        r.finish_rbsp()
        return cls(primary_pic_type)

    @classmethod
    def from_nal(cls, nal: NALUnit) -> "AccessUnitDelimiter":
        return cls.read(nal.reader())
