"""
AVC decoder configuration record (ISO/IEC 14496-15 5.3.3), the 'avcC'
box payload that MP4/MOV files use to carry SPS and PPS out of band.
"""

import logging
from typing import List, Optional, Tuple

from .context import Context
from .errors import MalformedFramingError
from .nal_extractor import NALExtractor, NALUnit, UnitType
from .pps import PicParameterSet
from .sps import HIGH_PROFILE_IDCS, ConstraintFlags, Level, Profile, SeqParameterSet

logger = logging.getLogger(__name__)

MIN_CONF_SIZE = 6
# 144 is the withdrawn High 4:4:4 profile, still written by some muxers.
EXTENSION_PROFILE_IDCS = HIGH_PROFILE_IDCS + (144,)


class AvcDecoderConfigurationRecord:
    """
    Validated view over an avcC payload.

    The constructor walks every length-prefixed entry once, so the
    accessors below never index past the end of the data.
    """

    def __init__(self, data: bytes):
        self.data = data
        self._check(MIN_CONF_SIZE)
        if self.configuration_version != 1:
            raise MalformedFramingError(0, f"unsupported configurationVersion {self.configuration_version}")

        self._sps, offset = self._read_entries(MIN_CONF_SIZE, self.num_of_sequence_parameter_sets,
                                               UnitType.SEQ_PARAMETER_SET)
        self._check(offset + 1)
        self._pps, offset = self._read_entries(offset + 1, data[offset], UnitType.PIC_PARAMETER_SET)

        self._extension_offset: Optional[int] = None
        self._sps_ext: List[NALUnit] = []
        if self.avc_profile_indication in EXTENSION_PROFILE_IDCS and len(data) > offset:
            self._check(offset + 4)
            self._extension_offset = offset
            self._sps_ext, offset = self._read_entries(offset + 4, data[offset + 3],
                                                       UnitType.SEQ_PARAMETER_SET_EXTENSION)
        if len(data) > offset:
            logger.debug("Ignoring %d trailing bytes in avcC", len(data) - offset)

    def _check(self, length: int):
        if len(self.data) < length:
            raise MalformedFramingError(len(self.data), f"avcC needs {length} bytes, got {len(self.data)}")

    def _read_entries(self, offset: int, count: int, expected: UnitType) -> Tuple[List[NALUnit], int]:
        units = []
        for _ in range(count):
            self._check(offset + 2)
            length = int.from_bytes(self.data[offset:offset + 2], "big")
            offset += 2
            self._check(offset + length)
            if length == 0:
                raise MalformedFramingError(offset - 2, f"empty {expected.name} entry")
            unit = NALUnit(self.data, offset, offset + length)
            if unit.type != expected:
                raise MalformedFramingError(offset, f"expected {expected.name}, found {unit.type.name}")
            units.append(unit)
            offset += length
        return units, offset

    def __repr__(self) -> str:
        return (f"AvcDecoderConfigurationRecord(profile={self.avc_profile_indication}, "
                f"level={self.data[3]}, sps={len(self._sps)}, pps={len(self._pps)})")

    @property
    def configuration_version(self) -> int:
        return self.data[0]

    @property
    def avc_profile_indication(self) -> int:
        return self.data[1]

    @property
    def profile(self) -> Profile:
        return Profile.from_profile_idc(self.avc_profile_indication)

    @property
    def profile_compatibility(self) -> ConstraintFlags:
        return ConstraintFlags(self.data[2])

    @property
    def avc_level_indication(self) -> Level:
        return Level.from_constraint_flags_and_level_idc(
            self.avc_profile_indication, self.profile_compatibility, self.data[3])

    @property
    def length_size_minus_one(self) -> int:
        return self.data[4] & 0x03

    @property
    def num_of_sequence_parameter_sets(self) -> int:
        return self.data[5] & 0x1F

    @property
    def chroma_format(self) -> Optional[int]:
        if self._extension_offset is None:
            return None
        return self.data[self._extension_offset] & 0x03

    @property
    def bit_depth_luma_minus8(self) -> Optional[int]:
        if self._extension_offset is None:
            return None
        return self.data[self._extension_offset + 1] & 0x07

    @property
    def bit_depth_chroma_minus8(self) -> Optional[int]:
        if self._extension_offset is None:
            return None
        return self.data[self._extension_offset + 2] & 0x07

    def sequence_parameter_sets(self) -> List[NALUnit]:
        return list(self._sps)

    def picture_parameter_sets(self) -> List[NALUnit]:
        return list(self._pps)

    def sequence_parameter_set_extensions(self) -> List[NALUnit]:
        return list(self._sps_ext)

    def create_context(self) -> Context:
        """Parse the SPS and PPS entries into a new Context."""
        ctx = Context()
        for nal in self._sps:
            ctx.put_seq_param_set(SeqParameterSet.from_nal(nal))
        for nal in self._pps:
            ctx.put_pic_param_set(PicParameterSet.from_nal(nal, ctx))
        return ctx

    def nal_extractor(self) -> NALExtractor:
        return NALExtractor(self.length_size_minus_one + 1)
