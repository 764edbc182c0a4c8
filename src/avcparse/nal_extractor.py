import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, List, Optional, Union

from .bitstream import BitstreamReader
from .errors import MalformedFramingError, RangeViolationError, TruncatedError
from .rbsp import AUTO, BytesLike, EXTENDED_HEADER_TYPES, decode_rbsp

logger = logging.getLogger(__name__)


class UnitType(IntEnum):
    """nal_unit_type values (H.264 Table 7-1)."""
    UNSPECIFIED = 0
    SLICE_NON_IDR = 1
    SLICE_PARTITION_A = 2
    SLICE_PARTITION_B = 3
    SLICE_PARTITION_C = 4
    SLICE_IDR = 5
    SEI = 6
    SEQ_PARAMETER_SET = 7
    PIC_PARAMETER_SET = 8
    ACCESS_UNIT_DELIMITER = 9
    END_OF_SEQUENCE = 10
    END_OF_STREAM = 11
    FILLER_DATA = 12
    SEQ_PARAMETER_SET_EXTENSION = 13
    PREFIX_NAL = 14
    SUBSET_SEQ_PARAMETER_SET = 15
    DEPTH_PARAMETER_SET = 16
    RESERVED17 = 17
    RESERVED18 = 18
    SLICE_AUXILIARY = 19
    SLICE_EXTENSION = 20
    SLICE_EXTENSION_DEPTH_VIEW = 21
    RESERVED22 = 22
    RESERVED23 = 23
    UNSPECIFIED24 = 24
    UNSPECIFIED25 = 25
    UNSPECIFIED26 = 26
    UNSPECIFIED27 = 27
    UNSPECIFIED28 = 28
    UNSPECIFIED29 = 29
    UNSPECIFIED30 = 30
    UNSPECIFIED31 = 31

    @property
    def has_header_extension(self) -> bool:
        return self in EXTENDED_HEADER_TYPES


_TYPE_NAMES = {
    UnitType.SLICE_NON_IDR: "Coded slice of a non-IDR picture",
    UnitType.SLICE_PARTITION_A: "Coded slice data partition A",
    UnitType.SLICE_PARTITION_B: "Coded slice data partition B",
    UnitType.SLICE_PARTITION_C: "Coded slice data partition C",
    UnitType.SLICE_IDR: "Coded slice of an IDR picture",
    UnitType.SEI: "Supplemental enhancement information (SEI)",
    UnitType.SEQ_PARAMETER_SET: "Sequence Parameter Set (SPS)",
    UnitType.PIC_PARAMETER_SET: "Picture Parameter Set (PPS)",
    UnitType.ACCESS_UNIT_DELIMITER: "Access Unit Delimiter (AUD)",
    UnitType.END_OF_SEQUENCE: "End of sequence",
    UnitType.END_OF_STREAM: "End of stream",
    UnitType.FILLER_DATA: "Filler data",
    UnitType.SEQ_PARAMETER_SET_EXTENSION: "Sequence parameter set extension",
    UnitType.PREFIX_NAL: "Prefix NAL unit",
    UnitType.SUBSET_SEQ_PARAMETER_SET: "Subset sequence parameter set",
    UnitType.DEPTH_PARAMETER_SET: "Depth parameter set",
    UnitType.SLICE_AUXILIARY: "Coded slice of an auxiliary coded picture",
    UnitType.SLICE_EXTENSION: "Coded slice extension",
    UnitType.SLICE_EXTENSION_DEPTH_VIEW: "Coded slice extension for depth view components",
}


@dataclass(frozen=True)
class NalHeader:
    """The one-byte nal_unit header."""
    forbidden_zero_bit: bool
    nal_ref_idc: int
    nal_unit_type: UnitType

    @classmethod
    def from_byte(cls, byte: int) -> "NalHeader":
        return cls(
            forbidden_zero_bit=bool(byte & 0x80),
            nal_ref_idc=(byte >> 5) & 0x03,
            nal_unit_type=UnitType(byte & 0x1F),
        )

    def to_byte(self) -> int:
        return (int(self.forbidden_zero_bit) << 7) | (self.nal_ref_idc << 5) | int(self.nal_unit_type)


@dataclass(frozen=True)
class SvcHeaderExtension:
    """nal_unit_header_svc_extension() (H.264 G.7.3.1.1)."""
    idr_flag: bool
    priority_id: int
    no_inter_layer_pred_flag: bool
    dependency_id: int
    quality_id: int
    temporal_id: int
    use_ref_base_pic_flag: bool
    discardable_flag: bool
    output_flag: bool


@dataclass(frozen=True)
class MvcHeaderExtension:
    """nal_unit_header_mvc_extension() (H.264 H.7.3.1.1)."""
    non_idr_flag: bool
    priority_id: int
    view_id: int
    temporal_id: int
    anchor_pic_flag: bool
    inter_view_flag: bool


HeaderExtension = Union[SvcHeaderExtension, MvcHeaderExtension]


def parse_header_extension(b0: int, b1: int, b2: int) -> HeaderExtension:
    """Decode the three extension bytes following a type 14/20/21 header."""
    if b0 & 0x80:
        return SvcHeaderExtension(
            idr_flag=bool(b0 & 0x40),
            priority_id=b0 & 0x3F,
            no_inter_layer_pred_flag=bool(b1 & 0x80),
            dependency_id=(b1 >> 4) & 0x07,
            quality_id=b1 & 0x0F,
            temporal_id=(b2 >> 5) & 0x07,
            use_ref_base_pic_flag=bool(b2 & 0x10),
            discardable_flag=bool(b2 & 0x08),
            output_flag=bool(b2 & 0x04),
        )
    return MvcHeaderExtension(
        non_idr_flag=bool(b0 & 0x40),
        priority_id=b0 & 0x3F,
        view_id=(b1 << 2) | (b2 >> 6),
        temporal_id=(b2 >> 3) & 0x07,
        anchor_pic_flag=bool(b2 & 0x04),
        inter_view_flag=bool(b2 & 0x02),
    )


class NALUnit:
    """
    Represents an H.264 Network Abstraction Layer (NAL) Unit.

    The unit does not own its bytes: it is a buffer plus the range
    [start, end) within it. Views handed out by data and rbsp() stay
    valid only while the caller leaves that buffer unmodified.
    """
    def __init__(self, buffer: BytesLike, start: int = 0, end: Optional[int] = None):
        if end is None:
            end = len(buffer)
        if not 0 <= start <= end <= len(buffer):
            raise ValueError(f"range [{start}, {end}) outside buffer of {len(buffer)} bytes")
        self.buffer = buffer
        self.start = start
        self.end = end

    def __len__(self) -> int:
        return self.end - self.start

    def __bytes__(self) -> bytes:
        return bytes(self.data)

    def __repr__(self) -> str:
        kind = self.type.name if len(self) else "EMPTY"
        return f"NALUnit({kind}, {len(self)} bytes)"

    @property
    def data(self) -> memoryview:
        return memoryview(self.buffer)[self.start:self.end]

    @property
    def header(self) -> NalHeader:
        if not len(self):
            raise TruncatedError("nal_unit_header")
        return NalHeader.from_byte(self.buffer[self.start])

    @property
    def type(self) -> UnitType:
        return self.header.nal_unit_type

    @property
    def type_name(self) -> str:
        return _TYPE_NAMES.get(self.type, f"Reserved/unspecified ({int(self.type)})")

    @property
    def header_extension(self) -> Optional[HeaderExtension]:
        """SVC/MVC extension fields for types 14, 20 and 21, otherwise None."""
        if not self.type.has_header_extension:
            return None
        if len(self) < 4:
            raise TruncatedError("nal_unit_header_extension")
        b0, b1, b2 = self.buffer[self.start + 1:self.start + 4]
        return parse_header_extension(b0, b1, b2)

    def check_header(self) -> NalHeader:
        """Return the header, rejecting a set forbidden_zero_bit."""
        header = self.header
        if header.forbidden_zero_bit:
            raise RangeViolationError("forbidden_zero_bit", 1)
        return header

    def rbsp(self) -> Union[memoryview, bytes]:
        """The escape-free payload following the NAL header."""
        return decode_rbsp(self.buffer, AUTO, self.start, self.end)

    def reader(self) -> BitstreamReader:
        return BitstreamReader(self.rbsp())


class NALExtractor:
    """
    Logic to extract NAL units from length-prefixed sample data (AVCC,
    as used in MP4/MOV) and to re-emit units in either framing.
    """

    def __init__(self, nalu_length_size: int = 4):
        if not 1 <= nalu_length_size <= 4:
            raise ValueError(f"Unsupported NALU length size: {nalu_length_size}")
        self.nalu_length_size = nalu_length_size

    def iter_units(self, sample_data: BytesLike) -> Iterator[NALUnit]:
        """
        Yield units from sample_data where each NAL is prefixed by its
        big-endian length.

        Units preceding a framing error are yielded before
        MalformedFramingError is raised.
        """
        size = self.nalu_length_size
        total = len(sample_data)
        offset = 0
        while offset < total:
            if offset + size > total:
                raise MalformedFramingError(
                    offset, f"{total - offset} bytes left for a {size}-byte length field"
                )

            length = int.from_bytes(sample_data[offset:offset + size], "big")
            offset += size

            if offset + length > total:
                raise MalformedFramingError(
                    offset - size,
                    f"NAL length {length} exceeds the {total - offset} bytes remaining",
                )

            if length:
                yield NALUnit(sample_data, offset, offset + length)
            else:
                logger.debug("Skipping zero-length NAL unit at offset %d", offset - size)
            offset += length

    def extract_from_avcc(self, sample_data: BytesLike) -> List[NALUnit]:
        """Extract all units from one length-prefixed sample."""
        return list(self.iter_units(sample_data))

    def to_length_prefixed(self, nal_units: Iterable[NALUnit]) -> bytes:
        """Serialise units with this extractor's length field width."""
        out = bytearray()
        limit = 1 << (8 * self.nalu_length_size)
        for nal in nal_units:
            if len(nal) >= limit:
                raise ValueError(
                    f"{len(nal)}-byte NAL unit does not fit a {self.nalu_length_size}-byte length"
                )
            out += len(nal).to_bytes(self.nalu_length_size, "big")
            out += nal.data
        return bytes(out)

    def to_annex_b(self, nal_units: Iterable[NALUnit]) -> bytes:
        """Convert NAL units to Annex B format (start codes) for decoding."""
        out = bytearray()
        for nal in nal_units:
            out += b'\x00\x00\x00\x01'
            out += nal.data
        return bytes(out)
