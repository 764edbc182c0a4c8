"""
avcparse - H.264 bitstream metadata extraction.

Frames H.264 elementary streams (Annex B start codes or MP4-style length
prefixes), removes emulation prevention, and decodes parameter sets,
slice headers and SEI into immutable records, without decoding pixels.

References:
    ITU-T H.264 - Advanced video coding for generic audiovisual services
    ISO/IEC 14496-15 - Carriage of NAL unit structured video in ISOBMFF
"""

from importlib.metadata import version as _get_version, PackageNotFoundError

try:
    __version__ = _get_version("avcparse")
except PackageNotFoundError:
    # Package not installed (running from source)
    __version__ = "0.0.0-dev"

from .errors import (
    H264Error,
    ParseError,
    TruncatedError,
    ValueOverflowError,
    RangeViolationError,
    UnresolvedReferenceError,
    UnsupportedSyntaxError,
    MalformedFramingError,
    EmulationPreventionError,
    ParamSetNotFoundError,
)
from .bitstream import BitstreamReader, BitstreamWriter
from .rbsp import decode_rbsp, encode_rbsp
from .nal_extractor import NALExtractor, NALUnit, NalHeader, UnitType
from .annexb import AnnexBReader, NalInterest, split_annex_b
from .sps import SeqParameterSet, SeqParamSetId, Profile, Level, ChromaFormat
from .pps import PicParameterSet, PicParamSetId
from .subset_sps import SubsetSps
from .context import Context
from .slice import SliceHeader, SliceType, SliceFamily
from .sei import (
    SeiReader,
    SeiMessage,
    PayloadType,
    BufferingPeriod,
    PicTiming,
    UserDataRegisteredItuTT35,
    UserDataUnregistered,
)
from .aud import AccessUnitDelimiter
from .sps_extension import SeqParameterSetExtension
from .prefix import PrefixNalUnit
from .avcc import AvcDecoderConfigurationRecord
from .diagnostics import Issue, IssueKind, IssueLog
from .analyzer import StreamAnalyzer, NalResult, UnsupportedNal, parse_nal

__all__ = [
    "__version__",
    # Main interface
    "StreamAnalyzer",
    "NalResult",
    "UnsupportedNal",
    "parse_nal",
    "Context",
    # Framing
    "AnnexBReader",
    "NalInterest",
    "split_annex_b",
    "NALExtractor",
    "NALUnit",
    "NalHeader",
    "UnitType",
    "AvcDecoderConfigurationRecord",
    "BitstreamReader",
    "BitstreamWriter",
    "decode_rbsp",
    "encode_rbsp",
    # Records
    "SeqParameterSet",
    "SeqParamSetId",
    "Profile",
    "Level",
    "ChromaFormat",
    "PicParameterSet",
    "PicParamSetId",
    "SubsetSps",
    "SliceHeader",
    "SliceType",
    "SliceFamily",
    "SeiReader",
    "SeiMessage",
    "PayloadType",
    "BufferingPeriod",
    "PicTiming",
    "UserDataRegisteredItuTT35",
    "UserDataUnregistered",
    "AccessUnitDelimiter",
    "SeqParameterSetExtension",
    "PrefixNalUnit",
    # Errors and diagnostics
    "H264Error",
    "ParseError",
    "TruncatedError",
    "ValueOverflowError",
    "RangeViolationError",
    "UnresolvedReferenceError",
    "UnsupportedSyntaxError",
    "MalformedFramingError",
    "EmulationPreventionError",
    "ParamSetNotFoundError",
    "Issue",
    "IssueKind",
    "IssueLog",
]
