"""
Stream-level analysis: frame units, parse each one with the parser for
its type, and keep the parameter set Context current as the stream goes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .annexb import AnnexBReader, Chunk
from .aud import AccessUnitDelimiter
from .context import Context
from .diagnostics import IssueLog
from .errors import H264Error, MalformedFramingError
from .nal_extractor import NALExtractor, NALUnit, NalHeader, UnitType
from .pps import PicParameterSet
from .prefix import PrefixNalUnit
from .sei import SeiMessages, SeiReader
from .slice import SliceHeader
from .sps import SeqParameterSet
from .sps_extension import SeqParameterSetExtension
from .subset_sps import SubsetSps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnsupportedNal:
    """A unit whose payload is not decoded, kept as its header and raw bytes."""
    header: NalHeader
    raw: bytes


ParsedUnit = Union[
    SeqParameterSet,
    PicParameterSet,
    SliceHeader,
    SeiMessages,
    AccessUnitDelimiter,
    SeqParameterSetExtension,
    PrefixNalUnit,
    SubsetSps,
    UnsupportedNal,
]


def _parse_sei(nal: NALUnit, ctx: Context) -> SeiMessages:
    return SeiReader.from_nal(nal).messages()


_PARSERS: Dict[UnitType, Callable[[NALUnit, Context], Any]] = {
    UnitType.SEQ_PARAMETER_SET: lambda nal, ctx: SeqParameterSet.from_nal(nal),
    UnitType.PIC_PARAMETER_SET: PicParameterSet.from_nal,
    UnitType.SLICE_NON_IDR: SliceHeader.from_nal,
    UnitType.SLICE_IDR: SliceHeader.from_nal,
    UnitType.SLICE_EXTENSION: SliceHeader.from_nal,
    UnitType.SLICE_EXTENSION_DEPTH_VIEW: SliceHeader.from_nal,
    UnitType.SEI: _parse_sei,
    UnitType.ACCESS_UNIT_DELIMITER: lambda nal, ctx: AccessUnitDelimiter.from_nal(nal),
    UnitType.SEQ_PARAMETER_SET_EXTENSION: lambda nal, ctx: SeqParameterSetExtension.from_nal(nal),
    UnitType.PREFIX_NAL: lambda nal, ctx: PrefixNalUnit.from_nal(nal),
    UnitType.SUBSET_SEQ_PARAMETER_SET: lambda nal, ctx: SubsetSps.from_nal(nal),
}


def parse_nal(nal: NALUnit, ctx: Context) -> ParsedUnit:
    """
    Parse one unit with the parser registered for its type.

    ctx is only read here; storing parameter sets is up to the caller.
    Units of types without a parser come back as UnsupportedNal.
    """
    header = nal.check_header()
    parser = _PARSERS.get(header.nal_unit_type)
    if parser is None:
        return UnsupportedNal(header, bytes(nal.data))
    return parser(nal, ctx)


@dataclass(frozen=True)
class NalResult:
    """Outcome for one unit: exactly one of record and error is set."""
    index: int
    nal: NALUnit
    record: Optional[ParsedUnit] = None
    error: Optional[H264Error] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StreamAnalyzer:
    """
    Push-style analysis of one H.264 stream.

    Annex B input is fed in arbitrary chunks through feed() and flush();
    units that are already framed go through feed_units(). A unit that
    fails to parse is reported in its NalResult and in self.issues, and
    analysis carries on with the next unit.

    Usage:
        analyzer = StreamAnalyzer()
        for chunk in chunks:
            for result in analyzer.feed(chunk):
                print(result.record)
        analyzer.flush()
    """

    def __init__(self, ctx: Optional[Context] = None, update_context: bool = True):
        self.ctx = ctx if ctx is not None else Context()
        self.update_context = update_context
        self.issues = IssueLog()
        self.unit_count = 0
        self.type_counts: Dict[str, int] = {}
        self._annexb = AnnexBReader()

    def feed(self, chunk: Chunk) -> List[NalResult]:
        return self.feed_units(self._annexb.push(chunk))

    def flush(self) -> List[NalResult]:
        return self.feed_units(self._annexb.flush())

    def feed_units(self, units: Iterable[NALUnit]) -> List[NalResult]:
        return [self._analyze(nal) for nal in units]

    def analyze_avcc(self, samples: Iterable[bytes], length_size: int = 4) -> List[NalResult]:
        """
        Analyse length-prefixed samples (MP4 style). A sample with broken
        framing is logged and analysis resumes at the next sample; units
        framed before the break are still analysed.
        """
        extractor = NALExtractor(length_size)
        results = []
        for sample_index, sample in enumerate(samples):
            try:
                for nal in extractor.iter_units(sample):
                    results.append(self._analyze(nal))
            except MalformedFramingError as e:
                logger.warning("Sample %d has broken framing: %s", sample_index, e)
                self.issues.log(e, self.unit_count, None, sample_index=sample_index)
        return results

    def _analyze(self, nal: NALUnit) -> NalResult:
        index = self.unit_count
        self.unit_count += 1
        nal_type = nal.data[0] & 0x1F if len(nal) else None
        if nal_type is not None:
            name = UnitType(nal_type).name
            self.type_counts[name] = self.type_counts.get(name, 0) + 1
        try:
            record = parse_nal(nal, self.ctx)
        except H264Error as e:
            logger.warning("Unit %d (%r) failed to parse: %s", index, nal, e)
            self.issues.log(e, index, nal_type)
            return NalResult(index, nal, error=e)

        if isinstance(record, UnsupportedNal):
            logger.debug("Unit %d: %s payload not decoded", index, record.header.nal_unit_type.name)
        elif isinstance(record, list):
            logger.debug("Unit %d: %d SEI messages left undecoded", index, len(record))
        if self.update_context:
            self._store(record)
        return NalResult(index, nal, record=record)

    def _store(self, record: ParsedUnit):
        if isinstance(record, SeqParameterSet):
            self.ctx.put_seq_param_set(record)
        elif isinstance(record, PicParameterSet):
            self.ctx.put_pic_param_set(record)
        elif isinstance(record, SubsetSps):
            self.ctx.put_subset_seq_param_set(record)

    def summary(self) -> Dict[str, Any]:
        return {
            "total_units": self.unit_count,
            "type_distribution": dict(self.type_counts),
            "discarded_bytes": self._annexb.discarded_bytes,
            "issues": self.issues.summary(),
        }
