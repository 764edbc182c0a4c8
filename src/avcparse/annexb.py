"""
Start code (Annex B) framing.

A byte stream in Annex B format is a sequence of NAL units, each preceded
by 00 00 01 (optionally with an extra leading zero byte). A unit runs
from the byte after its start code to the byte before the next one, with
trailing zero bytes removed.

AnnexBReader accepts the stream in arbitrary chunks, e.g. as transport
stream packets arrive, and hands back each unit as soon as the start code
following it has been seen.
"""

import logging
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import MalformedFramingError
from .nal_extractor import NALUnit

logger = logging.getLogger(__name__)

START_CODE = b"\x00\x00\x01"

Chunk = Union[bytes, bytearray, memoryview]


def _trim_zeros(buf, start: int, end: int) -> int:
    while end > start and buf[end - 1] == 0:
        end -= 1
    return end


def _find_units(buf, pos: int, unit_start: Optional[int]) -> Tuple[List[NALUnit], Optional[int], int]:
    """
    Split buf at every start code found at or after pos.

    Returns the completed units, the start of the still-open unit (None if
    no start code has been seen yet) and the offset of the first start code
    found (-1 if none).
    """
    units = []
    first_code = -1
    while True:
        i = buf.find(START_CODE, pos)
        if i < 0:
            return units, unit_start, first_code
        if unit_start is None:
            first_code = i
        else:
            end = _trim_zeros(buf, unit_start, i)
            if end > unit_start:
                units.append(NALUnit(buf, unit_start, end))
        unit_start = pos = i + len(START_CODE)


class NalInterest(Enum):
    """What AnnexBReader should do with the rest of a unit."""
    BUFFER = "buffer"
    IGNORE = "ignore"


InterestCallback = Callable[[NALUnit, bool], NalInterest]


class AnnexBReader:
    """
    Incremental start code framer.

    Only the bytes of the unit still in progress are kept between calls
    to push(), and scanning resumes where the previous call stopped.
    Units found entirely inside one pushed chunk refer to that chunk;
    units spanning several chunks are assembled into a new buffer.
    Unit contents are never inspected.

    An optional interest callback is shown each unit as interest(nal,
    complete). It sees an open unit, with everything received so far,
    at the end of every push() that leaves it open, and again once the
    unit is complete. Returning NalInterest.IGNORE drops the unit: it is
    not returned, its remaining bytes are skipped without being stored,
    and the callback is not called on it again. A copy of the partial
    unit is passed, so the callback may keep it.
    """

    def __init__(self, interest: Optional[InterestCallback] = None):
        self.interest = interest
        self._reset()
        self.discarded_bytes = 0
        self.ignored_units = 0

    def _reset(self):
        self._pending = bytearray()
        self._in_unit = False
        self._ignoring = False
        self._scanned = 0

    def _discard(self, buf, start: int, end: int):
        # Zeros right before a start code are leading_zero_8bits / zero_byte.
        end = _trim_zeros(buf, start, end)
        if end <= start:
            return
        self.discarded_bytes += end - start
        logger.warning("Discarding %d bytes not preceded by a start code", end - start)

    def _wanted(self, nal: NALUnit, complete: bool) -> bool:
        if self.interest is None or self.interest(nal, complete) != NalInterest.IGNORE:
            return True
        self.ignored_units += 1
        logger.debug("Ignoring %r", nal)
        return False

    def _keep_tail(self, buf):
        # Two bytes are enough to catch a start code split across chunks.
        keep = min(len(buf), len(START_CODE) - 1)
        self._pending = bytearray(buf[len(buf) - keep:])
        self._scanned = 0

    def push(self, chunk: Chunk) -> List[NALUnit]:
        """Feed the next piece of the stream; return the units it completes."""
        if isinstance(chunk, memoryview):
            chunk = bytes(chunk)
        if not chunk:
            return []

        if self._pending:
            self._pending += chunk
            buf = self._pending
            scan_from = self._scanned
        else:
            buf = chunk
            scan_from = 0

        unit_start = 0 if self._in_unit else None
        if self._ignoring:
            i = buf.find(START_CODE, scan_from)
            if i < 0:
                self._keep_tail(buf)
                return []
            self._ignoring = False
            unit_start = scan_from = i + len(START_CODE)

        units, unit_start, first_code = _find_units(buf, scan_from, unit_start)

        if unit_start is None:
            self._discard(buf, 0, len(buf) - min(len(buf), len(START_CODE) - 1))
            self._keep_tail(buf)
        else:
            if first_code >= 0:
                self._discard(buf, 0, first_code)
            self._in_unit = True
            if buf is not self._pending or unit_start:
                self._pending = bytearray(buf[unit_start:])
            self._scanned = max(len(self._pending) - (len(START_CODE) - 1), 0)

        units = [nal for nal in units if self._wanted(nal, True)]
        if self._in_unit and self.interest is not None:
            end = _trim_zeros(self._pending, 0, len(self._pending))
            if end and not self._wanted(NALUnit(bytes(self._pending[:end])), False):
                self._ignoring = True
                self._keep_tail(self._pending)

        for nal in units:
            logger.debug("Framed %r", nal)
        return units

    def flush(self) -> List[NALUnit]:
        """Signal end of stream; return the final unit, if any."""
        units = []
        if self._in_unit and not self._ignoring:
            end = _trim_zeros(self._pending, 0, len(self._pending))
            if end:
                nal = NALUnit(bytes(self._pending[:end]))
                if self._wanted(nal, True):
                    units.append(nal)
        elif not self._in_unit:
            self._discard(self._pending, 0, len(self._pending))
        self._reset()
        return units

    def iter_units(self, chunks: Iterable[Chunk]) -> Iterator[NALUnit]:
        """Frame a whole stream supplied as an iterable of chunks."""
        for chunk in chunks:
            yield from self.push(chunk)
        yield from self.flush()


def split_annex_b(data: Union[bytes, bytearray]) -> List[NALUnit]:
    """
    Frame a complete Annex B buffer. Every unit refers into data.

    Raises MalformedFramingError if anything other than zero padding
    precedes the first start code.
    """
    units, unit_start, first_code = _find_units(data, 0, None)
    lead = first_code if first_code >= 0 else len(data)
    for offset in range(lead):
        if data[offset]:
            raise MalformedFramingError(offset, "data before the first start code")
    if unit_start is not None:
        end = _trim_zeros(data, unit_start, len(data))
        if end > unit_start:
            units.append(NALUnit(data, unit_start, end))
    return units
