import logging
from typing import Dict, Iterator, Optional, Union

from .errors import ParamSetNotFoundError
from .pps import MAX_PPS_ID, PicParameterSet, PicParamSetId
from .sps import MAX_SPS_ID, SeqParameterSet, SeqParamSetId
from .subset_sps import SubsetSps

logger = logging.getLogger(__name__)


def _sps_key(sps_id: Union[SeqParamSetId, int]) -> Optional[SeqParamSetId]:
    if isinstance(sps_id, SeqParamSetId):
        return sps_id
    if isinstance(sps_id, int):
        return SeqParamSetId(sps_id) if 0 <= sps_id <= MAX_SPS_ID else None
    raise TypeError(f"expected a SeqParamSetId, got {type(sps_id).__name__}")


def _pps_key(pps_id: Union[PicParamSetId, int]) -> Optional[PicParamSetId]:
    if isinstance(pps_id, PicParamSetId):
        return pps_id
    if isinstance(pps_id, int):
        return PicParamSetId(pps_id) if 0 <= pps_id <= MAX_PPS_ID else None
    raise TypeError(f"expected a PicParamSetId, got {type(pps_id).__name__}")


class Context:
    """
    The parameter sets known so far for one stream.

    SPS, PPS and subset SPS live in separate id spaces. Inserting replaces
    whatever was stored under the same id, since a stream may redefine a
    parameter set. A PPS may be stored before the SPS it refers to; that
    reference is only checked when a slice header needs it.

    A Context belongs to a single stream. It is never shared implicitly:
    every parse that needs one takes it as an argument.
    """

    def __init__(self):
        self._sps: Dict[SeqParamSetId, SeqParameterSet] = {}
        self._pps: Dict[PicParamSetId, PicParameterSet] = {}
        self._subset_sps: Dict[SeqParamSetId, SubsetSps] = {}

    def __repr__(self) -> str:
        return (f"Context(sps={sorted(k.id for k in self._sps)}, "
                f"pps={sorted(k.id for k in self._pps)}, "
                f"subset_sps={sorted(k.id for k in self._subset_sps)})")

    def put_seq_param_set(self, sps: SeqParameterSet):
        if sps.id in self._sps:
            logger.debug("Replacing SPS %d", sps.id.id)
        self._sps[sps.id] = sps

    def put_pic_param_set(self, pps: PicParameterSet):
        if pps.id in self._pps:
            logger.debug("Replacing PPS %d", pps.id.id)
        self._pps[pps.id] = pps

    def put_subset_seq_param_set(self, subset_sps: SubsetSps):
        if subset_sps.id in self._subset_sps:
            logger.debug("Replacing subset SPS %d", subset_sps.id.id)
        self._subset_sps[subset_sps.id] = subset_sps

    def sps_by_id(self, sps_id: Union[SeqParamSetId, int]) -> SeqParameterSet:
        sps = self._sps.get(_sps_key(sps_id))
        if sps is None:
            raise ParamSetNotFoundError("SPS", int(sps_id))
        return sps

    def pps_by_id(self, pps_id: Union[PicParamSetId, int]) -> PicParameterSet:
        pps = self._pps.get(_pps_key(pps_id))
        if pps is None:
            raise ParamSetNotFoundError("PPS", int(pps_id))
        return pps

    def subset_sps_by_id(self, sps_id: Union[SeqParamSetId, int]) -> SubsetSps:
        subset_sps = self._subset_sps.get(_sps_key(sps_id))
        if subset_sps is None:
            raise ParamSetNotFoundError("subset SPS", int(sps_id))
        return subset_sps

    def sps(self) -> Iterator[SeqParameterSet]:
        return iter(self._sps.values())

    def pps(self) -> Iterator[PicParameterSet]:
        return iter(self._pps.values())

    def subset_sps(self) -> Iterator[SubsetSps]:
        return iter(self._subset_sps.values())

    def clear(self):
        """Forget everything, e.g. after a stream discontinuity."""
        self._sps.clear()
        self._pps.clear()
        self._subset_sps.clear()
