"""
Error types raised while framing and parsing H.264 bitstreams.

Parse errors carry the name of the syntax element being read when the
failure happened, so a single malformed field can be diagnosed without
re-running the parse under a debugger.

    H264Error
    +-- ParseError
    |   +-- TruncatedError
    |   +-- ValueOverflowError
    |   +-- RangeViolationError
    |   +-- UnresolvedReferenceError
    |   +-- UnsupportedSyntaxError
    +-- MalformedFramingError
        +-- EmulationPreventionError

ParamSetNotFoundError is a LookupError rather than an H264Error: a
Context miss is not a property of the bitstream being parsed.
"""

from typing import Any, Optional


class H264Error(ValueError):
    """Base class for everything the bitstream layers raise."""


class ParseError(H264Error):
    """A syntax structure could not be decoded."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class TruncatedError(ParseError):
    """Not enough bits remain for the next field."""

    def __init__(self, field: str):
        super().__init__(field, "bitstream ended before field was complete")


class ValueOverflowError(ParseError):
    """A decoded value does not fit the representable range (e.g. a huge Exp-Golomb prefix)."""

    def __init__(self, field: str, detail: str = "value exceeds representable range"):
        super().__init__(field, detail)


class RangeViolationError(ParseError):
    """A fully decoded value is outside the range H.264 allows for it."""

    def __init__(self, field: str, value: Any, detail: Optional[str] = None):
        message = f"illegal value {value!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(field, message)
        self.value = value


class UnresolvedReferenceError(ParseError):
    """A parameter set id is referenced but not present in the Context."""

    def __init__(self, field: str, value: Any):
        super().__init__(field, f"references unknown parameter set {value}")
        self.value = value


class UnsupportedSyntaxError(ParseError):
    """The syntax is valid H.264 but this library does not decode it."""

    def __init__(self, field: str, detail: str):
        super().__init__(field, detail)


class MalformedFramingError(H264Error):
    """NAL unit boundaries could not be determined."""

    def __init__(self, offset: int, detail: str):
        super().__init__(f"offset {offset}: {detail}")
        self.offset = offset
        self.detail = detail


class EmulationPreventionError(MalformedFramingError):
    """An emulation prevention sequence is not legal where it occurs."""


class ParamSetNotFoundError(LookupError):
    """Context lookup miss."""

    def __init__(self, kind: str, param_set_id: Any):
        super().__init__(f"no {kind} with id {param_set_id}")
        self.kind = kind
        self.param_set_id = param_set_id
