"""
Per-unit parse issues collected while analysing a stream.

The analyzer never stops on a broken unit. Instead every failure is
recorded here with enough context (unit index, NAL type, field) to find
it again, and the log can be summarised once the stream is done.
"""

from dataclasses import dataclass, field as dc_field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import (
    EmulationPreventionError,
    H264Error,
    MalformedFramingError,
    ParseError,
    RangeViolationError,
    TruncatedError,
    UnresolvedReferenceError,
    UnsupportedSyntaxError,
    ValueOverflowError,
)


class IssueKind(Enum):
    """Categories of per-unit failures, one per error class."""
    TRUNCATED = "truncated"
    VALUE_OVERFLOW = "value_overflow"
    RANGE_VIOLATION = "range_violation"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    UNSUPPORTED_SYNTAX = "unsupported_syntax"
    EMULATION_PREVENTION = "emulation_prevention"
    MALFORMED_FRAMING = "malformed_framing"
    OTHER = "other"

    @classmethod
    def from_error(cls, error: H264Error) -> "IssueKind":
        # Subclasses come before their bases.
        for error_class, kind in _KIND_BY_ERROR:
            if isinstance(error, error_class):
                return kind
        return cls.OTHER

    @property
    def severity(self) -> str:
        return _SEVERITY.get(self, "medium")


_KIND_BY_ERROR = (
    (TruncatedError, IssueKind.TRUNCATED),
    (ValueOverflowError, IssueKind.VALUE_OVERFLOW),
    (RangeViolationError, IssueKind.RANGE_VIOLATION),
    (UnresolvedReferenceError, IssueKind.UNRESOLVED_REFERENCE),
    (UnsupportedSyntaxError, IssueKind.UNSUPPORTED_SYNTAX),
    (EmulationPreventionError, IssueKind.EMULATION_PREVENTION),
    (MalformedFramingError, IssueKind.MALFORMED_FRAMING),
)

_SEVERITY = {
    IssueKind.UNSUPPORTED_SYNTAX: "low",
    IssueKind.UNRESOLVED_REFERENCE: "medium",
    IssueKind.RANGE_VIOLATION: "high",
    IssueKind.VALUE_OVERFLOW: "high",
    IssueKind.EMULATION_PREVENTION: "high",
    IssueKind.MALFORMED_FRAMING: "critical",
}


@dataclass
class Issue:
    """A single unit that failed to parse."""
    kind: IssueKind
    unit_index: int
    nal_unit_type: Optional[int]
    message: str
    field: Optional[str] = None
    context: Dict[str, Any] = dc_field(default_factory=dict)

    @property
    def severity(self) -> str:
        return self.kind.severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "unit_index": self.unit_index,
            "nal_unit_type": self.nal_unit_type,
            "field": self.field,
            "severity": self.severity,
            "message": self.message,
            "context": self.context,
        }


class IssueLog:
    """Accumulates issues in stream order."""

    def __init__(self):
        self.issues: List[Issue] = []

    def __len__(self) -> int:
        return len(self.issues)

    def __iter__(self):
        return iter(self.issues)

    def log(self, error: H264Error, unit_index: int, nal_unit_type: Optional[int] = None,
            **context) -> Issue:
        """Record error as raised for the unit at unit_index."""
        issue = Issue(
            kind=IssueKind.from_error(error),
            unit_index=unit_index,
            nal_unit_type=nal_unit_type,
            message=str(error),
            field=error.field if isinstance(error, ParseError) else None,
            context=context,
        )
        self.issues.append(issue)
        return issue

    def by_kind(self, kind: IssueKind) -> List[Issue]:
        return [i for i in self.issues if i.kind == kind]

    def summary(self) -> Dict[str, Any]:
        """Counts by kind and severity, plus every issue as a dict."""
        kind_counts: Dict[str, int] = {}
        severity_counts = {"low": 0, "medium": 0, "high": 0, "critical": 0}
        for issue in self.issues:
            kind_counts[issue.kind.value] = kind_counts.get(issue.kind.value, 0) + 1
            severity_counts[issue.severity] += 1
        return {
            "total_issues": len(self.issues),
            "kind_distribution": kind_counts,
            "severity_distribution": severity_counts,
            "issues": [i.to_dict() for i in self.issues],
        }
