"""typeprobe core module exports."""

from .assembler import Report, assemble, rank
from .confidence import Confidence, ConfidenceStack, keep_highest, keep_latest
from .diagnostics import DiagnosticsSnapshot, build_diagnostics
from .grouping import (
    filter_by_extension_levels,
    flatten,
    group_by_extension_level,
    group_by_mime_type,
)
from .identifier import Identifier, IdentifierIOError, identify_file, scan_path
from .index import PatternIndex, Probe
from .types import (
    Definition,
    DefinitionValidationError,
    Outcome,
    Pattern,
    Signature,
    Tally,
)
from .valuation import Valuation, ValuationBreakdown, assign_priority_levels, value_by_level

__all__ = [
    "Confidence",
    "ConfidenceStack",
    "Definition",
    "DefinitionValidationError",
    "DiagnosticsSnapshot",
    "Identifier",
    "IdentifierIOError",
    "Outcome",
    "Pattern",
    "PatternIndex",
    "Probe",
    "Report",
    "Signature",
    "Tally",
    "Valuation",
    "ValuationBreakdown",
    "assemble",
    "assign_priority_levels",
    "build_diagnostics",
    "filter_by_extension_levels",
    "flatten",
    "group_by_extension_level",
    "group_by_mime_type",
    "identify_file",
    "keep_highest",
    "keep_latest",
    "rank",
    "scan_path",
    "value_by_level",
]
