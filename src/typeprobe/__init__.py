"""typeprobe: signature based file type identification.

The package exposes the identification core (pattern index, valuation,
confidence aggregation and ranking), the definition source readers and a
small command line front end.
"""

from __future__ import annotations

from .core import (
    Confidence,
    ConfidenceStack,
    Definition,
    DefinitionValidationError,
    DiagnosticsSnapshot,
    Identifier,
    IdentifierIOError,
    Outcome,
    Pattern,
    Report,
    Signature,
    identify_file,
    scan_path,
)
from .sources import PackageFormatError, load_source
from .tables import CommonalityTable, ValuationTables, default_tables

__all__ = [
    "CommonalityTable",
    "Confidence",
    "ConfidenceStack",
    "Definition",
    "DefinitionValidationError",
    "DiagnosticsSnapshot",
    "Identifier",
    "IdentifierIOError",
    "Outcome",
    "PackageFormatError",
    "Pattern",
    "Report",
    "Signature",
    "ValuationTables",
    "default_tables",
    "identify_file",
    "load_source",
    "scan_path",
]

__version__ = "0.1.0"
