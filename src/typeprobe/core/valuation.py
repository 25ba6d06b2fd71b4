"""Multi-factor heuristic valuation of definitions.

The total ranks definitions that satisfy the same byte evidence; it is not a
percentage. Seven factors contribute:

=====================  ===  ==============================================
Factor                 Max  Rule
=====================  ===  ==============================================
extension level        150  ``(6 - level) * 30`` for a recognised tier
signature quality       25  distinctive bytes, capped at 24
MIME validity           20  registered (20) or known top-level type (10)
software popularity     15  static weight of the producing software
usage frequency         10  tiers over the corpus sample count
uniqueness              10  fewer definitions sharing the 4-byte prefix
identifiability         10  at least one pattern with data
=====================  ===  ==============================================

Rarer recognised extensions score higher: ``.docx`` says more about content
than ``.txt``, which many formats share.

>>> from typeprobe.tables import CommonalityTable
>>> table = CommonalityTable.from_tiers({5: ["txt"], 1: ["evtx"]})
>>> value_by_level(Definition("T", ("txt",), "text/plain"), table)
30
>>> value_by_level(Definition("E", ("evtx",), "application/x-evtx"), table)
150
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from ..mime import MimeRegistry, is_well_formed
from ..tables import CommonalityTable, ValuationTables, default_tables
from .types import Definition

logger = logging.getLogger(__name__)

MAX_EXTENSION_LEVEL = 150
MAX_SIGNATURE_QUALITY = 25
MAX_MIME_VALIDITY = 20
MAX_SOFTWARE_POPULARITY = 15
MAX_USAGE_FREQUENCY = 10
MAX_UNIQUENESS = 10
MAX_IDENTIFIABILITY = 10
MAX_TOTAL = (
    MAX_EXTENSION_LEVEL
    + MAX_SIGNATURE_QUALITY
    + MAX_MIME_VALIDITY
    + MAX_SOFTWARE_POPULARITY
    + MAX_USAGE_FREQUENCY
    + MAX_UNIQUENESS
    + MAX_IDENTIFIABILITY
)

_LEVEL_STEP = 30
_SIGNATURE_SATURATION = 24
_LEADING_PATTERN_BONUS = 4
_STRING_BONUS = 2
_PREFIX_LENGTH = 4


def value_by_level(definition: Definition, table: CommonalityTable) -> int:
    level = table.get_level_for(definition.extensions)
    if level <= 0:
        return 0
    return (6 - level) * _LEVEL_STEP


def signature_distinctiveness(definition: Definition) -> int:
    signature = definition.signature
    distinct = sum(len(pattern.data) for pattern in signature.anchored_patterns)
    if signature.leading_pattern is not None:
        distinct += _LEADING_PATTERN_BONUS
    distinct += _STRING_BONUS * len(signature.strings)
    return distinct


def signature_prefix(definition: Definition) -> Optional[bytes]:
    """First four bytes of the offset-zero pattern, if there is one."""

    leading = definition.signature.leading_pattern
    if leading is None:
        return None
    return leading.data[:_PREFIX_LENGTH]


@dataclass(frozen=True)
class ValuationBreakdown:
    extension_level: int = 0
    signature_quality: int = 0
    mime_validity: int = 0
    software_popularity: int = 0
    usage_frequency: int = 0
    uniqueness: int = 0
    identifiability: int = 0
    level: int = 0

    @property
    def total(self) -> int:
        return (
            self.extension_level
            + self.signature_quality
            + self.mime_validity
            + self.software_popularity
            + self.usage_frequency
            + self.uniqueness
            + self.identifiability
        )

    def to_dict(self) -> Dict[str, int]:
        payload = asdict(self)
        payload["total"] = self.total
        return payload


class Valuation:
    """Scores definitions against static tables and the corpus they live in.

    ``corpus`` feeds the uniqueness factor: definitions sharing a signature
    prefix with many others earn less. Scoring is pure and thread safe once
    the instance is built.
    """

    def __init__(
        self,
        tables: Optional[ValuationTables] = None,
        corpus: Iterable[Definition] = (),
        *,
        registry: Optional[MimeRegistry] = None,
    ) -> None:
        self.tables = tables or default_tables()
        self.registry = registry or MimeRegistry.from_tables(self.tables, include_system=False)
        valid = [definition for definition in corpus if definition.is_valid]
        self._members = frozenset(valid)
        self._prefix_counts: Counter[bytes] = Counter(
            prefix
            for prefix in map(signature_prefix, valid)
            if prefix is not None
        )
        self._software = sorted(
            (
                (name.lower(), weight, re.compile(r"(?<!\w)" + re.escape(name.lower()) + r"(?!\w)"))
                for name, weight in self.tables.software_weights.items()
            ),
            key=lambda item: (-len(item[0]), item[0]),
        )

    @property
    def commonality(self) -> CommonalityTable:
        return self.tables.commonality

    def extension_level(self, definition: Definition) -> int:
        return value_by_level(definition, self.commonality)

    def signature_quality(self, definition: Definition) -> int:
        distinct = signature_distinctiveness(definition)
        if distinct <= 0:
            return 0
        capped = min(distinct, _SIGNATURE_SATURATION)
        return round(MAX_SIGNATURE_QUALITY * capped / _SIGNATURE_SATURATION)

    def mime_validity(self, definition: Definition) -> int:
        mime_type = definition.mime_type
        if not is_well_formed(mime_type):
            return 0
        if self.registry.is_registered(mime_type):
            return MAX_MIME_VALIDITY
        if self.registry.has_known_top_level(mime_type):
            return MAX_MIME_VALIDITY // 2
        return 0

    def software_popularity(self, definition: Definition) -> int:
        if definition.software:
            candidates: Sequence[str] = (definition.software,)
        else:
            candidates = (definition.file_type, definition.remarks)
        for text in candidates:
            folded = (text or "").lower()
            if not folded:
                continue
            for name, weight, pattern in self._software:
                if folded == name or pattern.search(folded):
                    return min(weight, MAX_SOFTWARE_POPULARITY)
        return 0

    def usage_frequency(self, definition: Definition) -> int:
        if definition.file_count <= 0:
            return 0
        return min(self.tables.frequency_points(definition.file_count), MAX_USAGE_FREQUENCY)

    def uniqueness(self, definition: Definition) -> int:
        prefix = signature_prefix(definition)
        if prefix is None:
            return 0
        sharing = self._prefix_counts.get(prefix, 0)
        others = sharing - 1 if definition in self._members else sharing
        return round(MAX_UNIQUENESS / (1 + max(others, 0)))

    def identifiability(self, definition: Definition) -> int:
        return MAX_IDENTIFIABILITY if definition.signature.anchored_patterns else 0

    def score(self, definition: Definition) -> ValuationBreakdown:
        return ValuationBreakdown(
            extension_level=self.extension_level(definition),
            signature_quality=self.signature_quality(definition),
            mime_validity=self.mime_validity(definition),
            software_popularity=self.software_popularity(definition),
            usage_frequency=self.usage_frequency(definition),
            uniqueness=self.uniqueness(definition),
            identifiability=self.identifiability(definition),
            level=self.commonality.get_level_for(definition.extensions),
        )

    def total(self, definition: Definition) -> int:
        return self.score(definition).total


def assign_priority_levels(
    definitions: Iterable[Definition],
    valuation: Valuation,
) -> List[Definition]:
    """Return copies whose ``priority_level`` is their valuation total."""

    assigned: List[Definition] = []
    for definition in definitions:
        if not definition.is_valid:
            logger.warning("Skipping priority assignment for %s", definition.describe())
            assigned.append(definition)
            continue
        breakdown = valuation.score(definition)
        assigned.append(
            replace(definition, priority_level=breakdown.total, level=breakdown.level)
        )
    return assigned
