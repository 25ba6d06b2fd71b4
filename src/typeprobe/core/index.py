"""First-byte pattern index.

Every pattern with data is filed under the value of its first byte, giving a
fixed table of 256 buckets. A probe only looks at the bucket for the first
byte of the candidate buffer plus the unanchored bucket, which lists the
definitions that have no offset-zero pattern (offset-only signatures and
strings-only signatures) so they are still evaluated.

Example
-------
>>> from typeprobe.core.types import Definition, Pattern, Signature
>>> pdf = Definition(
...     "PDF", ("pdf",), "application/pdf",
...     signature=Signature(patterns=(Pattern(0, b"%PDF"),)),
... )
>>> index = PatternIndex([pdf])
>>> probe = index.probe(b"%PDF-1.4")
>>> probe.consulted
(37, 256)
>>> probe.evidence[0].strict
True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from .types import Definition, Pattern, Tally

logger = logging.getLogger(__name__)

ANCHORED_BUCKETS = 256
UNANCHORED = ANCHORED_BUCKETS

# Global strings weigh half as much as offset-zero pattern bytes.
_STRING_BYTE_WEIGHT = 500


class IndexEntry(NamedTuple):
    """One bucket slot: a definition and the pattern that placed it there."""

    definition: Definition
    pattern: Optional[Pattern]
    order: int


@dataclass(frozen=True)
class PatternEvidence:
    """Match facts for one touched definition against one buffer."""

    definition: Definition
    order: int
    matched_patterns: Tuple[Pattern, ...]
    patterns: Tally
    textual: Tally
    strings: Tally
    matched_weight: int
    required_weight: int

    @property
    def strict(self) -> bool:
        """All patterns matched and every checked global string was found."""

        if self.patterns.required == 0 and self.strings.required == 0:
            return False
        return self.patterns.complete and self.strings.complete


@dataclass(frozen=True)
class Probe:
    """Result of looking one buffer up in the index."""

    length: int
    consulted: Tuple[int, ...]
    evidence: Tuple[PatternEvidence, ...]

    @property
    def is_empty(self) -> bool:
        return not self.evidence


def evaluate(
    definition: Definition,
    buffer: bytes,
    *,
    order: int = 0,
    check_strings: bool = True,
) -> PatternEvidence:
    """Evaluate every pattern (and optionally string) of ``definition``."""

    patterns = definition.signature.anchored_patterns
    matched = tuple(pattern for pattern in patterns if pattern.matches(buffer))
    textual = [pattern for pattern in patterns if pattern.is_textual]
    textual_matched = sum(1 for pattern in matched if pattern.is_textual)

    matched_weight = sum(pattern.weight for pattern in matched)
    required_weight = sum(pattern.weight for pattern in patterns)

    strings_found = 0
    strings_required = 0
    if check_strings:
        strings = definition.signature.strings
        strings_required = len(strings)
        for value in strings:
            weight = len(value) * _STRING_BYTE_WEIGHT
            required_weight += weight
            if value in buffer:
                strings_found += 1
                matched_weight += weight

    return PatternEvidence(
        definition=definition,
        order=order,
        matched_patterns=matched,
        patterns=Tally(len(matched), len(patterns)),
        textual=Tally(textual_matched, len(textual)),
        strings=Tally(strings_found, strings_required),
        matched_weight=matched_weight,
        required_weight=required_weight,
    )


class PatternIndex:
    """Immutable first-byte dispatch table over a definition corpus.

    Invalid definitions (missing file type or MIME type) are skipped. Entry
    ``order`` is the position of the definition in the corpus handed in, so
    ties can fall back to declaration order.
    """

    def __init__(self, definitions: Iterable[Definition]) -> None:
        buckets: List[List[IndexEntry]] = [[] for _ in range(ANCHORED_BUCKETS + 1)]
        indexed: List[Definition] = []
        required_prefix = 0
        for order, definition in enumerate(definitions):
            if not definition.is_valid:
                continue
            signature = definition.signature
            if signature.is_empty:
                continue
            indexed.append(definition)
            required_prefix = max(required_prefix, signature.required_prefix)
            for pattern in signature.anchored_patterns:
                buckets[pattern.data[0]].append(IndexEntry(definition, pattern, order))
            if signature.leading_pattern is None:
                buckets[UNANCHORED].append(IndexEntry(definition, None, order))

        self._buckets: Tuple[Tuple[IndexEntry, ...], ...] = tuple(
            tuple(bucket) for bucket in buckets
        )
        self._definitions = tuple(indexed)
        self._required_prefix = required_prefix
        summary = self.summary()
        logger.debug(
            "Indexed %d definitions into %d entries (%d anchored buckets, %d unanchored)",
            summary["definitions"],
            summary["entries"],
            summary["anchored_buckets"],
            summary["unanchored"],
        )

    @property
    def definitions(self) -> Tuple[Definition, ...]:
        return self._definitions

    @property
    def required_prefix(self) -> int:
        """Largest ``position + len(data)`` over every indexed pattern."""

        return self._required_prefix

    def bucket(self, key: int) -> Tuple[IndexEntry, ...]:
        if not 0 <= key <= UNANCHORED:
            raise ValueError(f"Bucket key must be between 0 and {UNANCHORED}")
        return self._buckets[key]

    def summary(self) -> Mapping[str, int]:
        anchored = self._buckets[:ANCHORED_BUCKETS]
        return MappingProxyType(
            {
                "definitions": len(self._definitions),
                "entries": sum(len(bucket) for bucket in self._buckets),
                "anchored_buckets": sum(1 for bucket in anchored if bucket),
                "largest_bucket": max((len(bucket) for bucket in anchored), default=0),
                "unanchored": len(self._buckets[UNANCHORED]),
                "required_prefix": self._required_prefix,
            }
        )

    def probe(self, buffer: bytes, *, check_strings: bool = True) -> Probe:
        """Look ``buffer`` up and evaluate every definition it touches.

        A definition is touched when one of its entries in the first-byte
        bucket matches, or when it sits in the unanchored bucket. Evidence
        is returned in corpus order.
        """

        buffer = bytes(buffer)
        if not buffer:
            return Probe(length=0, consulted=(), evidence=())

        consulted = (buffer[0], UNANCHORED)
        touched: Dict[int, Definition] = {}
        for key in consulted:
            for entry in self.bucket(key):
                if entry.order in touched:
                    continue
                if entry.pattern is None or entry.pattern.matches(buffer):
                    touched[entry.order] = entry.definition

        evidence = tuple(
            evaluate(touched[order], buffer, order=order, check_strings=check_strings)
            for order in sorted(touched)
        )
        return Probe(length=len(buffer), consulted=consulted, evidence=evidence)
