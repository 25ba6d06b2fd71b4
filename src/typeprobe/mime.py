"""MIME type validation and cleanup helpers.

Definition corpora collected from the wild carry MIME strings with stray
punctuation, doubled prefixes and near-miss spellings. ``MimeTypeCleaner``
maps them back onto registered types where it can and reports ``None`` for
anything it cannot trust.

Example
-------
>>> is_well_formed("image/png"), is_well_formed("image png")
(True, False)
>>> top_level_type("Application/PDF")
'application'
"""

from __future__ import annotations

import logging
import mimetypes
import re
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .core.types import Definition
from .tables import ValuationTables, default_tables

logger = logging.getLogger(__name__)

_MIME_PATTERN = re.compile(
    r"^[a-z0-9][a-z0-9!#$&^_.+-]{0,126}/[a-z0-9][a-z0-9!#$&^_.+-]{0,126}$"
)
_STRIP_CHARS = ';,."'
_PREFIX_TYPOS = (
    ("aapplication/", "application/"),
    ("applicaton/", "application/"),
    ("appliction/", "application/"),
    ("imgae/", "image/"),
)

_TYPE_WEIGHT = 0.3
_SUBTYPE_WEIGHT = 0.7
_SIMILARITY_THRESHOLD = 0.7


def is_well_formed(mime_type: Optional[str]) -> bool:
    """Return ``True`` for a syntactically valid ``type/subtype`` string."""

    if not mime_type:
        return False
    return bool(_MIME_PATTERN.match(mime_type.strip().lower()))


def top_level_type(mime_type: Optional[str]) -> Optional[str]:
    if not is_well_formed(mime_type):
        return None
    return mime_type.strip().lower().split("/", 1)[0]


def levenshtein(left: str, right: str) -> int:
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    previous = list(range(len(right) + 1))
    for row, left_char in enumerate(left, start=1):
        current = [row]
        for column, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(
                min(
                    previous[column] + 1,
                    current[column - 1] + 1,
                    previous[column - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(left, right) / longest


@dataclass(frozen=True)
class MimeRegistry:
    """Registered MIME types and their top-level media types."""

    registered: FrozenSet[str] = frozenset()
    top_level_types: FrozenSet[str] = frozenset()

    @classmethod
    def from_tables(
        cls,
        tables: Optional[ValuationTables] = None,
        *,
        include_system: bool = True,
    ) -> "MimeRegistry":
        """Build a registry from valuation tables.

        ``include_system`` merges the defaults known to :mod:`mimetypes`.
        """

        tables = tables or default_tables()
        registered = set(tables.registered_mime_types)
        if include_system:
            db = mimetypes.MimeTypes()
            for mapping in db.types_map:
                registered.update(value.lower() for value in mapping.values())
        top_level = set(tables.top_level_types)
        if not top_level:
            top_level = {value.split("/", 1)[0] for value in registered if "/" in value}
        return cls(registered=frozenset(registered), top_level_types=frozenset(top_level))

    def is_registered(self, mime_type: Optional[str]) -> bool:
        if not mime_type:
            return False
        return mime_type.strip().lower() in self.registered

    def has_known_top_level(self, mime_type: Optional[str]) -> bool:
        top = top_level_type(mime_type)
        return top is not None and top in self.top_level_types


@dataclass
class MimeTypeCleaner:
    """Map messy MIME strings onto registered values."""

    registry: MimeRegistry = field(default_factory=MimeRegistry.from_tables)
    threshold: float = _SIMILARITY_THRESHOLD
    _cache: Dict[str, Optional[str]] = field(default_factory=dict, init=False, repr=False)

    def clean(self, mime_type: Optional[str]) -> Optional[str]:
        if not mime_type or not mime_type.strip():
            return None
        raw = mime_type
        if raw in self._cache:
            return self._cache[raw]
        cleaned = self._basic_cleanup(raw)
        result: Optional[str]
        if self.registry.is_registered(cleaned):
            result = cleaned
        else:
            result = self._closest_registered(cleaned)
            if result is not None:
                logger.debug("Fuzzy-matched MIME type %r to %r", raw, result)
        self._cache[raw] = result
        return result

    @staticmethod
    def _basic_cleanup(mime_type: str) -> str:
        value = mime_type.strip().lower()
        for typo, fixed in _PREFIX_TYPOS:
            if value.startswith(typo):
                value = fixed + value[len(typo):]
        value = value.strip(_STRIP_CHARS).strip()
        return "".join(value.split())

    def _closest_registered(self, mime_type: str) -> Optional[str]:
        if "/" not in mime_type:
            return None
        main, _, sub = mime_type.partition("/")
        best: Optional[str] = None
        best_score = 0.0
        for candidate in sorted(self.registry.registered):
            candidate_main, _, candidate_sub = candidate.partition("/")
            score = (
                _TYPE_WEIGHT * similarity(main, candidate_main)
                + _SUBTYPE_WEIGHT * similarity(sub, candidate_sub)
            )
            if score > best_score:
                best, best_score = candidate, score
        if best is not None and best_score > self.threshold:
            return best
        return None


def validate_definitions(
    definitions: Iterable[Definition],
    cleaner: Optional[MimeTypeCleaner] = None,
) -> Tuple[Dict[str, List[Definition]], Dict[str, List[Definition]]]:
    """Split ``definitions`` by whether their MIME type can be cleaned.

    Valid definitions are regrouped under their cleaned MIME type; invalid
    ones stay under the original spelling (``""`` for a blank type).
    """

    cleaner = cleaner or MimeTypeCleaner()
    valid: Dict[str, List[Definition]] = {}
    invalid: Dict[str, List[Definition]] = {}
    for definition in definitions:
        cleaned = cleaner.clean(definition.mime_type)
        if cleaned is None:
            invalid.setdefault(definition.mime_type, []).append(definition)
            continue
        if cleaned != definition.mime_type:
            definition = replace(definition, mime_type=cleaned)
        valid.setdefault(cleaned, []).append(definition)
    if invalid:
        logger.warning(
            "%d MIME types could not be validated: %s",
            len(invalid),
            ", ".join(sorted(repr(key) for key in invalid)),
        )
    return valid, invalid
