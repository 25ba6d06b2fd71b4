"""Partition definition corpora by MIME type or extension tier."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

from ..tables import MAX_LEVEL, MIN_LEVEL, CommonalityTable
from .types import Definition


def group_by_mime_type(definitions: Iterable[Definition]) -> Dict[str, List[Definition]]:
    """Group ``definitions`` by MIME type, ignoring case.

    Each group is keyed by the first spelling encountered and created the
    first time that MIME type appears; members keep their input order.

    >>> a = Definition("A", mime_type="image/PNG")
    >>> b = Definition("B", mime_type="image/png")
    >>> list(group_by_mime_type([a, b]))
    ['image/PNG']
    """

    grouped: Dict[str, List[Definition]] = {}
    spelling: Dict[str, str] = {}
    for definition in definitions:
        folded = definition.mime_key
        key = spelling.get(folded)
        if key is None:
            key = spelling[folded] = definition.mime_type
            grouped[key] = []
        grouped[key].append(definition)
    return grouped


def flatten(grouped: Mapping[str, Sequence[Definition]]) -> List[Definition]:
    """Concatenate groups in creation order."""

    flattened: List[Definition] = []
    for members in grouped.values():
        flattened.extend(members)
    return flattened


def group_by_extension_level(
    definitions: Iterable[Definition],
    table: CommonalityTable,
) -> Dict[int, List[Definition]]:
    """Bucket definitions by commonality tier; tiers 0-5 are always present."""

    grouped: Dict[int, List[Definition]] = {level: [] for level in range(0, MAX_LEVEL + 1)}
    for definition in definitions:
        grouped[table.get_level_for(definition.extensions)].append(definition)
    return grouped


def filter_by_extension_levels(
    definitions: Iterable[Definition],
    table: CommonalityTable,
    min_level: int = MIN_LEVEL,
    max_level: int = MAX_LEVEL,
) -> List[Definition]:
    if not 0 <= min_level <= max_level <= MAX_LEVEL:
        raise ValueError("Invalid level range")
    return [
        definition
        for definition in definitions
        if min_level <= table.get_level_for(definition.extensions) <= max_level
    ]
