"""Static lookup tables consumed by the valuation engine.

The tables live in ``typeprobe/data/tables.json`` rather than in code so they
can be extended or replaced (``TYPEPROBE_TABLES``) without touching the
scoring logic. Four data sets are represented:

* extension commonality tiers: ``1`` (rare but known) to ``5`` (ubiquitous),
* software popularity weights keyed by producing software name,
* usage frequency tiers over the corpus-observed sample count,
* registered MIME types and top-level media types.

Example
-------
>>> table = CommonalityTable.from_tiers({5: ["txt"], 3: ["docx"]})
>>> table.get_level(".TXT"), table.get_level("docx"), table.get_level("zzz")
(5, 3, 0)
>>> table.get_level_for(["txt", "docx"])
3
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple

from .core.types import normalise_extension

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 5

_TABLES_RESOURCE = "tables.json"


class TableFormatError(ValueError):
    """Raised when a tables payload cannot be interpreted."""


@dataclass(frozen=True)
class CommonalityTable:
    """Extension to commonality tier lookup."""

    levels: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: dict[str, int] = {}
        for extension, level in dict(self.levels).items():
            key = normalise_extension(extension)
            if not key:
                continue
            if not MIN_LEVEL <= int(level) <= MAX_LEVEL:
                raise TableFormatError(
                    f"Extension tier for {key!r} must be between {MIN_LEVEL} and {MAX_LEVEL}"
                )
            cleaned[key] = int(level)
        object.__setattr__(self, "levels", MappingProxyType(cleaned))

    @classmethod
    def from_tiers(cls, tiers: Mapping[Any, Iterable[str]]) -> "CommonalityTable":
        """Build a table from ``{tier: [extensions]}``.

        An extension listed under several tiers keeps the lowest one.
        """

        levels: dict[str, int] = {}
        for raw_level in sorted(tiers, key=lambda value: int(value)):
            level = int(raw_level)
            for extension in tiers[raw_level]:
                key = normalise_extension(extension)
                if key and key not in levels:
                    levels[key] = level
        return cls(levels=levels)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "CommonalityTable":
        """Build a table from a tables payload (``extension_levels`` key)."""

        tiers = payload.get("extension_levels") if isinstance(payload, Mapping) else None
        if not isinstance(tiers, Mapping):
            raise TableFormatError("extension_levels must map tiers to extension lists")
        return cls.from_tiers(tiers)

    @classmethod
    def load(cls, path: Path) -> "CommonalityTable":
        return load_tables(path).commonality

    def get_level(self, extension: Optional[str]) -> int:
        return self.levels.get(normalise_extension(extension), 0)

    def get_level_for(self, extensions: Iterable[str]) -> int:
        """Return the most distinctive recognised tier among ``extensions``."""

        recognised = [level for level in map(self.get_level, extensions or ()) if level > 0]
        return min(recognised, default=0)

    def is_common(self, extension: Optional[str]) -> bool:
        return self.get_level(extension) > 0

    def extensions_in_range(self, min_level: int = MIN_LEVEL, max_level: int = MAX_LEVEL) -> FrozenSet[str]:
        if not MIN_LEVEL <= min_level <= MAX_LEVEL or not min_level <= max_level <= MAX_LEVEL:
            raise ValueError("Invalid level range")
        return frozenset(
            extension
            for extension, level in self.levels.items()
            if min_level <= level <= max_level
        )


@dataclass(frozen=True)
class ValuationTables:
    """Bundle of every static table the valuation engine reads."""

    commonality: CommonalityTable
    software_weights: Mapping[str, int] = field(default_factory=dict)
    frequency_tiers: Tuple[Tuple[int, int], ...] = ()
    registered_mime_types: FrozenSet[str] = frozenset()
    top_level_types: FrozenSet[str] = frozenset()
    version: str = "0"

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "software_weights",
            MappingProxyType({str(name): int(weight) for name, weight in dict(self.software_weights).items()}),
        )
        tiers = sorted(
            ((int(threshold), int(points)) for threshold, points in self.frequency_tiers),
            reverse=True,
        )
        object.__setattr__(self, "frequency_tiers", tuple(tiers))
        object.__setattr__(
            self,
            "registered_mime_types",
            frozenset(value.strip().lower() for value in self.registered_mime_types if value),
        )
        object.__setattr__(
            self,
            "top_level_types",
            frozenset(value.strip().lower() for value in self.top_level_types if value),
        )

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ValuationTables":
        if not isinstance(payload, Mapping):
            raise TableFormatError("Tables payload must be a JSON object")
        try:
            frequency = tuple(
                (int(threshold), int(points))
                for threshold, points in payload.get("usage_frequency") or ()
            )
        except (TypeError, ValueError) as exc:
            raise TableFormatError("usage_frequency must be [threshold, points] pairs") from exc
        return cls(
            commonality=CommonalityTable.from_mapping(payload),
            software_weights=payload.get("software_popularity") or {},
            frequency_tiers=frequency,
            registered_mime_types=frozenset(payload.get("registered_mime_types") or ()),
            top_level_types=frozenset(payload.get("mime_top_level_types") or ()),
            version=str(payload.get("version", "0")),
        )

    def frequency_points(self, file_count: int) -> int:
        for threshold, points in self.frequency_tiers:
            if file_count >= threshold:
                return points
        return 0


def load_tables(path: Path) -> ValuationTables:
    """Load valuation tables from a JSON file at ``path``."""

    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TableFormatError(f"{path}: invalid JSON ({exc.msg})") from exc
    tables = ValuationTables.from_mapping(payload)
    logger.debug(
        "Loaded valuation tables %s from %s (%d extensions)",
        tables.version,
        path,
        len(tables.commonality.levels),
    )
    return tables


@lru_cache(maxsize=None)
def default_tables() -> ValuationTables:
    """Return the tables bundled with the package (parsed once)."""

    text = resources.files("typeprobe").joinpath("data", _TABLES_RESOURCE).read_text(encoding="utf-8")
    return ValuationTables.from_mapping(json.loads(text))
