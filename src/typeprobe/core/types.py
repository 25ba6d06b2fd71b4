"""Shared data structures for the typeprobe identification core.

Definitions, signatures and patterns are immutable so the indexes built from
them can be shared freely between threads. Persisted record shapes (JSON
packages, TrID XML, TrID RIFF) are converted into these types at the
boundary in :mod:`typeprobe.sources`; nothing in the core knows about them.

Example
-------
>>> pdf = Definition(
...     file_type="Adobe Portable Document Format",
...     extensions=(".PDF",),
...     mime_type="application/pdf",
...     signature=Signature(patterns=(Pattern(0, b"%PDF"),)),
... )
>>> pdf.extensions
('pdf',)
>>> pdf.signature.patterns[0].matches(b"%PDF-1.7")
True
>>> pdf.signature.patterns[0].matches(b"%PD")
False
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, NamedTuple, Optional, Tuple

MAX_PATTERN_POSITION = 0xFFFF

# Offset-zero bytes carry ten times the evidence of bytes found further in.
_ANCHOR_BYTE_WEIGHT = 1000
_OFFSET_BYTE_WEIGHT = 100

_TEXT_BYTES = frozenset({*range(32, 127), 9, 10, 13})


class DefinitionValidationError(ValueError):
    """Raised when a pattern or definition record cannot be represented."""


def normalise_extension(extension: Optional[str]) -> str:
    """Return ``extension`` lower-cased without a leading separator."""

    if not extension:
        return ""
    value = str(extension).strip()
    if value.startswith("."):
        value = value[1:]
    return value.lower()


def _normalise_extensions(extensions: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(extensions, str):
        extensions = (extensions,)
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in extensions or ():
        value = normalise_extension(raw)
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return tuple(ordered)


def _coerce_bytes(value: Any, *, field_name: str) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        raise DefinitionValidationError(
            f"{field_name} must be bytes; decode text or hex before building definitions."
        )
    try:
        return bytes(value)
    except (TypeError, ValueError) as exc:
        raise DefinitionValidationError(
            f"{field_name} is not a byte sequence: {value!r}"
        ) from exc


@dataclass(frozen=True)
class Pattern:
    """Bytes that must appear verbatim at ``position`` in the content."""

    position: int
    data: bytes

    def __post_init__(self) -> None:
        position = self.position
        if isinstance(position, bool) or not isinstance(position, int):
            raise DefinitionValidationError(
                f"Pattern position must be an integer, got {position!r}"
            )
        if not 0 <= position <= MAX_PATTERN_POSITION:
            raise DefinitionValidationError(
                f"Pattern position {position} is outside 0..{MAX_PATTERN_POSITION}"
            )
        object.__setattr__(self, "data", _coerce_bytes(self.data, field_name="Pattern data"))

    @property
    def end(self) -> int:
        return self.position + len(self.data)

    @property
    def anchor(self) -> Optional[int]:
        """First byte of the pattern, or ``None`` when there is no data."""

        return self.data[0] if self.data else None

    @property
    def is_textual(self) -> bool:
        return bool(self.data) and all(byte in _TEXT_BYTES for byte in self.data)

    @property
    def weight(self) -> int:
        factor = _ANCHOR_BYTE_WEIGHT if self.position == 0 else _OFFSET_BYTE_WEIGHT
        return len(self.data) * factor

    def matches(self, buffer: bytes) -> bool:
        """Return ``True`` when ``buffer`` holds ``data`` at ``position``.

        A buffer too short to hold the whole pattern is a miss, never a
        partial hit. Patterns without data never match.
        """

        if not self.data:
            return False
        end = self.end
        if end > len(buffer):
            return False
        return buffer[self.position:end] == self.data

    def __str__(self) -> str:
        return f'"{self.data.decode("ascii", errors="replace")}" at {self.position}'


@dataclass(frozen=True)
class Signature:
    """Byte patterns plus optional global strings identifying content."""

    patterns: Tuple[Pattern, ...] = ()
    strings: Tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "patterns", tuple(self.patterns or ()))
        strings = tuple(
            _coerce_bytes(value, field_name="Signature string")
            for value in (self.strings or ())
        )
        object.__setattr__(self, "strings", tuple(value for value in strings if value))

    @property
    def is_empty(self) -> bool:
        return not self.anchored_patterns and not self.strings

    @property
    def anchored_patterns(self) -> Tuple[Pattern, ...]:
        """Patterns carrying at least one byte of data."""

        return tuple(pattern for pattern in self.patterns if pattern.data)

    @property
    def leading_pattern(self) -> Optional[Pattern]:
        """The first pattern that sits at offset zero, if any."""

        for pattern in self.patterns:
            if pattern.position == 0 and pattern.data:
                return pattern
        return None

    @property
    def required_prefix(self) -> int:
        """Bytes of content needed to evaluate every pattern."""

        return max((pattern.end for pattern in self.patterns), default=0)

    def __str__(self) -> str:
        return f"Signature: {len(self.patterns)} patterns, {len(self.strings)} strings"


@dataclass(frozen=True)
class Definition:
    """Canonical record describing one recognisable file format.

    ``file_type`` and ``mime_type`` form the minimal identity; a definition
    lacking either is kept as data but excluded from indexing and valuation.
    ``level`` is derived from the extension commonality table and does not
    take part in equality.
    """

    file_type: str = ""
    extensions: Tuple[str, ...] = ()
    mime_type: str = ""
    remarks: str = ""
    signature: Signature = field(default_factory=Signature)
    priority_level: int = 0
    software: Optional[str] = None
    file_count: int = 0
    reference_url: Optional[str] = None
    level: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_type", (self.file_type or "").strip())
        object.__setattr__(self, "mime_type", (self.mime_type or "").strip())
        object.__setattr__(self, "remarks", self.remarks or "")
        object.__setattr__(self, "extensions", _normalise_extensions(self.extensions))
        if self.signature is None:
            object.__setattr__(self, "signature", Signature())
        if self.software is not None:
            object.__setattr__(self, "software", self.software.strip() or None)

    @property
    def is_valid(self) -> bool:
        return bool(self.file_type) and bool(self.mime_type)

    @property
    def mime_key(self) -> str:
        return self.mime_type.lower()

    def with_level(self, level: int) -> "Definition":
        return replace(self, level=level)

    def describe(self) -> str:
        extensions = ", ".join(self.extensions)
        file_type = self.file_type or "<missing file type>"
        mime_type = self.mime_type or "<missing mime type>"
        return f"{file_type} ({mime_type}) [{extensions}]"

    def __str__(self) -> str:
        return self.describe()


class Tally(NamedTuple):
    """Matched versus required evidence counts."""

    matched: int
    required: int

    @property
    def complete(self) -> bool:
        return self.matched == self.required

    def __str__(self) -> str:
        return f"{self.matched}/{self.required}"


@dataclass(frozen=True)
class Outcome:
    """Ranked identification result for one candidate definition."""

    definition: Definition
    percentage: float
    points: int
    pattern_count: Tally
    string_count: Tally
    global_strings: Tally = Tally(0, 0)
    order: int = 0
    strict: bool = False
    extension_hint: bool = False

    def to_dict(self) -> Dict[str, Any]:
        definition = self.definition
        return {
            "file_type": definition.file_type,
            "mime_type": definition.mime_type,
            "extensions": list(definition.extensions),
            "percentage": round(self.percentage, 2),
            "points": self.points,
            "priority_level": definition.priority_level,
            "patterns": str(self.pattern_count),
            "strings": str(self.string_count),
            "global_strings": str(self.global_strings),
            "strict": self.strict,
            "extension_hint": self.extension_hint,
        }
