"""Read-only diagnostics snapshot over a definition corpus."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .grouping import group_by_mime_type
from .types import Definition


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    """Counts and MIME to extension listing for observability tooling.

    ``mime_types`` lists the extensions sharing each MIME type; a definition
    without extensions contributes its file type instead. ``excluded``
    describes definitions dropped for missing identity fields.
    """

    mime_count: int
    definitions_count: int
    mime_types: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    excluded: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "mime_types",
            MappingProxyType({key: tuple(values) for key, values in self.mime_types.items()}),
        )
        object.__setattr__(self, "excluded", tuple(self.excluded))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mime_count": self.mime_count,
            "definitions_count": self.definitions_count,
            "mime_types": {key: list(values) for key, values in self.mime_types.items()},
            "excluded": list(self.excluded),
        }

    def render_text(self) -> str:
        lines = [
            f"MIME types: {self.mime_count}",
            f"Definitions: {self.definitions_count}",
        ]
        if self.mime_types:
            lines.append("")
            width = max(len(key) for key in self.mime_types)
            for key, values in self.mime_types.items():
                lines.append(f"{key.ljust(width)}  {', '.join(values)}")
        if self.excluded:
            lines.append("")
            lines.append(f"Excluded ({len(self.excluded)}):")
            lines.extend(f"  - {description}" for description in self.excluded)
        return "\n".join(lines)


def build_diagnostics(definitions: Iterable[Definition]) -> DiagnosticsSnapshot:
    valid: List[Definition] = []
    excluded: List[str] = []
    for definition in definitions:
        if definition.is_valid:
            valid.append(definition)
        else:
            excluded.append(definition.describe())

    mime_types: Dict[str, Tuple[str, ...]] = {}
    for key, members in group_by_mime_type(valid).items():
        labels: List[str] = []
        for definition in members:
            for label in definition.extensions or (definition.file_type,):
                if label not in labels:
                    labels.append(label)
        mime_types[key] = tuple(labels)

    return DiagnosticsSnapshot(
        mime_count=len(mime_types),
        definitions_count=len(valid),
        mime_types=mime_types,
        excluded=tuple(excluded),
    )
