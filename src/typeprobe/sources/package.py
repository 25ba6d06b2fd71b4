"""JSON definition packages.

A package is a versioned, tagged collection of definitions::

    {
      "version": "1.0.0",
      "created_at": "2026-01-12T00:00:00+00:00",
      "tags": ["stable", "validated"],
      "definitions": [
        {
          "file_type": "Adobe Portable Document Format",
          "extensions": ["pdf"],
          "mime_type": "application/pdf",
          "signature": {"patterns": [{"position": 0, "data": "255044462D"}]}
        }
      ]
    }

Pattern and string bytes are hex encoded. Records that cannot be converted
are skipped with a warning so one bad record never sinks a whole package.
"""

from __future__ import annotations

import binascii
import enum
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.grouping import group_by_mime_type
from ..core.types import Definition, DefinitionValidationError, Pattern, Signature

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_NAME = "definitions"
DEFAULT_VERSION = "1.0.0"


class PackageFormatError(ValueError):
    """Raised when a definitions package cannot be read."""


class PackageTag(enum.Flag):
    NONE = 0
    STABLE = enum.auto()
    BETA = enum.auto()
    DEPRECATED = enum.auto()
    EXPERIMENTAL = enum.auto()
    TRID = enum.auto()
    VALIDATED = enum.auto()

    @classmethod
    def parse(cls, names: Iterable[str]) -> "PackageTag":
        tags = cls.NONE
        for name in names or ():
            key = str(name).strip().upper()
            if not key:
                continue
            try:
                tags |= cls[key]
            except KeyError as exc:
                raise PackageFormatError(f"Unknown package tag: {name!r}") from exc
        return tags

    def names(self) -> List[str]:
        return [
            member.name.lower()
            for member in type(self)
            if member is not type(self).NONE and member in self
        ]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class Package:
    definitions: Tuple[Definition, ...] = ()
    version: str = DEFAULT_VERSION
    created_at: datetime = field(default_factory=_utcnow)
    tags: PackageTag = PackageTag.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "definitions", tuple(self.definitions))

    @property
    def total_definitions(self) -> int:
        return len(self.definitions)

    @property
    def total_mime_types(self) -> int:
        return len({definition.mime_key for definition in self.definitions})


def _hex_to_bytes(value: Any, *, field_name: str) -> bytes:
    if not isinstance(value, str):
        raise DefinitionValidationError(f"{field_name} must be a hex string, got {value!r}")
    try:
        return binascii.unhexlify("".join(value.split()))
    except (binascii.Error, ValueError) as exc:
        raise DefinitionValidationError(f"{field_name} is not valid hex: {value!r}") from exc


def _optional_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return value
    raise DefinitionValidationError(f"{key} must be a string, got {value!r}")


def _pattern_from_mapping(payload: Mapping[str, Any]) -> Pattern:
    if not isinstance(payload, Mapping):
        raise DefinitionValidationError(f"Pattern record must be an object, got {payload!r}")
    position = payload.get("position", 0)
    return Pattern(position, _hex_to_bytes(payload.get("data", ""), field_name="Pattern data"))


def definition_from_mapping(payload: Mapping[str, Any]) -> Definition:
    """Convert one package record into a :class:`Definition`."""

    if not isinstance(payload, Mapping):
        raise DefinitionValidationError(f"Definition record must be an object, got {payload!r}")
    signature_payload = payload.get("signature") or {}
    if not isinstance(signature_payload, Mapping):
        raise DefinitionValidationError("signature must be an object")
    signature = Signature(
        patterns=tuple(
            _pattern_from_mapping(item) for item in signature_payload.get("patterns") or ()
        ),
        strings=tuple(
            _hex_to_bytes(item, field_name="Signature string")
            for item in signature_payload.get("strings") or ()
        ),
    )
    extensions = payload.get("extensions") or ()
    if isinstance(extensions, str):
        extensions = extensions.split("/")
    try:
        priority_level = int(payload.get("priority_level", 0) or 0)
        file_count = int(payload.get("file_count", 0) or 0)
    except (TypeError, ValueError) as exc:
        raise DefinitionValidationError("priority_level and file_count must be integers") from exc
    return Definition(
        file_type=str(payload.get("file_type") or ""),
        extensions=tuple(str(value) for value in extensions),
        mime_type=str(payload.get("mime_type") or ""),
        remarks=str(payload.get("remarks") or ""),
        signature=signature,
        priority_level=priority_level,
        software=_optional_text(payload, "software"),
        file_count=file_count,
        reference_url=_optional_text(payload, "reference_url"),
    )


def definition_to_mapping(definition: Definition) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "file_type": definition.file_type,
        "extensions": list(definition.extensions),
        "mime_type": definition.mime_type,
    }
    if definition.remarks:
        payload["remarks"] = definition.remarks
    if definition.priority_level:
        payload["priority_level"] = definition.priority_level
    if definition.software:
        payload["software"] = definition.software
    if definition.file_count:
        payload["file_count"] = definition.file_count
    if definition.reference_url:
        payload["reference_url"] = definition.reference_url
    signature: Dict[str, Any] = {
        "patterns": [
            {"position": pattern.position, "data": pattern.data.hex().upper()}
            for pattern in definition.signature.patterns
        ]
    }
    if definition.signature.strings:
        signature["strings"] = [value.hex().upper() for value in definition.signature.strings]
    payload["signature"] = signature
    return payload


def _parse_created_at(value: Any) -> datetime:
    if value in (None, ""):
        return _utcnow()
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise PackageFormatError(f"created_at is not an ISO timestamp: {value!r}") from exc


def package_from_mapping(payload: Mapping[str, Any], *, source: Optional[str] = None) -> Package:
    label = source or "<package>"
    if not isinstance(payload, Mapping):
        raise PackageFormatError(f"{label}: package must be a JSON object")
    records = payload.get("definitions")
    if not isinstance(records, list):
        raise PackageFormatError(f"{label}: 'definitions' must be a list")

    definitions: List[Definition] = []
    for position, record in enumerate(records):
        try:
            definitions.append(definition_from_mapping(record))
        except DefinitionValidationError as exc:
            logger.warning("%s: skipping definition record %d: %s", label, position, exc)

    tags = payload.get("tags") or ()
    if isinstance(tags, str):
        tags = (tags,)
    return Package(
        definitions=tuple(definitions),
        version=str(payload.get("version") or DEFAULT_VERSION),
        created_at=_parse_created_at(payload.get("created_at")),
        tags=PackageTag.parse(tags),
    )


def package_to_mapping(package: Package) -> Dict[str, Any]:
    return {
        "version": package.version,
        "created_at": package.created_at.isoformat(),
        "tags": package.tags.names(),
        "definitions": [definition_to_mapping(definition) for definition in package.definitions],
    }


def loads_package(text: str, *, source: Optional[str] = None) -> Package:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PackageFormatError(f"{source or '<package>'}: invalid JSON ({exc.msg})") from exc
    return package_from_mapping(payload, source=source)


def load_package(path: Path) -> Package:
    path = Path(path)
    return loads_package(path.read_text(encoding="utf-8"), source=str(path))


def dump_package(package: Package) -> str:
    return json.dumps(package_to_mapping(package), indent=2)


def write_package(
    package: Package,
    directory: Path,
    name: str = DEFAULT_PACKAGE_NAME,
) -> Path:
    """Write ``package`` to ``directory/<name>.json`` and return the path."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / f"{name}.json"
    target.write_text(dump_package(package) + "\n", encoding="utf-8")
    logger.info("Wrote %d definitions to %s", package.total_definitions, target)
    return target


@dataclass(frozen=True)
class PackageLog:
    """Per-stage summary of the definitions that went into a package."""

    log_type: str
    extensions_by_mime: Mapping[str, Tuple[str, ...]]
    definition_count: int
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_definitions(cls, log_type: str, definitions: Sequence[Definition]) -> "PackageLog":
        grouped = group_by_mime_type(definitions)
        extensions_by_mime: Dict[str, Tuple[str, ...]] = {}
        for key, members in grouped.items():
            label = key if key.strip() else "Unknown"
            extensions: List[str] = list(extensions_by_mime.get(label, ()))
            for definition in members:
                for extension in definition.extensions:
                    if extension not in extensions:
                        extensions.append(extension)
            extensions_by_mime[label] = tuple(extensions)
        return cls(
            log_type=log_type,
            extensions_by_mime=extensions_by_mime,
            definition_count=sum(len(members) for members in grouped.values()),
        )

    @property
    def mime_count(self) -> int:
        return len(self.extensions_by_mime)

    @property
    def extensions_count(self) -> int:
        return sum(len(values) for values in self.extensions_by_mime.values())

    def render_text(self) -> str:
        lines = [
            f"Log type: {self.log_type}",
            f"Timestamp: {self.timestamp.isoformat()}",
            f"Total MIME types: {self.mime_count}",
            f"Total definitions: {self.definition_count}",
            f"Total extensions: {self.extensions_count}",
            "",
        ]
        for key, extensions in self.extensions_by_mime.items():
            lines.append(f"MIME Type: {key} - Extensions: {len(extensions)}")
            lines.append(", ".join(extensions))
            lines.append("")
        return "\n".join(lines)


def write_package_logs(logs: Iterable[PackageLog], directory: Path) -> List[Path]:
    """Write each log to ``<log_type>_<YYYYMMDD>[_n].log`` without overwriting."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for log in logs:
        stem = f"{log.log_type}_{log.timestamp:%Y%m%d}"
        target = directory / f"{stem}.log"
        counter = 1
        while target.exists():
            target = directory / f"{stem}_{counter}.log"
            counter += 1
        target.write_text(log.render_text(), encoding="utf-8")
        written.append(target)
    return written