"""TrID binary definitions package (``triddefs.trd``).

The package is a little-endian RIFF container::

    "RIFF" u32 size "TRID"
    info block (12 bytes, definition count at offset 8)
    u32 block length
    block: "DEF " chunks, each holding
        "DATA" -> "PATT" (u16 count; u16 pos, u16 len, bytes)
               -> "STRN" (u16 count; u32 len, bytes)
        "INFO" -> entries of u32 id, u16 len, data

Chunks with ids this reader does not know are skipped whole.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Tuple, Union

from ..core.types import Definition, Pattern, Signature
from .package import PackageFormatError

logger = logging.getLogger(__name__)

RIFF = b"RIFF"
TRID = b"TRID"
DEF = b"DEF "
DATA = b"DATA"
PATT = b"PATT"
STRN = b"STRN"
INFO = b"INFO"

_CHUNK_HEADER = struct.Struct("<4sI")
_INFO_HEADER = struct.Struct("<4sH")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")
_PATTERN_HEADER = struct.Struct("<HH")

_INFO_BLOCK_SIZE = 12
_COUNT_OFFSET = 8

_TEXT_FIELDS = {
    b"TYPE": "file_type",
    b"EXT ": "extensions",
    b"MIME": "mime_type",
    b"REM ": "remarks",
    b"RURL": "reference_url",
}
# Author entries (NAME, USER, MAIL, HOME) and TAG are skipped unread.
_INT_FIELDS = {
    b"FNUM": "file_count",
}


@dataclass(frozen=True)
class TridPackage:
    definitions: Tuple[Definition, ...]
    declared_count: int


def _chunks(block: bytes, *, context: str):
    """Yield ``(chunk_id, payload)`` pairs from a run of RIFF chunks."""

    position = 0
    while position + _CHUNK_HEADER.size <= len(block):
        chunk_id, length = _CHUNK_HEADER.unpack_from(block, position)
        start = position + _CHUNK_HEADER.size
        end = start + length
        if end > len(block):
            raise PackageFormatError(
                f"{context}: chunk {chunk_id!r} at {position} overruns its block"
            )
        yield chunk_id, block[start:end]
        position = end


def _parse_patterns(chunk: bytes) -> List[Pattern]:
    (count,) = _U16.unpack_from(chunk, 0)
    position = _U16.size
    patterns: List[Pattern] = []
    for _ in range(count):
        offset, length = _PATTERN_HEADER.unpack_from(chunk, position)
        position += _PATTERN_HEADER.size
        data = chunk[position:position + length]
        if len(data) != length:
            raise PackageFormatError("PATT chunk is truncated")
        patterns.append(Pattern(offset, data))
        position += length
    return patterns


def _parse_strings(chunk: bytes) -> List[bytes]:
    (count,) = _U16.unpack_from(chunk, 0)
    position = _U16.size
    strings: List[bytes] = []
    for _ in range(count):
        (length,) = _U32.unpack_from(chunk, position)
        position += _U32.size
        data = chunk[position:position + length]
        if len(data) != length:
            raise PackageFormatError("STRN chunk is truncated")
        strings.append(data)
        position += length
    return strings


def _parse_info(chunk: bytes) -> Dict[str, object]:
    fields: Dict[str, object] = {}
    position = 0
    while position + _INFO_HEADER.size <= len(chunk):
        info_id, length = _INFO_HEADER.unpack_from(chunk, position)
        position += _INFO_HEADER.size
        data = chunk[position:position + length]
        position += length
        if info_id in _TEXT_FIELDS:
            fields[_TEXT_FIELDS[info_id]] = data.decode("utf-8", errors="replace")
        elif info_id in _INT_FIELDS:
            fields[_INT_FIELDS[info_id]] = _I32.unpack_from(data, 0)[0] if len(data) >= 4 else 0
    return fields


def _parse_definition(block: bytes) -> Definition:
    patterns: List[Pattern] = []
    strings: List[bytes] = []
    fields: Dict[str, object] = {}
    try:
        for chunk_id, payload in _chunks(block, context="DEF"):
            if chunk_id == DATA:
                for sub_id, sub_payload in _chunks(payload, context="DATA"):
                    if sub_id == PATT:
                        patterns = _parse_patterns(sub_payload)
                    elif sub_id == STRN:
                        strings = _parse_strings(sub_payload)
            elif chunk_id == INFO:
                fields.update(_parse_info(payload))
    except struct.error as exc:
        raise PackageFormatError(f"Truncated definition chunk: {exc}") from exc

    extensions = str(fields.get("extensions", "")).lower().split("/")
    return Definition(
        file_type=str(fields.get("file_type", "")),
        extensions=tuple(value for value in extensions if value.strip()),
        mime_type=str(fields.get("mime_type", "")),
        remarks=str(fields.get("remarks", "")),
        signature=Signature(patterns=tuple(patterns), strings=tuple(strings)),
        file_count=int(fields.get("file_count", 0)),
        reference_url=str(fields["reference_url"]) if fields.get("reference_url") else None,
    )


def parse_trid_package(source: Union[Path, str, bytes]) -> TridPackage:
    """Parse a TrID RIFF package from a path or raw bytes."""

    if isinstance(source, (bytes, bytearray)):
        payload = bytes(source)
        label = "<bytes>"
    else:
        path = Path(source)
        payload = path.read_bytes()
        label = str(path)

    header_size = 12 + _INFO_BLOCK_SIZE + _U32.size
    if len(payload) < header_size:
        raise PackageFormatError(f"{label}: file too short for a TrID package")
    if payload[0:4] != RIFF:
        raise PackageFormatError(f"{label}: not a valid RIFF file")
    if payload[8:12] != TRID:
        raise PackageFormatError(f"{label}: not a TrID definitions package")

    info = payload[12:12 + _INFO_BLOCK_SIZE]
    (declared_count,) = _I32.unpack_from(info, _COUNT_OFFSET)
    (block_length,) = _U32.unpack_from(payload, 12 + _INFO_BLOCK_SIZE)
    block = payload[header_size:header_size + block_length]
    if len(block) != block_length:
        raise PackageFormatError(f"{label}: definitions block is truncated")

    definitions: List[Definition] = []
    for chunk_id, chunk in _chunks(block, context=label):
        if chunk_id != DEF:
            logger.debug("%s: skipping %r chunk", label, chunk_id)
            continue
        definitions.append(_parse_definition(chunk))

    if declared_count != len(definitions):
        logger.warning(
            "%s declares %d definitions but holds %d",
            label,
            declared_count,
            len(definitions),
        )
    return TridPackage(definitions=tuple(definitions), declared_count=declared_count)


def load_trid_package(path: Path) -> List[Definition]:
    return list(parse_trid_package(path).definitions)
