from __future__ import annotations

import logging
import struct
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

import pytest

from typeprobe.core.types import Pattern
from typeprobe.sources import PackageFormatError, load_source, load_trid_package, parse_trid_package


def _chunk(chunk_id: bytes, payload: bytes) -> bytes:
    return struct.pack("<4sI", chunk_id, len(payload)) + payload


def _info(entries: Iterable[Tuple[bytes, bytes]]) -> bytes:
    return b"".join(struct.pack("<4sH", key, len(value)) + value for key, value in entries)


def _definition(
    file_type: str,
    ext: str,
    mime: str,
    patterns: Sequence[Tuple[int, bytes]],
    strings: Sequence[bytes] = (),
    file_count: Optional[int] = None,
    extra_info: Sequence[Tuple[bytes, bytes]] = (),
) -> bytes:
    patt = struct.pack("<H", len(patterns)) + b"".join(
        struct.pack("<HH", position, len(data)) + data for position, data in patterns
    )
    data = _chunk(b"PATT", patt)
    if strings:
        strn = struct.pack("<H", len(strings)) + b"".join(
            struct.pack("<I", len(value)) + value for value in strings
        )
        data += _chunk(b"STRN", strn)
    entries = [
        (b"TYPE", file_type.encode("utf-8")),
        (b"EXT ", ext.encode("utf-8")),
        (b"MIME", mime.encode("utf-8")),
        (b"USER", b"someone"),
    ]
    if file_count is not None:
        entries.append((b"FNUM", struct.pack("<i", file_count)))
    entries.extend(extra_info)
    return _chunk(b"DEF ", _chunk(b"DATA", data) + _chunk(b"INFO", _info(entries)))


def _package(definitions: Sequence[bytes], declared: Optional[int] = None, extra: bytes = b"") -> bytes:
    block = b"".join(definitions) + extra
    count = len(definitions) if declared is None else declared
    info = b"\x00" * 8 + struct.pack("<i", count)
    body = b"TRID" + info + struct.pack("<I", len(block)) + block
    return b"RIFF" + struct.pack("<I", len(body)) + body


PDF = _definition("Adobe Portable Document Format", "PDF", "application/pdf", [(0, b"%PDF-")], file_count=120)
DOCX = _definition(
    "Word Microsoft Office Open XML Format document",
    "DOCX/DOCM",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    [(0, b"PK\x03\x04")],
    strings=[b"[Content_Types].xml", b"word/"],
)


def test_parse_package_reads_definitions() -> None:
    package = parse_trid_package(_package([PDF, DOCX]))

    assert package.declared_count == 2
    pdf, docx = package.definitions
    assert pdf.file_type == "Adobe Portable Document Format"
    assert pdf.extensions == ("pdf",)
    assert pdf.file_count == 120
    assert pdf.signature.patterns == (Pattern(0, b"%PDF-"),)
    assert docx.extensions == ("docx", "docm")
    assert docx.signature.strings == (b"[Content_Types].xml", b"word/")


def test_unknown_chunks_are_skipped_whole() -> None:
    package = parse_trid_package(_package([PDF], extra=_chunk(b"JUNK", b"\x01\x02\x03\x04\x05")))

    assert [item.extensions for item in package.definitions] == [("pdf",)]


def test_declared_count_mismatch_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="typeprobe.sources.trid_riff")

    package = parse_trid_package(_package([PDF], declared=5))

    assert len(package.definitions) == 1
    assert "declares 5 definitions but holds 1" in caplog.text


@pytest.mark.parametrize(
    "payload",
    [
        b"RIFF\x00",
        b"RIFX" + _package([PDF])[4:],
        _package([PDF])[:8] + b"WAVE" + _package([PDF])[12:],
        _package([PDF])[:-3],
    ],
)
def test_malformed_headers_raise(payload: bytes) -> None:
    with pytest.raises(PackageFormatError):
        parse_trid_package(payload)


def test_overrunning_chunk_raises() -> None:
    broken = struct.pack("<4sI", b"DEF ", 500) + b"\x00" * 8

    with pytest.raises(PackageFormatError):
        parse_trid_package(_package([broken]))


def test_truncated_pattern_chunk_raises() -> None:
    patt = struct.pack("<H", 1) + struct.pack("<HH", 0, 10) + b"%PDF"
    broken = _chunk(b"DEF ", _chunk(b"DATA", _chunk(b"PATT", patt)))

    with pytest.raises(PackageFormatError):
        parse_trid_package(_package([broken]))


def test_load_from_path_and_source_dispatch(tmp_path: Path) -> None:
    target = tmp_path / "triddefs.trd"
    target.write_bytes(_package([PDF, DOCX]))

    definitions = load_trid_package(target)

    assert len(definitions) == 2
    assert load_source(target) == definitions


def test_author_and_tag_entries_are_ignored() -> None:
    annotated = _definition(
        "Adobe Portable Document Format",
        "PDF",
        "application/pdf",
        [(0, b"%PDF-")],
        file_count=120,
        extra_info=[
            (b"NAME", b"pdf.trid.xml"),
            (b"MAIL", b"someone@example.org"),
            (b"HOME", b"https://example.org"),
            (b"TAG ", b"\x07"),
            (b"RURL", b"https://en.wikipedia.org/wiki/PDF"),
        ],
    )

    (definition,) = parse_trid_package(_package([annotated])).definitions

    assert definition.file_count == 120
    assert definition.reference_url == "https://en.wikipedia.org/wiki/PDF"
    assert definition.software is None
    (plain,) = parse_trid_package(_package([PDF])).definitions
    assert definition == replace(plain, reference_url=definition.reference_url)
