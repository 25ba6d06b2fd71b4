"""Shared fixtures for the typeprobe test suite."""

from __future__ import annotations

from typing import List

import pytest

from typeprobe.core.types import Definition, Pattern, Signature
from typeprobe.tables import CommonalityTable, ValuationTables


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TYPEPROBE_DEFINITIONS", raising=False)
    monkeypatch.delenv("TYPEPROBE_TABLES", raising=False)


@pytest.fixture
def valuation_tables() -> ValuationTables:
    return ValuationTables(
        commonality=CommonalityTable.from_tiers(
            {
                5: ["txt", "xml"],
                4: ["pdf", "zip", "jpg"],
                3: ["docx", "mp4"],
                1: ["evtx"],
            }
        ),
        software_weights={"Adobe Acrobat": 15, "Microsoft Word": 15, "MPEG": 9},
        frequency_tiers=((1000, 10), (100, 7), (10, 4), (1, 2)),
        registered_mime_types=frozenset(
            {
                "application/pdf",
                "application/zip",
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
                "image/jpeg",
                "video/mp4",
                "text/plain",
            }
        ),
        top_level_types=frozenset({"application", "image", "text", "video"}),
        version="test",
    )


@pytest.fixture
def sample_definitions() -> List[Definition]:
    """Small corpus covering anchored, shared-prefix and unanchored signatures."""

    return [
        Definition(
            file_type="Adobe Portable Document Format",
            extensions=("pdf",),
            mime_type="application/pdf",
            signature=Signature(patterns=(Pattern(0, b"%PDF-"),)),
            software="Adobe Acrobat",
            file_count=2500,
        ),
        Definition(
            file_type="ZIP compressed archive",
            extensions=("zip",),
            mime_type="application/zip",
            signature=Signature(patterns=(Pattern(0, b"PK\x03\x04"),)),
            file_count=2200,
        ),
        Definition(
            file_type="Word Microsoft Office Open XML Format document",
            extensions=("docx",),
            mime_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            signature=Signature(
                patterns=(Pattern(0, b"PK\x03\x04"),),
                strings=(b"[Content_Types].xml", b"word/"),
            ),
            software="Microsoft Word",
            file_count=1500,
        ),
        Definition(
            file_type="JPEG Bitmap",
            extensions=("jpg", "jpeg"),
            mime_type="image/jpeg",
            signature=Signature(patterns=(Pattern(0, b"\xff\xd8\xff"),)),
            file_count=3000,
        ),
        Definition(
            file_type="MPEG-4 media",
            extensions=("mp4",),
            mime_type="video/mp4",
            signature=Signature(patterns=(Pattern(4, b"ftyp"), Pattern(8, b"isom"))),
            software="MPEG",
            file_count=1300,
        ),
    ]
