from __future__ import annotations

from typeprobe.core.diagnostics import DiagnosticsSnapshot, build_diagnostics
from typeprobe.core.types import Definition


def test_snapshot_counts_valid_definitions_and_mime_types(sample_definitions) -> None:
    snapshot = build_diagnostics(sample_definitions)

    assert snapshot.definitions_count == 5
    assert snapshot.mime_count == 5
    assert snapshot.mime_types["image/jpeg"] == ("jpg", "jpeg")
    assert snapshot.excluded == ()


def test_shared_mime_types_merge_extensions_and_fall_back_to_file_type() -> None:
    corpus = [
        Definition("JPEG Bitmap", ("jpg", "jpeg"), "image/jpeg"),
        Definition("JFIF", ("jpg", "jfif"), "IMAGE/JPEG"),
        Definition("Raw stream", (), "application/octet-stream"),
        Definition("", ("bin",), "application/octet-stream"),
    ]

    snapshot = build_diagnostics(corpus)

    assert snapshot.mime_count == 2
    assert snapshot.definitions_count == 3
    assert snapshot.mime_types == {
        "image/jpeg": ("jpg", "jpeg", "jfif"),
        "application/octet-stream": ("Raw stream",),
    }
    assert len(snapshot.excluded) == 1
    assert "<missing file type>" in snapshot.excluded[0]


def test_render_text_lists_counts_rows_and_exclusions() -> None:
    snapshot = build_diagnostics(
        [
            Definition("Text", ("txt",), "text/plain"),
            Definition("Mystery", ("zzz",), ""),
        ]
    )

    rendered = snapshot.render_text()

    assert rendered.splitlines()[:2] == ["MIME types: 1", "Definitions: 1"]
    assert "text/plain  txt" in rendered
    assert "Excluded (1):" in rendered


def test_to_dict_is_plain_data() -> None:
    snapshot = DiagnosticsSnapshot(
        mime_count=1,
        definitions_count=2,
        mime_types={"text/plain": ["txt", "log"]},
    )

    assert snapshot.to_dict() == {
        "mime_count": 1,
        "definitions_count": 2,
        "mime_types": {"text/plain": ["txt", "log"]},
        "excluded": [],
    }
    assert snapshot.mime_types["text/plain"] == ("txt", "log")
