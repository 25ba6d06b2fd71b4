from __future__ import annotations

import logging
from pathlib import Path

import pytest

from typeprobe.core import identifier as identifier_module
from typeprobe.core.identifier import SCAN_WINDOW, Identifier, IdentifierIOError, scan_path
from typeprobe.core.types import Definition, Pattern, Signature

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x10\x00\x00\x00\x10"


def test_bundled_corpus_identifies_png() -> None:
    identifier = Identifier()

    outcomes = identifier.identify(PNG_HEADER + b"\x00" * 64, "image.png")

    best = outcomes[0]
    assert best.definition.file_type == "Portable Network Graphics"
    assert best.definition.mime_type == "image/png"
    assert best.percentage == 100.0
    assert best.extension_hint


def test_unmatched_and_empty_buffers_return_no_outcomes(sample_definitions, valuation_tables) -> None:
    identifier = Identifier(sample_definitions, tables=valuation_tables)

    assert identifier.identify(b"") == []
    assert identifier.identify(b"\x00\x01\x02\x03 nothing here") == []


def test_default_sample_size_covers_pattern_reach_and_scan_window(sample_definitions, valuation_tables) -> None:
    with_strings = Identifier(sample_definitions, tables=valuation_tables)
    without_strings = Identifier(sample_definitions, tables=valuation_tables, check_strings=False)
    bundled = Identifier()

    assert with_strings.required_prefix == 12
    assert with_strings.sample_size == SCAN_WINDOW
    assert without_strings.sample_size == 12
    assert bundled.sample_size == 32774


def test_sample_size_is_clamped(sample_definitions, valuation_tables, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="typeprobe.core.identifier")

    identifier = Identifier(sample_definitions, tables=valuation_tables, sample_size=2 * 1024 * 1024)

    assert identifier.sample_size == 512 * 1024
    assert "clamping" in caplog.text


@pytest.mark.parametrize("kwargs", [{"sample_size": 0}, {"max_total_sample_bytes": 0}])
def test_invalid_sampling_arguments(sample_definitions, valuation_tables, kwargs) -> None:
    with pytest.raises(ValueError):
        Identifier(sample_definitions, tables=valuation_tables, **kwargs)


def test_invalid_definitions_are_excluded_with_warning(
    sample_definitions, valuation_tables, caplog: pytest.LogCaptureFixture
) -> None:
    broken = Definition(
        "Broken", ("brk",), "",
        signature=Signature(patterns=(Pattern(0, b"%PDF-"),)),
    )
    caplog.set_level(logging.WARNING, logger="typeprobe.core.identifier")

    identifier = Identifier([broken, *sample_definitions], tables=valuation_tables)
    outcomes = identifier.identify(b"%PDF-1.7")

    assert "Excluding definition" in caplog.text
    assert [outcome.definition.file_type for outcome in outcomes] == [
        "Adobe Portable Document Format"
    ]
    assert identifier.diagnostics().definitions_count == 5
    assert len(identifier.diagnostics().excluded) == 1


def test_identify_many_preserves_order(sample_definitions, valuation_tables) -> None:
    identifier = Identifier(sample_definitions, tables=valuation_tables)
    buffers = [b"%PDF-1.4", b"\xff\xd8\xff\xe0", b"nothing", b"\x00\x00\x00\x18ftypisom"]

    results = identifier.identify_many(buffers, max_workers=2)

    assert [result[0].definition.extensions[0] if result else None for result in results] == [
        "pdf",
        "jpg",
        None,
        "mp4",
    ]
    assert identifier.identify_many([]) == []
    with pytest.raises(ValueError):
        identifier.identify_many([b"a", b"b"], ["only-one"])


def test_definitions_for_extension(sample_definitions, valuation_tables) -> None:
    identifier = Identifier(sample_definitions, tables=valuation_tables)

    assert [item.file_type for item in identifier.definitions_for_extension(".JPEG")] == ["JPEG Bitmap"]
    assert identifier.definitions_for_extension("nope") == []


def test_identify_file_reports_truncation(tmp_path: Path, sample_definitions, valuation_tables) -> None:
    target = tmp_path / "report.pdf"
    target.write_bytes(b"%PDF-1.7\n" + b"x" * 100)
    identifier = Identifier(sample_definitions, tables=valuation_tables, sample_size=16)

    report = identifier.identify_file(target)

    assert report is not None
    assert report.bytes_sampled == 16
    assert report.notes == ("Truncated sample to 16B",)
    assert report.source == str(target)
    assert report.best.definition.extensions == ("pdf",)
    assert report.best.extension_hint


def test_identify_file_requires_a_file(tmp_path: Path, sample_definitions, valuation_tables) -> None:
    identifier = Identifier(sample_definitions, tables=valuation_tables)

    with pytest.raises(FileNotFoundError):
        identifier.identify_file(tmp_path)


def test_scan_path_honours_total_budget(tmp_path: Path, sample_definitions, valuation_tables) -> None:
    for name in ("a.pdf", "b.pdf", "c.pdf"):
        (tmp_path / name).write_bytes(b"%PDF-1.7\n" + b"x" * 40)
    identifier = Identifier(
        sample_definitions,
        tables=valuation_tables,
        sample_size=32,
        max_total_sample_bytes=48,
    )

    results = identifier.scan_path(tmp_path)

    assert [path.name for path, _ in results] == ["a.pdf", "b.pdf"]
    first, second = (report for _, report in results)
    assert first.bytes_sampled == 32
    assert second.bytes_sampled == 16
    assert "Sampling budget exhausted after 16B" in second.notes
    assert identifier.sample_budget_exhausted
    assert identifier.sample_budget_remaining == 0

    exhausted = identifier.scan_path(tmp_path / "c.pdf", reset_budget=False)
    assert exhausted == [(tmp_path / "c.pdf", None)]

    refreshed = identifier.scan_path(tmp_path / "c.pdf")
    assert refreshed[0][1] is not None
    assert not identifier.sample_budget_exhausted


def test_scan_path_missing_root_raises_wrapped_error(tmp_path: Path, sample_definitions, valuation_tables) -> None:
    seen = []
    identifier = Identifier(
        sample_definitions,
        tables=valuation_tables,
        on_error=lambda path, error: seen.append((path, error)),
    )
    missing = tmp_path / "missing"

    with pytest.raises(IdentifierIOError) as excinfo:
        identifier.scan_path(missing)

    assert excinfo.value.path == missing
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)
    assert seen and seen[0][0] == missing


def test_unreadable_file_invokes_on_error(
    tmp_path: Path, sample_definitions, valuation_tables, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "locked.bin"
    target.write_bytes(b"data")
    seen = []
    identifier = Identifier(
        sample_definitions,
        tables=valuation_tables,
        on_error=lambda path, error: seen.append(error),
    )

    def _deny(self, *args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(Path, "open", _deny)

    with pytest.raises(IdentifierIOError) as excinfo:
        identifier.identify_file(target)

    assert "denied" in excinfo.value.reason
    assert seen == [excinfo.value]


def test_module_level_scan_path_uses_configured_definitions(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, sample_definitions, valuation_tables
) -> None:
    (tmp_path / "photo.jpg").write_bytes(b"\xff\xd8\xff\xe0\x00\x10JFIF")
    monkeypatch.setattr(identifier_module, "Identifier", _identifier_factory(sample_definitions, valuation_tables))

    results = scan_path(tmp_path)

    ((path, report),) = results
    assert path.name == "photo.jpg"
    assert report.best.definition.file_type == "JPEG Bitmap"


def _identifier_factory(definitions, tables):
    def factory(_definitions=None, **kwargs):
        return Identifier(definitions, tables=tables, **kwargs)

    return factory
