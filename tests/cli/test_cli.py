from __future__ import annotations

import json
from pathlib import Path

import pytest

from typeprobe.cli import main
from typeprobe.sources import Package, PackageTag, load_package, write_package

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x10\x00\x00\x00\x10" + b"\x00" * 32

TRID_TEMPLATE = """<TrID ver="2.00">
  <Info><FileType>{file_type}</FileType><Ext>{ext}</Ext><Mime>{mime}</Mime></Info>
  <General><FileNum>{count}</FileNum></General>
  <FrontBlock><Pattern><Bytes>{data}</Bytes><Pos>0</Pos></Pattern></FrontBlock>
</TrID>
"""


def _trid_xml(directory: Path, name: str, **fields) -> None:
    (directory / name).write_text(TRID_TEMPLATE.format(**fields), encoding="utf-8")


def test_cli_renders_table_for_directory(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "image.png").write_bytes(PNG_BYTES)
    (tmp_path / "notes.txt").write_text("hello world\n", encoding="utf-8")

    exit_code = main([str(tmp_path)])

    assert exit_code == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["Path", "File", "type", "MIME", "type", "Extensions", "Confidence", "Points"]
    png_row = next(line for line in lines if line.startswith("image.png"))
    assert "Portable Network Graphics" in png_row
    assert "image/png" in png_row
    assert "100.0%" in png_row
    notes_row = next(line for line in lines if line.startswith("notes.txt"))
    assert "—" in notes_row


def test_cli_json_output_for_single_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "image.png"
    target.write_bytes(PNG_BYTES)

    exit_code = main([str(target), "--json", "--top", "3"])

    assert exit_code == 0
    (line,) = capsys.readouterr().out.splitlines()
    payload = json.loads(line)
    assert payload["path"] == "image.png"
    assert payload["identified"] is True
    assert payload["bytes_sampled"] == len(PNG_BYTES)
    assert payload["notes"] == []
    assert payload["outcomes"][0]["mime_type"] == "image/png"
    assert payload["outcomes"][0]["percentage"] == 100.0


def test_cli_fallback_reports_plain_text(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / "notes.txt"
    target.write_text("hello world\n", encoding="utf-8")

    exit_code = main([str(target), "--json", "--fallback"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["identified"] is False
    (outcome,) = payload["outcomes"]
    assert outcome["file_type"] == "Plain Text"
    assert outcome["extensions"] == ["txt"]
    assert outcome["priority_level"] == -1000


def test_cli_missing_path_exits_with_usage_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path / "missing")])

    assert excinfo.value.code == 2
    assert "Path does not exist" in capsys.readouterr().err


def test_cli_rejects_non_positive_top(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path), "--top", "0"])

    assert excinfo.value.code == 2


def test_cli_uses_definitions_override(tmp_path: Path, capsys: pytest.CaptureFixture[str], sample_definitions) -> None:
    package_path = write_package(Package(definitions=sample_definitions), tmp_path / "pkg")
    target = tmp_path / "clip.bin"
    target.write_bytes(b"\x00\x00\x00\x18ftypisom" + b"\x00" * 16)

    exit_code = main([str(target), "--definitions", str(package_path), "--json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["outcomes"][0]["file_type"] == "MPEG-4 media"


def test_diagnostics_json(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["diagnostics", "--json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["definitions_count"] == 29
    assert payload["mime_types"]["image/png"] == ["png"]
    assert payload["excluded"] == []


def test_diagnostics_text(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["diagnostics"])

    assert exit_code == 0
    assert "Definitions: 29" in capsys.readouterr().out


def test_compile_json_package_orders_by_priority(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], sample_definitions
) -> None:
    source = write_package(Package(definitions=sample_definitions), tmp_path / "src")
    output_dir = tmp_path / "out"

    exit_code = main(["compile", str(source), "--output-dir", str(output_dir), "--package-version", "9.9.9"])

    assert exit_code == 0
    assert "Wrote 5 definitions (5 MIME types)" in capsys.readouterr().out
    package = load_package(output_dir / "definitions.json")
    assert package.version == "9.9.9"
    assert package.tags == PackageTag.STABLE
    priorities = [definition.priority_level for definition in package.definitions]
    assert priorities == sorted(priorities, reverse=True)
    assert all(priority > 0 for priority in priorities)
    log_names = sorted(path.name.split("_")[0] for path in (output_dir / "logs").iterdir())
    assert log_names == ["package", "source"]


def test_compile_trid_directory_with_mime_validation(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    sources = tmp_path / "defs"
    sources.mkdir()
    _trid_xml(sources, "pdf.trid.xml", file_type="PDF document", ext="PDF", mime="Application/PDF;", count=10, data="255044462D")
    _trid_xml(sources, "odd.trid.xml", file_type="Odd thing", ext="ODD", mime="model/x-totally-different", count=1, data="4F4444")
    _trid_xml(sources, "nomime.trid.xml", file_type="No MIME", ext="NM", mime="", count=1, data="4E4D")
    output_dir = tmp_path / "out"

    exit_code = main(
        [
            "compile",
            str(sources),
            "--output-dir",
            str(output_dir),
            "--name",
            "triddefs",
            "--validate-mime",
            "--tag",
            "beta",
        ]
    )

    assert exit_code == 0
    capsys.readouterr()
    package = load_package(output_dir / "triddefs.json")
    assert [definition.file_type for definition in package.definitions] == ["PDF document"]
    assert package.definitions[0].mime_type == "application/pdf"
    assert package.tags == PackageTag.BETA | PackageTag.TRID | PackageTag.VALIDATED
    log_names = sorted(path.name.split("_")[0] for path in (output_dir / "logs").iterdir())
    assert log_names == ["invalid", "package", "source", "validated"]


@pytest.mark.parametrize(
    "extra",
    [["--tag", "shiny"], []],
)
def test_compile_errors_exit_with_usage_error(tmp_path: Path, extra) -> None:
    source = tmp_path / "missing.json" if not extra else write_package(Package(), tmp_path / "src")

    with pytest.raises(SystemExit) as excinfo:
        main(["compile", str(source), "--output-dir", str(tmp_path / "out"), *extra])

    assert excinfo.value.code == 2
