"""Command-line entry point for typeprobe.

* ``typeprobe PATH`` identifies a file or every file under a directory and
  renders a compact table or JSON lines.
* ``typeprobe diagnostics`` prints the corpus diagnostics snapshot.
* ``typeprobe compile SOURCE...`` converts TrID XML directories, TrID RIFF
  packages or JSON packages into one JSON package with valuation derived
  priority levels, plus build logs.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from . import config
from .content import fallback_definition
from .core.assembler import Report
from .core.grouping import flatten
from .core.identifier import Identifier, IdentifierIOError
from .core.types import Definition, Outcome, Tally
from .core.valuation import Valuation, assign_priority_levels
from .mime import MimeTypeCleaner, validate_definitions
from .sources import (
    DEFAULT_PACKAGE_NAME,
    Package,
    PackageFormatError,
    PackageLog,
    PackageTag,
    load_source,
    write_package,
    write_package_logs,
)
from .sources.package import DEFAULT_VERSION

logger = logging.getLogger(__name__)

_TRID_SUFFIXES = {".trd", ".xml"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typeprobe", description="Identify file types from their content"
    )
    parser.add_argument(
        "path",
        type=Path,
        help="File or directory to identify.",
    )
    _add_corpus_arguments(parser)
    parser.add_argument(
        "--glob",
        default="**/*",
        help="Glob used when scanning directories (default: **/*).",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=None,
        help="Bytes to sample from each file (defaults to the corpus reach).",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=1,
        help="Candidates to show per file (default: 1).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only report definitions whose whole signature matched.",
    )
    parser.add_argument(
        "--no-strings",
        action="store_true",
        help="Skip global string checks.",
    )
    parser.add_argument(
        "--fallback",
        action="store_true",
        help="Report plain text or binary data when nothing matches.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON lines instead of a table.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log progress to stderr.",
    )
    return parser


def _add_corpus_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--definitions",
        type=Path,
        default=None,
        help=f"Definition source (default: ${config.DEFINITIONS_ENV} or bundled).",
    )
    parser.add_argument(
        "--tables",
        type=Path,
        default=None,
        help=f"Valuation tables (default: ${config.TABLES_ENV} or bundled).",
    )


def _build_diagnostics_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typeprobe diagnostics",
        description="Summarise the loaded definition corpus.",
    )
    _add_corpus_arguments(parser)
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of text.",
    )
    return parser


def _build_compile_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typeprobe compile",
        description="Compile definition sources into a JSON package.",
    )
    parser.add_argument(
        "sources",
        nargs="+",
        type=Path,
        help="TrID XML directories, .trd packages or JSON packages.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory where the package and logs are written.",
    )
    parser.add_argument(
        "--name",
        default=DEFAULT_PACKAGE_NAME,
        help=f"Package file name without extension (default: {DEFAULT_PACKAGE_NAME}).",
    )
    parser.add_argument(
        "--package-version",
        default=DEFAULT_VERSION,
        help=f"Version recorded in the package (default: {DEFAULT_VERSION}).",
    )
    parser.add_argument(
        "--tag",
        action="append",
        dest="tags",
        default=[],
        help="Package tag to record (repeatable).",
    )
    parser.add_argument(
        "--validate-mime",
        action="store_true",
        help="Clean MIME types and drop definitions that cannot be validated.",
    )
    parser.add_argument(
        "--tables",
        type=Path,
        default=None,
        help=f"Valuation tables (default: ${config.TABLES_ENV} or bundled).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log progress to stderr.",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


def _relative_path(root: Path, path: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _ellipsize(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    if limit <= 1:
        return value[:limit]
    return f"{value[: limit - 1]}…"


def _fallback_outcome(path: Path, sample_size: int) -> Outcome:
    with path.open("rb") as handle:
        sample = handle.read(sample_size)
    return Outcome(
        definition=fallback_definition(sample, path.name),
        percentage=0.0,
        points=0,
        pattern_count=Tally(0, 0),
        string_count=Tally(0, 0),
    )


def _select_outcomes(
    path: Path,
    report: Optional[Report],
    *,
    top: int,
    fallback: bool,
    sample_size: int,
) -> List[Outcome]:
    outcomes = list(report.outcomes[:top]) if report is not None else []
    if not outcomes and fallback and report is not None:
        outcomes.append(_fallback_outcome(path, sample_size))
    return outcomes


def _emit_table(
    root: Path,
    rows: Sequence[Tuple[Path, Optional[Report], List[Outcome]]],
) -> None:
    columns = ("Path", "File type", "MIME type", "Extensions", "Confidence", "Points")
    widths = [max(len(col), 4) for col in columns]

    formatted_rows = []
    for path, report, outcomes in rows:
        relative = _relative_path(root, path)
        if not outcomes:
            label = "—" if report is not None else "(budget exhausted)"
            formatted_rows.append((relative, label, "—", "—", "—", "—"))
        for outcome in outcomes:
            definition = outcome.definition
            formatted_rows.append(
                (
                    relative,
                    definition.file_type,
                    definition.mime_type,
                    ", ".join(definition.extensions) or "—",
                    f"{outcome.percentage:.1f}%",
                    str(outcome.points),
                )
            )
        for row in formatted_rows[-max(len(outcomes), 1):]:
            for index, value in enumerate(row):
                widths[index] = max(widths[index], len(value))

    max_type_width = 56
    type_index = columns.index("File type")
    if widths[type_index] > max_type_width:
        widths[type_index] = max_type_width

    header = "  ".join(
        column.ljust(widths[index]) for index, column in enumerate(columns)
    )
    print(header)
    print("  ".join("-" * width for width in widths))
    for row in formatted_rows:
        formatted = []
        for index, value in enumerate(row):
            column_width = widths[index]
            adjusted = _ellipsize(value, column_width)
            formatted.append(adjusted.ljust(column_width))
        print("  ".join(formatted).rstrip())


def _emit_json(
    root: Path,
    rows: Sequence[Tuple[Path, Optional[Report], List[Outcome]]],
) -> None:
    for path, report, outcomes in rows:
        payload = {
            "path": _relative_path(root, path),
            "identified": bool(report is not None and not report.is_empty),
            "outcomes": [outcome.to_dict() for outcome in outcomes],
        }
        if report is not None:
            payload["bytes_sampled"] = report.bytes_sampled
            payload["notes"] = list(report.notes)
        else:
            payload["notes"] = ["Sample budget exhausted"]
        print(json.dumps(payload, sort_keys=True))


def _load_identifier(args: argparse.Namespace, **kwargs) -> Identifier:
    definitions = config.load_definitions(args.definitions)
    tables = config.load_valuation_tables(args.tables)
    return Identifier(definitions, tables=tables, **kwargs)


def _run_diagnostics(argv: Sequence[str]) -> int:
    parser = _build_diagnostics_parser()
    args = parser.parse_args(argv)
    try:
        identifier = _load_identifier(args)
    except (OSError, PackageFormatError) as exc:
        parser.error(str(exc))
        return 2

    snapshot = identifier.diagnostics()
    if args.json:
        print(json.dumps(snapshot.to_dict(), indent=2, sort_keys=True))
    else:
        print(snapshot.render_text())
    return 0


def _compile_tags(args: argparse.Namespace, sources: Sequence[Path]) -> PackageTag:
    tags = PackageTag.parse(args.tags) if args.tags else PackageTag.STABLE
    if any(source.is_dir() or source.suffix.lower() in _TRID_SUFFIXES for source in sources):
        tags |= PackageTag.TRID
    if args.validate_mime:
        tags |= PackageTag.VALIDATED
    return tags


def _run_compile(argv: Sequence[str]) -> int:
    parser = _build_compile_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        tags = _compile_tags(args, args.sources)
        loaded: List[Definition] = []
        for source in args.sources:
            loaded.extend(load_source(source.expanduser()))
        tables = config.load_valuation_tables(args.tables)
    except (OSError, PackageFormatError) as exc:
        parser.error(str(exc))
        return 2

    logs = [PackageLog.from_definitions("source", loaded)]
    definitions = [definition for definition in loaded if definition.is_valid]
    dropped = len(loaded) - len(definitions)
    if dropped:
        logger.warning("Dropped %d definitions without file type or MIME type", dropped)

    if args.validate_mime:
        valid, invalid = validate_definitions(definitions, MimeTypeCleaner())
        definitions = flatten(valid)
        logs.append(PackageLog.from_definitions("validated", definitions))
        logs.append(PackageLog.from_definitions("invalid", flatten(invalid)))

    valuation = Valuation(tables, definitions)
    prioritised = sorted(
        assign_priority_levels(definitions, valuation),
        key=lambda definition: -definition.priority_level,
    )
    package = Package(
        definitions=tuple(prioritised),
        version=args.package_version,
        tags=tags,
    )
    logs.append(PackageLog.from_definitions("package", package.definitions))

    output_dir = args.output_dir.expanduser()
    target = write_package(package, output_dir, args.name)
    write_package_logs(logs, output_dir / "logs")
    sys.stdout.write(
        f"Wrote {package.total_definitions} definitions"
        f" ({package.total_mime_types} MIME types) to {target}\n"
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = list(sys.argv[1:])
    else:
        argv = list(argv)
    if argv and argv[0] == "diagnostics":
        return _run_diagnostics(argv[1:])
    if argv and argv[0] == "compile":
        return _run_compile(argv[1:])

    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    if args.top < 1:
        parser.error("--top must be at least 1")

    root: Path = args.path
    if not root.exists():
        parser.error(f"Path does not exist: {root}")
    try:
        identifier = _load_identifier(
            args,
            sample_size=args.sample_size,
            check_strings=not args.no_strings,
        )
        results = identifier.scan_path(root, glob=args.glob, strict=args.strict)
        rows = [
            (
                path,
                report,
                _select_outcomes(
                    path,
                    report,
                    top=args.top,
                    fallback=args.fallback,
                    sample_size=identifier.sample_size,
                ),
            )
            for path, report in results
        ]
    except (IdentifierIOError, OSError, ValueError) as exc:
        parser.error(str(exc))
        return 2

    display_root = root if root.is_dir() else root.parent
    if args.json:
        _emit_json(display_root, rows)
    else:
        _emit_table(display_root, rows)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())


def console_main() -> None:
    """Entry point for ``typeprobe`` console script."""

    sys.exit(main())
