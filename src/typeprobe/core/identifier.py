"""Identification engine façade.

An :class:`Identifier` loads a definition corpus once, builds the pattern
index and valuation, and then answers any number of identification requests.
``identify`` only reads immutable structures and is safe to call from many
threads; the file scanning helpers track an aggregate sample budget and are
meant for one caller at a time.

Examples
--------
>>> from typeprobe.core.types import Definition, Pattern, Signature
>>> pdf = Definition(
...     "Adobe Portable Document Format", ("pdf",), "application/pdf",
...     signature=Signature(patterns=(Pattern(0, b"%PDF"),)),
... )
>>> identifier = Identifier([pdf])
>>> [outcome.definition.file_type for outcome in identifier.identify(b"%PDF-1.7")]
['Adobe Portable Document Format']
>>> identifier.identify(b"")
[]
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..tables import ValuationTables
from .assembler import Report, assemble
from .diagnostics import DiagnosticsSnapshot, build_diagnostics
from .index import PatternEvidence, PatternIndex
from .types import Definition, Outcome, normalise_extension
from .valuation import Valuation

logger = logging.getLogger(__name__)

SCAN_WINDOW = 8 * 1024  # Global strings are searched within this prefix.
_MAX_SAMPLE_SIZE = 512 * 1024  # Guardrail against excessive reads.

_DEFAULT_TOTAL_SAMPLE_BUDGET = 16 * 1024 * 1024  # 16 MiB aggregate guardrail.


class IdentifierIOError(Exception):
    """Represents an I/O failure that occurred while reading a candidate."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {self.reason}")

    def __repr__(self) -> str:  # pragma: no cover - trivial wrapper
        return f"IdentifierIOError(path={str(self.path)!r}, reason={self.reason!r})"


def _wrap_io_error(path: Path, exc: OSError) -> IdentifierIOError:
    return IdentifierIOError(path=Path(path), reason=str(exc))


def _validate_sample_size(sample_size: int) -> int:
    """Clamp and validate the requested sample size."""

    if sample_size <= 0:
        raise ValueError("sample_size must be a positive integer")
    if sample_size > _MAX_SAMPLE_SIZE:
        logger.warning(
            "Sample size %s exceeds %s bytes; clamping to guardrail.",
            sample_size,
            _MAX_SAMPLE_SIZE,
        )
        return _MAX_SAMPLE_SIZE
    return sample_size


def _validate_total_sample_budget(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if value <= 0:
        raise ValueError("max_total_sample_bytes must be a positive integer")
    return value


def _extension_of(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    suffix = Path(str(filename)).suffix
    return normalise_extension(suffix) or None


class Identifier:
    """Ranks candidate definitions for byte buffers and files."""

    def __init__(
        self,
        definitions: Optional[Iterable[Definition]] = None,
        *,
        tables: Optional[ValuationTables] = None,
        sample_size: Optional[int] = None,
        max_total_sample_bytes: Optional[int] = None,
        check_strings: bool = True,
        on_error: Optional[Callable[[Path, Exception], None]] = None,
    ) -> None:
        """Build the index and valuation for ``definitions``.

        Args:
            definitions: Ordered corpus. ``None`` loads the configured source
                (``TYPEPROBE_DEFINITIONS``) or the bundled package.
            tables: Valuation tables. ``None`` uses ``TYPEPROBE_TABLES`` or
                the bundled tables.
            sample_size: Bytes read per file. ``None`` sizes the sample to the
                longest pattern reach, widened to the string scan window when
                ``check_strings`` is enabled.
            max_total_sample_bytes: Aggregate sampling budget for
                :meth:`scan_path`; defaults to 16 MiB.
            check_strings: Search signature global strings in the sample.
            on_error: Optional callback invoked with ``(path, exception)``
                when file system access fails. The exception passed will be
                an :class:`IdentifierIOError`.
        """

        if definitions is None or tables is None:
            from .. import config

            if definitions is None:
                definitions = config.load_definitions()
            if tables is None:
                tables = config.load_valuation_tables()

        corpus = tuple(definitions)
        for definition in corpus:
            if not definition.is_valid:
                logger.warning(
                    "Excluding definition without file type or MIME type: %s",
                    definition.describe(),
                )

        self._definitions = corpus
        self._check_strings = check_strings
        self._index = PatternIndex(corpus)
        self._valuation = Valuation(tables, corpus)
        self._points: Tuple[int, ...] = tuple(
            self._valuation.total(definition) if definition.is_valid else 0
            for definition in corpus
        )

        if sample_size is None:
            sample_size = self._index.required_prefix
            if check_strings or sample_size <= 0:
                sample_size = max(sample_size, SCAN_WINDOW)
        self._sample_size = _validate_sample_size(sample_size)
        self._max_total_sample_bytes = _validate_total_sample_budget(
            max_total_sample_bytes
        )
        if self._max_total_sample_bytes is None:
            self._max_total_sample_bytes = _DEFAULT_TOTAL_SAMPLE_BUDGET
        self._consumed_sample_bytes = 0
        self._budget_exhausted = False
        self._on_error = on_error

    @property
    def definitions(self) -> Tuple[Definition, ...]:
        return self._definitions

    @property
    def index(self) -> PatternIndex:
        return self._index

    @property
    def valuation(self) -> Valuation:
        return self._valuation

    @property
    def sample_size(self) -> int:
        return self._sample_size

    @property
    def required_prefix(self) -> int:
        return self._index.required_prefix

    def _score(self, evidence: PatternEvidence) -> int:
        return self._points[evidence.order]

    def identify(
        self,
        buffer: bytes,
        filename: Optional[str] = None,
        *,
        strict: bool = False,
    ) -> List[Outcome]:
        """Return ranked outcomes for ``buffer``; empty when nothing matches."""

        if not buffer:
            return []
        probe = self._index.probe(buffer, check_strings=self._check_strings)
        return assemble(
            probe.evidence,
            self._score,
            extension=_extension_of(filename),
            strict=strict,
        )

    def report(
        self,
        buffer: bytes,
        filename: Optional[str] = None,
        *,
        strict: bool = False,
    ) -> Report:
        return Report(
            outcomes=self.identify(buffer, filename, strict=strict),
            source=filename,
            bytes_sampled=len(buffer),
        )

    def identify_many(
        self,
        buffers: Iterable[bytes],
        filenames: Optional[Sequence[Optional[str]]] = None,
        *,
        strict: bool = False,
        max_workers: Optional[int] = None,
    ) -> List[List[Outcome]]:
        """Identify several buffers on a thread pool, preserving input order."""

        items = list(buffers)
        names: Sequence[Optional[str]] = (
            list(filenames) if filenames is not None else [None] * len(items)
        )
        if len(names) != len(items):
            raise ValueError("filenames must match buffers one to one")
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(
                pool.map(
                    lambda pair: self.identify(pair[0], pair[1], strict=strict),
                    zip(items, names),
                )
            )

    def diagnostics(self) -> DiagnosticsSnapshot:
        return build_diagnostics(self._definitions)

    def definitions_for_extension(self, extension: str) -> List[Definition]:
        key = normalise_extension(extension)
        return [
            definition
            for definition in self._definitions
            if definition.is_valid and key in definition.extensions
        ]

    def _handle_error(
        self,
        path: Path,
        error: IdentifierIOError,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        if self._on_error is not None:
            try:
                self._on_error(path, error)
            except Exception:  # pragma: no cover - callback failures are logged
                logger.exception("on_error handler raised during scan")
        if cause is not None:
            raise error from cause
        raise error

    def reset_sample_budget(self) -> None:
        """Reset aggregate sampling counters for a fresh scan."""

        self._consumed_sample_bytes = 0
        self._budget_exhausted = False

    @property
    def sample_budget_exhausted(self) -> bool:
        return self._budget_exhausted

    @property
    def sample_budget_remaining(self) -> int:
        return max(0, self._max_total_sample_bytes - self._consumed_sample_bytes)

    def identify_file(self, path: Path, *, strict: bool = False) -> Optional[Report]:
        """Identify the file at ``path`` from a bounded prefix.

        Returns ``None`` when the aggregate sample budget is already spent.
        """

        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Expected file path, got: {path}")

        if self._consumed_sample_bytes >= self._max_total_sample_bytes:
            self._budget_exhausted = True
            logger.warning("Sample budget exhausted before scanning: %s", path)
            return None

        remaining = self._max_total_sample_bytes - self._consumed_sample_bytes
        try:
            with path.open("rb") as handle:
                raw = handle.read(min(self._sample_size, remaining) + 1)
        except OSError as exc:
            self._handle_error(path, _wrap_io_error(path, exc), cause=exc)
            return None

        sample = raw[: min(self._sample_size, remaining)]
        notes: List[str] = []
        if len(raw) > len(sample):
            notes.append(f"Truncated sample to {len(sample)}B")

        self._consumed_sample_bytes += len(sample)
        if self._consumed_sample_bytes >= self._max_total_sample_bytes:
            self._budget_exhausted = True
            notes.append(f"Sampling budget exhausted after {len(sample)}B")

        return Report(
            outcomes=self.identify(sample, path.name, strict=strict),
            source=str(path),
            bytes_sampled=len(sample),
            notes=tuple(notes),
        )

    def scan_path(
        self,
        root: Path,
        glob: str = "**/*",
        *,
        reset_budget: bool = True,
        strict: bool = False,
    ) -> List[Tuple[Path, Optional[Report]]]:
        """Identify ``root`` (a file) or every file under it.

        Args:
            reset_budget: When ``True`` the aggregate sampling counter is
                reset first. Set to ``False`` to keep consuming the existing
                budget across several roots.
        """

        root = Path(root)
        try:
            if root.is_file():
                if reset_budget:
                    self.reset_sample_budget()
                return [(root, self.identify_file(root, strict=strict))]

            if not root.is_dir():
                raise FileNotFoundError(f"Path does not exist: {root}")
        except OSError as exc:
            self._handle_error(root, _wrap_io_error(root, exc), cause=exc)
            return []

        if reset_budget:
            self.reset_sample_budget()
        results: List[Tuple[Path, Optional[Report]]] = []
        try:
            iterable = sorted(root.glob(glob))
        except OSError as exc:
            self._handle_error(root, _wrap_io_error(root, exc), cause=exc)
            return results
        for path in iterable:
            try:
                if path.is_file():
                    results.append((path, self.identify_file(path, strict=strict)))
                    if self._budget_exhausted:
                        logger.warning(
                            "Sample budget exhausted while scanning %s;"
                            " skipping remaining paths under %s",
                            path,
                            root,
                        )
                        break
            except OSError as exc:
                self._handle_error(path, _wrap_io_error(path, exc), cause=exc)
        return results


def identify_file(
    path: Path,
    *,
    definitions: Optional[Iterable[Definition]] = None,
    sample_size: Optional[int] = None,
    strict: bool = False,
    on_error: Optional[Callable[[Path, Exception], None]] = None,
) -> Optional[Report]:
    """Convenience wrapper that builds a one-off identifier."""

    identifier = Identifier(definitions, sample_size=sample_size, on_error=on_error)
    return identifier.identify_file(Path(path), strict=strict)


def scan_path(
    root: Path,
    glob: str = "**/*",
    *,
    definitions: Optional[Iterable[Definition]] = None,
    sample_size: Optional[int] = None,
    strict: bool = False,
    on_error: Optional[Callable[[Path, Exception], None]] = None,
) -> List[Tuple[Path, Optional[Report]]]:
    """Convenience wrapper mirroring :meth:`Identifier.scan_path`."""

    identifier = Identifier(definitions, sample_size=sample_size, on_error=on_error)
    return identifier.scan_path(Path(root), glob=glob, strict=strict)
