"""Environment driven configuration.

``TYPEPROBE_DEFINITIONS`` points at a definition source (JSON package, TrID
RIFF package or TrID XML directory) and ``TYPEPROBE_TABLES`` at replacement
valuation tables. Explicit arguments always win over the environment, and
the bundled data under ``typeprobe/data`` is used when neither is given.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import List, Optional, Tuple

from .core.types import Definition
from .sources import load_source, loads_package
from .tables import ValuationTables, default_tables, load_tables

logger = logging.getLogger(__name__)

DEFINITIONS_ENV = "TYPEPROBE_DEFINITIONS"
TABLES_ENV = "TYPEPROBE_TABLES"

_BUNDLED_DEFINITIONS = "definitions.json"


def _env_path(name: str) -> Optional[Path]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return Path(value).expanduser()


def resolve_definitions_path(explicit: Optional[Path] = None) -> Optional[Path]:
    """Return the definitions path to use, or ``None`` for the bundled set."""

    if explicit is not None:
        return Path(explicit)
    return _env_path(DEFINITIONS_ENV)


def resolve_tables_path(explicit: Optional[Path] = None) -> Optional[Path]:
    if explicit is not None:
        return Path(explicit)
    return _env_path(TABLES_ENV)


@lru_cache(maxsize=None)
def bundled_definitions() -> Tuple[Definition, ...]:
    text = (
        resources.files("typeprobe")
        .joinpath("data", _BUNDLED_DEFINITIONS)
        .read_text(encoding="utf-8")
    )
    return loads_package(text, source=_BUNDLED_DEFINITIONS).definitions


def load_definitions(path: Optional[Path] = None) -> List[Definition]:
    resolved = resolve_definitions_path(path)
    if resolved is None:
        return list(bundled_definitions())
    logger.debug("Loading definitions from %s", resolved)
    return load_source(resolved)


def load_valuation_tables(path: Optional[Path] = None) -> ValuationTables:
    resolved = resolve_tables_path(path)
    if resolved is None:
        return default_tables()
    return load_tables(resolved)
