"""Definition sources: JSON packages, TrID XML files and TrID RIFF packages."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ..core.types import Definition
from .package import (
    DEFAULT_PACKAGE_NAME,
    Package,
    PackageFormatError,
    PackageLog,
    PackageTag,
    definition_from_mapping,
    definition_to_mapping,
    dump_package,
    load_package,
    loads_package,
    write_package,
    write_package_logs,
)
from .trid_riff import TridPackage, load_trid_package, parse_trid_package
from .trid_xml import load_trid_xml_directory, parse_trid_xml

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PACKAGE_NAME",
    "Package",
    "PackageFormatError",
    "PackageLog",
    "PackageTag",
    "TridPackage",
    "definition_from_mapping",
    "definition_to_mapping",
    "dump_package",
    "load_package",
    "load_source",
    "load_trid_package",
    "load_trid_xml_directory",
    "loads_package",
    "parse_trid_package",
    "parse_trid_xml",
    "write_package",
    "write_package_logs",
]


def load_source(path: Path) -> List[Definition]:
    """Load definitions from ``path``, choosing the reader by its shape.

    Directories are read as TrID XML collections, ``.trd`` files as TrID RIFF
    packages, ``.xml`` files as a single TrID XML definition and everything
    else as a JSON package.
    """

    path = Path(path)
    if path.is_dir():
        return load_trid_xml_directory(path)
    if not path.exists():
        raise FileNotFoundError(f"Definition source does not exist: {path}")
    suffix = path.suffix.lower()
    if suffix == ".trd":
        return load_trid_package(path)
    if suffix == ".xml":
        return [parse_trid_xml(path)]
    return list(load_package(path).definitions)
