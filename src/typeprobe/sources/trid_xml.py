"""TrID XML definition files.

Each ``.trid.xml`` file describes one format::

    <TrID ver="2.00">
      <Info>
        <FileType>Adobe Portable Document Format</FileType>
        <Ext>PDF</Ext>
        <Mime>application/pdf</Mime>
        <ExtraInfo><Rem>...</Rem><RefURL>...</RefURL></ExtraInfo>
      </Info>
      <General><FileNum>120</FileNum></General>
      <FrontBlock>
        <Pattern><Bytes>255044462D</Bytes><Pos>0</Pos></Pattern>
      </FrontBlock>
      <GlobalStrings><String>OBJ</String></GlobalStrings>
    </TrID>

Documents are parsed with :mod:`defusedxml` since definition archives are
downloaded from third parties.
"""

from __future__ import annotations

import binascii
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional, Union

from defusedxml import ElementTree as DEFUSED_ET
from defusedxml.common import DefusedXmlException

from ..core.types import Definition, DefinitionValidationError, Pattern, Signature
from .package import PackageFormatError

logger = logging.getLogger(__name__)

XML_GLOB = "*.xml"


def _text(element: Optional[ET.Element], path: str) -> str:
    if element is None:
        return ""
    found = element.find(path)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def _int(element: Optional[ET.Element], path: str) -> int:
    value = _text(element, path)
    if not value:
        return 0
    try:
        return int(value)
    except ValueError as exc:
        raise DefinitionValidationError(f"{path} must be an integer, got {value!r}") from exc


def _pattern(element: ET.Element) -> Pattern:
    raw = "".join(_text(element, "Bytes").split())
    try:
        data = binascii.unhexlify(raw)
    except (binascii.Error, ValueError) as exc:
        raise DefinitionValidationError(f"Pattern bytes are not valid hex: {raw!r}") from exc
    return Pattern(_int(element, "Pos"), data)


def definition_from_element(root: ET.Element) -> Definition:
    """Convert a parsed ``<TrID>`` element into a :class:`Definition`."""

    if root.tag != "TrID":
        raise DefinitionValidationError(f"Expected a <TrID> root element, got <{root.tag}>")
    info = root.find("Info")
    general = root.find("General")
    patterns = tuple(_pattern(element) for element in root.iterfind("FrontBlock/Pattern"))
    strings = tuple(
        element.text.encode("utf-8")
        for element in root.iterfind("GlobalStrings/String")
        if element.text
    )
    extensions = [value for value in _text(info, "Ext").split("/") if value.strip()]
    return Definition(
        file_type=_text(info, "FileType"),
        extensions=tuple(extensions),
        mime_type=_text(info, "Mime"),
        remarks=_text(info, "ExtraInfo/Rem"),
        signature=Signature(patterns=patterns, strings=strings),
        file_count=_int(general, "FileNum"),
        reference_url=_text(info, "ExtraInfo/RefURL") or None,
    )


def parse_trid_xml(source: Union[Path, str, bytes]) -> Definition:
    """Parse one TrID XML document from a path or raw bytes."""

    if isinstance(source, (bytes, bytearray)):
        payload = bytes(source)
        label = "<bytes>"
    else:
        path = Path(source)
        payload = path.read_bytes()
        label = str(path)
    try:
        root = DEFUSED_ET.fromstring(payload)
    except (ET.ParseError, DefusedXmlException) as exc:
        raise PackageFormatError(f"{label}: unreadable TrID XML ({exc})") from exc
    return definition_from_element(root)


def load_trid_xml_directory(directory: Path, glob: str = XML_GLOB) -> List[Definition]:
    """Load every TrID XML file below ``directory`` in sorted path order.

    Files that cannot be parsed are skipped with a warning.
    """

    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Definition directory does not exist: {directory}")
    definitions: List[Definition] = []
    for path in sorted(directory.rglob(glob)):
        if not path.is_file():
            continue
        try:
            definitions.append(parse_trid_xml(path))
        except (PackageFormatError, DefinitionValidationError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
    logger.info("Loaded %d TrID XML definitions from %s", len(definitions), directory)
    return definitions
