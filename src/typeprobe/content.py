"""Content sniffing helpers used by callers that want a fallback verdict.

The identification engine never invents an outcome when no signature
matches. Callers that prefer a coarse answer over none can ask
:func:`fallback_definition` for a text/binary guess.
"""

from __future__ import annotations

import codecs
from typing import Optional, Tuple

from .core.types import Definition, normalise_extension

FALLBACK_PRIORITY = -1000

NUL_PERCENT_LIMIT = 1.0
PRINTABLE_PERCENT_MIN = 75.0

_WHITESPACE = {9, 10, 13}
# UTF-32 marks first: the UTF-32 LE mark starts with the UTF-16 LE one.
_BOMS = (
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
)


def detect_bom(sample: bytes) -> Optional[str]:
    """Return the codec implied by a leading byte order mark, if any."""

    for bom, encoding in _BOMS:
        if sample.startswith(bom):
            return encoding
    return None


def _valid_utf8(sample: bytes) -> bool:
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte sequence cut off by the sampling window is still text.
        return exc.reason == "unexpected end of data"
    return True


def looks_text(sample: bytes) -> bool:
    """Heuristic text/binary verdict over a raw sample.

    A byte order mark settles the question. Otherwise the sample is binary
    when more than 1% of it is NUL or when control bytes outnumber half the
    printable ones. Bytes at or above ``0x80`` are accepted when the whole
    sample is valid UTF-8; failing that, at least 75% of the sample must be
    printable or high bytes. An empty sample is not text.
    """

    if not sample:
        return False
    if detect_bom(sample) is not None:
        return True

    nul = control = printable = high = 0
    for byte in sample:
        if byte == 0:
            nul += 1
        elif byte < 32:
            if byte in _WHITESPACE:
                printable += 1
            else:
                control += 1
        elif byte < 127:
            printable += 1
        elif byte >= 128:
            high += 1

    if nul * 100.0 / len(sample) > NUL_PERCENT_LIMIT:
        return False
    if control > printable // 2:
        return False
    if high and _valid_utf8(sample):
        return True
    return (printable + high) * 100.0 / len(sample) > PRINTABLE_PERCENT_MIN


def decode_text(sample: bytes) -> Tuple[str, str]:
    """Decode ``sample`` and return the resulting text and codec name.

    A byte order mark picks the codec; otherwise UTF-8 is tried before
    falling back to Latin-1, which accepts any byte sequence.
    """

    encoding = detect_bom(sample)
    if encoding is not None:
        return sample.decode(encoding, errors="replace").lstrip("\ufeff"), encoding
    if _valid_utf8(sample):
        # "ignore" only drops a sequence truncated at the end of the sample.
        return sample.decode("utf-8", errors="ignore"), "utf-8"
    return sample.decode("latin-1"), "latin-1"


def fallback_definition(sample: bytes, filename: Optional[str] = None) -> Definition:
    """Coarse text or binary verdict for content no signature recognised.

    The returned definition carries ``priority_level=-1000`` so it always
    ranks below real matches. An empty sample is reported as binary data.
    """

    extension = ""
    if filename and "." in filename:
        extension = normalise_extension(filename.rsplit(".", 1)[-1])
    if looks_text(sample):
        _, encoding = decode_text(sample)
        return Definition(
            file_type="Plain Text",
            extensions=(extension or "txt",),
            mime_type="text/plain",
            remarks=f"Decoded as {encoding}",
            priority_level=FALLBACK_PRIORITY,
        )
    return Definition(
        file_type="Binary Data",
        extensions=(extension or "bin",),
        mime_type="application/octet-stream",
        priority_level=FALLBACK_PRIORITY,
    )
