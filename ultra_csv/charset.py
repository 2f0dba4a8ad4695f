"""
Charset resolution for byte input.

Rules:
- A leading byte-order mark decides the encoding and is never decoded.
- Otherwise an explicit encoding wins over detection.
- Detection is best-effort via charset-normalizer; whatever it suggests
  must be known to the codec registry, else we fall back to UTF-8.
- Undecodable bytes are replaced so the reader can always proceed.
"""

from __future__ import annotations

import codecs
import logging
from typing import Optional, Tuple

from charset_normalizer import from_bytes

from .errors import ConfigurationError
from .rules import CHARSET_SAMPLE_SIZE, DEFAULT_ENCODING

logger = logging.getLogger(__name__)

# UTF-32 marks first: the UTF-32-LE mark starts with the UTF-16-LE one.
BOM_TABLE = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

# Failures a detector may raise on odd input; each maps to the default.
_DETECTION_ERRORS = (LookupError, UnicodeError, ValueError, TypeError, RuntimeError)


def registered_encoding(name: Optional[str]) -> Optional[str]:
    """Canonical codec name for ``name``, or None if the registry lacks it."""
    if not name:
        return None
    try:
        return codecs.lookup(name).name
    except LookupError:
        return None


def guess_charset(sample: bytes) -> str:
    try:
        match = from_bytes(sample[:CHARSET_SAMPLE_SIZE]).best()
    except _DETECTION_ERRORS as exc:
        logger.warning("Charset detection failed (%s: %s), using %s",
                       type(exc).__name__, exc, DEFAULT_ENCODING)
        return DEFAULT_ENCODING

    if match is None:
        return DEFAULT_ENCODING

    encoding = registered_encoding(match.encoding)
    if encoding is None:
        logger.warning("Detected charset %r is not available, using %s",
                       match.encoding, DEFAULT_ENCODING)
        return DEFAULT_ENCODING
    return encoding


def strip_bom(raw: bytes) -> Tuple[bytes, Optional[str]]:
    for bom, name in BOM_TABLE:
        if raw.startswith(bom):
            return raw[len(bom):], name
    return raw, None


def decode_bytes(raw: bytes, encoding: Optional[str] = None) -> Tuple[str, str]:
    """
    Decode ``raw`` to text, returning ``(text, encoding_used)``.

    An explicit ``encoding`` skips detection but a byte-order mark is
    stripped either way.
    """
    if encoding is not None:
        resolved = registered_encoding(encoding)
        if resolved is None:
            raise ConfigurationError(f"unknown encoding {encoding!r}")
        body, _ = strip_bom(raw)
    else:
        body, bom_encoding = strip_bom(raw)
        resolved = bom_encoding or guess_charset(body)

    logger.debug("Decoding %d bytes as %s", len(body), resolved)
    return body.decode(resolved, errors="replace"), resolved
