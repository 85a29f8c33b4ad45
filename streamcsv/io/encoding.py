"""
Character encoding detection and conversion.

Fields are decoded from a source encoding (given, or detected from the
content) and limited to what the target encoding can represent, replacing
anything else with ``?``.
"""

from __future__ import annotations

import codecs
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

EncodingDetector = Callable[[bytes], str]

DEFAULT_TARGET_ENCODING = "UTF-8"
FALLBACK_ENCODING = "latin-1"
SAMPLE_SIZE = 64 * 1024

_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def normalize_encoding(name: str) -> str:
    """
    Check that an encoding name is known and return it unchanged.

    Raises:
        ValueError: If Python has no codec for the name
    """
    try:
        codecs.lookup(name)
    except LookupError:
        raise ValueError(f"Unknown encoding: {name}")
    return name


def detect_encoding(sample: bytes) -> str:
    """
    Guess the encoding of a byte sample.

    Byte order marks win. Otherwise the sample is tried as UTF-8, and
    anything that is not valid UTF-8 is treated as latin-1, which can
    decode any byte sequence.
    """
    # UTF-32 LE starts with the UTF-16 LE mark, so it is checked first
    for bom, name in _BOMS:
        if sample.startswith(bom):
            return name

    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # final=False keeps a multibyte character cut by the sample end pending
        decoder.decode(sample, final=False)
    except UnicodeDecodeError:
        logger.warning("Content is not valid UTF-8, falling back to %s", FALLBACK_ENCODING)
        return FALLBACK_ENCODING
    return "utf-8"


def restrict_to(text: str, encoding: str) -> str:
    """Replace characters the encoding cannot represent with ``?``."""
    return text.encode(encoding, errors="replace").decode(encoding)


class EncodingConverter:
    """Convert field values from a source encoding to a target encoding."""

    def __init__(
        self,
        source_encoding: Optional[str],
        target_encoding: str = DEFAULT_TARGET_ENCODING,
        detector: EncodingDetector = detect_encoding,
    ) -> None:
        self.source_encoding = source_encoding
        self.target_encoding = target_encoding
        self.detector = detector

    def source_for(self, data: bytes) -> str:
        """Return the configured source encoding, or detect one from data."""
        if self.source_encoding is not None:
            return self.source_encoding
        return self.detector(data)

    def to_text(self, value: Any) -> str:
        """Turn a raw field value into text."""
        if value is None:
            return ""
        if isinstance(value, (bytes, bytearray)):
            data = bytes(value)
            return data.decode(self.source_for(data), errors="replace")
        if isinstance(value, str):
            return value
        return str(value)

    def convert(self, value: Any) -> str:
        """Decode a value and limit it to the target encoding."""
        return restrict_to(self.to_text(value), self.target_encoding)
