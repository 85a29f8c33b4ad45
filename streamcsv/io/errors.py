"""Exceptions raised by the CSV reader and writer."""

from __future__ import annotations


class CsvError(Exception):
    """Base class for all codec errors."""


class CsvIOError(CsvError, OSError):
    """A file could not be opened, locked, unlocked, read, written or closed."""


class CsvSyntaxError(CsvError, ValueError):
    """
    A row does not have as many fields as the active header.

    Attributes:
        expected: Number of header fields
        found: Number of fields in the offending row
        line: Row number the mismatch was found on
    """

    def __init__(self, expected: int, found: int, line: int) -> None:
        self.expected = expected
        self.found = found
        self.line = line
        super().__init__(
            f"{expected} columns were expected but {found} were found on line {line}."
        )


class CsvLogicError(CsvError, TypeError):
    """The codec was used in a way its contract does not allow."""
