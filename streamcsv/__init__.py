"""
streamcsv - streaming CSV reader and writer

Parses delimited text files row by row into lists or header-keyed dicts,
and serializes iterables of records back to delimited text, with
character encoding conversion and advisory file locking.
"""

__version__ = "1.0.0"

from streamcsv.io import (
    STOP,
    CSVReader,
    CSVWriter,
    Continue,
    CsvError,
    CsvIOError,
    CsvLogicError,
    CsvSyntaxError,
    Header,
)

__all__ = [
    "STOP",
    "CSVReader",
    "CSVWriter",
    "Continue",
    "CsvError",
    "CsvIOError",
    "CsvLogicError",
    "CsvSyntaxError",
    "Header",
    "__version__",
]
