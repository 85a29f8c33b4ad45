"""
I/O module for streamcsv - reads and writes delimited text files.

- Strategy Pattern: InputReader/OutputWriter abstract base classes
- Factory Pattern: ReaderFactory/WriterFactory for creating readers/writers

Supported formats:
- CSV files
- TSV files
"""

from streamcsv.io.base import (
    STOP,
    CodecConfig,
    Continue,
    Header,
    HeaderMode,
    InputReader,
    OutputWriter,
    ReaderFactory,
    WriterFactory,
)
from streamcsv.io.csv_io import CSVReader, CSVWriter, TSVReader, TSVWriter
from streamcsv.io.encoding import EncodingConverter, detect_encoding
from streamcsv.io.errors import CsvError, CsvIOError, CsvLogicError, CsvSyntaxError
from streamcsv.io.locking import LockedFile

__all__ = [
    "STOP",
    "CodecConfig",
    "Continue",
    "Header",
    "HeaderMode",
    "InputReader",
    "OutputWriter",
    "ReaderFactory",
    "WriterFactory",
    "CSVReader",
    "CSVWriter",
    "TSVReader",
    "TSVWriter",
    "EncodingConverter",
    "detect_encoding",
    "CsvError",
    "CsvIOError",
    "CsvLogicError",
    "CsvSyntaxError",
    "LockedFile",
]
