"""
Base classes and interfaces for reading and writing delimited files.

Implements Strategy Pattern for the reader/writer interfaces and
Factory Pattern for creating readers/writers by format name.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from streamcsv.io.encoding import DEFAULT_TARGET_ENCODING, normalize_encoding
from streamcsv.io.errors import CsvLogicError, CsvSyntaxError

Row = Union[List[str], Dict[str, str]]


class HeaderMode(Enum):
    """How the first line of a file relates to column names."""
    DISABLED = "disabled"
    AUTO = "auto"
    FIXED = "fixed"


@dataclass(frozen=True)
class Header:
    """
    Column names associated with the rows of a file.

    Use the ``disabled()``, ``auto()`` and ``fixed()`` constructors rather
    than building instances directly.
    """
    mode: HeaderMode = HeaderMode.DISABLED
    names: Tuple[str, ...] = ()
    # Reader only: drop the file's own header line and use ``names`` instead
    replace_file_header: bool = False

    @classmethod
    def disabled(cls) -> "Header":
        return cls(HeaderMode.DISABLED)

    @classmethod
    def auto(cls) -> "Header":
        return cls(HeaderMode.AUTO)

    @classmethod
    def fixed(cls, names: Iterable[str], replace_file_header: bool = False) -> "Header":
        """
        Use the given column names.

        By default every line of the file is data. To read back a file that
        was written with the same names, pass ``replace_file_header=True``
        so its header line is skipped instead of delivered as a row.
        """
        names = tuple(names)
        if not names:
            raise ValueError("A fixed header needs at least one column name")
        return cls(HeaderMode.FIXED, names, replace_file_header)

    @classmethod
    def coerce(cls, value: Any) -> "Header":
        """
        Build a Header from the loose forms accepted by ``set_header()``.

        ``None``/``False`` disable the header, ``True`` reads it from the
        file and a sequence of strings gives the column names.
        """
        if isinstance(value, Header):
            return value
        if value is None or value is False:
            return cls.disabled()
        if value is True:
            return cls.auto()
        if isinstance(value, (str, bytes)):
            raise ValueError("Header names must be a sequence of strings, not a single string")
        return cls.fixed(value)

    @property
    def enabled(self) -> bool:
        return self.mode is not HeaderMode.DISABLED


@dataclass(frozen=True)
class CodecConfig:
    """
    Delimiter, quoting, header and encoding settings shared by readers and writers.

    Enclosures inside quoted fields are doubled (RFC 4180), so backslashes
    are ordinary data by default. Setting ``escape`` hands the character to
    the ``csv`` module, which then treats it as an escape everywhere:
    it is dropped from parsed fields and written before special characters.
    """
    delimiter: str = ","
    enclosure: str = '"'
    escape: Optional[str] = None
    header: Header = field(default_factory=Header.disabled)
    source_encoding: Optional[str] = None  # None: detect from content
    target_encoding: str = DEFAULT_TARGET_ENCODING

    def __post_init__(self) -> None:
        for name in ("delimiter", "enclosure"):
            value = getattr(self, name)
            if not isinstance(value, str) or len(value) != 1:
                raise ValueError(f"{name} must be a single character, got {value!r}")
        if self.escape is not None and (not isinstance(self.escape, str) or len(self.escape) != 1):
            raise ValueError(f"escape must be a single character or None, got {self.escape!r}")
        if self.delimiter == self.enclosure:
            raise ValueError("delimiter and enclosure must differ")
        if self.source_encoding is not None:
            normalize_encoding(self.source_encoding)
        normalize_encoding(self.target_encoding)

    def with_changes(self, **changes: Any) -> "CodecConfig":
        """Return a validated copy with some settings changed."""
        return replace(self, **changes)

    def dialect_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``csv.reader``/``csv.writer``."""
        return {
            "delimiter": self.delimiter,
            "quotechar": self.enclosure,
            "escapechar": self.escape,
            "doublequote": True,
            "lineterminator": "\n",
        }


class _Stop:
    """Type of the ``STOP`` sentinel."""

    _instance: Optional["_Stop"] = None

    def __new__(cls) -> "_Stop":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "STOP"


STOP = _Stop()


@dataclass(frozen=True)
class Continue:
    """Writer callback result carrying the fields of the next row."""
    fields: Sequence[Any]


WriteResult = Union[Continue, _Stop, List[Any], Tuple[Any, ...]]


def unwrap_result(result: Any) -> Optional[Sequence[Any]]:
    """
    Interpret a writer callback result.

    Returns:
        The row fields, or None if the callback asked to stop

    Raises:
        CsvLogicError: If the result is neither fields nor ``STOP``
    """
    if result is STOP:
        return None
    if isinstance(result, Continue):
        result = result.fields
    if isinstance(result, (list, tuple)):
        return result
    raise CsvLogicError(
        f"Callback must return a list or tuple of fields, Continue(...) or STOP, "
        f"got {type(result).__name__}"
    )


def combine_row(header: Sequence[str], fields: Sequence[str], line: int) -> Dict[str, str]:
    """
    Key row fields by header names.

    Raises:
        CsvSyntaxError: If the field count differs from the header's
    """
    if len(fields) != len(header):
        raise CsvSyntaxError(len(header), len(fields), line)
    return dict(zip(header, fields))


class InputReader(ABC):
    """
    Abstract base class for row readers (Strategy Pattern).

    A reader owns its file handle from construction until ``read()``
    finishes or ``close()`` is called.
    """

    @abstractmethod
    def read(self, callback: Callable[[Row, int], Any]) -> int:
        """
        Parse every row and pass it to ``callback(row, rownum)``.

        Returns:
            Number of rows delivered
        """

    @abstractmethod
    def count(self) -> int:
        """Return the number of data lines in the file."""

    @abstractmethod
    def close(self) -> None:
        """Release the lock and close the file if still open."""

    def __enter__(self) -> "InputReader":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class OutputWriter(ABC):
    """
    Abstract base class for row writers (Strategy Pattern).
    """

    @abstractmethod
    def write(self, iterable: Iterable[Any], callback: Callable[[Any, int], WriteResult]) -> int:
        """
        Serialize one row per item, as returned by ``callback(item, rownum)``.

        Returns:
            Number of rows written, not counting the header
        """

    @abstractmethod
    def close(self) -> None:
        """Release the lock and close the file if still open."""

    def __enter__(self) -> "OutputWriter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def _lookup(registry: Dict[str, Any], fmt: str) -> Any:
    try:
        return registry[fmt.lower()]
    except KeyError:
        known = ", ".join(sorted(registry)) or "none"
        raise ValueError(f"Unknown format {fmt!r} (registered: {known})") from None


class ReaderFactory:
    """
    Factory for creating InputReader instances by format name.
    """

    _readers: Dict[str, Type[InputReader]] = {}

    @classmethod
    def register(cls, fmt: str, reader_class: Type[InputReader]) -> None:
        """Register a reader class for a format name."""
        cls._readers[fmt.lower()] = reader_class

    @classmethod
    def create(cls, fmt: str, **kwargs: Any) -> InputReader:
        """
        Open a reader for the given format.

        Args:
            fmt: Format name ('csv', 'tsv'), case-insensitive
            **kwargs: Reader constructor arguments (path, blocking)

        Raises:
            ValueError: If no reader is registered for fmt
        """
        return _lookup(cls._readers, fmt)(**kwargs)

    @classmethod
    def available_types(cls) -> List[str]:
        return list(cls._readers)


class WriterFactory:
    """
    Factory for creating OutputWriter instances by format name.
    """

    _writers: Dict[str, Type[OutputWriter]] = {}

    @classmethod
    def register(cls, fmt: str, writer_class: Type[OutputWriter]) -> None:
        cls._writers[fmt.lower()] = writer_class

    @classmethod
    def create(cls, fmt: str, **kwargs: Any) -> OutputWriter:
        """Open a writer for the given format (path, mode, blocking)."""
        return _lookup(cls._writers, fmt)(**kwargs)

    @classmethod
    def available_types(cls) -> List[str]:
        return list(cls._writers)
