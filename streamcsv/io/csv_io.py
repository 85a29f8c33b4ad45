"""CSV input/output handlers."""

from __future__ import annotations

import csv
import io
import logging
from contextlib import closing
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Tuple, TypeVar

from streamcsv.io.base import (
    CodecConfig,
    Header,
    HeaderMode,
    InputReader,
    OutputWriter,
    ReaderFactory,
    Row,
    WriteResult,
    WriterFactory,
    combine_row,
    unwrap_result,
)
from streamcsv.io.encoding import SAMPLE_SIZE, EncodingConverter, EncodingDetector, detect_encoding
from streamcsv.io.errors import CsvIOError, CsvLogicError
from streamcsv.io.locking import LockedFile

logger = logging.getLogger(__name__)

_C = TypeVar("_C", bound="_CSVCodec")


class _State(Enum):
    LOCKED = "locked"
    STREAMING = "streaming"
    CLOSED = "closed"


class _CSVCodec:
    """Configuration and lifecycle shared by the CSV reader and writer."""

    default_config = CodecConfig()

    path: Path
    _file: LockedFile

    def _setup(self, path: str | Path) -> None:
        self.path = Path(path)
        self._config = self.default_config
        self._detector: EncodingDetector = detect_encoding
        self._state = _State.LOCKED

    # -- configuration -------------------------------------------------

    @property
    def config(self) -> CodecConfig:
        return self._config

    @property
    def delimiter(self) -> str:
        return self._config.delimiter

    @property
    def enclosure(self) -> str:
        return self._config.enclosure

    @property
    def escape(self) -> Optional[str]:
        return self._config.escape

    @property
    def header(self) -> Header:
        return self._config.header

    @property
    def source_encoding(self) -> Optional[str]:
        return self._config.source_encoding

    @property
    def target_encoding(self) -> str:
        return self._config.target_encoding

    def _update(self: _C, **changes: Any) -> _C:
        self._config = self._config.with_changes(**changes)
        return self

    def set_delimiter(self: _C, delimiter: str) -> _C:
        return self._update(delimiter=delimiter)

    def set_enclosure(self: _C, enclosure: str) -> _C:
        return self._update(enclosure=enclosure)

    def set_escape(self: _C, escape: Optional[str]) -> _C:
        """Set the escape character, or None to disable escaping."""
        return self._update(escape=escape)

    def set_header(self: _C, header: Any) -> _C:
        return self._update(header=Header.coerce(header))

    def set_source_encoding(self: _C, encoding: Optional[str]) -> _C:
        """Set the source encoding, or None to detect it from the content."""
        return self._update(source_encoding=encoding)

    def set_target_encoding(self: _C, encoding: str) -> _C:
        return self._update(target_encoding=encoding)

    def set_encoding_detector(self: _C, detector: EncodingDetector) -> _C:
        """Replace the function used when no source encoding is set."""
        self._detector = detector
        return self

    # -- lifecycle -----------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._state is _State.CLOSED

    def _ensure_open(self) -> None:
        if self._state is _State.CLOSED:
            raise CsvLogicError(f'File "{self.path}" has already been closed.')

    def _begin(self) -> CodecConfig:
        """Enter the streaming state and return the settings to use for it."""
        self._ensure_open()
        if self._state is _State.STREAMING:
            raise CsvLogicError(f'File "{self.path}" is already being streamed.')
        self._state = _State.STREAMING
        return self._config

    def _finish(self) -> None:
        self._state = _State.CLOSED
        self._file.release()

    def close(self) -> None:
        if self._state is _State.CLOSED:
            return
        if self._state is _State.STREAMING:
            raise CsvLogicError(f'Cannot close "{self.path}" while it is being streamed.')
        self._finish()

    def _converter(self, config: CodecConfig) -> EncodingConverter:
        return EncodingConverter(config.source_encoding, config.target_encoding, self._detector)


class CSVReader(_CSVCodec, InputReader):
    """
    Read rows from a delimited file.

    The file is opened and share-locked on construction. ``read()`` consumes
    the whole file, then unlocks and closes it.

    Example:
        >>> reader = CSVReader("people.csv").set_header(True)
        >>> reader.read(lambda row, rownum: print(rownum, row["name"]))
    """

    def __init__(self, path: str | Path, blocking: bool = True) -> None:
        self._setup(path)
        self._file = LockedFile(self.path, "rb", shared=True, blocking=blocking)

    def count(self) -> int:
        """
        Count non-empty lines, minus one when a header is configured.

        Lines are split on the decoded text, so multi-byte encodings such as
        UTF-16 count the same lines ``read()`` sees. The current stream
        position is preserved.
        """
        self._ensure_open()
        config = self._config
        handle = self._file.handle
        offset = handle.tell()
        try:
            encoding = self._source_encoding(config)
            text = io.TextIOWrapper(handle, encoding=encoding, errors="replace", newline="")
            try:
                lines = sum(1 for line in text if line.rstrip("\r\n"))
            except OSError as exc:
                raise CsvIOError(f'Unable to read from file "{self.path}".') from exc
            finally:
                text.detach()
        finally:
            handle.seek(offset)

        if config.header.enabled:
            lines -= 1
        return max(lines, 0)

    def read(self, callback: Callable[[Row, int], Any]) -> int:
        """
        Parse the file and call ``callback(row, rownum)`` for each data row.

        Rows are lists of strings, or dicts keyed by column name when a
        header is configured. Blank lines are skipped.

        Returns:
            Number of rows passed to the callback

        Raises:
            CsvIOError: If the file cannot be read or released
            CsvSyntaxError: If a row does not match the header's field count
            CsvLogicError: If the reader was already used
        """
        config = self._begin()
        delivered = 0
        try:
            with closing(self._iter_rows(config)) as rows:
                for row, rownum in rows:
                    callback(row, rownum)
                    delivered += 1
        finally:
            self._finish()

        logger.info("Read %d rows from %s", delivered, self.path)
        return delivered

    def _source_encoding(self, config: CodecConfig) -> str:
        """Rewind and return the configured or detected source encoding."""
        handle = self._file.handle
        try:
            handle.seek(0)
            if config.source_encoding is not None:
                return config.source_encoding
            sample = handle.read(SAMPLE_SIZE)
            handle.seek(0)
        except OSError as exc:
            raise CsvIOError(f'Unable to read from file "{self.path}".') from exc

        encoding = self._detector(sample)
        logger.debug("Detected encoding %s for %s", encoding, self.path)
        return encoding

    def _iter_rows(self, config: CodecConfig) -> Iterator[Tuple[Row, int]]:
        encoding = self._source_encoding(config)
        text = io.TextIOWrapper(self._file.handle, encoding=encoding, errors="replace", newline="")
        try:
            lines = csv.reader(text, **config.dialect_options())
            yield from self._parse(lines, config, self._converter(config))
        finally:
            # leave the binary handle open for release()
            text.detach()

    def _parse(
        self,
        lines: Iterator[Sequence[str]],
        config: CodecConfig,
        converter: EncodingConverter,
    ) -> Iterator[Tuple[Row, int]]:
        header = config.header
        names = header.names
        from_file = header.mode is HeaderMode.AUTO or header.replace_file_header

        # A header always owns index 0, even when it is not read from the file
        rownum = 1 if header.enabled and not from_file else 0

        while True:
            try:
                fields = next(lines)
            except StopIteration:
                return
            except (csv.Error, OSError) as exc:
                raise CsvIOError(f'Unable to read from file "{self.path}".') from exc

            if not fields:
                continue

            fields = [converter.convert(value) for value in fields]

            if from_file and rownum == 0:
                if header.mode is HeaderMode.AUTO:
                    names = tuple(fields)
                logger.debug("Using header %s for %s", names, self.path)
                rownum += 1
                continue

            row: Row = combine_row(names, fields, rownum) if names else fields
            yield row, rownum
            rownum += 1


class CSVWriter(_CSVCodec, OutputWriter):
    """
    Write rows to a delimited file.

    The file is opened (truncated with mode ``"w"``, appended to with
    ``"a"``) and exclusively locked on construction.
    """

    def __init__(
        self,
        path: str | Path,
        mode: str = "w",
        blocking: bool = True,
    ) -> None:
        if mode not in ("w", "a"):
            raise ValueError(f"Unsupported mode {mode!r}, use 'w' or 'a'")
        self._setup(path)
        self.mode = mode
        self._file = LockedFile(self.path, mode + "b", shared=False, blocking=blocking)

    def set_header(self: _C, header: Any) -> _C:
        header = Header.coerce(header)
        if header.mode is HeaderMode.AUTO:
            raise CsvLogicError("Writers need explicit header names, there is nothing to detect.")
        return self._update(header=header)

    def write(self, iterable: Iterable[Any], callback: Callable[[Any, int], WriteResult]) -> int:
        """
        Write the header, if any, then one row per item.

        ``callback(item, rownum)`` returns the row's fields (a list, a tuple
        or ``Continue(fields)``), or ``STOP`` to end early.

        Returns:
            Number of data rows written

        Raises:
            CsvIOError: If the file cannot be written or released
            CsvSyntaxError: If a row does not match the header's field count
            CsvLogicError: If the callback returns anything else
        """
        config = self._begin()
        try:
            text = io.TextIOWrapper(
                self._file.handle,
                encoding=config.target_encoding,
                errors="replace",
                newline="",
            )
            try:
                written = self._write_rows(text, iterable, callback, config)
            finally:
                self._detach(text)
        finally:
            self._finish()

        logger.info("Wrote %d rows to %s", written, self.path)
        return written

    def _write_rows(
        self,
        text: io.TextIOWrapper,
        iterable: Iterable[Any],
        callback: Callable[[Any, int], WriteResult],
        config: CodecConfig,
    ) -> int:
        converter = self._converter(config)
        names = [converter.convert(name) for name in config.header.names]
        options = config.dialect_options()

        writer: Any
        if names:
            writer = csv.DictWriter(text, fieldnames=names, **options)
            self._emit(writer.writeheader)
        else:
            writer = csv.writer(text, **options)

        rownum = 1
        for item in iterable:
            fields = unwrap_result(callback(item, rownum))
            if fields is None:
                logger.debug("Callback stopped writing to %s at row %d", self.path, rownum)
                break

            fields = [converter.convert(value) for value in fields]
            row: Row = combine_row(names, fields, rownum) if names else fields
            self._emit(writer.writerow, row)
            rownum += 1

        return rownum - 1

    def _emit(self, write: Callable[..., Any], *args: Any) -> None:
        try:
            write(*args)
        except (csv.Error, OSError) as exc:
            raise CsvIOError(f'Unable to write line to file "{self.path}".') from exc

    def _detach(self, text: io.TextIOWrapper) -> None:
        try:
            text.detach()
        except OSError as exc:
            raise CsvIOError(f'Unable to write to file "{self.path}".') from exc


class TSVReader(CSVReader):
    """CSVReader preset for tab-separated files."""

    default_config = CodecConfig(delimiter="\t")


class TSVWriter(CSVWriter):
    """CSVWriter preset for tab-separated files."""

    default_config = CodecConfig(delimiter="\t")


# Register with factories
ReaderFactory.register("csv", CSVReader)
ReaderFactory.register("tsv", TSVReader)
WriterFactory.register("csv", CSVWriter)
WriterFactory.register("tsv", TSVWriter)
