"""Open files under an advisory ``flock`` lock."""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import BinaryIO

from streamcsv.io.errors import CsvIOError

logger = logging.getLogger(__name__)


class LockedFile:
    """
    A binary file handle holding a shared or exclusive advisory lock.

    The lock is taken when the object is created and dropped, together with
    the handle, by ``release()``. Locks only protect against processes that
    use the same convention.
    """

    def __init__(
        self,
        path: str | Path,
        mode: str = "rb",
        shared: bool = True,
        blocking: bool = True,
    ) -> None:
        self.path = Path(path)
        self.mode = mode
        self.shared = shared

        truncate = mode.startswith("w")
        try:
            self._handle: BinaryIO = self._open(truncate)
        except OSError as exc:
            raise CsvIOError(f'Unable to open the file "{self.path}".') from exc

        operation = fcntl.LOCK_SH if shared else fcntl.LOCK_EX
        if not blocking:
            operation |= fcntl.LOCK_NB

        try:
            fcntl.flock(self._handle.fileno(), operation)
        except OSError as exc:
            self._handle.close()
            kind = "shared" if shared else "exclusive"
            raise CsvIOError(
                f'Unable to acquire {kind} lock on file "{self.path}".'
            ) from exc

        if truncate:
            try:
                self._handle.truncate(0)
            except OSError as exc:
                self._handle.close()
                raise CsvIOError(f'Unable to truncate the file "{self.path}".') from exc

        self._closed = False
        logger.debug("Locked %s (%s)", self.path, "shared" if shared else "exclusive")

    def _open(self, truncate: bool) -> BinaryIO:
        if not truncate:
            return open(self.path, self.mode)  # noqa: SIM115
        # "w" would empty the file before the lock is held
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o666)
        try:
            return os.fdopen(fd, "r+b")
        except OSError:
            os.close(fd)
            raise

    @property
    def handle(self) -> BinaryIO:
        """The underlying binary file object."""
        return self._handle

    @property
    def closed(self) -> bool:
        return self._closed

    def release(self) -> None:
        """
        Unlock and close the file. Only the first call does anything.

        Closing is attempted even when unlocking fails.

        Raises:
            CsvIOError: If unlocking or closing failed
        """
        if self._closed:
            return
        self._closed = True

        try:
            try:
                if self._handle.writable():
                    self._handle.flush()
                fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
            finally:
                self._handle.close()
        except OSError as exc:
            raise CsvIOError(f'Unable to release lock on file "{self.path}".') from exc

        logger.debug("Released %s", self.path)
