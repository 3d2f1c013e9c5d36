# ========================
# src/ingest/source.py
# ========================

"""
Flow-Controlled Source

Wraps a binary stream with pause/resume/abort so the write scheduler can
apply backpressure to the reader without knowing what the stream is.
"""

import io
import logging
import threading
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import IngestionStopped

logger = logging.getLogger(__name__)


class FlowControlledSource(io.RawIOBase):
    """
    A readable byte source that can be paused, resumed and aborted from
    other threads. Reads block while paused and fail once aborted.
    """

    def __init__(self, stream: BinaryIO, name: Optional[str] = None):
        """
        Args:
            stream: Any binary file-like object with a ``read(n)`` method
            name (str): Label used in log messages
        """
        super().__init__()
        self._stream = stream
        self.name = name or str(getattr(stream, 'name', '<stream>'))
        self._flow = threading.Condition()
        self._paused = False
        self._aborted = False
        self._abort_cause: Optional[BaseException] = None

    @classmethod
    def from_path(cls, file_path: Union[str, Path]) -> 'FlowControlledSource':
        """Open a file on disk as a flow-controlled source."""
        return cls(open(file_path, 'rb'), name=str(file_path))

    @property
    def is_paused(self) -> bool:
        with self._flow:
            return self._paused

    @property
    def is_aborted(self) -> bool:
        with self._flow:
            return self._aborted

    def pause(self) -> None:
        """Suspend reads until ``resume`` or ``abort`` is called."""
        with self._flow:
            if self._paused or self._aborted:
                return
            self._paused = True
        logger.debug(f"Source {self.name} paused")

    def resume(self) -> None:
        """Let a paused reader continue."""
        with self._flow:
            if not self._paused:
                return
            self._paused = False
            self._flow.notify_all()
        logger.debug(f"Source {self.name} resumed")

    def abort(self, cause: Optional[BaseException] = None) -> None:
        """
        Stop the source for good. Blocked and future reads raise
        IngestionStopped. The underlying stream stays open until ``close``.
        """
        with self._flow:
            if self._aborted:
                return
            self._aborted = True
            self._paused = False
            self._abort_cause = cause
            self._flow.notify_all()
        if cause is not None:
            logger.info(f"Source {self.name} aborted: {cause}")

    def wait_until_readable(self) -> None:
        """Block while paused; raise IngestionStopped if aborted."""
        with self._flow:
            while self._paused and not self._aborted:
                self._flow.wait()
            if self._aborted:
                raise IngestionStopped(self._abort_cause)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        self.wait_until_readable()
        data = self._stream.read(len(buffer))
        if not data:
            return 0
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        """Release the wrapped stream. Safe to call more than once."""
        if self.closed:
            return
        try:
            with self._flow:
                self._aborted = True
                self._flow.notify_all()
            self._stream.close()
            logger.debug(f"Source {self.name} closed")
        finally:
            super().close()
