"""
In-Memory Connectors

A connector links two adjacent pipeline stages the way an OS pipe links two
processes: a bounded, ordered buffer with exactly one writer end and one
reader end. Writing to a full connector blocks the writer, reading from an
empty one blocks the reader, reading after the writer end is closed drains
the buffer and then reports end-of-input, and writing after the reader end is
closed fails with BrokenConnectorError.
"""

import io
import itertools
import logging
import threading
from typing import Optional, Union

from pipeshell.core.config.models import DEFAULT_CONNECTOR_CAPACITY
from pipeshell.core.exceptions import BrokenConnectorError
from pipeshell.core.streams import StreamKind


logger = logging.getLogger(__name__)

_connector_ids = itertools.count(1)

Data = Union[bytes, str]


class Connector:
    """
    Bounded single-producer/single-consumer buffer between two stages.

    The ``reader`` and ``writer`` attributes are file objects: binary
    (``io.RawIOBase``) for ``StreamKind.BYTES`` and text (``io.TextIOBase``)
    for ``StreamKind.TEXT``. Each end is closed exactly once; closing it
    again has no effect.
    """

    def __init__(self, kind: StreamKind = StreamKind.BYTES,
                 capacity: Optional[int] = None,
                 name: Optional[str] = None):
        """
        Initialize the connector.

        Args:
            kind: Whether the connector carries bytes or characters
            capacity: Maximum number of buffered bytes/characters
            name: Name used in log messages and reprs
        """
        capacity = DEFAULT_CONNECTOR_CAPACITY if capacity is None else capacity
        if capacity < 1:
            raise ValueError(f"Connector capacity must be positive, got {capacity}")

        self.kind = kind
        self.capacity = capacity
        self.name = name or f"connector-{next(_connector_ids)}"

        self._buffer = bytearray() if kind is StreamKind.BYTES else ""
        self._cond = threading.Condition()
        self._writer_closed = False
        self._reader_closed = False

        if kind is StreamKind.BYTES:
            self.reader = ConnectorByteReader(self)
            self.writer = ConnectorByteWriter(self)
        else:
            self.reader = ConnectorTextReader(self)
            self.writer = ConnectorTextWriter(self)

    # ------------------------------------------------------------------
    # Buffer operations, called by the ends

    def _write(self, data: Data) -> int:
        offset = 0
        total = len(data)
        with self._cond:
            while offset < total:
                if self._reader_closed:
                    raise BrokenConnectorError(f"Reader end of {self.name} is closed")
                space = self.capacity - len(self._buffer)
                if space <= 0:
                    self._cond.wait()
                    continue
                self._buffer += data[offset:offset + space]
                offset += space
                self._cond.notify_all()
        return total

    def _read(self, size: int = -1, stop_at: Optional[Data] = None) -> Data:
        """
        Read up to ``size`` items, blocking while the buffer is empty.

        Returns the empty value at end-of-input. When ``stop_at`` is given,
        the result ends right after its first occurrence in the buffer.
        """
        if size == 0:
            return self.kind.empty
        with self._cond:
            while not self._buffer:
                if self._writer_closed:
                    return self.kind.empty
                self._cond.wait()

            n = len(self._buffer)
            if size is not None and size >= 0:
                n = min(n, size)
            if stop_at is not None:
                index = self._buffer.find(stop_at, 0, n)
                if index >= 0:
                    n = index + len(stop_at)

            data = self._buffer[:n]
            if self.kind is StreamKind.BYTES:
                data = bytes(data)
                del self._buffer[:n]
            else:
                self._buffer = self._buffer[n:]
            self._cond.notify_all()
            return data

    def _read_all(self) -> Data:
        parts = []
        while True:
            chunk = self._read()
            if not chunk:
                break
            parts.append(chunk)
        return self.kind.empty.join(parts)

    def _readline(self, size: int = -1) -> Data:
        newline = b"\n" if self.kind is StreamKind.BYTES else "\n"
        parts = []
        remaining = size if size is not None and size >= 0 else -1
        while remaining != 0:
            chunk = self._read(remaining, stop_at=newline)
            if not chunk:
                break
            parts.append(chunk)
            if remaining > 0:
                remaining -= len(chunk)
            if chunk.endswith(newline):
                break
        return self.kind.empty.join(parts)

    def _close_writer(self) -> None:
        with self._cond:
            if self._writer_closed:
                return
            self._writer_closed = True
            self._cond.notify_all()
        logger.debug(f"Closed writer end of {self.name}")

    def _close_reader(self) -> None:
        with self._cond:
            if self._reader_closed:
                return
            self._reader_closed = True
            # Nothing will ever drain the buffer again
            self._buffer = self._buffer[:0]
            self._cond.notify_all()
        logger.debug(f"Closed reader end of {self.name}")

    # ------------------------------------------------------------------

    @property
    def buffered(self) -> int:
        """Number of bytes/characters currently buffered."""
        with self._cond:
            return len(self._buffer)

    @property
    def writer_closed(self) -> bool:
        return self._writer_closed

    @property
    def reader_closed(self) -> bool:
        return self._reader_closed

    def __repr__(self) -> str:
        return (f"Connector(name='{self.name}', kind={self.kind.value}, "
                f"capacity={self.capacity}, buffered={self.buffered})")


class ConnectorByteReader(io.RawIOBase):
    """Reader end of a byte connector."""

    def __init__(self, connector: Connector):
        super().__init__()
        self.connector = connector

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        self._checkClosed()
        data = self.connector._read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def read(self, size: int = -1) -> bytes:
        self._checkClosed()
        if size is None or size < 0:
            return self.connector._read_all()
        return self.connector._read(size)

    def readall(self) -> bytes:
        return self.read()

    def readline(self, size: Optional[int] = -1) -> bytes:
        self._checkClosed()
        return self.connector._readline(size)

    def close(self) -> None:
        if not self.closed:
            self.connector._close_reader()
        super().close()

    def __repr__(self) -> str:
        return f"<ConnectorByteReader {self.connector.name}>"


class ConnectorByteWriter(io.RawIOBase):
    """Writer end of a byte connector."""

    def __init__(self, connector: Connector):
        super().__init__()
        self.connector = connector

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        self._checkClosed()
        return self.connector._write(bytes(b))

    def close(self) -> None:
        if not self.closed:
            self.connector._close_writer()
        super().close()

    def __repr__(self) -> str:
        return f"<ConnectorByteWriter {self.connector.name}>"


class ConnectorTextReader(io.TextIOBase):
    """Reader end of a character connector."""

    def __init__(self, connector: Connector):
        super().__init__()
        self.connector = connector

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> str:
        self._checkClosed()
        if size is None or size < 0:
            return self.connector._read_all()
        return self.connector._read(size)

    def readline(self, size: Optional[int] = -1) -> str:
        self._checkClosed()
        return self.connector._readline(size)

    def close(self) -> None:
        if not self.closed:
            self.connector._close_reader()
        super().close()

    def __repr__(self) -> str:
        return f"<ConnectorTextReader {self.connector.name}>"


class ConnectorTextWriter(io.TextIOBase):
    """Writer end of a character connector."""

    def __init__(self, connector: Connector):
        super().__init__()
        self.connector = connector

    def writable(self) -> bool:
        return True

    def write(self, s: str) -> int:
        self._checkClosed()
        if not isinstance(s, str):
            raise TypeError(f"write() argument must be str, not {type(s).__name__}")
        return self.connector._write(s)

    def close(self) -> None:
        if not self.closed:
            self.connector._close_writer()
        super().close()

    def __repr__(self) -> str:
        return f"<ConnectorTextWriter {self.connector.name}>"
