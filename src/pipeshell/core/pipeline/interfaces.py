"""
Pipeline Architecture Interfaces

Abstract base classes for the Pipeline & Filter pattern. A filter transforms
a source stream into a sink stream and produces a typed result. Filters come
in two variants: octet-oriented (ByteFilter) and character-oriented
(CharFilter). A character filter can be adapted to the octet variant with
``as_byte_filter()``.

Filters never close their source or sink; closing is the pipeline's job.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar

from pipeshell.core.streams import StreamKind, default_encoding


T = TypeVar('T')

logger = logging.getLogger(__name__)


class Filter(ABC, Generic[T]):
    """
    Abstract base class for all stream filters.

    ``execute`` consumes the source until exhaustion (or until the filter's
    own logic decides to stop), writes derived data to the sink and returns
    a result. Failures are raised as exceptions.
    """

    kind: StreamKind

    @property
    def name(self) -> str:
        """Human-readable name of the filter."""
        return self.__class__.__name__

    @abstractmethod
    def execute(self, source: Any, sink: Any) -> T:
        """
        Run the filter.

        Args:
            source: Stream to read from (binary or text, according to ``kind``)
            sink: Stream to write to (binary or text, according to ``kind``)

        Returns:
            The filter's result
        """
        pass

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', kind={self.kind.value})"


class ByteFilter(Filter[T]):
    """Filter over octet streams."""

    kind = StreamKind.BYTES


class CharFilter(Filter[T]):
    """Filter over character streams."""

    kind = StreamKind.TEXT

    def as_byte_filter(self, input_encoding: Optional[str] = None,
                       output_encoding: Optional[str] = None) -> 'ByteFilter[T]':
        """
        Expose this filter as an octet filter.

        Args:
            input_encoding: Encoding for decoding the source (platform default if None)
            output_encoding: Encoding for encoding the sink (platform default if None)
        """
        return CharToByteAdapter(self, input_encoding, output_encoding)


class CharToByteAdapter(ByteFilter[T]):
    """
    Runs a CharFilter against octet streams.

    The source is decoded and the sink encoded with text wrappers that are
    flushed and detached when the delegate finishes, so the underlying
    streams stay open.
    """

    def __init__(self, delegate: CharFilter[T],
                 input_encoding: Optional[str] = None,
                 output_encoding: Optional[str] = None):
        self.delegate = delegate
        self.input_encoding = input_encoding
        self.output_encoding = output_encoding

    @property
    def name(self) -> str:
        return self.delegate.name

    def execute(self, source: Any, sink: Any) -> T:
        reader = io.TextIOWrapper(source, encoding=self.input_encoding or default_encoding(), newline="")
        writer = io.TextIOWrapper(sink, encoding=self.output_encoding or default_encoding(), newline="")
        try:
            result = self.delegate.execute(reader, writer)
        except Exception:
            # The delegate's error is the one the caller sees
            _flush_quietly(writer)
            _detach(writer, quiet=True)
            _detach(reader, quiet=True)
            raise

        try:
            if not writer.closed:
                writer.flush()
        finally:
            _detach(writer)
            _detach(reader)
        return result


def _flush_quietly(wrapper: io.TextIOWrapper) -> None:
    if wrapper.closed:
        return
    try:
        wrapper.flush()
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring failure flushing partial output: {e}")


def _detach(wrapper: io.TextIOWrapper, quiet: bool = False) -> None:
    # A detached wrapper no longer closes the wrapped stream when collected
    if wrapper.closed:
        return
    try:
        wrapper.detach()
    except (OSError, ValueError) as e:
        if not quiet:
            raise
        logger.debug(f"Ignoring failure detaching {wrapper!r}: {e}")


class FunctionByteFilter(ByteFilter[T]):
    """ByteFilter backed by a plain callable ``fn(source, sink)``."""

    def __init__(self, fn: Callable[[Any, Any], T], name: Optional[str] = None):
        self.fn = fn
        self._name = name or getattr(fn, '__name__', 'byte_filter')

    @property
    def name(self) -> str:
        return self._name

    def execute(self, source: Any, sink: Any) -> T:
        return self.fn(source, sink)


class FunctionCharFilter(CharFilter[T]):
    """CharFilter backed by a plain callable ``fn(source, sink)``."""

    def __init__(self, fn: Callable[[Any, Any], T], name: Optional[str] = None):
        self.fn = fn
        self._name = name or getattr(fn, '__name__', 'char_filter')

    @property
    def name(self) -> str:
        return self._name

    def execute(self, source: Any, sink: Any) -> T:
        return self.fn(source, sink)


def byte_filter(fn: Callable[[Any, Any], T], name: Optional[str] = None) -> ByteFilter[T]:
    """Wrap a callable as a ByteFilter. Usable as a decorator."""
    return FunctionByteFilter(fn, name)


def char_filter(fn: Callable[[Any, Any], T], name: Optional[str] = None) -> CharFilter[T]:
    """Wrap a callable as a CharFilter. Usable as a decorator."""
    return FunctionCharFilter(fn, name)
