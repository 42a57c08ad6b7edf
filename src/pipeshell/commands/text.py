"""
Text commands: cat, echo and wc -l.

Each command is available as a plain function taking explicit streams and as
a filter factory (the ``*_filter`` functions) for use as a pipeline stage.
"""

import re
from typing import Any, Iterable

from pipeshell.core.config.models import DEFAULT_CHUNK_SIZE
from pipeshell.core.pipeline.interfaces import CharFilter, char_filter
from pipeshell.core.streams import LINE_TERMINATOR, copy_stream

_LINE_END = re.compile(r"\r\n|\r|\n")


def cat(sources: Iterable[Any], sink: Any) -> None:
    """Copy each of ``sources`` into ``sink``, in order. Nothing is closed."""
    for source in sources:
        copy_stream(source, sink)


def cat_filter() -> CharFilter[None]:
    """Character filter copying its source to its sink."""
    return char_filter(lambda source, sink: cat([source], sink), name="cat")


def echo(words: Iterable[str], sink: Any) -> None:
    """Write ``words`` separated by single spaces, then a line terminator."""
    sink.write(" ".join(words))
    sink.write(LINE_TERMINATOR)


def echo_filter(*words: str) -> CharFilter[None]:
    """Character filter that ignores its source and echoes ``words``."""
    return char_filter(lambda source, sink: echo(words, sink), name="echo")


def wc_l(source: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """
    Count the lines of a character stream.

    ``\\n``, ``\\r`` and ``\\r\\n`` all end a line, whatever newline handling
    the stream does. A trailing line without a terminator counts as a line.
    """
    count = 0
    carry = ""
    open_line = False
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        text = carry + chunk
        # A trailing CR may be the first half of a CRLF
        carry = "\r" if text.endswith("\r") else ""
        if carry:
            text = text[:-1]
        count += len(_LINE_END.findall(text))
        if text:
            open_line = text[-1] not in "\r\n"
        if carry:
            open_line = False
    if carry or open_line:
        count += 1
    return count


def _wc_l(source: Any, sink: Any) -> int:
    count = wc_l(source)
    sink.write(f"{count}{LINE_TERMINATOR}")
    return count


def wc_l_filter() -> CharFilter[int]:
    """Character filter writing its source's line count, returning the count."""
    return char_filter(_wc_l, name="wc -l")
