"""
Stream helpers shared by the pipeline engine and the commands.
"""

import locale
import logging
import os
from enum import Enum
from typing import Any, Optional

from pipeshell.core.config.models import DEFAULT_CHUNK_SIZE


logger = logging.getLogger(__name__)

LINE_TERMINATOR = os.linesep


class StreamKind(Enum):
    """The unit a stream carries."""
    BYTES = "bytes"   # Octet streams: read() -> bytes
    TEXT = "text"     # Character streams: read() -> str

    @property
    def empty(self):
        """The end-of-input value for this kind."""
        return b"" if self is StreamKind.BYTES else ""


def default_encoding() -> str:
    """Platform default text encoding."""
    return locale.getpreferredencoding(False)


def copy_stream(source: Any, sink: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """
    Copy ``source`` into ``sink`` verbatim until end-of-input.

    Works for both octet and character streams. Neither stream is closed.

    Returns:
        Number of bytes or characters copied
    """
    copied = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        sink.write(chunk)
        copied += len(chunk)
    sink.flush()
    return copied


def close_quietly(stream: Optional[Any]) -> None:
    """Close ``stream``, logging rather than raising a failing close."""
    if stream is None:
        return
    try:
        stream.close()
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring failure closing {stream!r}: {e}")
