"""
File commands: cp, ls, ls -d and pwd.

Relative paths are resolved against a ShellContext rather than the process's
working directory. Listings write one entry per line using the platform line
terminator.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from pipeshell.core.context import ShellContext
from pipeshell.core.exceptions import not_found_error
from pipeshell.core.pipeline.interfaces import ByteFilter, CharFilter, byte_filter, char_filter
from pipeshell.core.streams import LINE_TERMINATOR, copy_stream
from pipeshell.glob.expander import expand


logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def _context(context: Optional[ShellContext]) -> ShellContext:
    return context or ShellContext()


def cp_filter() -> ByteFilter[int]:
    """Byte filter copying its source to its sink verbatim."""
    return byte_filter(copy_stream, name="cp")


def copy_file(source: PathLike, target: PathLike, context: Optional[ShellContext] = None) -> int:
    """
    Copy the contents of file ``source`` to file ``target``.

    Returns:
        Number of bytes copied

    Raises:
        PathNotFoundError: If ``source`` is not an existing file
    """
    context = _context(context)
    source_path = context.resolve(source)
    target_path = context.resolve(target)
    if not source_path.is_file():
        raise not_found_error(source)

    with open(source_path, 'rb') as reader, open(target_path, 'wb') as writer:
        copied = copy_stream(reader, writer)
    logger.debug(f"Copied {copied} bytes from {source_path} to {target_path}")
    return copied


def copy_to_dir(source: PathLike, directory: PathLike, context: Optional[ShellContext] = None) -> int:
    """Copy file ``source`` into ``directory``, keeping its name."""
    return copy_file(source, Path(directory) / Path(source).name, context)


def copy(sources: Sequence[PathLike], target: PathLike, context: Optional[ShellContext] = None) -> int:
    """
    Copy files the way ``cp`` does.

    A single source is copied to ``target`` unless ``target`` is a directory;
    otherwise every source is copied into the directory ``target``.

    Returns:
        Total number of bytes copied
    """
    context = _context(context)
    target_is_dir = context.resolve(target).is_dir()

    if len(sources) == 1 and not target_is_dir:
        return copy_file(sources[0], target, context)
    if sources and not target_is_dir:
        raise not_found_error(target, what="Directory")
    return sum(copy_to_dir(source, target, context) for source in sources)


def copy_glob(glob: str, target: PathLike, context: Optional[ShellContext] = None) -> int:
    """Copy every file matching ``glob`` to ``target`` (see :func:`copy`)."""
    context = _context(context)
    return copy(expand(glob, context), target, context)


def ls(paths: Optional[Sequence[PathLike]], sink: Any, context: Optional[ShellContext] = None) -> None:
    """
    List files and directories.

    Directories contribute their member names in sorted order; when more than
    one path is listed, each directory's members are preceded by a blank line
    and a ``path:`` header. Files contribute their own path.

    Raises:
        PathNotFoundError: If a path does not exist
    """
    context = _context(context)
    paths = list(paths) if paths else ["."]

    for path in paths:
        location = context.resolve(path)
        if location.is_dir():
            if len(paths) > 1:
                sink.write(f"{LINE_TERMINATOR}{path}:{LINE_TERMINATOR}")
            for name in sorted(os.listdir(location)):
                sink.write(f"{name}{LINE_TERMINATOR}")
        elif location.is_file():
            ls_d(path, sink)
        else:
            raise not_found_error(path)


def ls_filter(paths: Optional[Sequence[PathLike]] = None,
              context: Optional[ShellContext] = None) -> CharFilter[None]:
    """Character filter that ignores its source and lists ``paths``."""
    return char_filter(lambda source, sink: ls(paths, sink, context), name="ls")


def ls_d(path: PathLike, sink: Any) -> None:
    """Write ``path`` itself, as given."""
    sink.write(f"{os.fspath(path)}{LINE_TERMINATOR}")


def ls_d_filter(path: PathLike) -> CharFilter[None]:
    """Character filter that ignores its source and writes ``path``."""
    return char_filter(lambda source, sink: ls_d(path, sink), name="ls -d")


def pwd_filter(context: Optional[ShellContext] = None) -> CharFilter[str]:
    """Character filter writing the working directory, returning it as a string."""
    context = _context(context)

    def _pwd(source: Any, sink: Any) -> str:
        directory = str(context.pwd())
        sink.write(f"{directory}{LINE_TERMINATOR}")
        return directory

    return char_filter(_pwd, name="pwd")
