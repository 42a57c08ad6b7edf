"""
Glob Expansion

Walks the filesystem depth-first, children in sorted name order, collecting
every path a compiled pattern matches. Relative patterns are expanded among
the children of the context's working directory and produce relative paths;
patterns starting with ``/`` are expanded from the filesystem root.

Symbolic-link loops are not detected.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pipeshell.core.context import ShellContext
from pipeshell.glob.pattern import GlobPattern, compile_glob


logger = logging.getLogger(__name__)

ROOT = "/"


class GlobExpander:
    """Expands wildcard path expressions against a shell context."""

    def __init__(self, context: Optional[ShellContext] = None):
        self.context = context or ShellContext()

    def expand(self, glob: Union[str, GlobPattern]) -> List[Path]:
        """
        Expand ``glob`` into the matching paths, in traversal order.

        Args:
            glob: Pattern text or a compiled pattern

        Returns:
            Matching paths, spelled the way the pattern spells them

        Raises:
            GlobPatternError: If the pattern text is malformed
        """
        pattern = compile_glob(glob) if isinstance(glob, str) else glob

        if pattern.is_absolute:
            pending = [(Path(ROOT), ROOT)]
        else:
            base = self.context.cwd
            pending = [(base / name, name) for name in reversed(self._children(base))]

        results = self._walk(pattern, pending)
        logger.debug(f"Expanded {pattern.text!r} to {len(results)} path(s)")
        return results

    def _walk(self, pattern: GlobPattern, pending: List[Tuple[Path, str]]) -> List[Path]:
        results = []
        while pending:
            location, spelled = pending.pop()
            if pattern.matches(spelled):
                results.append(Path(spelled))
            if location.is_dir() and pattern.may_descend(spelled):
                children = self._children(location)
                # Reversed so the smallest name is popped first
                for name in reversed(children):
                    pending.append((location / name, _join(spelled, name)))
        return results

    def _children(self, directory: Path) -> List[str]:
        try:
            return sorted(os.listdir(directory))
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")
            return []


def _join(parent: str, name: str) -> str:
    if parent.endswith("/"):
        return parent + name
    return f"{parent}/{name}"


def expand(glob: Union[str, GlobPattern], context: Optional[ShellContext] = None) -> List[Path]:
    """Expand ``glob`` relative to ``context`` (the process's directory if omitted)."""
    return GlobExpander(context).expand(glob)
