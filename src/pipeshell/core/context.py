"""
Shell Execution Context

Holds the "current directory" and related state that shell-style commands
resolve paths against. Each context is an explicit value passed to the glob
engine and the commands; changing directory never touches process-global state.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union, TYPE_CHECKING

from pipeshell.core.exceptions import not_a_directory_error, not_found_error

if TYPE_CHECKING:
    from pipeshell.core.config.models import AppConfig


logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass
class ShellContext:
    """
    Working-directory state for path resolution.

    Attributes:
        cwd: Absolute current directory
        home: Directory that ``cd()`` without arguments changes to
        environment: Environment variables passed to launched processes
    """
    cwd: Path = field(default_factory=Path.cwd)
    home: Path = field(default_factory=Path.home)
    environment: Dict[str, str] = field(default_factory=lambda: dict(os.environ))

    def __post_init__(self):
        self.cwd = Path(self.cwd).absolute()
        self.home = Path(self.home).absolute()

    @classmethod
    def from_config(cls, config: 'AppConfig') -> 'ShellContext':
        """Create a context whose directory comes from the application config."""
        context = cls()
        if config.working_directory is not None:
            context.cd(config.working_directory)
        return context

    def resolve(self, path: PathLike) -> Path:
        """Resolve ``path`` against the current directory (absolute paths pass through)."""
        return self.cwd / Path(path)

    def pwd(self) -> Path:
        """Return the current directory."""
        return self.cwd

    def cd(self, path: Optional[PathLike] = None) -> Path:
        """
        Change the current directory.

        Args:
            path: Target directory, relative to the current one; home if omitted

        Returns:
            The new current directory

        Raises:
            PathNotFoundError: If the target does not exist or is not a directory
        """
        target = self.home if path is None else self.resolve(path)
        if not target.exists():
            raise not_found_error(target, what="Directory")
        if not target.is_dir():
            raise not_a_directory_error(target)

        self.cwd = Path(os.path.normpath(target))
        logger.debug(f"Changed directory to {self.cwd}")
        return self.cwd

    def copy(self) -> 'ShellContext':
        """Return an independent copy of this context."""
        return ShellContext(cwd=self.cwd, home=self.home, environment=dict(self.environment))
