"""
Command Factory for creating pipeline stages from textual specifications.

A stage specification is a shell-like command line such as ``"sed [aeiou] i"``
or ``"wc -l"``. Specifications are split with shell quoting rules and looked
up in a registry of command builders. Every built stage is a ByteFilter;
character commands are adapted with the configured encodings.
"""

import logging
import shlex
from typing import Callable, Dict, List, Optional

from pipeshell.commands.files import cp_filter, ls_d_filter, ls_filter, pwd_filter
from pipeshell.commands.process import exec_filter
from pipeshell.commands.sed import substitute_all_filter, substitute_first_filter
from pipeshell.commands.text import echo_filter, wc_l_filter
from pipeshell.core.config.models import PipelineConfig
from pipeshell.core.context import ShellContext
from pipeshell.core.exceptions import ErrorCode, RecoverySuggestion, ValidationError
from pipeshell.core.pipeline.interfaces import ByteFilter, CharFilter, Filter, byte_filter


logger = logging.getLogger(__name__)

Builder = Callable[['CommandFactory', List[str]], Filter]


def _usage_error(command: str, usage: str) -> ValidationError:
    error = ValidationError(
        f"Invalid arguments for '{command}'",
        error_code=ErrorCode.VALIDATION_FORMAT_ERROR,
        field_name="stage",
        field_value=command
    )
    error.add_suggestion(RecoverySuggestion(
        action="Check the stage syntax",
        description=f"Usage: {usage}",
        priority=1
    ))
    return error


def _build_cat(factory: 'CommandFactory', args: List[str]) -> Filter:
    if not args:
        return cp_filter()
    paths = [factory.context.resolve(arg) for arg in args]

    def _cat_files(source, sink) -> int:
        copied = 0
        for path in paths:
            with open(path, 'rb') as reader:
                copied += cp_filter().execute(reader, sink)
        return copied

    return byte_filter(_cat_files, name="cat " + " ".join(args))


def _build_echo(factory: 'CommandFactory', args: List[str]) -> Filter:
    return echo_filter(*args)


def _build_sed(factory: 'CommandFactory', args: List[str]) -> Filter:
    first = bool(args) and args[0] in ("-1", "--first")
    if first:
        args = args[1:]
    if len(args) != 2:
        raise _usage_error("sed", "sed [-1|--first] PATTERN REPLACEMENT")
    if first:
        return substitute_first_filter(args[0], args[1])
    return substitute_all_filter(args[0], args[1])


def _build_wc(factory: 'CommandFactory', args: List[str]) -> Filter:
    if args not in ([], ["-l"]):
        raise _usage_error("wc", "wc [-l]")
    return wc_l_filter()


def _build_ls(factory: 'CommandFactory', args: List[str]) -> Filter:
    if args and args[0] == "-d":
        if len(args) != 2:
            raise _usage_error("ls", "ls -d PATH")
        return ls_d_filter(args[1])
    return ls_filter(args or None, factory.context)


def _build_pwd(factory: 'CommandFactory', args: List[str]) -> Filter:
    if args:
        raise _usage_error("pwd", "pwd")
    return pwd_filter(factory.context)


def _build_exec(factory: 'CommandFactory', args: List[str]) -> Filter:
    if not args:
        raise _usage_error("exec", "exec PROGRAM [ARGUMENT...]")
    return exec_filter(args, factory.context)


class CommandFactory:
    """
    Factory class for creating pipeline stages from stage specifications.

    Builders can be added with :meth:`register`; the built-in commands are
    cat, echo, sed, wc, ls, pwd and exec.
    """

    COMMAND_REGISTRY: Dict[str, Builder] = {
        'cat': _build_cat,
        'echo': _build_echo,
        'sed': _build_sed,
        'wc': _build_wc,
        'ls': _build_ls,
        'pwd': _build_pwd,
        'exec': _build_exec,
    }

    def __init__(self, context: Optional[ShellContext] = None,
                 config: Optional[PipelineConfig] = None):
        """
        Initialize the command factory.

        Args:
            context: Shell context commands resolve paths against
            config: Pipeline settings supplying the text encodings
        """
        self.context = context or ShellContext()
        self.config = config or PipelineConfig()
        self._registry: Dict[str, Builder] = dict(self.COMMAND_REGISTRY)

    def register(self, name: str, builder: Builder) -> None:
        """Register (or replace) the builder for command ``name``."""
        self._registry[name] = builder

    @property
    def commands(self) -> List[str]:
        return sorted(self._registry)

    def create_stage(self, spec: str) -> ByteFilter:
        """
        Build one byte stage from a specification.

        Raises:
            ValidationError: If the specification is empty, malformed or
                names an unknown command
        """
        try:
            words = shlex.split(spec)
        except ValueError as e:
            raise ValidationError(
                f"Cannot parse stage '{spec}': {e}",
                error_code=ErrorCode.VALIDATION_FORMAT_ERROR,
                field_name="stage",
                field_value=spec,
                cause=e
            ) from e

        if not words:
            raise ValidationError("Empty stage specification", field_name="stage", field_value=spec)

        name, args = words[0], words[1:]
        if name not in self._registry:
            available = ', '.join(self.commands)
            raise ValidationError(
                f"Unknown command '{name}'. Available commands: {available}",
                field_name="stage",
                field_value=spec
            )

        stage = self._registry[name](self, args)
        logger.debug(f"Created stage {stage.name!r} from {spec!r}")
        return self._as_bytes(stage)

    def create_stages(self, specs: List[str]) -> List[ByteFilter]:
        """Build a byte stage for every specification, in order."""
        return [self.create_stage(spec) for spec in specs]

    def _as_bytes(self, stage: Filter) -> ByteFilter:
        if isinstance(stage, CharFilter):
            return stage.as_byte_filter(self.config.input_encoding, self.config.output_encoding)
        return stage
