"""
Core Exception Hierarchy for pipeshell

Every error raised by pipeshell carries a numeric code, the context it was
raised in (operation, stage, path or command, thread) and optional recovery
suggestions that the CLI renders for the user. Errors that correspond to a
standard Python I/O condition (broken pipe, missing file) also derive from
the matching built-in exception, so callers can catch either.
"""

import threading
import time
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Numeric error codes, grouped by area."""

    # Streams and connectors (1000-1999)
    STREAM_READ_FAILED = 1001
    STREAM_WRITE_FAILED = 1002
    STREAM_CLOSE_FAILED = 1003
    CONNECTOR_BROKEN = 1004
    CONNECTOR_CLOSED = 1005

    # Configuration (3000-3999)
    CONFIG_INVALID_FORMAT = 3001
    CONFIG_MISSING_REQUIRED = 3002
    CONFIG_INVALID_VALUE = 3003
    CONFIG_FILE_NOT_FOUND = 3004
    CONFIG_SCHEMA_VALIDATION = 3006

    # Pipeline composition (4000-4999)
    PIPELINE_INVALID_STAGE = 4001
    PIPELINE_KIND_MISMATCH = 4002
    PIPELINE_STAGE_FAILED = 4003

    # Input validation (5000-5999)
    VALIDATION_INVALID_INPUT = 5001
    VALIDATION_FORMAT_ERROR = 5005
    VALIDATION_INVALID_PATTERN = 5007

    # Filesystem (6000-6999)
    FS_FILE_NOT_FOUND = 6001
    FS_PERMISSION_DENIED = 6002
    FS_NOT_A_DIRECTORY = 6007

    # External processes (7000-7999)
    PROCESS_LAUNCH_FAILED = 7001
    PROCESS_INTERRUPTED = 7002

    # Unclassified (9000-9999)
    UNKNOWN_ERROR = 9000
    INTERNAL_ERROR = 9001
    OPERATION_CANCELLED = 9002


@dataclass
class ErrorContext:
    """Where an error happened."""

    operation: str = ""
    stage: str = ""
    stage_index: Optional[int] = None
    path: Optional[str] = None
    command: Optional[List[str]] = None
    thread: str = field(default_factory=lambda: threading.current_thread().name)
    correlation_id: Optional[str] = None
    raised_at: float = field(default_factory=time.time)
    user_context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RecoverySuggestion:
    """Something the user can do about an error."""

    action: str
    description: str
    command: Optional[str] = None   # pipeshell invocation that helps, if any
    priority: int = 1               # 1 is shown first

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PipeShellError(Exception):
    """
    Base exception for all pipeshell errors.

    Attributes:
        message: Human-readable description
        error_code: ErrorCode classifying the error
        context: ErrorContext of the raising site
        cause: Underlying exception, if any
        recoverable: False when retrying the same operation cannot help
        suggestions: RecoverySuggestions, highest priority first
    """

    default_code = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None,
        recoverable: bool = True,
        suggestions: Optional[List[RecoverySuggestion]] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code or self.default_code
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        self.recoverable = recoverable
        self.suggestions = sorted(suggestions or [], key=lambda s: s.priority)
        self.traceback_text = traceback.format_exc() if cause is not None else None

        if self.context.correlation_id is None:
            self.context.correlation_id = uuid.uuid4().hex[:8]

    def __str__(self) -> str:
        return self.message

    def add_suggestion(self, suggestion: RecoverySuggestion) -> None:
        """Add a suggestion, keeping the list ordered by priority."""
        self.suggestions.append(suggestion)
        self.suggestions.sort(key=lambda s: s.priority)

    def suggest(self, action: str, description: str, command: Optional[str] = None) -> None:
        self.add_suggestion(RecoverySuggestion(action=action, description=description, command=command))

    def get_user_message(self) -> str:
        """Plain-text rendering for terminals without rich output."""
        header = [f"Error: {self.message}"]
        if self.error_code is not ErrorCode.UNKNOWN_ERROR:
            header.append(f"Error Code: {self.error_code.value} ({self.error_code.name})")
        header.append(f"Correlation ID: {self.context.correlation_id}")

        body = []
        for number, suggestion in enumerate(self.suggestions[:3], 1):
            body.append(f"  {number}. {suggestion.action}")
            body.append(f"     {suggestion.description}")
            if suggestion.command:
                body.append(f"     Command: {suggestion.command}")
        if body:
            header.append("\nSuggested solutions:")

        return "\n".join(header + body)

    def get_debug_info(self) -> Dict[str, Any]:
        """Everything known about the error, as plain data."""
        cause = None
        if self.cause is not None:
            cause = {'type': type(self.cause).__name__, 'message': str(self.cause)}
        return {
            'error_type': type(self).__name__,
            'message': self.message,
            'error_code': self.error_code.value,
            'recoverable': self.recoverable,
            'context': self.context.to_dict(),
            'cause': cause,
            'suggestions': [s.to_dict() for s in self.suggestions],
            'traceback': self.traceback_text,
        }


def _context_of(kwargs: Dict[str, Any]) -> ErrorContext:
    """Return the ErrorContext in ``kwargs``, creating and storing one if needed."""
    if kwargs.get('context') is None:
        kwargs['context'] = ErrorContext()
    return kwargs['context']


class StreamError(PipeShellError):
    """Read, write or close failure on a stream or connector."""

    default_code = ErrorCode.STREAM_WRITE_FAILED


class BrokenConnectorError(StreamError, BrokenPipeError):
    """Raised when writing to a connector whose reader end has been closed."""

    def __init__(self, message: str = "Connector reader end is closed", **kwargs):
        kwargs.setdefault('recoverable', False)
        super().__init__(message, error_code=ErrorCode.CONNECTOR_BROKEN, **kwargs)


class ConfigurationError(PipeShellError):
    """A configuration source is missing, malformed or holds a bad value."""

    default_code = ErrorCode.CONFIG_INVALID_VALUE

    def __init__(self, message: str, config_key: Optional[str] = None,
                 config_value: Optional[Any] = None, **kwargs):
        if config_key:
            _context_of(kwargs).user_context.update(config_key=config_key, config_value=config_value)
        super().__init__(message, **kwargs)

        if self.error_code is ErrorCode.CONFIG_FILE_NOT_FOUND:
            self.suggest("Create configuration file",
                         "Write a starter configuration and edit it.",
                         command="pipeshell config init pipeshell.yaml")
        elif self.error_code is ErrorCode.CONFIG_INVALID_VALUE:
            self.suggest("Check configuration values",
                         "Compare the effective settings with your file and PIPESHELL_* variables.",
                         command="pipeshell config show")


class ValidationError(PipeShellError):
    """Bad input from a caller: a stage spec, a template, a pattern."""

    default_code = ErrorCode.VALIDATION_INVALID_INPUT

    def __init__(self, message: str, field_name: Optional[str] = None,
                 field_value: Optional[Any] = None, **kwargs):
        if field_name:
            _context_of(kwargs).user_context.update(field_name=field_name, field_value=field_value)
        super().__init__(message, **kwargs)
        self.field_name = field_name


class PipelineError(ValidationError):
    """The given stages cannot be composed into a pipeline."""

    default_code = ErrorCode.PIPELINE_INVALID_STAGE

    def __init__(self, message: str, stage_index: Optional[int] = None, **kwargs):
        context = _context_of(kwargs)
        context.operation = context.operation or "compose_pipeline"
        if stage_index is not None:
            context.stage_index = stage_index
        super().__init__(message, **kwargs)

        if self.error_code is ErrorCode.PIPELINE_KIND_MISMATCH:
            self.suggest("Adapt character filters",
                         "Call as_byte_filter() on character filters used in a byte pipeline.")


class GlobPatternError(ValidationError):
    """Malformed wildcard path expression."""

    default_code = ErrorCode.VALIDATION_INVALID_PATTERN

    def __init__(self, message: str, pattern: Optional[str] = None, **kwargs):
        super().__init__(message, field_name="glob", field_value=pattern, **kwargs)
        self.pattern = pattern


class PathNotFoundError(PipeShellError, FileNotFoundError):
    """An expected file or directory is absent, or is not a directory."""

    default_code = ErrorCode.FS_FILE_NOT_FOUND

    def __init__(self, message: str, path: Optional[Any] = None, **kwargs):
        if path is not None:
            _context_of(kwargs).path = str(path)
        super().__init__(message, **kwargs)
        self.path = path


class ProcessError(PipeShellError):
    """An external program could not be started."""

    default_code = ErrorCode.PROCESS_LAUNCH_FAILED

    def __init__(self, message: str, command: Optional[List[str]] = None, **kwargs):
        if command:
            _context_of(kwargs).command = list(command)
        super().__init__(message, **kwargs)

        if self.error_code is ErrorCode.PROCESS_LAUNCH_FAILED:
            self.suggest("Check the command", "Make sure the program exists and is executable on PATH.")


class ProcessInterruptedError(ProcessError):
    """Waiting for an external program was cancelled."""

    def __init__(self, message: str = "Interrupted while waiting for process", **kwargs):
        kwargs.setdefault('recoverable', False)
        super().__init__(message, error_code=ErrorCode.PROCESS_INTERRUPTED, **kwargs)


def config_error(message: str, key: Optional[str] = None, **kwargs) -> ConfigurationError:
    return ConfigurationError(message, config_key=key, **kwargs)


def validation_error(message: str, field: Optional[str] = None, **kwargs) -> ValidationError:
    return ValidationError(message, field_name=field, **kwargs)


def not_found_error(path: Any, what: str = "File", **kwargs) -> PathNotFoundError:
    """Build the error for a missing ``path``; ``what`` names its kind ("File", "Directory")."""
    return PathNotFoundError(f"{what} not found: {path}", path=path, **kwargs)


def not_a_directory_error(path: Any, **kwargs) -> PathNotFoundError:
    return PathNotFoundError(f"Not a directory: {path}", path=path,
                             error_code=ErrorCode.FS_NOT_A_DIRECTORY, **kwargs)
