"""
Core pipeshell Package

Contains core infrastructure components: pipeline engine, background task
runner, configuration, shell context and error handling.
"""

from pipeshell.core.exceptions import (
    PipeShellError,
    StreamError,
    BrokenConnectorError,
    ConfigurationError,
    ValidationError,
    PipelineError,
    GlobPatternError,
    PathNotFoundError,
    ProcessError,
    ProcessInterruptedError,
    ErrorCode,
    ErrorContext,
    RecoverySuggestion
)

from pipeshell.core.context import ShellContext

__all__ = [
    'PipeShellError',
    'StreamError',
    'BrokenConnectorError',
    'ConfigurationError',
    'ValidationError',
    'PipelineError',
    'GlobPatternError',
    'PathNotFoundError',
    'ProcessError',
    'ProcessInterruptedError',
    'ErrorCode',
    'ErrorContext',
    'RecoverySuggestion',
    'ShellContext',
]
