"""
Configuration Models

Pydantic models for type-safe configuration management with validation,
defaults, and field documentation.
"""

import codecs
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_CONNECTOR_CAPACITY = 65536
DEFAULT_CHUNK_SIZE = 8192


class PipelineConfig(BaseModel):
    """Configuration for pipeline composition and stage execution."""

    connector_capacity: int = Field(
        default=DEFAULT_CONNECTOR_CAPACITY,
        ge=1,
        le=64 * 1024 * 1024,
        description="Capacity of in-memory connectors between stages (bytes or characters)"
    )
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        ge=1,
        le=16 * 1024 * 1024,
        description="Read size used by copying stages"
    )
    input_encoding: Optional[str] = Field(
        default=None,
        description="Encoding used to decode octet sources for character filters (platform default if unset)"
    )
    output_encoding: Optional[str] = Field(
        default=None,
        description="Encoding used to encode character output to octet sinks (platform default if unset)"
    )
    close_source: bool = Field(
        default=True,
        description="Close the pipeline source when the first stage completes"
    )
    close_sink: bool = Field(
        default=False,
        description="Close the pipeline sink when the last stage completes"
    )
    thread_name_prefix: str = Field(
        default="pipeshell-stage",
        min_length=1,
        description="Name prefix for background stage threads"
    )
    daemon_threads: bool = Field(
        default=True,
        description="Run background stages as daemon threads"
    )

    @field_validator('input_encoding', 'output_encoding')
    @classmethod
    def validate_encoding(cls, v):
        """Validate that an encoding is known to the codec registry."""
        if v is None:
            return v
        try:
            return codecs.lookup(v).name
        except LookupError:
            raise ValueError(f"Unknown encoding: {v}")


class LoggingConfig(BaseModel):
    """Configuration for application logging."""

    level: str = Field(
        default="WARNING",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format string"
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Timestamp format for log records"
    )

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level is a standard level name."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v.upper()


class AppConfig(BaseModel):
    """Root application configuration model."""

    version: str = Field(default="0.1.0", description="Configuration version")
    created: datetime = Field(default_factory=datetime.now, description="Configuration creation time")

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig, description="Pipeline configuration")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    working_directory: Optional[Path] = Field(
        default=None,
        description="Initial working directory of the shell context (process cwd if unset)"
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging output"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed logging"
    )

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
    )

    def get_log_level(self) -> int:
        """Get the effective numeric log level."""
        if self.debug:
            return logging.DEBUG
        if self.verbose:
            return logging.INFO
        return getattr(logging, self.logging.level)
