"""
Configuration Manager

Builds an AppConfig from layered sources. Later layers override earlier ones
key by key (nested sections are merged, not replaced):

    defaults < configuration file < PIPESHELL_* environment < CLI options

Configuration files are YAML or JSON. Without an explicit file, the first
existing file from the search path is used.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from pipeshell.core.config.models import AppConfig, LoggingConfig, PipelineConfig
from pipeshell.core.exceptions import ConfigurationError, ErrorCode


logger = logging.getLogger(__name__)

TRUE_WORDS = frozenset({'true', '1', 'yes', 'on', 'enabled'})

# Where a value lives in the AppConfig tree: a section name and key, or a
# top-level key with section None.
Location = Tuple[Optional[str], str]


def parse_bool(value: Union[str, bool]) -> bool:
    """Interpret an environment or CLI flag value."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_WORDS


# Environment variable suffix -> (location, parser)
ENV_VARIABLES: Dict[str, Tuple[Location, Callable[[str], Any]]] = {
    'CONNECTOR_CAPACITY': (('pipeline', 'connector_capacity'), int),
    'CHUNK_SIZE': (('pipeline', 'chunk_size'), int),
    'INPUT_ENCODING': (('pipeline', 'input_encoding'), str),
    'OUTPUT_ENCODING': (('pipeline', 'output_encoding'), str),
    'CLOSE_SOURCE': (('pipeline', 'close_source'), parse_bool),
    'CLOSE_SINK': (('pipeline', 'close_sink'), parse_bool),
    'THREAD_NAME_PREFIX': (('pipeline', 'thread_name_prefix'), str),
    'DAEMON_THREADS': (('pipeline', 'daemon_threads'), parse_bool),
    'LOG_LEVEL': (('logging', 'level'), str),
    'LOG_FORMAT': (('logging', 'format'), str),
    'WORKING_DIRECTORY': ((None, 'working_directory'), str),
    'VERBOSE': ((None, 'verbose'), parse_bool),
    'DEBUG': ((None, 'debug'), parse_bool),
}

# CLI option name -> locations it sets
CLI_OPTIONS: Dict[str, List[Location]] = {
    'verbose': [(None, 'verbose')],
    'debug': [(None, 'debug')],
    'cwd': [(None, 'working_directory')],
    'working_directory': [(None, 'working_directory')],
    'capacity': [('pipeline', 'connector_capacity')],
    'chunk_size': [('pipeline', 'chunk_size')],
    'input_encoding': [('pipeline', 'input_encoding')],
    'output_encoding': [('pipeline', 'output_encoding')],
    'encoding': [('pipeline', 'input_encoding'), ('pipeline', 'output_encoding')],
    'log_level': [('logging', 'level')],
}

EXAMPLE_PROFILES: Dict[str, Callable[[], AppConfig]] = {
    'default': AppConfig,
    'utf8': lambda: AppConfig(
        pipeline=PipelineConfig(input_encoding="utf-8", output_encoding="utf-8")
    ),
    'debug': lambda: AppConfig(
        pipeline=PipelineConfig(daemon_threads=False),
        logging=LoggingConfig(level="DEBUG"),
        debug=True
    ),
}


def _assign(tree: Dict[str, Any], location: Location, value: Any) -> None:
    section, key = location
    if section is None:
        tree[key] = value
    else:
        tree.setdefault(section, {})[key] = value


def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated with ``override``, merging nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Loads, validates and writes pipeshell configuration."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize the manager.

        Args:
            config_file: Explicit configuration file; it must exist. When
                omitted the search path is used.
        """
        self.config_file = Path(config_file) if config_file else None
        self.search_path = self.default_search_path()
        self._config: Optional[AppConfig] = None

    @staticmethod
    def default_search_path() -> List[Path]:
        """Candidate configuration files, most specific first."""
        cwd = Path.cwd()
        paths = [
            cwd / "pipeshell.yaml",
            cwd / "pipeshell.yml",
            cwd / ".pipeshell.yaml",
            Path.home() / ".config" / "pipeshell" / "config.yaml",
        ]
        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            paths.append(Path(xdg_config) / "pipeshell" / "config.yaml")
        return paths

    def load_config(
        self,
        cli_args: Optional[Dict[str, Any]] = None,
        env_prefix: str = "PIPESHELL_"
    ) -> AppConfig:
        """
        Merge every source and validate the result.

        Args:
            cli_args: CLI option values; None values are ignored
            env_prefix: Prefix of the environment variables to read

        Returns:
            The validated configuration

        Raises:
            ConfigurationError: If a source cannot be read or parsed, or the
                merged values fail validation
        """
        data: Dict[str, Any] = {}
        for layer in (self.read_file(), self.read_environment(env_prefix), self.read_cli(cli_args or {})):
            data = merge(data, layer)

        try:
            self._config = AppConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e}",
                error_code=ErrorCode.CONFIG_SCHEMA_VALIDATION,
                cause=e
            ) from e
        return self._config

    def locate_file(self) -> Optional[Path]:
        """The configuration file to read, if any."""
        if self.config_file is not None:
            if not self.config_file.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {self.config_file}",
                    error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                    config_key="config_file",
                    config_value=str(self.config_file)
                )
            return self.config_file
        return next((path for path in self.search_path if path.is_file()), None)

    def read_file(self) -> Dict[str, Any]:
        path = self.locate_file()
        if path is None:
            return {}

        logger.debug(f"Reading configuration from {path}")
        try:
            text = path.read_text(encoding='utf-8')
            # JSON is a subset of YAML, so only .json files need their own parser
            data = json.loads(text) if path.suffix.lower() == '.json' else yaml.safe_load(text)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config file {path}: {e}",
                error_code=ErrorCode.CONFIG_INVALID_FORMAT,
                cause=e
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping, not {type(data).__name__}",
                error_code=ErrorCode.CONFIG_INVALID_FORMAT
            )
        return data

    def read_environment(self, prefix: str) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for suffix, (location, parser) in ENV_VARIABLES.items():
            name = prefix + suffix
            raw = os.environ.get(name)
            if raw is None:
                continue
            try:
                _assign(tree, location, parser(raw))
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {name}: {raw} ({e})",
                    config_key=name,
                    config_value=raw,
                    cause=e
                ) from e
        return tree

    def read_cli(self, cli_args: Dict[str, Any]) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for option, value in cli_args.items():
            if value is None:
                continue
            for location in CLI_OPTIONS.get(option, []):
                _assign(tree, location, value)
        return tree

    def validate_config(self, config: Optional[AppConfig] = None) -> List[str]:
        """
        Check a valid configuration for settings that are likely mistakes.

        Returns:
            Human-readable warnings (empty if there are none)
        """
        config = config or self._config
        if config is None:
            return ["No configuration loaded"]

        warnings = []
        pipeline = config.pipeline
        if config.working_directory is not None and not config.working_directory.is_dir():
            warnings.append(f"Working directory does not exist: {config.working_directory}")
        if pipeline.chunk_size > pipeline.connector_capacity:
            warnings.append(
                f"chunk_size ({pipeline.chunk_size}) exceeds connector_capacity "
                f"({pipeline.connector_capacity}); writes will block in several steps"
            )
        if not pipeline.daemon_threads:
            warnings.append("Non-daemon stage threads keep the interpreter alive until every stage ends")
        return warnings

    def generate_schema(self, output_file: Optional[Path] = None) -> Dict[str, Any]:
        """Return the JSON schema of AppConfig, writing it to ``output_file`` if given."""
        schema = AppConfig.model_json_schema()
        if output_file:
            Path(output_file).write_text(json.dumps(schema, indent=2), encoding='utf-8')
        return schema

    def create_example_config(self, output_file: Path, profile: str = "default") -> None:
        """
        Write an example YAML configuration.

        Args:
            output_file: File to create or overwrite
            profile: One of ``default``, ``utf8`` or ``debug``
        """
        config = EXAMPLE_PROFILES.get(profile, AppConfig)()
        # mode='json' turns Path and datetime values into strings
        with open(output_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config.model_dump(mode='json'), f, default_flow_style=False, indent=2)

    @property
    def config(self) -> Optional[AppConfig]:
        """The configuration produced by the last ``load_config`` call."""
        return self._config
