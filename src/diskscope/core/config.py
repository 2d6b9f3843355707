"""Configuration system for diskscope.

This module implements the configuration schema using Pydantic for
validation, with support for ``${VARIABLE}`` environment references and
fail-fast validation with actionable error messages. Every section has
defaults, so running without a configuration file is the common case.
"""

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Final, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from diskscope.core.aggregator import DEFAULT_CONCURRENCY
from diskscope.core.cache import default_cache_dir
from diskscope.core.errors import DiskscopeError
from diskscope.utils.formatting import parse_size

# Matches ${VARIABLE_NAME} syntax where VARIABLE_NAME can contain letters, digits, and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z0-9_]+)\}")

MAX_CONCURRENCY: Final[int] = 256


class BaseConfig(BaseModel):
    """Base configuration model with common settings."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )


class ScanConfig(BaseConfig):
    """Configuration for the directory scanner."""

    concurrency: Annotated[
        int,
        Field(
            ge=1,
            le=MAX_CONCURRENCY,
            description="Maximum number of directory listings running at once",
        ),
    ] = DEFAULT_CONCURRENCY
    exclusions: Annotated[
        list[str],
        Field(
            description="Glob patterns of directories to skip",
        ),
    ] = []

    @field_validator("exclusions", mode="after")
    @classmethod
    def strip_blank_patterns(cls, v: list[str]) -> list[str]:
        """Drop blank exclusion patterns."""
        return [pattern.strip() for pattern in v if pattern.strip()]


class CacheConfig(BaseConfig):
    """Configuration for the scan result cache."""

    enabled: Annotated[
        bool,
        Field(
            description="Reuse completed scans of the same root",
        ),
    ] = True
    directory: Annotated[
        Path,
        Field(
            default_factory=default_cache_dir,
            description="Directory holding cache entries",
        ),
    ]
    ttl_seconds: Annotated[
        int | None,
        Field(
            ge=0,
            description="Maximum age of a cache entry in seconds (null: never expires)",
        ),
    ] = 6 * 3600

    @field_validator("directory", mode="after")
    @classmethod
    def expand_directory(cls, v: Path) -> Path:
        """Expand ``~`` in the cache directory."""
        return v.expanduser()

    @property
    def ttl(self) -> timedelta | None:
        return None if self.ttl_seconds is None else timedelta(seconds=self.ttl_seconds)


class DisplayConfig(BaseConfig):
    """Configuration for the report and the interactive explorer."""

    min_size: Annotated[
        int,
        Field(
            ge=0,
            description="Hide entries smaller than this (bytes or e.g. '10MB')",
        ),
    ] = 0
    depth: Annotated[
        int,
        Field(
            ge=0,
            description="Maximum depth of the printed report",
        ),
    ] = 3
    layout_mode: Annotated[
        Literal["list", "treemap"],
        Field(
            description="Initial explorer display mode",
        ),
    ] = "list"

    @field_validator("min_size", mode="before")
    @classmethod
    def parse_min_size(cls, v: object) -> object:
        """Accept human-readable sizes such as ``100MB``."""
        if isinstance(v, str):
            return parse_size(v)
        return v


class ApplicationConfig(BaseConfig):
    """Configuration for application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "WARNING"
    log_file: Annotated[
        Path | None,
        Field(
            description="Optional log file (console logging goes to stderr)",
        ),
    ] = None


class MainConfig(BaseConfig):
    """Main application configuration schema.

    Top-level container aggregating the configuration sections. Every section
    is optional; missing sections take their defaults.
    """

    scan: Annotated[
        ScanConfig,
        Field(
            default_factory=ScanConfig,
            description="Directory scanner configuration",
        ),
    ]
    cache: Annotated[
        CacheConfig,
        Field(
            default_factory=CacheConfig,
            description="Scan result cache configuration",
        ),
    ]
    display: Annotated[
        DisplayConfig,
        Field(
            default_factory=DisplayConfig,
            description="Report and explorer display configuration",
        ),
    ]
    application: Annotated[
        ApplicationConfig,
        Field(
            default_factory=ApplicationConfig,
            description="Application-level configuration",
        ),
    ]


class ConfigurationError(DiskscopeError):
    """Raised when configuration loading or validation fails."""


class EnvironmentVariableError(ConfigurationError):
    """Raised when a ``${VARIABLE}`` reference names an unset variable."""


def resolve_env_var(value: str) -> str:
    """Resolve ``${VARIABLE}`` references in a string value.

    Raises:
        EnvironmentVariableError: If a referenced variable is not set

    Examples:
        >>> os.environ["CACHE_ROOT"] = "/var/cache"
        >>> resolve_env_var("${CACHE_ROOT}/diskscope")
        '/var/cache/diskscope'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            msg = f"Required environment variable '{var_name}' is not set."
            raise EnvironmentVariableError(msg)
        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars(data: object) -> object:
    """Recursively resolve environment references in YAML data.

    Strings are resolved, mappings and lists are traversed, every other value
    is returned unchanged.
    """
    if isinstance(data, str):
        return resolve_env_var(data)
    if isinstance(data, Mapping):
        return {key: resolve_env_vars(value) for key, value in data.items()}  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    return data


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate the configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise ConfigurationError(msg)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    # An empty file means "all defaults"
    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}"
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars(raw_data)
    except EnvironmentVariableError as e:
        msg = f"Environment variable resolution failed in: {config_path}\n{e}"
        raise EnvironmentVariableError(msg) from e

    try:
        config = MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        error_lines = ["Configuration validation failed:", ""]
        for error in e.errors():
            field_path = " → ".join(str(loc) for loc in error["loc"])
            error_lines.append(f"  Field: {field_path}")
            error_lines.append(f"  Error: {error['msg']}")
            error_lines.append(f"  Type: {error['type']}")
            error_lines.append("")

        error_lines.append(f"Configuration file: {config_path}")
        error_lines.append("Please fix the above errors and try again.")
        raise ConfigurationError("\n".join(error_lines)) from e

    return config


def config_search_paths() -> list[Path]:
    """Configuration file locations in order of precedence."""
    paths = [Path("diskscope.yaml"), Path("diskscope.yml")]
    xdg = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg) if xdg else Path.home() / ".config"
    paths.append(config_home / "diskscope" / "config.yaml")
    return paths


def discover_config_file() -> Path | None:
    """Return the first existing configuration file, or None."""
    for path in config_search_paths():
        if path.is_file():
            return path
    return None


def load_config(config_path: Path | None = None) -> MainConfig:
    """Load an explicit config file, a discovered one, or the defaults."""
    if config_path is None:
        config_path = discover_config_file()
    if config_path is None:
        return MainConfig()
    return load_main_config(config_path)
