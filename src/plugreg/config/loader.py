"""Configuration loading and validation for plugreg.

This module provides:
- Pydantic models for the plugreg configuration
- Config file discovery
- ${VAR} / ${VAR:-default} expansion in config values
- ConfigError subclasses that point at the offending file, line and key
"""

import copy
from difflib import get_close_matches
import os
from pathlib import Path
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from plugreg.config.defaults import DEFAULT_CONFIG

CONFIG_PATH_ENV = "PLUGREG_CONFIG_PATH"
PROJECT_CONFIG_FILE = "plugreg.yaml"

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class ConfigError(Exception):
    """Base exception for configuration errors.

    Attributes:
        message: What is wrong
        file_path: Config file the error was found in (if any)
        line_number: 1-based line of a syntax error (if known)
        suggestion: Hint for fixing the error (if any)
    """

    def __init__(
        self,
        message: str,
        *,
        file_path: str | None = None,
        line_number: int | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.message = message
        self.file_path = file_path
        self.line_number = line_number
        self.suggestion = suggestion

        where = file_path or "configuration"
        if line_number:
            where += f":{line_number}"
        text = f"{where}: {message}"
        if suggestion:
            text += f"\n  Suggestion: {suggestion}"
        super().__init__(text)


class ConfigSyntaxError(ConfigError):
    """The config file is not valid YAML."""


class ConfigValidationError(ConfigError):
    """A config value or key is not accepted."""


class CacheConfig(BaseModel):
    """Registry cache configuration."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: str | None = None


class Config(BaseModel):
    """Main configuration model for plugreg.

    Configuration is loaded from YAML files and can be overridden by CLI flags.
    """

    model_config = ConfigDict(extra="forbid")

    install_root: str = Field(default="vendor", min_length=1)
    registry_file: str = Field(default="plugreg/plugins.yaml", min_length=1)
    package_type: str = Field(default="registry-plugin", min_length=1)
    schema_file: str = Field(default="schema.xml", min_length=1)
    manifest_file: str = Field(default="package.yaml", min_length=1)

    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("registry_file")
    @classmethod
    def validate_registry_file(cls, v: str) -> str:
        """Registry file must stay inside the install root."""
        normalized = v.replace("\\", "/")
        if normalized.startswith("/") or ".." in normalized.split("/"):
            raise ValueError("Must be a path relative to install_root")
        return v

    @property
    def install_root_path(self) -> Path:
        """Return the install root with ~ expanded."""
        return Path(self.install_root).expanduser()


def _section_keys(loc: tuple[Any, ...]) -> list[str]:
    """Return the keys accepted by the config section containing ``loc``."""
    model: type[BaseModel] = Config
    for part in loc[:-1]:
        field = model.model_fields.get(str(part))
        annotation = field.annotation if field else None
        if not (isinstance(annotation, type) and issubclass(annotation, BaseModel)):
            return []
        model = annotation
    return list(model.model_fields)


def _validation_error(error: ValidationError, file_path: str | None) -> ConfigValidationError:
    """Describe the first pydantic error in terms of config keys."""
    first = error.errors()[0]
    loc = first["loc"]
    key = ".".join(str(part) for part in loc)
    suggestion = None

    if first["type"] == "extra_forbidden":
        message = f"Unknown configuration key '{key}'"
        matches = get_close_matches(str(loc[-1]), _section_keys(loc), n=1, cutoff=0.6)
        if matches:
            suggestion = f"Did you mean '{matches[0]}'?"
    elif first["type"] == "literal_error":
        message = f"Invalid value {first['input']!r} for '{key}'"
        suggestion = f"Expected one of: {first['ctx']['expected']}"
    else:
        message = f"Invalid value {first['input']!r} for '{key}': {first['msg']}"

    return ConfigValidationError(message, file_path=file_path, suggestion=suggestion)


def _replace_env_var(match: re.Match[str]) -> str:
    value = os.environ.get(match.group(1), match.group(2))
    return match.group(0) if value is None else value


def expand_env_vars(value: Any) -> Any:
    """Expand ${VAR} and ${VAR:-default} in every string of a config tree.

    Unset variables without a default are left as written.
    """
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(_replace_env_var, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge config mappings; sections (cache, logging) merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def get_config_path(custom_path: str | None = None) -> Path | None:
    """Determine the configuration file path.

    Checks locations in this order:
    1. Custom path (if provided via --config flag)
    2. PLUGREG_CONFIG_PATH environment variable
    3. ./plugreg.yaml (project-local)
    4. ~/.config/plugreg/config.yaml (XDG standard)

    Raises:
        FileNotFoundError: If an explicitly named file does not exist
    """
    explicit = custom_path or os.environ.get(CONFIG_PATH_ENV)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return path

    for candidate in (
        Path.cwd() / PROJECT_CONFIG_FILE,
        Path.home() / ".config" / "plugreg" / "config.yaml",
    ):
        if candidate.is_file():
            return candidate
    return None


def load_config(
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load and validate configuration.

    Defaults, then the config file with environment variables expanded,
    then CLI overrides taken literally.

    Args:
        config_path: Optional custom config file path
        cli_overrides: Optional dict of CLI argument overrides

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If an explicitly named config file doesn't exist
        ConfigSyntaxError: If the config file has invalid YAML syntax
        ConfigValidationError: If config keys or values are invalid
    """
    config_data = copy.deepcopy(DEFAULT_CONFIG)

    path = get_config_path(config_path)
    file_path = str(path) if path else None
    if path:
        try:
            file_config = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            raise ConfigSyntaxError(
                f"Invalid YAML: {getattr(e, 'problem', None) or e}",
                file_path=file_path,
                line_number=mark.line + 1 if mark else None,
            ) from e

        if not isinstance(file_config, dict):
            raise ConfigValidationError(
                "Top level of the config file must be a mapping", file_path=file_path
            )
        config_data = merge_sections(config_data, expand_env_vars(file_config))

    if cli_overrides:
        config_data = merge_sections(config_data, cli_overrides)

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise _validation_error(e, file_path) from e
