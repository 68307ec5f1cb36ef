"""Configuration file loading for rtmctl."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from rtmctl.auth.config import AuthConfig
from rtmctl.auth.errors import ConfigError

RTM_HOME = Path.home() / ".rtm"

CONFIG_LOCATIONS = [
    RTM_HOME / "config.yaml",
    Path.cwd() / ".rtm.yaml",
    Path.cwd() / "rtm.yaml",
]

# Top-level sections recognised in the config file.
_VALID_SECTIONS = {"auth", "browser", "storage", "logging"}

# Known keys within each section. "auth" is validated by AuthConfig instead.
_VALID_SECTION_KEYS: dict[str, set[str]] = {
    "browser": {"headless", "timeout"},
    "storage": {"credentials_file", "session_file", "save_credentials"},
    "logging": {"level", "file"},
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_config_logger = logging.getLogger("rtmctl.config")


def _section(config: dict, name: str) -> dict:
    """Return a config section, or {} when absent."""
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return section


def _warn_unknown_keys(config: dict, source: str) -> None:
    """Emit warnings for unrecognised top-level sections and keys."""
    for section, keys in config.items():
        if section not in _VALID_SECTIONS:
            _config_logger.warning(
                "Config file '%s': unknown section '%s' (ignored)", source, section
            )
            continue
        if section not in _VALID_SECTION_KEYS or not isinstance(keys, dict):
            continue
        valid_keys = _VALID_SECTION_KEYS[section]
        for key in keys:
            if key not in valid_keys:
                _config_logger.warning(
                    "Config file '%s': unknown key '%s.%s' (ignored)",
                    source, section, key,
                )


def load_config(path: Path | None = None) -> dict:
    """Load config from file, checking default locations.

    Args:
        path: Explicit config file path. If None, searches default locations.

    Returns:
        Configuration dictionary, or empty dict if no config found.

    Raises:
        ConfigError: The file exists but is not valid YAML mapping.
    """
    if path:
        locations = [Path(path)]
    else:
        locations = CONFIG_LOCATIONS

    for loc in locations:
        if loc.exists():
            try:
                with open(loc) as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigError(f"Failed to read config file '{loc}': {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigError(f"Config file '{loc}' must contain a mapping")
            _warn_unknown_keys(data, str(loc))
            return data
    return {}


@dataclass
class CliOptions:
    """Unified command options built once from file config + CLI args.

    All defaults live here; callers override only the fields they care about.
    """

    # Browser
    headless: bool = True
    timeout: float = 30.0

    # Storage
    credentials_file: Path = field(default_factory=lambda: RTM_HOME / "auth.json")
    session_file: Path = field(default_factory=lambda: RTM_HOME / "session.enc")
    save_credentials: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    auth: AuthConfig = field(default_factory=AuthConfig)

    @classmethod
    def from_sources(
        cls,
        file_config: dict[str, Any],
        *,
        headless: bool | None = None,
        timeout: float | None = None,
        credentials_file: Path | None = None,
        session_file: Path | None = None,
        save_credentials: bool | None = None,
        log_level: str | None = None,
        log_file: str | None = None,
    ) -> "CliOptions":
        """Build CliOptions by merging file config with explicit CLI values.

        File config is applied first; non-None CLI values take precedence.
        """
        opts = cls()

        browser = _section(file_config, "browser")
        storage = _section(file_config, "storage")
        logging_section = _section(file_config, "logging")

        # File config layer (only overrides the dataclass default when present)
        try:
            if browser.get("headless") is not None:
                opts.headless = bool(browser["headless"])
            if browser.get("timeout") is not None:
                opts.timeout = float(browser["timeout"])
            if storage.get("credentials_file") is not None:
                opts.credentials_file = Path(storage["credentials_file"]).expanduser()
            if storage.get("session_file") is not None:
                opts.session_file = Path(storage["session_file"]).expanduser()
            if storage.get("save_credentials") is not None:
                opts.save_credentials = bool(storage["save_credentials"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid config value: {exc}") from exc
        if logging_section.get("level") is not None:
            opts.log_level = str(logging_section["level"])
        if logging_section.get("file") is not None:
            opts.log_file = str(logging_section["file"])

        auth_section = _section(file_config, "auth")
        if auth_section:
            try:
                opts.auth = AuthConfig(**auth_section)
            except (TypeError, PydanticValidationError) as exc:
                raise ConfigError(f"Invalid auth section: {exc}") from exc

        # CLI layer: non-None values override everything
        if headless is not None:
            opts.headless = headless
        if timeout is not None:
            opts.timeout = timeout
        if credentials_file is not None:
            opts.credentials_file = credentials_file
        if session_file is not None:
            opts.session_file = session_file
        if save_credentials is not None:
            opts.save_credentials = save_credentials
        if log_level is not None:
            opts.log_level = log_level
        if log_file is not None:
            opts.log_file = log_file

        if opts.timeout <= 0:
            raise ConfigError("browser.timeout must be a positive number")
        opts.log_level = opts.log_level.upper()
        if opts.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level '{opts.log_level}'; expected one of {', '.join(LOG_LEVELS)}"
            )

        return opts
