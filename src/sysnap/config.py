"""
Configuration management for sysnap.

Supports flat key=value files (INI style), YAML files, environment variables,
and programmatic access.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from sysnap.crypto import EncryptionError, parse_key
from sysnap.records import DOMAIN_RECORDS

DEFAULT_CONFIG_PATHS = [
    Path("/etc/sysnap/config.ini"),
    Path.home() / ".config" / "sysnap" / "config.ini",
    Path("config.ini"),
]

REQUIRED_KEYS = ("server_address", "encryption_key")

YAML_SUFFIXES = (".yaml", ".yml")


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""

    pass


def parse_key_value(text: str) -> dict[str, str]:
    """
    Parse flat key=value text.

    Lines starting with ';' or '#' are comments. Blank lines, [section]
    headers and lines without '=' are ignored. Keys and values are trimmed
    and matching surrounding quotes are stripped from values.
    """
    result = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith((";", "#")):
            continue
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        if key:
            result[key] = value
    return result


def _read_file(path: Path) -> dict[str, Any]:
    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            data = parse_key_value(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Cannot parse {path}: expected a mapping of settings")
    return data


def unknown_probes(names: list[str]) -> list[str]:
    """Return the names that are not probe domains."""
    return [name for name in names if name not in DOMAIN_RECORDS]


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value or []]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


@dataclass
class Config:
    """
    Configuration container for sysnap.

    Priority (highest to lowest):
    1. Programmatic values passed to __init__
    2. Environment variables (prefixed with SYSNAP_)
    3. Config file values
    4. Default values
    """

    # Required
    server_address: str | None = None
    encryption_key: str | None = None

    # Delivery
    upload_timeout: int = 30

    # Collection
    probe_timeout: float = 120.0
    sample_interval: float = 1.0
    public_ip_url: str = "https://api.ipify.org"
    ping_host: str = "8.8.8.8"
    ping_count: int = 4
    enabled_probes: list[str] = field(default_factory=list)
    disabled_probes: list[str] = field(default_factory=list)

    # Output
    output_dir: str = "/var/lib/sysnap"
    keep_local_copy: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    source_path: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self._coerce()

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """Load configuration from a key=value or YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        config = cls.from_dict(_read_file(path))
        config.source_path = str(path)
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from a dictionary."""
        # Flatten nested structure if present
        flat = {}
        for key, value in data.items():
            if isinstance(value, dict):
                for subkey, subvalue in value.items():
                    flat[subkey] = subvalue
            else:
                flat[key] = value

        # Filter to only known fields
        known_fields = {f.name for f in cls.__dataclass_fields__.values()} - {"source_path"}
        filtered = {k: v for k, v in flat.items() if k in known_fields}

        return cls(**filtered)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """
        Load configuration with full resolution order.

        Args:
            config_path: Explicit path to config file. If None, searches
                        default locations.

        Returns:
            Fully resolved Config instance.
        """
        config = cls()

        if config_path:
            path = Path(config_path)
            if path.exists():
                config = cls.from_file(path)
        else:
            for path in DEFAULT_CONFIG_PATHS:
                if path.exists():
                    config = cls.from_file(path)
                    break

        config._apply_env_overrides()
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "SYSNAP_SERVER_ADDRESS": "server_address",
            "SYSNAP_ENCRYPTION_KEY": "encryption_key",
            "SYSNAP_UPLOAD_TIMEOUT": "upload_timeout",
            "SYSNAP_PROBE_TIMEOUT": "probe_timeout",
            "SYSNAP_OUTPUT_DIR": "output_dir",
            "SYSNAP_LOG_LEVEL": "log_level",
            "SYSNAP_LOG_FILE": "log_file",
        }

        for env_var, attr in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                setattr(self, attr, value)

        self._coerce()

    def _coerce(self) -> None:
        """Coerce string values from files and the environment to field types."""
        try:
            self.upload_timeout = int(self.upload_timeout)
            self.probe_timeout = float(self.probe_timeout)
            self.sample_interval = float(self.sample_interval)
            self.ping_count = int(self.ping_count)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        # YAML reads an unquoted all-digit key as a number and drops its
        # leading zeros, so the original text is gone.
        if self.encryption_key is not None and not isinstance(self.encryption_key, str):
            raise ConfigError(
                "encryption_key must be a string of hex digits; "
                "quote it in the config file"
            )
        if self.server_address is not None:
            self.server_address = str(self.server_address)

        self.keep_local_copy = _as_bool(self.keep_local_copy)
        self.enabled_probes = _as_list(self.enabled_probes)
        self.disabled_probes = _as_list(self.disabled_probes)
        self.log_level = str(self.log_level).upper()

    def validate(self) -> None:
        """
        Check that the configuration can drive a run.

        Raises:
            ConfigError: If a required key is missing, the encryption key
                         is malformed or a probe name is unknown.
        """
        missing = [key for key in REQUIRED_KEYS if not getattr(self, key)]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        try:
            parse_key(self.encryption_key)
        except EncryptionError as e:
            raise ConfigError(f"Invalid encryption_key: {e}") from e

        if self.sample_interval <= 0:
            raise ConfigError("sample_interval must be greater than zero")

        unknown = unknown_probes(self.enabled_probes + self.disabled_probes)
        if unknown:
            raise ConfigError(
                f"Unknown probes in configuration: {', '.join(unknown)} "
                f"(available: {', '.join(DOMAIN_RECORDS)})"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "delivery": {
                "server_address": self.server_address,
                "encryption_key": "***" if self.encryption_key else None,
                "upload_timeout": self.upload_timeout,
            },
            "collection": {
                "probe_timeout": self.probe_timeout,
                "sample_interval": self.sample_interval,
                "public_ip_url": self.public_ip_url,
                "ping_host": self.ping_host,
                "ping_count": self.ping_count,
                "enabled_probes": self.enabled_probes,
                "disabled_probes": self.disabled_probes,
            },
            "output": {
                "dir": self.output_dir,
                "keep_local": self.keep_local_copy,
            },
            "logging": {
                "level": self.log_level,
                "file": self.log_file,
            },
        }
