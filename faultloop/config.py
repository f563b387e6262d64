"""
Config system - typed capture configuration with layered loading.

Precedence (later wins):
    defaults < config file (YAML/JSON) < .env file < environment < overrides
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .faults.core import ConfigError, ErrorLevel


@dataclass
class CaptureConfig:
    """
    Fault capture options.

    Attributes:
        use_default_handler: Suppressed and handled faults also go to the
            runtime's default handling (the ``faultloop.runtime`` logger)
        log_to_file: Append every report to ``log_file``
        log_file: HTML log file path
        log_all_ambient_state: Include cookies, server variables and the
            environment in ambient snapshots
        output_error_code_inline: Prefix ``Error code: N`` to text responses
        break_threshold: Redirects allowed before the loop is broken
        reporting_mask: Bitmask of severity codes that are handled at all
        redirect_status: Status code of loop redirects
        session_cookie: Name of the session cookie
    """

    use_default_handler: bool = False
    log_to_file: bool = False
    log_file: str = "faultloop-errors.html"
    log_all_ambient_state: bool = False
    output_error_code_inline: bool = False
    break_threshold: int = 2
    reporting_mask: int = int(ErrorLevel.ALL)
    redirect_status: int = 302
    session_cookie: str = "faultloop_session"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ConfigError: If any option is out of range or of the wrong type
        """
        for f in fields(self):
            value = getattr(self, f.name)
            expected = _FIELD_TYPES[f.name]
            if expected is int and isinstance(value, bool):
                raise ConfigError(f"{f.name} must be an integer, got {value!r}")
            if not isinstance(value, expected):
                raise ConfigError(f"{f.name} must be {expected.__name__}, got {value!r}")

        if self.break_threshold < 1:
            raise ConfigError(f"break_threshold must be >= 1, got {self.break_threshold}")
        if self.reporting_mask < 0:
            raise ConfigError(f"reporting_mask must be >= 0, got {self.reporting_mask}")
        if not 300 <= self.redirect_status < 400:
            raise ConfigError(f"redirect_status must be a 3xx code, got {self.redirect_status}")
        if not self.log_file:
            raise ConfigError("log_file must not be empty")
        if not self.session_cookie:
            raise ConfigError("session_cookie must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_FIELD_TYPES: Dict[str, type] = {
    "use_default_handler": bool,
    "log_to_file": bool,
    "log_file": str,
    "log_all_ambient_state": bool,
    "output_error_code_inline": bool,
    "break_threshold": int,
    "reporting_mask": int,
    "redirect_status": int,
    "session_cookie": str,
}


class ConfigLoader:
    """
    Loads and merges CaptureConfig from multiple sources.

    Example:
        >>> config = ConfigLoader.load("faultloop.yaml", overrides={"log_to_file": True})
        >>> config.break_threshold
        2
    """

    SECTION = "faultloop"

    def __init__(self, env_prefix: str = "FAULTLOOP_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        path: Optional[str | os.PathLike] = None,
        env_prefix: str = "FAULTLOOP_",
        env_file: Optional[str | os.PathLike] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> CaptureConfig:
        """
        Load configuration with precedence.

        Args:
            path: YAML or JSON file; options may sit under a ``faultloop:``
                section or at the top level
            env_prefix: Prefix of environment variables (``FAULTLOOP_LOG_TO_FILE``)
            env_file: ``.env`` file read with python-dotenv
            overrides: Explicit values, highest precedence

        Returns:
            Validated CaptureConfig

        Raises:
            ConfigError: On unreadable files, unknown options or bad values
        """
        loader = cls(env_prefix=env_prefix)

        if path is not None:
            loader._load_file(Path(path))

        if env_file is not None:
            loader._load_env_file(Path(env_file))

        loader._load_from_env(os.environ)

        if overrides:
            loader._merge(overrides, source="overrides")

        return loader.build()

    def build(self) -> CaptureConfig:
        return CaptureConfig(**self.config_data)

    def _load_file(self, path: Path) -> None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                elif path.suffix == ".json":
                    data = json.load(f)
                else:
                    raise ConfigError(f"Unsupported config file type: {path.suffix or path.name}")
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e

        if not data:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        section = data.get(self.SECTION, data)
        if not isinstance(section, dict):
            raise ConfigError(f"'{self.SECTION}' section in {path} must be a mapping")
        self._merge(section, source=str(path))

    def _load_env_file(self, path: Path) -> None:
        """Load prefixed options from a .env file."""
        if not path.exists():
            return
        values = {k: v for k, v in dotenv_values(path).items() if v is not None}
        self._load_from_env(values)

    def _load_from_env(self, environ: Mapping[str, str]) -> None:
        for key, value in environ.items():
            if not key.startswith(self.env_prefix):
                continue
            name = key[len(self.env_prefix):].lower()
            if name not in _FIELD_TYPES:
                continue
            self.config_data[name] = self._parse_value(name, value)

    def _merge(self, values: Mapping[str, Any], source: str) -> None:
        for key, value in values.items():
            if key not in _FIELD_TYPES:
                raise ConfigError(f"Unknown option '{key}' in {source}")
            self.config_data[key] = value

    def _parse_value(self, name: str, value: str) -> Any:
        """Parse a string value into the option's type."""
        expected = _FIELD_TYPES[name]
        text = value.strip()

        if expected is bool:
            if text.lower() in ("true", "yes", "1", "on"):
                return True
            if text.lower() in ("false", "no", "0", "off", ""):
                return False
            raise ConfigError(f"{self.env_prefix}{name.upper()} must be a boolean, got {value!r}")

        if expected is int:
            try:
                return int(text, 0)
            except ValueError:
                raise ConfigError(f"{self.env_prefix}{name.upper()} must be an integer, got {value!r}")

        return text
