"""Configuration file support for jobtrack-security."""

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

from .auth.models import PasswordRequirements
from .auth.session_guard import SessionGuardConfig

logger = logging.getLogger(__name__)

ENV_API_URL = "JOBTRACK_SECURITY_API_URL"
ENV_LOG_LEVEL = "JOBTRACK_SECURITY_LOG_LEVEL"

DEFAULT_API_URL = "http://localhost:3000"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

CREDENTIAL_KEYS = {
    "password",
    "db_password",
    "database_password",
    "secret",
    "api_key",
    "token",
    "credentials",
    "auth",
}

POSITIVE_INTS = {
    "password_policy": ("min_length", "max_length", "max_repeating_chars"),
    "limits": (
        "login_max_attempts",
        "login_lockout_minutes",
        "admin_max_actions",
        "admin_window_minutes",
    ),
    "sessions": ("timeout_minutes", "refresh_threshold_minutes"),
    "admin": ("cache_ttl_minutes",),
}


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


class CredentialInConfigError(Exception):
    """Raised when credentials are detected in configuration files."""

    pass


@dataclass
class LimitsConfig:
    login_max_attempts: int = 5
    login_lockout_minutes: int = 15
    admin_max_actions: int = 100
    admin_window_minutes: int = 1

    @property
    def login_lockout(self) -> timedelta:
        return timedelta(minutes=self.login_lockout_minutes)

    @property
    def admin_window(self) -> timedelta:
        return timedelta(minutes=self.admin_window_minutes)


@dataclass
class AdminConfig:
    cache_ttl_minutes: int = 5
    remote_verification: bool = True

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(minutes=self.cache_ttl_minutes)


@dataclass
class SecurityConfig:
    api_url: str = DEFAULT_API_URL
    request_timeout: float = 10.0
    log_level: str = "INFO"
    security_log_path: Path | None = None
    password_policy: PasswordRequirements = field(default_factory=PasswordRequirements)
    sessions: SessionGuardConfig = field(default_factory=SessionGuardConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SecurityConfig":
        core = data.get("jobtrack_security", {})
        sessions = data.get("sessions", {})

        log_path = core.get("security_log_path")
        if log_path:
            log_path = Path(log_path)

        return cls(
            api_url=core.get("api_url", DEFAULT_API_URL),
            request_timeout=float(core.get("request_timeout", 10.0)),
            log_level=core.get("log_level", "INFO").upper(),
            security_log_path=log_path,
            password_policy=_build(PasswordRequirements, data.get("password_policy", {})),
            sessions=SessionGuardConfig(
                session_timeout=timedelta(minutes=sessions.get("timeout_minutes", 30)),
                refresh_threshold=timedelta(
                    minutes=sessions.get("refresh_threshold_minutes", 5)
                ),
            ),
            limits=_build(LimitsConfig, data.get("limits", {})),
            admin=_build(AdminConfig, data.get("admin", {})),
        )


def _build(cls: type, section: dict[str, Any]) -> Any:
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in section.items() if k in names})


def detect_credentials_in_config(
    config_dict: dict[str, Any],
    path: str = "",
    warn_only: bool = True,
) -> list[str]:
    """Detect potential credentials in configuration dictionary.

    Only non-empty string values are considered; nested tables are searched
    recursively.

    Args:
        config_dict: Configuration dictionary to check.
        path: Current path in nested config (for error messages).
        warn_only: If True, emit warning. If False, raise error.

    Returns:
        List of detected credential key paths.

    Raises:
        CredentialInConfigError: If credentials found and warn_only=False.
    """
    detected = []

    for key, value in config_dict.items():
        current_path = f"{path}.{key}" if path else key
        key_lower = key.lower()

        if isinstance(value, dict):
            detected.extend(detect_credentials_in_config(value, current_path, warn_only=True))
            continue

        if isinstance(value, str) and value and any(c in key_lower for c in CREDENTIAL_KEYS):
            detected.append(current_path)

    if detected and not path:
        msg = (
            f"Potential credentials detected in config file: {', '.join(detected)}. "
            "Secrets must be provided via environment variables or a secrets manager, "
            "not configuration files."
        )
        if warn_only:
            logger.warning(msg)
        else:
            raise CredentialInConfigError(msg)

    return detected


def validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values.

    Raises:
        ConfigValidationError: If any configuration value is invalid.
    """
    core = config_dict.get("jobtrack_security", {})

    if "log_level" in core:
        log_level = core["log_level"]
        if not isinstance(log_level, str):
            raise ConfigValidationError(
                f"log_level must be a string, got {type(log_level).__name__}"
            )
        if log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{log_level}'"
            )

    if "api_url" in core:
        api_url = core["api_url"]
        if not isinstance(api_url, str) or not api_url.startswith(("http://", "https://")):
            raise ConfigValidationError(f"api_url must be an http(s) URL, got '{api_url}'")

    if "request_timeout" in core:
        timeout = core["request_timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout <= 0:
            raise ConfigValidationError(f"request_timeout must be positive, got {timeout!r}")

    for section, keys in POSITIVE_INTS.items():
        values = config_dict.get(section, {})
        for key in keys:
            if key not in values:
                continue
            value = values[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigValidationError(
                    f"{section}.{key} must be an integer, got {type(value).__name__}"
                )
            if value <= 0:
                raise ConfigValidationError(f"{section}.{key} must be positive, got {value}")

    policy = config_dict.get("password_policy", {})
    min_length = policy.get("min_length", PasswordRequirements.min_length)
    max_length = policy.get("max_length", PasswordRequirements.max_length)
    if min_length > max_length:
        raise ConfigValidationError(
            f"password_policy.min_length ({min_length}) exceeds max_length ({max_length})"
        )


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    core = config_dict.setdefault("jobtrack_security", {})
    if api_url := os.environ.get(ENV_API_URL):
        core["api_url"] = api_url
    if log_level := os.environ.get(ENV_LOG_LEVEL):
        core["log_level"] = log_level
    return config_dict


def load_config(
    config_path: Path | None = None, overrides: dict[str, Any] | None = None
) -> SecurityConfig:
    """Load configuration from a TOML file and the environment.

    Args:
        config_path: Path to the TOML configuration file. Defaults are used when None.
        overrides: Optional values merged into the ``[jobtrack_security]`` table.

    Returns:
        SecurityConfig instance with loaded values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigValidationError: If any configuration value is invalid.
    """
    toml_data: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
        detect_credentials_in_config(toml_data, warn_only=True)

    apply_env_overrides(toml_data)
    if overrides:
        toml_data["jobtrack_security"].update(overrides)

    validate_config(toml_data)

    return SecurityConfig.from_dict(toml_data)
