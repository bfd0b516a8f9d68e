"""Server configuration.

Settings are read once at startup from a JSON file and environment
variables, validated, and then passed explicitly to the application
factory. Nothing in the server reads configuration from globals.

Config File (config.json):
    {
        "auth_token": "s3cret",
        "deployment_path": "/srv/sites",
        "port": "8080",
        "allowed_origins": "https://editor.example.com",
        "log_path": "logs",
        "export_type": "hugo"
    }

Environment Variables (override the file):
    DEPLOY_CONFIG: Path of the config file (default: config.json)
    DEPLOY_TOKEN: Bearer token clients must present
    DEPLOYMENT_PATH: Root directory for deployed files
    DEPLOY_HOST / DEPLOY_PORT: Listen address
    ALLOWED_ORIGINS: Value for Access-Control-Allow-Origin (empty disables CORS)
    DEPLOY_LOG_PATH: Directory for deployment_server.log
    EXPORT_TYPE: Default export type when a request names none
    TEMPLATES_PATH: Directory holding named site templates
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .paths import validate_segment_name

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_CONFIG_FILE: str = "config.json"
"""Config file read when neither an argument nor DEPLOY_CONFIG names one."""

FALLBACK_EXPORT_TYPE: str = "hugo"
"""Export type used when neither the request nor the config names one."""

MAX_BODY_SIZE: int = 100 * 1024 * 1024
"""Maximum request body size in bytes (100 MiB)."""

ENV_OVERRIDES: dict[str, str] = {
    "DEPLOY_TOKEN": "auth_token",
    "DEPLOYMENT_PATH": "deployment_path",
    "DEPLOY_HOST": "host",
    "DEPLOY_PORT": "port",
    "ALLOWED_ORIGINS": "allowed_origins",
    "DEPLOY_LOG_PATH": "log_path",
    "EXPORT_TYPE": "export_type",
    "TEMPLATES_PATH": "templates_path",
}
"""Environment variable -> settings field."""


class ConfigError(Exception):
    """Configuration is missing, unreadable, or invalid."""


class Settings(BaseModel):
    """Validated server configuration.

    Attributes:
        auth_token: Shared secret expected in "Authorization: Bearer <token>".
        deployment_path: Root directory under which export types live.
        host: Interface to listen on.
        port: TCP port to listen on.
        allowed_origins: CORS origin value; empty disables CORS headers.
        log_path: Directory for the log file.
        export_type: Default export type for requests that name none.
        templates_path: Directory of named site templates.
        max_body_size: Request body ceiling in bytes.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    auth_token: str
    deployment_path: str
    host: str = "0.0.0.0"
    port: int = 8080
    allowed_origins: str = ""
    log_path: str = "logs"
    export_type: str = ""
    templates_path: str = "site_templates"
    max_body_size: int = MAX_BODY_SIZE

    @field_validator("auth_token", "deployment_path")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("export_type")
    @classmethod
    def _single_segment(cls, value: str) -> str:
        if value and not validate_segment_name(value):
            raise ValueError("must be a single path segment of letters, digits, '_', '.' or '-'")
        return value

    @property
    def deployment_root(self) -> Path:
        """Absolute, normalized deployment root."""
        return Path(os.path.abspath(self.deployment_path))

    @property
    def default_export_type(self) -> str:
        return self.export_type or FALLBACK_EXPORT_TYPE


def load_settings(
    config_file: str | os.PathLike | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from a JSON file plus environment overrides.

    A missing default config file is fine as long as the environment
    supplies the required values; an explicitly named file must exist.

    Args:
        config_file: Config file path. Defaults to DEPLOY_CONFIG or config.json.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Validated Settings.

    Raises:
        ConfigError: Unreadable file, invalid JSON, or failed validation.
    """
    if environ is None:
        environ = os.environ

    path = Path(config_file or environ.get("DEPLOY_CONFIG") or DEFAULT_CONFIG_FILE)
    explicit = config_file is not None or bool(environ.get("DEPLOY_CONFIG"))

    data: dict = {}
    if path.exists():
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Error reading configuration file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {path} must contain a JSON object")
    elif explicit:
        raise ConfigError(f"Configuration file not found: {path}")

    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            data[key] = value

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def ensure_deployment_root(settings: Settings) -> Path:
    """Create the deployment root if needed.

    Raises:
        ConfigError: The path exists but is not a directory, or cannot be created.
    """
    root = settings.deployment_root
    try:
        root.mkdir(mode=0o755, parents=True, exist_ok=True)
    except FileExistsError as e:
        raise ConfigError(f"Deployment path is not a directory: {root}") from e
    except OSError as e:
        raise ConfigError(f"Error creating deployment directory: {e}") from e
    return root
