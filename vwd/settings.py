from __future__ import annotations

import os
from dataclasses import dataclass


class DeployerError(Exception):
    """Base class for every operational failure raised by vwd."""


class ConfigError(DeployerError):
    pass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    project_id: str = os.getenv("GOOGLE_CLOUD_PROJECT", "")
    watch_file: str = os.getenv("VWD_WATCH_FILE", "watch.yml")
    state_dir: str = os.getenv("VWD_STATE_DIR", "tmp")
    manifest_name: str = os.getenv("VWD_MANIFEST_NAME", "docker-compose.yml")
    compose_command: str = os.getenv("VWD_COMPOSE_COMMAND", "docker compose")
    db_path: str = os.getenv("VWD_DB_PATH", "vwd.db")
    poll_interval_s: int = _env_int("VWD_POLL_INTERVAL_S", 60)

    # Policy knobs
    # Abort the rest of a pass when one application fails.
    stop_on_failure: bool = _env_bool("VWD_STOP_ON_FAILURE", True)
    # Ping the docker daemon before running compose.
    docker_preflight: bool = _env_bool("VWD_DOCKER_PREFLIGHT", True)

    # Basic auth for POST /reconcile (disabled when unset)
    admin_user: str | None = os.getenv("VWD_ADMIN_USER")
    admin_password: str | None = os.getenv("VWD_ADMIN_PASSWORD")

    # Email alerting (optional)
    enable_email: bool = _env_bool("VWD_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("VWD_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("VWD_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("VWD_SMTP_USER")
    smtp_password: str | None = os.getenv("VWD_SMTP_PASSWORD")
    email_from: str | None = os.getenv("VWD_EMAIL_FROM")
    email_to: str | None = os.getenv("VWD_EMAIL_TO")

    def require_project(self) -> str:
        """Return the cloud project id or fail startup."""
        if not self.project_id.strip():
            raise ConfigError("GOOGLE_CLOUD_PROJECT environment variable must be set.")
        return self.project_id.strip()


settings = Settings()
