from __future__ import annotations

import re
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .settings import DeployerError


APP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_\-]{0,62}$")


class WatchFileError(DeployerError):
    pass


def validate_app_name(name: str) -> None:
    # The name becomes a directory under the state dir and the compose project name.
    if not APP_NAME_RE.match(name):
        raise ValueError(
            "Invalid application name. Use lowercase letters/numbers, '-' and '_' (max 63 chars)."
        )


class WatchTarget(BaseModel):
    """One watched application, as configured in the watch file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    manifest_repo: str = Field(..., alias="docker-compose-location", min_length=1)
    version_bucket: str = Field(..., alias="version-bucket", min_length=1)
    # Carried for operators; passes are scheduled by the caller.
    frequency: str = ""

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        validate_app_name(v)
        return v

    @field_validator("frequency", mode="before")
    @classmethod
    def _frequency_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


def parse_watch_targets(data: Any) -> dict[str, WatchTarget]:
    """Build the target set from an already-decoded watch document.

    Expected shape::

        apps:
          svc1:
            docker-compose-location: https://example.com/svc1-deploy.git
            version-bucket: v-bucket
            frequency: 5m
    """
    if not isinstance(data, dict) or not isinstance(data.get("apps"), dict):
        raise WatchFileError("watch file must contain an 'apps' mapping")

    targets: dict[str, WatchTarget] = {}
    for name, entry in data["apps"].items():
        if not isinstance(entry, dict):
            raise WatchFileError(f"app '{name}' must be a mapping")
        try:
            targets[str(name)] = WatchTarget(name=str(name), **{k: v for k, v in entry.items() if k != "name"})
        except ValidationError as e:
            raise WatchFileError(f"invalid app '{name}': {e}") from e
    return targets


def load_watch_file(path: str) -> dict[str, WatchTarget]:
    try:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as e:
        raise WatchFileError(f"failed to read watch file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise WatchFileError(f"failed to parse watch file {path}: {e}") from e
    return parse_watch_targets(data)
