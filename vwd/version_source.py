from __future__ import annotations

from typing import Any, Protocol

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from .settings import ConfigError, DeployerError


class VersionReadError(DeployerError):
    pass


class VersionSource(Protocol):
    def read(self, bucket: str, name: str) -> bytes: ...


def normalize_version(raw: bytes | str) -> str:
    """Return the comparable form of a version marker.

    Markers are plain text files, so exactly one trailing newline is dropped.
    Bytes that are not UTF-8 are kept as surrogate escapes, so any marker
    compares and reaches TAG unchanged.
    """
    text = raw.decode("utf-8", errors="surrogateescape") if isinstance(raw, bytes) else raw
    if text.endswith("\n"):
        return text[:-1]
    return text


def connect_storage(project: str | None = None) -> Any:
    """Build the storage client at startup; missing credentials stop the process."""
    try:
        return storage.Client(project=project)
    except auth_exceptions.GoogleAuthError as e:
        raise ConfigError(f"can not create storage client: {type(e).__name__}: {e}") from e


class GcsVersionSource:
    """Reads version markers from Google Cloud Storage.

    The object key is the application name. Every call is a fresh read.
    """

    def __init__(self, project: str | None = None, client: Any = None):
        self._project = project
        self._client = client

    def _storage(self) -> Any:
        if self._client is None:
            self._client = storage.Client(project=self._project)
        return self._client

    def read(self, bucket: str, name: str) -> bytes:
        try:
            blob = self._storage().bucket(bucket).blob(name)
            with blob.open("rb") as stream:
                return stream.read()
        except gcloud_exceptions.NotFound as e:
            raise VersionReadError(f"version marker gs://{bucket}/{name} not found") from e
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as e:
            raise VersionReadError(f"can not read gs://{bucket}/{name}: {type(e).__name__}: {e}") from e
