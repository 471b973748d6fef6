from __future__ import annotations

from pathlib import Path

from .settings import DeployerError


MANIFEST_NAME = "docker-compose.yml"


class ManifestMissing(DeployerError):
    """The synced repository has no compose manifest where one is expected."""

    def __init__(self, repo_path: Path, manifest_name: str):
        self.repo_path = Path(repo_path)
        self.manifest_name = manifest_name
        super().__init__(
            f"repo at {self.repo_path} does not contain a {manifest_name} file; "
            "check the application's docker-compose-location"
        )


def locate_manifest(repo_path: Path, manifest_name: str = MANIFEST_NAME) -> Path:
    p = Path(repo_path) / manifest_name
    if not p.is_file():
        raise ManifestMissing(repo_path, manifest_name)
    return p
