import os as _os
import sys
from pathlib import Path

import pytest

# Ensure project root is importable (so `import main` / `import cli` work without installing)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from vwd.db import EventLog  # noqa: E402
from vwd.docker_ops import DeployError  # noqa: E402
from vwd.repo_sync import SyncError, SyncOutcome  # noqa: E402
from vwd.runtime import ReconcileContext  # noqa: E402
from vwd.version_source import VersionReadError  # noqa: E402
from vwd.watchlist import WatchTarget  # noqa: E402


class FakeSource:
    """Version store backed by a dict of (bucket, name) -> bytes."""

    def __init__(self, markers=None):
        self.markers = dict(markers or {})
        self.calls = []

    def read(self, bucket, name):
        self.calls.append((bucket, name))
        try:
            return self.markers[(bucket, name)]
        except KeyError:
            raise VersionReadError(f"version marker gs://{bucket}/{name} not found")


class FakeSync:
    """Records clone/pull decisions and creates the working copy like git would."""

    def __init__(self, manifest_name="docker-compose.yml", with_manifest=True, fail=None):
        self.manifest_name = manifest_name
        self.with_manifest = with_manifest
        self.fail = fail
        self.clones = []
        self.pulls = []

    def sync(self, path, url):
        if self.fail:
            raise SyncError(self.fail)
        path = Path(path)
        if not path.exists():
            self.clones.append((path, url))
            path.mkdir(parents=True)
            if self.with_manifest:
                (path / self.manifest_name).write_text("services: {}\n")
            return SyncOutcome.CLONED
        self.pulls.append(path)
        return SyncOutcome.PULLED


class FakeDeployer:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.calls = []

    def up(self, manifest_path, project, version):
        self.calls.append((Path(manifest_path), project, version))
        if project in self.fail_for:
            raise DeployError(f"ERROR: pull access denied for {project}:{version}")
        return f"Container {project}-web-1  Started"


@pytest.fixture
def events(tmp_path):
    return EventLog(str(tmp_path / "vwd.db"))


@pytest.fixture
def ctx(events):
    return ReconcileContext(events=events)


@pytest.fixture
def make_target():
    def _make(name="svc1", bucket="v-bucket", repo=None, frequency="5m"):
        return WatchTarget(
            name=name,
            manifest_repo=repo or f"https://git.example.com/{name}-deploy.git",
            version_bucket=bucket,
            frequency=frequency,
        )

    return _make
