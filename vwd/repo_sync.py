from __future__ import annotations

import os
import subprocess
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from .settings import DeployerError


REMOTE_NAME = "origin"

# `git pull` prints one of these when there is nothing new upstream.
_UP_TO_DATE_MARKERS = ("Already up to date", "Already up-to-date")


class SyncError(DeployerError):
    pass


class SyncOutcome(str, Enum):
    CLONED = "cloned"
    PULLED = "pulled"
    UP_TO_DATE = "up_to_date"


class RepositorySync(Protocol):
    def sync(self, path: Path, url: str) -> SyncOutcome: ...


Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def is_already_up_to_date(output: str) -> bool:
    return any(m in output for m in _UP_TO_DATE_MARKERS)


class GitRepositorySync:
    """Clone-or-pull sync of a manifest repository through the git CLI."""

    def __init__(self, git_bin: str = "git", runner: Runner = subprocess.run):
        self.git_bin = git_bin
        self._runner = runner

    def _run(self, *args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        env = {**os.environ, "LC_ALL": "C", "GIT_TERMINAL_PROMPT": "0"}
        try:
            return self._runner(
                [self.git_bin, *args],
                cwd=cwd,
                env=env,
                check=False,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise SyncError(f"git executable '{self.git_bin}' not found") from e

    def sync(self, path: Path, url: str) -> SyncOutcome:
        path = Path(path)
        if not path.exists():
            return self.clone(path, url)
        return self.pull(path)

    def clone(self, path: Path, url: str) -> SyncOutcome:
        path.parent.mkdir(parents=True, exist_ok=True)
        res = self._run("clone", url, str(path))
        if res.returncode != 0:
            raise SyncError(f"git clone {url} failed: {(res.stderr or res.stdout).strip()}")
        return SyncOutcome.CLONED

    def pull(self, path: Path) -> SyncOutcome:
        if not (path / ".git").exists():
            raise SyncError(f"{path} exists but is not a git working copy")
        res = self._run("pull", REMOTE_NAME, cwd=path)
        output = f"{res.stdout}\n{res.stderr}"
        if res.returncode != 0:
            raise SyncError(f"git pull {REMOTE_NAME} in {path} failed: {(res.stderr or res.stdout).strip()}")
        if is_already_up_to_date(output):
            return SyncOutcome.UP_TO_DATE
        return SyncOutcome.PULLED
