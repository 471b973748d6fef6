from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path
from typing import Callable, Protocol

import docker
from docker.errors import DockerException

from .settings import DeployerError


class DeployError(DeployerError):
    pass


class DeploymentInvoker(Protocol):
    def up(self, manifest_path: Path, project: str, version: str) -> str: ...


def _client() -> docker.DockerClient:
    return docker.from_env()


def docker_available() -> bool:
    try:
        c = _client()
        c.ping()
        return True
    except DockerException:
        return False


Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class ComposeDeployer:
    """Brings a compose project up with the new version exposed as TAG.

    The manifest is expected to reference ``${TAG}`` in its image tags.
    """

    def __init__(
        self,
        compose_command: str = "docker compose",
        preflight: bool = True,
        runner: Runner = subprocess.run,
        is_available: Callable[[], bool] = docker_available,
    ):
        self.compose_argv = shlex.split(compose_command)
        self.preflight = preflight
        self._runner = runner
        self._is_available = is_available

    def command(self, manifest_path: Path, project: str) -> list[str]:
        return [*self.compose_argv, "-p", project, "-f", str(manifest_path), "up", "-d"]

    def up(self, manifest_path: Path, project: str, version: str) -> str:
        if self.preflight and not self._is_available():
            raise DeployError("Docker is not available. Start the docker daemon and try again.")

        manifest_path = Path(manifest_path)
        argv = self.command(manifest_path, project)
        env = {**os.environ, "TAG": version}
        try:
            res = self._runner(
                argv,
                cwd=str(manifest_path.parent),
                env=env,
                check=False,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise DeployError(f"can not run {' '.join(argv)}: {e}") from e

        if res.returncode != 0:
            # Surface the compose tool's own diagnostic unchanged.
            raise DeployError(res.stderr.strip() or f"{' '.join(argv)} exited with status {res.returncode}")

        return "\n".join(part.strip() for part in (res.stdout, res.stderr) if part and part.strip())
