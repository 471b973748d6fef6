import shutil
import subprocess

import pytest

from vwd.repo_sync import GitRepositorySync, SyncError, SyncOutcome, is_already_up_to_date


class _Runner:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        return subprocess.CompletedProcess(argv, self.returncode, self.stdout, self.stderr)


def test_clone_when_path_absent(tmp_path):
    runner = _Runner()
    sync = GitRepositorySync(runner=runner)
    dest = tmp_path / "state" / "svc1"

    assert sync.sync(dest, "https://git.example.com/svc1.git") is SyncOutcome.CLONED

    assert [c[0] for c in runner.calls] == [["git", "clone", "https://git.example.com/svc1.git", str(dest)]]
    assert dest.parent.is_dir()
    assert runner.calls[0][1]["env"]["LC_ALL"] == "C"


def test_pull_when_path_present(tmp_path):
    (tmp_path / "svc1" / ".git").mkdir(parents=True)
    runner = _Runner(stdout="Updating 1a2b3c4..5d6e7f8\nFast-forward\n docker-compose.yml | 2 +-\n")
    sync = GitRepositorySync(runner=runner)

    assert sync.sync(tmp_path / "svc1", "https://git.example.com/svc1.git") is SyncOutcome.PULLED

    argv, kwargs = runner.calls[0]
    assert argv == ["git", "pull", "origin"]
    assert kwargs["cwd"] == tmp_path / "svc1"
    assert not any("clone" in c[0] for c in runner.calls)


@pytest.mark.parametrize("stdout", ["Already up to date.\n", "Already up-to-date.\n"])
def test_already_up_to_date_is_success(tmp_path, stdout):
    (tmp_path / "svc1" / ".git").mkdir(parents=True)
    sync = GitRepositorySync(runner=_Runner(stdout=stdout))

    assert sync.sync(tmp_path / "svc1", "unused") is SyncOutcome.UP_TO_DATE


def test_is_already_up_to_date():
    assert is_already_up_to_date("From x\nAlready up to date.\n")
    assert not is_already_up_to_date("Fast-forward\n")


def test_clone_failure_carries_git_stderr(tmp_path):
    runner = _Runner(returncode=128, stderr="fatal: repository 'https://nope/' not found\n")
    sync = GitRepositorySync(runner=runner)

    with pytest.raises(SyncError, match="repository 'https://nope/' not found"):
        sync.sync(tmp_path / "svc1", "https://nope/")


def test_pull_failure_is_error(tmp_path):
    (tmp_path / "svc1" / ".git").mkdir(parents=True)
    sync = GitRepositorySync(runner=_Runner(returncode=1, stderr="fatal: Not possible to fast-forward, aborting.\n"))

    with pytest.raises(SyncError, match="fast-forward"):
        sync.sync(tmp_path / "svc1", "unused")


def test_existing_non_repository_is_error(tmp_path):
    (tmp_path / "svc1").mkdir()
    runner = _Runner()

    with pytest.raises(SyncError, match="not a git working copy"):
        GitRepositorySync(runner=runner).sync(tmp_path / "svc1", "unused")
    assert runner.calls == []


def test_missing_git_binary(tmp_path):
    def runner(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    with pytest.raises(SyncError, match="not found"):
        GitRepositorySync(git_bin="git-missing", runner=runner).sync(tmp_path / "svc1", "unused")


def _git(*args, cwd=None):
    subprocess.run(
        ["git", "-c", "user.name=vwd", "-c", "user.email=vwd@localhost", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_clone_pull_against_local_remote(tmp_path):
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    _git("init", "--bare", str(remote))
    _git("symbolic-ref", "HEAD", "refs/heads/main", cwd=remote)
    _git("init", str(work))
    (work / "docker-compose.yml").write_text("services:\n  web:\n    image: web:${TAG}\n")
    _git("add", "-A", cwd=work)
    _git("commit", "-m", "initial", cwd=work)
    _git("push", str(remote), "HEAD:refs/heads/main", cwd=work)

    dest = tmp_path / "state" / "svc1"
    sync = GitRepositorySync()

    assert sync.sync(dest, str(remote)) is SyncOutcome.CLONED
    assert (dest / "docker-compose.yml").is_file()

    assert sync.sync(dest, str(remote)) is SyncOutcome.UP_TO_DATE

    (work / "docker-compose.yml").write_text("services:\n  web:\n    image: web:${TAG}\n    restart: always\n")
    _git("commit", "-am", "restart policy", cwd=work)
    _git("push", str(remote), "HEAD:refs/heads/main", cwd=work)

    assert sync.sync(dest, str(remote)) is SyncOutcome.PULLED
    assert "restart: always" in (dest / "docker-compose.yml").read_text()
