from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Callable, Mapping

from .alerts import email_configured, send_email
from .db import EventLog, printable, utc_now
from .docker_ops import ComposeDeployer, DeployError, DeploymentInvoker
from .manifest import MANIFEST_NAME, ManifestMissing, locate_manifest
from .repo_sync import GitRepositorySync, RepositorySync, SyncError, SyncOutcome
from .runtime import ReconcileContext
from .settings import Settings
from .version_source import (
    GcsVersionSource,
    VersionReadError,
    VersionSource,
    connect_storage,
    normalize_version,
)
from .watchlist import WatchTarget, load_watch_file


class Outcome(str, Enum):
    DEPLOYED = "deployed"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class ErrorKind(str, Enum):
    REMOTE_READ = "remote_read"
    SYNC = "sync"
    MANIFEST_MISSING = "manifest_missing"
    DEPLOY = "deploy"


@dataclass(frozen=True)
class AppResult:
    name: str
    outcome: Outcome
    version: str = ""
    error_kind: ErrorKind | None = None
    message: str = ""
    sync: SyncOutcome | None = None


@dataclass
class PassReport:
    results: list[AppResult] = field(default_factory=list)
    aborted: bool = False
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None

    @property
    def ok(self) -> bool:
        return not any(r.outcome is Outcome.FAILED for r in self.results)

    @property
    def failures(self) -> list[AppResult]:
        return [r for r in self.results if r.outcome is Outcome.FAILED]


Notifier = Callable[[str, str], bool]


class Reconciler:
    """Deploys every watched application whose published version changed.

    One pass walks the targets in order:
      Checking -> Unchanged, or
      Checking -> Syncing -> Locating -> Deploying -> Done
    and any step's error ends that application in Failed.
    """

    def __init__(
        self,
        targets: Mapping[str, WatchTarget],
        source: VersionSource,
        syncer: RepositorySync,
        deployer: DeploymentInvoker,
        ctx: ReconcileContext,
        state_dir: str | Path = "tmp",
        manifest_name: str = MANIFEST_NAME,
        stop_on_failure: bool = True,
        poll_interval_s: int = 60,
        notify: Notifier | None = None,
    ):
        self.targets = dict(targets)
        self.source = source
        self.syncer = syncer
        self.deployer = deployer
        self.ctx = ctx
        self.state_dir = Path(state_dir)
        self.manifest_name = manifest_name
        self.stop_on_failure = stop_on_failure
        self.poll_interval_s = max(1, int(poll_interval_s))
        self.notify = notify
        self._pass_lock = Lock()
        self._stop = Event()
        self._thr: Thread | None = None

    @property
    def events(self) -> EventLog:
        return self.ctx.events

    def repo_path(self, name: str) -> Path:
        return self.state_dir / name

    # ------------------------------------------------------------------
    # Single application
    # ------------------------------------------------------------------

    def reconcile_app(self, target: WatchTarget) -> AppResult:
        name = target.name
        self.events.info("checking for latest version", app_name=name)
        try:
            raw = self.source.read(target.version_bucket, name)
        except VersionReadError as e:
            return self._failed(name, ErrorKind.REMOTE_READ, f"can not get latest version b/c {e}")

        new_version = normalize_version(raw)
        if new_version == self.ctx.state.get_last_seen(name):
            self.events.info("no new updates", app_name=name, version=new_version)
            return AppResult(name=name, outcome=Outcome.UNCHANGED, version=new_version)

        path = self.repo_path(name)
        try:
            synced = self.syncer.sync(path, target.manifest_repo)
        except SyncError as e:
            return self._failed(name, ErrorKind.SYNC, str(e), new_version)
        self.events.info(f"repository {synced.value}: {target.manifest_repo}", app_name=name, version=new_version)

        try:
            manifest = locate_manifest(path, self.manifest_name)
        except ManifestMissing as e:
            return self._failed(name, ErrorKind.MANIFEST_MISSING, str(e), new_version, synced)

        self.events.info(f"bringing up {manifest} with TAG={new_version}", app_name=name, version=new_version)
        try:
            output = self.deployer.up(manifest, name, new_version)
        except DeployError as e:
            return self._failed(name, ErrorKind.DEPLOY, str(e), new_version, synced)
        if output:
            self.events.info(output, app_name=name, version=new_version)

        self.ctx.state.set_last_seen(name, new_version)
        self.events.info("deployed", app_name=name, version=new_version)
        return AppResult(name=name, outcome=Outcome.DEPLOYED, version=new_version, sync=synced)

    def _failed(
        self,
        name: str,
        kind: ErrorKind,
        message: str,
        version: str = "",
        synced: SyncOutcome | None = None,
    ) -> AppResult:
        self.events.error(f"{kind.value}: {message}", app_name=name, version=version or None)
        return AppResult(
            name=name,
            outcome=Outcome.FAILED,
            version=version,
            error_kind=kind,
            message=message,
            sync=synced,
        )

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self._pass_lock.locked()

    def run_pass(self) -> PassReport:
        with self._pass_lock:
            return self._run_pass()

    def try_run_pass(self) -> PassReport | None:
        """Run a pass unless one is already in progress."""
        if not self._pass_lock.acquire(blocking=False):
            return None
        try:
            return self._run_pass()
        finally:
            self._pass_lock.release()

    def _run_pass(self) -> PassReport:
        report = PassReport()
        for target in self.targets.values():
            result = self.reconcile_app(target)
            report.results.append(result)
            if result.outcome is Outcome.FAILED and self.stop_on_failure:
                report.aborted = True
                break
        report.finished_at = utc_now()
        self.ctx.state.set_report(report)
        self._alert(report)
        return report

    def _alert(self, report: PassReport) -> None:
        if self.notify is None:
            return
        deployed = [r for r in report.results if r.outcome is Outcome.DEPLOYED]
        if report.ok and not deployed:
            return
        if report.ok:
            subject = f"DEPLOYED: {', '.join(f'{r.name} {r.version}' for r in deployed)}"
        else:
            subject = f"FAILED: {', '.join(r.name for r in report.failures)}"
        lines = [f"{r.name}: {r.outcome.value} {r.version}".rstrip() for r in report.results]
        lines += [f"{r.name} [{r.error_kind.value}]: {r.message}" for r in report.failures if r.error_kind]
        if report.aborted:
            lines.append("Pass aborted on first failure.")
        if not self.notify(printable(subject), printable("\n".join(lines))):
            self.events.warn(f"alert not sent: {subject}")

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self, timeout: float | None = 30.0) -> None:
        """Stop the background loop, waiting up to ``timeout`` for a running pass."""
        self._stop.set()
        if self._thr and self._thr.is_alive():
            self._thr.join(timeout)

    def _loop(self) -> None:
        self.events.info(f"Reconciler started ({len(self.targets)} apps, every {self.poll_interval_s}s)")
        while not self._stop.is_set():
            try:
                report = self.run_pass()
                if report.aborted:
                    self.events.error(f"pass aborted after {report.failures[0].name} failed")
            except Exception as e:
                self.events.error(f"Reconcile pass crashed: {type(e).__name__}: {e}")
            self._stop.wait(self.poll_interval_s)

    def run_forever(self) -> None:
        """Foreground variant of the background loop."""
        try:
            self._loop()
        except KeyboardInterrupt:
            self.events.info("Reconciler stopped")


def build_reconciler(cfg: Settings, targets: Mapping[str, WatchTarget] | None = None) -> Reconciler:
    """Wire the production collaborators from settings."""
    project = cfg.require_project()
    if targets is None:
        targets = load_watch_file(cfg.watch_file)

    ctx = ReconcileContext(events=EventLog(cfg.db_path))
    return Reconciler(
        targets=targets,
        source=GcsVersionSource(project=project, client=connect_storage(project)),
        syncer=GitRepositorySync(),
        deployer=ComposeDeployer(cfg.compose_command, preflight=cfg.docker_preflight),
        ctx=ctx,
        state_dir=cfg.state_dir,
        manifest_name=cfg.manifest_name,
        stop_on_failure=cfg.stop_on_failure,
        poll_interval_s=cfg.poll_interval_s,
        notify=(lambda subject, body: send_email(subject, body, cfg)) if email_configured(cfg) else None,
    )
