from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from typing import TYPE_CHECKING

from .db import EventLog

if TYPE_CHECKING:
    from .reconciler import PassReport


class RuntimeState:
    """In-memory state for one deployer process.

    Last-seen versions start empty, so the first pass deploys every
    application once. Nothing here survives a restart.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.last_seen: dict[str, str] = {}  # app name -> normalized version
        self.last_report: PassReport | None = None

    def get_last_seen(self, app_name: str) -> str:
        with self.lock:
            return self.last_seen.get(app_name, "")

    def set_last_seen(self, app_name: str, version: str) -> None:
        with self.lock:
            self.last_seen[app_name] = version

    def snapshot(self) -> dict[str, str]:
        with self.lock:
            return dict(self.last_seen)

    def set_report(self, report: PassReport) -> None:
        with self.lock:
            self.last_report = report

    def get_report(self) -> PassReport | None:
        with self.lock:
            return self.last_report


@dataclass
class ReconcileContext:
    """Everything a pass mutates or reports to, created once at startup."""

    events: EventLog
    state: RuntimeState = field(default_factory=RuntimeState)
