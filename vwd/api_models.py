from __future__ import annotations

from pydantic import BaseModel, Field

from .db import EventRow, printable
from .reconciler import AppResult, PassReport


class AppResultOut(BaseModel):
    name: str
    outcome: str = Field(..., description="deployed|unchanged|failed")
    version: str = ""
    error_kind: str | None = Field(None, description="remote_read|sync|manifest_missing|deploy")
    message: str = ""
    sync: str | None = Field(None, description="cloned|pulled|up_to_date")

    @classmethod
    def from_result(cls, r: AppResult) -> "AppResultOut":
        return cls(
            name=r.name,
            outcome=r.outcome.value,
            version=printable(r.version),
            error_kind=r.error_kind.value if r.error_kind else None,
            message=printable(r.message),
            sync=r.sync.value if r.sync else None,
        )


class PassReportOut(BaseModel):
    ok: bool
    aborted: bool
    started_at: str
    finished_at: str | None = None
    results: list[AppResultOut] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: PassReport) -> "PassReportOut":
        return cls(
            ok=report.ok,
            aborted=report.aborted,
            started_at=report.started_at,
            finished_at=report.finished_at,
            results=[AppResultOut.from_result(r) for r in report.results],
        )


class TargetOut(BaseModel):
    name: str
    manifest_repo: str
    version_bucket: str
    frequency: str = ""
    last_seen: str = Field("", description="Last deployed version in this process, empty before the first deploy")


class StatusOut(BaseModel):
    busy: bool
    stop_on_failure: bool
    targets: list[TargetOut]
    last_pass: PassReportOut | None = None


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    app_name: str | None = None
    version: str | None = None
    message: str

    @classmethod
    def from_row(cls, row: EventRow) -> "EventOut":
        return cls(
            id=row.id,
            ts=row.ts,
            level=row.level,
            app_name=row.app_name,
            version=row.version,
            message=row.message,
        )
