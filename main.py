from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from vwd.api_models import EventOut, PassReportOut, StatusOut, TargetOut
from vwd.db import printable
from vwd.reconciler import Reconciler, build_reconciler
from vwd.settings import Settings, settings

security = HTTPBasic(auto_error=False)


def _default_factory() -> Reconciler:
    return build_reconciler(settings)


def create_app(
    reconciler_factory: Callable[[], Reconciler] = _default_factory,
    cfg: Settings = settings,
    start_loop: bool = True,
) -> FastAPI:
    """Status/trigger API around one reconciler.

    The reconciler is built at startup so a missing project id or a bad
    watch file stops the process before it serves anything.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
        rec = reconciler_factory()
        app.state.reconciler = rec
        if start_loop:
            rec.start()
        try:
            yield
        finally:
            rec.stop()

    app = FastAPI(title="Version Watch Deployer", lifespan=lifespan)

    def get_reconciler(request: Request) -> Reconciler:
        return request.app.state.reconciler

    def require_admin(credentials: HTTPBasicCredentials | None = Depends(security)) -> str | None:
        if not (cfg.admin_user and cfg.admin_password):
            return None
        if credentials is None or not (
            secrets.compare_digest(credentials.username, cfg.admin_user)
            and secrets.compare_digest(credentials.password, cfg.admin_password)
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    @app.get("/status", response_model=StatusOut)
    def get_status(rec: Reconciler = Depends(get_reconciler)) -> StatusOut:
        last_seen = rec.ctx.state.snapshot()
        report = rec.ctx.state.get_report()
        return StatusOut(
            busy=rec.busy,
            stop_on_failure=rec.stop_on_failure,
            targets=[
                TargetOut(
                    name=t.name,
                    manifest_repo=t.manifest_repo,
                    version_bucket=t.version_bucket,
                    frequency=t.frequency,
                    last_seen=printable(last_seen.get(t.name, "")),
                )
                for t in rec.targets.values()
            ],
            last_pass=PassReportOut.from_report(report) if report else None,
        )

    @app.get("/events", response_model=list[EventOut])
    def get_events(
        limit: int = Query(50, ge=1, le=1000),
        app_name: str | None = None,
        rec: Reconciler = Depends(get_reconciler),
    ) -> list[EventOut]:
        return [EventOut.from_row(r) for r in rec.events.recent(limit=limit, app_name=app_name)]

    @app.post("/reconcile", response_model=PassReportOut)
    def post_reconcile(
        rec: Reconciler = Depends(get_reconciler),
        user: str | None = Depends(require_admin),
    ) -> PassReportOut:
        rec.events.info(f"manual pass requested by {user or 'anonymous'}")
        report = rec.try_run_pass()
        if report is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A pass is already running")
        return PassReportOut.from_report(report)

    return app


app = create_app()
