from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger("vwd")

_LEVELS = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def printable(text: str) -> str:
    """Render surrogate-escaped marker bytes as ``\\xNN`` for sqlite, mail and JSON."""
    return text.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="backslashreplace")


def resolve_db_path(db_path: str) -> str:
    """Return a file path usable by sqlite.

    Docker creates a *directory* when a bind-mounted file path does not
    exist on the host. If the configured path is a directory, the DB file
    is placed inside it.
    """
    p = os.path.abspath(db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "vwd.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(resolve_db_path(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create tables if they do not exist."""
    with connect(db_path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              app_name TEXT,
              version TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


@dataclass(frozen=True)
class EventRow:
    id: int
    ts: str
    level: str
    app_name: str | None
    version: str | None
    message: str


def log_event(
    db_path: str,
    level: str,
    message: str,
    app_name: str | None = None,
    version: str | None = None,
) -> None:
    level = level.upper()
    message = printable(message)
    version = printable(version) if version is not None else None
    logger.log(
        _LEVELS.get(level, logging.INFO),
        "%s%s",
        f"[{app_name}] " if app_name else "",
        message,
    )
    with connect(db_path) as conn:
        conn.execute(
            "INSERT INTO events (ts, level, app_name, version, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level, app_name, version, message),
        )


def list_events(db_path: str, limit: int = 50, app_name: str | None = None) -> list[EventRow]:
    limit = max(1, min(1000, int(limit)))
    with connect(db_path) as conn:
        if app_name:
            rows = conn.execute(
                "SELECT * FROM events WHERE app_name = ? ORDER BY id DESC LIMIT ?",
                (app_name, limit),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
    return [
        EventRow(
            id=r["id"],
            ts=r["ts"],
            level=r["level"],
            app_name=r["app_name"],
            version=r["version"],
            message=r["message"],
        )
        for r in rows
    ]


class EventLog:
    """Event journal bound to one database file.

    Every event is written to the ``events`` table and mirrored to the
    ``vwd`` logger. The journal is never read back to seed version state.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def info(self, message: str, app_name: str | None = None, version: str | None = None) -> None:
        log_event(self.db_path, "INFO", message, app_name=app_name, version=version)

    def warn(self, message: str, app_name: str | None = None, version: str | None = None) -> None:
        log_event(self.db_path, "WARN", message, app_name=app_name, version=version)

    def error(self, message: str, app_name: str | None = None, version: str | None = None) -> None:
        log_event(self.db_path, "ERROR", message, app_name=app_name, version=version)

    def recent(self, limit: int = 50, app_name: str | None = None) -> list[EventRow]:
        return list_events(self.db_path, limit=limit, app_name=app_name)
