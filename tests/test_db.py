import logging

from vwd.db import EventLog, resolve_db_path


def test_events_are_journaled_newest_first(events):
    events.info("checking for latest version", app_name="svc1")
    events.error("deploy: boom", app_name="svc1", version="1.2.3")
    events.warn("alert not sent")

    rows = events.recent()
    assert [r.level for r in rows] == ["WARN", "ERROR", "INFO"]
    assert rows[1].version == "1.2.3"
    assert [r.message for r in events.recent(app_name="svc1", limit=1)] == ["deploy: boom"]


def test_events_are_mirrored_to_logging(events, caplog):
    with caplog.at_level(logging.INFO, logger="vwd"):
        events.info("deployed", app_name="svc1", version="1")
    assert "[svc1] deployed" in caplog.text


def test_directory_db_path(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    assert resolve_db_path(str(d)) == str(d / "vwd.db")

    log = EventLog(str(d))
    log.info("hello")
    assert (d / "vwd.db").is_file()
