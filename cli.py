from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace

import requests

from vwd.api_models import PassReportOut
from vwd.reconciler import build_reconciler
from vwd.settings import DeployerError, settings
from vwd.watchlist import load_watch_file


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Version Watch Deployer CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--watch-file", default=None, help=f"Watch file (default: {settings.watch_file})")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Run one reconcile pass locally; exit 1 on failure")
    policy = s_run.add_mutually_exclusive_group()
    policy.add_argument("--stop-on-failure", dest="stop_on_failure", action="store_true", default=None)
    policy.add_argument(
        "--keep-going",
        dest="stop_on_failure",
        action="store_false",
        default=None,
        help="Check remaining apps after a failure and report all failures at the end",
    )

    s_watch = sub.add_parser("watch", help="Reconcile locally every --interval seconds")
    s_watch.add_argument("--interval", type=int, default=None)

    sub.add_parser("targets", help="Print the parsed watch file")

    sub.add_parser("status", help="Show deployer status (API)")

    s_ev = sub.add_parser("events", help="Show events (API)")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--app", default=None)

    sub.add_parser("reconcile", help="Trigger a pass on the running deployer (API)")

    args = p.parse_args(argv)

    cfg = settings
    if args.watch_file:
        cfg = replace(cfg, watch_file=args.watch_file)

    base = args.api.rstrip("/")

    if args.cmd in {"run", "watch", "targets"}:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
        try:
            if args.cmd == "targets":
                targets = load_watch_file(cfg.watch_file)
                _print({name: t.model_dump() for name, t in targets.items()})
                return 0
            if args.cmd == "run" and args.stop_on_failure is not None:
                cfg = replace(cfg, stop_on_failure=args.stop_on_failure)
            if args.cmd == "watch" and args.interval is not None:
                cfg = replace(cfg, poll_interval_s=args.interval)
            rec = build_reconciler(cfg)
        except DeployerError as e:
            logging.getLogger("vwd").error("%s", e)
            return 1

        if args.cmd == "watch":
            rec.run_forever()
            return 0

        report = rec.run_pass()
        _print(PassReportOut.from_report(report).model_dump())
        return 0 if report.ok else 1

    if args.cmd == "status":
        _print(requests.get(f"{base}/status", timeout=10).json())
        return 0

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.app:
            params["app_name"] = args.app
        _print(requests.get(f"{base}/events", params=params, timeout=10).json())
        return 0

    if args.cmd == "reconcile":
        # A pass can take as long as the slowest clone/compose run.
        r = requests.post(f"{base}/reconcile", timeout=None)
        _print(r.json())
        return 0 if r.ok and r.json().get("ok") else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
