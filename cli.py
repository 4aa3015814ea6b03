from __future__ import annotations

import argparse
import json
import os
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Host Reaper CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("--user", default=os.getenv("HR_API_USER", "admin"))
    p.add_argument("--password", default=os.getenv("HR_API_PASSWORD", ""), help="Defaults to $HR_API_PASSWORD")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show sidecar counters")

    s_ev = sub.add_parser("events", help="Show the event log")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--component", help="Only events from one component (reaper, dedup, events, ...)")

    sub.add_parser("reconcile", help="Run one orphan container pass now")
    sub.add_parser("dedup", help="Run one duplicate service check now")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    auth = (args.user, args.password)

    if args.cmd == "status":
        r = requests.get(f"{base}/status", auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.component:
            params["component"] = args.component
        r = requests.get(f"{base}/events", params=params, auth=auth, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd in {"reconcile", "dedup"}:
        r = requests.post(f"{base}/{args.cmd}", auth=auth, timeout=60)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
