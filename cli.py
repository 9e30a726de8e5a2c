from __future__ import annotations

import argparse
import json
import logging
import signal
import sys

import requests

from nodewatch.errors import ConfigError


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(handler)


def _run(args) -> int:
    from nodewatch.bootstrap import build_watchdogs
    from nodewatch.runtime import RuntimeState
    from nodewatch.settings import load_chains, settings

    runtime = RuntimeState(max_events=settings.event_buffer)
    try:
        watchdogs = build_watchdogs(load_chains(args.chains), runtime)
    except ConfigError as e:
        logging.getLogger("nodewatch").critical("Startup failed: %s", e)
        return 2

    if args.once:
        failed = False
        for w in watchdogs:
            try:
                report = w.sweep()
            except Exception as e:
                failed = True
                logging.getLogger("nodewatch").error("%s sweep failed: %s", w.name, e)
                continue
            _print(report.to_dict())
        return 1 if failed else 0

    def _shutdown(signum, frame):
        for w in watchdogs:
            w.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    for w in watchdogs:
        w.start()
    for w in watchdogs:
        while w.alive:
            w.join(timeout=1.0)
    return 0


def _serve(args) -> int:
    import uvicorn

    uvicorn.run("nodewatch.api:app", host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def _probe(args) -> int:
    from nodewatch.health import HealthProbe

    result = HealthProbe(timeout_s=args.timeout).probe(args.url)
    healthy = result.healthy_for(args.chain_id)
    _print(
        {
            "url": args.url,
            "kind": result.kind.value,
            "chains": [{"chainId": c.chain_id, "status": c.status} for c in result.chains],
            "detail": result.detail,
            "latency_ms": result.latency_ms,
            "healthy": healthy,
        }
    )
    return 0 if healthy else 1


def main(argv: list[str] | None = None) -> int:
    from nodewatch.settings import settings

    p = argparse.ArgumentParser(description="Registry node watchdog")
    p.add_argument("--api", default="http://localhost:8000", help="Status API base URL")
    p.add_argument("--log-level", default=settings.log_level, help="Default: $NWD_LOG_LEVEL or INFO")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Run the watchdogs in the foreground")
    s_run.add_argument("--chains", default=None, help="Chain configuration file (default: $NWD_CHAINS_FILE)")
    s_run.add_argument("--once", action="store_true", help="Do a single sweep per chain and exit")

    s_serve = sub.add_parser("serve", help="Run the watchdogs with the status API")
    s_serve.add_argument("--host", default="127.0.0.1")
    s_serve.add_argument("--port", type=int, default=8000)

    s_probe = sub.add_parser("probe", help="Probe one node's status endpoint")
    s_probe.add_argument("url", help="Advertised node URL")
    s_probe.add_argument("--chain-id", required=True)
    s_probe.add_argument("--timeout", type=float, default=5.0)

    sub.add_parser("status", help="Show chains and their last sweep")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)
    setup_logging(args.log_level)

    base = args.api.rstrip("/")

    if args.cmd == "run":
        return _run(args)

    if args.cmd == "serve":
        return _serve(args)

    if args.cmd == "probe":
        return _probe(args)

    if args.cmd == "status":
        _print(requests.get(f"{base}/chains", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
