# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

from __future__ import annotations

import argparse
import json
import logging
import signal
import threading
import time
from dataclasses import asdict
from typing import List, Optional

from .config import EscalationConfig, SessionConfig, TargetConfig, load_session_config, to_run_configuration
from .errors import ConfigurationError, LoadStepError
from .logs import setup_logging
from .runner import run_session
from .sinks import ConsoleSink

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="loadstep", description="Find the concurrency an HTTP endpoint can sustain")
    p.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING or ERROR")
    sub = p.add_subparsers(dest="cmd", required=True)

    runp = sub.add_parser("run", help="Run one escalation session")
    runp.add_argument("--config", default=None, help="Path to YAML config")
    runp.add_argument("--url", default=None, help="URL to test")
    runp.add_argument("--client", default=None, help="Load testing client to use (k6, wrk)")
    runp.add_argument("--concurrency", "--goroutines", type=int, default=None, help="Concurrency tried after the single-client baseline")
    runp.add_argument("--duration", default=None, help="Duration of each test cycle (e.g. 10s, 1m)")
    runp.add_argument("--max-latency-increase", type=float, default=None, help="Maximum allowed P90 latency increase in percent")
    runp.add_argument("--min-rps-increase", type=float, default=None, help="Minimum required RPS increase per cycle in percent")
    runp.add_argument("--method", default=None, help="HTTP method")
    runp.add_argument("--body", default=None, help="Request body for non-GET methods")
    runp.add_argument("--debug", action="store_true", help="Show generated commands and raw tool output")
    runp.add_argument("--name", default=None, help="Override session name")
    runp.add_argument("--out-dir", default=None, help="Override artifact directory")
    runp.add_argument("--run-id", default=None, help="Override run id")

    ap = sub.add_parser("print-config", help="Print the parsed config for debugging")
    ap.add_argument("--config", required=True)

    sp = sub.add_parser("serve", help="Start the HTTP front-end")
    sp.add_argument("--host", default="0.0.0.0")
    sp.add_argument("--port", type=int, default=8080)
    return p


def _apply_overrides(args: argparse.Namespace, ses: SessionConfig, tgt: TargetConfig, esc: EscalationConfig) -> None:
    if args.url is not None:
        tgt.url = args.url
    if args.method is not None:
        tgt.method = args.method
    if args.body is not None:
        tgt.body = args.body
    if args.client is not None:
        esc.client = args.client
    if args.concurrency is not None:
        esc.concurrency = args.concurrency
    if args.duration is not None:
        esc.duration = args.duration
    if args.max_latency_increase is not None:
        esc.max_latency_increase = args.max_latency_increase
    if args.min_rps_increase is not None:
        esc.min_rps_increase = args.min_rps_increase
    if args.debug:
        esc.debug = True
    if args.name is not None:
        ses.name = args.name
    if args.out_dir is not None:
        ses.out_dir = args.out_dir


def _run(args: argparse.Namespace) -> int:
    if args.config:
        ses, tgt, esc = load_session_config(args.config)
    else:
        ses, tgt, esc = SessionConfig(), TargetConfig(), EscalationConfig()
    _apply_overrides(args, ses, tgt, esc)

    cancel = threading.Event()
    run_cfg = to_run_configuration(tgt, esc, cancel)

    def _on_sigint(signum, frame):
        logger.info("Interrupt received, cancelling session")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        out = run_session(
            ses=ses,
            tgt=tgt,
            esc=esc,
            sink=ConsoleSink(),
            run_id=args.run_id or time.strftime("%Y%m%d_%H%M%S"),
            run_cfg=run_cfg,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    print(str(out))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        if args.cmd == "print-config":
            ses, tgt, esc = load_session_config(args.config)
            print(json.dumps({"session": asdict(ses), "target": asdict(tgt), "escalation": asdict(esc)}, indent=2))
            return 0
        if args.cmd == "serve":
            from .webui import serve

            serve(host=args.host, port=args.port)
            return 0
        return _run(args)
    except ConfigurationError as e:
        print(f"configuration error: {e}")
        return 2
    except LoadStepError as e:
        print(f"error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
