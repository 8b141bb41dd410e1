# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Run one escalation session per (URL, client) pair and write results to ./runs.

Examples
--------
python scripts/run_targets.py --urls http://localhost:8080/ http://localhost:8081/ --clients k6 wrk

Notes
-----
This script needs k6 and/or wrk on PATH. A failing target is logged and the
sweep continues with the next one.

If you run it without installation from the repo root, it will add ./src to PYTHONPATH automatically.
"""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from loadstep.config import EscalationConfig, SessionConfig, TargetConfig
from loadstep.errors import LoadStepError
from loadstep.logs import setup_logging
from loadstep.runner import run_session
from loadstep.sinks import ConsoleSink

logger = logging.getLogger("run_targets")


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--urls", nargs="+", required=True)
    ap.add_argument("--clients", nargs="+", default=["k6"])
    ap.add_argument("--out-dir", default="runs")
    ap.add_argument("--concurrency", type=int, default=10)
    ap.add_argument("--duration", default="10s")
    ap.add_argument("--max-latency-increase", type=float, default=15.0)
    ap.add_argument("--min-rps-increase", type=float, default=4.0)
    args = ap.parse_args()

    setup_logging("INFO")
    sink = ConsoleSink()

    for i, url in enumerate(args.urls):
        for client in args.clients:
            ses = SessionConfig(name=f"target{i}_{client}", out_dir=args.out_dir)
            tgt = TargetConfig(url=url)
            esc = EscalationConfig(
                client=client,
                concurrency=args.concurrency,
                duration=args.duration,
                max_latency_increase=args.max_latency_increase,
                min_rps_increase=args.min_rps_increase,
            )
            rid = time.strftime("%Y%m%d_%H%M%S")
            try:
                run_session(ses=ses, tgt=tgt, esc=esc, sink=sink, run_id=rid)
            except LoadStepError as e:
                logger.error("Session %s against %s failed: %s", ses.name, url, e)

    print("Done.")


if __name__ == "__main__":
    main()
