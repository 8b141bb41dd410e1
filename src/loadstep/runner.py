# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

from __future__ import annotations

import json
import logging
import socket
import subprocess
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import EscalationConfig, SessionConfig, TargetConfig, to_run_configuration
from .drivers import build_driver
from .errors import LoadStepError
from .escalation import EscalationEngine
from .sinks import BufferSink, TeeSink
from .types import MetricRecord, OutputSink, RunConfiguration, SessionOutcome

logger = logging.getLogger(__name__)


def _write_json(path: Path, obj: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)


def _try_run(cmd: List[str]) -> Optional[str]:
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT, text=True, timeout=10)
        return out.strip()
    except (OSError, subprocess.SubprocessError):
        return None


def _collect_env_snapshot() -> Dict[str, Any]:
    """Collect lightweight environment metadata for local session tracking."""
    snap: Dict[str, Any] = {}
    snap["hostname"] = socket.gethostname()
    snap["k6_version"] = _try_run(["k6", "version"])
    snap["wrk_version"] = _try_run(["wrk", "--version"])
    snap["git_commit"] = _try_run(["git", "rev-parse", "HEAD"])
    snap["timestamp"] = time.strftime("%Y-%m-%d %H:%M:%S")
    return snap


class CycleLog:
    """Keeps every measured cycle so it can be written to summary.json."""

    def __init__(self) -> None:
        self.cycles: List[Dict[str, Any]] = []

    def __call__(self, concurrency: int, record: MetricRecord) -> None:
        row: Dict[str, Any] = {"cycle": len(self.cycles), "concurrency": concurrency}
        row.update(asdict(record))
        self.cycles.append(row)


def _config_summary(run_cfg: RunConfiguration) -> Dict[str, Any]:
    return {
        "url": run_cfg.url,
        "concurrency": run_cfg.concurrency,
        "duration_s": run_cfg.duration_s,
        "method": run_cfg.method,
        "body": run_cfg.body,
        "max_latency_increase": run_cfg.max_latency_increase,
        "min_rps_increase": run_cfg.min_rps_increase,
    }


def run_session(
    *,
    ses: SessionConfig,
    tgt: TargetConfig,
    esc: EscalationConfig,
    sink: OutputSink,
    run_id: str,
    run_cfg: Optional[RunConfiguration] = None,
) -> Path:
    """Run one escalation session and write its artifacts under out_dir/name/run_id.

    Fatal errors are recorded in summary.json and then re-raised. Every progress line
    is also kept in console.log.
    """
    run_cfg = run_cfg or to_run_configuration(tgt, esc)
    transcript = BufferSink()
    sink = TeeSink([sink, transcript])
    driver = build_driver(esc.client, sink)
    log = CycleLog()
    engine = EscalationEngine(run_cfg, driver, sink, on_cycle=log)

    out = Path(ses.out_dir) / ses.name / run_id
    out.mkdir(parents=True, exist_ok=True)
    if ses.write_env_snapshot:
        _write_json(out / "env.json", _collect_env_snapshot())

    summary: Dict[str, Any] = {
        "session": ses.name,
        "run_id": run_id,
        "client": esc.client,
        "config": _config_summary(run_cfg),
        "started": time.strftime("%Y-%m-%d %H:%M:%S"),
    }
    outcome: Optional[SessionOutcome] = None
    try:
        outcome = engine.run()
    except LoadStepError as e:
        summary["error"] = {"type": type(e).__name__, "message": str(e)}
        raise
    finally:
        summary["cycles"] = log.cycles
        summary["finished"] = time.strftime("%Y-%m-%d %H:%M:%S")
        if outcome is not None:
            summary["outcome"] = {
                "status": outcome.status.value,
                "reason": outcome.reason,
                "accepted_concurrency": outcome.accepted_concurrency,
                "last_concurrency": outcome.last_concurrency,
            }
        _write_json(out / "summary.json", summary)
        (out / "console.log").write_text(transcript.getvalue() + "\n", encoding="utf-8")
        logger.info("Session artifacts written to %s", out)
    return out
