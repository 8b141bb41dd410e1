# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd


def load_sessions(run_dir: Union[str, Path]) -> pd.DataFrame:
    """One row per measured cycle across every summary.json under `run_dir`."""
    run_dir = Path(run_dir)
    rows: List[Dict] = []
    for p in sorted(run_dir.glob("**/summary.json")):
        summary = json.loads(p.read_text(encoding="utf-8"))
        outcome = summary.get("outcome") or {}
        for cycle in summary.get("cycles") or []:
            row = {
                "session": summary.get("session"),
                "run_id": summary.get("run_id"),
                "client": summary.get("client"),
                "url": (summary.get("config") or {}).get("url"),
                "status": outcome.get("status", "error"),
                "reason": outcome.get("reason"),
                "accepted_concurrency": outcome.get("accepted_concurrency"),
            }
            row.update(cycle)
            rows.append(row)
    if not rows:
        raise FileNotFoundError(f"No summary.json files with cycles under {run_dir}")
    return pd.DataFrame(rows)


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    """Per-session capacity: accepted concurrency plus the metrics measured there."""
    out = []
    for (session, run_id), g in df.groupby(["session", "run_id"], sort=True):
        g = g.sort_values("cycle")
        accepted = g["accepted_concurrency"].iloc[0]
        at_accepted = g[g["concurrency"] == accepted]
        ref = at_accepted.iloc[-1] if len(at_accepted) else g.iloc[0]
        out.append(
            {
                "session": session,
                "run_id": run_id,
                "client": ref["client"],
                "url": ref["url"],
                "status": ref["status"],
                "reason": ref["reason"],
                "cycles": len(g),
                "accepted_concurrency": accepted,
                "rps_at_accepted": float(ref["rps"]),
                "p90_ms_at_accepted": float(ref["p90_ms"]),
                "baseline_p90_ms": float(g["p90_ms"].iloc[0]),
                "peak_rps": float(g["rps"].max()),
            }
        )
    return pd.DataFrame(out)
