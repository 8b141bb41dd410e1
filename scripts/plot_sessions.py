# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Plot throughput and P90 latency against concurrency for stored sessions.

Usage
-----
python scripts/plot_sessions.py --runs runs/default --out runs/default/plots
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import matplotlib.pyplot as plt
import pandas as pd

from loadstep.analysis import load_sessions, summarize


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--runs", required=True, help="Directory containing session folders with summary.json")
    ap.add_argument("--out", required=True, help="Output directory for tables and figures")
    args = ap.parse_args()

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)

    cycles = load_sessions(args.runs)
    summarize(cycles).to_csv(out / "summary.csv", index=False)

    for metric, fname, ylabel in [
        ("rps", "rps_vs_concurrency.png", "Throughput (req/s)"),
        ("p90_ms", "p90_vs_concurrency.png", "P90 latency (ms)"),
    ]:
        plt.figure()
        for (session, run_id), g in cycles.groupby(["session", "run_id"]):
            g = g.sort_values("cycle")
            plt.plot(g["concurrency"], g[metric], marker="o", label=f"{session}/{run_id}")
            accepted = g["accepted_concurrency"].iloc[0]
            if pd.notna(accepted):
                plt.axvline(accepted, linestyle="--", linewidth=0.8, color="gray")
        plt.xscale("log")
        plt.xlabel("Concurrency")
        plt.ylabel(ylabel)
        plt.legend()
        plt.tight_layout()
        plt.savefig(out / fname, dpi=200)

    print(f"Wrote {out}")


if __name__ == "__main__":
    main()
