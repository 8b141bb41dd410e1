# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Build a capacity index from escalation sessions stored on disk.

Walks a session artifact tree, reads every summary.json, and writes:
- runs/index.csv   (one row per session)
- runs/cycles.csv  (one row per measured cycle)
- runs/index.json

Usage
-----
python scripts/index_sessions.py --runs runs --out runs
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from loadstep.analysis import load_sessions, summarize


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--runs", default="runs", help="Directory holding <session>/<run_id>/summary.json")
    ap.add_argument("--out", default="runs", help="Output directory for index files")
    args = ap.parse_args()

    cycles = load_sessions(args.runs)
    summ = summarize(cycles)

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)

    cycles.to_csv(out / "cycles.csv", index=False)
    summ.to_csv(out / "index.csv", index=False)
    (out / "index.json").write_text(summ.to_json(orient="records", indent=2), encoding="utf-8")

    print(f"Wrote {out / 'index.csv'}, {out / 'cycles.csv'} and {out / 'index.json'}")


if __name__ == "__main__":
    main()
