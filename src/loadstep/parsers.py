# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Turn the text summaries printed by load tools into MetricRecords.

Each parser finds a format-specific anchor, scans everything after it for
labeled values and only then validates. Line order and surrounding noise do
not matter; a missing or zero metric is always a ParseError.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional

from .errors import ConfigurationError, ParseError
from .types import MetricRecord

logger = logging.getLogger(__name__)

PERCENTILES = (50, 75, 90, 99)

# Multipliers to milliseconds. A missing unit means seconds.
_UNIT_TO_MS: Dict[str, float] = {
    "": 1000.0,
    "s": 1000.0,
    "ms": 1.0,
    "us": 0.001,
    "µs": 0.001,
    "m": 60_000.0,
}

_NUM = r"(\d+(?:\.\d+)?)"
_UNIT = r"(µs|us|ms|m|s)?"

_K6_RPS_RE = re.compile(r"http_reqs\.*:\s*" + _NUM + r"\s+" + _NUM + r"/s")
_K6_PCT_RE = {
    p: re.compile(r"http_req_duration.*?p\(" + str(p) + r"\)\s*=\s*" + _NUM + _UNIT + r"(?![\w/])")
    for p in PERCENTILES
}

_WRK_RPS_RE = re.compile(r"^\s*Requests/sec:\s*" + _NUM)
_WRK_PCT_RE = re.compile(r"^\s*(50|75|90|99)(?:\.0+)?%\s+" + _NUM + _UNIT + r"\s*$")


def parse_latency(value: str, unit: Optional[str]) -> float:
    """Convert a latency value with its unit suffix to milliseconds."""
    try:
        scale = _UNIT_TO_MS[unit or ""]
    except KeyError:
        raise ParseError(f"unknown time unit in latency value: {value}{unit}") from None
    return float(value) * scale


def _summary_lines(output: str, anchor: str, tool: str) -> List[str]:
    lines = output.splitlines()
    for i, line in enumerate(lines):
        if anchor in line:
            return lines[i:]
    raise ParseError(f"could not find summary section in {tool} output")


def _build_record(rps: float, latencies: Dict[int, float], tool: str) -> MetricRecord:
    record = MetricRecord(
        rps=rps,
        p50_ms=latencies.get(50, 0.0),
        p75_ms=latencies.get(75, 0.0),
        p90_ms=latencies.get(90, 0.0),
        p99_ms=latencies.get(99, 0.0),
    )
    if not record.is_valid():
        if rps <= 0:
            raise ParseError(f"failed to parse RPS from {tool} output")
        raise ParseError(f"failed to parse latency percentiles from {tool} output")
    logger.debug("Parsed %s summary: %s", tool, record)
    return record


def parse_k6_output(output: str) -> MetricRecord:
    """Parse the end-of-test summary printed by `k6 run`."""
    rps = 0.0
    latencies: Dict[int, float] = {}
    for line in _summary_lines(output, "http_req_duration", "k6"):
        m = _K6_RPS_RE.search(line)
        if m:
            rps = float(m.group(2))
        elif "http_reqs" in line:
            logger.debug("Found http_reqs line but didn't match: %s", line)

        for p, regex in _K6_PCT_RE.items():
            m = regex.search(line)
            if m:
                latencies[p] = parse_latency(m.group(1), m.group(2))

    return _build_record(rps, latencies, "k6")


def parse_wrk_output(output: str) -> MetricRecord:
    """Parse `wrk --latency` output (the Latency Distribution table and Requests/sec)."""
    rps = 0.0
    latencies: Dict[int, float] = {}
    for line in _summary_lines(output, "Latency Distribution", "wrk"):
        m = _WRK_RPS_RE.match(line)
        if m:
            rps = float(m.group(1))
            continue
        m = _WRK_PCT_RE.match(line)
        if m:
            latencies[int(m.group(1))] = parse_latency(m.group(2), m.group(3))

    return _build_record(rps, latencies, "wrk")


PARSERS: Dict[str, Callable[[str], MetricRecord]] = {
    "k6": parse_k6_output,
    "wrk": parse_wrk_output,
}


def get_parser(name: str) -> Callable[[str], MetricRecord]:
    try:
        return PARSERS[name]
    except KeyError:
        raise ConfigurationError(f"unsupported client type: {name}") from None
