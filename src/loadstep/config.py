# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York


from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigurationError
from .types import RunConfiguration

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|us|µs|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 1e-3, "us": 1e-6, "µs": 1e-6}


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse '10s', '1m30s', '500ms' or a bare number of seconds into seconds."""
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for m in _DURATION_PART_RE.finditer(text):
                if m.start() != pos:
                    break
                seconds += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
                pos = m.end()
            if pos == 0 or pos != len(text):
                raise ConfigurationError(f"invalid duration: {value!r}") from None
    if seconds <= 0:
        raise ConfigurationError(f"duration must be positive: {value!r}")
    return seconds


@dataclass
class TargetConfig:
    url: str = ""
    method: str = "GET"
    body: Optional[str] = None


@dataclass
class EscalationConfig:
    client: str = "k6"            # k6 or wrk
    concurrency: int = 10         # Level tried right after the single-client baseline
    duration: str = "10s"

    # Stop thresholds (percent)
    max_latency_increase: float = 15.0
    min_rps_increase: float = 4.0

    debug: bool = False


@dataclass
class SessionConfig:
    name: str = "default"
    out_dir: str = "runs"

    # Local tracking extras
    write_env_snapshot: bool = True


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_session_config(path: Union[str, Path]) -> tuple[SessionConfig, TargetConfig, EscalationConfig]:
    cfg = load_yaml(path)
    try:
        ses = SessionConfig(**cfg.get("session", {}))
        tgt = TargetConfig(**cfg.get("target", {}))
        esc = EscalationConfig(**cfg.get("escalation", {}))
    except TypeError as e:
        raise ConfigurationError(f"invalid config {path}: {e}") from e
    return ses, tgt, esc


def to_run_configuration(
    tgt: TargetConfig,
    esc: EscalationConfig,
    cancel: Optional[threading.Event] = None,
) -> RunConfiguration:
    for key in ("url", "method", "body"):
        value = getattr(tgt, key)
        if value is not None and not isinstance(value, str):
            raise ConfigurationError(f"target {key} must be a string, got {type(value).__name__}")
    if not tgt.url:
        raise ConfigurationError("a target URL is required")
    if esc.concurrency < 1:
        raise ConfigurationError(f"concurrency must be at least 1, got {esc.concurrency}")
    return RunConfiguration(
        url=tgt.url,
        concurrency=esc.concurrency,
        duration_s=parse_duration(esc.duration),
        method=(tgt.method or "GET").upper(),
        body=tgt.body or None,
        max_latency_increase=float(esc.max_latency_increase),
        min_rps_increase=float(esc.min_rps_increase),
        debug=esc.debug,
        cancel=cancel if cancel is not None else threading.Event(),
    )
