# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol


class StopReason:
    LATENCY_REGRESSION = "latency regression"
    THROUGHPUT_PLATEAU = "throughput plateau"


@dataclass(frozen=True)
class RunConfiguration:
    """Input for one load run against an HTTP target."""

    url: str
    concurrency: int
    duration_s: float

    method: str = "GET"
    body: Optional[str] = None

    # Stop thresholds (percent)
    max_latency_increase: float = 15.0
    min_rps_increase: float = 4.0

    debug: bool = False

    # Shared by the engine and the driver; setting it abandons the session.
    cancel: threading.Event = field(default_factory=threading.Event, compare=False, repr=False)

    def with_concurrency(self, concurrency: int) -> "RunConfiguration":
        return replace(self, concurrency=concurrency)

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()


@dataclass(frozen=True)
class MetricRecord:
    """Canonical metrics from one run. Latencies are in milliseconds."""

    rps: float
    p50_ms: float
    p75_ms: float
    p90_ms: float
    p99_ms: float

    def is_valid(self) -> bool:
        # Zero is indistinguishable from "not found" in tool output.
        return self.rps > 0 and all(v > 0 for v in (self.p50_ms, self.p75_ms, self.p90_ms, self.p99_ms))


@dataclass
class EscalationState:
    original_concurrency: int
    concurrency: int = 1

    baseline_p90_ms: float = 0.0
    last_rps: float = 0.0

    # Highest level that passed both stop conditions (1 after calibration)
    accepted_concurrency: int = 1


class OutcomeStatus(str, enum.Enum):
    STOPPED = "stopped"
    CANCELLED = "cancelled"


@dataclass
class SessionOutcome:
    status: OutcomeStatus
    reason: str
    accepted_concurrency: int
    last_concurrency: int


class LoadDriver(Protocol):
    """Runs one load test with an external tool and returns its raw report."""

    name: str

    def run_test(self, config: RunConfiguration) -> str:
        ...


class OutputSink(Protocol):
    def write_line(self, line: str) -> None:
        ...
