# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Adaptive concurrency escalation.

A session calibrates with a single client, then keeps raising concurrency and
stops once P90 latency has regressed too far from the calibration baseline or
throughput stops growing from one cycle to the next.
"""

from __future__ import annotations

import logging
from typing import Callable, NamedTuple, Optional

from .drivers import build_driver, format_duration
from .errors import CalibrationError, DriverError, EscalationError, LoadStepError, ParseError, RunCancelled
from .parsers import get_parser
from .types import (
    EscalationState,
    LoadDriver,
    MetricRecord,
    OutcomeStatus,
    OutputSink,
    RunConfiguration,
    SessionOutcome,
    StopReason,
)

logger = logging.getLogger(__name__)

GROWTH_FACTOR = 1.5

CycleCallback = Callable[[int, MetricRecord], None]


def next_concurrency(current: int, original: int) -> int:
    """Honor the requested level right after calibration, then grow by 50%."""
    if current == 1 and original > 1:
        return original
    return int(current * GROWTH_FACTOR + 0.5)


class CycleEvaluation(NamedTuple):
    latency_increase: float
    rps_increase: float
    reason: Optional[str]


def evaluate_stop(
    record: MetricRecord,
    *,
    baseline_p90_ms: float,
    last_rps: float,
    max_latency_increase: float,
    min_rps_increase: float,
) -> CycleEvaluation:
    latency_increase = (record.p90_ms - baseline_p90_ms) / baseline_p90_ms * 100
    rps_increase = (record.rps - last_rps) / last_rps * 100

    # Latency is checked first so it wins when both trip.
    reason = None
    if latency_increase > max_latency_increase:
        reason = StopReason.LATENCY_REGRESSION
    elif rps_increase < min_rps_increase:
        reason = StopReason.THROUGHPUT_PLATEAU
    return CycleEvaluation(latency_increase, rps_increase, reason)


class EscalationEngine:
    def __init__(
        self,
        config: RunConfiguration,
        driver: LoadDriver,
        sink: OutputSink,
        *,
        on_cycle: Optional[CycleCallback] = None,
    ):
        self.config = config
        self.driver = driver
        self.sink = sink
        self.parse = get_parser(driver.name)
        self.on_cycle = on_cycle
        self.state = EscalationState(original_concurrency=config.concurrency)

    def _print_results(self, record: MetricRecord, prefix: str) -> None:
        self.sink.write_line(f"{prefix} results:")
        self.sink.write_line(f"RPS: {record.rps:.2f}")
        self.sink.write_line(f"P50: {record.p50_ms:.2f}ms")
        self.sink.write_line(f"P75: {record.p75_ms:.2f}ms")
        self.sink.write_line(f"P90: {record.p90_ms:.2f}ms")
        self.sink.write_line(f"P99: {record.p99_ms:.2f}ms")

    def _measure(self, concurrency: int) -> MetricRecord:
        logger.info("Running %s at concurrency %d against %s", self.driver.name, concurrency, self.config.url)
        output = self.driver.run_test(self.config.with_concurrency(concurrency))
        record = self.parse(output)
        if self.on_cycle is not None:
            self.on_cycle(concurrency, record)
        return record

    def _cancelled(self) -> SessionOutcome:
        self.sink.write_line("\nTest terminated by user")
        logger.info("Session cancelled at concurrency %d", self.state.concurrency)
        return SessionOutcome(
            status=OutcomeStatus.CANCELLED,
            reason="cancelled",
            accepted_concurrency=self.state.accepted_concurrency,
            last_concurrency=self.state.concurrency,
        )

    def _echo_tool_output(self, err: LoadStepError) -> None:
        """Show what a failed tool printed; the error itself is reported by the caller."""
        if not isinstance(err, DriverError):
            return
        blocks = [(t, s) for t, s in (("Output", err.stdout), ("Error output", err.stderr)) if s and s.strip()]
        if not blocks:
            return
        self.sink.write_line("Command failed with error:")
        for title, text in blocks:
            self.sink.write_line(f"{title}:")
            for line in text.rstrip().splitlines():
                self.sink.write_line(line)

    def calibrate(self) -> MetricRecord:
        cfg = self.config
        self.sink.write_line(f"Running initial test with 1 virtual user for {format_duration(cfg.duration_s)}...")
        self.sink.write_line(
            f"Will stop if P90 latency increases by more than {cfg.max_latency_increase:.1f}% "
            f"or RPS increase is less than {cfg.min_rps_increase:.1f}%\n"
        )
        self.state.concurrency = 1
        record = self._measure(1)
        self._print_results(record, "Initial")
        self.state.baseline_p90_ms = record.p90_ms
        self.state.last_rps = record.rps
        self.state.accepted_concurrency = 1
        return record

    def step(self) -> Optional[str]:
        """Run one escalation cycle. Returns the stop reason, or None to keep going."""
        state = self.state
        state.concurrency = next_concurrency(state.concurrency, state.original_concurrency)
        record = self._measure(state.concurrency)
        self._print_results(record, "Current")

        ev = evaluate_stop(
            record,
            baseline_p90_ms=state.baseline_p90_ms,
            last_rps=state.last_rps,
            max_latency_increase=self.config.max_latency_increase,
            min_rps_increase=self.config.min_rps_increase,
        )
        self.sink.write_line(f"P90 Latency increase: {ev.latency_increase:.1f}%")
        self.sink.write_line(f"RPS increase: {ev.rps_increase:.1f}%\n")

        if ev.reason == StopReason.LATENCY_REGRESSION:
            self.sink.write_line(
                f"stopping: P90 latency increased by {ev.latency_increase:.1f}% "
                f"(threshold: {self.config.max_latency_increase:.1f}%)"
            )
        elif ev.reason == StopReason.THROUGHPUT_PLATEAU:
            self.sink.write_line(
                f"stopping: RPS increased by only {ev.rps_increase:.1f}% "
                f"(threshold: {self.config.min_rps_increase:.1f}%)"
            )
        else:
            state.last_rps = record.rps
            state.accepted_concurrency = state.concurrency
        return ev.reason

    def run(self) -> SessionOutcome:
        """Calibrate, then escalate until a stop condition trips or the session is cancelled.

        Raises CalibrationError if the baseline run fails and EscalationError if
        a later run fails. Neither is retried.
        """
        if self.config.cancelled:
            return self._cancelled()
        try:
            self.calibrate()
        except RunCancelled:
            return self._cancelled()
        except (DriverError, ParseError) as e:
            if self.config.cancelled:
                return self._cancelled()
            self._echo_tool_output(e)
            raise CalibrationError(f"failed to run initial test: {e}") from e

        while True:
            if self.config.cancelled:
                return self._cancelled()
            try:
                reason = self.step()
            except RunCancelled:
                return self._cancelled()
            except (DriverError, ParseError) as e:
                if self.config.cancelled:
                    return self._cancelled()
                self._echo_tool_output(e)
                raise EscalationError(f"failed to run test: {e}", self.state.concurrency) from e

            if reason is not None:
                logger.info(
                    "Stopped at concurrency %d (%s); last accepted level %d",
                    self.state.concurrency, reason, self.state.accepted_concurrency,
                )
                return SessionOutcome(
                    status=OutcomeStatus.STOPPED,
                    reason=reason,
                    accepted_concurrency=self.state.accepted_concurrency,
                    last_concurrency=self.state.concurrency,
                )


def run_escalation(
    config: RunConfiguration,
    client: str,
    sink: OutputSink,
    *,
    on_cycle: Optional[CycleCallback] = None,
) -> SessionOutcome:
    """Resolve the driver named `client` and run one escalation session."""
    driver = build_driver(client, sink)
    return EscalationEngine(config, driver, sink, on_cycle=on_cycle).run()
