"""Unit tests for tool output parsers."""

import pytest

from loadstep.errors import ConfigurationError, ParseError
from loadstep.parsers import PARSERS, get_parser, parse_k6_output, parse_latency, parse_wrk_output
from loadstep.types import MetricRecord

from .samples import K6_SAMPLE, WRK_SAMPLE, k6_output


class TestParseLatency:
    """Test unit conversion to milliseconds."""

    @pytest.mark.parametrize(
        "value,unit,expected",
        [
            ("1.03", "s", 1030.0),
            ("1030", "ms", 1030.0),
            ("250", "us", 0.25),
            ("250", "µs", 0.25),
            ("2", "m", 120000.0),
            ("0.5", None, 500.0),
        ],
    )
    def test_units(self, value, unit, expected):
        assert parse_latency(value, unit) == pytest.approx(expected)

    def test_seconds_and_milliseconds_agree(self):
        """The same latency written in s and ms converts to the same value."""
        assert parse_latency("1.03", "s") == pytest.approx(parse_latency("1030", "ms"))

    def test_unknown_unit(self):
        with pytest.raises(ParseError, match="unknown time unit"):
            parse_latency("3", "ns")


class TestParseK6:
    """Test parsing of the k6 end-of-test summary."""

    def test_real_summary(self):
        record = parse_k6_output(K6_SAMPLE)
        assert record.rps == pytest.approx(411.871234)
        assert record.p50_ms == pytest.approx(22.5)
        assert record.p75_ms == pytest.approx(26.75)
        assert record.p90_ms == pytest.approx(31.2)
        assert record.p99_ms == pytest.approx(1030.0)
        assert record.is_valid()

    def test_ignores_trend_lines_before_anchor(self):
        """http_req_blocked has its own percentiles; only http_req_duration counts."""
        record = parse_k6_output(K6_SAMPLE)
        assert record.p50_ms != pytest.approx(0.003)

    def test_microsecond_values(self):
        out = k6_output(500, 1, 1, 1, 1).replace("p(50)=1ms", "p(50)=800µs")
        assert parse_k6_output(out).p50_ms == pytest.approx(0.8)

    def test_noise_and_order_do_not_matter(self):
        _, duration_line, reqs_line = k6_output(120.5, 10, 12, 15, 40).splitlines()
        text = "\n".join(["some log line", duration_line, "WARN[0001] Request Failed", "", reqs_line, "trailing"])
        record = parse_k6_output(text)
        assert record.rps == pytest.approx(120.5)
        assert record.p90_ms == pytest.approx(15.0)

    def test_summary_not_found(self):
        with pytest.raises(ParseError, match="could not find summary section"):
            parse_k6_output("running (10.0s), 00/10 VUs\nhttp_reqs....: 10 1/s\n")

    def test_missing_rps(self):
        out = k6_output(100, 10, 12, 15, 40).replace("http_reqs", "http_other")
        with pytest.raises(ParseError, match="RPS"):
            parse_k6_output(out)

    @pytest.mark.parametrize("label", ["p(50)", "p(75)", "p(90)", "p(99)"])
    def test_missing_percentile(self, label):
        out = k6_output(100, 10, 12, 15, 40).replace(label, "p(42)")
        with pytest.raises(ParseError, match="latency percentiles"):
            parse_k6_output(out)

    def test_zero_value_is_a_parse_failure(self):
        with pytest.raises(ParseError, match="latency percentiles"):
            parse_k6_output(k6_output(100, 0, 12, 15, 40))

    def test_zero_rps_is_a_parse_failure(self):
        with pytest.raises(ParseError, match="RPS"):
            parse_k6_output(k6_output(0, 10, 12, 15, 40))

    def test_record_validity(self):
        assert MetricRecord(1.0, 0.5, 0.6, 0.7, 0.9).is_valid()
        assert not MetricRecord(1.0, 0.5, 0.6, 0.0, 0.9).is_valid()
        assert not MetricRecord(0.0, 0.5, 0.6, 0.7, 0.9).is_valid()


class TestParseWrk:
    """Test parsing of `wrk --latency` output."""

    def test_real_output(self):
        record = parse_wrk_output(WRK_SAMPLE)
        assert record.rps == pytest.approx(8682.82)
        assert record.p50_ms == pytest.approx(2.10)
        assert record.p75_ms == pytest.approx(2.55)
        assert record.p90_ms == pytest.approx(3.07)
        assert record.p99_ms == pytest.approx(1030.0)

    def test_indentation_is_not_fixed(self):
        text = WRK_SAMPLE.replace("     50%    2.10ms", "\t50%\t2.10ms")
        assert parse_wrk_output(text).p50_ms == pytest.approx(2.10)

    def test_microseconds(self):
        text = WRK_SAMPLE.replace("2.10ms", "910.00us")
        assert parse_wrk_output(text).p50_ms == pytest.approx(0.91)

    def test_summary_not_found(self):
        text = WRK_SAMPLE.replace("Latency Distribution", "")
        with pytest.raises(ParseError, match="could not find summary section"):
            parse_wrk_output(text)

    def test_missing_rps(self):
        text = WRK_SAMPLE.replace("Requests/sec:   8682.82\n", "")
        with pytest.raises(ParseError, match="RPS"):
            parse_wrk_output(text)

    def test_missing_percentile(self):
        text = WRK_SAMPLE.replace("     75%    2.55ms\n", "")
        with pytest.raises(ParseError, match="latency percentiles"):
            parse_wrk_output(text)

    def test_thread_stats_latency_is_not_a_percentile(self):
        """The 'Latency 2.31ms' stats row sits above the anchor and is ignored."""
        text = WRK_SAMPLE.replace("     50%    2.10ms\n", "")
        with pytest.raises(ParseError):
            parse_wrk_output(text)


class TestRegistry:
    def test_known_parsers(self):
        assert get_parser("k6") is parse_k6_output
        assert get_parser("wrk") is parse_wrk_output
        assert set(PARSERS) == {"k6", "wrk"}

    def test_unknown_parser(self):
        with pytest.raises(ConfigurationError, match="unsupported client type: ghz"):
            get_parser("ghz")
