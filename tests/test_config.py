"""Unit tests for configuration loading."""

import threading

import pytest

from loadstep.config import (
    EscalationConfig,
    TargetConfig,
    load_session_config,
    parse_duration,
    to_run_configuration,
)
from loadstep.errors import ConfigurationError


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("10s", 10.0),
            ("1m", 60.0),
            ("1m30s", 90.0),
            ("500ms", 0.5),
            ("2h", 7200.0),
            ("1.5s", 1.5),
            ("15", 15.0),
            (30, 30.0),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "ten seconds", "10x", "s10", "10s junk", "0s", -5])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_duration(value)


class TestLoadSessionConfig:
    def test_yaml_sections(self, tmp_path):
        path = tmp_path / "session.yaml"
        path.write_text(
            "session:\n"
            "  name: api\n"
            "  out_dir: /tmp/runs\n"
            "target:\n"
            "  url: http://localhost:9000/items\n"
            "  method: post\n"
            "  body: '{\"a\": 1}'\n"
            "escalation:\n"
            "  client: wrk\n"
            "  concurrency: 8\n"
            "  duration: 30s\n"
            "  max_latency_increase: 20\n",
            encoding="utf-8",
        )
        ses, tgt, esc = load_session_config(path)
        assert ses.name == "api"
        assert tgt.method == "post"
        assert esc.client == "wrk"
        assert esc.concurrency == 8
        assert esc.max_latency_increase == 20
        assert esc.min_rps_increase == 4.0

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        ses, tgt, esc = load_session_config(path)
        assert ses.name == "default"
        assert esc.client == "k6"

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("escalation:\n  threads: 4\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="invalid config"):
            load_session_config(path)


class TestToRunConfiguration:
    def test_builds_immutable_run_config(self):
        cancel = threading.Event()
        cfg = to_run_configuration(
            TargetConfig(url="http://x/", method="post", body='{"a": 1}'),
            EscalationConfig(concurrency=5, duration="1m"),
            cancel,
        )
        assert cfg.method == "POST"
        assert cfg.duration_s == 60.0
        assert cfg.concurrency == 5
        assert cfg.cancel is cancel
        with pytest.raises(Exception):
            cfg.concurrency = 10  # type: ignore[misc]

    def test_with_concurrency_shares_cancellation(self):
        cfg = to_run_configuration(TargetConfig(url="http://x/"), EscalationConfig())
        other = cfg.with_concurrency(30)
        assert other.concurrency == 30
        assert cfg.concurrency == 10
        assert other.cancel is cfg.cancel

    def test_url_required(self):
        with pytest.raises(ConfigurationError, match="URL"):
            to_run_configuration(TargetConfig(), EscalationConfig())

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="concurrency"):
            to_run_configuration(TargetConfig(url="http://x/"), EscalationConfig(concurrency=0))

    def test_bad_duration(self):
        with pytest.raises(ConfigurationError, match="duration"):
            to_run_configuration(TargetConfig(url="http://x/"), EscalationConfig(duration="soon"))

    def test_non_string_target_fields(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("target:\n  url: http://x/\n  method: 5\n", encoding="utf-8")
        _, tgt, esc = load_session_config(path)
        with pytest.raises(ConfigurationError, match="target method must be a string"):
            to_run_configuration(tgt, esc)
