"""Shared test fixtures."""

import threading
from typing import Callable, Dict

import pytest

from loadstep.sinks import BufferSink
from loadstep.types import RunConfiguration


@pytest.fixture
def sink():
    return BufferSink()


@pytest.fixture
def make_config() -> Callable[..., RunConfiguration]:
    def _make(**kwargs) -> RunConfiguration:
        defaults: Dict = dict(
            url="http://localhost:8080/",
            concurrency=20,
            duration_s=10.0,
            max_latency_increase=15.0,
            min_rps_increase=4.0,
            cancel=threading.Event(),
        )
        defaults.update(kwargs)
        return RunConfiguration(**defaults)

    return _make
