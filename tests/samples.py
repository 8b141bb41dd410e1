"""Sample tool output and fake collaborators used across the tests."""

from typing import Callable, List, Union

from loadstep.errors import DriverError
from loadstep.types import RunConfiguration


K6_SAMPLE = """
          /\\      |‾‾| /‾‾/   /‾‾/
     /\\  /  \\     |  |/  /   /  /
    /  \\/    \\    |     (   /   ‾‾\\
   /          \\   |  |\\  \\ |  (‾)  |
  / __________ \\  |__| \\__\\ \\_____/ .io

  execution: local
     script: /tmp/k6-script-123.js
     output: -

  scenarios: (100.00%) 1 scenario, 10 max VUs, 40s max duration (incl. graceful stop):
           * default: 10 looping VUs for 10s (gracefulStop: 30s)

running (10.0s), 00/10 VUs, 4123 complete and 0 interrupted iterations
default ✓ [======================================] 10 VUs  10s

     data_received..................: 1.2 MB 120 kB/s
     data_sent......................: 330 kB 33 kB/s
     http_req_blocked...............: avg=12.1µs   min=1µs     med=3µs     max=1.2ms    p(50)=3µs     p(75)=4µs     p(90)=6µs     p(99)=410µs
     http_req_connecting............: avg=5.2µs    min=0s      med=0s      max=700µs    p(50)=0s      p(75)=0s      p(90)=0s      p(99)=300µs
     http_req_duration..............: avg=24.1ms   min=10.2ms  med=22.5ms  max=1.03s    p(50)=22.5ms  p(75)=26.75ms p(90)=31.2ms  p(99)=1.03s
       { expected_response:true }...: avg=24.1ms   min=10.2ms  med=22.5ms  max=1.03s    p(50)=22.5ms  p(75)=26.75ms p(90)=31.2ms  p(99)=1.03s
     http_req_failed................: 0.00%  ✓ 0         ✗ 4123
     http_req_receiving.............: avg=61.5µs   min=9µs     med=47µs    max=2.1ms    p(50)=47µs    p(75)=70µs    p(90)=101µs   p(99)=450µs
     http_reqs......................: 4123   411.871234/s
     iteration_duration.............: avg=24.2ms   min=10.3ms  med=22.6ms  max=1.03s    p(50)=22.6ms  p(75)=26.8ms  p(90)=31.3ms  p(99)=1.03s
     iterations.....................: 4123   411.871234/s
     vus............................: 10     min=10      max=10
     vus_max........................: 10     min=10      max=10
"""

WRK_SAMPLE = """Running 10s test @ http://127.0.0.1:8080/
  4 threads and 20 connections
  Thread Stats   Avg      Stdev     Max   +/- Stdev
    Latency     2.31ms    1.02ms  40.12ms   91.23%
    Req/Sec     2.18k   201.45     2.60k    71.50%
  Latency Distribution
     50%    2.10ms
     75%    2.55ms
     90%    3.07ms
     99%    1.03s
  86912 requests in 10.01s, 12.35MB read
Requests/sec:   8682.82
Transfer/sec:      1.23MB
"""


def k6_output(rps: float, p50: float, p75: float, p90: float, p99: float) -> str:
    """A minimal k6 summary with the given values (latencies in ms)."""
    return (
        "running (10.0s), 00/10 VUs, 100 complete and 0 interrupted iterations\n"
        f"     http_req_duration..............: avg={p50}ms min=1ms med={p50}ms max={p99}ms "
        f"p(50)={p50}ms p(75)={p75}ms p(90)={p90}ms p(99)={p99}ms\n"
        f"     http_reqs......................: 1000   {rps}/s\n"
    )


Step = Union[str, Exception, Callable[[RunConfiguration], str]]


class FakeDriver:
    """Plays back a scripted list of outputs, one per run_test call."""

    def __init__(self, steps: List[Step], name: str = "k6"):
        self.name = name
        self.steps = list(steps)
        self.calls: List[int] = []

    def run_test(self, config: RunConfiguration) -> str:
        self.calls.append(config.concurrency)
        if not self.steps:
            raise DriverError("no more scripted runs")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(config)
        return step


def metrics(rps: float, p90: float) -> str:
    return k6_output(rps, p90 * 0.8, p90 * 0.9, p90, p90 * 1.5)


