# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import ConfigurationError, DriverError, RunCancelled
from .types import OutputSink, RunConfiguration

logger = logging.getLogger(__name__)


def _bin(name: str) -> str:
    path = shutil.which(name)
    if not path:
        raise DriverError(f"{name} is not installed. Please install it first.")
    return path


def _terminate(popen: subprocess.Popen, timeout_s: float = 5.0) -> None:
    if popen.poll() is not None:
        return
    popen.send_signal(signal.SIGINT)
    try:
        popen.communicate(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        popen.kill()
        popen.communicate(timeout=5)


def run_command(
    cmd: Sequence[str],
    cancel: threading.Event,
    *,
    merge_stderr: bool = False,
    poll_s: float = 0.2,
) -> Tuple[int, str, str]:
    """Run a command to completion unless `cancel` fires first.

    Output is drained while waiting, so a chatty tool cannot block on a full pipe.
    Raises RunCancelled if the event was set before or during the run.

    `communicate` can only wait with a timeout, so the event is checked every
    `poll_s` seconds: a cancel reaches the tool within `poll_s` plus the SIGINT
    grace period of `_terminate`. No extra delay is added once the tool exits.
    """
    if cancel.is_set():
        raise RunCancelled("test cancelled")

    popen = subprocess.Popen(
        list(cmd),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
        text=True,
    )
    while True:
        try:
            stdout, stderr = popen.communicate(timeout=poll_s)
            break
        except subprocess.TimeoutExpired:
            if cancel.is_set():
                logger.info("Cancelling %s (pid %d)", cmd[0], popen.pid)
                _terminate(popen)
                raise RunCancelled("test cancelled")

    if cancel.is_set():
        raise RunCancelled("test cancelled")
    return popen.returncode, stdout or "", stderr or ""


def format_duration(seconds: float) -> str:
    """Render seconds as a duration string k6 accepts, e.g. '10s' or '1.5s'."""
    return f"{seconds:g}s"


K6_SCRIPT = """
import http from 'k6/http';

export const options = {{
  vus: {vus},
  duration: '{duration}',
  summaryTrendStats: ['avg', 'min', 'med', 'max', 'p(50)', 'p(75)', 'p(90)', 'p(99)'],
}};

export default function() {{
  const params = {{
    headers: {{
      'Content-Type': 'application/json',
    }},
  }};
  {request}
}}
"""


def _js_string(s: str) -> str:
    return "'" + s.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_k6_script(config: RunConfiguration) -> str:
    method = (config.method or "GET").upper()
    url = _js_string(config.url)
    if method == "GET":
        request = f"const res = http.get({url}, params);"
    else:
        body = _js_string(config.body) if config.body else "null"
        request = f"const res = http.request('{method}', {url}, {body}, params);"
    return K6_SCRIPT.format(vus=config.concurrency, duration=format_duration(config.duration_s), request=request)


def build_wrk_lua_script(method: str, body: Optional[str]) -> str:
    return (
        f'wrk.method = "{method.upper()}"\n'
        'wrk.headers["Content-Type"] = "application/json"\n'
        f"wrk.body = [[{body or ''}]]\n"
    )


def _write_temp(suffix: str, prefix: str, content: str) -> Path:
    fd, name = tempfile.mkstemp(suffix=suffix, prefix=prefix)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    return Path(name)


class _SubprocessDriver:
    name = ""

    def __init__(self, sink: Optional[OutputSink] = None):
        self.sink = sink

    def _say(self, line: str) -> None:
        if self.sink is not None:
            self.sink.write_line(line)

    def _debug_dump(self, config: RunConfiguration, title: str, text: str) -> None:
        if config.debug:
            self._say(f"\n{title}:")
            for line in text.splitlines():
                self._say(line)
            self._say("---")


class K6Driver(_SubprocessDriver):
    name = "k6"

    def run_test(self, config: RunConfiguration) -> str:
        k6 = _bin("k6")
        self._say(f"Running test with {config.concurrency} virtual users for {format_duration(config.duration_s)}...")

        script = build_k6_script(config)
        script_path = _write_temp(".js", "k6-script-", script)
        cmd = [k6, "run", str(script_path)]
        self._debug_dump(config, "Executing command", " ".join(cmd))
        try:
            rc, stdout, stderr = run_command(cmd, config.cancel)
        finally:
            script_path.unlink(missing_ok=True)

        if rc != 0:
            logger.error("k6 exited with %d", rc)
            raise DriverError(f"failed to run k6: exit status {rc}", stdout=stdout, stderr=stderr)

        self._debug_dump(config, "Raw k6 output", stdout)
        if stderr:
            self._debug_dump(config, "Error output", stderr)
        return stdout


class WrkDriver(_SubprocessDriver):
    name = "wrk"

    def threads_for(self, concurrency: int) -> int:
        return max(1, min(concurrency, (os.cpu_count() or 1) * 2))

    def build_args(self, config: RunConfiguration, script_path: Optional[Path] = None) -> List[str]:
        args = [
            "-t", str(self.threads_for(config.concurrency)),
            "-c", str(config.concurrency),
            "-d", f"{config.duration_s:.0f}",
            "--latency",
        ]
        if script_path is not None:
            args += ["-s", str(script_path)]
        args.append(config.url)
        return args

    def run_test(self, config: RunConfiguration) -> str:
        wrk = _bin("wrk")
        self._say(
            f"Running test with {self.threads_for(config.concurrency)} threads and "
            f"{config.concurrency} connections for {format_duration(config.duration_s)}..."
        )

        script_path = None
        method = (config.method or "GET").upper()
        if method != "GET":
            script_path = _write_temp(".lua", "wrk-script-", build_wrk_lua_script(method, config.body))

        cmd = [wrk] + self.build_args(config, script_path)
        self._debug_dump(config, "Executing command", " ".join(cmd))
        try:
            rc, output, _ = run_command(cmd, config.cancel, merge_stderr=True)
        finally:
            if script_path is not None:
                script_path.unlink(missing_ok=True)

        if rc != 0:
            logger.error("wrk exited with %d", rc)
            raise DriverError(f"failed to run wrk: exit status {rc}", stdout=output)

        self._debug_dump(config, "Raw wrk output", output)
        return output


DRIVERS: Dict[str, Callable[..., _SubprocessDriver]] = {
    "k6": K6Driver,
    "wrk": WrkDriver,
}


def build_driver(name: str, sink: Optional[OutputSink] = None) -> _SubprocessDriver:
    try:
        factory = DRIVERS[name]
    except KeyError:
        raise ConfigurationError(f"unsupported client type: {name}") from None
    return factory(sink)
