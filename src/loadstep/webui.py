# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""HTTP front-end: start escalation sessions and stream their progress as SSE.

Each session owns its cancellation event; POST /stop-test sets it, and so does
a client that disconnects from the event stream.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from aiohttp import web

from .config import EscalationConfig, TargetConfig, to_run_configuration
from .drivers import build_driver
from .errors import ConfigurationError, LoadStepError
from .escalation import EscalationEngine
from .sinks import QueueSink
from .types import LoadDriver, OutputSink, RunConfiguration

logger = logging.getLogger(__name__)

DriverFactory = Callable[[str, Optional[OutputSink]], LoadDriver]


@dataclass
class Session:
    id: str
    client: str
    config: RunConfiguration
    started: float = field(default_factory=time.time)

    @property
    def cancel(self) -> threading.Event:
        return self.config.cancel


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def add(self, client: str, config: RunConfiguration) -> Session:
        session = Session(id=uuid.uuid4().hex[:12], client=client, config=config)
        with self._lock:
            self._sessions[session.id] = session
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def list(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def cancel(self, session_id: Optional[str] = None) -> int:
        """Cancel one session, or every running one when no id is given."""
        sessions = self.list() if session_id is None else [s for s in [self.get(session_id)] if s]
        for s in sessions:
            s.cancel.set()
        return len(sessions)


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes", "on")
    return bool(value)


def _text(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string")
    return value


def request_to_config(params: Mapping[str, Any]) -> tuple[str, RunConfiguration]:
    """Build (client, RunConfiguration) from a JSON body or query parameters."""
    try:
        concurrency = int(params.get("goroutines", params.get("concurrency", 10)))
        max_latency = float(params.get("maxLatencyIncrease", params.get("latencyThreshold", 15.0)))
        min_rps = float(params.get("minRpsIncrease", params.get("rpsThreshold", 4.0)))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid numeric parameter: {e}") from e

    client = _text(params, "clientType") or "k6"
    tgt = TargetConfig(
        url=_text(params, "url") or "",
        method=_text(params, "method") or "GET",
        body=_text(params, "body") or None,
    )
    esc = EscalationConfig(
        client=client,
        concurrency=concurrency,
        duration=str(params.get("duration") or "10s"),
        max_latency_increase=max_latency,
        min_rps_increase=min_rps,
        debug=_bool(params.get("debug", False)),
    )
    return client, to_run_configuration(tgt, esc)


class Server:
    def __init__(self, driver_factory: DriverFactory = build_driver):
        self.driver_factory = driver_factory
        self.sessions = SessionRegistry()

    def _run_engine(self, session: Session, sink: QueueSink) -> None:
        try:
            driver = self.driver_factory(session.client, sink)
            outcome = EscalationEngine(session.config, driver, sink).run()
            sink.write_line(
                f"Session {outcome.status.value}: {outcome.reason} "
                f"(highest accepted concurrency: {outcome.accepted_concurrency})"
            )
        except LoadStepError as e:
            logger.warning("Session %s failed: %s", session.id, e)
            sink.write_line(f"Error: {e}")
        finally:
            sink.loop.call_soon_threadsafe(sink.queue.put_nowait, None)

    async def handle_run_test(self, request: web.Request) -> web.StreamResponse:
        params: Mapping[str, Any]
        try:
            params = await request.json()
            if not isinstance(params, dict):
                raise web.HTTPBadRequest(text="JSON body must be an object")
        except json.JSONDecodeError:
            params = request.query

        try:
            client, config = request_to_config(params)
            self.driver_factory(client, None)
        except ConfigurationError as e:
            raise web.HTTPBadRequest(text=str(e))

        session = self.sessions.add(client, config)
        resp = web.StreamResponse(
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
            }
        )
        await resp.prepare(request)
        await resp.write(f"event: session\ndata: {session.id}\n\n".encode("utf-8"))

        loop = asyncio.get_running_loop()
        sink = QueueSink(loop)
        worker = loop.run_in_executor(None, self._run_engine, session, sink)
        logger.info("Started session %s (%s, %s)", session.id, client, config.url)
        try:
            while True:
                line = await sink.queue.get()
                if line is None:
                    break
                await resp.write(f"data: {line}\n\n".encode("utf-8"))
        except (ConnectionResetError, asyncio.CancelledError):
            logger.info("Client left session %s, cancelling", session.id)
            session.cancel.set()
            raise
        finally:
            await worker
            self.sessions.remove(session.id)

        await resp.write_eof()
        return resp

    async def handle_stop_test(self, request: web.Request) -> web.Response:
        session_id = request.query.get("session")
        if session_id is not None and self.sessions.get(session_id) is None:
            raise web.HTTPNotFound(text=f"unknown session: {session_id}")
        n = self.sessions.cancel(session_id)
        return web.json_response({"cancelled": n})

    async def handle_sessions(self, request: web.Request) -> web.Response:
        return web.json_response(
            [
                {"id": s.id, "client": s.client, "url": s.config.url, "started": s.started, "cancelled": s.cancel.is_set()}
                for s in self.sessions.list()
            ]
        )

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/run-test", self.handle_run_test)
        app.router.add_get("/run-test", self.handle_run_test)
        app.router.add_post("/stop-test", self.handle_stop_test)
        app.router.add_get("/sessions", self.handle_sessions)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def _on_shutdown(self, app: web.Application) -> None:
        n = self.sessions.cancel()
        if n:
            logger.info("Cancelled %d running session(s) on shutdown", n)


def create_app(driver_factory: DriverFactory = build_driver) -> web.Application:
    return Server(driver_factory).create_app()


def serve(host: str = "0.0.0.0", port: int = 8080) -> None:
    logger.info("Starting web server on %s:%d", host, port)
    web.run_app(create_app(), host=host, port=port)
