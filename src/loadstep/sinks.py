# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

"""Output sinks receiving human-readable progress lines."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from tqdm import tqdm

from .types import OutputSink


class ConsoleSink:
    """Print lines without breaking any active tqdm bars."""

    def write_line(self, line: str) -> None:
        tqdm.write(line)


class BufferSink:
    def __init__(self) -> None:
        self.lines: List[str] = []

    def write_line(self, line: str) -> None:
        self.lines.append(line)

    def getvalue(self) -> str:
        return "\n".join(self.lines)


class QueueSink:
    """Push lines from a worker thread into an asyncio.Queue owned by `loop`.

    Multi-line strings are split so every queue item is a single line.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: Optional[asyncio.Queue] = None):
        self.loop = loop
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()

    def write_line(self, line: str) -> None:
        for part in line.split("\n"):
            self.loop.call_soon_threadsafe(self.queue.put_nowait, part)


class TeeSink:
    def __init__(self, sinks: Sequence[OutputSink]):
        self.sinks = list(sinks)

    def write_line(self, line: str) -> None:
        for sink in self.sinks:
            sink.write_line(line)
