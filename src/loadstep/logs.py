# Copyright (c) 2025 Vahab Jabrayilov (vjabrayilov@cs.columbia.edu)
# Copyright (c) 2025 DAPLab of Columbia University (https://daplab.cs.columbia.edu/)
# Copyright (c) 2025 The Trustees of Columbia University in the City of New York

from __future__ import annotations

import logging
import sys

HANDLER_NAME = "loadstep"

# Third-party loggers that are noisy at INFO
LIBRARY_LOG_LEVELS = {
    "aiohttp.access": "WARNING",
    "asyncio": "WARNING",
}


def setup_logging(level: str = "INFO") -> None:
    """Log to stderr so progress lines on stdout stay clean."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)
    handler.setLevel(numeric_level)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    # Calling twice replaces the handler instead of duplicating output.
    for old in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(old)
    root.addHandler(handler)

    for name, lib_level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(getattr(logging, lib_level))
