from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger("speechscore.telemetry")


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    span = {"name": name, "attributes": attributes or {}}
    started = time.perf_counter()
    try:
        yield span
    finally:
        span["durationMs"] = round((time.perf_counter() - started) * 1000, 3)
        logger.debug("span %s finished in %sms", name, span["durationMs"])
