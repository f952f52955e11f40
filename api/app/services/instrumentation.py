"""Timing boundary for the core operations.

The core modules never talk to a tracing backend; they are wrapped with
`instrumented(...)`, which logs duration and flags slow calls.
"""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Callable, TypeVar

F = TypeVar("F", bound=Callable)

log = logging.getLogger("packages.core")


def _slow_operation_ms_threshold() -> float:
    raw = os.getenv("CORE_SLOW_OPERATION_MS", "500").strip()
    try:
        return max(1.0, float(raw))
    except ValueError:
        return 500.0


def instrumented(name: str) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                elapsed_ms = (time.perf_counter() - started) * 1000.0
                log.warning("operation=%s failed elapsed_ms=%.2f error=%s", name, elapsed_ms, exc)
                raise
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            if elapsed_ms >= _slow_operation_ms_threshold():
                log.warning("slow_operation operation=%s elapsed_ms=%.2f", name, elapsed_ms)
            else:
                log.debug("operation=%s elapsed_ms=%.2f", name, elapsed_ms)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
