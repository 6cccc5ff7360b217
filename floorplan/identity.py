"""Identifier and clock providers.

Entities never call ``uuid`` or ``time`` directly; the capture engine and the
repository receive these callables so tests can run with deterministic ids
and timestamps.
"""
from __future__ import annotations

import itertools
import time
import uuid
from typing import Callable

IdGenerator = Callable[[], str]
Clock = Callable[[], int]  # epoch milliseconds


def uuid_ids() -> str:
    """Random UUID-v4 identifier."""
    return str(uuid.uuid4())


def system_clock() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


class CounterIds:
    """Monotonic identifiers: ``prefix-1``, ``prefix-2``, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


class FixedClock:
    """Clock returning ``start_ms`` and advancing by ``step_ms`` per call."""

    def __init__(self, start_ms: int = 0, step_ms: int = 0):
        self.now_ms = start_ms
        self.step_ms = step_ms

    def __call__(self) -> int:
        now = self.now_ms
        self.now_ms += self.step_ms
        return now
