# SPDX-License-Identifier: Apache-2.0

"""
Simulation primitives injected into the satellite services.

Time, identifiers and delays are constructor arguments of every service so
that production runs on the wall clock while tests drive a virtual clock
and deterministic identifiers.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId


logger = logging.getLogger(__name__)


@dataclass
class SimulationSettings:
    """Timing and reliability parameters of the simulated link."""
    connect_delay: float = 2.0
    delivery_delay: float = 2.0
    success_probability: float = 0.95
    max_attempts: int = 3
    message_ttl: timedelta = timedelta(hours=24)
    handoff_threshold_dbm: float = -100.0


class Clock:
    """Source of the current time and of suspension points."""

    def now(self) -> datetime:
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """
    Wall clock backed by asyncio timers.

    Simulated durations are multiplied by ``time_scale`` and, when
    ``max_delay`` is set, capped to it. Both are explicit configuration;
    nothing is capped by default.
    """

    def __init__(self, time_scale: float = 1.0, max_delay: Optional[float] = None):
        if time_scale < 0:
            raise ValueError("time_scale must be non-negative")
        self.time_scale = time_scale
        self.max_delay = max_delay

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def scaled(self, seconds: float) -> float:
        delay = max(seconds, 0.0) * self.time_scale
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(self.scaled(seconds))


class VirtualClock(Clock):
    """
    Logical clock for tests.

    ``sleep`` advances virtual time immediately and yields once to the event
    loop, so suspension points still interleave without wall-clock waits.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now = self._now + delta

    async def sleep(self, seconds: float) -> None:
        self.advance(timedelta(seconds=max(seconds, 0.0)))
        await asyncio.sleep(0)


class IdGenerator:
    """Allocates identifiers for entities and subscriptions."""

    def next_id(self, prefix: str) -> str:
        raise NotImplementedError


class ObjectIdGenerator(IdGenerator):
    """Monotonic ObjectId-based identifiers, e.g. ``term-65a1...``."""

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{ObjectId()}"


class SequentialIdGenerator(IdGenerator):
    """Deterministic identifiers, e.g. ``msg-0001``; one counter per prefix."""

    def __init__(self):
        self._counters = {}

    def next_id(self, prefix: str) -> str:
        counter = self._counters.setdefault(prefix, itertools.count(1))
        return f"{prefix}-{next(counter):04d}"
