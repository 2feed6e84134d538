# SPDX-License-Identifier: Apache-2.0

"""
Terminal registration and per-terminal serialization.
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional

from opentelemetry import trace

from domain.errors import NotFoundError
from models.entities import Terminal, TerminalLocation, TerminalSubscription
from models.enums import ConnectionStatus, SatelliteNetwork
from models.requests import RegisterTerminalRequest
from services.simulation import Clock, IdGenerator, ObjectIdGenerator, SystemClock


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TerminalManager:
    """
    Owns terminal records.

    Every operation that mutates a terminal's connection or message flow
    runs under ``lock_for(terminal_id)``; operations on different terminals
    proceed independently.
    """

    def __init__(self, clock: Optional[Clock] = None, id_generator: Optional[IdGenerator] = None):
        self._clock = clock or SystemClock()
        self._ids = id_generator or ObjectIdGenerator()
        self._terminals: Dict[str, Terminal] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()

    def register(self, request: RegisterTerminalRequest) -> Terminal:
        """Create a disconnected terminal with zeroed metrics and usage."""
        with tracer.start_as_current_span("satcom.terminals.register") as span:
            subscription = TerminalSubscription(
                plan=request.subscription.plan,
                data_allowance=request.subscription.data_allowance,
                voice_minutes=request.subscription.voice_minutes,
                valid_until=request.subscription.valid_until,
                auto_renew=request.subscription.auto_renew
            )
            terminal = Terminal(
                id=self._ids.next_id("term"),
                created_at=self._clock.now(),
                name=request.name,
                type=request.type,
                network=request.network,
                location=request.location,
                capabilities=request.capabilities,
                subscription=subscription,
                metadata=dict(request.metadata)
            )

            with self._guard:
                self._terminals[terminal.id] = terminal

            span.set_attribute("terminal.id", terminal.id)
            span.set_attribute("terminal.network", terminal.network)
            logger.info(
                "Terminal registered",
                extra={
                    "extra_fields": {
                        "terminal_id": terminal.id,
                        "network": terminal.network,
                        "type": terminal.type
                    }
                }
            )
            return terminal

    def add(self, terminal: Terminal) -> Terminal:
        """Insert a fully formed terminal, used for seed data."""
        with self._guard:
            self._terminals[terminal.id] = terminal
        return terminal

    def get(self, terminal_id: str) -> Terminal:
        with self._guard:
            terminal = self._terminals.get(terminal_id)
        if terminal is None:
            raise NotFoundError("Terminal", terminal_id)
        return terminal

    def list(
        self,
        network: Optional[SatelliteNetwork] = None,
        status: Optional[ConnectionStatus] = None
    ) -> List[Terminal]:
        with self._guard:
            terminals = list(self._terminals.values())

        if network is not None:
            terminals = [t for t in terminals if t.network == SatelliteNetwork(network).value]
        if status is not None:
            terminals = [t for t in terminals if t.status == ConnectionStatus(status).value]
        return terminals

    def update_location(self, terminal_id: str, location: TerminalLocation) -> Terminal:
        """Store a new fix; callers holding the terminal lock decide on handoff."""
        terminal = self.get(terminal_id)
        terminal.location = location
        return terminal

    def lock_for(self, terminal_id: str) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(terminal_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[terminal_id] = lock
            return lock

    def count(self) -> int:
        with self._guard:
            return len(self._terminals)
