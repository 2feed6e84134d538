# SPDX-License-Identifier: Apache-2.0

"""
Terminal connection lifecycle: search, connect, handoff and disconnect.
"""

import asyncio
import logging
import random
from typing import Callable, List, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain import link_model
from domain.errors import NoCoverageError, NoGroundStationError
from models.entities import Connection, SatelliteEvent, Terminal, TerminalLocation
from models.enums import ConnectionStatus, SatelliteEventType
from services.events import EventBus
from services.registry import GroundStationRegistry, SatelliteRegistry
from services.simulation import Clock, SimulationSettings, SystemClock
from services.terminals import TerminalManager


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_BEAM_ID = "default"


class ConnectionManager:
    """
    Drives the per-terminal connection state machine.

    searching -> connecting -> connected -> (handoff -> connected) -> disconnected.
    A failed search or a cancelled establishment returns the terminal to
    disconnected with any reserved ground station capacity released.
    """

    def __init__(
        self,
        terminals: TerminalManager,
        satellites: SatelliteRegistry,
        ground_stations: GroundStationRegistry,
        events: EventBus,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[SimulationSettings] = None
    ):
        self._terminals = terminals
        self._satellites = satellites
        self._ground_stations = ground_stations
        self._events = events
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._settings = settings or SimulationSettings()
        self._disconnect_listeners: List[Callable[[str], None]] = []

    def add_disconnect_listener(self, listener: Callable[[str], None]) -> None:
        """Called with the terminal id before a disconnect takes the terminal lock."""
        self._disconnect_listeners.append(listener)

    async def connect(self, terminal_id: str) -> Connection:
        """
        Establish a link for a terminal.

        Returns the existing connection when the terminal is already connected.

        Raises:
            NotFoundError: Unknown terminal
            NoCoverageError: No operational satellite covers the terminal
            NoGroundStationError: No ground station can serve the chosen satellite
        """
        terminal = self._terminals.get(terminal_id)
        async with self._terminals.lock_for(terminal_id):
            return await self.connect_locked(terminal)

    async def connect_locked(self, terminal: Terminal) -> Connection:
        """Connect with the terminal lock already held by the caller."""
        if terminal.is_connected():
            return terminal.connection

        with tracer.start_as_current_span("satcom.connection.connect") as span:
            span.set_attribute("terminal.id", terminal.id)
            span.set_attribute("terminal.network", terminal.network)

            terminal.status = ConnectionStatus.SEARCHING
            candidates = self._satellites.find_available(terminal.location, terminal.network)
            if not candidates:
                terminal.detach_connection()
                span.set_status(Status(StatusCode.ERROR, "no coverage"))
                logger.warning(
                    "No satellite coverage for terminal",
                    extra={"extra_fields": {"terminal_id": terminal.id, "network": terminal.network}}
                )
                raise NoCoverageError(terminal.id, terminal.network)

            satellite = candidates[0]
            station = self._ground_stations.reserve_best_for(satellite)
            if station is None:
                terminal.detach_connection()
                span.set_status(Status(StatusCode.ERROR, "no ground station"))
                logger.warning(
                    "No ground station available",
                    extra={"extra_fields": {"terminal_id": terminal.id, "satellite_id": satellite.id}}
                )
                raise NoGroundStationError(satellite.id)

            terminal.status = ConnectionStatus.CONNECTING
            try:
                await self._clock.sleep(self._settings.connect_delay)
            except asyncio.CancelledError:
                self._ground_stations.release(station.id)
                terminal.detach_connection()
                logger.info(
                    "Connection establishment cancelled",
                    extra={"extra_fields": {"terminal_id": terminal.id}}
                )
                raise

            now = self._clock.now()
            beam = link_model.select_beam(satellite, terminal.location)
            strength = link_model.signal_strength(
                terminal.location, satellite, jitter=self._rng.random() * link_model.MAX_JITTER_DB
            )
            connection = Connection(
                satellite_id=satellite.id,
                ground_station_id=station.id,
                beam_id=beam.id if beam else DEFAULT_BEAM_ID,
                signal_strength=strength,
                snr=10 + self._rng.random() * 10,
                uplink_frequency=link_model.uplink_frequency(terminal.network),
                downlink_frequency=link_model.downlink_frequency(terminal.network),
                bandwidth=min(terminal.capabilities.max_bandwidth, satellite.capabilities.max_bandwidth),
                latency=link_model.link_latency_ms(satellite),
                packet_loss=self._rng.random() * 2,
                established=now,
                last_activity=now
            )
            terminal.attach_connection(connection)
            terminal.metrics.record_signal(strength)

            span.set_attribute("satellite.id", satellite.id)
            span.set_attribute("ground_station.id", station.id)
            logger.info(
                "Terminal connected",
                extra={
                    "extra_fields": {
                        "terminal_id": terminal.id,
                        "satellite_id": satellite.id,
                        "ground_station_id": station.id,
                        "signal_strength": round(strength, 2)
                    }
                }
            )
            self._emit(SatelliteEventType.CONNECTION_CHANGED, {
                "terminal_id": terminal.id,
                "status": ConnectionStatus.CONNECTED.value,
                "satellite_id": satellite.id,
                "ground_station_id": station.id
            })
            return connection

    async def disconnect(self, terminal_id: str) -> Optional[Connection]:
        """
        Tear down a terminal's link.

        In-flight and queued transmissions are aborted first so the lock they
        hold is released promptly. Disconnecting a disconnected terminal is a
        no-op and emits nothing.

        Returns:
            The connection that was dropped, or None
        """
        terminal = self._terminals.get(terminal_id)
        for listener in self._disconnect_listeners:
            listener(terminal_id)

        async with self._terminals.lock_for(terminal_id):
            if terminal.connection is None:
                terminal.detach_connection()
                return None

            with tracer.start_as_current_span("satcom.connection.disconnect") as span:
                span.set_attribute("terminal.id", terminal_id)
                previous = terminal.detach_connection()
                self._ground_stations.release(previous.ground_station_id)
                terminal.metrics.uptime += max(
                    (self._clock.now() - previous.established).total_seconds(), 0.0
                )

                logger.info(
                    "Terminal disconnected",
                    extra={"extra_fields": {"terminal_id": terminal_id, "satellite_id": previous.satellite_id}}
                )
                self._emit(SatelliteEventType.CONNECTION_CHANGED, {
                    "terminal_id": terminal_id,
                    "status": ConnectionStatus.DISCONNECTED.value
                })
                return previous

    def evaluate_handoff(self, terminal: Terminal, force: bool = False) -> bool:
        """
        Re-evaluate the serving satellite; caller holds the terminal lock.

        A handoff is attempted when the recomputed signal falls below the
        threshold, or unconditionally when ``force`` is set because the serving
        satellite left operational status. Without an alternative the
        degraded connection is kept.

        Returns:
            True when the connection moved to another satellite
        """
        if not terminal.is_connected():
            return False

        current = terminal.connection
        current_satellite = self._satellites.get(current.satellite_id)
        strength = link_model.signal_strength(
            terminal.location, current_satellite, jitter=self._rng.random() * link_model.MAX_JITTER_DB
        )
        terminal.metrics.record_signal(strength)
        if not force and strength >= self._settings.handoff_threshold_dbm:
            return False

        with tracer.start_as_current_span("satcom.connection.handoff") as span:
            span.set_attribute("terminal.id", terminal.id)
            span.set_attribute("handoff.forced", force)
            terminal.status = ConnectionStatus.HANDOFF
            try:
                alternatives = self._satellites.find_available(
                    terminal.location, terminal.network, exclude=current_satellite.id
                )
                if not alternatives:
                    span.set_attribute("handoff.performed", False)
                    logger.warning(
                        "Handoff needed but no alternative satellite",
                        extra={
                            "extra_fields": {
                                "terminal_id": terminal.id,
                                "satellite_id": current_satellite.id,
                                "signal_strength": round(strength, 2)
                            }
                        }
                    )
                    return False

                target = alternatives[0]
                terminal.connection = current.model_copy(update={
                    "satellite_id": target.id,
                    "signal_strength": link_model.signal_strength(
                        terminal.location, target, jitter=self._rng.random() * link_model.MAX_JITTER_DB
                    ),
                    "latency": link_model.link_latency_ms(target),
                    "last_activity": self._clock.now()
                })
                span.set_attribute("handoff.performed", True)
                logger.info(
                    "Satellite handoff",
                    extra={
                        "extra_fields": {
                            "terminal_id": terminal.id,
                            "from_satellite": current_satellite.id,
                            "to_satellite": target.id
                        }
                    }
                )
                self._emit(SatelliteEventType.SATELLITE_HANDOFF, {
                    "terminal_id": terminal.id,
                    "from_satellite": current_satellite.id,
                    "to_satellite": target.id
                })
                return True
            finally:
                terminal.status = ConnectionStatus.CONNECTED

    async def relocate(self, terminal_id: str, location: TerminalLocation) -> Terminal:
        """Store a new terminal location and re-evaluate the link if connected."""
        terminal = self._terminals.get(terminal_id)
        async with self._terminals.lock_for(terminal_id):
            self._terminals.update_location(terminal_id, location)
            if terminal.is_connected():
                self.evaluate_handoff(terminal)
            return terminal

    async def handoff_from_satellite(self, satellite_id: str) -> int:
        """
        Force every terminal served by a satellite to look for another one.

        Returns:
            Number of terminals moved
        """
        moved = 0
        for terminal in self._terminals.list(status=ConnectionStatus.CONNECTED):
            if terminal.connection is None or terminal.connection.satellite_id != satellite_id:
                continue
            async with self._terminals.lock_for(terminal.id):
                if terminal.connection is not None and terminal.connection.satellite_id == satellite_id:
                    if self.evaluate_handoff(terminal, force=True):
                        moved += 1
        return moved

    def _emit(self, event_type: SatelliteEventType, data: dict) -> None:
        self._events.emit(SatelliteEvent(type=event_type, timestamp=self._clock.now(), data=data))
