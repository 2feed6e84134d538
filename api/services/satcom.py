# SPDX-License-Identifier: Apache-2.0

"""
Satellite Communications Service

Facade over the satellite communications fallback layer. It wires the
registries, terminal manager, connection manager, messaging pipeline, SOS
coordinator, pass predictor and event bus around one clock, one random
source and one id generator, and exposes the operations used by the REST
routes and by other platform services.
"""

import logging
import os
import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterable, List, Optional, Union

from opentelemetry import trace

from models.entities import (
    Connection, EmergencyContact, GeoPoint, GroundStation, MessageDestination, Position, ResponderInfo,
    Satellite, SatelliteEvent, SatelliteHealth, SatelliteMessage, SatellitePass, SOSAlert, SOSLocation,
    Terminal, TerminalLocation
)
from models.enums import (
    ConnectionStatus, GroundStationStatus, MessageStatus, MessageType, SatelliteCapability, SatelliteEventType,
    SatelliteNetwork, SatelliteStatus, ServiceTier, SOSType
)
from models.requests import RegisterTerminalRequest
from models.responses import (
    GroundStationCounts, MessageCounts, NetworkStatistics, SatelliteCounts, TerminalCounts
)
from services.connections import ConnectionManager
from services.events import EventBus
from services.messaging import MessagingPipeline
from services.passes import PassPredictor
from services.registry import GroundStationRegistry, SatelliteRegistry
from services.sample_data import seed_sample_data
from services.simulation import (
    Clock, IdGenerator, ObjectIdGenerator, SimulationSettings, SystemClock
)
from services.sos import DEFAULT_COORDINATION_ADDRESS, SOSCoordinator
from services.terminals import TerminalManager


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class SatcomConfig:
    """Satellite communications settings."""
    success_probability: float = 0.95
    max_attempts: int = 3
    message_ttl_hours: float = 24.0
    connect_delay: float = 2.0
    delivery_delay: float = 2.0
    time_scale: float = 1.0
    max_simulated_delay: Optional[float] = None
    handoff_threshold_dbm: float = -100.0
    random_seed: Optional[int] = None
    seed_sample_data: bool = False
    coordination_address: str = DEFAULT_COORDINATION_ADDRESS

    def simulation_settings(self) -> SimulationSettings:
        return SimulationSettings(
            connect_delay=self.connect_delay,
            delivery_delay=self.delivery_delay,
            success_probability=self.success_probability,
            max_attempts=self.max_attempts,
            message_ttl=timedelta(hours=self.message_ttl_hours),
            handoff_threshold_dbm=self.handoff_threshold_dbm
        )


class SatelliteCommsService:
    """Entry point for every satellite communications operation."""

    def __init__(
        self,
        config: Optional[SatcomConfig] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        id_generator: Optional[IdGenerator] = None
    ):
        self.config = config or SatcomConfig()
        self.clock = clock or SystemClock(self.config.time_scale, self.config.max_simulated_delay)
        self.rng = rng or random.Random(self.config.random_seed)
        self.ids = id_generator or ObjectIdGenerator()
        settings = self.config.simulation_settings()

        self.events = EventBus(self.ids)
        self.satellites = SatelliteRegistry(self.clock)
        self.ground_stations = GroundStationRegistry()
        self.terminals = TerminalManager(self.clock, self.ids)
        self.passes = PassPredictor(self.satellites, self.clock, self.rng)
        self.connections = ConnectionManager(
            self.terminals, self.satellites, self.ground_stations, self.events,
            clock=self.clock, rng=self.rng, settings=settings
        )
        self.messaging = MessagingPipeline(
            self.terminals, self.events,
            clock=self.clock, rng=self.rng, settings=settings, id_generator=self.ids
        )
        self.sos = SOSCoordinator(
            self.terminals, self.connections, self.messaging, self.events,
            clock=self.clock, id_generator=self.ids,
            coordination_address=self.config.coordination_address
        )
        self.connections.add_disconnect_listener(self.messaging.abort_terminal)

        if self.config.seed_sample_data:
            seed_sample_data(self.satellites, self.ground_stations, self.terminals, self.clock)

    # Terminals

    def register_terminal(self, request: RegisterTerminalRequest) -> Terminal:
        return self.terminals.register(request)

    def get_terminal(self, terminal_id: str) -> Terminal:
        return self.terminals.get(terminal_id)

    def list_terminals(
        self,
        network: Optional[SatelliteNetwork] = None,
        status: Optional[ConnectionStatus] = None
    ) -> List[Terminal]:
        return self.terminals.list(network=network, status=status)

    async def connect(self, terminal_id: str) -> Connection:
        return await self.connections.connect(terminal_id)

    async def disconnect(self, terminal_id: str) -> Optional[Connection]:
        return await self.connections.disconnect(terminal_id)

    async def update_terminal_location(self, terminal_id: str, location: TerminalLocation) -> Terminal:
        return await self.connections.relocate(terminal_id, location)

    # Messages

    async def send_message(
        self,
        terminal_id: str,
        message_type: MessageType,
        destination: MessageDestination,
        content: Union[str, bytes],
        priority: Optional[ServiceTier] = None,
        compress: bool = False,
        encrypt: bool = True
    ) -> SatelliteMessage:
        return await self.messaging.send(
            terminal_id, message_type, destination, content,
            priority=priority, compress=compress, encrypt=encrypt
        )

    def get_message(self, message_id: str) -> SatelliteMessage:
        return self.messaging.get_message(message_id)

    def get_messages_by_terminal(self, terminal_id: str, limit: int = 50) -> List[SatelliteMessage]:
        return self.messaging.list_by_terminal(terminal_id, limit)

    def record_inbound_message(self, terminal_id: str, content: str, source: str) -> SatelliteEvent:
        return self.messaging.record_inbound(terminal_id, content, source)

    async def wait_for_deliveries(self) -> None:
        await self.messaging.wait_for_deliveries()

    # SOS

    async def send_sos(
        self,
        terminal_id: str,
        sos_type: SOSType = SOSType.DISTRESS,
        message: Optional[str] = None,
        contacts: Optional[List[EmergencyContact]] = None
    ) -> SOSAlert:
        return await self.sos.send_sos(terminal_id, sos_type, message, contacts)

    def cancel_sos(self, alert_id: str, reason: str) -> SOSAlert:
        return self.sos.cancel(alert_id, reason)

    def update_sos_position(self, alert_id: str, location: SOSLocation) -> SOSAlert:
        return self.sos.update_position(alert_id, location)

    def acknowledge_sos(self, alert_id: str, actor: str) -> SOSAlert:
        return self.sos.acknowledge(alert_id, actor)

    def mark_sos_responding(
        self,
        alert_id: str,
        responder_id: Optional[str] = None,
        eta: Optional[float] = None
    ) -> SOSAlert:
        return self.sos.mark_responding(alert_id, responder_id, eta)

    def resolve_sos(self, alert_id: str, resolution: str) -> SOSAlert:
        return self.sos.resolve(alert_id, resolution)

    def assign_sos_responder(self, alert_id: str, responder: ResponderInfo) -> SOSAlert:
        return self.sos.assign_responder(alert_id, responder)

    def escalate_sos(self, alert_id: str) -> SOSAlert:
        return self.sos.escalate(alert_id)

    def get_sos_alert(self, alert_id: str) -> SOSAlert:
        return self.sos.get(alert_id)

    def get_active_sos_alerts(self) -> List[SOSAlert]:
        return self.sos.list_active()

    # Satellites and ground stations

    def predict_satellite_passes(self, location: GeoPoint, hours: float = 24) -> List[SatellitePass]:
        return self.passes.predict(location, hours)

    def get_satellite(self, satellite_id: str) -> Satellite:
        return self.satellites.get(satellite_id)

    def list_satellites(
        self,
        network: Optional[SatelliteNetwork] = None,
        status: Optional[SatelliteStatus] = None,
        capability: Optional[SatelliteCapability] = None
    ) -> List[Satellite]:
        return self.satellites.list(network=network, status=status, capability=capability)

    def register_satellite(self, satellite: Satellite) -> Satellite:
        satellite = self.satellites.register(satellite)
        self._emit_coverage_changed(satellite.id, "registered")
        return satellite

    def update_satellite_position(self, satellite_id: str, position: Position) -> Satellite:
        satellite = self.satellites.update_position(satellite_id, position)
        self._emit_coverage_changed(satellite_id, "moved")
        return satellite

    def update_satellite_health(self, satellite_id: str, health: SatelliteHealth) -> Satellite:
        """Store a telemetry health report; status is left to the operator."""
        satellite = self.satellites.update_health(satellite_id, health)
        if not health.is_nominal():
            logger.warning(
                "Satellite health degraded",
                extra={
                    "extra_fields": {
                        "satellite_id": satellite_id,
                        "transponder": health.transponder_status,
                        "antenna": health.antenna_status,
                        "battery_level": health.battery_level
                    }
                }
            )
        return satellite

    async def set_satellite_status(self, satellite_id: str, status: SatelliteStatus) -> Satellite:
        """Change satellite status; terminals it serves are handed off when it leaves service."""
        with tracer.start_as_current_span("satcom.satellite.set_status") as span:
            span.set_attribute("satellite.id", satellite_id)
            satellite = self.satellites.set_status(satellite_id, status)
            self._emit_coverage_changed(satellite_id, "status_changed")

            if not satellite.is_operational():
                moved = await self.connections.handoff_from_satellite(satellite_id)
                span.set_attribute("satellite.terminals_moved", moved)
            return satellite

    def get_ground_station(self, station_id: str) -> GroundStation:
        return self.ground_stations.get(station_id)

    def list_ground_stations(
        self,
        network: Optional[SatelliteNetwork] = None,
        status: Optional[GroundStationStatus] = None
    ) -> List[GroundStation]:
        return self.ground_stations.list(network=network, status=status)

    def register_ground_station(self, station: GroundStation) -> GroundStation:
        return self.ground_stations.register(station)

    def get_network_statistics(self, network: Optional[SatelliteNetwork] = None) -> NetworkStatistics:
        """Counts across the network, optionally restricted to one satellite network."""
        with tracer.start_as_current_span("satcom.statistics"):
            satellites = self.satellites.list(network=network)
            stations = self.ground_stations.list(network=network)
            terminals = self.terminals.list(network=network)
            terminal_ids = {t.id for t in terminals}

            messages = [m for m in self.messaging.all_messages() if m.terminal_id in terminal_ids]
            active_alerts = [a for a in self.sos.list_active() if a.terminal_id in terminal_ids]

            return NetworkStatistics(
                network=SatelliteNetwork(network).value if network else None,
                satellites=SatelliteCounts(
                    total=len(satellites),
                    operational=sum(1 for s in satellites if s.is_operational())
                ),
                ground_stations=GroundStationCounts(
                    total=len(stations),
                    online=sum(1 for g in stations if g.status == GroundStationStatus.ONLINE)
                ),
                terminals=TerminalCounts(
                    total=len(terminals),
                    connected=sum(1 for t in terminals if t.is_connected())
                ),
                messages=MessageCounts(
                    total=len(messages),
                    delivered=sum(1 for m in messages if m.status == MessageStatus.DELIVERED),
                    failed=sum(1 for m in messages if m.status == MessageStatus.FAILED),
                    expired=sum(1 for m in messages if m.status == MessageStatus.EXPIRED)
                ),
                active_sos_alerts=len(active_alerts)
            )

    # Events

    def subscribe(
        self,
        callback: Callable[[SatelliteEvent], None],
        event_types: Optional[Iterable[SatelliteEventType]] = None
    ) -> str:
        return self.events.subscribe(callback, event_types)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self.events.unsubscribe(subscription_id)

    async def shutdown(self) -> None:
        await self.messaging.shutdown()

    def _emit_coverage_changed(self, satellite_id: str, reason: str) -> None:
        self.events.emit(SatelliteEvent(
            type=SatelliteEventType.COVERAGE_CHANGED,
            timestamp=self.clock.now(),
            data={"satellite_id": satellite_id, "reason": reason}
        ))


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def create_satcom_service() -> SatelliteCommsService:
    """
    Factory function to create the satellite service with configuration from environment.

    Returns:
        SatelliteCommsService: Configured service instance
    """
    max_delay = os.getenv("SATCOM_MAX_SIMULATED_DELAY_SECONDS")
    seed = os.getenv("SATCOM_RANDOM_SEED")

    config = SatcomConfig(
        success_probability=float(os.getenv("SATCOM_SUCCESS_PROBABILITY", "0.95")),
        max_attempts=int(os.getenv("SATCOM_MAX_ATTEMPTS", "3")),
        message_ttl_hours=float(os.getenv("SATCOM_MESSAGE_TTL_HOURS", "24")),
        connect_delay=float(os.getenv("SATCOM_CONNECT_DELAY_SECONDS", "2.0")),
        delivery_delay=float(os.getenv("SATCOM_DELIVERY_DELAY_SECONDS", "2.0")),
        time_scale=float(os.getenv("SATCOM_TIME_SCALE", "1.0")),
        max_simulated_delay=float(max_delay) if max_delay else None,
        handoff_threshold_dbm=float(os.getenv("SATCOM_HANDOFF_THRESHOLD_DBM", "-100")),
        random_seed=int(seed) if seed else None,
        seed_sample_data=_env_flag("SATCOM_SEED_SAMPLE_DATA"),
        coordination_address=os.getenv("SATCOM_COORDINATION_ADDRESS", DEFAULT_COORDINATION_ADDRESS)
    )

    logger.info(
        "Creating satellite communications service",
        extra={
            "extra_fields": {
                "success_probability": config.success_probability,
                "time_scale": config.time_scale,
                "seed_sample_data": config.seed_sample_data
            }
        }
    )
    return SatelliteCommsService(config)
