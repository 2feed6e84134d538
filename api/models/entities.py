# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the satellite communications fallback layer.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any, Union
from pydantic import Field, field_validator
from .base import SatcomModel, BaseEntity, utc_now
from .enums import (
    SatelliteNetwork,
    SatelliteStatus,
    OrbitType,
    SatelliteCapability,
    GroundStationStatus,
    TerminalType,
    ConnectionStatus,
    ServiceTier,
    MessageType,
    MessageStatus,
    DestinationType,
    TransmissionErrorCode,
    SOSType,
    SOSStatus,
    ResponderType,
    ResponderStatus,
    PassQuality,
    SatelliteEventType
)
from domain.errors import InvalidTransitionError


MESSAGE_TTL = timedelta(hours=24)

# Allowed moves in the message status lattice; failed/expired/delivered are terminal.
MESSAGE_TRANSITIONS: Dict[str, set] = {
    MessageStatus.QUEUED.value: {
        MessageStatus.TRANSMITTING.value, MessageStatus.FAILED.value, MessageStatus.EXPIRED.value
    },
    MessageStatus.TRANSMITTING.value: {
        MessageStatus.TRANSMITTING.value, MessageStatus.TRANSMITTED.value,
        MessageStatus.FAILED.value, MessageStatus.EXPIRED.value
    },
    MessageStatus.TRANSMITTED.value: {MessageStatus.DELIVERED.value},
    MessageStatus.DELIVERED.value: set(),
    MessageStatus.FAILED.value: set(),
    MessageStatus.EXPIRED.value: set(),
}

SOS_TRANSITIONS: Dict[str, set] = {
    SOSStatus.ACTIVE.value: {SOSStatus.ACKNOWLEDGED.value, SOSStatus.CANCELLED.value},
    SOSStatus.ACKNOWLEDGED.value: {SOSStatus.RESPONDING.value, SOSStatus.CANCELLED.value},
    SOSStatus.RESPONDING.value: {SOSStatus.RESOLVED.value, SOSStatus.CANCELLED.value},
    SOSStatus.RESOLVED.value: set(),
    SOSStatus.CANCELLED.value: set(),
}


class GeoPoint(SatcomModel):
    """Latitude/longitude pair in degrees."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lon: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class Position(GeoPoint):
    """Geodetic position with altitude."""

    altitude: float = Field(default=0.0, description="Altitude (km for satellites, m for terminals)")


class TerminalLocation(Position):
    """Last known terminal position."""

    timestamp: datetime = Field(default_factory=utc_now, description="Fix timestamp")


class SOSLocation(TerminalLocation):
    """Location snapshot attached to an SOS alert."""

    accuracy: float = Field(default=10.0, ge=0, description="Horizontal accuracy in meters")


# Satellites

class SatelliteOrbit(SatcomModel):
    """Orbital state used by the approximation layer."""

    type: OrbitType = Field(..., description="Orbital class")
    altitude: float = Field(..., gt=0, description="Altitude in km")
    inclination: float = Field(default=0.0, description="Inclination in degrees")
    period: float = Field(..., gt=0, description="Orbital period in minutes")
    current_position: Position = Field(..., description="Current sub-satellite point")
    velocity: float = Field(default=0.0, description="Velocity in km/s")


class Footprint(SatcomModel):
    """Ground area reachable by a satellite."""

    center: GeoPoint
    radius: float = Field(..., gt=0, description="Radius in km")


class SatelliteBeam(SatcomModel):
    """Sub-division of a footprint with its own capacity."""

    id: str
    type: str = Field(default="spot", description="spot, wide, steerable or phased_array")
    center: GeoPoint
    radius: float = Field(..., gt=0, description="Beam radius in km")
    capacity: float = Field(default=0.0, ge=0, description="Capacity in Mbps")
    utilization: float = Field(default=0.0, ge=0, le=100, description="Utilization percentage")


class SatelliteCoverage(SatcomModel):
    """Coverage footprint, regions and beams."""

    footprint: Footprint
    regions: List[str] = Field(default_factory=list)
    min_elevation: float = Field(default=10.0, description="Minimum elevation in degrees")
    beams: List[SatelliteBeam] = Field(default_factory=list)


class SatelliteCapabilities(SatcomModel):
    """Service capabilities of a satellite."""

    voice_support: bool = True
    data_support: bool = True
    broadcast_support: bool = False
    max_bandwidth: float = Field(..., gt=0, description="Max bandwidth in kbps")
    latency: float = Field(..., ge=0, description="Processing latency in ms")
    encryption: List[str] = Field(default_factory=list)
    protocols: List[str] = Field(default_factory=list)


class SatelliteHealth(SatcomModel):
    """Health flags reported by telemetry."""

    battery_level: float = Field(default=100.0, ge=0, le=100)
    solar_panel_efficiency: float = Field(default=100.0, ge=0, le=100)
    transponder_status: str = Field(default="nominal", description="nominal, degraded or failed")
    antenna_status: str = Field(default="nominal", description="nominal, degraded or failed")
    thermal_status: str = Field(default="nominal", description="nominal, hot or cold")
    fuel_remaining: float = Field(default=100.0, ge=0, le=100)

    def is_nominal(self) -> bool:
        """Check whether every subsystem reports nominal."""
        return (
            self.transponder_status == "nominal"
            and self.antenna_status == "nominal"
            and self.thermal_status == "nominal"
        )


class Satellite(BaseEntity):
    """Satellite entity."""

    name: str = Field(..., min_length=1, max_length=200)
    network: SatelliteNetwork
    norad_id: Optional[str] = None
    status: SatelliteStatus = Field(default=SatelliteStatus.OPERATIONAL)
    orbit: SatelliteOrbit
    coverage: SatelliteCoverage
    capabilities: SatelliteCapabilities
    health: SatelliteHealth = Field(default_factory=SatelliteHealth)
    last_update: datetime = Field(default_factory=utc_now)

    def is_operational(self) -> bool:
        """Check if the satellite can carry new connections."""
        return self.status == SatelliteStatus.OPERATIONAL

    def supports(self, capability: SatelliteCapability) -> bool:
        """Check a single capability flag."""
        return {
            SatelliteCapability.VOICE.value: self.capabilities.voice_support,
            SatelliteCapability.DATA.value: self.capabilities.data_support,
            SatelliteCapability.BROADCAST.value: self.capabilities.broadcast_support,
        }.get(SatelliteCapability(capability).value, False)


# Ground stations

class GroundAntenna(SatcomModel):
    """Ground station antenna."""

    id: str
    type: str = Field(default="dish", description="dish, phased_array or omnidirectional")
    diameter: float = Field(default=0.0, ge=0, description="Diameter in meters")
    bands: List[str] = Field(default_factory=list)
    tracking: str = Field(default="auto")
    status: str = Field(default="active", description="active, idle or fault")


class GroundStationCapacity(SatcomModel):
    """Connection capacity bookkeeping."""

    max_connections: int = Field(..., ge=0)
    current_connections: int = Field(default=0, ge=0)
    bandwidth: float = Field(default=0.0, ge=0, description="Bandwidth in Mbps")

    @property
    def available(self) -> int:
        return self.max_connections - self.current_connections


class GroundStation(BaseEntity):
    """Ground station entity."""

    name: str = Field(..., min_length=1, max_length=200)
    location: Position
    status: GroundStationStatus = Field(default=GroundStationStatus.ONLINE)
    networks: List[SatelliteNetwork] = Field(default_factory=list)
    antennas: List[GroundAntenna] = Field(default_factory=list)
    capacity: GroundStationCapacity
    last_contact: datetime = Field(default_factory=utc_now)

    def can_serve(self, network: SatelliteNetwork) -> bool:
        """Check if the station is online, supports the network and has spare capacity."""
        return (
            self.status == GroundStationStatus.ONLINE
            and SatelliteNetwork(network).value in self.networks
            and self.capacity.available > 0
        )


# Terminals

class TerminalCapabilities(SatcomModel):
    """Terminal feature flags."""

    voice_enabled: bool = True
    data_enabled: bool = True
    sms_enabled: bool = True
    sos_enabled: bool = True
    gps_enabled: bool = True
    max_bandwidth: float = Field(default=2.4, gt=0, description="Max bandwidth in kbps")
    battery_life: float = Field(default=0.0, ge=0, description="Battery life in hours")
    weather_resistance: Optional[str] = None


class TerminalSubscription(SatcomModel):
    """Subscription plan and usage counters."""

    plan: ServiceTier = Field(default=ServiceTier.STANDARD)
    data_allowance: float = Field(..., ge=0, description="Data allowance in MB")
    data_used: float = Field(default=0.0, ge=0, description="Data used in MB")
    voice_minutes: float = Field(default=0.0, ge=0)
    voice_used: float = Field(default=0.0, ge=0)
    valid_until: Optional[datetime] = None
    auto_renew: bool = False

    def would_exceed(self, size_bytes: int) -> bool:
        """Check if sending size_bytes would exceed the data allowance."""
        return self.data_used + size_bytes / 1024 / 1024 > self.data_allowance


class TerminalMetrics(SatcomModel):
    """Rolling terminal metrics."""

    uptime: float = 0.0
    messages_transmitted: int = 0
    messages_received: int = 0
    bytes_transmitted: int = 0
    bytes_received: int = 0
    connection_drops: int = 0
    average_latency: float = 0.0
    average_signal_strength: float = 0.0
    signal_samples: int = 0

    def record_latency(self, latency: float) -> None:
        """Fold a transmission latency into the running mean."""
        count = self.messages_transmitted
        if count <= 0:
            self.average_latency = latency
        else:
            self.average_latency = self.average_latency + (latency - self.average_latency) / count

    def record_signal(self, strength: float) -> None:
        """Fold a signal strength sample into the running mean."""
        self.signal_samples += 1
        self.average_signal_strength = (
            self.average_signal_strength
            + (strength - self.average_signal_strength) / self.signal_samples
        )


class Connection(SatcomModel):
    """Active link between a terminal and a satellite/ground station pair."""

    satellite_id: str
    ground_station_id: str
    beam_id: str
    signal_strength: float = Field(..., description="Signal strength in dBm")
    snr: float = Field(..., description="Signal-to-noise ratio in dB")
    uplink_frequency: float = Field(..., description="Uplink frequency in MHz")
    downlink_frequency: float = Field(..., description="Downlink frequency in MHz")
    bandwidth: float = Field(..., gt=0, description="Bandwidth in kbps")
    latency: float = Field(..., ge=0, description="Latency in ms")
    packet_loss: float = Field(default=0.0, ge=0, le=100, description="Packet loss percentage")
    established: datetime
    last_activity: datetime


class Terminal(BaseEntity):
    """Satellite terminal entity."""

    name: str = Field(..., min_length=1, max_length=200)
    type: TerminalType
    network: SatelliteNetwork
    location: TerminalLocation
    status: ConnectionStatus = Field(default=ConnectionStatus.DISCONNECTED)
    connection: Optional[Connection] = None
    capabilities: TerminalCapabilities = Field(default_factory=TerminalCapabilities)
    subscription: TerminalSubscription
    metrics: TerminalMetrics = Field(default_factory=TerminalMetrics)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate terminal name."""
        if not v.strip():
            raise ValueError('Terminal name cannot be empty')
        return v.strip()

    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED and self.connection is not None

    def has_consistent_connection(self) -> bool:
        """Check that status and connection presence agree."""
        return (self.connection is not None) == (self.status == ConnectionStatus.CONNECTED)

    def attach_connection(self, connection: Connection) -> None:
        """Install a connection and mark the terminal connected."""
        self.connection = connection
        self.status = ConnectionStatus.CONNECTED

    def detach_connection(self) -> Optional[Connection]:
        """Drop the connection and mark the terminal disconnected."""
        previous = self.connection
        self.connection = None
        self.status = ConnectionStatus.DISCONNECTED
        return previous


# Messages

class MessagePayload(SatcomModel):
    """Message content and integrity data."""

    content_type: str = Field(default="text/plain")
    content: Union[str, bytes]
    size: int = Field(..., ge=0, description="Size on the wire in bytes")
    compressed: bool = False
    encrypted: bool = True
    checksum: str


class MessageDestination(SatcomModel):
    """Where a message is addressed."""

    type: DestinationType
    address: str = Field(..., min_length=1)


class RoutingSource(SatcomModel):
    terminal_id: str
    location: GeoPoint


class RoutingVia(SatcomModel):
    satellite_id: str
    ground_station_id: str


class MessageRouting(SatcomModel):
    """Routing record for a message."""

    source: RoutingSource
    destination: MessageDestination
    via: Optional[RoutingVia] = None


class TransmissionInfo(SatcomModel):
    """Transmission attempts and outcome."""

    attempts: int = 0
    last_attempt: Optional[datetime] = None
    transmitted_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    satellite: Optional[str] = None
    ground_station: Optional[str] = None
    error: Optional[TransmissionErrorCode] = None
    error_detail: Optional[str] = None


class SatelliteMessage(BaseEntity):
    """Message queued through the satellite link."""

    terminal_id: str
    type: MessageType
    status: MessageStatus = Field(default=MessageStatus.QUEUED)
    priority: ServiceTier
    payload: MessagePayload
    routing: MessageRouting
    transmission: TransmissionInfo = Field(default_factory=TransmissionInfo)
    expires_at: Optional[datetime] = None

    def model_post_init(self, __context: Any) -> None:
        if self.expires_at is None:
            self.expires_at = self.created_at + MESSAGE_TTL

    def can_transition_to(self, target: MessageStatus) -> bool:
        return MessageStatus(target).value in MESSAGE_TRANSITIONS[self.status]

    def _transition(self, target: MessageStatus) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransitionError("Message", self.status, MessageStatus(target).value)
        self.status = target

    def is_pending(self) -> bool:
        """Queued or in flight."""
        return self.status in (MessageStatus.QUEUED, MessageStatus.TRANSMITTING)

    def is_expired_at(self, now: datetime) -> bool:
        return self.is_pending() and now >= self.expires_at

    def mark_transmitting(self, now: datetime) -> None:
        self._transition(MessageStatus.TRANSMITTING)
        self.transmission.attempts += 1
        self.transmission.last_attempt = now

    def mark_transmitted(self, now: datetime, satellite_id: str, ground_station_id: str) -> None:
        self._transition(MessageStatus.TRANSMITTED)
        self.transmission.transmitted_at = now
        self.transmission.satellite = satellite_id
        self.transmission.ground_station = ground_station_id

    def mark_delivered(self, now: datetime) -> None:
        self._transition(MessageStatus.DELIVERED)
        self.transmission.delivered_at = now

    def mark_failed(self, code: TransmissionErrorCode, detail: Optional[str] = None) -> None:
        self._transition(MessageStatus.FAILED)
        self.transmission.error = code
        self.transmission.error_detail = detail

    def mark_expired(self) -> None:
        self._transition(MessageStatus.EXPIRED)
        self.transmission.error = TransmissionErrorCode.EXPIRED
        self.transmission.error_detail = "Message expired before transmission completed"


# SOS

class EmergencyContact(SatcomModel):
    """Person to notify when an SOS is raised."""

    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    relationship: str = Field(default="contact")
    notified: bool = False
    notified_at: Optional[datetime] = None


class ResponderInfo(SatcomModel):
    """Responding agency assigned to an alert."""

    id: str
    agency: str
    type: ResponderType
    status: ResponderStatus = Field(default=ResponderStatus.NOTIFIED)
    eta: Optional[float] = Field(None, ge=0, description="ETA in minutes")
    location: Optional[GeoPoint] = None
    contact: str


class SOSEvent(SatcomModel):
    """Timeline entry on an SOS alert."""

    timestamp: datetime
    event: str
    details: Optional[str] = None
    actor: Optional[str] = None


class SOSAlert(BaseEntity):
    """Emergency alert raised by a terminal."""

    terminal_id: str
    location: SOSLocation
    type: SOSType = Field(default=SOSType.DISTRESS)
    status: SOSStatus = Field(default=SOSStatus.ACTIVE)
    message: Optional[str] = Field(None, max_length=2000)
    contacts: List[EmergencyContact] = Field(default_factory=list)
    responders: List[ResponderInfo] = Field(default_factory=list)
    timeline: List[SOSEvent] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None
    sos_message_id: Optional[str] = None

    def is_open(self) -> bool:
        """Check if the alert is in a non-terminal state."""
        return self.status not in (SOSStatus.RESOLVED, SOSStatus.CANCELLED)

    def can_transition_to(self, target: SOSStatus) -> bool:
        return SOSStatus(target).value in SOS_TRANSITIONS[self.status]

    def transition(self, target: SOSStatus) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransitionError("SOS alert", self.status, SOSStatus(target).value)
        self.status = target

    def add_event(
        self,
        timestamp: datetime,
        event: str,
        details: Optional[str] = None,
        actor: Optional[str] = None
    ) -> None:
        self.timeline.append(SOSEvent(timestamp=timestamp, event=event, details=details, actor=actor))

    def find_responder(self, responder_id: str) -> Optional[ResponderInfo]:
        for responder in self.responders:
            if responder.id == responder_id:
                return responder
        return None


# Prediction and events

class SatellitePass(SatcomModel):
    """Approximate visibility window of a LEO satellite."""

    satellite_id: str
    start_time: datetime
    end_time: datetime
    max_elevation: float
    azimuth_start: float
    azimuth_end: float
    duration: float = Field(..., description="Duration in seconds")
    quality: PassQuality


class SatelliteEvent(SatcomModel):
    """Notification published on the event bus."""

    type: SatelliteEventType
    timestamp: datetime = Field(default_factory=utc_now)
    data: Dict[str, Any] = Field(default_factory=dict)
