# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for satellite communications operations and API endpoints.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from .base import SatcomModel
from .entities import (
    TerminalLocation, SOSLocation, TerminalCapabilities, MessageDestination,
    EmergencyContact
)
from .enums import (
    SatelliteNetwork, SatelliteStatus, SatelliteCapability, GroundStationStatus,
    TerminalType, ConnectionStatus, ServiceTier, MessageType, SOSType
)


class SubscriptionRequest(SatcomModel):
    """Subscription terms supplied at registration; usage counters start at zero."""

    plan: ServiceTier = Field(default=ServiceTier.STANDARD, description="Service tier")
    data_allowance: float = Field(..., ge=0, description="Data allowance in MB")
    voice_minutes: float = Field(default=0.0, ge=0, description="Voice minutes")
    valid_until: Optional[datetime] = Field(None, description="Subscription expiry")
    auto_renew: bool = Field(default=False, description="Renew automatically")


class RegisterTerminalRequest(SatcomModel):
    """Request model for registering a terminal."""

    name: str = Field(..., min_length=1, max_length=200, description="Terminal name")
    type: TerminalType = Field(..., description="Terminal form factor")
    network: SatelliteNetwork = Field(..., description="Network affinity")
    location: TerminalLocation = Field(..., description="Initial location")
    capabilities: TerminalCapabilities = Field(default_factory=TerminalCapabilities)
    subscription: SubscriptionRequest
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate terminal name."""
        if not v.strip():
            raise ValueError('Terminal name cannot be empty')
        return v.strip()


class SendMessageRequest(SatcomModel):
    """Request model for sending a message through the satellite link."""

    type: MessageType = Field(default=MessageType.DATA, description="Message type")
    destination: MessageDestination
    content: str = Field(..., description="Message content")
    priority: Optional[ServiceTier] = Field(None, description="Defaults to the subscription plan")
    compress: bool = Field(default=False, description="Compress payload before sending")
    encrypt: bool = Field(default=True, description="Flag payload as encrypted")


class InboundMessageRequest(SatcomModel):
    """Message received by a terminal from the network."""

    content: str
    source: str = Field(..., min_length=1, description="Sender address")


class SendSOSRequest(SatcomModel):
    """Request model for raising an SOS alert."""

    type: SOSType = Field(default=SOSType.DISTRESS)
    message: Optional[str] = Field(None, max_length=2000)
    contacts: List[EmergencyContact] = Field(default_factory=list)


class CancelSOSRequest(SatcomModel):
    """Request model for cancelling an SOS alert."""

    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        if not v.strip():
            raise ValueError('Cancellation reason is required')
        return v.strip()


class AcknowledgeSOSRequest(SatcomModel):
    actor: str = Field(default="coordination-center", min_length=1)


class RespondingSOSRequest(SatcomModel):
    responder_id: Optional[str] = Field(None, description="Responder moving en route; defaults to all notified")
    eta: Optional[float] = Field(None, ge=0, description="ETA in minutes")


class ResolveSOSRequest(SatcomModel):
    resolution: str = Field(..., min_length=1, max_length=500)


class LocationUpdateRequest(TerminalLocation):
    """New terminal position."""


class SOSPositionRequest(SOSLocation):
    """New position for an SOS alert."""


# Query parameters

class TerminalFilters(BaseModel):
    network: Optional[SatelliteNetwork] = None
    status: Optional[ConnectionStatus] = None


class SatelliteFilters(BaseModel):
    network: Optional[SatelliteNetwork] = None
    status: Optional[SatelliteStatus] = None
    capability: Optional[SatelliteCapability] = None


class GroundStationFilters(BaseModel):
    network: Optional[SatelliteNetwork] = None
    status: Optional[GroundStationStatus] = None


class MessageListQuery(BaseModel):
    limit: int = Field(default=50, ge=1, le=500)


class PassPredictionQuery(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    hours: float = Field(default=24, gt=0, le=168, description="Prediction horizon in hours")


class StatisticsQuery(BaseModel):
    network: Optional[SatelliteNetwork] = None


# Path parameters

class TerminalPath(BaseModel):
    terminal_id: str = Field(..., description="Terminal ID")


class MessagePath(BaseModel):
    message_id: str = Field(..., description="Message ID")


class AlertPath(BaseModel):
    alert_id: str = Field(..., description="SOS alert ID")


class SatellitePath(BaseModel):
    satellite_id: str = Field(..., description="Satellite ID")


class GroundStationPath(BaseModel):
    station_id: str = Field(..., description="Ground station ID")
