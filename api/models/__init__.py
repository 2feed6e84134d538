# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the satellite communications layer.
"""

# Base models
from .base import SatcomModel, BaseEntity, generate_object_id, utc_now

# Enumerations
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

# Core entities
from .entities import (
    GeoPoint,
    Position,
    TerminalLocation,
    SOSLocation,
    Satellite,
    SatelliteOrbit,
    SatelliteCoverage,
    SatelliteBeam,
    SatelliteCapabilities,
    SatelliteHealth,
    Footprint,
    GroundStation,
    GroundAntenna,
    GroundStationCapacity,
    Terminal,
    TerminalCapabilities,
    TerminalSubscription,
    TerminalMetrics,
    Connection,
    SatelliteMessage,
    MessagePayload,
    MessageDestination,
    MessageRouting,
    TransmissionInfo,
    SOSAlert,
    EmergencyContact,
    ResponderInfo,
    SOSEvent,
    SatellitePass,
    SatelliteEvent
)

# Request models
from .requests import (
    SubscriptionRequest,
    RegisterTerminalRequest,
    SendMessageRequest,
    InboundMessageRequest,
    SendSOSRequest,
    CancelSOSRequest,
    AcknowledgeSOSRequest,
    RespondingSOSRequest,
    ResolveSOSRequest,
    LocationUpdateRequest,
    SOSPositionRequest
)

# Response models
from .responses import HalLink, NetworkStatistics
