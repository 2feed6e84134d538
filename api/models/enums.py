# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the satellite communications fallback layer.
"""

from enum import Enum


class SatelliteNetwork(str, Enum):
    """Satellite network families."""
    IRIDIUM = "iridium"
    GLOBALSTAR = "globalstar"
    INMARSAT = "inmarsat"
    THURAYA = "thuraya"
    STARLINK = "starlink"
    ONEWEB = "oneweb"
    VIASAT = "viasat"


class SatelliteStatus(str, Enum):
    """Operational status of a satellite."""
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class OrbitType(str, Enum):
    """Orbital class."""
    LEO = "leo"
    MEO = "meo"
    GEO = "geo"
    HEO = "heo"


class SatelliteCapability(str, Enum):
    """Capabilities usable as registry filters."""
    VOICE = "voice"
    DATA = "data"
    BROADCAST = "broadcast"


class GroundStationStatus(str, Enum):
    """Ground station availability."""
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"


class TerminalType(str, Enum):
    """Terminal form factor."""
    FIXED = "fixed"
    PORTABLE = "portable"
    HANDHELD = "handheld"
    VEHICLE_MOUNTED = "vehicle_mounted"
    MARITIME = "maritime"
    AIRCRAFT = "aircraft"


class ConnectionStatus(str, Enum):
    """Terminal connection lifecycle status."""
    SEARCHING = "searching"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    HANDOFF = "handoff"
    DISCONNECTED = "disconnected"


class ServiceTier(str, Enum):
    """Subscription plan and message priority tier."""
    EMERGENCY = "emergency"
    PRIORITY = "priority"
    STANDARD = "standard"
    BEST_EFFORT = "best_effort"


class MessageType(str, Enum):
    """Satellite message types."""
    DATA = "data"
    VOICE = "voice"
    SMS = "sms"
    SOS = "sos"
    POSITION = "position"
    BROADCAST = "broadcast"


class MessageStatus(str, Enum):
    """Message delivery status."""
    QUEUED = "queued"
    TRANSMITTING = "transmitting"
    TRANSMITTED = "transmitted"
    DELIVERED = "delivered"
    FAILED = "failed"
    EXPIRED = "expired"


class DestinationType(str, Enum):
    """Message destination kinds."""
    TERMINAL = "terminal"
    EMAIL = "email"
    PHONE = "phone"
    SERVER = "server"
    BROADCAST = "broadcast"


class TransmissionErrorCode(str, Enum):
    """Error codes recorded on failed or expired messages."""
    QUOTA_EXCEEDED = "QuotaExceeded"
    MAX_RETRIES_EXCEEDED = "MaxRetriesExceeded"
    TERMINAL_DISCONNECTED = "TerminalDisconnected"
    EXPIRED = "Expired"


class SOSType(str, Enum):
    """SOS alert types."""
    DISTRESS = "distress"
    URGENCY = "urgency"
    SAFETY = "safety"
    TEST = "test"


class SOSStatus(str, Enum):
    """SOS alert workflow status."""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESPONDING = "responding"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class ResponderType(str, Enum):
    """Responding agency type."""
    SAR = "sar"
    COASTGUARD = "coastguard"
    POLICE = "police"
    FIRE = "fire"
    MEDICAL = "medical"
    MILITARY = "military"


class ResponderStatus(str, Enum):
    """Responder progress."""
    NOTIFIED = "notified"
    ENROUTE = "enroute"
    ONSCENE = "onscene"
    COMPLETED = "completed"


class PassQuality(str, Enum):
    """Pass quality bucket derived from maximum elevation."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class SatelliteEventType(str, Enum):
    """Event types published on the event bus."""
    CONNECTION_CHANGED = "connection_changed"
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_TRANSMITTED = "message_transmitted"
    SOS_ALERT = "sos_alert"
    SATELLITE_HANDOFF = "satellite_handoff"
    COVERAGE_CHANGED = "coverage_changed"
