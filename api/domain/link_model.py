# SPDX-License-Identifier: Apache-2.0

"""
Link geometry and signal model.

Pure functions used by the connection manager, messaging pipeline and pass
predictor. This is an approximation layer: distances are great-circle,
signal strength is linear in distance from the footprint center, and
latency adds a round trip at the speed of light to the satellite's
processing latency.
"""

import hashlib
import math
import zlib
from typing import Optional, Union

from models.entities import GeoPoint, Satellite, SatelliteBeam
from models.enums import SatelliteNetwork, PassQuality


EARTH_RADIUS_KM = 6371.0
SPEED_OF_LIGHT_KM_S = 299792.0

BASE_SIGNAL_DBM = -70.0
MAX_DEGRADATION_DB = 30.0
MAX_JITTER_DB = 5.0
HANDOFF_THRESHOLD_DBM = -100.0

UPLINK_FREQUENCIES_MHZ = {
    SatelliteNetwork.IRIDIUM.value: 1626.5,
    SatelliteNetwork.GLOBALSTAR.value: 1610.0,
    SatelliteNetwork.INMARSAT.value: 1626.5,
    SatelliteNetwork.THURAYA.value: 1626.5,
    SatelliteNetwork.STARLINK.value: 14000.0,
    SatelliteNetwork.ONEWEB.value: 14000.0,
    SatelliteNetwork.VIASAT.value: 29000.0,
}

DOWNLINK_FREQUENCIES_MHZ = {
    SatelliteNetwork.IRIDIUM.value: 1616.0,
    SatelliteNetwork.GLOBALSTAR.value: 2483.5,
    SatelliteNetwork.INMARSAT.value: 1525.0,
    SatelliteNetwork.THURAYA.value: 1525.0,
    SatelliteNetwork.STARLINK.value: 12000.0,
    SatelliteNetwork.ONEWEB.value: 12000.0,
    SatelliteNetwork.VIASAT.value: 20000.0,
}


def great_circle_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance between two points in km."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lon - a.lon)

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_to_footprint_center(location: GeoPoint, satellite: Satellite) -> float:
    return great_circle_distance(location, satellite.coverage.footprint.center)


def footprint_contains(satellite: Satellite, location: GeoPoint) -> bool:
    """Check if the location lies within the satellite footprint radius."""
    return distance_to_footprint_center(location, satellite) <= satellite.coverage.footprint.radius


def signal_strength(location: GeoPoint, satellite: Satellite, jitter: float = 0.0) -> float:
    """
    Estimate received signal strength in dBm.

    Args:
        location: Terminal location
        satellite: Serving satellite
        jitter: Random fading in dB, subtracted from the estimate

    Returns:
        -70 dBm at the footprint center, degrading linearly by up to 30 dB at the edge
    """
    distance = distance_to_footprint_center(location, satellite)
    degradation = (distance / satellite.coverage.footprint.radius) * MAX_DEGRADATION_DB
    return BASE_SIGNAL_DBM - degradation - jitter


def propagation_delay_ms(altitude_km: float) -> float:
    """Round trip delay to a satellite at the given altitude."""
    return (2 * altitude_km / SPEED_OF_LIGHT_KM_S) * 1000


def link_latency_ms(satellite: Satellite) -> float:
    return satellite.capabilities.latency + propagation_delay_ms(satellite.orbit.altitude)


def uplink_frequency(network: SatelliteNetwork) -> float:
    return UPLINK_FREQUENCIES_MHZ[SatelliteNetwork(network).value]


def downlink_frequency(network: SatelliteNetwork) -> float:
    return DOWNLINK_FREQUENCIES_MHZ[SatelliteNetwork(network).value]


def select_beam(satellite: Satellite, location: GeoPoint) -> Optional[SatelliteBeam]:
    """Pick the least utilized beam covering the location, else the first beam."""
    covering = [
        beam for beam in satellite.coverage.beams
        if great_circle_distance(location, beam.center) <= beam.radius
    ]
    if covering:
        return min(covering, key=lambda beam: beam.utilization)
    return satellite.coverage.beams[0] if satellite.coverage.beams else None


def pass_quality(max_elevation: float) -> PassQuality:
    if max_elevation >= 60:
        return PassQuality.EXCELLENT
    if max_elevation >= 40:
        return PassQuality.GOOD
    if max_elevation >= 20:
        return PassQuality.FAIR
    return PassQuality.POOR


def encode_payload(content: Union[str, bytes], compress: bool = False) -> bytes:
    """Bytes that go on the wire for a message body."""
    data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
    if compress:
        data = zlib.compress(data)
    return data


def payload_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def transmission_seconds(size_bytes: int, bandwidth_kbps: float, latency_ms: float) -> float:
    """Time on air for a payload plus one link latency."""
    return (size_bytes * 8) / (bandwidth_kbps * 1000) + latency_ms / 1000
