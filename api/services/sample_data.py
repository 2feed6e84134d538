# SPDX-License-Identifier: Apache-2.0

"""
Sample constellation used for demos and local development.

Loaded when SATCOM_SEED_SAMPLE_DATA is enabled: two LEO satellites, one
ground gateway and one field terminal already connected through them.
"""

import logging
from datetime import datetime, timezone
from typing import List

from models.entities import (
    Connection, Footprint, GeoPoint, GroundAntenna, GroundStation, GroundStationCapacity, Position,
    Satellite, SatelliteBeam, SatelliteCapabilities, SatelliteCoverage, SatelliteHealth, SatelliteOrbit,
    Terminal, TerminalCapabilities, TerminalLocation, TerminalMetrics, TerminalSubscription
)
from models.enums import (
    ConnectionStatus, GroundStationStatus, OrbitType, SatelliteNetwork, SatelliteStatus, ServiceTier, TerminalType
)
from services.registry import GroundStationRegistry, SatelliteRegistry
from services.simulation import Clock
from services.terminals import TerminalManager


logger = logging.getLogger(__name__)


def sample_satellites(now: datetime) -> List[Satellite]:
    return [
        Satellite(
            id="sat-iridium-001",
            name="Iridium NEXT 101",
            network=SatelliteNetwork.IRIDIUM,
            norad_id="43070",
            status=SatelliteStatus.OPERATIONAL,
            orbit=SatelliteOrbit(
                type=OrbitType.LEO,
                altitude=780,
                inclination=86.4,
                period=100,
                current_position=Position(lat=35.5, lon=-120.3, altitude=778),
                velocity=7.46
            ),
            coverage=SatelliteCoverage(
                footprint=Footprint(center=GeoPoint(lat=35.5, lon=-120.3), radius=4500),
                regions=["North America", "Pacific"],
                min_elevation=8,
                beams=[
                    SatelliteBeam(
                        id="beam-1", type="spot", center=GeoPoint(lat=36, lon=-121),
                        radius=400, capacity=100, utilization=45
                    )
                ]
            ),
            capabilities=SatelliteCapabilities(
                voice_support=True,
                data_support=True,
                broadcast_support=True,
                max_bandwidth=704,
                latency=30,
                encryption=["AES-256"],
                protocols=["SBD", "RUDICS", "Voice"]
            ),
            health=SatelliteHealth(
                battery_level=95, solar_panel_efficiency=92, fuel_remaining=85
            ),
            last_update=now
        ),
        Satellite(
            id="sat-starlink-001",
            name="Starlink-1234",
            network=SatelliteNetwork.STARLINK,
            norad_id="45678",
            status=SatelliteStatus.OPERATIONAL,
            orbit=SatelliteOrbit(
                type=OrbitType.LEO,
                altitude=550,
                inclination=53,
                period=95,
                current_position=Position(lat=42.1, lon=-71.5, altitude=548),
                velocity=7.59
            ),
            coverage=SatelliteCoverage(
                footprint=Footprint(center=GeoPoint(lat=42.1, lon=-71.5), radius=3000),
                regions=["North America", "Atlantic"],
                min_elevation=25,
                beams=[
                    SatelliteBeam(
                        id="beam-sl-1", type="phased_array", center=GeoPoint(lat=42, lon=-72),
                        radius=200, capacity=1000, utilization=60
                    )
                ]
            ),
            capabilities=SatelliteCapabilities(
                voice_support=False,
                data_support=True,
                broadcast_support=False,
                max_bandwidth=150000,
                latency=20,
                encryption=["AES-256", "ChaCha20"],
                protocols=["IP", "TCP", "UDP"]
            ),
            health=SatelliteHealth(
                battery_level=98, solar_panel_efficiency=95, fuel_remaining=90
            ),
            last_update=now
        ),
    ]


def sample_ground_stations(now: datetime) -> List[GroundStation]:
    return [
        GroundStation(
            id="gs-001",
            name="Tempe Gateway",
            location=Position(lat=33.4255, lon=-111.9400, altitude=360),
            status=GroundStationStatus.ONLINE,
            networks=[SatelliteNetwork.IRIDIUM, SatelliteNetwork.GLOBALSTAR],
            antennas=[
                GroundAntenna(id="ant-001", type="dish", diameter=13, bands=["L", "Ka"]),
                GroundAntenna(id="ant-002", type="phased_array", diameter=5, bands=["Ku"]),
            ],
            capacity=GroundStationCapacity(max_connections=5000, current_connections=2340, bandwidth=10000),
            last_contact=now
        ),
    ]


def sample_terminals(now: datetime) -> List[Terminal]:
    return [
        Terminal(
            id="term-001",
            created_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
            name="Field Unit Alpha",
            type=TerminalType.PORTABLE,
            network=SatelliteNetwork.IRIDIUM,
            location=TerminalLocation(lat=37.7749, lon=-122.4194, altitude=10, timestamp=now),
            status=ConnectionStatus.CONNECTED,
            connection=Connection(
                satellite_id="sat-iridium-001",
                ground_station_id="gs-001",
                beam_id="beam-1",
                signal_strength=-85,
                snr=12,
                uplink_frequency=1626.5,
                downlink_frequency=1616.0,
                bandwidth=2.4,
                latency=650,
                packet_loss=0.5,
                established=datetime(2026, 1, 9, 8, 0, tzinfo=timezone.utc),
                last_activity=now
            ),
            capabilities=TerminalCapabilities(
                max_bandwidth=2.4, battery_life=8, weather_resistance="IP67"
            ),
            subscription=TerminalSubscription(
                plan=ServiceTier.EMERGENCY,
                data_allowance=100,
                data_used=23,
                voice_minutes=60,
                voice_used=12,
                valid_until=datetime(2026, 12, 31, tzinfo=timezone.utc),
                auto_renew=True
            ),
            metrics=TerminalMetrics(
                uptime=28800,
                messages_transmitted=156,
                messages_received=89,
                bytes_transmitted=245000,
                bytes_received=178000,
                connection_drops=3,
                average_latency=680,
                average_signal_strength=-87,
                signal_samples=1
            ),
            metadata={"team": "SAR-Alpha", "region": "Bay Area"}
        ),
    ]


def seed_sample_data(
    satellites: SatelliteRegistry,
    ground_stations: GroundStationRegistry,
    terminals: TerminalManager,
    clock: Clock
) -> None:
    """Register the sample constellation; the seeded terminal's slot is already counted at gs-001."""
    now = clock.now()
    for satellite in sample_satellites(now):
        satellites.register(satellite)
    for station in sample_ground_stations(now):
        ground_stations.register(station)
    for terminal in sample_terminals(now):
        terminals.add(terminal)

    logger.info(
        "Sample satellite data loaded",
        extra={
            "extra_fields": {
                "satellites": satellites.count(),
                "ground_stations": ground_stations.count(),
                "terminals": terminals.count()
            }
        }
    )
