# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import asyncio
import os
import random
from collections import deque
from datetime import datetime, timezone

import pytest

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ.setdefault('AMQP_EVENTS_ENABLED', 'false')

from models.entities import (
    Footprint, GeoPoint, GroundStation, GroundStationCapacity, Position, Satellite, SatelliteBeam,
    SatelliteCapabilities, SatelliteCoverage, SatelliteOrbit, TerminalLocation
)
from models.enums import (
    GroundStationStatus, OrbitType, SatelliteNetwork, SatelliteStatus, ServiceTier, TerminalType
)
from models.requests import RegisterTerminalRequest, SubscriptionRequest
from services.satcom import SatcomConfig, SatelliteCommsService
from services.simulation import SequentialIdGenerator, VirtualClock


class FixedRandom(random.Random):
    """
    Random source returning scripted values.

    ``random()`` pops queued values first and falls back to ``default``, so a
    test only scripts the draws it cares about. With the default of 0.0
    every transmission succeeds and every jitter is zero.
    """

    def __init__(self, default: float = 0.0):
        super().__init__(0)
        self.default = default
        self._values = deque()

    def script(self, *values: float) -> None:
        self._values.extend(values)

    def random(self) -> float:
        if self._values:
            return self._values.popleft()
        return self.default


@pytest.fixture
def clock():
    """Virtual clock starting at 2026-01-01 UTC."""
    return VirtualClock(datetime(2026, 1, 1, tzinfo=timezone.utc))


class GatedClock(VirtualClock):
    """Virtual clock whose non-zero sleeps block until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = None
        self.sleeping = None

    def close_gate(self) -> None:
        self.gate = asyncio.Event()
        self.sleeping = asyncio.Event()

    async def sleep(self, seconds: float) -> None:
        if self.gate is not None and seconds > 0:
            self.sleeping.set()
            await self.gate.wait()
        await super().sleep(seconds)


@pytest.fixture
def gated_clock():
    return GatedClock()


@pytest.fixture
def gated_service(gated_clock, ids, rng, satellite_factory, ground_station_factory):
    """Service on a gated clock with instant connects, for holding a send on air."""
    service = SatelliteCommsService(SatcomConfig(connect_delay=0), clock=gated_clock, rng=rng, id_generator=ids)
    service.register_satellite(satellite_factory())
    service.register_ground_station(ground_station_factory())
    return service


@pytest.fixture
def ids():
    return SequentialIdGenerator()


@pytest.fixture
def rng():
    return FixedRandom()


@pytest.fixture
def satellite_factory():
    """Build satellites with a circular footprint centred on the sub-satellite point."""
    def build(
        satellite_id: str = "sat-iri-1",
        lat: float = 35.0,
        lon: float = -120.0,
        radius: float = 1000.0,
        network: SatelliteNetwork = SatelliteNetwork.IRIDIUM,
        status: SatelliteStatus = SatelliteStatus.OPERATIONAL,
        orbit_type: OrbitType = OrbitType.LEO,
        period: float = 100.0,
        altitude: float = 780.0,
        latency: float = 30.0,
        max_bandwidth: float = 704.0,
        beams=None
    ) -> Satellite:
        return Satellite(
            id=satellite_id,
            name=f"Test {satellite_id}",
            network=network,
            status=status,
            orbit=SatelliteOrbit(
                type=orbit_type,
                altitude=altitude,
                period=period,
                current_position=Position(lat=lat, lon=lon, altitude=altitude)
            ),
            coverage=SatelliteCoverage(
                footprint=Footprint(center=GeoPoint(lat=lat, lon=lon), radius=radius),
                beams=beams or []
            ),
            capabilities=SatelliteCapabilities(max_bandwidth=max_bandwidth, latency=latency)
        )
    return build


@pytest.fixture
def ground_station_factory():
    def build(
        station_id: str = "gs-1",
        networks=None,
        max_connections: int = 10,
        current_connections: int = 0,
        status: GroundStationStatus = GroundStationStatus.ONLINE
    ) -> GroundStation:
        return GroundStation(
            id=station_id,
            name=f"Gateway {station_id}",
            location=Position(lat=33.4, lon=-111.9),
            status=status,
            networks=networks if networks is not None else [SatelliteNetwork.IRIDIUM],
            capacity=GroundStationCapacity(
                max_connections=max_connections,
                current_connections=current_connections
            )
        )
    return build


@pytest.fixture
def terminal_request_factory():
    def build(
        name: str = "Field Unit",
        lat: float = 35.0,
        lon: float = -120.0,
        network: SatelliteNetwork = SatelliteNetwork.IRIDIUM,
        data_allowance: float = 100.0,
        plan: ServiceTier = ServiceTier.STANDARD,
        sos_enabled: bool = True,
        max_bandwidth: float = 2.4
    ) -> RegisterTerminalRequest:
        return RegisterTerminalRequest(
            name=name,
            type=TerminalType.PORTABLE,
            network=network,
            location=TerminalLocation(lat=lat, lon=lon),
            capabilities={"sos_enabled": sos_enabled, "max_bandwidth": max_bandwidth},
            subscription=SubscriptionRequest(plan=plan, data_allowance=data_allowance)
        )
    return build


@pytest.fixture
def service_factory(clock, ids, rng, satellite_factory, ground_station_factory):
    """
    Build a satellite service on the virtual clock with one Iridium
    satellite over (35, -120) and one gateway unless told otherwise.
    """
    def build(populate: bool = True, **config) -> SatelliteCommsService:
        service = SatelliteCommsService(SatcomConfig(**config), clock=clock, rng=rng, id_generator=ids)
        if populate:
            service.register_satellite(satellite_factory())
            service.register_ground_station(ground_station_factory())
        return service
    return build


@pytest.fixture
def satcom_service(service_factory):
    return service_factory()


@pytest.fixture
def recorded_events(satcom_service):
    """Events emitted by the default service, in order."""
    events = []
    satcom_service.subscribe(events.append)
    return events
