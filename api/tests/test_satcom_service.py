# SPDX-License-Identifier: Apache-2.0

"""
Tests for the satellite communications facade.
"""

import asyncio

import pytest

from domain.errors import NotFoundError
from models.entities import MessageDestination, Position, SatelliteHealth
from models.enums import (
    ConnectionStatus, DestinationType, MessageType, SatelliteEventType, SatelliteNetwork, SatelliteStatus
)
from services.satcom import SatcomConfig, SatelliteCommsService, create_satcom_service


class TestNetworkStatistics:
    """Test network-wide counts."""

    def test_statistics(self, satcom_service, terminal_request_factory):
        field_unit = satcom_service.register_terminal(terminal_request_factory(data_allowance=1))
        satcom_service.register_terminal(terminal_request_factory(name="Globalstar Unit", network="globalstar"))
        destination = MessageDestination(type=DestinationType.SERVER, address="dispatch")

        async def traffic():
            await satcom_service.connect(field_unit.id)
            await satcom_service.send_message(field_unit.id, MessageType.DATA, destination, "ok")
            await satcom_service.wait_for_deliveries()
            await satcom_service.send_message(field_unit.id, MessageType.DATA, destination, "x" * (2 * 1024 * 1024))
            await satcom_service.send_sos(field_unit.id)

        asyncio.run(traffic())
        stats = satcom_service.get_network_statistics()

        assert stats.network is None
        assert stats.satellites.total == 1
        assert stats.satellites.operational == 1
        assert stats.ground_stations.online == 1
        assert stats.terminals.total == 2
        assert stats.terminals.connected == 1
        assert stats.messages.total == 3
        assert stats.messages.delivered == 1
        assert stats.messages.failed == 1
        assert stats.active_sos_alerts == 1

    def test_statistics_network_filter(self, satcom_service, terminal_request_factory):
        satcom_service.register_terminal(terminal_request_factory())

        stats = satcom_service.get_network_statistics(SatelliteNetwork.GLOBALSTAR)

        assert stats.network == "globalstar"
        assert stats.satellites.total == 0
        assert stats.terminals.total == 0

    def test_operational_count_follows_status(self, satcom_service):
        asyncio.run(satcom_service.set_satellite_status("sat-iri-1", SatelliteStatus.MAINTENANCE))

        stats = satcom_service.get_network_statistics()

        assert stats.satellites.total == 1
        assert stats.satellites.operational == 0


class TestCoverageEvents:
    def test_register_satellite_emits_coverage_changed(self, satcom_service, satellite_factory, recorded_events):
        satcom_service.register_satellite(satellite_factory("sat-iri-2", lat=10, lon=10))

        assert recorded_events[-1].type == SatelliteEventType.COVERAGE_CHANGED
        assert recorded_events[-1].data == {"satellite_id": "sat-iri-2", "reason": "registered"}

    def test_update_position_moves_footprint(self, satcom_service, recorded_events):
        satellite = satcom_service.update_satellite_position("sat-iri-1", Position(lat=40, lon=-100, altitude=780))

        assert satellite.coverage.footprint.center.lat == 40
        assert satellite.orbit.current_position.lon == -100
        assert recorded_events[-1].data["reason"] == "moved"

    def test_update_health(self, satcom_service, clock):
        report = SatelliteHealth(battery_level=41.5, transponder_status="degraded")

        satellite = satcom_service.update_satellite_health("sat-iri-1", report)

        assert satellite.health.battery_level == 41.5
        assert satellite.health.is_nominal() is False
        assert satellite.last_update == clock.now()
        assert satellite.status == SatelliteStatus.OPERATIONAL
        assert satcom_service.get_satellite("sat-iri-1").health.transponder_status == "degraded"

    def test_update_health_unknown_satellite(self, satcom_service):
        with pytest.raises(NotFoundError):
            satcom_service.update_satellite_health("sat-missing", SatelliteHealth())

    def test_unsubscribe(self, satcom_service, satellite_factory):
        received = []
        subscription_id = satcom_service.subscribe(received.append)

        assert satcom_service.unsubscribe(subscription_id)
        satcom_service.register_satellite(satellite_factory("sat-iri-2"))

        assert received == []


class TestServiceFactory:
    def test_sample_data(self, clock, ids, rng):
        service = SatelliteCommsService(SatcomConfig(seed_sample_data=True), clock=clock, rng=rng, id_generator=ids)

        terminal = service.get_terminal("term-001")
        assert terminal.status == ConnectionStatus.CONNECTED
        assert terminal.connection.satellite_id == "sat-iridium-001"
        assert service.get_satellite("sat-starlink-001").network == "starlink"
        assert service.get_ground_station("gs-001").capacity.current_connections == 2340

    def test_create_from_environment(self, monkeypatch):
        monkeypatch.setenv("SATCOM_SUCCESS_PROBABILITY", "0.5")
        monkeypatch.setenv("SATCOM_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("SATCOM_TIME_SCALE", "0")
        monkeypatch.setenv("SATCOM_MAX_SIMULATED_DELAY_SECONDS", "0.1")
        monkeypatch.setenv("SATCOM_RANDOM_SEED", "7")
        monkeypatch.setenv("SATCOM_SEED_SAMPLE_DATA", "true")

        service = create_satcom_service()

        assert service.config.success_probability == 0.5
        assert service.config.max_attempts == 5
        assert service.config.random_seed == 7
        assert service.clock.time_scale == 0
        assert service.clock.max_delay == 0.1
        assert service.get_terminal("term-001").name == "Field Unit Alpha"

    def test_defaults_from_environment(self, monkeypatch):
        for name in ("SATCOM_SUCCESS_PROBABILITY", "SATCOM_SEED_SAMPLE_DATA", "SATCOM_MAX_SIMULATED_DELAY_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        service = create_satcom_service()

        assert service.config.success_probability == 0.95
        assert service.clock.max_delay is None
        assert service.list_terminals() == []
