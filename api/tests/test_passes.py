# SPDX-License-Identifier: Apache-2.0

"""
Tests for approximate pass prediction.
"""

from datetime import timedelta

import pytest

from models.entities import GeoPoint
from models.enums import OrbitType, PassQuality
from services.passes import PassPredictor
from services.registry import SatelliteRegistry


class TestPassPredictor:
    """Test LEO pass approximation."""

    @pytest.fixture
    def registry(self, clock, satellite_factory):
        registry = SatelliteRegistry(clock)
        registry.register(satellite_factory("sat-leo", period=100))
        registry.register(satellite_factory("sat-geo", orbit_type=OrbitType.GEO, period=1436, altitude=35786))
        return registry

    def test_one_pass_per_period(self, registry, clock, rng):
        """24 hours over a 100 minute orbit gives 14 passes, one period apart."""
        passes = PassPredictor(registry, clock, rng).predict(GeoPoint(lat=0, lon=0), 24)

        assert len(passes) == 14
        assert all(p.satellite_id == "sat-leo" for p in passes)
        assert passes[0].start_time == clock.now()
        assert passes[1].start_time - passes[0].start_time == timedelta(minutes=100)

    def test_scripted_pass_values(self, registry, clock, rng):
        rng.script(0.5, 0.5, 0.25, 0.75)

        first = PassPredictor(registry, clock, rng).predict(GeoPoint(lat=0, lon=0), 2)[0]

        assert first.duration == pytest.approx(750)
        assert first.end_time - first.start_time == timedelta(seconds=750)
        assert first.max_elevation == pytest.approx(50)
        assert first.quality == PassQuality.GOOD
        assert first.azimuth_start == pytest.approx(90)
        assert first.azimuth_end == pytest.approx(270)

    def test_ranges(self, registry, clock):
        passes = PassPredictor(registry, clock).predict(GeoPoint(lat=0, lon=0), 48)

        for satellite_pass in passes:
            assert 600 <= satellite_pass.duration <= 900
            assert 20 <= satellite_pass.max_elevation <= 80
            assert 0 <= satellite_pass.azimuth_start < 360

    def test_short_horizon_has_no_passes(self, registry, clock, rng):
        assert PassPredictor(registry, clock, rng).predict(GeoPoint(lat=0, lon=0), 1) == []

    def test_sorted_across_satellites(self, clock, rng, satellite_factory):
        registry = SatelliteRegistry(clock)
        registry.register(satellite_factory("sat-a", period=90))
        registry.register(satellite_factory("sat-b", period=60))

        passes = PassPredictor(registry, clock, rng).predict(GeoPoint(lat=0, lon=0), 6)

        starts = [p.start_time for p in passes]
        assert starts == sorted(starts)
        assert len(passes) == 4 + 6
