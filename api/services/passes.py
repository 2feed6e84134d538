# SPDX-License-Identifier: Apache-2.0

"""
Approximate satellite pass prediction.

This is not orbital mechanics: each LEO satellite is assumed to pass once
per orbital period with randomized duration, elevation and azimuths.
Callers must not treat the result as an authoritative prediction.
"""

import logging
import math
import random
from datetime import timedelta
from typing import List, Optional

from opentelemetry import trace

from domain import link_model
from models.entities import GeoPoint, SatellitePass
from models.enums import OrbitType
from services.registry import SatelliteRegistry
from services.simulation import Clock, SystemClock


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MIN_PASS_MINUTES = 10
MAX_PASS_MINUTES = 15
MIN_ELEVATION = 20
MAX_ELEVATION = 80


class PassPredictor:
    def __init__(
        self,
        satellites: SatelliteRegistry,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None
    ):
        self._satellites = satellites
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()

    def predict(self, location: GeoPoint, hours: float) -> List[SatellitePass]:
        """
        Predict passes of LEO satellites over a location.

        Args:
            location: Observer location (unused by the approximation beyond logging)
            hours: Prediction horizon

        Returns:
            Passes sorted by start time
        """
        with tracer.start_as_current_span("satcom.passes.predict") as span:
            span.set_attribute("passes.hours", hours)
            now = self._clock.now()
            passes: List[SatellitePass] = []

            for satellite in self._satellites.list():
                if satellite.orbit.type != OrbitType.LEO:
                    continue

                period = satellite.orbit.period
                count = math.floor(hours * 60 / period)
                for i in range(count):
                    start = now + timedelta(minutes=i * period)
                    duration = MIN_PASS_MINUTES + self._rng.random() * (MAX_PASS_MINUTES - MIN_PASS_MINUTES)
                    max_elevation = MIN_ELEVATION + self._rng.random() * (MAX_ELEVATION - MIN_ELEVATION)
                    passes.append(SatellitePass(
                        satellite_id=satellite.id,
                        start_time=start,
                        end_time=start + timedelta(minutes=duration),
                        max_elevation=max_elevation,
                        azimuth_start=self._rng.random() * 360,
                        azimuth_end=self._rng.random() * 360,
                        duration=duration * 60,
                        quality=link_model.pass_quality(max_elevation)
                    ))

            passes.sort(key=lambda p: p.start_time)
            span.set_attribute("passes.count", len(passes))
            logger.debug(
                "Predicted satellite passes",
                extra={"extra_fields": {"lat": location.lat, "lon": location.lon, "count": len(passes)}}
            )
            return passes
