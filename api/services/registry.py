# SPDX-License-Identifier: Apache-2.0

"""
In-memory registries for satellites and ground stations.

Both registries are shared by every terminal, so lookups and capacity
bookkeeping are serialized by a registry lock.
"""

import logging
import threading
from typing import Dict, List, Optional

from opentelemetry import trace

from domain import link_model
from domain.errors import NotFoundError
from models.entities import GeoPoint, GroundStation, Position, Satellite, SatelliteHealth
from models.enums import GroundStationStatus, SatelliteCapability, SatelliteNetwork, SatelliteStatus
from services.simulation import Clock, SystemClock


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SatelliteRegistry:
    """Catalog of satellites and their coverage."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or SystemClock()
        self._satellites: Dict[str, Satellite] = {}
        self._lock = threading.RLock()

    def register(self, satellite: Satellite) -> Satellite:
        with self._lock:
            self._satellites[satellite.id] = satellite

        logger.info(
            "Satellite registered",
            extra={"extra_fields": {"satellite_id": satellite.id, "network": satellite.network}}
        )
        return satellite

    def get(self, satellite_id: str) -> Satellite:
        with self._lock:
            satellite = self._satellites.get(satellite_id)
        if satellite is None:
            raise NotFoundError("Satellite", satellite_id)
        return satellite

    def list(
        self,
        network: Optional[SatelliteNetwork] = None,
        status: Optional[SatelliteStatus] = None,
        capability: Optional[SatelliteCapability] = None
    ) -> List[Satellite]:
        with self._lock:
            satellites = list(self._satellites.values())

        if network is not None:
            satellites = [s for s in satellites if s.network == SatelliteNetwork(network).value]
        if status is not None:
            satellites = [s for s in satellites if s.status == SatelliteStatus(status).value]
        if capability is not None:
            satellites = [s for s in satellites if s.supports(capability)]
        return satellites

    def find_available(
        self,
        location: GeoPoint,
        network: SatelliteNetwork,
        exclude: Optional[str] = None
    ) -> List[Satellite]:
        """
        Find operational satellites of a network covering a location.

        Args:
            location: Terminal location
            network: Network the terminal is subscribed to
            exclude: Satellite id to leave out (the currently serving one)

        Returns:
            Covering satellites ordered by distance to footprint center, nearest first
        """
        with tracer.start_as_current_span("satcom.satellites.find_available") as span:
            span.set_attribute("satellite.network", SatelliteNetwork(network).value)

            with self._lock:
                candidates = [
                    satellite for satellite in self._satellites.values()
                    if satellite.network == SatelliteNetwork(network).value
                    and satellite.is_operational()
                    and satellite.id != exclude
                    and link_model.footprint_contains(satellite, location)
                ]

            candidates.sort(key=lambda s: link_model.distance_to_footprint_center(location, s))
            span.set_attribute("satellite.candidates", len(candidates))
            return candidates

    def update_position(self, satellite_id: str, position: Position) -> Satellite:
        """Move the sub-satellite point; the footprint follows it."""
        with self._lock:
            satellite = self.get(satellite_id)
            satellite.orbit.current_position = position
            satellite.coverage.footprint.center = GeoPoint(lat=position.lat, lon=position.lon)
            satellite.last_update = self._clock.now()
        return satellite

    def update_health(self, satellite_id: str, health: SatelliteHealth) -> Satellite:
        with self._lock:
            satellite = self.get(satellite_id)
            satellite.health = health
            satellite.last_update = self._clock.now()
        return satellite

    def set_status(self, satellite_id: str, status: SatelliteStatus) -> Satellite:
        """Change operational status; taking a satellite out of service is a flip to offline."""
        with self._lock:
            satellite = self.get(satellite_id)
            previous = satellite.status
            satellite.status = status
            satellite.last_update = self._clock.now()

        logger.info(
            "Satellite status changed",
            extra={
                "extra_fields": {
                    "satellite_id": satellite_id,
                    "previous_status": previous,
                    "status": satellite.status
                }
            }
        )
        return satellite

    def count(self) -> int:
        with self._lock:
            return len(self._satellites)


class GroundStationRegistry:
    """Catalog of ground stations and their connection capacity."""

    def __init__(self):
        self._stations: Dict[str, GroundStation] = {}
        self._lock = threading.RLock()

    def register(self, station: GroundStation) -> GroundStation:
        with self._lock:
            self._stations[station.id] = station

        logger.info(
            "Ground station registered",
            extra={"extra_fields": {"ground_station_id": station.id, "networks": list(station.networks)}}
        )
        return station

    def get(self, station_id: str) -> GroundStation:
        with self._lock:
            station = self._stations.get(station_id)
        if station is None:
            raise NotFoundError("Ground station", station_id)
        return station

    def list(
        self,
        network: Optional[SatelliteNetwork] = None,
        status: Optional[GroundStationStatus] = None
    ) -> List[GroundStation]:
        with self._lock:
            stations = list(self._stations.values())

        if network is not None:
            stations = [g for g in stations if SatelliteNetwork(network).value in g.networks]
        if status is not None:
            stations = [g for g in stations if g.status == GroundStationStatus(status).value]
        return stations

    def find_best_for(self, satellite: Satellite) -> Optional[GroundStation]:
        """Online station serving the satellite's network with the most spare capacity."""
        with self._lock:
            candidates = [g for g in self._stations.values() if g.can_serve(satellite.network)]
            if not candidates:
                return None
            return max(candidates, key=lambda g: g.capacity.available)

    def reserve(self, station_id: str) -> bool:
        """
        Take one connection slot.

        Returns:
            False when the station is full or not online
        """
        with self._lock:
            station = self.get(station_id)
            if station.status != GroundStationStatus.ONLINE or station.capacity.available <= 0:
                return False
            station.capacity.current_connections += 1
            return True

    def reserve_best_for(self, satellite: Satellite) -> Optional[GroundStation]:
        """Select and reserve a station in one step so concurrent connects cannot overbook."""
        with self._lock:
            station = self.find_best_for(satellite)
            if station is None or not self.reserve(station.id):
                return None
            return station

    def release(self, station_id: str) -> None:
        with self._lock:
            station = self._stations.get(station_id)
            if station is None:
                logger.warning(
                    "Release for unknown ground station",
                    extra={"extra_fields": {"ground_station_id": station_id}}
                )
                return
            if station.capacity.current_connections > 0:
                station.capacity.current_connections -= 1

    def set_status(self, station_id: str, status: GroundStationStatus) -> GroundStation:
        with self._lock:
            station = self.get(station_id)
            station.status = status

        logger.info(
            "Ground station status changed",
            extra={"extra_fields": {"ground_station_id": station_id, "status": station.status}}
        )
        return station

    def count(self) -> int:
        with self._lock:
            return len(self._stations)
