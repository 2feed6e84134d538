# SPDX-License-Identifier: Apache-2.0

"""
Error kinds raised by the satellite communications layer.

Each error carries the HTTP status and problem type used when the REST
layer renders it, so the error handler does not need to know the domain.
"""

from typing import Optional


class SatcomError(Exception):
    """Base class for satellite communications errors."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "satcom-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class NotFoundError(SatcomError):
    """Unknown terminal, satellite, ground station, message or alert id."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}", 404, "resource-not-found")
        self.resource = resource
        self.resource_id = resource_id


class NoCoverageError(SatcomError):
    """No satellite footprint contains the terminal location."""

    def __init__(self, terminal_id: str, network: Optional[str] = None):
        detail = f" on network {network}" if network else ""
        super().__init__(
            f"No satellites available in coverage area for terminal {terminal_id}{detail}",
            503,
            "no-coverage"
        )
        self.terminal_id = terminal_id


class NoGroundStationError(SatcomError):
    """No online ground station with spare capacity serves the satellite."""

    def __init__(self, satellite_id: str):
        super().__init__(f"No ground station available for satellite {satellite_id}", 503, "no-ground-station")
        self.satellite_id = satellite_id


class NotConnectedError(SatcomError):
    """Operation requires an active connection."""

    def __init__(self, terminal_id: str, status: str):
        super().__init__(f"Terminal {terminal_id} is not connected (status: {status})", 409, "not-connected")
        self.terminal_id = terminal_id


class SOSNotSupportedError(SatcomError):
    """Terminal lacks SOS capability."""

    def __init__(self, terminal_id: str):
        super().__init__(f"SOS capability not enabled on terminal {terminal_id}", 422, "sos-not-supported")
        self.terminal_id = terminal_id


class InvalidTransitionError(SatcomError):
    """Illegal state machine move."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"{entity} cannot move from '{current}' to '{target}'", 409, "invalid-transition")
        self.entity = entity
        self.current = current
        self.target = target
