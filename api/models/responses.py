# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints with HAL support.
"""

from typing import Optional
from pydantic import BaseModel, Field


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class SatelliteCounts(BaseModel):
    total: int = 0
    operational: int = 0


class GroundStationCounts(BaseModel):
    total: int = 0
    online: int = 0


class TerminalCounts(BaseModel):
    total: int = 0
    connected: int = 0


class MessageCounts(BaseModel):
    total: int = 0
    delivered: int = 0
    failed: int = 0
    expired: int = 0


class NetworkStatistics(BaseModel):
    """Aggregate view over the satellite network."""

    network: Optional[str] = Field(None, description="Network filter applied, if any")
    satellites: SatelliteCounts = Field(default_factory=SatelliteCounts)
    ground_stations: GroundStationCounts = Field(default_factory=GroundStationCounts)
    terminals: TerminalCounts = Field(default_factory=TerminalCounts)
    messages: MessageCounts = Field(default_factory=MessageCounts)
    active_sos_alerts: int = 0
