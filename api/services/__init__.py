# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Satellite communications services and external integrations.
"""

from .satcom import SatelliteCommsService, SatcomConfig, create_satcom_service
from .amqp import AMQPService, AMQPConfig, PublishResult, SatelliteEventForwarder, create_amqp_service

__all__ = [
    "SatelliteCommsService",
    "SatcomConfig",
    "create_satcom_service",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "SatelliteEventForwarder",
    "create_amqp_service"
]
