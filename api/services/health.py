# SPDX-License-Identifier: Apache-2.0

"""
Health Check Service

Provides health monitoring for the satellite communications service, its
event loop runtime, the optional AMQP event forwarder and system metrics.
"""

import os
import time
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

import psutil
from opentelemetry import trace

from services.amqp import AMQPService
from services.runtime import AsyncRuntime
from services.satcom import SatelliteCommsService

tracer = trace.get_tracer(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(
        self,
        satcom_service: SatelliteCommsService,
        runtime: AsyncRuntime,
        amqp_service: Optional[AMQPService] = None
    ):
        self.satcom_service = satcom_service
        self.runtime = runtime
        self.amqp_service = amqp_service
        self.service_version = "1.0.0"

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including all dependencies and metrics."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            dependencies = {
                "satellite_network": self._check_satellite_network(),
                "runtime": self._check_runtime()
            }
            if self.amqp_service is not None:
                dependencies["amqp"] = self._check_amqp_health()

            overall_status = self._determine_overall_status(
                [dependency["status"] for dependency in dependencies.values()]
            )
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            health_data = {
                "status": overall_status,
                "service": "sos-satcom-api",
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": _timestamp(),
                "response_time_ms": response_time_ms,
                "dependencies": dependencies,
                "system_metrics": self._get_system_metrics(),
                "feature_flags": self._get_feature_flags()
            }

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms
            })

            return health_data

    def _check_satellite_network(self) -> Dict[str, Any]:
        """Healthy while at least one satellite and one ground station can carry traffic."""
        with tracer.start_as_current_span("health.satellite_network_check") as span:
            statistics = self.satcom_service.get_network_statistics()
            satellites = statistics.satellites
            stations = statistics.ground_stations

            if satellites.operational > 0 and stations.online > 0:
                status = "healthy"
            elif satellites.total == 0 and stations.total == 0:
                # Nothing registered yet
                status = "degraded"
            else:
                status = "unhealthy" if satellites.operational == 0 else "degraded"

            span.set_attribute("satellite_network.status", status)
            return {
                "status": status,
                "operational_satellites": satellites.operational,
                "online_ground_stations": stations.online,
                "connected_terminals": statistics.terminals.connected,
                "active_sos_alerts": statistics.active_sos_alerts,
                "last_check": _timestamp()
            }

    def _check_runtime(self) -> Dict[str, Any]:
        status = "healthy" if self.runtime.running else "unhealthy"
        return {"status": status, "thread": self.runtime.name, "last_check": _timestamp()}

    def _check_amqp_health(self) -> Dict[str, Any]:
        """Check AMQP broker connectivity."""
        with tracer.start_as_current_span("health.amqp_check") as span:
            start_time = time.time()
            is_healthy = self.amqp_service.health_check()
            response_time = round((time.time() - start_time) * 1000, 2)

            if not is_healthy:
                span.set_attribute("amqp.status", "unhealthy")
                return {
                    "status": "unhealthy",
                    "error": "AMQP health check failed",
                    "last_check": _timestamp()
                }

            span.set_attributes({
                "amqp.status": "healthy",
                "amqp.response_time_ms": response_time
            })
            return {
                "status": "healthy",
                "response_time_ms": response_time,
                "exchange": self.amqp_service.config.exchange,
                "last_check": _timestamp()
            }

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Get basic system performance metrics."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)

            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')

            return {
                "cpu_percent": cpu_percent,
                "memory": {
                    "used_mb": round(memory.used / 1024 / 1024, 2),
                    "total_mb": round(memory.total / 1024 / 1024, 2),
                    "percent": memory.percent
                },
                "disk": {
                    "used_gb": round(disk.used / 1024 / 1024 / 1024, 2),
                    "total_gb": round(disk.total / 1024 / 1024 / 1024, 2),
                    "percent": round((disk.used / disk.total) * 100, 2)
                },
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except (OSError, psutil.Error) as e:
            return {
                "error": f"Failed to collect system metrics: {str(e)}"
            }

    def _get_feature_flags(self) -> Dict[str, bool]:
        """Get current feature flag status."""
        return {
            "docs_enabled": os.getenv('DOCS_ENABLED', 'true').lower() == 'true',
            "otel_enabled": os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
            "amqp_events_enabled": self.amqp_service is not None
        }

    def _determine_overall_status(self, dependency_statuses: List[str]) -> str:
        """Determine overall system status based on dependency health."""
        if all(status == "healthy" for status in dependency_statuses):
            return "healthy"
        elif any(status == "healthy" for status in dependency_statuses):
            return "degraded"
        else:
            return "unhealthy"
