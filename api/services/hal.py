# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses with state-dependent affordance links.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from pydantic import BaseModel

from models.enums import ConnectionStatus, SOSStatus
from models.responses import HalLink


API_ROOT = "/api/satcom"
PROBLEM_BASE_URL = "https://api.sos-satcom.org/problems/"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_collection_link(self, collection_path: str) -> HalLink:
        """Build link to parent collection."""
        return self.build_link(collection_path, title="Collection")

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        action_path = f"{resource_path}/{action}"
        return self.build_link(
            action_path,
            method=method,
            content_type="application/json",
            title=title or action.title()
        )


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on resource state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_terminal_affordances(
        self,
        terminal_id: str,
        status: str,
        sos_enabled: bool
    ) -> Dict[str, HalLink]:
        """Links for a terminal; connect and disconnect follow the connection status."""
        links = {}
        base_path = f"{API_ROOT}/terminals/{terminal_id}"

        links['self'] = self.link_builder.build_self_link(base_path)
        links['collection'] = self.link_builder.build_collection_link(f"{API_ROOT}/terminals")
        links['messages'] = self.link_builder.build_link(f"{base_path}/messages", title="Terminal messages")
        links['location'] = self.link_builder.build_action_link(
            base_path, "location", method="PUT", title="Update location"
        )

        if status == ConnectionStatus.DISCONNECTED:
            links['connect'] = self.link_builder.build_action_link(base_path, "connect", title="Connect terminal")
        if status == ConnectionStatus.CONNECTED:
            links['disconnect'] = self.link_builder.build_action_link(
                base_path, "disconnect", title="Disconnect terminal"
            )
            links['send_message'] = self.link_builder.build_action_link(
                base_path, "messages", title="Send message"
            )
        if sos_enabled:
            links['sos'] = self.link_builder.build_action_link(base_path, "sos", title="Raise SOS")

        return links

    def build_message_affordances(self, message_id: str, terminal_id: str) -> Dict[str, HalLink]:
        return {
            'self': self.link_builder.build_self_link(f"{API_ROOT}/messages/{message_id}"),
            'collection': self.link_builder.build_collection_link(f"{API_ROOT}/terminals/{terminal_id}/messages"),
            'terminal': self.link_builder.build_link(f"{API_ROOT}/terminals/{terminal_id}", title="Terminal"),
        }

    def build_sos_affordances(self, alert_id: str, status: str, terminal_id: str) -> Dict[str, HalLink]:
        """Links for an SOS alert; workflow actions follow the alert status."""
        links = {}
        base_path = f"{API_ROOT}/sos/{alert_id}"

        links['self'] = self.link_builder.build_self_link(base_path)
        links['collection'] = self.link_builder.build_collection_link(f"{API_ROOT}/sos")
        links['terminal'] = self.link_builder.build_link(f"{API_ROOT}/terminals/{terminal_id}", title="Terminal")

        if status == SOSStatus.ACTIVE:
            links['acknowledge'] = self.link_builder.build_action_link(
                base_path, "acknowledge", title="Acknowledge SOS"
            )
        elif status == SOSStatus.ACKNOWLEDGED:
            links['responding'] = self.link_builder.build_action_link(
                base_path, "responding", title="Responders en route"
            )
        elif status == SOSStatus.RESPONDING:
            links['resolve'] = self.link_builder.build_action_link(base_path, "resolve", title="Resolve SOS")

        if status not in (SOSStatus.RESOLVED, SOSStatus.CANCELLED):
            links['cancel'] = self.link_builder.build_action_link(base_path, "cancel", title="Cancel SOS")
            links['escalate'] = self.link_builder.build_action_link(base_path, "escalate", title="Escalate SOS")
            links['position'] = self.link_builder.build_action_link(
                base_path, "position", method="PUT", title="Update SOS position"
            )

        return links

    def build_satellite_links(self, satellite_id: str) -> Dict[str, HalLink]:
        return {
            'self': self.link_builder.build_self_link(f"{API_ROOT}/satellites/{satellite_id}"),
            'collection': self.link_builder.build_collection_link(f"{API_ROOT}/satellites"),
        }

    def build_ground_station_links(self, station_id: str) -> Dict[str, HalLink]:
        return {
            'self': self.link_builder.build_self_link(f"{API_ROOT}/ground-stations/{station_id}"),
            'collection': self.link_builder.build_collection_link(f"{API_ROOT}/ground-stations"),
        }


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach links to a resource body."""
        response = dict(data)
        response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response."""
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        path = f"{collection_path}?{urlencode(params)}" if params else collection_path

        return {
            'total': len(items),
            '_links': {'self': self.link_builder.build_link(path, title="Self").model_dump(exclude_none=True)},
            '_embedded': {
                'items': items
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URL}{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link("/openapi/openapi.json", title="API schema")
        elif error_type in ("no-coverage", "no-ground-station"):
            links['satellites'] = self.link_builder.build_link(f"{API_ROOT}/satellites", title="Satellites")
            links['passes'] = self.link_builder.build_link(
                f"{API_ROOT}/passes{{?lat,lon,hours}}", title="Predict passes", templated=True
            )

        error_response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return error_response


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)
        self.affordances = self.builder.affordance_builder

    def format_terminal(self, terminal) -> Dict[str, Any]:
        links = self.affordances.build_terminal_affordances(
            terminal.id, terminal.status, terminal.capabilities.sos_enabled
        )
        return self.builder.build_resource_response(_dump(terminal), links)

    def format_terminal_collection(self, terminals, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [self.format_terminal(t) for t in terminals], f"{API_ROOT}/terminals", filters
        )

    def format_connection(self, terminal_id: str, connection) -> Dict[str, Any]:
        links = {
            'self': self.builder.link_builder.build_link(f"{API_ROOT}/terminals/{terminal_id}", title="Terminal"),
            'satellite': self.builder.link_builder.build_link(
                f"{API_ROOT}/satellites/{connection.satellite_id}", title="Serving satellite"
            ),
            'ground_station': self.builder.link_builder.build_link(
                f"{API_ROOT}/ground-stations/{connection.ground_station_id}", title="Ground station"
            ),
        }
        return self.builder.build_resource_response(_dump(connection), links)

    def format_message(self, message) -> Dict[str, Any]:
        if isinstance(message.payload.content, bytes):
            # Binary bodies are not echoed back
            data = message.model_dump(mode="json", exclude={'payload': {'content'}})
            data['payload']['content'] = None
        else:
            data = _dump(message)
        links = self.affordances.build_message_affordances(message.id, message.terminal_id)
        return self.builder.build_resource_response(data, links)

    def format_message_collection(self, terminal_id: str, messages, limit: int) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [self.format_message(m) for m in messages],
            f"{API_ROOT}/terminals/{terminal_id}/messages",
            {'limit': limit}
        )

    def format_sos_alert(self, alert) -> Dict[str, Any]:
        links = self.affordances.build_sos_affordances(alert.id, alert.status, alert.terminal_id)
        return self.builder.build_resource_response(_dump(alert), links)

    def format_sos_collection(self, alerts) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [self.format_sos_alert(a) for a in alerts], f"{API_ROOT}/sos"
        )

    def format_satellite(self, satellite) -> Dict[str, Any]:
        return self.builder.build_resource_response(
            _dump(satellite), self.affordances.build_satellite_links(satellite.id)
        )

    def format_satellite_collection(self, satellites, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [self.format_satellite(s) for s in satellites], f"{API_ROOT}/satellites", filters
        )

    def format_ground_station(self, station) -> Dict[str, Any]:
        return self.builder.build_resource_response(
            _dump(station), self.affordances.build_ground_station_links(station.id)
        )

    def format_ground_station_collection(self, stations, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [self.format_ground_station(g) for g in stations], f"{API_ROOT}/ground-stations", filters
        )

    def format_passes(self, passes, query: Dict[str, Any]) -> Dict[str, Any]:
        items = []
        for satellite_pass in passes:
            item = _dump(satellite_pass)
            item['_links'] = {
                'satellite': self.builder.link_builder.build_link(
                    f"{API_ROOT}/satellites/{satellite_pass.satellite_id}", title="Satellite"
                ).model_dump(exclude_none=True)
            }
            items.append(item)
        return self.builder.build_collection_response(items, f"{API_ROOT}/passes", query)

    def format_statistics(self, statistics) -> Dict[str, Any]:
        path = f"{API_ROOT}/statistics"
        if statistics.network:
            path = f"{path}?{urlencode({'network': statistics.network})}"
        links = {
            'self': self.builder.link_builder.build_self_link(path),
            'satellites': self.builder.link_builder.build_link(f"{API_ROOT}/satellites", title="Satellites"),
            'terminals': self.builder.link_builder.build_link(f"{API_ROOT}/terminals", title="Terminals"),
            'sos': self.builder.link_builder.build_link(f"{API_ROOT}/sos", title="Active SOS alerts"),
        }
        return self.builder.build_resource_response(_dump(statistics), links)

    def format_problem(self, error_type: str, title: str, status: int, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(error_type, title, status, detail, instance)

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            400,
            detail,
            instance,
            validation_errors
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a not found error response."""
        return self.builder.build_error_response(
            "resource-not-found",
            "Resource Not Found",
            404,
            detail,
            instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            instance
        )


# Convenience function for creating HAL formatter
def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
