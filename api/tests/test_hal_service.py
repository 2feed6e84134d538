# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL response formatting utilities.
"""

import asyncio

import pytest
from services.hal import (
    API_ROOT, HalLinkBuilder, AffordanceLinkBuilder, HalResponseBuilder, HalFormatter, create_hal_formatter
)
from models.entities import MessageDestination
from models.enums import DestinationType, MessageType
from models.responses import HalLink


BASE_URL = "https://api.example.com"


class TestHalLinkBuilder:
    """Test HAL link builder functionality."""

    def test_build_basic_link(self):
        """Test building a basic HAL link."""
        builder = HalLinkBuilder(BASE_URL)

        link = builder.build_link("/api/satcom/terminals/term-1")

        assert isinstance(link, HalLink)
        assert link.href == "https://api.example.com/api/satcom/terminals/term-1"
        assert link.method == "GET"
        assert link.type is None
        assert link.templated is None

    def test_build_action_link(self):
        """Test building an action link."""
        builder = HalLinkBuilder(BASE_URL)

        link = builder.build_action_link("/api/satcom/sos/sos-1", "acknowledge")

        assert link.href == "https://api.example.com/api/satcom/sos/sos-1/acknowledge"
        assert link.method == "POST"
        assert link.type == "application/json"
        assert link.title == "Acknowledge"

    def test_base_url_normalization(self):
        """Test that base URL is properly normalized."""
        builder = HalLinkBuilder("https://api.example.com/")

        link = builder.build_link("/api/satcom/satellites")

        assert link.href == "https://api.example.com/api/satcom/satellites"


class TestAffordanceLinkBuilder:
    """Test state-dependent affordances."""

    def setup_method(self):
        self.builder = AffordanceLinkBuilder(BASE_URL)

    def test_disconnected_terminal(self):
        links = self.builder.build_terminal_affordances("term-1", "disconnected", sos_enabled=True)

        assert 'connect' in links
        assert 'disconnect' not in links
        assert 'send_message' not in links
        assert links['sos'].method == "POST"
        assert links['location'].method == "PUT"

    def test_connected_terminal(self):
        links = self.builder.build_terminal_affordances("term-1", "connected", sos_enabled=False)

        assert 'connect' not in links
        assert links['disconnect'].href.endswith("/terminals/term-1/disconnect")
        assert links['send_message'].href.endswith("/terminals/term-1/messages")
        assert 'sos' not in links

    def test_connecting_terminal_has_no_link_actions(self):
        links = self.builder.build_terminal_affordances("term-1", "connecting", sos_enabled=True)

        assert 'connect' not in links
        assert 'disconnect' not in links

    @pytest.mark.parametrize("status,action", [
        ("active", "acknowledge"),
        ("acknowledged", "responding"),
        ("responding", "resolve"),
    ])
    def test_open_alert_actions(self, status, action):
        links = self.builder.build_sos_affordances("sos-1", status, "term-1")

        assert action in links
        assert 'cancel' in links
        assert 'escalate' in links
        assert links['terminal'].href.endswith("/terminals/term-1")

    @pytest.mark.parametrize("status", ["resolved", "cancelled"])
    def test_closed_alert_actions(self, status):
        links = self.builder.build_sos_affordances("sos-1", status, "term-1")

        assert set(links) == {'self', 'collection', 'terminal'}


class TestHalResponseBuilder:
    """Test HAL response builder functionality."""

    def test_build_collection_response(self):
        builder = HalResponseBuilder(BASE_URL)

        response = builder.build_collection_response(
            [{"id": "sat-1"}, {"id": "sat-2"}], f"{API_ROOT}/satellites", {"network": "iridium", "status": None}
        )

        assert response['total'] == 2
        assert response['_links']['self']['href'] == "https://api.example.com/api/satcom/satellites?network=iridium"
        assert response['_embedded']['items'][1]['id'] == "sat-2"

    def test_build_error_response(self):
        """Test building an RFC 7807 error response."""
        builder = HalResponseBuilder(BASE_URL)

        response = builder.build_error_response(
            "not-connected", "Terminal Not Connected", 409, "Terminal term-1 is not connected",
            "/api/satcom/terminals/term-1/messages"
        )

        assert response['type'] == "https://api.sos-satcom.org/problems/not-connected"
        assert response['status'] == 409
        assert response['instance'] == "/api/satcom/terminals/term-1/messages"
        assert 'errors' not in response
        assert response['_links']['help']['href'].endswith("/docs/errors#not-connected")

    def test_coverage_error_links(self):
        builder = HalResponseBuilder(BASE_URL)

        response = builder.build_error_response("no-coverage", "No Satellite Coverage", 503, "No coverage", "/x")

        assert response['_links']['satellites']['href'].endswith("/api/satcom/satellites")
        assert response['_links']['passes']['templated'] is True


class TestHalFormatter:
    """Test HAL formatter with satellite entities."""

    def setup_method(self):
        self.formatter = create_hal_formatter(BASE_URL)

    def test_create_hal_formatter(self):
        assert isinstance(self.formatter, HalFormatter)
        assert self.formatter.builder.base_url == BASE_URL

    def test_format_terminal(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        data = self.formatter.format_terminal(terminal)

        assert data['id'] == terminal.id
        assert data['location']['lat'] == 35.0
        assert data['_links']['self']['href'] == f"{BASE_URL}{API_ROOT}/terminals/{terminal.id}"
        assert 'connect' in data['_links']

    def test_format_message_with_binary_content(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())
        destination = MessageDestination(type=DestinationType.SERVER, address="dispatch")

        async def send_binary():
            await satcom_service.connect(terminal.id)
            return await satcom_service.send_message(terminal.id, MessageType.DATA, destination, b"\x00\xff\x10")

        message = asyncio.run(send_binary())
        data = self.formatter.format_message(message)

        assert data['payload']['content'] is None
        assert data['payload']['size'] == 3
        assert data['_links']['collection']['href'].endswith(f"/terminals/{terminal.id}/messages")

    def test_format_statistics_with_network(self, satcom_service):
        statistics = satcom_service.get_network_statistics("iridium")

        data = self.formatter.format_statistics(statistics)

        assert data['_links']['self']['href'].endswith("/api/satcom/statistics?network=iridium")
        assert data['satellites']['total'] == 1

    def test_format_validation_error(self):
        errors = [{"field": "name", "message": "Terminal name cannot be empty", "type": "value_error"}]

        response = self.formatter.format_validation_error("Request validation failed", "/api/satcom/terminals", errors)

        assert response['status'] == 400
        assert response['errors'] == errors
        assert 'schema' in response['_links']
