# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for middleware functionality.
"""

import pytest
from flask import Flask
from pydantic import BaseModel, Field
from werkzeug.exceptions import MethodNotAllowed, ServiceUnavailable

from domain.errors import (
    InvalidTransitionError, NoCoverageError, NoGroundStationError, NotConnectedError, NotFoundError,
    SatcomError, SOSNotSupportedError
)
from middleware.error_handler import ErrorHandlerMiddleware


class _Body(BaseModel):
    name: str = Field(..., min_length=1)
    count: int


class TestErrorHandlerMiddleware:
    """Test error handler middleware functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.app = Flask(__name__)
        self.app.config['ENVIRONMENT'] = 'test'
        self.error_handler = ErrorHandlerMiddleware(self.app, "https://api.example.com")

        @self.app.route('/raise/<kind>')
        def raise_error(kind):
            errors = {
                "not-found": NotFoundError("Terminal", "term-9"),
                "no-coverage": NoCoverageError("term-9", "iridium"),
                "no-ground-station": NoGroundStationError("sat-1"),
                "not-connected": NotConnectedError("term-9", "disconnected"),
                "sos-not-supported": SOSNotSupportedError("term-9"),
                "invalid-transition": InvalidTransitionError("SOS alert", "active", "resolved"),
                "generic": SatcomError("Link budget exceeded"),
            }
            raise errors[kind]

        @self.app.route('/validate', methods=['POST'])
        def validate():
            _Body.model_validate({"name": "", "count": "many"})
            return "unreachable"

        @self.app.route('/crash')
        def crash():
            raise RuntimeError("beam table corrupted")

        @self.app.route('/unavailable')
        def unavailable():
            raise ServiceUnavailable("Maintenance window")

        self.client = self.app.test_client()

    @pytest.mark.parametrize("kind,status,title", [
        ("not-found", 404, "Resource Not Found"),
        ("no-coverage", 503, "No Satellite Coverage"),
        ("no-ground-station", 503, "No Ground Station Available"),
        ("not-connected", 409, "Terminal Not Connected"),
        ("sos-not-supported", 422, "SOS Not Supported"),
        ("invalid-transition", 409, "Invalid State Transition"),
    ])
    def test_domain_errors(self, kind, status, title):
        """Each error kind maps to its status and problem type."""
        response = self.client.get(f'/raise/{kind}')

        assert response.status_code == status
        data = response.get_json()
        assert data['type'] == f"https://api.sos-satcom.org/problems/{kind}"
        assert data['title'] == title
        assert data['status'] == status
        assert data['instance'] == f'/raise/{kind}'

    def test_unknown_domain_error_title(self):
        response = self.client.get('/raise/generic')

        assert response.status_code == 500
        data = response.get_json()
        assert data['title'] == "Satellite Communications Error"
        assert data['detail'] == "Link budget exceeded"

    def test_validation_error(self):
        response = self.client.post('/validate')

        assert response.status_code == 400
        data = response.get_json()
        fields = {error['field'] for error in data['errors']}
        assert fields == {"name", "count"}
        assert data['type'].endswith("validation-error")

    def test_unexpected_error_detail_outside_production(self):
        response = self.client.get('/crash')

        assert response.status_code == 500
        assert response.get_json()['detail'] == "RuntimeError: beam table corrupted"

    def test_unexpected_error_hidden_in_production(self):
        self.app.config['ENVIRONMENT'] = 'production'

        response = self.client.get('/crash')

        assert response.get_json()['detail'] == "An unexpected error occurred"

    def test_http_not_found(self):
        response = self.client.get('/missing')

        assert response.status_code == 404
        assert response.get_json()['type'].endswith("resource-not-found")

    def test_method_not_allowed(self):
        response = self.client.get('/validate')

        assert response.status_code == 405
        assert response.get_json()['type'].endswith("method-not-allowed")

    def test_http_server_error(self):
        response = self.client.get('/unavailable')

        assert response.status_code == 503
        assert response.get_json()['detail'] == "Maintenance window"

    def test_handle_client_error_directly(self):
        with self.app.test_request_context('/test', method='DELETE'):
            result, status_code = self.error_handler.handle_client_error(MethodNotAllowed())

        assert status_code == 405
