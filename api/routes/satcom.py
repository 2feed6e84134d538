# SPDX-License-Identifier: Apache-2.0

"""
Satellite communications endpoints.

Terminals register, connect and send traffic through the fallback layer;
SOS alerts move through their response workflow; satellites, ground
stations, pass predictions and statistics are read-only views. The
services live on the application's event loop runtime: handlers submit
coroutines, and run synchronous operations through it too, so no request
thread touches terminal, message or alert state directly.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.entities import GeoPoint
from models.requests import (
    RegisterTerminalRequest, SendMessageRequest, InboundMessageRequest,
    SendSOSRequest, CancelSOSRequest, AcknowledgeSOSRequest,
    RespondingSOSRequest, ResolveSOSRequest, LocationUpdateRequest,
    SOSPositionRequest, TerminalFilters, SatelliteFilters,
    GroundStationFilters, MessageListQuery, PassPredictionQuery,
    StatisticsQuery, TerminalPath, MessagePath, AlertPath, SatellitePath,
    GroundStationPath
)
from services.hal import API_ROOT

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

satcom_tag = Tag(name="Satellite Communications", description="Satellite fallback connectivity and SOS")
satcom_bp = APIBlueprint(
    'satcom',
    __name__,
    url_prefix=API_ROOT,
    abp_tags=[satcom_tag]
)


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _query_args() -> dict:
    return request.args.to_dict()


def _service():
    return current_app.satcom_service


def _run(coro):
    return current_app.satcom_runtime.run(coro)


def _call(func, *args, **kwargs):
    """Run a synchronous service operation on the runtime loop."""
    return current_app.satcom_runtime.call(func, *args, **kwargs)


def _formatter():
    return current_app.hal_formatter


# Terminals

@satcom_bp.post('/terminals')
def register_terminal():
    """Register a satellite terminal."""
    with tracer.start_as_current_span("satcom.api.register_terminal") as span:
        body = RegisterTerminalRequest.model_validate(_json_body())
        terminal = _call(_service().register_terminal, body)
        span.set_attribute("terminal.id", terminal.id)
        return jsonify(_formatter().format_terminal(terminal)), 201


@satcom_bp.get('/terminals')
def list_terminals():
    """List terminals, optionally filtered by network and connection status."""
    with tracer.start_as_current_span("satcom.api.list_terminals") as span:
        filters = TerminalFilters.model_validate(_query_args())
        terminals = _call(_service().list_terminals, network=filters.network, status=filters.status)
        span.set_attribute("terminals.count", len(terminals))
        return jsonify(_formatter().format_terminal_collection(
            terminals, filters.model_dump(mode='json', exclude_none=True)
        ))


@satcom_bp.get('/terminals/<terminal_id>')
def get_terminal(path: TerminalPath):
    with tracer.start_as_current_span("satcom.api.get_terminal", attributes={"terminal.id": path.terminal_id}):
        terminal = _call(_service().get_terminal, path.terminal_id)
        return jsonify(_formatter().format_terminal(terminal))


@satcom_bp.post('/terminals/<terminal_id>/connect')
def connect_terminal(path: TerminalPath):
    """
    Establish a satellite link for the terminal.

    Returns the existing connection when the terminal is already connected.
    Answers 503 when no satellite covers the terminal or no ground station
    has capacity.
    """
    with tracer.start_as_current_span("satcom.api.connect", attributes={"terminal.id": path.terminal_id}) as span:
        connection = _run(_service().connect(path.terminal_id))
        span.set_attributes({
            "satellite.id": connection.satellite_id,
            "ground_station.id": connection.ground_station_id
        })
        return jsonify(_formatter().format_connection(path.terminal_id, connection))


@satcom_bp.post('/terminals/<terminal_id>/disconnect')
def disconnect_terminal(path: TerminalPath):
    with tracer.start_as_current_span("satcom.api.disconnect", attributes={"terminal.id": path.terminal_id}):
        _run(_service().disconnect(path.terminal_id))
        terminal = _call(_service().get_terminal, path.terminal_id)
        return jsonify(_formatter().format_terminal(terminal))


@satcom_bp.put('/terminals/<terminal_id>/location')
def update_terminal_location(path: TerminalPath):
    """Move a terminal; a connected terminal may be handed off to another satellite."""
    with tracer.start_as_current_span("satcom.api.update_location", attributes={"terminal.id": path.terminal_id}):
        location = LocationUpdateRequest.model_validate(_json_body())
        terminal = _run(_service().update_terminal_location(path.terminal_id, location))
        return jsonify(_formatter().format_terminal(terminal))


# Messages

@satcom_bp.post('/terminals/<terminal_id>/messages')
def send_message(path: TerminalPath):
    """
    Send a message over the terminal's satellite link.

    The response carries the message once transmission settles; delivery
    confirmation follows asynchronously. A message refused for quota or
    exhausted retries is returned with status ``failed`` and its error.
    """
    with tracer.start_as_current_span("satcom.api.send_message", attributes={"terminal.id": path.terminal_id}) as span:
        body = SendMessageRequest.model_validate(_json_body())
        message = _run(_service().send_message(
            path.terminal_id,
            body.type,
            body.destination,
            body.content,
            priority=body.priority,
            compress=body.compress,
            encrypt=body.encrypt
        ))
        span.set_attributes({"message.id": message.id, "message.status": message.status})
        return jsonify(_formatter().format_message(message)), 202


@satcom_bp.get('/terminals/<terminal_id>/messages')
def list_terminal_messages(path: TerminalPath):
    with tracer.start_as_current_span("satcom.api.list_messages", attributes={"terminal.id": path.terminal_id}):
        query = MessageListQuery.model_validate(_query_args())
        messages = _call(_service().get_messages_by_terminal, path.terminal_id, limit=query.limit)
        return jsonify(_formatter().format_message_collection(path.terminal_id, messages, query.limit))


@satcom_bp.post('/terminals/<terminal_id>/inbound')
def receive_inbound_message(path: TerminalPath):
    """Record a message received by the terminal from the network."""
    with tracer.start_as_current_span("satcom.api.inbound_message", attributes={"terminal.id": path.terminal_id}):
        body = InboundMessageRequest.model_validate(_json_body())
        event = _call(_service().record_inbound_message, path.terminal_id, body.content, body.source)
        formatter = _formatter()
        links = {
            'terminal': formatter.builder.link_builder.build_link(
                f"{API_ROOT}/terminals/{path.terminal_id}", title="Terminal"
            )
        }
        return jsonify(formatter.builder.build_resource_response(event.model_dump(mode='json'), links)), 202


@satcom_bp.get('/messages/<message_id>')
def get_message(path: MessagePath):
    with tracer.start_as_current_span("satcom.api.get_message", attributes={"message.id": path.message_id}):
        message = _call(_service().get_message, path.message_id)
        return jsonify(_formatter().format_message(message))


# SOS

@satcom_bp.post('/terminals/<terminal_id>/sos')
def send_sos(path: TerminalPath):
    """
    Raise an SOS alert from a terminal.

    The terminal is connected first when needed. The alert is created even
    when transmission fails; its timeline records the outcome.
    """
    with tracer.start_as_current_span("satcom.api.send_sos", attributes={"terminal.id": path.terminal_id}) as span:
        body = SendSOSRequest.model_validate(_json_body())
        alert = _run(_service().send_sos(
            path.terminal_id,
            sos_type=body.type,
            message=body.message,
            contacts=body.contacts
        ))
        span.set_attribute("sos.id", alert.id)
        logger.info(
            "SOS raised via API",
            extra={"extra_fields": {"alert_id": alert.id, "terminal_id": path.terminal_id}}
        )
        return jsonify(_formatter().format_sos_alert(alert)), 201


@satcom_bp.get('/sos')
def list_active_sos():
    with tracer.start_as_current_span("satcom.api.list_sos"):
        alerts = _call(_service().get_active_sos_alerts)
        return jsonify(_formatter().format_sos_collection(alerts))


@satcom_bp.get('/sos/<alert_id>')
def get_sos(path: AlertPath):
    with tracer.start_as_current_span("satcom.api.get_sos", attributes={"sos.id": path.alert_id}):
        alert = _call(_service().get_sos_alert, path.alert_id)
        return jsonify(_formatter().format_sos_alert(alert))


@satcom_bp.post('/sos/<alert_id>/cancel')
def cancel_sos(path: AlertPath):
    with tracer.start_as_current_span("satcom.api.cancel_sos", attributes={"sos.id": path.alert_id}):
        body = CancelSOSRequest.model_validate(_json_body())
        alert = _call(_service().cancel_sos, path.alert_id, body.reason)
        return jsonify(_formatter().format_sos_alert(alert))


@satcom_bp.put('/sos/<alert_id>/position')
def update_sos_position(path: AlertPath):
    with tracer.start_as_current_span("satcom.api.sos_position", attributes={"sos.id": path.alert_id}):
        location = SOSPositionRequest.model_validate(_json_body())
        alert = _call(_service().update_sos_position, path.alert_id, location)
        return jsonify(_formatter().format_sos_alert(alert))


@satcom_bp.post('/sos/<alert_id>/acknowledge')
def acknowledge_sos(path: AlertPath):
    with tracer.start_as_current_span("satcom.api.acknowledge_sos", attributes={"sos.id": path.alert_id}):
        body = AcknowledgeSOSRequest.model_validate(_json_body())
        alert = _call(_service().acknowledge_sos, path.alert_id, body.actor)
        return jsonify(_formatter().format_sos_alert(alert))


@satcom_bp.post('/sos/<alert_id>/responding')
def mark_sos_responding(path: AlertPath):
    with tracer.start_as_current_span("satcom.api.responding_sos", attributes={"sos.id": path.alert_id}):
        body = RespondingSOSRequest.model_validate(_json_body())
        alert = _call(_service().mark_sos_responding, path.alert_id, responder_id=body.responder_id, eta=body.eta)
        return jsonify(_formatter().format_sos_alert(alert))


@satcom_bp.post('/sos/<alert_id>/resolve')
def resolve_sos(path: AlertPath):
    with tracer.start_as_current_span("satcom.api.resolve_sos", attributes={"sos.id": path.alert_id}):
        body = ResolveSOSRequest.model_validate(_json_body())
        alert = _call(_service().resolve_sos, path.alert_id, body.resolution)
        return jsonify(_formatter().format_sos_alert(alert))


@satcom_bp.post('/sos/<alert_id>/escalate')
def escalate_sos(path: AlertPath):
    """Notify the next responder on the roster."""
    with tracer.start_as_current_span("satcom.api.escalate_sos", attributes={"sos.id": path.alert_id}):
        alert = _call(_service().escalate_sos, path.alert_id)
        return jsonify(_formatter().format_sos_alert(alert))


# Network

@satcom_bp.get('/satellites')
def list_satellites():
    with tracer.start_as_current_span("satcom.api.list_satellites"):
        filters = SatelliteFilters.model_validate(_query_args())
        satellites = _service().list_satellites(
            network=filters.network, status=filters.status, capability=filters.capability
        )
        return jsonify(_formatter().format_satellite_collection(
            satellites, filters.model_dump(mode='json', exclude_none=True)
        ))


@satcom_bp.get('/satellites/<satellite_id>')
def get_satellite(path: SatellitePath):
    with tracer.start_as_current_span("satcom.api.get_satellite", attributes={"satellite.id": path.satellite_id}):
        satellite = _service().get_satellite(path.satellite_id)
        return jsonify(_formatter().format_satellite(satellite))


@satcom_bp.get('/ground-stations')
def list_ground_stations():
    with tracer.start_as_current_span("satcom.api.list_ground_stations"):
        filters = GroundStationFilters.model_validate(_query_args())
        stations = _service().list_ground_stations(network=filters.network, status=filters.status)
        return jsonify(_formatter().format_ground_station_collection(
            stations, filters.model_dump(mode='json', exclude_none=True)
        ))


@satcom_bp.get('/ground-stations/<station_id>')
def get_ground_station(path: GroundStationPath):
    with tracer.start_as_current_span("satcom.api.get_ground_station", attributes={"ground_station.id": path.station_id}):
        station = _service().get_ground_station(path.station_id)
        return jsonify(_formatter().format_ground_station(station))


@satcom_bp.get('/passes')
def predict_passes():
    """Predict LEO passes over a location (``lat``, ``lon``, ``hours``)."""
    with tracer.start_as_current_span("satcom.api.predict_passes") as span:
        query = PassPredictionQuery.model_validate(_query_args())
        passes = _service().predict_satellite_passes(GeoPoint(lat=query.lat, lon=query.lon), hours=query.hours)
        span.set_attribute("passes.count", len(passes))
        return jsonify(_formatter().format_passes(passes, query.model_dump(mode='json')))


@satcom_bp.get('/statistics')
def network_statistics():
    with tracer.start_as_current_span("satcom.api.statistics"):
        query = StatisticsQuery.model_validate(_query_args())
        statistics = _call(_service().get_network_statistics, network=query.network)
        return jsonify(_formatter().format_statistics(statistics))
