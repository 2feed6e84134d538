# SPDX-License-Identifier: Apache-2.0

"""
SOS alert coordination.

An alert moves active -> acknowledged -> responding -> resolved and may be
cancelled from any open state. An alert always carries at least one
responder while it is open: one is assigned when the alert is raised, and
an alert found without responders is escalated before it moves on.
"""

import json
import logging
from typing import Dict, List, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain.errors import InvalidTransitionError, NotConnectedError, NotFoundError, SOSNotSupportedError
from models.entities import (
    EmergencyContact, MessageDestination, ResponderInfo, SatelliteEvent, SOSAlert, SOSLocation, Terminal
)
from models.enums import (
    DestinationType, MessageStatus, MessageType, ResponderStatus, ResponderType, SatelliteEventType,
    ServiceTier, SOSStatus, SOSType
)
from services.connections import ConnectionManager
from services.events import EventBus
from services.messaging import MessagingPipeline
from services.simulation import Clock, IdGenerator, ObjectIdGenerator, SystemClock
from services.terminals import TerminalManager


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_COORDINATION_ADDRESS = "sar-coordination@emergency.gov"
SOS_ACCURACY_METERS = 10.0
SYSTEM_ACTOR = "System"

# Escalation order; the first entry is assigned when an alert is raised
DEFAULT_RESPONDER_ROSTER = [
    ResponderInfo(id="resp-001", agency="Coast Guard", type=ResponderType.COASTGUARD, contact="+1-800-RESCUE"),
    ResponderInfo(id="resp-002", agency="Regional Search and Rescue", type=ResponderType.SAR, contact="+1-800-727-7283"),
    ResponderInfo(id="resp-003", agency="State Police", type=ResponderType.POLICE, contact="911"),
    ResponderInfo(id="resp-004", agency="Air Medical Transport", type=ResponderType.MEDICAL, contact="+1-800-AIR-MED1"),
]


class SOSCoordinator:
    """Raises SOS alerts and drives their escalation workflow."""

    def __init__(
        self,
        terminals: TerminalManager,
        connections: ConnectionManager,
        messaging: MessagingPipeline,
        events: EventBus,
        clock: Optional[Clock] = None,
        id_generator: Optional[IdGenerator] = None,
        coordination_address: str = DEFAULT_COORDINATION_ADDRESS,
        responder_roster: Optional[List[ResponderInfo]] = None
    ):
        self._terminals = terminals
        self._connections = connections
        self._messaging = messaging
        self._events = events
        self._clock = clock or SystemClock()
        self._ids = id_generator or ObjectIdGenerator()
        self.coordination_address = coordination_address
        self._roster = list(responder_roster or DEFAULT_RESPONDER_ROSTER)
        self._alerts: Dict[str, SOSAlert] = {}

    async def send_sos(
        self,
        terminal_id: str,
        sos_type: SOSType = SOSType.DISTRESS,
        message: Optional[str] = None,
        contacts: Optional[List[EmergencyContact]] = None
    ) -> SOSAlert:
        """
        Raise an SOS alert from a terminal.

        The terminal is connected first if needed; a connection failure
        propagates and no alert is created. A failed SOS transmission is
        recorded on the alert timeline, never hidden.

        Raises:
            NotFoundError: Unknown terminal
            SOSNotSupportedError: Terminal has SOS disabled
            NoCoverageError, NoGroundStationError: Connection could not be established
        """
        terminal = self._terminals.get(terminal_id)
        if not terminal.capabilities.sos_enabled:
            raise SOSNotSupportedError(terminal_id)

        with tracer.start_as_current_span("satcom.sos.send") as span:
            span.set_attribute("terminal.id", terminal_id)
            span.set_attribute("sos.type", SOSType(sos_type).value)

            if not terminal.is_connected():
                await self._connections.connect(terminal_id)

            now = self._clock.now()
            alert = SOSAlert(
                id=self._ids.next_id("sos"),
                created_at=now,
                terminal_id=terminal_id,
                location=SOSLocation(
                    lat=terminal.location.lat,
                    lon=terminal.location.lon,
                    altitude=terminal.location.altitude,
                    timestamp=now,
                    accuracy=SOS_ACCURACY_METERS
                ),
                type=sos_type,
                message=message,
                contacts=list(contacts or [])
            )
            alert.add_event(now, "SOS activated", details=f"Type: {alert.type}")
            self._assign(alert, self._roster[0])
            self._alerts[alert.id] = alert
            span.set_attribute("sos.alert_id", alert.id)

            logger.warning(
                "SOS activated",
                extra={
                    "extra_fields": {
                        "alert_id": alert.id,
                        "terminal_id": terminal_id,
                        "type": alert.type,
                        "lat": alert.location.lat,
                        "lon": alert.location.lon
                    }
                }
            )

            await self._transmit_alert(alert, terminal)

            if not alert.is_open():
                # Closed while the SOS message was on air
                logger.info(
                    "SOS closed during transmission",
                    extra={"extra_fields": {"alert_id": alert.id, "status": alert.status}}
                )
                return alert

            alert.add_event(self._clock.now(), "Emergency services notified", actor=SYSTEM_ACTOR)
            self._notify_contacts(alert)

            self._emit(alert, "activated")
            return alert

    async def _transmit_alert(self, alert: SOSAlert, terminal: Terminal) -> None:
        content = json.dumps({
            "alert_id": alert.id,
            "type": alert.type,
            "location": alert.location.model_dump(mode="json"),
            "message": alert.message,
            "terminal": {"id": terminal.id, "name": terminal.name, "network": terminal.network}
        })
        destination = MessageDestination(type=DestinationType.SERVER, address=self.coordination_address)

        try:
            sos_message = await self._messaging.send(
                terminal.id, MessageType.SOS, destination, content, priority=ServiceTier.EMERGENCY
            )
        except NotConnectedError as e:
            # Link dropped between connect and send
            alert.add_event(self._clock.now(), "SOS transmission failed", details=e.message, actor=SYSTEM_ACTOR)
            trace.get_current_span().set_status(Status(StatusCode.ERROR, e.message))
            logger.error(
                "SOS message could not be sent",
                extra={"extra_fields": {"alert_id": alert.id, "error": e.message}}
            )
            return

        alert.sos_message_id = sos_message.id
        if sos_message.status == MessageStatus.FAILED:
            detail = f"{sos_message.transmission.error}: {sos_message.transmission.error_detail}"
            alert.add_event(self._clock.now(), "SOS transmission failed", details=detail, actor=SYSTEM_ACTOR)
            trace.get_current_span().set_status(Status(StatusCode.ERROR, detail))
            logger.error(
                "SOS message transmission failed",
                extra={
                    "extra_fields": {
                        "alert_id": alert.id,
                        "message_id": sos_message.id,
                        "error": sos_message.transmission.error
                    }
                }
            )
        else:
            alert.add_event(
                self._clock.now(), "SOS message transmitted",
                details=f"Message {sos_message.id} to {self.coordination_address}", actor=SYSTEM_ACTOR
            )

    def _notify_contacts(self, alert: SOSAlert) -> None:
        if not alert.contacts:
            return
        now = self._clock.now()
        for contact in alert.contacts:
            contact.notified = True
            contact.notified_at = now
        alert.add_event(
            now, "Emergency contacts notified",
            details=", ".join(contact.name for contact in alert.contacts), actor=SYSTEM_ACTOR
        )

    def get(self, alert_id: str) -> SOSAlert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError("SOS alert", alert_id)
        return alert

    def list_active(self) -> List[SOSAlert]:
        return sorted(
            (alert for alert in self._alerts.values() if alert.is_open()),
            key=lambda alert: alert.created_at
        )

    def all_alerts(self) -> List[SOSAlert]:
        return list(self._alerts.values())

    def update_position(self, alert_id: str, location: SOSLocation) -> SOSAlert:
        """Replace the alert location; status is unchanged."""
        alert = self.get(alert_id)
        alert.location = location
        alert.add_event(
            self._clock.now(), "Position updated",
            details=f"Lat: {location.lat}, Lon: {location.lon}"
        )
        self._emit(alert, "position_updated")
        return alert

    def cancel(self, alert_id: str, reason: str) -> SOSAlert:
        """
        Cancel an open alert and stand responders down.

        The SOS message already sent is not retracted.
        """
        alert = self.get(alert_id)
        with tracer.start_as_current_span("satcom.sos.cancel") as span:
            span.set_attribute("sos.alert_id", alert_id)
            alert.transition(SOSStatus.CANCELLED)

            now = self._clock.now()
            alert.resolved_at = now
            alert.add_event(now, "SOS cancelled", details=reason)
            self._complete_responders(alert)

            logger.info(
                "SOS cancelled",
                extra={"extra_fields": {"alert_id": alert_id, "reason": reason}}
            )
            self._emit(alert, "cancelled")
            return alert

    def acknowledge(self, alert_id: str, actor: str) -> SOSAlert:
        alert = self.get(alert_id)
        self._ensure_responders(alert)
        alert.transition(SOSStatus.ACKNOWLEDGED)
        alert.add_event(self._clock.now(), "SOS acknowledged", actor=actor)
        self._emit(alert, "acknowledged")
        return alert

    def mark_responding(self, alert_id: str, responder_id: Optional[str] = None, eta: Optional[float] = None) -> SOSAlert:
        """Move the alert to responding with one responder, or every notified one, en route."""
        alert = self.get(alert_id)
        self._ensure_responders(alert)

        if responder_id is not None:
            responder = alert.find_responder(responder_id)
            if responder is None:
                raise NotFoundError("Responder", responder_id)
            moving = [responder]
        else:
            moving = [r for r in alert.responders if r.status == ResponderStatus.NOTIFIED]

        alert.transition(SOSStatus.RESPONDING)
        for responder in moving:
            responder.status = ResponderStatus.ENROUTE
            if eta is not None:
                responder.eta = eta

        details = ", ".join(r.agency for r in moving)
        if eta is not None:
            details = f"{details} (ETA {eta:g} min)"
        alert.add_event(self._clock.now(), "Responders en route", details=details)
        self._emit(alert, "responding")
        return alert

    def resolve(self, alert_id: str, resolution: str) -> SOSAlert:
        alert = self.get(alert_id)
        alert.transition(SOSStatus.RESOLVED)

        now = self._clock.now()
        alert.resolved_at = now
        alert.add_event(now, "SOS resolved", details=resolution)
        self._complete_responders(alert)

        logger.info("SOS resolved", extra={"extra_fields": {"alert_id": alert_id}})
        self._emit(alert, "resolved")
        return alert

    def assign_responder(self, alert_id: str, responder: ResponderInfo) -> SOSAlert:
        alert = self.get(alert_id)
        if not alert.is_open():
            raise InvalidTransitionError("SOS alert", alert.status, "responder assignment")

        if alert.find_responder(responder.id) is None:
            self._assign(alert, responder)
            alert.add_event(self._clock.now(), "Responder assigned", details=responder.agency)
            self._emit(alert, "responder_assigned")
        return alert

    def escalate(self, alert_id: str) -> SOSAlert:
        """
        Bring in the next responder from the escalation roster.

        Raises:
            InvalidTransitionError: Alert is resolved or cancelled
        """
        alert = self.get(alert_id)
        if not alert.is_open():
            raise InvalidTransitionError("SOS alert", alert.status, "escalated")

        with tracer.start_as_current_span("satcom.sos.escalate") as span:
            span.set_attribute("sos.alert_id", alert_id)
            if not self._escalate(alert):
                span.set_attribute("sos.roster_exhausted", True)
            self._emit(alert, "escalated")
            return alert

    def _escalate(self, alert: SOSAlert) -> bool:
        now = self._clock.now()
        for candidate in self._roster:
            if alert.find_responder(candidate.id) is None:
                self._assign(alert, candidate)
                alert.add_event(now, "SOS escalated", details=candidate.agency, actor=SYSTEM_ACTOR)
                logger.warning(
                    "SOS escalated",
                    extra={"extra_fields": {"alert_id": alert.id, "responder_id": candidate.id}}
                )
                return True

        alert.add_event(now, "Escalation roster exhausted", actor=SYSTEM_ACTOR)
        logger.error("SOS escalation roster exhausted", extra={"extra_fields": {"alert_id": alert.id}})
        return False

    def _ensure_responders(self, alert: SOSAlert) -> None:
        if alert.is_open() and not alert.responders:
            self._escalate(alert)

    def _assign(self, alert: SOSAlert, responder: ResponderInfo) -> None:
        alert.responders.append(responder.model_copy(update={"status": ResponderStatus.NOTIFIED.value}))

    def _complete_responders(self, alert: SOSAlert) -> None:
        for responder in alert.responders:
            responder.status = ResponderStatus.COMPLETED

    def _emit(self, alert: SOSAlert, action: str) -> None:
        self._events.emit(SatelliteEvent(
            type=SatelliteEventType.SOS_ALERT,
            timestamp=self._clock.now(),
            data={
                "alert_id": alert.id,
                "terminal_id": alert.terminal_id,
                "status": alert.status,
                "type": alert.type,
                "action": action,
                "responders": len(alert.responders)
            }
        ))
