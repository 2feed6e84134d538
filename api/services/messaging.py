# SPDX-License-Identifier: Apache-2.0

"""
Message transmission pipeline.

Messages move through queued -> transmitting -> transmitted -> delivered,
with bounded retries, quota enforcement and a time-to-live. Sends for one
terminal are serialized by the terminal lock so they go out in submission
order. A disconnect aborts the in-flight send and every send queued behind
it with TerminalDisconnected.
"""

import asyncio
import logging
import random
from typing import Dict, List, Optional, Set, Union

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain import link_model
from domain.errors import NotConnectedError, NotFoundError
from models.entities import (
    Connection, GeoPoint, MessageDestination, MessagePayload, MessageRouting, RoutingSource,
    RoutingVia, SatelliteEvent, SatelliteMessage, Terminal
)
from models.enums import MessageStatus, MessageType, SatelliteEventType, ServiceTier, TransmissionErrorCode
from services.events import EventBus
from services.simulation import Clock, IdGenerator, ObjectIdGenerator, SimulationSettings, SystemClock
from services.terminals import TerminalManager


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

BYTES_PER_MB = 1024 * 1024


class MessagingPipeline:
    """Queues, transmits and tracks messages sent from terminals."""

    def __init__(
        self,
        terminals: TerminalManager,
        events: EventBus,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[SimulationSettings] = None,
        id_generator: Optional[IdGenerator] = None
    ):
        self._terminals = terminals
        self._events = events
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self._settings = settings or SimulationSettings()
        self._ids = id_generator or ObjectIdGenerator()

        self._messages: Dict[str, SatelliteMessage] = {}
        self._by_terminal: Dict[str, List[str]] = {}
        self._abort_events: Dict[str, asyncio.Event] = {}
        self._deliveries: Set[asyncio.Task] = set()

    async def send(
        self,
        terminal_id: str,
        message_type: MessageType,
        destination: MessageDestination,
        content: Union[str, bytes],
        priority: Optional[ServiceTier] = None,
        compress: bool = False,
        encrypt: bool = True
    ) -> SatelliteMessage:
        """
        Submit a message for transmission and wait for the outcome.

        Quota and link failures are recorded on the returned message rather
        than raised.

        Raises:
            NotFoundError: Unknown terminal
            NotConnectedError: Terminal has no active connection
        """
        terminal = self._terminals.get(terminal_id)
        if not terminal.is_connected():
            raise NotConnectedError(terminal_id, terminal.status)

        with tracer.start_as_current_span("satcom.message.send") as span:
            span.set_attribute("terminal.id", terminal_id)
            span.set_attribute("message.type", MessageType(message_type).value)

            data = link_model.encode_payload(content, compress)
            now = self._clock.now()
            message = SatelliteMessage(
                id=self._ids.next_id("msg"),
                created_at=now,
                expires_at=now + self._settings.message_ttl,
                terminal_id=terminal_id,
                type=message_type,
                priority=priority or terminal.subscription.plan,
                payload=MessagePayload(
                    content=content,
                    size=len(data),
                    compressed=compress,
                    encrypted=encrypt,
                    checksum=link_model.payload_checksum(data)
                ),
                routing=MessageRouting(
                    source=RoutingSource(
                        terminal_id=terminal_id,
                        location=GeoPoint(lat=terminal.location.lat, lon=terminal.location.lon)
                    ),
                    destination=destination
                )
            )
            self._store(message)
            span.set_attribute("message.id", message.id)
            span.set_attribute("message.size", message.payload.size)

            # Captured before queueing so a disconnect also fails sends waiting for the lock
            abort = self._abort_event_for(terminal_id)
            async with self._terminals.lock_for(terminal_id):
                # Usage is charged under this lock, so the check sees every earlier send
                if self._within_quota(terminal, message):
                    await self._transmit(terminal, message, abort)

            span.set_attribute("message.status", message.status)
            if message.status == MessageStatus.FAILED:
                span.set_status(Status(StatusCode.ERROR, message.transmission.error))
            return message

    def _within_quota(self, terminal: Terminal, message: SatelliteMessage) -> bool:
        if not terminal.subscription.would_exceed(message.payload.size):
            return True

        message.mark_failed(
            TransmissionErrorCode.QUOTA_EXCEEDED,
            f"Data allowance of {terminal.subscription.data_allowance} MB would be exceeded"
        )
        logger.warning(
            "Message rejected by quota",
            extra={
                "extra_fields": {
                    "terminal_id": terminal.id,
                    "message_id": message.id,
                    "size": message.payload.size,
                    "data_used": terminal.subscription.data_used
                }
            }
        )
        return False

    async def _transmit(self, terminal: Terminal, message: SatelliteMessage, abort: asyncio.Event) -> None:
        """Attempt transmission until success, retry exhaustion, expiry or abort."""
        while True:
            if not message.is_pending():
                # Expired by a reader while waiting
                return

            now = self._clock.now()
            if message.is_expired_at(now):
                self._expire(message)
                return

            if abort.is_set() or not terminal.is_connected():
                self._fail_disconnected(message)
                return

            connection = terminal.connection
            message.mark_transmitting(now)
            duration = link_model.transmission_seconds(
                message.payload.size, connection.bandwidth, connection.latency
            )

            if not await self._wait_unless_aborted(duration, abort):
                self._fail_disconnected(message)
                return

            if not message.is_pending():
                return

            if self._rng.random() < self._settings.success_probability:
                self._complete(terminal, message, connection)
                return

            attempts = message.transmission.attempts
            if attempts >= self._settings.max_attempts:
                message.mark_failed(
                    TransmissionErrorCode.MAX_RETRIES_EXCEEDED,
                    f"Transmission failed after {attempts} attempts"
                )
                logger.warning(
                    "Message failed after retries",
                    extra={"extra_fields": {"message_id": message.id, "attempts": attempts}}
                )
                return

            logger.info(
                "Transmission attempt failed, retrying",
                extra={"extra_fields": {"message_id": message.id, "attempt": attempts}}
            )

    async def _wait_unless_aborted(self, seconds: float, abort: asyncio.Event) -> bool:
        """Sleep on the clock; False when the abort event fires first."""
        if abort.is_set():
            return False

        sleeper = asyncio.ensure_future(self._clock.sleep(seconds))
        aborter = asyncio.ensure_future(abort.wait())
        try:
            await asyncio.wait({sleeper, aborter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, aborter):
                if not task.done():
                    task.cancel()
        return sleeper.done() and not sleeper.cancelled() and not abort.is_set()

    def _complete(self, terminal: Terminal, message: SatelliteMessage, connection: Connection) -> None:
        now = self._clock.now()
        message.mark_transmitted(now, connection.satellite_id, connection.ground_station_id)
        message.routing.via = RoutingVia(
            satellite_id=connection.satellite_id,
            ground_station_id=connection.ground_station_id
        )

        terminal.metrics.messages_transmitted += 1
        terminal.metrics.bytes_transmitted += message.payload.size
        terminal.metrics.record_latency(connection.latency)
        terminal.subscription.data_used += message.payload.size / BYTES_PER_MB
        terminal.connection = connection.model_copy(update={"last_activity": now})

        logger.info(
            "Message transmitted",
            extra={
                "extra_fields": {
                    "message_id": message.id,
                    "terminal_id": terminal.id,
                    "satellite_id": connection.satellite_id,
                    "attempts": message.transmission.attempts
                }
            }
        )

        task = asyncio.ensure_future(self._confirm_delivery(message))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _confirm_delivery(self, message: SatelliteMessage) -> None:
        await self._clock.sleep(self._settings.delivery_delay)
        message.mark_delivered(self._clock.now())
        self._events.emit(SatelliteEvent(
            type=SatelliteEventType.MESSAGE_TRANSMITTED,
            timestamp=self._clock.now(),
            data={
                "message_id": message.id,
                "terminal_id": message.terminal_id,
                "status": message.status,
                "satellite_id": message.transmission.satellite,
                "ground_station_id": message.transmission.ground_station
            }
        ))

    def _fail_disconnected(self, message: SatelliteMessage) -> None:
        message.mark_failed(
            TransmissionErrorCode.TERMINAL_DISCONNECTED,
            "Terminal disconnected before transmission completed"
        )
        logger.warning(
            "Message aborted by disconnect",
            extra={"extra_fields": {"message_id": message.id, "terminal_id": message.terminal_id}}
        )

    def _expire(self, message: SatelliteMessage) -> None:
        message.mark_expired()
        logger.info(
            "Message expired",
            extra={"extra_fields": {"message_id": message.id, "terminal_id": message.terminal_id}}
        )

    def _refresh(self, message: SatelliteMessage) -> SatelliteMessage:
        if message.is_expired_at(self._clock.now()):
            self._expire(message)
        return message

    def _store(self, message: SatelliteMessage) -> None:
        self._messages[message.id] = message
        self._by_terminal.setdefault(message.terminal_id, []).append(message.id)

    def _abort_event_for(self, terminal_id: str) -> asyncio.Event:
        event = self._abort_events.get(terminal_id)
        if event is None:
            event = asyncio.Event()
            self._abort_events[terminal_id] = event
        return event

    def abort_terminal(self, terminal_id: str) -> None:
        """Fail every in-flight and queued send of a terminal; later sends get a fresh event."""
        event = self._abort_events.pop(terminal_id, None)
        if event is not None:
            event.set()

    def get_message(self, message_id: str) -> SatelliteMessage:
        message = self._messages.get(message_id)
        if message is None:
            raise NotFoundError("Message", message_id)
        return self._refresh(message)

    def list_by_terminal(self, terminal_id: str, limit: int = 50) -> List[SatelliteMessage]:
        """Messages of a terminal, newest first."""
        self._terminals.get(terminal_id)
        ids = self._by_terminal.get(terminal_id, [])
        return [self._refresh(self._messages[i]) for i in reversed(ids[-limit:])] if limit > 0 else []

    def all_messages(self) -> List[SatelliteMessage]:
        return [self._refresh(m) for m in self._messages.values()]

    def record_inbound(self, terminal_id: str, content: str, source: str) -> SatelliteEvent:
        """Account for a message received by a terminal and publish it."""
        terminal = self._terminals.get(terminal_id)
        size = len(link_model.encode_payload(content))
        terminal.metrics.messages_received += 1
        terminal.metrics.bytes_received += size

        event = SatelliteEvent(
            type=SatelliteEventType.MESSAGE_RECEIVED,
            timestamp=self._clock.now(),
            data={"terminal_id": terminal_id, "source": source, "size": size, "content": content}
        )
        self._events.emit(event)
        return event

    async def wait_for_deliveries(self) -> None:
        """Wait for every pending delivery confirmation."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel pending delivery confirmations; their messages stay transmitted."""
        pending = list(self._deliveries)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Messaging pipeline stopped", extra={"extra_fields": {"cancelled_deliveries": len(pending)}})
