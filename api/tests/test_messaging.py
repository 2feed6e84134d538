# SPDX-License-Identifier: Apache-2.0

"""
Tests for the message transmission pipeline.
"""

import asyncio
from datetime import timedelta

import pytest

from domain.errors import NotConnectedError, NotFoundError
from models.entities import MessageDestination
from models.enums import (
    ConnectionStatus, DestinationType, MessageStatus, MessageType, SatelliteEventType, ServiceTier,
    TransmissionErrorCode
)


DESTINATION = MessageDestination(type=DestinationType.EMAIL, address="ops@example.org")


def send(service, terminal_id, content="status ok", **kwargs):
    return service.send_message(terminal_id, MessageType.DATA, DESTINATION, content, **kwargs)


class TestSend:
    """Test successful sends and delivery confirmation."""

    def test_send_requires_connection(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        with pytest.raises(NotConnectedError) as exc_info:
            asyncio.run(send(satcom_service, terminal.id))

        assert exc_info.value.status_code == 409
        assert satcom_service.get_messages_by_terminal(terminal.id) == []

    def test_send_unknown_terminal(self, satcom_service):
        with pytest.raises(NotFoundError):
            asyncio.run(send(satcom_service, "term-missing"))

    def test_transmit_then_deliver(self, satcom_service, terminal_request_factory, recorded_events):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_and_settle():
            await satcom_service.connect(terminal.id)
            message = await send(satcom_service, terminal.id, "all teams accounted for")
            status_after_send = message.status
            await satcom_service.wait_for_deliveries()
            return message, status_after_send

        message, status_after_send = asyncio.run(send_and_settle())

        assert status_after_send == MessageStatus.TRANSMITTED
        assert message.status == MessageStatus.DELIVERED
        assert message.id == "msg-0001"
        assert message.transmission.attempts == 1
        assert message.transmission.satellite == "sat-iri-1"
        assert message.routing.via.ground_station_id == "gs-1"
        assert message.priority == ServiceTier.STANDARD
        assert message.payload.size == len("all teams accounted for")

        assert terminal.metrics.messages_transmitted == 1
        assert terminal.metrics.bytes_transmitted == message.payload.size
        assert terminal.metrics.average_latency == pytest.approx(terminal.connection.latency)
        assert terminal.subscription.data_used == pytest.approx(message.payload.size / (1024 * 1024))

        transmitted = [e for e in recorded_events if e.type == SatelliteEventType.MESSAGE_TRANSMITTED]
        assert transmitted[0].data["message_id"] == message.id
        assert transmitted[0].data["status"] == "delivered"

    def test_explicit_priority_and_compression(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())
        content = "grid 12 clear " * 50

        async def send_compressed():
            await satcom_service.connect(terminal.id)
            return await send(satcom_service, terminal.id, content, priority=ServiceTier.PRIORITY, compress=True)

        message = asyncio.run(send_compressed())

        assert message.priority == "priority"
        assert message.payload.compressed is True
        assert message.payload.size < len(content)

    def test_connection_activity_is_refreshed(self, satcom_service, terminal_request_factory, clock):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_later():
            await satcom_service.connect(terminal.id)
            established = terminal.connection.last_activity
            await clock.sleep(30)
            await send(satcom_service, terminal.id)
            return established

        established = asyncio.run(send_later())

        assert terminal.connection.last_activity > established

    def test_sends_keep_submission_order(self, satcom_service, terminal_request_factory):
        """Concurrent sends from one terminal transmit one at a time, in order."""
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_three():
            await satcom_service.connect(terminal.id)
            return await asyncio.gather(*(send(satcom_service, terminal.id, f"report {i}") for i in range(3)))

        first, second, third = asyncio.run(send_three())

        assert second.transmission.last_attempt >= first.transmission.transmitted_at
        assert third.transmission.last_attempt >= second.transmission.transmitted_at
        listed = satcom_service.get_messages_by_terminal(terminal.id)
        assert [m.id for m in listed] == ["msg-0003", "msg-0002", "msg-0001"]

    def test_list_limit(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_several():
            await satcom_service.connect(terminal.id)
            for i in range(4):
                await send(satcom_service, terminal.id, f"report {i}")

        asyncio.run(send_several())

        assert [m.id for m in satcom_service.get_messages_by_terminal(terminal.id, limit=2)] == [
            "msg-0004", "msg-0003"
        ]

    def test_get_unknown_message(self, satcom_service):
        with pytest.raises(NotFoundError):
            satcom_service.get_message("msg-missing")


class TestFailures:
    """Test quota, retry exhaustion, expiry and disconnect outcomes."""

    def test_quota_exceeded(self, satcom_service, terminal_request_factory):
        """A 5 MB message at 99% usage fails without touching the counter."""
        terminal = satcom_service.register_terminal(terminal_request_factory(data_allowance=100))
        terminal.subscription.data_used = 99
        content = "x" * (5 * 1024 * 1024)

        async def send_large():
            await satcom_service.connect(terminal.id)
            return await send(satcom_service, terminal.id, content)

        message = asyncio.run(send_large())

        assert message.status == MessageStatus.FAILED
        assert message.transmission.error == TransmissionErrorCode.QUOTA_EXCEEDED
        assert message.transmission.attempts == 0
        assert terminal.subscription.data_used == 99
        assert satcom_service.get_message(message.id) is message

    def test_quota_counts_sends_queued_on_the_same_terminal(self, satcom_service, terminal_request_factory):
        """Two sends that each fit but together overrun the allowance: the second is refused."""
        terminal = satcom_service.register_terminal(terminal_request_factory(data_allowance=1))
        content = "x" * (600 * 1024)

        async def send_both():
            await satcom_service.connect(terminal.id)
            return await asyncio.gather(
                send(satcom_service, terminal.id, content),
                send(satcom_service, terminal.id, content)
            )

        first, second = asyncio.run(send_both())

        assert first.status in (MessageStatus.TRANSMITTED, MessageStatus.DELIVERED)
        assert second.status == MessageStatus.FAILED
        assert second.transmission.error == TransmissionErrorCode.QUOTA_EXCEEDED
        assert second.transmission.attempts == 0
        assert terminal.subscription.data_used <= terminal.subscription.data_allowance
        assert terminal.metrics.messages_transmitted == 1

    def test_max_retries_exceeded(self, satcom_service, terminal_request_factory, rng):
        """Three failed attempts exhaust the retry budget."""
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_with_failures():
            await satcom_service.connect(terminal.id)
            rng.script(0.99, 0.99, 0.99)
            return await send(satcom_service, terminal.id)

        message = asyncio.run(send_with_failures())

        assert message.status == MessageStatus.FAILED
        assert message.transmission.attempts == 3
        assert message.transmission.error == TransmissionErrorCode.MAX_RETRIES_EXCEEDED
        assert message.transmission.error_detail == "Transmission failed after 3 attempts"
        assert terminal.metrics.messages_transmitted == 0
        assert terminal.subscription.data_used == 0

    def test_retry_then_success(self, satcom_service, terminal_request_factory, rng):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_with_one_failure():
            await satcom_service.connect(terminal.id)
            rng.script(0.99, 0.10)
            return await send(satcom_service, terminal.id)

        message = asyncio.run(send_with_one_failure())

        assert message.status == MessageStatus.TRANSMITTED
        assert message.transmission.attempts == 2

    def test_expires_between_attempts(self, service_factory, terminal_request_factory, rng):
        service = service_factory(message_ttl_hours=0.01 / 3600)
        terminal = service.register_terminal(terminal_request_factory())

        async def send_slowly():
            await service.connect(terminal.id)
            rng.script(0.99)
            return await send(service, terminal.id)

        message = asyncio.run(send_slowly())

        assert message.status == MessageStatus.EXPIRED
        assert message.transmission.error == TransmissionErrorCode.EXPIRED
        assert message.transmission.attempts == 1

    def test_expired_on_read_while_in_flight(self, gated_service, gated_clock, terminal_request_factory):
        service, clock = gated_service, gated_clock
        terminal = service.register_terminal(terminal_request_factory())

        async def read_during_transmission():
            await service.connect(terminal.id)
            clock.close_gate()
            task = asyncio.ensure_future(send(service, terminal.id))
            await clock.sleeping.wait()

            clock.advance(timedelta(hours=25))
            read = service.get_message("msg-0001")
            assert read.status == MessageStatus.EXPIRED

            clock.gate.set()
            return await task

        message = asyncio.run(read_during_transmission())

        assert message.status == MessageStatus.EXPIRED
        assert terminal.metrics.messages_transmitted == 0

    def test_disconnect_aborts_in_flight_and_queued(self, gated_service, gated_clock, terminal_request_factory):
        """A disconnect fails the send on air and the send waiting behind it."""
        service, clock = gated_service, gated_clock
        terminal = service.register_terminal(terminal_request_factory())

        async def disconnect_mid_transmission():
            await service.connect(terminal.id)
            clock.close_gate()
            in_flight = asyncio.ensure_future(send(service, terminal.id, "first"))
            queued = asyncio.ensure_future(send(service, terminal.id, "second"))
            await clock.sleeping.wait()

            await service.disconnect(terminal.id)
            return await asyncio.gather(in_flight, queued)

        in_flight, queued = asyncio.run(disconnect_mid_transmission())

        for message in (in_flight, queued):
            assert message.status == MessageStatus.FAILED
            assert message.transmission.error == TransmissionErrorCode.TERMINAL_DISCONNECTED
        assert in_flight.transmission.attempts == 1
        assert queued.transmission.attempts == 0
        assert terminal.status == ConnectionStatus.DISCONNECTED
        assert service.get_ground_station("gs-1").capacity.current_connections == 0

    def test_send_after_reconnect_succeeds(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def reconnect_and_send():
            await satcom_service.connect(terminal.id)
            await satcom_service.disconnect(terminal.id)
            await satcom_service.connect(terminal.id)
            return await send(satcom_service, terminal.id)

        assert asyncio.run(reconnect_and_send()).status == MessageStatus.TRANSMITTED


class TestShutdown:
    def test_shutdown_cancels_pending_deliveries(self, satcom_service, terminal_request_factory):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        async def send_and_stop():
            await satcom_service.connect(terminal.id)
            message = await send(satcom_service, terminal.id)
            await satcom_service.shutdown()
            return message

        message = asyncio.run(send_and_stop())

        assert message.status == MessageStatus.TRANSMITTED


class TestInbound:
    def test_record_inbound(self, satcom_service, terminal_request_factory, recorded_events):
        terminal = satcom_service.register_terminal(terminal_request_factory())

        event = satcom_service.record_inbound_message(terminal.id, "evacuate north", "dispatch@example.org")

        assert event.type == SatelliteEventType.MESSAGE_RECEIVED
        assert event.data["source"] == "dispatch@example.org"
        assert terminal.metrics.messages_received == 1
        assert terminal.metrics.bytes_received == len("evacuate north")
        assert recorded_events[-1] is event

    def test_record_inbound_unknown_terminal(self, satcom_service):
        with pytest.raises(NotFoundError):
            satcom_service.record_inbound_message("term-missing", "hello", "dispatch")
