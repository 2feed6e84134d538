# SPDX-License-Identifier: Apache-2.0

"""
Event bus for satellite communications state changes.

Observers subscribe with a callback and an optional set of event types.
Emission is synchronous; a failing subscriber is logged and isolated so it
never aborts delivery to other subscribers or the operation that emitted.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, FrozenSet

from opentelemetry import trace

from models.entities import SatelliteEvent
from models.enums import SatelliteEventType
from services.simulation import IdGenerator, ObjectIdGenerator


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EventCallback = Callable[[SatelliteEvent], None]


@dataclass
class Subscription:
    """A registered observer."""
    id: str
    callback: EventCallback
    event_types: Optional[FrozenSet[str]] = None
    delivered: int = 0
    failures: int = 0
    last_error: Optional[str] = None

    def matches(self, event: SatelliteEvent) -> bool:
        return self.event_types is None or event.type in self.event_types


class EventBus:
    """Publish/subscribe hub for connection, handoff, message and SOS events."""

    def __init__(self, id_generator: Optional[IdGenerator] = None):
        self._ids = id_generator or ObjectIdGenerator()
        self._subscriptions: Dict[str, Subscription] = {}

    def subscribe(
        self,
        callback: EventCallback,
        event_types: Optional[Iterable[SatelliteEventType]] = None
    ) -> str:
        """
        Register an observer.

        Args:
            callback: Called with each matching SatelliteEvent
            event_types: Restrict delivery to these types; None means all

        Returns:
            Subscription id
        """
        types = None
        if event_types is not None:
            types = frozenset(SatelliteEventType(t).value for t in event_types)

        subscription = Subscription(id=self._ids.next_id("sub"), callback=callback, event_types=types)
        self._subscriptions[subscription.id] = subscription

        logger.debug(
            "Event subscription added",
            extra={"extra_fields": {"subscription_id": subscription.id, "event_types": sorted(types or [])}}
        )
        return subscription.id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove an observer; unknown ids are ignored."""
        return self._subscriptions.pop(subscription_id, None) is not None

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(subscription_id)

    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    def emit(self, event: SatelliteEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        with tracer.start_as_current_span("satcom.event.emit") as span:
            span.set_attribute("event.type", event.type)

            # Copy so callbacks may subscribe/unsubscribe while we iterate
            for subscription in list(self._subscriptions.values()):
                if not subscription.matches(event):
                    continue
                try:
                    subscription.callback(event)
                    subscription.delivered += 1
                    delivered += 1
                except Exception as e:
                    subscription.failures += 1
                    subscription.last_error = str(e)
                    span.record_exception(e)
                    logger.error(
                        "Event subscriber failed",
                        extra={
                            "extra_fields": {
                                "subscription_id": subscription.id,
                                "event_type": event.type,
                                "error": str(e)
                            }
                        },
                        exc_info=True
                    )

            span.set_attribute("event.delivered", delivered)
        return delivered
