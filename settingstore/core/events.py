"""Event Bus and typed event definitions for the settings core.

Every effective settings change is published as an event. Observers
subscribe by event type and are called synchronously on the publishing
thread (the asyncio loop thread), so one publish runs to completion before
the loop moves on.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    def __init__(self, bus: EventBus, event_type: type, callback: Callable) -> None:
        self._bus = bus
        self._event_type = event_type
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        self._bus._remove(self._event_type, self)


class EventBus:
    """Simple in-process synchronous pub/sub event bus.

    Publishers call publish(event). Subscribers register a callable with
    subscribe() and get back a Subscription they can cancel.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Subscription]] = {}

    def subscribe(self, event_type: type[T], callback: Callable[[T], None]) -> Subscription:
        """Subscribe to events of a specific type."""
        subscription = Subscription(self, event_type, callback)
        self._subscribers.setdefault(event_type, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription."""
        subscription.cancel()

    def publish(self, event: object) -> None:
        """Publish an event to all subscribers of its type.

        The subscriber list is snapshotted, and each subscription is
        re-checked right before its callback runs, so a cancel issued by an
        earlier callback takes effect within the same publish.
        """
        for subscription in list(self._subscribers.get(type(event), [])):
            if not subscription.active:
                continue
            try:
                subscription.callback(event)
            except Exception:
                logger.exception(
                    "Subscriber failed while handling %s", type(event).__name__
                )

    def subscriber_count(self, event_type: type) -> int:
        return len(self._subscribers.get(event_type, []))

    def _remove(self, event_type: type, subscription: Subscription) -> None:
        subscriptions = self._subscribers.get(event_type, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SettingsUpdatedEvent:
    """The resolved settings may have changed (local write, defaults, or reload)."""
    source: str  # set | defaults | reload


@dataclass(frozen=True)
class ConfigLoadFailedEvent:
    """The settings document could not be parsed; writes are suspended."""
    path: Path
    message: str
