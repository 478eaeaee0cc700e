"""EventBus and event types for grant and membership changes."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of committed mutations that change who can reach what."""

    GRANT_CREATED = "grant_created"
    GRANT_REMOVED = "grant_removed"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"


@dataclass(frozen=True, slots=True)
class AccessEvent:
    """Immutable record of a committed access mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        resource_id: Affected resource (grant events only).
        share_type: ``user``, ``group`` or ``global`` (grant events only).
        target_id: Grant target id (grant events only).
        user_id: Affected user (membership events only).
        group_id: Affected group (membership events only).
    """

    event_type: EventType
    resource_id: str | None = None
    share_type: str | None = None
    target_id: str | None = None
    user_id: str | None = None
    group_id: str | None = None


AccessHandler = Callable[[AccessEvent], Awaitable[None]]
"""Async callable receiving one committed ``AccessEvent``."""


@dataclass(frozen=True, slots=True)
class Subscription:
    """One handler's interest in access events.

    ``event_type`` of None matches every type.  ``resource_id`` and
    ``group_id`` narrow delivery to events about that resource or group;
    an event that does not carry the field never matches a scoped
    subscription.
    """

    handler: AccessHandler
    event_type: EventType | None = None
    resource_id: str | None = None
    group_id: str | None = None

    def matches(self, event: AccessEvent) -> bool:
        if self.event_type is not None and event.event_type is not self.event_type:
            return False
        if self.resource_id is not None and event.resource_id != self.resource_id:
            return False
        return self.group_id is None or event.group_id == self.group_id


class EventBus:
    """Delivers committed access events to subscriptions.

    Matching subscriptions are awaited one after another, in the order
    they were registered.  A failing handler is logged and skipped: the
    mutation it reports has already committed.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def register(
        self,
        event_type: EventType | None,
        handler: AccessHandler,
        *,
        resource_id: str | None = None,
        group_id: str | None = None,
    ) -> Subscription:
        """Subscribe *handler*, optionally scoped to one resource or group."""
        subscription = Subscription(handler, event_type, resource_id, group_id)
        self._subscriptions.append(subscription)
        return subscription

    def unregister(self, subscription: Subscription) -> bool:
        """Drop *subscription*. False if it is not registered."""
        if subscription not in self._subscriptions:
            return False
        self._subscriptions.remove(subscription)
        return True

    def subscriptions_for(self, event: AccessEvent) -> list[Subscription]:
        return [s for s in self._subscriptions if s.matches(event)]

    async def emit(self, event: AccessEvent) -> None:
        for subscription in self.subscriptions_for(event):
            try:
                await subscription.handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    subscription.handler,
                    event.event_type.value,
                    event.resource_id or event.group_id,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        return len(self._subscriptions)

    def clear(self) -> None:
        self._subscriptions.clear()
