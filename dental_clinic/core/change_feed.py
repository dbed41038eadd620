"""In-process change notifications for committed appointment writes."""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

import structlog

logger = structlog.get_logger(__name__)

ChangeCallback = Callable[[str, dict[str, Any]], Awaitable[None] | None]


@dataclass
class _Subscription:
    filters: dict[str, Any]
    callback: ChangeCallback
    id: UUID = field(default_factory=uuid4)

    def matches(self, record: dict[str, Any]) -> bool:
        return all(_same(record.get(key), value) for key, value in self.filters.items())


def _same(left: Any, right: Any) -> bool:
    if hasattr(left, "value"):
        left = left.value
    if hasattr(right, "value"):
        right = right.value
    if isinstance(left, UUID) or isinstance(right, UUID):
        return str(left) == str(right)
    return left == right


class ChangeFeed:
    """
    Observer registry fed by the appointment store after each commit.

    Subscribers receive ``(event, record)`` where event is one of
    ``inserted``, ``updated`` or ``deleted``. A failing subscriber is logged
    and skipped; it never affects the write that triggered it.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[UUID, _Subscription] = {}

    def subscribe(
        self,
        filters: dict[str, Any] | None,
        callback: ChangeCallback,
    ) -> Callable[[], None]:
        """
        Register a callback for records matching every key in ``filters``.

        Returns:
            A function that removes the subscription
        """
        subscription = _Subscription(filters=dict(filters or {}), callback=callback)
        self._subscriptions[subscription.id] = subscription

        def unsubscribe() -> None:
            self._subscriptions.pop(subscription.id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: str, record: dict[str, Any]) -> None:
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(record):
                continue
            try:
                outcome = subscription.callback(event, record)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(
                    "change_subscriber_failed",
                    subscription_id=str(subscription.id),
                    change_event=event,
                    error=str(e),
                )


# Process-wide feed used by the appointment store
appointment_feed = ChangeFeed()
