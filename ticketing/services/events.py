"""
Ticketing Event Bus

Named topics, async subscribers. One bus instance is shared by the
publisher (ticket service) and its consumers (timeline listener).
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List

from .errors import EventPublishError

logger = logging.getLogger("event_bus")

Handler = Callable[[Any], Awaitable[None]]


class Topic(str, Enum):
    TICKET_UPDATED = "ticketing:ticket:updated"
    TICKET_NOTIFICATION = "ticketing:notification:ticket:updated"


class EventBus:

    def __init__(self):
        self._subscribers: Dict[Topic, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: Topic, handler: Handler) -> None:
        self._subscribers[topic].append(handler)

    async def publish(self, topic: Topic, message: Any) -> None:
        """
        Deliver message to every subscriber of topic.

        Raises EventPublishError once all subscribers ran if any of
        them failed.
        """
        handlers = self._subscribers[topic]
        logger.debug("publish %s to %d subscriber(s)", topic.value, len(handlers))

        failures = []
        for handler in handlers:
            try:
                await handler(message)
            except Exception as exc:
                failures.append(exc)

        if failures:
            raise EventPublishError(
                f"{len(failures)} subscriber(s) of {topic.value} failed: {failures[0]}"
            ) from failures[0]
