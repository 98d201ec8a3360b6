"""Event publisher module for pub/sub event publishing."""

import logging
from typing import Any
from pubsub import pub

logger = logging.getLogger(__name__)


class EventPublisher:
    """Publishes state-change events using pubsub.pub."""

    def __init__(self, topic: str):
        """Initialize event publisher.

        Args:
            topic: Pub/sub topic name for the events
        """
        self.topic = topic
        logger.debug(f"EventPublisher initialized with topic: {self.topic}")

    def publish(self, event: Any) -> None:
        """Publish an event to the pub/sub topic.

        Args:
            event: Event dataclass from voiceintake.models.events
        """
        pub.sendMessage(self.topic, event=event)
        logger.debug(f"Published {type(event).__name__} on {self.topic}")
