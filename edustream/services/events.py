"""
Best-effort domain event publishing over redis pub/sub.

Publishing never raises: a failed publish is logged and dropped.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class EventPublisher:
    """Fire-and-forget publisher for cross-service notifications."""

    def __init__(self, client: Redis, channel: str = "events"):
        self.client = client
        self.channel = channel

    def publish(self, event: str, data: Dict[str, Any]) -> bool:
        """
        Publish an event.

        Args:
            event: Event name, e.g. "course.created"
            data: JSON-serializable payload (UUIDs and datetimes are stringified)

        Returns:
            True if the bus accepted the message, False otherwise
        """
        message = json.dumps(
            {
                "event": event,
                "data": data,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            default=str,
        )
        try:
            self.client.publish(self.channel, message)
        except (RedisError, OSError) as e:
            logger.error(f"Event publish error for {event}: {e}")
            return False

        logger.debug(f"Published event {event}")
        return True
