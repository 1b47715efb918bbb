"""
Process-scoped resource handles.

Resources are opened explicitly by the application's startup hook, stored on
app.state and closed on shutdown. Route handlers reach them through the
dependency functions below, which tests replace via dependency_overrides.
"""
import logging
from typing import Optional

import stripe
from fastapi import Request
from redis import Redis

from edustream.core.config import Settings
from edustream.services.events import EventPublisher
from edustream.services.session_store import SessionStore
from edustream.services.storage import FileStorage

logger = logging.getLogger(__name__)


class Resources:
    """Connections shared by all requests of one service process."""

    def __init__(
        self,
        redis_client: Redis,
        file_storage: Optional[FileStorage] = None,
        events_channel: str = "events",
    ):
        self.redis = redis_client
        self.sessions = SessionStore(redis_client)
        self.events = EventPublisher(redis_client, channel=events_channel)
        self.file_storage = file_storage

    @classmethod
    def open(cls, settings: Settings, with_storage: bool = False, with_stripe: bool = False) -> "Resources":
        redis_client = Redis.from_url(settings.redis_url, socket_timeout=5, socket_connect_timeout=5)

        file_storage = FileStorage() if with_storage else None

        if with_stripe:
            if not settings.stripe_secret_key:
                logger.warning("STRIPE_SECRET_KEY is not set; subscription endpoints will fail")
            stripe.api_key = settings.stripe_secret_key or None

        return cls(redis_client, file_storage=file_storage, events_channel=settings.events_channel)

    def close(self) -> None:
        try:
            self.redis.close()
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Error closing redis client: {e}")


def get_resources(request: Request) -> Resources:
    return request.app.state.resources


def get_session_store(request: Request) -> SessionStore:
    return get_resources(request).sessions


def get_event_publisher(request: Request) -> EventPublisher:
    return get_resources(request).events


def get_file_storage(request: Request) -> FileStorage:
    storage = get_resources(request).file_storage
    if storage is None:
        raise RuntimeError("File storage is not configured for this service")
    return storage
