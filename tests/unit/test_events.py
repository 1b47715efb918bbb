"""
Unit tests for the event publisher and session store.
"""
import json
import uuid

from edustream.services.events import EventPublisher


class TestEventPublisher:
    def test_publish_envelope(self, events, fake_redis):
        course_id = uuid.uuid4()

        assert events.publish("course.created", {"courseId": course_id, "title": "Intro"}) is True

        channel, raw = fake_redis.published[0]
        message = json.loads(raw)
        assert channel == "events"
        assert message["event"] == "course.created"
        assert message["data"] == {"courseId": str(course_id), "title": "Intro"}
        assert "timestamp" in message

    def test_publish_failure_returns_false(self, events, fake_redis):
        fake_redis.fail_publish = True

        assert events.publish("payment.failed", {"userId": "u-1"}) is False
        assert fake_redis.published == []

    def test_custom_channel(self, fake_redis):
        EventPublisher(fake_redis, channel="edu-events").publish("x", {})

        assert fake_redis.published[0][0] == "edu-events"


class TestSessionStore:
    def test_save_get_revoke(self, session_store):
        session_store.save("u-1", "tok", 60)
        assert session_store.exists("u-1")
        assert session_store.get("u-1") == "tok"

        session_store.revoke("u-1")

        assert not session_store.exists("u-1")
        assert session_store.get("u-1") is None
