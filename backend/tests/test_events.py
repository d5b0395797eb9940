# Overview: Pytest coverage for event publishing after committed changes.

import logging

from opsdesk.services import quote_service
from opsdesk.services.event_service import LoggingPublisher, publish_safely

from conftest import context_for, quote_body


class ExplodingPublisher:
    def publish(self, event_name, payload, tenant_id=None):
        raise RuntimeError("broker down")


def test_subscribers_receive_events():
    publisher = LoggingPublisher(logging.getLogger("test.events"))
    received = []
    publisher.subscribe("quote:created", lambda name, payload, tenant_id: received.append((name, tenant_id)))

    publisher.publish("quote:created", {"id": 1}, tenant_id=7)
    publisher.publish("quote:deleted", {"id": 1}, tenant_id=7)

    assert received == [("quote:created", 7)]


def test_failing_handler_is_logged_not_raised(caplog):
    publisher = LoggingPublisher(logging.getLogger("test.events"))
    publisher.subscribe("invoice:created", lambda *args: 1 / 0)
    seen = []
    publisher.subscribe("invoice:created", lambda *args: seen.append(args[0]))

    with caplog.at_level(logging.ERROR, logger="test.events"):
        publisher.publish("invoice:created", {}, tenant_id=1)

    assert seen == ["invoice:created"]
    assert "Event handler failed for invoice:created" in caplog.text


def test_publish_safely_swallows_publisher_failure(caplog):
    logger = logging.getLogger("test.events")
    with caplog.at_level(logging.ERROR, logger="test.events"):
        publish_safely(ExplodingPublisher(), "quote:updated", {}, 3, logger)
    assert "Publishing quote:updated failed" in caplog.text


def test_broken_publisher_does_not_fail_creation(db_session, users_a):
    ctx = context_for(users_a["employee"])

    result = quote_service.create_quote(ctx, quote_body(), publisher=ExplodingPublisher())

    assert result.is_ok
    assert result.value.id is not None


def test_failed_operation_publishes_nothing(db_session, users_a, publisher):
    ctx = context_for(users_a["employee"])

    result = quote_service.create_quote(ctx, {"items": [{"quantity": 0, "unitPrice": 1}]}, publisher=publisher)

    assert not result.is_ok
    assert publisher.events == []
