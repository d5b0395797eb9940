# Overview: Injected, fire-and-forget event publishing for lifecycle operations.

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Protocol


Handler = Callable[[str, dict[str, Any], "int | None"], None]


class EventPublisher(Protocol):
    def publish(self, event_name: str, payload: dict[str, Any], tenant_id: int | None = None) -> None:
        ...


class LoggingPublisher:
    """
    Default publisher. Logs each event and fans out to subscribed handlers.

    Handler failures are logged, never raised to the publishing operation.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._logger = logger or logging.getLogger(__name__)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def publish(self, event_name: str, payload: dict[str, Any], tenant_id: int | None = None) -> None:
        self._logger.info("Event %s for tenant %s", event_name, tenant_id)
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_name, payload, tenant_id)
            except Exception:
                self._logger.exception("Event handler failed for %s", event_name)


class RecordingPublisher:
    """Keeps published events in memory for inspection in tests."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any], int | None]] = []

    def publish(self, event_name: str, payload: dict[str, Any], tenant_id: int | None = None) -> None:
        self.events.append((event_name, payload, tenant_id))

    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]

    def clear(self) -> None:
        self.events.clear()


def publish_safely(publisher: EventPublisher | None, event_name: str, payload: dict, tenant_id: int | None, logger) -> None:
    """Publish after commit. A failing publisher never fails the operation."""
    if publisher is None:
        return
    try:
        publisher.publish(event_name, payload, tenant_id=tenant_id)
    except Exception:
        logger.exception("Publishing %s failed for tenant %s", event_name, tenant_id)
