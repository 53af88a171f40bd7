"""Document lifecycle notifications.

The pipeline publishes an event after each successful write so that
collaborators needing live updates (admin dashboards, cache invalidation)
can react without polling the store.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from kb_assist.core.logging import get_logger
from kb_assist.utils.time import utc_now

logger = get_logger(__name__)

DOCUMENT_INGESTED = "document.ingested"
DOCUMENT_DELETED = "document.deleted"


@dataclass(slots=True)
class DocumentEvent:
    type: str
    document_ids: list[str]
    source_url: str | None = None
    timestamp: str = field(default_factory=lambda: utc_now().isoformat())


Subscriber = Callable[[DocumentEvent], Union[None, Awaitable[None]]]


class EventPublisher:
    """In-process fan-out of document events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def publish(self, event: DocumentEvent) -> None:
        # The write already happened; a failing subscriber must not turn it
        # into a reported ingestion failure.
        for callback in list(self._subscribers):
            try:
                result: Any = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Subscriber failed for event %s", event.type)


__all__ = ["DOCUMENT_INGESTED", "DOCUMENT_DELETED", "DocumentEvent", "EventPublisher"]
