"""In-memory event bus used by the outbox dispatcher."""

from __future__ import annotations

from typing import Dict, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """Synchronous, in-process event bus.

    Handlers run in subscription order.  A handler exception propagates to
    the publisher so the outbox row can be marked as failed and retried.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> int:
        """Deliver ``event`` and return how many handlers received it."""
        handlers = self._handlers.get(type(event), [])
        for handler in handlers:
            handler.handle(event)
        if not handlers:
            logger.debug("event_bus.no_handlers", event_name=event.event_name)
        return len(handlers)


# Process-wide bus; handlers are subscribed from AppConfig.ready()
event_bus = InMemoryEventBus()
