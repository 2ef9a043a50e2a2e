"""Background tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

MAX_DISPATCH_ATTEMPTS = 5
DISPATCH_BATCH_SIZE = 100


@shared_task(name="core.dispatch_outbox_events")
def dispatch_outbox_events(batch_size: int = DISPATCH_BATCH_SIZE) -> dict:
    """Publish pending outbox events to the in-process event bus.

    Rows are locked with ``SKIP LOCKED`` so concurrent workers never deliver
    the same event twice.  A failing handler marks its row ``FAILED``; it is
    retried on the next run until ``MAX_DISPATCH_ATTEMPTS`` is reached.
    """
    published = failed = 0

    with transaction.atomic():
        rows = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(
                status__in=[EventStatus.PENDING, EventStatus.FAILED],
                retry_count__lt=MAX_DISPATCH_ATTEMPTS,
            )
            .order_by("created_at")[:batch_size]
        )
        for row in rows:
            log = logger.bind(
                outbox_id=str(row.id),
                event_type=row.event_type,
                aggregate_id=row.aggregate_id,
            )
            try:
                event = DomainEvent.from_payload(row.event_type, row.payload)
                event_bus.publish(event)
            except Exception as exc:  # handler failures must not stop the batch
                row.mark_as_failed(str(exc))
                failed += 1
                log.warning("outbox.dispatch_failed", error=str(exc))
                continue
            row.mark_as_published()
            published += 1
            log.info("outbox.dispatched")

    return {"published": published, "failed": failed}
