"""
Notification queue worker.

Each run drains one batch of due notifications:

  1. SELECT up to BATCH_LIMIT pending rows with scheduled_for <= now,
     oldest first, together with the recipient's push token
  2. Rows whose recipient has no valid Expo token fail immediately
  3. Everything else goes to the provider in ONE call
  4. Each row moves pending -> sent | failed with an UPDATE conditional on
     status = 'pending', so a row is never transitioned twice even when two
     workers overlap

If the provider call itself fails, the deliverable rows stay pending and are
picked up again by the next run. Only a failure to read the queue escapes
to the caller.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.exceptions import ProviderUnavailable
from pickup.core.logging import get_logger
from pickup.core.metrics import push_provider_errors, record_notification
from pickup.models.notification import NotificationQueueItem
from pickup.models.player import Player
from pickup.services.interfaces.push_provider import PushMessage, PushProvider, PushTicket
from pickup.utils.datetime_utils import utcnow

logger = get_logger(__name__)

BATCH_LIMIT = 50
PUSH_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")
INVALID_TOKEN_ERROR = "Invalid or missing push token"


@dataclass
class WorkerResult:
    processed: int = 0
    sent: int = 0
    failed: int = 0
    deferred: int = 0
    provider_error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def is_valid_push_token(token: Optional[str]) -> bool:
    return bool(token) and token.startswith(PUSH_TOKEN_PREFIXES)


async def _mark(
    db: AsyncSession,
    item_id: int,
    status: str,
    sent_at: Optional[datetime] = None,
    error: Optional[str] = None,
) -> bool:
    values = {"status": status}
    if sent_at is not None:
        values["sent_at"] = sent_at
    if error is not None:
        values["error"] = error[:255]
    result = await db.execute(
        update(NotificationQueueItem)
        .where(NotificationQueueItem.id == item_id, NotificationQueueItem.status == "pending")
        .values(**values)
    )
    return result.rowcount > 0


async def run_notification_worker(
    db: AsyncSession,
    provider: PushProvider,
    now: Optional[datetime] = None,
    limit: int = BATCH_LIMIT,
) -> WorkerResult:
    now = now or utcnow()

    rows = await db.execute(
        select(NotificationQueueItem, Player.push_token)
        .outerjoin(Player, Player.id == NotificationQueueItem.user_id)
        .where(
            NotificationQueueItem.status == "pending",
            NotificationQueueItem.scheduled_for <= now,
        )
        .order_by(NotificationQueueItem.scheduled_for.asc(), NotificationQueueItem.id.asc())
        .limit(limit)
    )
    batch = rows.all()
    result = WorkerResult(processed=len(batch))
    if not batch:
        return result

    deliverable = [(item, token) for item, token in batch if is_valid_push_token(token)]
    undeliverable = [item for item, token in batch if not is_valid_push_token(token)]

    tickets: Optional[list[PushTicket]] = None
    if deliverable:
        messages = [
            PushMessage(to=token, title=item.title, body=item.body, data=item.data or {})
            for item, token in deliverable
        ]
        try:
            tickets = await provider.send(messages)
        except ProviderUnavailable as e:
            push_provider_errors.inc()
            result.deferred = len(deliverable)
            result.provider_error = str(e)
            logger.error("push_batch_failed", batch_size=len(deliverable), error=str(e))

    for item in undeliverable:
        if await _mark(db, item.id, "failed", sent_at=now, error=INVALID_TOKEN_ERROR):
            result.failed += 1

    if tickets is not None:
        if len(tickets) != len(deliverable):
            # No usable per-message detail; the accepted call stands for the batch
            if tickets:
                logger.warning("push_ticket_count_mismatch", expected=len(deliverable), received=len(tickets))
            tickets = [None] * len(deliverable)
        for (item, _), ticket in zip(deliverable, tickets):
            if ticket is None or ticket.ok:
                if await _mark(db, item.id, "sent", sent_at=now):
                    result.sent += 1
            elif await _mark(db, item.id, "failed", sent_at=now, error=ticket.error or "error"):
                result.failed += 1

    await db.commit()

    record_notification("sent", result.sent)
    record_notification("failed", result.failed)
    record_notification("deferred", result.deferred)
    logger.info("notification_batch_processed", **result.to_dict())
    return result
