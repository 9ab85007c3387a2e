"""
Notification enqueueing and per-player notification preferences.

Everything here only writes notification_queue rows (inside the caller's
transaction, so a rolled-back join never leaves a "player joined" push
behind). Delivery is the queue worker's job.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.logging import get_logger
from pickup.models.notification import NotificationQueueItem, NotificationSettings
from pickup.models.player import Player
from pickup.models.sport import Sport
from pickup.services.lifecycle import LifecyclePolicy, get_lifecycle_policy
from pickup.utils.datetime_utils import as_utc, utcnow

logger = get_logger(__name__)

PLAYER_JOINED = "player_joined"
CHAT_MESSAGE = "chat_message"
CHAT_PREVIEW_LENGTH = 50

SETTING_FIELDS = (
    "notify_30min_before_game",
    "notify_5min_before_game",
    "notify_new_chat_message",
    "notify_player_joins_game",
)


def reminder_type(offset_minutes: int) -> str:
    return f"game_{offset_minutes}min_reminder"


def _reminder_setting(offset_minutes: int) -> str:
    return f"notify_{offset_minutes}min_before_game"


def _wants(settings: Optional[NotificationSettings], field: str) -> bool:
    """Players without a settings row get the defaults (everything on)."""
    if settings is None:
        return True
    return bool(getattr(settings, field, True))


async def enqueue_notification(
    db: AsyncSession,
    user_id: int,
    notification_type: str,
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
    game_id: Optional[int] = None,
    scheduled_for: Optional[datetime] = None,
) -> NotificationQueueItem:
    """
    Add a pending push for `user_id`. Flushes, does not commit.

    Raises:
        ValueError: If required fields are missing
    """
    if not user_id:
        raise ValueError("user_id is required")
    if not title:
        raise ValueError("title is required")
    if not body:
        raise ValueError("body is required")

    item = NotificationQueueItem(
        user_id=user_id,
        notification_type=notification_type,
        game_id=game_id,
        title=title,
        body=body,
        data=data or {},
        scheduled_for=scheduled_for or utcnow(),
        status="pending",
    )
    db.add(item)
    await db.flush()
    return item


async def _settings_by_user(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, NotificationSettings]:
    ids = list(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(NotificationSettings).where(NotificationSettings.user_id.in_(ids)))
    return {row.user_id: row for row in result.scalars().all()}


async def _username(db: AsyncSession, player_id: int) -> str:
    result = await db.execute(select(Player.username).where(Player.id == player_id))
    return result.scalar_one_or_none() or "Someone"


async def _sport_name(db: AsyncSession, sport_id: int) -> str:
    result = await db.execute(select(Sport.name).where(Sport.id == sport_id))
    return result.scalar_one_or_none() or "pickup"


async def notify_player_joined(
    db: AsyncSession,
    game,
    joiner_id: int,
    roster_ids: Iterable[int],
) -> int:
    """Queue a "player joined" push for every other member who wants one."""
    recipients = [pid for pid in roster_ids if pid != joiner_id]
    if not recipients:
        return 0

    settings = await _settings_by_user(db, recipients)
    joiner = await _username(db, joiner_id)
    sport = await _sport_name(db, game.sport_id)

    queued = 0
    for recipient in recipients:
        if not _wants(settings.get(recipient), "notify_player_joins_game"):
            continue
        await enqueue_notification(
            db,
            user_id=recipient,
            notification_type=PLAYER_JOINED,
            title="Player Joined",
            body=f"{joiner} joined your {sport} game",
            data={"type": PLAYER_JOINED, "game_id": game.id, "player_name": joiner},
            game_id=game.id,
        )
        queued += 1
    return queued


async def notify_chat_message(
    db: AsyncSession,
    game_id: int,
    sender_id: int,
    body: str,
    roster_ids: Iterable[int],
) -> int:
    recipients = [pid for pid in roster_ids if pid != sender_id]
    if not recipients:
        return 0

    settings = await _settings_by_user(db, recipients)
    sender = await _username(db, sender_id)
    preview = body if len(body) <= CHAT_PREVIEW_LENGTH else body[:CHAT_PREVIEW_LENGTH] + "..."

    queued = 0
    for recipient in recipients:
        if not _wants(settings.get(recipient), "notify_new_chat_message"):
            continue
        await enqueue_notification(
            db,
            user_id=recipient,
            notification_type=CHAT_MESSAGE,
            title="New Message",
            body=f"{sender}: {preview}",
            data={"type": CHAT_MESSAGE, "game_id": game_id, "sender_name": sender, "message": body},
            game_id=game_id,
        )
        queued += 1
    return queued


async def schedule_game_reminders(
    db: AsyncSession,
    game,
    player_id: int,
    now: Optional[datetime] = None,
    policy: Optional[LifecyclePolicy] = None,
) -> int:
    """Queue the pre-game reminders for one player that are still in the future."""
    policy = policy or get_lifecycle_policy()
    now = as_utc(now or utcnow())
    starts_at = as_utc(game.scheduled_time)

    settings = (await _settings_by_user(db, [player_id])).get(player_id)
    sport = None

    queued = 0
    for offset in policy.reminder_offsets_minutes:
        send_at = starts_at - timedelta(minutes=offset)
        if send_at <= now or not _wants(settings, _reminder_setting(offset)):
            continue
        if sport is None:
            sport = await _sport_name(db, game.sport_id)
        await enqueue_notification(
            db,
            user_id=player_id,
            notification_type=reminder_type(offset),
            title="Game Reminder",
            body=f"Your {sport} game starts in {offset} minutes",
            data={"type": "game_reminder", "game_id": game.id, "minutes_until": offset},
            game_id=game.id,
            scheduled_for=send_at,
        )
        queued += 1
    return queued


async def cancel_pending_reminders(
    db: AsyncSession,
    game_id: int,
    player_id: int,
    policy: Optional[LifecyclePolicy] = None,
) -> int:
    """Drop a leaver's reminders that have not been picked up yet."""
    policy = policy or get_lifecycle_policy()
    types = [reminder_type(offset) for offset in policy.reminder_offsets_minutes]
    result = await db.execute(
        delete(NotificationQueueItem).where(
            NotificationQueueItem.user_id == player_id,
            NotificationQueueItem.game_id == game_id,
            NotificationQueueItem.status == "pending",
            NotificationQueueItem.notification_type.in_(types),
        )
    )
    return result.rowcount or 0


async def get_notification_settings(db: AsyncSession, user_id: int) -> NotificationSettings:
    """Fetch a player's settings, creating the defaults on first access."""
    result = await db.execute(select(NotificationSettings).where(NotificationSettings.user_id == user_id))
    settings = result.scalar_one_or_none()
    if settings is None:
        settings = NotificationSettings(user_id=user_id, **{name: True for name in SETTING_FIELDS})
        db.add(settings)
        await db.commit()
        await db.refresh(settings)
        logger.info("notification_settings_created", user_id=user_id)
    return settings


async def update_notification_settings(
    db: AsyncSession,
    user_id: int,
    changes: Dict[str, bool],
) -> NotificationSettings:
    settings = await get_notification_settings(db, user_id)
    for name, value in changes.items():
        if name in SETTING_FIELDS and value is not None:
            setattr(settings, name, value)
    await db.commit()
    await db.refresh(settings)
    logger.info("notification_settings_updated", user_id=user_id, changes=changes)
    return settings


async def save_push_token(db: AsyncSession, player_id: int, token: Optional[str]) -> Optional[Player]:
    result = await db.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if player is None:
        return None
    player.push_token = token or None
    await db.commit()
    logger.info("push_token_saved", player_id=player_id, has_token=bool(token))
    return player
