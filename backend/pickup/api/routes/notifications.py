"""
Notification preferences and the queue worker trigger.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.db.session import get_db
from pickup.schemas.notification import (
    NotificationSettingsResponse, NotificationSettingsUpdate, WorkerRunResponse,
)
from pickup.services.interfaces.push_provider import PushProvider
from pickup.services.notification_service import (
    get_notification_settings, update_notification_settings,
)
from pickup.services.notification_worker import run_notification_worker
from pickup.services.provider_factory import get_push_provider
from pickup.core.security import get_current_player_id

router = APIRouter(tags=["Notifications"])


@router.post("/notifications/process", response_model=WorkerRunResponse)
async def process_notifications_endpoint(
    db: AsyncSession = Depends(get_db),
    provider: PushProvider = Depends(get_push_provider),
):
    """Drain one batch of due notifications. Meant for a scheduler."""
    result = await run_notification_worker(db, provider)
    return WorkerRunResponse(**result.to_dict())


@router.get("/notifications/settings", response_model=NotificationSettingsResponse)
async def get_settings_endpoint(
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_notification_settings(db, player_id)


@router.put("/notifications/settings", response_model=NotificationSettingsResponse)
async def update_settings_endpoint(
    changes: NotificationSettingsUpdate,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    return await update_notification_settings(db, player_id, changes.model_dump(exclude_none=True))

