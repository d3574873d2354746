"""HTTP routes for reminder settings and delivered notifications."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import get_notifier, get_scheduler, get_store
from api.models.schemas import NotificationMessage, NotificationSettings, SuccessResponse
from api.services.code_store import CodeStore
from scheduler.notifier import InboxNotifier, build_test_message
from scheduler.service import NotificationScheduler

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get("/notification-settings", response_model=NotificationSettings)
async def get_notification_settings(store: CodeStore = Depends(get_store)) -> NotificationSettings:
    return store.get_notification_settings()


@router.put("/notification-settings", response_model=NotificationSettings)
async def update_notification_settings(
    request: NotificationSettings,
    store: CodeStore = Depends(get_store),
    scheduler: NotificationScheduler = Depends(get_scheduler),
) -> NotificationSettings:
    store.update_notification_settings(request)
    scheduler.update_settings(store.get_notification_settings())
    return store.get_notification_settings()


@router.get("/notifications", response_model=List[NotificationMessage])
async def list_notifications(notifier: InboxNotifier = Depends(get_notifier)) -> List[NotificationMessage]:
    """Reminders delivered during this session, newest first."""

    return notifier.messages()


@router.post("/notifications/test", response_model=SuccessResponse)
async def send_test_notification(notifier: InboxNotifier = Depends(get_notifier)) -> SuccessResponse:
    if not notifier.is_supported():
        return SuccessResponse(success=False)
    notifier.deliver(build_test_message())
    return SuccessResponse(success=True)


@router.delete("/notifications", response_model=SuccessResponse)
async def clear_notifications(notifier: InboxNotifier = Depends(get_notifier)) -> SuccessResponse:
    notifier.clear()
    return SuccessResponse(success=True)
