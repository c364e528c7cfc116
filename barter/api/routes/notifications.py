"""Routes exposing the notification outbox and push token registration."""

from __future__ import annotations

from fastapi import APIRouter, status

from barter.models.notification import (
    Notification,
    PushRegistration,
    PushTokenRequest,
)
from barter.services.identity import RequiredUserDependency
from barter.services.notifications.outbox import NotificationOutboxDependency
from barter.services.notifications.push_tokens import PushTokenRegistryDependency

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[Notification])
async def list_notifications(
    user_id: RequiredUserDependency,
    outbox: NotificationOutboxDependency,
) -> list[Notification]:
    return await outbox.list_for(user_id)


@router.post("/read-all")
async def mark_all_read(
    user_id: RequiredUserDependency,
    outbox: NotificationOutboxDependency,
) -> dict[str, int]:
    return {"updated": await outbox.mark_all_read(user_id)}


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: str,
    user_id: RequiredUserDependency,
    outbox: NotificationOutboxDependency,
) -> Notification:
    return await outbox.mark_read(user_id, notification_id)


@router.put(
    "/push-token",
    response_model=PushRegistration,
    summary="Register the device token that receives bid notifications",
)
async def register_push_token(
    payload: PushTokenRequest,
    user_id: RequiredUserDependency,
    tokens: PushTokenRegistryDependency,
) -> PushRegistration:
    return await tokens.register(user_id, payload.token)


@router.delete("/push-token", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_push_token(
    user_id: RequiredUserDependency,
    tokens: PushTokenRegistryDependency,
) -> None:
    await tokens.unregister(user_id)
