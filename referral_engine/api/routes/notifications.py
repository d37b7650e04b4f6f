from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request, Response, status

from referral_engine.api.deps import get_engine
from referral_engine.api.models import (
    MarkAllReadRequest,
    MarkAllReadResponse,
    NotificationsListResponse,
    as_notification_response,
)

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=NotificationsListResponse)
async def list_notifications(
    request: Request,
    user_id: str = Query(min_length=1, max_length=36),
    limit: int = Query(default=10, ge=1, le=100),
) -> NotificationsListResponse:
    engine = get_engine(request)
    items = await engine.list_notifications(user_id, limit=limit)
    unread_count = await engine.unread_count(user_id)
    return NotificationsListResponse(
        user_id=user_id,
        unread_count=unread_count,
        items=[as_notification_response(item) for item in items],
    )


@router.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_notification(notification_id: str, request: Request) -> Response:
    removed = await get_engine(request).dismiss(notification_id)
    if not removed:
        raise HTTPException(status_code=404, detail={"code": "E_NOTIFICATION_NOT_FOUND"})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/notifications/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    payload: MarkAllReadRequest,
    request: Request,
) -> MarkAllReadResponse:
    updated = await get_engine(request).mark_all_read(payload.user_id)
    return MarkAllReadResponse(user_id=payload.user_id, updated=updated)
