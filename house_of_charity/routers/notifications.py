# house_of_charity/routers/notifications.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from house_of_charity.deps import get_current_user, get_repo
from house_of_charity.schemas import MarkReadIn

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_mine(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    limit: Optional[int] = Query(default=None, ge=1),
    user=Depends(get_current_user),
    repo=Depends(get_repo),
):
    notifications = await repo.list_notifications(user["id"], unread_only=unread_only, limit=limit)
    return {
        "notifications": notifications,
        "unreadCount": await repo.count_unread_notifications(user["id"]),
    }


@router.post("/mark-read")
async def mark_read(
    body: Optional[MarkReadIn] = None,
    user=Depends(get_current_user),
    repo=Depends(get_repo),
):
    ids = body.ids if body else None
    updated = await repo.mark_notifications_read(user["id"], ids)
    return {
        "updated": updated,
        "unreadCount": await repo.count_unread_notifications(user["id"]),
    }
