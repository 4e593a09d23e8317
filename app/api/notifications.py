"""
Notification API Endpoints
In-app notifications and email preferences of the current user
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.notification.schemas import (
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
    EmailPreferencesResponse,
    EmailPreferencesUpdateRequest,
)
from app.services.notification.service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationService(db).list_notifications(current_user, limit, offset, unread_only)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"unread_count": NotificationService(db).get_unread_count(current_user)}


@router.post("/read-all", response_model=MarkAllReadResponse)
def mark_all_as_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = NotificationService(db).mark_all_as_read(current_user)
    return {"success": True, "count": count}


@router.get("/preferences", response_model=EmailPreferencesResponse)
def get_email_preferences(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationService(db).get_email_preferences(current_user.id)


@router.put("/preferences", response_model=EmailPreferencesResponse)
def update_email_preferences(
    payload: EmailPreferencesUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationService(db).update_email_preferences(current_user, payload.model_dump())


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return NotificationService(db).mark_as_read(current_user, notification_id)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        NotificationService(db).delete_notification(current_user, notification_id)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}
