"""
Admin Feedback Management API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_admin
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.models.user import User
from app.db.postgres import get_db
from app.services.feedback.schemas import AdminFeedbackStatusUpdate, FeedbackResponse, FeedbackStatsResponse
from app.services.feedback.service import FeedbackService

router = APIRouter(prefix="/admin/feedback", tags=["admin-feedback"])


@router.get("/stats", response_model=FeedbackStatsResponse)
def get_feedback_stats(
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Public feedback counts by type and status"""
    return FeedbackService(db).get_stats()


@router.patch("/{feedback_id}/status", response_model=FeedbackResponse)
def update_feedback_status(
    feedback_id: int,
    payload: AdminFeedbackStatusUpdate,
    current_admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    service = FeedbackService(db)
    try:
        feedback = service.update_status(feedback_id, current_admin, payload.status, payload.status_note)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return service.serialize(feedback, current_admin)
