"""
Feedback API endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user, get_optional_user
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.models.feedback import FeedbackStatusEnum, FeedbackType
from app.db.models.user import User
from app.db.postgres import get_db
from app.services.feedback.schemas import (
    DismissPromptRequest,
    FeedbackCreateRequest,
    FeedbackListResponse,
    FeedbackResponse,
    FeedbackSort,
    FeedbackUpdateRequest,
    FeedbackVoteRequest,
    FeedbackVoteResponse,
    PromptStatusResponse,
)
from app.services.feedback.service import FeedbackService

router = APIRouter(prefix="/feedback", tags=["feedback"])


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    payload: FeedbackCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = FeedbackService(db)
    feedback = service.create_feedback(current_user, payload)
    return service.serialize(feedback, current_user)


@router.get("", response_model=FeedbackListResponse)
def list_feedback(
    type: Optional[FeedbackType] = Query(None),
    status_filter: Optional[FeedbackStatusEnum] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    sort: FeedbackSort = Query(FeedbackSort.NEWEST),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Community feedback list; anonymous items hide their author"""
    return FeedbackService(db).list_feedback(
        viewer=current_user,
        type=type,
        status=status_filter,
        search=search,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.get("/mine", response_model=FeedbackListResponse)
def list_my_feedback(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return FeedbackService(db).list_my_feedback(current_user, page, limit)


@router.get("/prompts", response_model=PromptStatusResponse)
def get_prompt_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Whether the post-journey and general feedback prompts should be shown"""
    return FeedbackService(db).get_prompt_status(current_user)


@router.post("/prompts/dismiss")
def dismiss_prompt(
    payload: DismissPromptRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    dismissal = FeedbackService(db).dismiss_prompt(current_user, payload.prompt_type, payload.dismiss_days)
    return {
        "success": True,
        "prompt_type": dismissal.prompt_type,
        "dismiss_until": dismissal.dismiss_until,
    }


@router.get("/{feedback_id}", response_model=FeedbackResponse)
def get_feedback(
    feedback_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        return FeedbackService(db).get_feedback(feedback_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.patch("/{feedback_id}", response_model=FeedbackResponse)
def update_feedback(
    feedback_id: int,
    payload: FeedbackUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = FeedbackService(db)
    try:
        feedback = service.update_feedback(feedback_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return service.serialize(feedback, current_user)


@router.delete("/{feedback_id}")
def delete_feedback(
    feedback_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        FeedbackService(db).delete_feedback(feedback_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


@router.post("/{feedback_id}/vote", response_model=FeedbackVoteResponse)
def vote_feedback(
    feedback_id: int,
    payload: FeedbackVoteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Upvote (1), downvote (-1) or remove the vote (0)"""
    try:
        return FeedbackService(db).vote(feedback_id, current_user, payload.vote)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
