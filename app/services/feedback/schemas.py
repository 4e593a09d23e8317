"""
Pydantic schemas for platform feedback
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.db.models.feedback import FeedbackStatusEnum, FeedbackType


class FeedbackSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    MOST_VOTES = "most_votes"
    LEAST_VOTES = "least_votes"


class FeedbackPromptType(str, Enum):
    POST_JOURNEY = "post_journey"
    POST_REGISTRATION = "post_registration"
    GENERAL = "general"


class FeedbackCreateRequest(BaseModel):
    """Request to submit feedback"""
    type: FeedbackType
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    context_page: Optional[str] = Field(None, max_length=100)
    context_metadata: Optional[dict[str, Any]] = None
    is_public: bool = True
    is_anonymous: bool = False


class FeedbackUpdateRequest(BaseModel):
    """Author edit; only the given fields change"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    is_public: Optional[bool] = None
    is_anonymous: Optional[bool] = None


class FeedbackVoteRequest(BaseModel):
    """1 = upvote, -1 = downvote, 0 = remove vote"""
    vote: int = Field(..., ge=-1, le=1)


class AuthorInfo(BaseModel):
    """Author info (hidden when anonymous)"""
    id: Optional[int] = None
    full_name: str = "Anonymous"
    is_anonymous: bool = False


class FeedbackResponse(BaseModel):
    id: int
    type: FeedbackType
    title: str
    description: Optional[str] = None
    context_page: Optional[str] = None
    status: FeedbackStatusEnum
    status_note: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    upvotes: int
    downvotes: int
    vote_score: int
    is_public: bool
    is_anonymous: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: AuthorInfo
    user_vote: Optional[int] = None  # 1, -1 or null
    is_owner: bool = False


class FeedbackListResponse(BaseModel):
    items: list[FeedbackResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class FeedbackVoteResponse(BaseModel):
    feedback_id: int
    upvotes: int
    downvotes: int
    vote_score: int
    user_vote: Optional[int] = None


class AdminFeedbackStatusUpdate(BaseModel):
    """Request to change status (admin only)"""
    status: FeedbackStatusEnum
    status_note: Optional[str] = Field(None, max_length=2000)


class FeedbackStatsResponse(BaseModel):
    total: int
    by_type: dict[str, int]
    by_status: dict[str, int]


class PostJourneyContext(BaseModel):
    journey_id: int
    journey_name: str
    leg_name: str


class PromptStatusResponse(BaseModel):
    show_post_journey_prompt: bool = False
    show_general_prompt: bool = False
    post_journey_context: Optional[PostJourneyContext] = None


class DismissPromptRequest(BaseModel):
    prompt_type: FeedbackPromptType
    dismiss_days: Optional[int] = Field(None, ge=1, le=365, description="Omit to dismiss forever")
