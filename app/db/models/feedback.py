"""
Platform feedback model
Bug reports and feature requests with public voting (upvote/downvote)
"""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Enum as SqlEnum, Text, Boolean, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.sql import func
from app.db.postgres import Base
from app.db.models.boat import enum_values

if TYPE_CHECKING:
    from app.db.models.user import User


class FeedbackType(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"
    OTHER = "other"


class FeedbackStatusEnum(str, Enum):
    NEW = "new"
    UNDER_REVIEW = "under_review"
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DECLINED = "declined"


class Feedback(Base):
    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type: Mapped[FeedbackType] = mapped_column(
        SqlEnum(FeedbackType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Where the feedback was submitted from, e.g. "/crew/dashboard"
    context_page: Mapped[str | None] = mapped_column(String(100), nullable=True)
    context_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    status: Mapped[FeedbackStatusEnum] = mapped_column(
        SqlEnum(FeedbackStatusEnum, native_enum=False, length=20, values_callable=enum_values),
        default=FeedbackStatusEnum.NEW,
        nullable=False,
        index=True
    )
    status_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status_changed_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Denormalised vote counters
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], back_populates="feedbacks")
    status_changer: Mapped["User | None"] = relationship("User", foreign_keys=[status_changed_by])
    votes: Mapped[list["FeedbackVote"]] = relationship("FeedbackVote", back_populates="feedback", cascade="all, delete-orphan")

    @property
    def vote_score(self) -> int:
        return (self.upvotes or 0) - (self.downvotes or 0)


class FeedbackVote(Base):
    __tablename__ = "feedback_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    feedback_id: Mapped[int] = mapped_column(Integer, ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vote: Mapped[int] = mapped_column(Integer, nullable=False)  # 1 or -1

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # One vote per user per feedback
    __table_args__ = (
        UniqueConstraint("feedback_id", "user_id", name="uq_feedback_vote_user"),
    )

    feedback: Mapped["Feedback"] = relationship("Feedback", back_populates="votes")
    user: Mapped["User"] = relationship("User")


class FeedbackPromptDismissal(Base):
    __tablename__ = "feedback_prompt_dismissals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    prompt_type: Mapped[str] = mapped_column(String(50), nullable=False)  # post_journey, post_registration, general
    dismissed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    dismiss_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)  # None = forever

    __table_args__ = (
        UniqueConstraint("user_id", "prompt_type", name="uq_feedback_prompt_dismissal"),
    )
