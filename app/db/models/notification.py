"""
In-app notifications and per-user email preferences
"""
from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, Text, Boolean, ForeignKey, JSON
from sqlalchemy.sql import func
from app.db.postgres import Base


class NotificationType(str, Enum):
    REGISTRATION_APPROVED = "registration_approved"
    REGISTRATION_DENIED = "registration_denied"
    NEW_REGISTRATION = "new_registration"
    PENDING_REGISTRATION = "pending_registration"
    JOURNEY_UPDATED = "journey_updated"
    LEG_UPDATED = "leg_updated"
    PROFILE_REMINDER = "profile_reminder"
    AI_AUTO_APPROVED = "ai_auto_approved"
    AI_REVIEW_NEEDED = "ai_review_needed"
    FEEDBACK_STATUS_CHANGED = "feedback_status_changed"
    FEEDBACK_MILESTONE = "feedback_milestone"
    LOW_STOCK = "low_stock"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    # journey_id, registration_id, sender_name, ...
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


class EmailPreferences(Base):
    __tablename__ = "email_preferences"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    registration_updates: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    journey_updates: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    profile_reminders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )
