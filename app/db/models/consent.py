"""
GDPR consent state and its audit trail
"""
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, Text, Boolean, ForeignKey, JSON
from sqlalchemy.sql import func
from app.db.postgres import Base


def default_cookie_preferences() -> dict:
    return {"essential": True, "analytics": False, "marketing": False}


class UserConsent(Base):
    __tablename__ = "user_consents"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    # Legal consents (required)
    privacy_policy_accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    terms_accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optional consents
    ai_processing_consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_processing_consent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    profile_sharing_consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    profile_sharing_consent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    marketing_consent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    marketing_consent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    cookie_preferences: Mapped[dict] = mapped_column(JSON, default=default_cookie_preferences, nullable=False)
    cookie_preferences_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )


class ConsentAuditLog(Base):
    __tablename__ = "consent_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Kept after account deletion, so no FK to users
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    consent_type: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # granted, revoked, updated
    old_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
