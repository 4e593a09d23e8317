"""
Crew registrations for legs and their answers to journey requirements
"""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, DateTime, Enum as SqlEnum, Text, Boolean, Float, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
from app.db.postgres import Base
from app.db.models.boat import enum_values

if TYPE_CHECKING:
    from app.db.models.user import User
    from app.db.models.journey import Leg, JourneyRequirement


class RegistrationStatus(str, Enum):
    PENDING = "Pending approval"
    APPROVED = "Approved"
    NOT_APPROVED = "Not approved"
    CANCELLED = "Cancelled"


class Registration(Base):
    __tablename__ = "registrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    leg_id: Mapped[int] = mapped_column(Integer, ForeignKey("legs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[RegistrationStatus] = mapped_column(
        SqlEnum(RegistrationStatus, native_enum=False, length=20, values_callable=enum_values),
        default=RegistrationStatus.PENDING,
        nullable=False,
        index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Skill/experience match at registration time
    match_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)

    # AI assessment
    ai_match_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_match_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("leg_id", "user_id", name="uq_registration_leg_user"),
    )

    leg: Mapped["Leg"] = relationship("Leg", back_populates="registrations")
    user: Mapped["User"] = relationship("User")
    answers: Mapped[list["RegistrationAnswer"]] = relationship(
        "RegistrationAnswer", back_populates="registration", cascade="all, delete-orphan"
    )


class RegistrationAnswer(Base):
    __tablename__ = "registration_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    registration_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requirement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("journey_requirements.id", ondelete="CASCADE"), nullable=False, index=True
    )
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)  # text / yes_no
    answer_json: Mapped[Any] = mapped_column(JSON, nullable=True)  # multiple_choice / rating

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("registration_id", "requirement_id", name="uq_registration_answer"),
    )

    registration: Mapped["Registration"] = relationship("Registration", back_populates="answers")
    requirement: Mapped["JourneyRequirement"] = relationship("JourneyRequirement")
