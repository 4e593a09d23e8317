"""
Journey, leg, waypoint and journey requirement models
"""
from datetime import datetime, date
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Integer, DateTime, Date, Enum as SqlEnum, Text, Boolean, Float,
    ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.sql import func
from app.db.postgres import Base
from app.db.models.boat import enum_values

if TYPE_CHECKING:
    from app.db.models.boat import Boat
    from app.db.models.registration import Registration


class JourneyState(str, Enum):
    IN_PLANNING = "In planning"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


class CostModel(str, Enum):
    SHARED = "Shared contribution"
    OWNER_COVERS = "Owner covers all costs"
    CREW_PAYS = "Crew pays a fee"
    DELIVERY = "Delivery/paid crew"
    NOT_DEFINED = "Not defined"


class QuestionType(str, Enum):
    TEXT = "text"
    YES_NO = "yes_no"
    MULTIPLE_CHOICE = "multiple_choice"
    RATING = "rating"


class Journey(Base):
    __tablename__ = "journeys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    boat_id: Mapped[int] = mapped_column(Integer, ForeignKey("boats.id", ondelete="CASCADE"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    risk_level: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    skills: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    min_experience_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cost_model: Mapped[CostModel] = mapped_column(
        SqlEnum(CostModel, native_enum=False, length=40, values_callable=enum_values),
        default=CostModel.NOT_DEFINED,
        nullable=False
    )
    state: Mapped[JourneyState] = mapped_column(
        SqlEnum(JourneyState, native_enum=False, length=20, values_callable=enum_values),
        default=JourneyState.IN_PLANNING,
        nullable=False,
        index=True
    )
    images: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # AI assessment of registrations
    auto_approval_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_approval_threshold: Mapped[int] = mapped_column(Integer, default=80, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    boat: Mapped["Boat"] = relationship("Boat", back_populates="journeys")
    legs: Mapped[list["Leg"]] = relationship(
        "Leg", back_populates="journey", cascade="all, delete-orphan", order_by="Leg.start_date"
    )
    requirements: Mapped[list["JourneyRequirement"]] = relationship(
        "JourneyRequirement",
        back_populates="journey",
        cascade="all, delete-orphan",
        order_by="JourneyRequirement.order"
    )


class Leg(Base):
    __tablename__ = "legs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    journey_id: Mapped[int] = mapped_column(Integer, ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    crew_needed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    skills: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    risk_level: Mapped[str | None] = mapped_column(String(30), nullable=True)
    min_experience_level: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Bounding box of all waypoints, recomputed on save
    bbox_min_lng: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    bbox_min_lat: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    bbox_max_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    bbox_max_lat: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    journey: Mapped["Journey"] = relationship("Journey", back_populates="legs")
    waypoints: Mapped[list["Waypoint"]] = relationship(
        "Waypoint", back_populates="leg", cascade="all, delete-orphan", order_by="Waypoint.index"
    )
    registrations: Mapped[list["Registration"]] = relationship(
        "Registration", back_populates="leg", cascade="all, delete-orphan"
    )


class Waypoint(Base):
    __tablename__ = "waypoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    leg_id: Mapped[int] = mapped_column(Integer, ForeignKey("legs.id", ondelete="CASCADE"), nullable=False, index=True)
    index: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = start, last = end
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("leg_id", "index", name="uq_waypoint_leg_index"),
    )

    leg: Mapped["Leg"] = relationship("Leg", back_populates="waypoints")


class JourneyRequirement(Base):
    """Question crew members answer when registering for a journey"""
    __tablename__ = "journey_requirements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    journey_id: Mapped[int] = mapped_column(Integer, ForeignKey("journeys.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        SqlEnum(QuestionType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False
    )
    options: Mapped[list | None] = mapped_column(JSON, nullable=True)  # multiple_choice only
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    weight: Mapped[int] = mapped_column(Integer, default=5, nullable=False)  # 0..10
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    journey: Mapped["Journey"] = relationship("Journey", back_populates="requirements")
