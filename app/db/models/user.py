from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Text, Boolean, JSON
from sqlalchemy.sql import func
from app.db.postgres import Base

if TYPE_CHECKING:
    from app.db.models.boat import Boat
    from app.db.models.feedback import Feedback


class UserRole(str, Enum):
    OWNER = "owner"
    CREW = "crew"


class RiskLevel(str, Enum):
    COASTAL = "Coastal sailing"
    OFFSHORE = "Offshore sailing"
    EXTREME = "Extreme sailing"


EXPERIENCE_LEVEL_NAMES = {
    1: "Beginner",
    2: "Competent Crew",
    3: "Coastal Skipper",
    4: "Offshore Skipper",
}


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(120))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # ["owner"], ["crew"] or both
    roles: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Encrypted with the privacy protocol (confidential)
    phone_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Sailing profile
    user_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    certifications: Mapped[str | None] = mapped_column(Text, nullable=True)
    sailing_experience: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1..4
    risk_level: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    skills: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # canonical skill names
    sailing_preferences: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    language: Mapped[str] = mapped_column(String(5), default="en", nullable=False)

    profile_completion_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    profile_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_profile_reminder_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    boats: Mapped[list["Boat"]] = relationship(
        "Boat",
        back_populates="owner",
        cascade="all, delete-orphan"
    )
    feedbacks: Mapped[list["Feedback"]] = relationship(
        "Feedback",
        foreign_keys="[Feedback.user_id]",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    def has_role(self, role: UserRole | str) -> bool:
        value = role.value if isinstance(role, UserRole) else role
        return value in (self.roles or [])
