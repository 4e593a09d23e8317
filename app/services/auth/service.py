import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.core.privacy import get_privacy_protocol
from app.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    encrypt_phone,
    decrypt_phone,
)
from app.db.models.user import User, UserRole
from app.services.auth.schemas import UpdateProfileRequest, UserResponse
from app.services.matching.skill_matching import normalize_skill_names, round_half_up

logger = logging.getLogger(__name__)


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _empty_list(value) -> bool:
    return not isinstance(value, list) or len(value) == 0


# (name, label, section, is_missing); order is the display order
PROFILE_FIELDS = [
    ("username", "Username", "Basic Information", lambda u: _blank(u.username)),
    ("full_name", "Full Name", "Basic Information", lambda u: _blank(u.full_name)),
    ("phone", "Phone Number", "Basic Information", lambda u: _blank(u.phone_encrypted)),
    ("sailing_experience", "Sailing Experience Level", "Experience", lambda u: u.sailing_experience is None),
    ("risk_level", "Risk Level Preferences", "Experience", lambda u: _empty_list(u.risk_level)),
    ("skills", "Skills", "Skills", lambda u: _empty_list(u.skills)),
    ("sailing_preferences", "Sailing Preferences", "Preferences", lambda u: _blank(u.sailing_preferences)),
    ("roles", "Roles (Owner/Crew)", "Roles", lambda u: _empty_list(u.roles)),
]


def calculate_profile_completion(user: User) -> dict:
    """Per-field completion status and overall percentage of a profile"""
    fields = [
        {"name": name, "label": label, "section": section, "missing": is_missing(user)}
        for name, label, section, is_missing in PROFILE_FIELDS
    ]
    completed = sum(1 for field in fields if not field["missing"])
    total = len(fields)
    return {
        "percentage": round_half_up(completed / total * 100),
        "completed_count": completed,
        "total_count": total,
        "fields": fields,
        "missing_fields": [field for field in fields if field["missing"]],
    }


def refresh_profile_completion(user: User) -> int:
    """Store the current completion percentage on the user (caller commits)"""
    percentage = calculate_profile_completion(user)["percentage"]
    user.profile_completion_percentage = percentage
    if percentage == 100 and user.profile_completed_at is None:
        user.profile_completed_at = datetime.now(timezone.utc)
    elif percentage < 100:
        user.profile_completed_at = None
    return percentage


def read_phone(user: User) -> str | None:
    if not user.phone_encrypted:
        return None
    try:
        return decrypt_phone(user.phone_encrypted)
    except ValueError:
        logger.warning("Could not decrypt phone number for user %s", user.id)
        return None


def serialize_user(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        full_name=user.full_name,
        roles=list(user.roles or []),
        is_admin=user.is_admin,
        phone=read_phone(user),
        user_description=user.user_description,
        certifications=user.certifications,
        sailing_experience=user.sailing_experience,
        risk_level=list(user.risk_level or []),
        skills=list(user.skills or []),
        sailing_preferences=user.sailing_preferences,
        profile_image_url=user.profile_image_url,
        language=user.language,
        profile_completion_percentage=user.profile_completion_percentage,
        created_at=user.created_at,
    )


class AuthService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def register_user(
        self,
        *,
        email: str,
        username: str,
        password: str,
        full_name: str | None = None,
        roles: list[UserRole] | None = None,
        language: str = "en",
    ) -> User:
        # check existing email / username
        if self.db.query(User).filter(User.email == email).first():
            raise ConflictError("Email already registered")
        if self.db.query(User).filter(User.username == username).first():
            raise ConflictError("Username already taken")

        user = User(
            email=email,
            username=username.strip(),
            full_name=full_name,
            password_hash=hash_password(password),
            roles=[role.value for role in (roles or [])],
            language=language,
        )
        refresh_profile_completion(user)

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("Registered user %s (%s)", user.id, get_privacy_protocol().mask_email(email))
        return user

    def authenticate_user(self, *, email: str, password: str) -> tuple[str, User] | None:
        user = self.db.query(User).filter(User.email == email).first()
        if user is None:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return create_access_token(str(user.id), user.roles or []), user

    def promote_to_admin(self, *, user_id: int) -> User:
        """Promote a user to admin."""
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User not found")
        user.is_admin = True
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_profile(self, user: User, payload: UpdateProfileRequest) -> User:
        """Apply a partial profile update and recompute completion"""
        data = payload.model_dump(exclude_unset=True)

        if "username" in data and data["username"] is not None:
            username = data["username"].strip()
            taken = self.db.query(User).filter(User.username == username, User.id != user.id).first()
            if taken:
                raise ConflictError("Username already taken")
            user.username = username

        if "phone" in data:
            phone = data["phone"]
            user.phone_encrypted = encrypt_phone(phone) if phone else None

        if "skills" in data:
            user.skills = normalize_skill_names(data["skills"] or [])

        if "risk_level" in data:
            user.risk_level = list(data["risk_level"] or [])

        if "roles" in data:
            user.roles = [UserRole(role).value for role in (data["roles"] or [])]

        for field in (
            "full_name",
            "user_description",
            "certifications",
            "sailing_experience",
            "sailing_preferences",
            "profile_image_url",
            "language",
        ):
            if field in data:
                if field == "language" and data[field] is None:
                    continue
                setattr(user, field, data[field])

        refresh_profile_completion(user)
        self.db.commit()
        self.db.refresh(user)
        return user
