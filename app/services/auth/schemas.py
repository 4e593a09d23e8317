from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.db.models.user import UserRole, RiskLevel


SUPPORTED_LANGUAGES = ("en", "fi")


def _validate_phone(v):
    """Validate phone number format (E.164)"""
    if v is not None and v != '':
        v = v.strip()
        if not v.startswith('+'):
            raise ValueError('Phone number must be in E.164 format (start with +)')
        if len(v) < 8 or len(v) > 16:
            raise ValueError('Phone number must be between 8-16 characters')
    return v


class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=80)
    password: str = Field(min_length=8)
    full_name: str | None = None
    roles: list[UserRole] = []
    language: str = "en"

    @field_validator('language')
    @classmethod
    def validate_language(cls, v):
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of: {', '.join(SUPPORTED_LANGUAGES)}")
        return v


class UserResponse(BaseModel):
    id: int
    email: EmailStr
    username: str
    full_name: str | None = None
    roles: list[str] = []
    is_admin: bool = False
    phone: str | None = None
    user_description: str | None = None
    certifications: str | None = None
    sailing_experience: int | None = None
    risk_level: list[str] = []
    skills: list[str] = []
    sailing_preferences: str | None = None
    profile_image_url: str | None = None
    language: str = "en"
    profile_completion_percentage: int = 0
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    roles: list[str]  # frontend picks the owner or crew dashboard from this
    is_admin: bool = False


class PromoteToAdminRequest(BaseModel):
    user_id: int
    admin_secret: str


class UpdateProfileRequest(BaseModel):
    """Partial profile update

    All fields optional - only the fields that are sent are updated
    """
    username: str | None = Field(default=None, min_length=3, max_length=80)
    full_name: str | None = None
    phone: str | None = None  # stored encrypted
    user_description: str | None = None
    certifications: str | None = None
    sailing_experience: int | None = None
    risk_level: list[str] | None = None
    skills: list[str | dict] | None = None
    sailing_preferences: str | None = None
    profile_image_url: str | None = None
    roles: list[UserRole] | None = None
    language: str | None = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return _validate_phone(v)

    @field_validator('sailing_experience')
    @classmethod
    def validate_sailing_experience(cls, v):
        if v is not None and v not in (1, 2, 3, 4):
            raise ValueError('sailing_experience must be between 1 and 4')
        return v

    @field_validator('risk_level')
    @classmethod
    def validate_risk_level(cls, v):
        if v is None:
            return v
        allowed = [level.value for level in RiskLevel]
        invalid = [level for level in v if level not in allowed]
        if invalid:
            raise ValueError(f"risk_level must only contain: {', '.join(allowed)}")
        return v

    @field_validator('language')
    @classmethod
    def validate_language(cls, v):
        if v is not None and v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of: {', '.join(SUPPORTED_LANGUAGES)}")
        return v


class ProfileFieldStatus(BaseModel):
    name: str
    label: str
    section: str
    missing: bool


class ProfileCompletionResponse(BaseModel):
    percentage: int
    completed_count: int
    total_count: int
    fields: list[ProfileFieldStatus]
    missing_fields: list[ProfileFieldStatus]
