from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class ConsentType(str, Enum):
    AI_PROCESSING = "ai_processing"
    PROFILE_SHARING = "profile_sharing"
    MARKETING = "marketing"
    COOKIES = "cookies"


class CookiePreferences(BaseModel):
    essential: bool = True
    analytics: bool = False
    marketing: bool = False


class ConsentsResponse(BaseModel):
    user_id: int
    privacy_policy_accepted_at: datetime | None = None
    terms_accepted_at: datetime | None = None
    ai_processing_consent: bool = False
    ai_processing_consent_at: datetime | None = None
    profile_sharing_consent: bool = False
    profile_sharing_consent_at: datetime | None = None
    marketing_consent: bool = False
    marketing_consent_at: datetime | None = None
    cookie_preferences: CookiePreferences = CookiePreferences()
    cookie_preferences_at: datetime | None = None

    class Config:
        from_attributes = True


class ConsentStatusResponse(BaseModel):
    consents: ConsentsResponse | None = None
    has_accepted_required: bool


class AcceptLegalRequest(BaseModel):
    privacy_policy: bool = True
    terms: bool = True
    ai_processing: bool | None = None
    profile_sharing: bool | None = None
    marketing: bool | None = None


class ConsentUpdateRequest(BaseModel):
    consent_type: ConsentType
    value: bool | CookiePreferences

    @model_validator(mode="after")
    def validate_value(self):
        if self.consent_type == ConsentType.COOKIES:
            if not isinstance(self.value, CookiePreferences):
                raise ValueError("cookies consent needs a cookie preferences object")
        elif not isinstance(self.value, bool):
            raise ValueError(f"{self.consent_type.value} consent needs a boolean value")
        return self


class ConsentUpdateResponse(BaseModel):
    success: bool = True
    consents: ConsentsResponse


class ConsentAuditEntry(BaseModel):
    id: int
    consent_type: str
    action: str
    old_value: Any = None
    new_value: Any = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class DeleteAccountRequest(BaseModel):
    confirmation: str = Field(max_length=50)


class DeleteAccountResponse(BaseModel):
    success: bool = True
    message: str
    deleted: dict[str, int]
