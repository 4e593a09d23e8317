from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str | None = None
    link: str | None = None
    read: bool = False
    metadata: dict[str, Any] = Field(default={}, validation_alias=AliasChoices("metadata_json", "metadata"))
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    success: bool = True
    count: int


class EmailPreferencesResponse(BaseModel):
    registration_updates: bool = True
    journey_updates: bool = True
    profile_reminders: bool = True

    class Config:
        from_attributes = True


class EmailPreferencesUpdateRequest(BaseModel):
    registration_updates: bool | None = None
    journey_updates: bool | None = None
    profile_reminders: bool | None = None
