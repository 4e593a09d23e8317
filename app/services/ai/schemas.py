from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    conversation_id: int | None = None


class MessageResponse(BaseModel):
    id: int
    role: str
    content: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ChatResponse(BaseModel):
    conversation_id: int
    message: MessageResponse
    missing_fields: list[str] = []


class ConversationSummary(BaseModel):
    id: int
    title: str | None = None
    message_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ConversationDetail(ConversationSummary):
    messages: list[MessageResponse] = []


class ExtractProfileRequest(BaseModel):
    apply: bool = False


class ExtractProfileResponse(BaseModel):
    conversation_id: int
    extracted: dict[str, Any]
    ignored: list[str] = []
    applied: bool = False
    profile_completion_percentage: int | None = None
