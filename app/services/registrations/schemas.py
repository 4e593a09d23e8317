from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.db.models.registration import RegistrationStatus


class AnswerIn(BaseModel):
    requirement_id: int
    answer_text: str | None = None
    answer_json: Any = None


class AnswerResponse(BaseModel):
    id: int
    requirement_id: int
    question_text: str | None = None
    question_type: str | None = None
    answer_text: str | None = None
    answer_json: Any = None


class RegistrationCreateRequest(BaseModel):
    leg_id: int
    notes: str | None = Field(default=None, max_length=2000)
    answers: list[AnswerIn] = []


class RegistrationStatusUpdateRequest(BaseModel):
    status: RegistrationStatus
    notes: str | None = Field(default=None, max_length=2000)


class AnswersUpdateRequest(BaseModel):
    answers: list[AnswerIn] = Field(min_length=1)


class RegistrationResponse(BaseModel):
    id: int
    leg_id: int
    user_id: int
    status: RegistrationStatus
    notes: str | None = None
    match_percentage: float | None = None
    ai_match_score: int | None = None
    ai_match_reasoning: str | None = None
    auto_approved: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class RegistrationCreateResponse(BaseModel):
    registration: RegistrationResponse
    message: str
    ai_assessment_scheduled: bool = False


class LegBrief(BaseModel):
    id: int
    name: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    journey_id: int
    journey_name: str
    journey_state: str | None = None
    boat_name: str | None = None


class CrewSummary(BaseModel):
    """Crew data shown to a journey owner; profile fields only with profile-sharing consent"""
    id: int
    full_name: str | None = None
    username: str | None = None
    profile_shared: bool = False
    email: str | None = None
    sailing_experience: int | None = None
    skills: list[str] = []
    risk_level: list[str] = []
    certifications: str | None = None
    user_description: str | None = None
    sailing_preferences: str | None = None
    profile_image_url: str | None = None


class RegistrationDetail(RegistrationResponse):
    leg: LegBrief
    crew: CrewSummary | None = None
    answers: list[AnswerResponse] = []


class RegistrationListResponse(BaseModel):
    registrations: list[RegistrationDetail]
    total: int


class AnswersResponse(BaseModel):
    registration_id: int
    answers: list[AnswerResponse]
    count: int
