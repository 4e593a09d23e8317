from datetime import datetime, date

from pydantic import BaseModel, Field, model_validator

from app.db.models.journey import JourneyState, CostModel, QuestionType
from app.db.models.user import RiskLevel


def _check_date_range(start, end):
    if start is not None and end is not None and end < start:
        raise ValueError("end_date must not be before start_date")


class JourneyCreateRequest(BaseModel):
    boat_id: int
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    risk_level: list[RiskLevel] = []
    skills: list[str] = []
    min_experience_level: int | None = Field(default=None, ge=1, le=4)
    cost_model: CostModel = CostModel.NOT_DEFINED
    state: JourneyState = JourneyState.IN_PLANNING
    images: list[str] = []

    @model_validator(mode="after")
    def validate_dates(self):
        _check_date_range(self.start_date, self.end_date)
        return self


class JourneyUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    risk_level: list[RiskLevel] | None = None
    skills: list[str] | None = None
    min_experience_level: int | None = Field(default=None, ge=1, le=4)
    cost_model: CostModel | None = None
    state: JourneyState | None = None
    images: list[str] | None = None

    @model_validator(mode="after")
    def validate_dates(self):
        _check_date_range(self.start_date, self.end_date)
        return self


class BoatSummary(BaseModel):
    id: int
    name: str
    type: str | None = None
    make_model: str | None = None
    home_port: str | None = None
    capacity: int | None = None
    image_url: str | None = None


class JourneyResponse(BaseModel):
    id: int
    boat_id: int
    name: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    risk_level: list[str] = []
    skills: list[str] = []
    min_experience_level: int | None = None
    cost_model: CostModel
    state: JourneyState
    images: list[str] = []
    auto_approval_enabled: bool = False
    auto_approval_threshold: int = 80
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class JourneyUpdateResponse(BaseModel):
    journey: JourneyResponse
    changes: list[str]
    notified_count: int = 0


class WaypointIn(BaseModel):
    name: str | None = None
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class WaypointResponse(BaseModel):
    index: int
    name: str | None = None
    lat: float
    lng: float

    class Config:
        from_attributes = True


class LegCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    crew_needed: int | None = Field(default=None, ge=0)
    skills: list[str] = []
    risk_level: RiskLevel | None = None
    min_experience_level: int | None = Field(default=None, ge=1, le=4)
    waypoints: list[WaypointIn] = []

    @model_validator(mode="after")
    def validate_dates(self):
        _check_date_range(self.start_date, self.end_date)
        return self


class LegUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    crew_needed: int | None = Field(default=None, ge=0)
    skills: list[str] | None = None
    risk_level: RiskLevel | None = None
    min_experience_level: int | None = Field(default=None, ge=1, le=4)
    waypoints: list[WaypointIn] | None = None

    @model_validator(mode="after")
    def validate_dates(self):
        _check_date_range(self.start_date, self.end_date)
        return self


class BoundingBoxResponse(BaseModel):
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float


class LegResponse(BaseModel):
    id: int
    journey_id: int
    name: str
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    crew_needed: int | None = None
    skills: list[str] = []
    risk_level: str | None = None
    min_experience_level: int | None = None
    bbox: BoundingBoxResponse | None = None
    waypoints: list[WaypointResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LegUpdateResponse(BaseModel):
    leg: LegResponse
    changes: list[str]
    notified_count: int = 0


class LegMatch(BaseModel):
    match_percentage: int
    experience_level_matches: bool
    matching_skills: list[str] = []
    missing_skills: list[str] = []
    marker_color: str
    map_fill_color: str
    map_border_color: str


class LegSummary(BaseModel):
    """Leg as listed on the crew map and region pages"""
    id: int
    name: str
    journey_id: int
    journey_name: str
    boat_id: int
    boat_name: str
    boat_image_url: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    crew_needed: int | None = None
    skills: list[str] = []
    journey_risk_level: list[str] = []
    leg_risk_level: str | None = None
    min_experience_level: int | None = None
    cost_model: str | None = None
    start_waypoint: WaypointResponse | None = None
    end_waypoint: WaypointResponse | None = None
    match_percentage: int | None = None
    experience_level_matches: bool | None = None


class LegsByRegionResponse(BaseModel):
    legs: list[LegSummary]
    total: int
    limit: int
    offset: int
    has_more: bool


class GeocodedLocationResponse(BaseModel):
    name: str
    center: dict[str, float]
    bbox: BoundingBoxResponse
    type: str
    country: str | None = None


class LegSearchResponse(LegsByRegionResponse):
    location: GeocodedLocationResponse | None = None


class LegDetailResponse(LegResponse):
    journey: JourneyResponse
    boat: BoatSummary
    match: LegMatch | None = None


class RequirementCreateRequest(BaseModel):
    question_text: str = Field(min_length=1, max_length=1000)
    question_type: QuestionType
    options: list[str] | None = None
    is_required: bool = True
    weight: int = Field(default=5, ge=0, le=10)
    order: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_options(self):
        if self.question_type == QuestionType.MULTIPLE_CHOICE:
            options = [o.strip() for o in (self.options or []) if o and o.strip()]
            if len(options) < 2:
                raise ValueError("multiple_choice questions need at least two options")
            self.options = options
        else:
            self.options = None
        return self


class RequirementUpdateRequest(BaseModel):
    question_text: str | None = Field(default=None, min_length=1, max_length=1000)
    question_type: QuestionType | None = None
    options: list[str] | None = None
    is_required: bool | None = None
    weight: int | None = Field(default=None, ge=0, le=10)
    order: int | None = Field(default=None, ge=0)


class RequirementResponse(BaseModel):
    id: int
    journey_id: int
    question_text: str
    question_type: QuestionType
    options: list[str] | None = None
    is_required: bool
    weight: int
    order: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class AutoApprovalResponse(BaseModel):
    journey_id: int
    auto_approval_enabled: bool
    auto_approval_threshold: int
    requirements_count: int


class AutoApprovalUpdateRequest(BaseModel):
    auto_approval_enabled: bool
    auto_approval_threshold: int | None = Field(default=None, ge=0, le=100)
