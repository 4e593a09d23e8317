"""
Journey API Endpoints
Journeys, their legs, registration requirements and auto-approval settings
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user, get_current_owner, get_optional_user
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.journeys.schemas import (
    JourneyCreateRequest,
    JourneyUpdateRequest,
    JourneyResponse,
    JourneyUpdateResponse,
    LegCreateRequest,
    LegResponse,
    RequirementCreateRequest,
    RequirementUpdateRequest,
    RequirementResponse,
    AutoApprovalResponse,
    AutoApprovalUpdateRequest,
)
from app.services.journeys.service import JourneyService, serialize_leg

router = APIRouter(prefix="/journeys", tags=["journeys"])


@router.get("", response_model=list[JourneyResponse])
def list_my_journeys(
    boat_id: int | None = Query(None),
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return JourneyService(db).list_owner_journeys(current_user, boat_id)


@router.post("", response_model=JourneyResponse, status_code=status.HTTP_201_CREATED)
def create_journey(
    payload: JourneyCreateRequest,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).create_journey(current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{journey_id}", response_model=JourneyResponse)
def get_journey(
    journey_id: int,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).get_visible_journey(journey_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{journey_id}", response_model=JourneyUpdateResponse)
def update_journey(
    journey_id: int,
    payload: JourneyUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a journey; approved crew of a published journey get a journey_updated notification"""
    try:
        return JourneyService(db).update_journey(journey_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{journey_id}")
def delete_journey(
    journey_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        JourneyService(db).delete_journey(journey_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


# ==================== LEGS ====================

@router.get("/{journey_id}/legs", response_model=list[LegResponse])
def list_legs(
    journey_id: int,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        legs = JourneyService(db).list_legs(journey_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return [serialize_leg(leg) for leg in legs]


@router.post("/{journey_id}/legs", response_model=LegResponse, status_code=status.HTTP_201_CREATED)
def create_leg(
    journey_id: int,
    payload: LegCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        leg = JourneyService(db).create_leg(journey_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return serialize_leg(leg)


# ==================== REQUIREMENTS ====================

@router.get("/{journey_id}/requirements", response_model=list[RequirementResponse])
def list_requirements(
    journey_id: int,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).list_requirements(journey_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post(
    "/{journey_id}/requirements",
    response_model=RequirementResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_requirement(
    journey_id: int,
    payload: RequirementCreateRequest,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).create_requirement(journey_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{journey_id}/requirements/{requirement_id}", response_model=RequirementResponse)
def update_requirement(
    journey_id: int,
    requirement_id: int,
    payload: RequirementUpdateRequest,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).update_requirement(journey_id, requirement_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{journey_id}/requirements/{requirement_id}")
def delete_requirement(
    journey_id: int,
    requirement_id: int,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        JourneyService(db).delete_requirement(journey_id, requirement_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


# ==================== AUTO-APPROVAL ====================

@router.get("/{journey_id}/auto-approval", response_model=AutoApprovalResponse)
def get_auto_approval(
    journey_id: int,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).get_auto_approval(journey_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.patch("/{journey_id}/auto-approval", response_model=AutoApprovalResponse)
def update_auto_approval(
    journey_id: int,
    payload: AutoApprovalUpdateRequest,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """
    Enable or disable AI auto-approval

    Enabling needs at least one requirement; the threshold falls back to 80.
    """
    try:
        return JourneyService(db).update_auto_approval(
            journey_id, current_user, payload.auto_approval_enabled, payload.auto_approval_threshold
        )
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
