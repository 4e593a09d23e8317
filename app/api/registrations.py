"""
Registration API Endpoints
Crew registrations for legs, owner review and requirement answers
"""
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user, get_current_crew, get_current_owner
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.registration import RegistrationStatus
from app.db.models.user import User
from app.services.ai.assessment_service import run_registration_assessment
from app.services.ai.groq_service import GroqLLMService, get_llm_service
from app.services.registrations.schemas import (
    AnswersResponse,
    AnswersUpdateRequest,
    RegistrationCreateRequest,
    RegistrationCreateResponse,
    RegistrationDetail,
    RegistrationListResponse,
    RegistrationResponse,
    RegistrationStatusUpdateRequest,
)
from app.services.registrations.service import RegistrationService

router = APIRouter(prefix="/registrations", tags=["registrations"])


@router.post("", response_model=RegistrationCreateResponse, status_code=status.HTTP_201_CREATED)
def create_registration(
    payload: RegistrationCreateRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_crew),
    llm: GroqLLMService = Depends(get_llm_service),
    db: Session = Depends(get_db),
):
    """
    Register for a leg

    When the journey has auto-approval enabled the AI assessment runs after the response is sent.
    """
    try:
        result = RegistrationService(db).create_registration(current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)

    if result["ai_assessment_scheduled"]:
        background_tasks.add_task(run_registration_assessment, result["registration"].id, llm)
    return result


@router.get("", response_model=RegistrationListResponse)
def list_my_registrations(
    leg_id: int | None = Query(None),
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return RegistrationService(db).list_my_registrations(current_user, leg_id, status_filter)


@router.get("/owner/all", response_model=RegistrationListResponse)
def list_owner_registrations(
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    return RegistrationService(db).list_owner_registrations(current_user, status_filter)


@router.get("/by-journey/{journey_id}", response_model=RegistrationListResponse)
def list_journey_registrations(
    journey_id: int,
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Registrations across the journey's legs; crew profiles only where sharing was granted"""
    try:
        return RegistrationService(db).list_by_journey(journey_id, current_user, status_filter)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{registration_id}", response_model=RegistrationDetail)
def get_registration(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return RegistrationService(db).get_registration_detail(registration_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.patch("/{registration_id}", response_model=RegistrationResponse)
def update_registration_status(
    registration_id: int,
    payload: RegistrationStatusUpdateRequest,
    current_user: User = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    try:
        return RegistrationService(db).update_status(registration_id, current_user, payload.status, payload.notes)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.post("/{registration_id}/cancel", response_model=RegistrationResponse)
def cancel_registration(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return RegistrationService(db).cancel_registration(registration_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{registration_id}/answers", response_model=AnswersResponse)
def get_answers(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return RegistrationService(db).get_answers(registration_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{registration_id}/answers", response_model=AnswersResponse)
def replace_answers(
    registration_id: int,
    payload: AnswersUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return RegistrationService(db).replace_answers(registration_id, current_user, payload.answers)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
