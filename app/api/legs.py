"""
Leg API Endpoints
Region browsing for crew, place-name search and leg details
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user, get_optional_user
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.geocoding.service import GeocodingError, GeocodingService, get_geocoding_service
from app.services.journeys.schemas import (
    LegsByRegionResponse,
    LegSearchResponse,
    LegDetailResponse,
    LegUpdateRequest,
    LegUpdateResponse,
)
from app.services.journeys.service import JourneyService

router = APIRouter(prefix="/legs", tags=["legs"])


@router.get("/by-region", response_model=LegsByRegionResponse)
def legs_by_region(
    min_lng: float = Query(...),
    min_lat: float = Query(...),
    max_lng: float = Query(...),
    max_lat: float = Query(...),
    limit: int = Query(10, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Legs of published journeys inside a bounding box

    Crew members additionally get match_percentage and experience_level_matches per leg.
    limit is capped at 50.
    """
    try:
        return JourneyService(db).legs_by_region(
            min_lng, min_lat, max_lng, max_lat, limit=limit, offset=offset, user=current_user
        )
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/search", response_model=LegSearchResponse)
def search_legs(
    location: str = Query(..., min_length=2, max_length=200),
    limit: int = Query(10, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User | None = Depends(get_optional_user),
    geocoder: GeocodingService = Depends(get_geocoding_service),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).search_legs(location, geocoder, limit=limit, offset=offset, user=current_user)
    except GeocodingError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Geocoding failed: {e}")
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/{leg_id}", response_model=LegDetailResponse)
def get_leg(
    leg_id: int,
    current_user: User | None = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).get_leg_detail(leg_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.put("/{leg_id}", response_model=LegUpdateResponse)
def update_leg(
    leg_id: int,
    payload: LegUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return JourneyService(db).update_leg(leg_id, current_user, payload)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.delete("/{leg_id}")
def delete_leg(
    leg_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        JourneyService(db).delete_leg(leg_id, current_user)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}
