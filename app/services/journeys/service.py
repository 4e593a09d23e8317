"""
Journey Service
Journeys, legs with waypoints, region search and journey requirements
"""
import logging
from typing import Any, Iterable

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import NotFoundError
from app.db.models.boat import Boat
from app.db.models.journey import Journey, JourneyRequirement, JourneyState, Leg, QuestionType, Waypoint
from app.db.models.user import User, UserRole
from app.services.boats.service import BoatService
from app.services.geocoding.service import GeocodingService
from app.services.journeys.schemas import (
    JourneyCreateRequest,
    JourneyUpdateRequest,
    LegCreateRequest,
    LegUpdateRequest,
    RequirementCreateRequest,
    RequirementUpdateRequest,
    WaypointIn,
)
from app.services.matching.skill_matching import build_match_summary, normalize_skill_names
from app.services.notification.service import NotificationService

logger = logging.getLogger(__name__)

MAX_REGION_LIMIT = 50

JOURNEY_FIELD_LABELS = {
    "name": "name",
    "description": "description",
    "start_date": "start date",
    "end_date": "end date",
    "risk_level": "risk level",
    "skills": "required skills",
    "min_experience_level": "minimum experience level",
    "cost_model": "cost model",
    "state": "status",
    "images": "images",
}

LEG_FIELD_LABELS = {
    "name": "name",
    "description": "description",
    "start_date": "start date",
    "end_date": "end date",
    "crew_needed": "crew needed",
    "skills": "required skills",
    "risk_level": "risk level",
    "min_experience_level": "minimum experience level",
    "waypoints": "route",
}


def _plain(value: Any) -> Any:
    """Enum members (also inside lists) to their stored values"""
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return getattr(value, "value", value)


def compute_bbox(points: Iterable[Any]) -> tuple[float, float, float, float] | None:
    """(min_lng, min_lat, max_lng, max_lat) of anything with lat/lng"""
    points = list(points)
    if not points:
        return None
    lngs = [p.lng for p in points]
    lats = [p.lat for p in points]
    return min(lngs), min(lats), max(lngs), max(lats)


def validate_region(min_lng: float, min_lat: float, max_lng: float, max_lat: float) -> None:
    for lng in (min_lng, max_lng):
        if lng is None or not -180 <= lng <= 180:
            raise ValueError("Invalid coordinates")
    for lat in (min_lat, max_lat):
        if lat is None or not -90 <= lat <= 90:
            raise ValueError("Invalid coordinates")


def waypoint_dict(waypoint: Waypoint | None) -> dict | None:
    if waypoint is None:
        return None
    return {"index": waypoint.index, "name": waypoint.name, "lat": waypoint.lat, "lng": waypoint.lng}


def leg_bbox(leg: Leg) -> dict | None:
    if leg.bbox_min_lng is None:
        return None
    return {
        "min_lng": leg.bbox_min_lng,
        "min_lat": leg.bbox_min_lat,
        "max_lng": leg.bbox_max_lng,
        "max_lat": leg.bbox_max_lat,
    }


def serialize_leg(leg: Leg) -> dict:
    return {
        "id": leg.id,
        "journey_id": leg.journey_id,
        "name": leg.name,
        "description": leg.description,
        "start_date": leg.start_date,
        "end_date": leg.end_date,
        "crew_needed": leg.crew_needed,
        "skills": normalize_skill_names(leg.skills),
        "risk_level": leg.risk_level,
        "min_experience_level": leg.min_experience_level,
        "bbox": leg_bbox(leg),
        "waypoints": [waypoint_dict(w) for w in leg.waypoints],
        "created_at": leg.created_at,
        "updated_at": leg.updated_at,
    }


def boat_summary(boat: Boat) -> dict:
    return {
        "id": boat.id,
        "name": boat.name,
        "type": _plain(boat.type),
        "make_model": boat.make_model,
        "home_port": boat.home_port,
        "capacity": boat.capacity,
        "image_url": boat.images[0] if boat.images else None,
    }


def effective_leg_requirements(leg: Leg) -> tuple[list[str], int | None]:
    """Skills of the leg and its journey, and the stricter experience level"""
    journey = leg.journey
    skills = normalize_skill_names(list(journey.skills or []) + list(leg.skills or []))
    skills = list(dict.fromkeys(skills))
    levels = [lvl for lvl in (journey.min_experience_level, leg.min_experience_level) if lvl is not None]
    return skills, max(levels) if levels else None


def leg_match_for(user: User | None, leg: Leg) -> dict | None:
    """Match summary for crew callers, None for everyone else"""
    if user is None or not user.has_role(UserRole.CREW):
        return None
    skills, level = effective_leg_requirements(leg)
    return build_match_summary(user.skills or [], user.sailing_experience, skills, level)


def _diff(obj: Any, updates: dict, labels: dict) -> list[str]:
    changes = []
    for field, value in updates.items():
        if field in labels and _plain(getattr(obj, field)) != _plain(value):
            changes.append(labels[field])
    return changes


class JourneyService:
    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.notifications = notification_service or NotificationService(db)

    # ---- Journeys ----

    def get_journey(self, journey_id: int) -> Journey:
        journey = self.db.query(Journey).filter(Journey.id == journey_id).first()
        if journey is None:
            raise NotFoundError("Journey not found")
        return journey

    @staticmethod
    def is_owner(journey: Journey, user: User | None) -> bool:
        return user is not None and journey.boat.owner_id == user.id

    def get_owned_journey(self, journey_id: int, user: User) -> Journey:
        journey = self.get_journey(journey_id)
        if not self.is_owner(journey, user):
            raise PermissionError("You do not have permission to manage this journey")
        return journey

    def get_visible_journey(self, journey_id: int, user: User | None) -> Journey:
        """Published journeys for everyone, any state for the owner"""
        journey = self.get_journey(journey_id)
        if journey.state != JourneyState.PUBLISHED and not self.is_owner(journey, user):
            raise NotFoundError("Journey not found")
        return journey

    def list_owner_journeys(self, user: User, boat_id: int | None = None) -> list[Journey]:
        query = self.db.query(Journey).join(Boat, Boat.id == Journey.boat_id).filter(Boat.owner_id == user.id)
        if boat_id is not None:
            query = query.filter(Journey.boat_id == boat_id)
        return query.order_by(Journey.created_at.desc(), Journey.id.desc()).all()

    def create_journey(self, user: User, data: JourneyCreateRequest) -> Journey:
        BoatService(self.db).get_owned_boat(data.boat_id, user)
        values = data.model_dump()
        values["risk_level"] = _plain(values["risk_level"])
        values["skills"] = normalize_skill_names(values["skills"])
        journey = Journey(
            **values,
            auto_approval_enabled=False,
            auto_approval_threshold=get_settings().default_auto_approval_threshold,
        )
        self.db.add(journey)
        self.db.commit()
        self.db.refresh(journey)
        logger.info("Journey %s created on boat %s", journey.id, data.boat_id)
        return journey

    def update_journey(self, journey_id: int, user: User, data: JourneyUpdateRequest) -> dict:
        """
        Apply a partial update

        Approved crew of a published journey are told what changed.

        Returns:
            {"journey", "changes", "notified_count"}
        """
        journey = self.get_owned_journey(journey_id, user)
        updates = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if not (value is None and field in ("name", "risk_level", "skills", "cost_model", "state", "images"))
        }
        if "skills" in updates:
            updates["skills"] = normalize_skill_names(updates["skills"])
        if "risk_level" in updates:
            updates["risk_level"] = _plain(updates["risk_level"])

        start = updates.get("start_date", journey.start_date)
        end = updates.get("end_date", journey.end_date)
        if start is not None and end is not None and end < start:
            raise ValueError("end_date must not be before start_date")

        new_level = updates.get("min_experience_level")
        if new_level is not None:
            below = [
                leg.name
                for leg in journey.legs
                if leg.min_experience_level is not None and leg.min_experience_level < new_level
            ]
            if below:
                raise ValueError(
                    f"Journey minimum experience level ({new_level}) cannot be higher than "
                    f"the level of leg(s): {', '.join(below)}"
                )

        changes = _diff(journey, updates, JOURNEY_FIELD_LABELS)
        for field, value in updates.items():
            setattr(journey, field, value)
        self.db.commit()
        self.db.refresh(journey)

        notified = 0
        if changes and journey.state == JourneyState.PUBLISHED:
            result = self.notifications.notify_all_approved_crew(
                journey.id,
                lambda crew_id: self.notifications.notify_journey_updated(crew_id, journey, changes),
            )
            notified = result["notified_count"]
            logger.info("Journey %s updated (%s); notified %s crew", journey.id, ", ".join(changes), notified)
        return {"journey": journey, "changes": changes, "notified_count": notified}

    def delete_journey(self, journey_id: int, user: User) -> None:
        journey = self.get_owned_journey(journey_id, user)
        self.db.delete(journey)
        self.db.commit()
        logger.info("Journey %s deleted by user %s", journey_id, user.id)

    # ---- Legs ----

    def get_leg(self, leg_id: int) -> Leg:
        leg = self.db.query(Leg).filter(Leg.id == leg_id).first()
        if leg is None:
            raise NotFoundError("Leg not found")
        return leg

    def get_owned_leg(self, leg_id: int, user: User) -> Leg:
        leg = self.get_leg(leg_id)
        if not self.is_owner(leg.journey, user):
            raise PermissionError("You do not have permission to manage this leg")
        return leg

    def list_legs(self, journey_id: int, user: User | None) -> list[Leg]:
        return list(self.get_visible_journey(journey_id, user).legs)

    @staticmethod
    def _check_experience_level(journey: Journey, level: int | None) -> None:
        if level is not None and journey.min_experience_level is not None and level < journey.min_experience_level:
            raise ValueError(
                f"Leg minimum experience level ({level}) cannot be lower than "
                f"the journey's ({journey.min_experience_level})"
            )

    def _set_waypoints(self, leg: Leg, waypoints: list[WaypointIn]) -> None:
        # Old rows go first so (leg_id, index) stays unique
        leg.waypoints.clear()
        self.db.flush()
        leg.waypoints.extend(
            Waypoint(index=i, name=w.name, lat=w.lat, lng=w.lng) for i, w in enumerate(waypoints)
        )
        bbox = compute_bbox(waypoints)
        leg.bbox_min_lng, leg.bbox_min_lat, leg.bbox_max_lng, leg.bbox_max_lat = bbox or (None, None, None, None)

    def create_leg(self, journey_id: int, user: User, data: LegCreateRequest) -> Leg:
        journey = self.get_owned_journey(journey_id, user)
        self._check_experience_level(journey, data.min_experience_level)
        values = data.model_dump(exclude={"waypoints"})
        values["skills"] = normalize_skill_names(values["skills"])
        values["risk_level"] = _plain(values["risk_level"])
        leg = Leg(journey_id=journey.id, **values)
        self.db.add(leg)
        self.db.flush()
        self._set_waypoints(leg, data.waypoints)
        self.db.commit()
        self.db.refresh(leg)
        logger.info("Leg %s created on journey %s with %s waypoints", leg.id, journey.id, len(data.waypoints))
        return leg

    def update_leg(self, leg_id: int, user: User, data: LegUpdateRequest) -> dict:
        leg = self.get_owned_leg(leg_id, user)
        journey = leg.journey
        updates = data.model_dump(exclude_unset=True, exclude={"waypoints"})
        if updates.get("name", "") is None:
            updates.pop("name")
        if "skills" in updates:
            updates["skills"] = normalize_skill_names(updates["skills"] or [])
        if "risk_level" in updates:
            updates["risk_level"] = _plain(updates["risk_level"])
        if "min_experience_level" in updates:
            self._check_experience_level(journey, updates["min_experience_level"])

        changes = _diff(leg, updates, LEG_FIELD_LABELS)
        for field, value in updates.items():
            setattr(leg, field, value)

        if data.waypoints is not None:
            old_route = [(w.lat, w.lng, w.name) for w in leg.waypoints]
            new_route = [(w.lat, w.lng, w.name) for w in data.waypoints]
            if old_route != new_route:
                changes.append(LEG_FIELD_LABELS["waypoints"])
            self._set_waypoints(leg, data.waypoints)

        self.db.commit()
        self.db.refresh(leg)

        notified = 0
        if changes and journey.state == JourneyState.PUBLISHED:
            result = self.notifications.notify_all_approved_crew(
                journey.id,
                lambda crew_id: self.notifications.notify_leg_updated(crew_id, leg, journey, changes),
            )
            notified = result["notified_count"]
        return {"leg": serialize_leg(leg), "changes": changes, "notified_count": notified}

    def delete_leg(self, leg_id: int, user: User) -> None:
        leg = self.get_owned_leg(leg_id, user)
        self.db.delete(leg)
        self.db.commit()

    def get_leg_detail(self, leg_id: int, user: User | None) -> dict:
        leg = self.get_leg(leg_id)
        journey = leg.journey
        if journey.state != JourneyState.PUBLISHED and not self.is_owner(journey, user):
            raise NotFoundError("Leg not found")
        detail = serialize_leg(leg)
        detail["journey"] = journey
        detail["boat"] = boat_summary(journey.boat)
        detail["match"] = leg_match_for(user, leg)
        return detail

    # ---- Region search ----

    def _leg_summary(self, leg: Leg, user: User | None) -> dict:
        journey = leg.journey
        boat = journey.boat
        waypoints = leg.waypoints
        summary = {
            "id": leg.id,
            "name": leg.name,
            "journey_id": journey.id,
            "journey_name": journey.name,
            "boat_id": boat.id,
            "boat_name": boat.name,
            "boat_image_url": boat.images[0] if boat.images else None,
            "start_date": leg.start_date,
            "end_date": leg.end_date,
            "crew_needed": leg.crew_needed,
            "skills": normalize_skill_names(leg.skills),
            "journey_risk_level": list(journey.risk_level or []),
            "leg_risk_level": leg.risk_level,
            "min_experience_level": leg.min_experience_level or journey.min_experience_level,
            "cost_model": _plain(journey.cost_model),
            "start_waypoint": waypoint_dict(waypoints[0]) if waypoints else None,
            "end_waypoint": waypoint_dict(waypoints[-1]) if len(waypoints) > 1 else None,
        }
        match = leg_match_for(user, leg)
        if match is not None:
            summary["match_percentage"] = match["match_percentage"]
            summary["experience_level_matches"] = match["experience_level_matches"]
        return summary

    def legs_by_region(
        self,
        min_lng: float,
        min_lat: float,
        max_lng: float,
        max_lat: float,
        limit: int = 10,
        offset: int = 0,
        user: User | None = None,
    ) -> dict:
        """
        Legs of published journeys whose bounding box overlaps the region

        A region with min_lng > max_lng wraps around the antimeridian.
        """
        validate_region(min_lng, min_lat, max_lng, max_lat)
        limit = max(1, min(limit, MAX_REGION_LIMIT))
        offset = max(0, offset)

        if min_lng <= max_lng:
            lng_overlap = (Leg.bbox_max_lng >= min_lng) & (Leg.bbox_min_lng <= max_lng)
        else:
            lng_overlap = or_(Leg.bbox_max_lng >= min_lng, Leg.bbox_min_lng <= max_lng)

        query = (
            self.db.query(Leg)
            .join(Journey, Journey.id == Leg.journey_id)
            .filter(Journey.state == JourneyState.PUBLISHED)
            .filter(Leg.bbox_min_lng.isnot(None))
            .filter(lng_overlap)
            .filter(Leg.bbox_max_lat >= min_lat, Leg.bbox_min_lat <= max_lat)
        )
        total = query.with_entities(func.count(Leg.id)).scalar() or 0
        legs = query.order_by(Leg.start_date, Leg.id).offset(offset).limit(limit).all()

        return {
            "legs": [self._leg_summary(leg, user) for leg in legs],
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        }

    def search_legs(
        self,
        location: str,
        geocoder: GeocodingService,
        limit: int = 10,
        offset: int = 0,
        user: User | None = None,
    ) -> dict:
        """Geocode a place name and list the legs in its bounding box"""
        place = geocoder.geocode(location)
        if place is None:
            return {"legs": [], "total": 0, "limit": limit, "offset": offset, "has_more": False, "location": None}

        bbox = place.bbox
        result = self.legs_by_region(
            max(-180.0, bbox.min_lng),
            max(-90.0, bbox.min_lat),
            min(180.0, bbox.max_lng),
            min(90.0, bbox.max_lat),
            limit=limit,
            offset=offset,
            user=user,
        )
        result["location"] = place.as_dict()
        return result

    # ---- Requirements ----

    def list_requirements(self, journey_id: int, user: User | None) -> list[JourneyRequirement]:
        return list(self.get_visible_journey(journey_id, user).requirements)

    def _get_requirement(self, journey_id: int, requirement_id: int) -> JourneyRequirement:
        requirement = (
            self.db.query(JourneyRequirement)
            .filter(JourneyRequirement.id == requirement_id, JourneyRequirement.journey_id == journey_id)
            .first()
        )
        if requirement is None:
            raise NotFoundError("Requirement not found")
        return requirement

    def create_requirement(self, journey_id: int, user: User, data: RequirementCreateRequest) -> JourneyRequirement:
        journey = self.get_owned_journey(journey_id, user)
        order = data.order
        if order is None:
            max_order = (
                self.db.query(func.max(JourneyRequirement.order))
                .filter(JourneyRequirement.journey_id == journey.id)
                .scalar()
            )
            order = 0 if max_order is None else max_order + 1
        requirement = JourneyRequirement(journey_id=journey.id, **data.model_dump(exclude={"order"}), order=order)
        self.db.add(requirement)
        self.db.commit()
        self.db.refresh(requirement)
        return requirement

    def update_requirement(
        self, journey_id: int, requirement_id: int, user: User, data: RequirementUpdateRequest
    ) -> JourneyRequirement:
        self.get_owned_journey(journey_id, user)
        requirement = self._get_requirement(journey_id, requirement_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k == "options"}
        for field, value in updates.items():
            setattr(requirement, field, value)

        if requirement.question_type == QuestionType.MULTIPLE_CHOICE:
            options = [o.strip() for o in (requirement.options or []) if o and o.strip()]
            if len(options) < 2:
                raise ValueError("multiple_choice questions need at least two options")
            requirement.options = options
        else:
            requirement.options = None

        self.db.commit()
        self.db.refresh(requirement)
        return requirement

    def delete_requirement(self, journey_id: int, requirement_id: int, user: User) -> None:
        journey = self.get_owned_journey(journey_id, user)
        requirement = self._get_requirement(journey_id, requirement_id)
        self.db.delete(requirement)
        self.db.flush()
        remaining = (
            self.db.query(JourneyRequirement).filter(JourneyRequirement.journey_id == journey.id).count()
        )
        if remaining == 0 and journey.auto_approval_enabled:
            journey.auto_approval_enabled = False
            logger.info("Auto-approval disabled on journey %s: last requirement removed", journey.id)
        self.db.commit()

    # ---- Auto-approval ----

    def _auto_approval_settings(self, journey: Journey) -> dict:
        count = self.db.query(JourneyRequirement).filter(JourneyRequirement.journey_id == journey.id).count()
        return {
            "journey_id": journey.id,
            "auto_approval_enabled": journey.auto_approval_enabled,
            "auto_approval_threshold": journey.auto_approval_threshold,
            "requirements_count": count,
        }

    def get_auto_approval(self, journey_id: int, user: User) -> dict:
        return self._auto_approval_settings(self.get_owned_journey(journey_id, user))

    def update_auto_approval(self, journey_id: int, user: User, enabled: bool, threshold: int | None = None) -> dict:
        journey = self.get_owned_journey(journey_id, user)
        if threshold is None:
            threshold = get_settings().default_auto_approval_threshold
        if not 0 <= threshold <= 100:
            raise ValueError("auto_approval_threshold must be between 0 and 100")
        if enabled and not journey.requirements:
            raise ValueError("Cannot enable auto-approval: Journey must have at least one requirement")

        journey.auto_approval_enabled = enabled
        journey.auto_approval_threshold = threshold
        self.db.commit()
        self.db.refresh(journey)
        logger.info("Auto-approval on journey %s set to %s (threshold %s)", journey.id, enabled, threshold)
        return self._auto_approval_settings(journey)
