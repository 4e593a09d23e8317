"""Row factories and auth helpers shared by the test modules"""
from app.core.security import create_access_token, hash_password
from app.db.models.boat import Boat
from app.db.models.consent import UserConsent, default_cookie_preferences
from app.db.models.journey import Journey, JourneyRequirement, JourneyState, Leg, QuestionType, Waypoint
from app.db.models.registration import Registration, RegistrationStatus
from app.db.models.user import User


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.roles)}"}


def make_user(db, username: str, roles=("crew",), **fields) -> User:
    user = User(
        email=f"{username}@sailmatch.io",
        username=username,
        full_name=fields.pop("full_name", username.title()),
        password_hash=hash_password("password123"),
        roles=list(roles),
        risk_level=fields.pop("risk_level", []),
        skills=fields.pop("skills", []),
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def grant_consents(db, user: User, ai_processing=True, profile_sharing=True) -> UserConsent:
    consent = UserConsent(
        user_id=user.id,
        ai_processing_consent=ai_processing,
        profile_sharing_consent=profile_sharing,
        marketing_consent=False,
        cookie_preferences=default_cookie_preferences(),
    )
    db.add(consent)
    db.commit()
    return consent


def make_boat(db, owner: User, name="Aurora") -> Boat:
    boat = Boat(owner_id=owner.id, name=name, images=[])
    db.add(boat)
    db.commit()
    db.refresh(boat)
    return boat


def make_journey(db, boat: Boat, name="Balearic Crossing", state=JourneyState.PUBLISHED, **fields) -> Journey:
    journey = Journey(
        boat_id=boat.id,
        name=name,
        state=state,
        risk_level=fields.pop("risk_level", ["Coastal sailing"]),
        skills=fields.pop("skills", []),
        images=[],
        **fields,
    )
    db.add(journey)
    db.commit()
    db.refresh(journey)
    return journey


def make_leg(db, journey: Journey, name="Palma to Ibiza", waypoints=((39.57, 2.65), (38.91, 1.43)), **fields) -> Leg:
    lats = [p[0] for p in waypoints]
    lngs = [p[1] for p in waypoints]
    leg = Leg(
        journey_id=journey.id,
        name=name,
        skills=fields.pop("skills", []),
        bbox_min_lng=min(lngs),
        bbox_min_lat=min(lats),
        bbox_max_lng=max(lngs),
        bbox_max_lat=max(lats),
        **fields,
    )
    leg.waypoints = [Waypoint(index=i, lat=lat, lng=lng) for i, (lat, lng) in enumerate(waypoints)]
    db.add(leg)
    db.commit()
    db.refresh(leg)
    return leg


def make_requirement(db, journey: Journey, text="Do you get seasick?", question_type=QuestionType.YES_NO, **fields):
    requirement = JourneyRequirement(
        journey_id=journey.id,
        question_text=text,
        question_type=question_type,
        options=fields.pop("options", None),
        is_required=fields.pop("is_required", True),
        weight=fields.pop("weight", 5),
        order=fields.pop("order", 0),
    )
    db.add(requirement)
    db.commit()
    db.refresh(requirement)
    return requirement



def make_registration(db, leg: Leg, user: User, status=None, **fields):
    registration = Registration(
        leg_id=leg.id,
        user_id=user.id,
        status=status or RegistrationStatus.PENDING,
        **fields,
    )
    db.add(registration)
    db.commit()
    db.refresh(registration)
    return registration
