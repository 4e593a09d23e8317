"""
Registration Service
Crew applications for legs, owner decisions and answers to journey requirements
"""
import logging
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.db.models.boat import Boat
from app.db.models.consent import UserConsent
from app.db.models.journey import Journey, JourneyRequirement, JourneyState, Leg, QuestionType
from app.db.models.registration import Registration, RegistrationAnswer, RegistrationStatus
from app.db.models.user import User
from app.services.consents.service import has_profile_sharing_consent
from app.services.journeys.service import effective_leg_requirements
from app.services.matching.skill_matching import calculate_match_percentage, normalize_skill_names
from app.services.notification.service import NotificationService
from app.services.registrations.schemas import AnswerIn, RegistrationCreateRequest

logger = logging.getLogger(__name__)

RATING_MIN, RATING_MAX = 1, 10

OWNER_STATUSES = (RegistrationStatus.APPROVED, RegistrationStatus.NOT_APPROVED, RegistrationStatus.CANCELLED)


def validate_answers(
    requirements: Iterable[JourneyRequirement], answers: list[AnswerIn], enforce_required: bool
) -> None:
    """Raise ValueError when answers do not fit the journey's questions"""
    requirements = list(requirements)
    by_id = {r.id: r for r in requirements}
    answered = set()

    for answer in answers:
        requirement = by_id.get(answer.requirement_id)
        if requirement is None:
            raise ValueError(f"Invalid requirement_id: {answer.requirement_id}")
        if answer.requirement_id in answered:
            raise ValueError(f"Duplicate answer for requirement {answer.requirement_id}")
        answered.add(answer.requirement_id)

        question_type = requirement.question_type
        if question_type in (QuestionType.TEXT, QuestionType.YES_NO):
            text = (answer.answer_text or "").strip()
            if not text:
                raise ValueError(f"answer_text is required for {question_type.value} questions")
            if question_type == QuestionType.YES_NO and text not in ("Yes", "No"):
                raise ValueError('yes_no questions require answer_text to be "Yes" or "No"')
        elif question_type == QuestionType.MULTIPLE_CHOICE:
            choices = answer.answer_json if isinstance(answer.answer_json, list) else [answer.answer_json]
            options = requirement.options or []
            if not choices or any(choice not in options for choice in choices):
                raise ValueError(f"answer_json must be one of the options: {', '.join(options)}")
        elif question_type == QuestionType.RATING:
            value = answer.answer_json
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not RATING_MIN <= value <= RATING_MAX:
                raise ValueError(f"rating answers must be a number between {RATING_MIN} and {RATING_MAX}")

    if enforce_required:
        missing = [r.question_text for r in requirements if r.is_required and r.id not in answered]
        if missing:
            raise ValueError(f"Missing answers for required questions: {'; '.join(missing)}")


def serialize_answer(answer: RegistrationAnswer) -> dict:
    requirement = answer.requirement
    return {
        "id": answer.id,
        "requirement_id": answer.requirement_id,
        "question_text": requirement.question_text if requirement else None,
        "question_type": requirement.question_type.value if requirement else None,
        "answer_text": answer.answer_text,
        "answer_json": answer.answer_json,
    }


def crew_summary(user: User, profile_shared: bool) -> dict:
    """Name only, unless the crew member agreed to share their profile"""
    summary = {
        "id": user.id,
        "full_name": user.full_name,
        "username": user.username,
        "profile_shared": profile_shared,
    }
    if profile_shared:
        summary.update(
            email=user.email,
            sailing_experience=user.sailing_experience,
            skills=normalize_skill_names(user.skills),
            risk_level=list(user.risk_level or []),
            certifications=user.certifications,
            user_description=user.user_description,
            sailing_preferences=user.sailing_preferences,
            profile_image_url=user.profile_image_url,
        )
    return summary


def leg_brief(leg: Leg) -> dict:
    journey = leg.journey
    return {
        "id": leg.id,
        "name": leg.name,
        "start_date": leg.start_date,
        "end_date": leg.end_date,
        "journey_id": journey.id,
        "journey_name": journey.name,
        "journey_state": journey.state.value,
        "boat_name": journey.boat.name if journey.boat else None,
    }


class RegistrationService:
    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.notifications = notification_service or NotificationService(db)

    # ---- Lookups ----

    def get_registration(self, registration_id: int) -> Registration:
        registration = self.db.query(Registration).filter(Registration.id == registration_id).first()
        if registration is None:
            raise NotFoundError("Registration not found")
        return registration

    @staticmethod
    def owner_id_of(registration: Registration) -> int:
        return registration.leg.journey.boat.owner_id

    def get_for_owner(self, registration_id: int, owner: User) -> Registration:
        registration = self.get_registration(registration_id)
        if self.owner_id_of(registration) != owner.id:
            raise PermissionError("You do not have permission to manage this registration")
        return registration

    def get_for_viewer(self, registration_id: int, user: User) -> Registration:
        """The crew member who registered or the journey owner"""
        registration = self.get_registration(registration_id)
        if registration.user_id != user.id and self.owner_id_of(registration) != user.id:
            raise PermissionError("You do not have permission to view this registration")
        return registration

    def _shared_profile_ids(self, user_ids: Iterable[int]) -> set[int]:
        user_ids = list(set(user_ids))
        if not user_ids:
            return set()
        rows = (
            self.db.query(UserConsent.user_id)
            .filter(UserConsent.user_id.in_(user_ids), UserConsent.profile_sharing_consent.is_(True))
            .all()
        )
        return {row[0] for row in rows}

    def serialize(
        self,
        registration: Registration,
        include_crew: bool = False,
        include_answers: bool = False,
        shared_ids: set[int] | None = None,
    ) -> dict:
        data = {
            "id": registration.id,
            "leg_id": registration.leg_id,
            "user_id": registration.user_id,
            "status": registration.status,
            "notes": registration.notes,
            "match_percentage": registration.match_percentage,
            "ai_match_score": registration.ai_match_score,
            "ai_match_reasoning": registration.ai_match_reasoning,
            "auto_approved": registration.auto_approved,
            "created_at": registration.created_at,
            "updated_at": registration.updated_at,
            "leg": leg_brief(registration.leg),
            "answers": [serialize_answer(a) for a in registration.answers] if include_answers else [],
        }
        if include_crew:
            if shared_ids is None:
                shared = has_profile_sharing_consent(self.db, registration.user_id)
            else:
                shared = registration.user_id in shared_ids
            data["crew"] = crew_summary(registration.user, shared)
        return data

    # ---- Answers ----

    def _replace_answers(self, registration: Registration, answers: list[AnswerIn]) -> None:
        by_id = {r.id: r for r in registration.leg.journey.requirements}
        registration.answers.clear()
        self.db.flush()
        for answer in answers:
            text_answer = by_id[answer.requirement_id].question_type in (QuestionType.TEXT, QuestionType.YES_NO)
            registration.answers.append(
                RegistrationAnswer(
                    requirement_id=answer.requirement_id,
                    answer_text=answer.answer_text.strip() if text_answer else None,
                    answer_json=None if text_answer else answer.answer_json,
                )
            )

    def get_answers(self, registration_id: int, user: User) -> dict:
        registration = self.get_for_viewer(registration_id, user)
        answers = [serialize_answer(a) for a in registration.answers]
        return {"registration_id": registration.id, "answers": answers, "count": len(answers)}

    def replace_answers(self, registration_id: int, user: User, answers: list[AnswerIn]) -> dict:
        registration = self.get_registration(registration_id)
        if registration.user_id != user.id:
            raise PermissionError("You can only answer for your own registrations")
        if registration.status != RegistrationStatus.PENDING:
            raise ValueError('Answers can only be changed while the registration is "Pending approval"')
        validate_answers(registration.leg.journey.requirements, answers, enforce_required=True)
        self._replace_answers(registration, answers)
        self.db.commit()
        self.db.refresh(registration)
        return self.get_answers(registration.id, user)

    # ---- Crew operations ----

    def create_registration(self, user: User, data: RegistrationCreateRequest) -> dict:
        """
        Register the crew member for a leg

        A cancelled registration for the same leg is reactivated.

        Returns:
            {"registration", "message", "ai_assessment_scheduled"}; the caller runs
            the AI assessment when ai_assessment_scheduled is True
        """
        leg = self.db.query(Leg).filter(Leg.id == data.leg_id).first()
        if leg is None:
            raise NotFoundError("Leg not found")
        journey = leg.journey
        if journey.state != JourneyState.PUBLISHED:
            raise ValueError("Cannot register for legs in non-published journeys")
        if journey.boat.owner_id == user.id:
            raise ValueError("You cannot register for your own journey")

        validate_answers(journey.requirements, data.answers, enforce_required=journey.auto_approval_enabled)

        skills, level = effective_leg_requirements(leg)
        match_percentage = calculate_match_percentage(user.skills or [], skills, user.sailing_experience, level)

        registration = (
            self.db.query(Registration)
            .filter(Registration.leg_id == leg.id, Registration.user_id == user.id)
            .first()
        )
        if registration is not None:
            if registration.status != RegistrationStatus.CANCELLED:
                raise ConflictError("You have already registered for this leg")
            registration.status = RegistrationStatus.PENDING
            registration.ai_match_score = None
            registration.ai_match_reasoning = None
            registration.auto_approved = False
            message = "Registration reactivated"
        else:
            registration = Registration(leg_id=leg.id, user_id=user.id, status=RegistrationStatus.PENDING)
            self.db.add(registration)
            message = "Registration created"
        registration.notes = data.notes or None
        registration.match_percentage = match_percentage
        self.db.flush()
        if data.answers or message == "Registration reactivated":
            self._replace_answers(registration, data.answers)
        self.db.commit()
        self.db.refresh(registration)
        logger.info(
            "%s: registration %s for leg %s by user %s (match %s%%)",
            message, registration.id, leg.id, user.id, match_percentage,
        )

        owner = journey.boat.owner
        self.notifications.notify_new_registration(owner, registration, journey, user)
        self.notifications.notify_pending_registration(user, registration, journey, leg)

        return {
            "registration": registration,
            "message": message,
            "ai_assessment_scheduled": bool(journey.auto_approval_enabled),
        }

    def list_my_registrations(
        self, user: User, leg_id: int | None = None, status: RegistrationStatus | None = None
    ) -> dict:
        query = self.db.query(Registration).filter(Registration.user_id == user.id)
        if leg_id is not None:
            query = query.filter(Registration.leg_id == leg_id)
        if status is not None:
            query = query.filter(Registration.status == status)
        registrations = query.order_by(Registration.created_at.desc(), Registration.id.desc()).all()
        return {
            "registrations": [self.serialize(r, include_answers=True) for r in registrations],
            "total": len(registrations),
        }

    def cancel_registration(self, registration_id: int, user: User) -> Registration:
        registration = self.get_registration(registration_id)
        if registration.user_id != user.id:
            raise PermissionError("You can only cancel your own registrations")
        if registration.status == RegistrationStatus.CANCELLED:
            raise ValueError("Registration is already cancelled")
        registration.status = RegistrationStatus.CANCELLED
        self.db.commit()
        self.db.refresh(registration)
        logger.info("Registration %s cancelled by crew member %s", registration.id, user.id)
        return registration

    # ---- Owner operations ----

    def get_registration_detail(self, registration_id: int, user: User) -> dict:
        registration = self.get_for_viewer(registration_id, user)
        is_owner = self.owner_id_of(registration) == user.id
        return self.serialize(registration, include_crew=is_owner, include_answers=True)

    def update_status(
        self, registration_id: int, owner: User, status: RegistrationStatus, notes: str | None = None
    ) -> Registration:
        if status not in OWNER_STATUSES:
            raise ValueError(
                f"Invalid status. Must be one of: {', '.join(s.value for s in OWNER_STATUSES)}"
            )
        registration = self.get_for_owner(registration_id, owner)
        registration.status = status
        registration.notes = notes or None
        self.db.commit()
        self.db.refresh(registration)
        logger.info("Registration %s set to %s by owner %s", registration.id, status.value, owner.id)

        journey = registration.leg.journey
        if status == RegistrationStatus.APPROVED:
            self.notifications.notify_registration_approved(registration.user, journey, owner)
        elif status == RegistrationStatus.NOT_APPROVED:
            self.notifications.notify_registration_denied(registration.user, journey, owner, notes)
        return registration

    def list_by_journey(
        self, journey_id: int, owner: User, status: RegistrationStatus | None = None
    ) -> dict:
        journey = self.db.query(Journey).filter(Journey.id == journey_id).first()
        if journey is None:
            raise NotFoundError("Journey not found")
        if journey.boat.owner_id != owner.id:
            raise PermissionError("You do not have permission to view registrations for this journey")

        query = self.db.query(Registration).join(Leg, Leg.id == Registration.leg_id).filter(Leg.journey_id == journey.id)
        return self._owner_listing(query, status)

    def list_owner_registrations(self, owner: User, status: RegistrationStatus | None = None) -> dict:
        query = (
            self.db.query(Registration)
            .join(Leg, Leg.id == Registration.leg_id)
            .join(Journey, Journey.id == Leg.journey_id)
            .join(Boat, Boat.id == Journey.boat_id)
            .filter(Boat.owner_id == owner.id)
        )
        return self._owner_listing(query, status)

    def _owner_listing(self, query, status: RegistrationStatus | None) -> dict:
        if status is not None:
            query = query.filter(Registration.status == status)
        registrations = query.order_by(Registration.created_at.desc(), Registration.id.desc()).all()
        shared = self._shared_profile_ids(r.user_id for r in registrations)
        return {
            "registrations": [
                self.serialize(r, include_crew=True, include_answers=True, shared_ids=shared)
                for r in registrations
            ],
            "total": len(registrations),
        }
