"""
AI Registration Assessment
Scores a crew registration against the journey's requirements and auto-approves
strong matches when the owner enabled auto-approval
"""
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import AIServiceError, AssessmentError, NotFoundError
from app.db.models.journey import Journey, JourneyRequirement, Leg, QuestionType
from app.db.models.registration import Registration, RegistrationAnswer, RegistrationStatus
from app.db.models.user import EXPERIENCE_LEVEL_NAMES, User
from app.db.postgres import SessionLocal
from app.services.ai.groq_service import GroqLLMService, parse_json_response
from app.services.consents.service import has_ai_processing_consent
from app.services.journeys.service import effective_leg_requirements
from app.services.matching.skill_matching import normalize_skill_names, to_display_skill_name
from app.services.notification.service import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 80
RECOMMENDATIONS = {"approve", "deny", "review"}

EXPERIENCE_SCALE = ", ".join(f"{level}={name}" for level, name in EXPERIENCE_LEVEL_NAMES.items())


def _format_date(value: Any) -> str:
    return value.strftime("%Y-%m-%d") if value else "N/A"


def _answer_text(requirement: JourneyRequirement, answer: Optional[RegistrationAnswer]) -> str:
    if answer is None:
        return "Not answered"
    if requirement.question_type in (QuestionType.TEXT, QuestionType.YES_NO):
        return answer.answer_text or "Not answered"
    return json.dumps(answer.answer_json)


def build_assessment_prompt(
    crew: User,
    journey: Journey,
    leg: Leg,
    requirements: list[JourneyRequirement],
    answers: Dict[int, RegistrationAnswer],
) -> str:
    """Context block handed to the model; output contract at the end."""
    crew_skills = [to_display_skill_name(s) for s in normalize_skill_names(crew.skills)]
    required_skills, required_level = effective_leg_requirements(leg)
    leg_skills = [to_display_skill_name(s) for s in required_skills]

    qa_section = "\n\n".join(
        f"Q{i} (Weight: {req.weight}/10): {req.question_text}\nA{i}: {_answer_text(req, answers.get(req.id))}"
        for i, req in enumerate(requirements, start=1)
    )

    return f"""
[ROLE]
You are an expert sailing crew matching assistant. You assess how well a crew member
matches the requirements of a sailing journey leg, based on their profile, experience
and answers to the skipper's questions.

[CREW MEMBER PROFILE]
- Name: {crew.full_name or 'Not provided'}
- Experience Level: {crew.sailing_experience or 'Not specified'} ({EXPERIENCE_SCALE})
- Skills: {', '.join(crew_skills) if crew_skills else 'None listed'}
- Risk Tolerance: {', '.join(crew.risk_level) if crew.risk_level else 'Not specified'}
- Sailing Preferences: {crew.sailing_preferences or 'Not specified'}

[JOURNEY REQUIREMENTS]
- Journey: {journey.name}
- Leg: {leg.name}
- Required Skills: {', '.join(leg_skills) if leg_skills else 'None specified'}
- Required Experience Level: {required_level or 'Not specified'} ({EXPERIENCE_SCALE})
- Risk Level: {leg.risk_level or ', '.join(journey.risk_level or []) or 'Not specified'}
- Dates: {_format_date(leg.start_date)} to {_format_date(leg.end_date)}

[CUSTOM QUESTIONS & ANSWERS]
{qa_section or 'No custom questions'}

[OUTPUT CONTRACT]
Return JSON exactly:
{{
  "match_score": <integer 0-100>,
  "reasoning": "<assessment considering skills, experience, risk tolerance and the answers>",
  "recommendation": "approve|deny|review"
}}

[RULES]
- Never add text outside JSON.
- Be thorough and fair. Weigh technical skills, experience level, risk tolerance alignment,
  quality of the answers (heavier weight = more important) and overall fit for the journey.
"""


def parse_assessment(content: str) -> Dict[str, Any]:
    """Validate the model's reply; AssessmentError when unusable"""
    try:
        data = parse_json_response(content)
    except ValueError as e:
        raise AssessmentError(f"Failed to parse AI assessment: {e}") from e

    score = data.get("match_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 100:
        raise AssessmentError(f"Invalid match_score: {score}")

    recommendation = str(data.get("recommendation") or "review").lower()
    if recommendation not in RECOMMENDATIONS:
        recommendation = "review"

    return {
        "match_score": score,
        "reasoning": data.get("reasoning") or None,
        "recommendation": recommendation,
    }


class RegistrationAssessmentService:
    def __init__(self, db: Session, llm: GroqLLMService, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.llm = llm
        self.notifications = notification_service or NotificationService(db)

    def assess_registration(self, registration_id: int) -> Dict[str, Any]:
        """
        Run the AI assessment for one registration

        Returns:
            {"status": "skipped" | "manual_review" | "assessed", ...}

        Raises:
            NotFoundError: unknown registration
            AssessmentError: missing data, missing required answers or unusable AI reply
            AIServiceError: provider failure
        """
        registration = self.db.query(Registration).filter(Registration.id == registration_id).first()
        if registration is None:
            raise NotFoundError(f"Registration not found: {registration_id}")

        leg = registration.leg
        journey = leg.journey if leg else None
        if journey is None or journey.boat is None:
            raise AssessmentError(f"Missing journey data for registration: {registration_id}")
        owner = journey.boat.owner
        crew = registration.user

        if not journey.auto_approval_enabled:
            return {"status": "skipped", "reason": "auto_approval_disabled"}

        if not has_ai_processing_consent(self.db, crew.id):
            logger.info("Registration %s: crew member has no AI consent, manual review", registration_id)
            self.notifications.notify_ai_consent_missing(owner.id, registration, journey)
            return {"status": "manual_review", "reason": "no_ai_consent"}

        requirements = list(journey.requirements)
        if not requirements:
            return {"status": "skipped", "reason": "no_requirements"}

        answers = {a.requirement_id: a for a in registration.answers}
        missing = [r.question_text for r in requirements if r.is_required and r.id not in answers]
        if missing:
            raise AssessmentError(f"Missing answers for required questions: {', '.join(missing)}")
        if not answers:
            raise AssessmentError(f"No answers found for registration {registration_id}")

        prompt = build_assessment_prompt(crew, journey, leg, requirements, answers)
        try:
            reply = self.llm.complete(prompt, use_case="assessment")
        except AIServiceError as e:
            logger.error(
                "AI assessment failed for registration %s (provider %s, model %s): %s",
                registration_id, e.provider or "unknown", e.model or "unknown", e,
            )
            raise

        assessment = parse_assessment(reply)
        score = int(round(assessment["match_score"]))
        threshold = journey.auto_approval_threshold if journey.auto_approval_threshold is not None else DEFAULT_THRESHOLD
        should_approve = assessment["match_score"] >= threshold and assessment["recommendation"] != "deny"

        registration.ai_match_score = score
        registration.ai_match_reasoning = assessment["reasoning"]
        auto_approved = should_approve and registration.status == RegistrationStatus.PENDING
        if auto_approved:
            registration.status = RegistrationStatus.APPROVED
            registration.auto_approved = True
        self.db.commit()
        self.db.refresh(registration)
        logger.info(
            "Registration %s assessed: score %s (threshold %s, %s) -> %s",
            registration_id, score, threshold, assessment["recommendation"], registration.status.value,
        )

        if auto_approved:
            self.notifications.notify_registration_approved(crew, journey, owner)
            self.notifications.notify_ai_auto_approved(
                owner.id, registration, journey, crew, score, assessment["recommendation"]
            )
        else:
            self.notifications.notify_ai_review_needed(
                owner, registration, journey, crew, score, assessment["recommendation"]
            )

        return {
            "status": "assessed",
            "match_score": score,
            "reasoning": assessment["reasoning"],
            "recommendation": assessment["recommendation"],
            "auto_approved": auto_approved,
            "registration_status": registration.status.value,
        }


def run_registration_assessment(registration_id: int, llm: GroqLLMService) -> None:
    """Background task entry point; owns its database session"""
    db = SessionLocal()
    try:
        RegistrationAssessmentService(db, llm).assess_registration(registration_id)
    except (AssessmentError, AIServiceError, LookupError) as e:
        db.rollback()
        logger.error("Background assessment of registration %s failed: %s", registration_id, e)
    finally:
        db.close()
