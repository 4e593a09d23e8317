"""
Consent Service
GDPR consents, their audit trail and account erasure
"""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.core.privacy import get_privacy_protocol
from app.db.models.assistant import AIConversation, AIMessage
from app.db.models.boat import Boat
from app.db.models.consent import ConsentAuditLog, UserConsent, default_cookie_preferences
from app.db.models.feedback import Feedback, FeedbackPromptDismissal, FeedbackVote
from app.db.models.notification import EmailPreferences, Notification
from app.db.models.registration import Registration, RegistrationAnswer
from app.db.models.user import User
from app.services.consents.schemas import AcceptLegalRequest, ConsentType, CookiePreferences

logger = logging.getLogger(__name__)

DELETE_CONFIRMATION = "DELETE MY ACCOUNT"

OPTIONAL_CONSENTS = (ConsentType.AI_PROCESSING, ConsentType.PROFILE_SHARING, ConsentType.MARKETING)


def get_user_consent(db: Session, user_id: int) -> UserConsent | None:
    return db.query(UserConsent).filter(UserConsent.user_id == user_id).first()


def has_ai_processing_consent(db: Session, user_id: int) -> bool:
    consent = get_user_consent(db, user_id)
    return bool(consent and consent.ai_processing_consent)


def has_profile_sharing_consent(db: Session, user_id: int) -> bool:
    consent = get_user_consent(db, user_id)
    return bool(consent and consent.profile_sharing_consent)


class ConsentService:
    def __init__(self, db: Session):
        self.db = db

    def _get_or_create(self, user_id: int) -> UserConsent:
        consent = get_user_consent(self.db, user_id)
        if consent is None:
            consent = UserConsent(
                user_id=user_id,
                ai_processing_consent=False,
                profile_sharing_consent=False,
                marketing_consent=False,
                cookie_preferences=default_cookie_preferences(),
            )
            self.db.add(consent)
        return consent

    def _audit(
        self,
        user_id: int,
        consent_type: str,
        action: str,
        old_value: Any = None,
        new_value: Any = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.db.add(
            ConsentAuditLog(
                user_id=user_id,
                consent_type=consent_type,
                action=action,
                old_value=old_value,
                new_value=new_value,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        )

    def get_status(self, user: User) -> dict:
        consent = get_user_consent(self.db, user.id)
        return {
            "consents": consent,
            "has_accepted_required": bool(
                consent and consent.privacy_policy_accepted_at and consent.terms_accepted_at
            ),
        }

    def accept_legal(
        self,
        user: User,
        data: AcceptLegalRequest,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        """Record privacy policy / terms acceptance and any optional consents given at sign-up"""
        if not data.privacy_policy or not data.terms:
            raise ValueError("The privacy policy and terms of service must both be accepted")

        now = datetime.now(timezone.utc)
        consent = self._get_or_create(user.id)
        consent.privacy_policy_accepted_at = now
        consent.terms_accepted_at = now
        for consent_type in ("privacy_policy", "terms"):
            self._audit(user.id, consent_type, "granted", None, {"value": True, "at": now.isoformat()}, ip_address, user_agent)

        for consent_type in OPTIONAL_CONSENTS:
            value = getattr(data, consent_type.value)
            if value is not None:
                self._set_flag(consent, consent_type, value, now, ip_address, user_agent)

        self.db.commit()
        logger.info("User %s accepted legal terms", user.id)
        return self.get_status(user)

    def _set_flag(
        self,
        consent: UserConsent,
        consent_type: ConsentType,
        value: bool,
        now: datetime,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        field = f"{consent_type.value}_consent"
        old_value = getattr(consent, field)
        setattr(consent, field, value)
        setattr(consent, f"{field}_at", now)
        self._audit(
            consent.user_id,
            consent_type.value,
            "granted" if value else "revoked",
            {"value": old_value} if old_value is not None else None,
            {"value": value, "at": now.isoformat()},
            ip_address,
            user_agent,
        )

    def update_consent(
        self,
        user: User,
        consent_type: ConsentType,
        value: bool | CookiePreferences,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> UserConsent:
        """Upsert one consent and write an audit row"""
        now = datetime.now(timezone.utc)
        consent = self._get_or_create(user.id)

        if consent_type == ConsentType.COOKIES:
            if not isinstance(value, CookiePreferences):
                raise ValueError("cookies consent needs a cookie preferences object")
            old_value = consent.cookie_preferences
            new_preferences = value.model_dump()
            new_preferences["essential"] = True
            consent.cookie_preferences = new_preferences
            consent.cookie_preferences_at = now
            self._audit(
                user.id,
                consent_type.value,
                "updated",
                {"value": old_value} if old_value is not None else None,
                {"value": new_preferences, "at": now.isoformat()},
                ip_address,
                user_agent,
            )
        else:
            if not isinstance(value, bool):
                raise ValueError(f"{consent_type.value} consent needs a boolean value")
            self._set_flag(consent, consent_type, value, now, ip_address, user_agent)

        self.db.commit()
        self.db.refresh(consent)
        logger.info("User %s set %s consent", user.id, consent_type.value)
        return consent

    def get_audit_trail(self, user: User, limit: int = 100) -> list[ConsentAuditLog]:
        return (
            self.db.query(ConsentAuditLog)
            .filter(ConsentAuditLog.user_id == user.id)
            .order_by(ConsentAuditLog.created_at.desc(), ConsentAuditLog.id.desc())
            .limit(limit)
            .all()
        )

    def delete_account(
        self,
        user: User,
        confirmation: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, int]:
        """
        Erase the account and everything it owns

        The consent audit trail is kept, including a record of this deletion.

        Returns:
            Rows removed per table
        """
        if confirmation != DELETE_CONFIRMATION:
            raise ValueError(f'Invalid confirmation. Please type "{DELETE_CONFIRMATION}" exactly.')

        user_id = user.id
        masked_email = get_privacy_protocol().mask_email(user.email)
        self._audit(
            user_id,
            "account",
            "revoked",
            None,
            {"action": "account_deletion_requested", "at": datetime.now(timezone.utc).isoformat()},
            ip_address,
            user_agent,
        )
        deleted: dict[str, int] = {}

        deleted["notifications"] = (
            self.db.query(Notification).filter(Notification.user_id == user_id).delete(synchronize_session=False)
        )
        deleted["email_preferences"] = (
            self.db.query(EmailPreferences)
            .filter(EmailPreferences.user_id == user_id)
            .delete(synchronize_session=False)
        )

        registration_ids = [r.id for r in self.db.query(Registration.id).filter(Registration.user_id == user_id)]
        deleted["registration_answers"] = (
            self.db.query(RegistrationAnswer)
            .filter(RegistrationAnswer.registration_id.in_(registration_ids))
            .delete(synchronize_session=False)
            if registration_ids else 0
        )
        deleted["registrations"] = (
            self.db.query(Registration).filter(Registration.user_id == user_id).delete(synchronize_session=False)
        )

        conversation_ids = [c.id for c in self.db.query(AIConversation.id).filter(AIConversation.user_id == user_id)]
        deleted["ai_messages"] = (
            self.db.query(AIMessage)
            .filter(AIMessage.conversation_id.in_(conversation_ids))
            .delete(synchronize_session=False)
            if conversation_ids else 0
        )
        deleted["ai_conversations"] = (
            self.db.query(AIConversation).filter(AIConversation.user_id == user_id).delete(synchronize_session=False)
        )

        # Votes on other people's feedback also leave the counters
        votes = self.db.query(FeedbackVote).filter(FeedbackVote.user_id == user_id).all()
        for vote in votes:
            feedback = vote.feedback
            if vote.vote == 1:
                feedback.upvotes = max(0, feedback.upvotes - 1)
            else:
                feedback.downvotes = max(0, feedback.downvotes - 1)
            self.db.delete(vote)
        deleted["feedback_votes"] = len(votes)

        self.db.query(Feedback).filter(Feedback.status_changed_by == user_id).update(
            {Feedback.status_changed_by: None}, synchronize_session=False
        )
        own_feedback = self.db.query(Feedback).filter(Feedback.user_id == user_id).all()
        for feedback in own_feedback:
            self.db.delete(feedback)
        deleted["feedback"] = len(own_feedback)
        deleted["feedback_prompt_dismissals"] = (
            self.db.query(FeedbackPromptDismissal)
            .filter(FeedbackPromptDismissal.user_id == user_id)
            .delete(synchronize_session=False)
        )

        # Journeys, legs, equipment, inventory and maintenance tasks go with the boats
        boats = self.db.query(Boat).filter(Boat.owner_id == user_id).all()
        for boat in boats:
            self.db.delete(boat)
        deleted["boats"] = len(boats)

        deleted["user_consents"] = (
            self.db.query(UserConsent).filter(UserConsent.user_id == user_id).delete(synchronize_session=False)
        )

        self.db.flush()
        self.db.expire(user)
        self.db.delete(user)
        deleted["users"] = 1
        self.db.commit()

        logger.info("Account %s (%s) deleted: %s", user_id, masked_email, deleted)
        return deleted
