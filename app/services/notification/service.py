"""
Notification Service
In-app notifications, email delivery by preference and fan-out to journey crew
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.db.models.boat import Boat, BoatInventory
from app.db.models.journey import Journey, Leg
from app.db.models.notification import Notification, EmailPreferences, NotificationType
from app.db.models.registration import Registration, RegistrationStatus
from app.db.models.user import User
from app.services.auth.service import calculate_profile_completion
from app.services.notification.email_service import EmailService

logger = logging.getLogger(__name__)

EMAIL_PREFERENCE_FIELDS = ("registration_updates", "journey_updates", "profile_reminders")

PROFILE_REMINDER_INTERVAL = timedelta(days=7)

FEEDBACK_STATUS_LABELS = {
    "new": "New",
    "under_review": "Under Review",
    "planned": "Planned",
    "in_progress": "In Progress",
    "completed": "Completed",
    "declined": "Declined",
}


def display_name(user: User | None) -> str:
    if user is None:
        return "Someone"
    return user.full_name or user.username or "Someone"


def sender_info(user: User | None) -> dict:
    if user is None:
        return {}
    return {
        "sender_id": user.id,
        "sender_name": display_name(user),
        "sender_avatar_url": user.profile_image_url,
    }


def _changes_text(changes: list[str]) -> str:
    return ", ".join(changes) if changes else "details"


class NotificationService:
    def __init__(self, db: Session, email_service: EmailService | None = None):
        self.db = db
        self.email_service = email_service or EmailService()

    # ---- CRUD ----

    def create_notification(
        self,
        user_id: int,
        type: NotificationType | str,
        title: str,
        message: str | None = None,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type.value if isinstance(type, NotificationType) else type,
            title=title,
            message=message,
            link=link,
            metadata_json={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.debug("Notification %s (%s) created for user %s", notification.id, notification.type, user_id)
        return notification

    def list_notifications(self, user: User, limit: int = 20, offset: int = 0, unread_only: bool = False) -> dict:
        query = self.db.query(Notification).filter(Notification.user_id == user.id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        total = query.count()
        notifications = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "notifications": notifications,
            "total": total,
            "unread_count": self.get_unread_count(user),
        }

    def get_unread_count(self, user: User) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user.id, Notification.read.is_(False))
            .count()
        )

    def _get_own(self, user: User, notification_id: int) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user.id)
            .first()
        )
        if notification is None:
            raise NotFoundError("Notification not found")
        return notification

    def mark_as_read(self, user: User, notification_id: int) -> Notification:
        notification = self._get_own(user, notification_id)
        notification.read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user: User) -> int:
        count = (
            self.db.query(Notification)
            .filter(Notification.user_id == user.id, Notification.read.is_(False))
            .update({Notification.read: True}, synchronize_session=False)
        )
        self.db.commit()
        return count

    def delete_notification(self, user: User, notification_id: int) -> None:
        notification = self._get_own(user, notification_id)
        self.db.delete(notification)
        self.db.commit()

    # ---- Email preferences ----

    def get_email_preferences(self, user_id: int) -> EmailPreferences:
        """Stored preferences, or an unsaved all-enabled default"""
        preferences = self.db.query(EmailPreferences).filter(EmailPreferences.user_id == user_id).first()
        if preferences is None:
            preferences = EmailPreferences(
                user_id=user_id,
                registration_updates=True,
                journey_updates=True,
                profile_reminders=True,
            )
        return preferences

    def update_email_preferences(self, user: User, updates: dict[str, bool | None]) -> EmailPreferences:
        preferences = self.db.query(EmailPreferences).filter(EmailPreferences.user_id == user.id).first()
        if preferences is None:
            preferences = EmailPreferences(user_id=user.id)
            self.db.add(preferences)
        for field in EMAIL_PREFERENCE_FIELDS:
            value = updates.get(field)
            if value is not None:
                setattr(preferences, field, value)
            elif getattr(preferences, field) is None:
                setattr(preferences, field, True)
        self.db.commit()
        self.db.refresh(preferences)
        return preferences

    def should_send_email(self, user_id: int, kind: str) -> bool:
        if kind not in EMAIL_PREFERENCE_FIELDS:
            raise ValueError(f"Unknown email preference: {kind}")
        return bool(getattr(self.get_email_preferences(user_id), kind))

    def _send_email_if_allowed(self, user: User | None, kind: str, send: Callable[[str], bool]) -> bool:
        if user is None or not user.email:
            return False
        if not self.should_send_email(user.id, kind):
            logger.debug("User %s opted out of %s emails", user.id, kind)
            return False
        return send(user.email)

    # ---- Registration notifications ----

    def notify_registration_approved(self, crew: User, journey: Journey, owner: User | None) -> Notification:
        owner_name = display_name(owner)
        notification = self.create_notification(
            crew.id,
            NotificationType.REGISTRATION_APPROVED,
            "Registration Approved",
            f'Your registration for "{journey.name}" has been approved by {owner_name}. Welcome aboard!',
            "/crew/registrations",
            {
                "journey_id": journey.id,
                "journey_name": journey.name,
                "owner_name": owner_name,
                "owner_id": owner.id if owner else None,
                **sender_info(owner),
            },
        )
        self._send_email_if_allowed(
            crew,
            "registration_updates",
            lambda to: self.email_service.send_registration_approved(to, journey.name, owner_name, journey.id),
        )
        return notification

    def notify_registration_denied(
        self, crew: User, journey: Journey, owner: User | None, reason: str | None = None
    ) -> Notification:
        owner_name = display_name(owner)
        if reason:
            message = f'Your registration for "{journey.name}" was not approved. Reason: {reason}'
        else:
            message = f'Your registration for "{journey.name}" was not approved by {owner_name}.'
        notification = self.create_notification(
            crew.id,
            NotificationType.REGISTRATION_DENIED,
            "Registration Not Approved",
            message,
            "/crew/registrations",
            {
                "journey_id": journey.id,
                "journey_name": journey.name,
                "owner_name": owner_name,
                "owner_id": owner.id if owner else None,
                "reason": reason,
                **sender_info(owner),
            },
        )
        self._send_email_if_allowed(
            crew,
            "registration_updates",
            lambda to: self.email_service.send_registration_denied(to, journey.name, owner_name, reason),
        )
        return notification

    def notify_new_registration(
        self, owner: User, registration: Registration, journey: Journey, crew: User
    ) -> Notification:
        crew_name = display_name(crew)
        notification = self.create_notification(
            owner.id,
            NotificationType.NEW_REGISTRATION,
            "New Crew Registration",
            f'{crew_name} has registered for "{journey.name}". Review their application now.',
            f"/owner/registrations/{registration.id}",
            {
                "registration_id": registration.id,
                "journey_id": journey.id,
                "journey_name": journey.name,
                "crew_name": crew_name,
                "crew_id": crew.id,
                **sender_info(crew),
            },
        )
        self._send_email_if_allowed(
            owner,
            "registration_updates",
            lambda to: self.email_service.send_new_registration(to, crew_name, journey.name, registration.id),
        )
        return notification

    def notify_pending_registration(
        self, crew: User, registration: Registration, journey: Journey, leg: Leg
    ) -> Notification:
        return self.create_notification(
            crew.id,
            NotificationType.PENDING_REGISTRATION,
            "Registration Pending Review",
            f'Your registration for "{leg.name}" in "{journey.name}" is pending approval. '
            "You will be notified once the owner reviews your application.",
            f"/crew/registrations?registration={registration.id}",
            {
                "registration_id": registration.id,
                "journey_id": journey.id,
                "journey_name": journey.name,
                "leg_name": leg.name,
                # Journey acts as sender
                "sender_id": journey.id,
                "sender_name": journey.name,
            },
        )

    # ---- AI assessment notifications ----

    def notify_ai_consent_missing(self, owner_id: int, registration: Registration, journey: Journey) -> Notification:
        return self.create_notification(
            owner_id,
            NotificationType.AI_REVIEW_NEEDED,
            "Manual Review Required",
            "A crew member has applied but has not consented to AI matching. Please review manually.",
            f"/owner/registrations/{registration.id}",
            {
                "registration_id": registration.id,
                "journey_id": journey.id,
                "reason": "no_ai_consent",
            },
        )

    def notify_ai_auto_approved(
        self,
        owner_id: int,
        registration: Registration,
        journey: Journey,
        crew: User,
        match_score: int,
        recommendation: str | None,
    ) -> Notification:
        crew_name = display_name(crew)
        return self.create_notification(
            owner_id,
            NotificationType.AI_AUTO_APPROVED,
            "Registration Auto-Approved",
            f'{crew_name}\'s registration for "{journey.name}" was automatically approved by AI (Score: {match_score}%).',
            f"/owner/registrations/{registration.id}",
            {
                "registration_id": registration.id,
                "journey_id": journey.id,
                "journey_name": journey.name,
                "crew_name": crew_name,
                "crew_id": crew.id,
                "match_score": match_score,
                "recommendation": recommendation,
                **sender_info(crew),
            },
        )

    def notify_ai_review_needed(
        self,
        owner: User,
        registration: Registration,
        journey: Journey,
        crew: User,
        match_score: int,
        recommendation: str | None,
    ) -> Notification:
        crew_name = display_name(crew)
        notification = self.create_notification(
            owner.id,
            NotificationType.AI_REVIEW_NEEDED,
            "Registration Needs Review",
            f'{crew_name}\'s registration for "{journey.name}" needs your review (AI Score: {match_score}%).',
            f"/owner/registrations/{registration.id}",
            {
                "registration_id": registration.id,
                "journey_id": journey.id,
                "journey_name": journey.name,
                "crew_name": crew_name,
                "crew_id": crew.id,
                "match_score": match_score,
                "recommendation": recommendation,
                **sender_info(crew),
            },
        )
        self._send_email_if_allowed(
            owner,
            "registration_updates",
            lambda to: self.email_service.send_review_needed(to, crew_name, journey.name, registration.id, match_score),
        )
        return notification

    # ---- Journey notifications ----

    def notify_journey_updated(self, crew_user_id: int, journey: Journey, changes: list[str]) -> Notification:
        notification = self.create_notification(
            crew_user_id,
            NotificationType.JOURNEY_UPDATED,
            "Journey Updated",
            f'"{journey.name}" has been updated: {_changes_text(changes)}',
            f"/journeys/{journey.id}",
            {"journey_id": journey.id, "journey_name": journey.name, "changes": changes},
        )
        crew = self.db.query(User).filter(User.id == crew_user_id).first()
        self._send_email_if_allowed(
            crew,
            "journey_updates",
            lambda to: self.email_service.send_journey_updated(to, journey.name, changes, journey.id),
        )
        return notification

    def notify_leg_updated(self, crew_user_id: int, leg: Leg, journey: Journey, changes: list[str]) -> Notification:
        return self.create_notification(
            crew_user_id,
            NotificationType.LEG_UPDATED,
            "Leg Updated",
            f'"{leg.name}" in "{journey.name}" has been updated: {_changes_text(changes)}',
            f"/journeys/{journey.id}?leg={leg.id}",
            {
                "leg_id": leg.id,
                "leg_name": leg.name,
                "journey_id": journey.id,
                "journey_name": journey.name,
                "changes": changes,
            },
        )

    def approved_crew_ids(self, journey_id: int) -> list[int]:
        """Unique users with an approved registration on any leg of the journey"""
        rows = (
            self.db.query(Registration.user_id)
            .join(Leg, Leg.id == Registration.leg_id)
            .filter(Leg.journey_id == journey_id, Registration.status == RegistrationStatus.APPROVED)
            .distinct()
            .all()
        )
        return sorted(row[0] for row in rows)

    def notify_all_approved_crew(self, journey_id: int, notify: Callable[[int], Any]) -> dict:
        """Run notify(user_id) for every approved crew member; failures are collected, not raised"""
        errors: list[str] = []
        notified = 0
        for user_id in self.approved_crew_ids(journey_id):
            try:
                notify(user_id)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Failed to notify user %s about journey %s: %s", user_id, journey_id, e)
                errors.append(f"Failed to notify user {user_id}: {e}")
            else:
                notified += 1
        return {"success": not errors, "notified_count": notified, "errors": errors}

    # ---- Profile, feedback and inventory notifications ----

    def notify_profile_reminder(self, user: User, missing_fields: list[str], completion_percentage: int) -> Notification:
        fields_text = ", ".join(missing_fields[:3])
        more_text = f" and {len(missing_fields) - 3} more" if len(missing_fields) > 3 else ""
        notification = self.create_notification(
            user.id,
            NotificationType.PROFILE_REMINDER,
            "Complete Your Profile",
            f"Your profile is {completion_percentage}% complete. "
            f"Add {fields_text}{more_text} to improve your chances of being approved.",
            "/profile",
            {"missing_fields": missing_fields, "completion_percentage": completion_percentage},
        )
        self._send_email_if_allowed(
            user,
            "profile_reminders",
            lambda to: self.email_service.send_profile_reminder(to, missing_fields, completion_percentage),
        )
        return notification

    def send_profile_reminders(self, now: datetime | None = None) -> int:
        """Remind users with incomplete profiles, at most once per interval. Returns reminders sent."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - PROFILE_REMINDER_INTERVAL
        users = (
            self.db.query(User)
            .filter(User.profile_completion_percentage < 100)
            .filter((User.last_profile_reminder_at.is_(None)) | (User.last_profile_reminder_at < cutoff))
            .all()
        )

        sent = 0
        for user in users:
            completion = calculate_profile_completion(user)
            if completion["percentage"] >= 100:
                continue
            missing = [field["label"] for field in completion["missing_fields"]]
            self.notify_profile_reminder(user, missing, completion["percentage"])
            user.last_profile_reminder_at = now
            self.db.commit()
            sent += 1

        logger.info("Sent %s profile reminders", sent)
        return sent

    def notify_feedback_status_changed(
        self,
        user_id: int,
        feedback_id: int,
        feedback_title: str,
        old_status: str,
        new_status: str,
        status_note: str | None = None,
    ) -> Notification:
        label = FEEDBACK_STATUS_LABELS.get(new_status, new_status)
        message = f'Your feedback "{feedback_title}" has been updated to "{label}".'
        if status_note:
            message += f" Note: {status_note}"
        return self.create_notification(
            user_id,
            NotificationType.FEEDBACK_STATUS_CHANGED,
            "Feedback Status Updated",
            message,
            f"/feedback/{feedback_id}",
            {
                "feedback_id": feedback_id,
                "feedback_title": feedback_title,
                "old_status": old_status,
                "new_status": new_status,
                "status_note": status_note,
            },
        )

    def notify_feedback_milestone(self, user_id: int, feedback_id: int, feedback_title: str, milestone: int) -> Notification:
        return self.create_notification(
            user_id,
            NotificationType.FEEDBACK_MILESTONE,
            "Feedback Milestone Reached!",
            f'Your feedback "{feedback_title}" has reached {milestone} upvotes! '
            "The community is interested in your idea.",
            f"/feedback/{feedback_id}",
            {"feedback_id": feedback_id, "feedback_title": feedback_title, "milestone": milestone},
        )

    def notify_low_stock(self, boat: Boat, items: list[BoatInventory]) -> Notification:
        names = ", ".join(item.name for item in items[:3])
        more_text = f" and {len(items) - 3} more" if len(items) > 3 else ""
        return self.create_notification(
            boat.owner_id,
            NotificationType.LOW_STOCK,
            "Low Stock on Board",
            f'{len(items)} inventory item(s) on "{boat.name}" are at or below minimum stock: {names}{more_text}.',
            f"/owner/boats/{boat.id}/inventory",
            {"boat_id": boat.id, "boat_name": boat.name, "item_ids": [item.id for item in items]},
        )
