"""
Feedback Service
Bug reports and feature requests, community voting, admin triage and feedback prompts
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import NotFoundError
from app.db.models.feedback import Feedback, FeedbackPromptDismissal, FeedbackStatusEnum, FeedbackType, FeedbackVote
from app.db.models.journey import Leg
from app.db.models.notification import Notification, NotificationType
from app.db.models.registration import Registration, RegistrationStatus
from app.db.models.user import User
from app.services.feedback.schemas import (
    FeedbackCreateRequest,
    FeedbackPromptType,
    FeedbackSort,
    FeedbackUpdateRequest,
)
from app.services.notification.service import NotificationService

logger = logging.getLogger(__name__)

UPVOTE_MILESTONES = (10, 25, 50, 100)
POST_JOURNEY_WINDOW = timedelta(days=7)
GENERAL_PROMPT_INTERVAL = timedelta(days=30)
MAX_PAGE_SIZE = 100


def build_author_info(feedback: Feedback, is_admin: bool = False) -> dict:
    """Author block; anonymous items hide the author from everyone but admins"""
    if feedback.is_anonymous and not is_admin:
        return {"id": None, "full_name": "Anonymous", "is_anonymous": True}
    if feedback.user is None:
        return {"id": None, "full_name": "Unknown User", "is_anonymous": feedback.is_anonymous}
    return {
        "id": feedback.user.id,
        "full_name": feedback.user.full_name or feedback.user.username or "User",
        "is_anonymous": feedback.is_anonymous,
    }


class FeedbackService:
    def __init__(self, db: Session, notification_service: NotificationService | None = None) -> None:
        self.db = db
        self.notifications = notification_service or NotificationService(db)

    # ---- Serialization ----

    def serialize(self, feedback: Feedback, viewer: Optional[User] = None, user_vote: Optional[int] = None) -> dict:
        is_admin = bool(viewer and viewer.is_admin)
        return {
            "id": feedback.id,
            "type": feedback.type,
            "title": feedback.title,
            "description": feedback.description,
            "context_page": feedback.context_page,
            "status": feedback.status,
            "status_note": feedback.status_note,
            "status_changed_at": feedback.status_changed_at,
            "upvotes": feedback.upvotes,
            "downvotes": feedback.downvotes,
            "vote_score": feedback.vote_score,
            "is_public": feedback.is_public,
            "is_anonymous": feedback.is_anonymous,
            "created_at": feedback.created_at,
            "updated_at": feedback.updated_at,
            "author": build_author_info(feedback, is_admin),
            "user_vote": user_vote,
            "is_owner": bool(viewer and viewer.id == feedback.user_id),
        }

    def _user_votes(self, user_id: int, feedback_ids: list[int]) -> dict[int, int]:
        if not feedback_ids:
            return {}
        votes = (
            self.db.query(FeedbackVote)
            .filter(FeedbackVote.user_id == user_id, FeedbackVote.feedback_id.in_(feedback_ids))
            .all()
        )
        return {v.feedback_id: v.vote for v in votes}

    # ---- Lookups ----

    def _get(self, feedback_id: int) -> Feedback:
        feedback = self.db.query(Feedback).filter(Feedback.id == feedback_id).first()
        if feedback is None:
            raise NotFoundError("Feedback not found")
        return feedback

    def _get_own(self, feedback_id: int, user: User) -> Feedback:
        feedback = self._get(feedback_id)
        if feedback.user_id != user.id:
            raise PermissionError("You can only modify your own feedback")
        return feedback

    def get_feedback(self, feedback_id: int, viewer: Optional[User] = None) -> dict:
        """Public feedback, or private feedback seen by its author or an admin"""
        feedback = self._get(feedback_id)
        is_author = viewer is not None and viewer.id == feedback.user_id
        if not feedback.is_public and not is_author and not (viewer and viewer.is_admin):
            raise NotFoundError("Feedback not found")
        user_vote = self._user_votes(viewer.id, [feedback.id]).get(feedback.id) if viewer else None
        return self.serialize(feedback, viewer, user_vote)

    # ---- Create / edit ----

    def create_feedback(self, user: User, data: FeedbackCreateRequest) -> Feedback:
        feedback = Feedback(
            user_id=user.id,
            type=data.type,
            title=data.title.strip(),
            description=data.description,
            context_page=data.context_page,
            context_metadata=data.context_metadata,
            status=FeedbackStatusEnum.NEW,
            is_public=data.is_public,
            is_anonymous=data.is_anonymous,
            upvotes=0,
            downvotes=0,
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)
        logger.info("Feedback %s (%s) submitted by user %s", feedback.id, feedback.type.value, user.id)
        return feedback

    def update_feedback(self, feedback_id: int, user: User, data: FeedbackUpdateRequest) -> Feedback:
        feedback = self._get_own(feedback_id, user)
        updates = data.model_dump(exclude_unset=True)
        if "title" in updates and updates["title"] is None:
            raise ValueError("Title cannot be empty")
        for field, value in updates.items():
            if field in ("is_public", "is_anonymous") and value is None:
                continue
            setattr(feedback, field, value.strip() if field == "title" else value)
        self.db.commit()
        self.db.refresh(feedback)
        return feedback

    def delete_feedback(self, feedback_id: int, user: User) -> None:
        feedback = self._get_own(feedback_id, user)
        self.db.delete(feedback)
        self.db.commit()

    # ---- Listing ----

    def _paginate(self, query, viewer: Optional[User], sort: FeedbackSort, page: int, limit: int) -> dict:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        page = max(1, page)
        offset = (page - 1) * limit

        score = Feedback.upvotes - Feedback.downvotes
        if sort == FeedbackSort.OLDEST:
            query = query.order_by(Feedback.created_at.asc(), Feedback.id.asc())
        elif sort == FeedbackSort.MOST_VOTES:
            query = query.order_by(desc(score), desc(Feedback.created_at))
        elif sort == FeedbackSort.LEAST_VOTES:
            query = query.order_by(score.asc(), desc(Feedback.created_at))
        else:
            query = query.order_by(desc(Feedback.created_at), desc(Feedback.id))

        total = query.count()
        items = query.offset(offset).limit(limit).all()

        user_votes = self._user_votes(viewer.id, [f.id for f in items]) if viewer else {}
        return {
            "items": [self.serialize(f, viewer, user_votes.get(f.id)) for f in items],
            "total": total,
            "page": page,
            "limit": limit,
            "has_more": offset + len(items) < total,
        }

    def list_feedback(
        self,
        viewer: Optional[User] = None,
        type: Optional[FeedbackType] = None,
        status: Optional[FeedbackStatusEnum] = None,
        search: Optional[str] = None,
        sort: FeedbackSort = FeedbackSort.NEWEST,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """Public feedback (plus the viewer's own private items)"""
        query = self.db.query(Feedback).options(joinedload(Feedback.user))
        if viewer is not None:
            query = query.filter(or_(Feedback.is_public.is_(True), Feedback.user_id == viewer.id))
        else:
            query = query.filter(Feedback.is_public.is_(True))

        if type:
            query = query.filter(Feedback.type == type)
        if status:
            query = query.filter(Feedback.status == status)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(or_(Feedback.title.ilike(term), Feedback.description.ilike(term)))

        return self._paginate(query, viewer, sort, page, limit)

    def list_my_feedback(self, user: User, page: int = 1, limit: int = 20) -> dict:
        query = self.db.query(Feedback).options(joinedload(Feedback.user)).filter(Feedback.user_id == user.id)
        return self._paginate(query, user, FeedbackSort.NEWEST, page, limit)

    # ---- Voting ----

    def vote(self, feedback_id: int, user: User, vote: int) -> dict:
        """
        Cast, change or remove (vote=0) the caller's vote

        Counters on the feedback row are kept in step with the vote rows.
        """
        if vote not in (-1, 0, 1):
            raise ValueError("Vote must be 1, -1 or 0")
        feedback = self._get(feedback_id)
        if not feedback.is_public and feedback.user_id != user.id:
            raise NotFoundError("Feedback not found")
        if feedback.user_id == user.id:
            raise PermissionError("You cannot vote on your own feedback")

        existing = (
            self.db.query(FeedbackVote)
            .filter(FeedbackVote.feedback_id == feedback_id, FeedbackVote.user_id == user.id)
            .first()
        )
        old_upvotes = feedback.upvotes

        if existing is not None:
            if existing.vote == 1:
                feedback.upvotes = max(0, feedback.upvotes - 1)
            else:
                feedback.downvotes = max(0, feedback.downvotes - 1)
            if vote == 0:
                self.db.delete(existing)
            else:
                existing.vote = vote
        elif vote != 0:
            self.db.add(FeedbackVote(feedback_id=feedback_id, user_id=user.id, vote=vote))

        if vote == 1:
            feedback.upvotes += 1
        elif vote == -1:
            feedback.downvotes += 1

        self.db.commit()
        self.db.refresh(feedback)

        if feedback.upvotes > old_upvotes:
            self._check_milestone(feedback)

        return {
            "feedback_id": feedback.id,
            "upvotes": feedback.upvotes,
            "downvotes": feedback.downvotes,
            "vote_score": feedback.vote_score,
            "user_vote": vote or None,
        }

    def _check_milestone(self, feedback: Feedback) -> None:
        """Notify the author the first time the upvote count hits a milestone"""
        if feedback.upvotes not in UPVOTE_MILESTONES:
            return
        previous = (
            self.db.query(Notification)
            .filter(
                Notification.user_id == feedback.user_id,
                Notification.type == NotificationType.FEEDBACK_MILESTONE.value,
                Notification.link == f"/feedback/{feedback.id}",
            )
            .all()
        )
        if any(n.metadata_json.get("milestone") == feedback.upvotes for n in previous):
            return
        self.notifications.notify_feedback_milestone(feedback.user_id, feedback.id, feedback.title, feedback.upvotes)
        logger.info("Feedback %s reached %s upvotes", feedback.id, feedback.upvotes)

    # ---- Admin ----

    def update_status(
        self,
        feedback_id: int,
        admin: User,
        new_status: FeedbackStatusEnum,
        status_note: Optional[str] = None,
    ) -> Feedback:
        """Change status (admin only); records who and when and notifies the author"""
        if not admin.is_admin:
            raise PermissionError("Admin access required")
        feedback = self._get(feedback_id)
        old_status = feedback.status

        feedback.status = new_status
        feedback.status_note = status_note
        feedback.status_changed_at = datetime.now(timezone.utc)
        feedback.status_changed_by = admin.id
        self.db.commit()
        self.db.refresh(feedback)

        if old_status != new_status:
            self.notifications.notify_feedback_status_changed(
                feedback.user_id, feedback.id, feedback.title, old_status.value, new_status.value, status_note
            )
        logger.info("Feedback %s status %s -> %s by admin %s", feedback.id, old_status.value, new_status.value, admin.id)
        return feedback

    def get_stats(self) -> dict:
        public = self.db.query(Feedback).filter(Feedback.is_public.is_(True))
        by_type = dict(
            public.with_entities(Feedback.type, func.count(Feedback.id)).group_by(Feedback.type).all()
        )
        by_status = dict(
            public.with_entities(Feedback.status, func.count(Feedback.id)).group_by(Feedback.status).all()
        )
        return {
            "total": public.count(),
            "by_type": {t.value: by_type.get(t, 0) for t in FeedbackType},
            "by_status": {s.value: by_status.get(s, 0) for s in FeedbackStatusEnum},
        }

    # ---- Prompts ----

    def _is_dismissed(self, user_id: int, prompt_type: FeedbackPromptType, now: datetime) -> bool:
        return (
            self.db.query(FeedbackPromptDismissal)
            .filter(
                FeedbackPromptDismissal.user_id == user_id,
                FeedbackPromptDismissal.prompt_type == prompt_type.value,
                or_(FeedbackPromptDismissal.dismiss_until.is_(None), FeedbackPromptDismissal.dismiss_until > now),
            )
            .first()
            is not None
        )

    def get_prompt_status(self, user: User, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        result = {"show_post_journey_prompt": False, "show_general_prompt": False, "post_journey_context": None}

        if not self._is_dismissed(user.id, FeedbackPromptType.POST_JOURNEY, now):
            registration = (
                self.db.query(Registration)
                .join(Leg, Registration.leg_id == Leg.id)
                .filter(
                    Registration.user_id == user.id,
                    Registration.status == RegistrationStatus.APPROVED,
                    Leg.end_date.is_not(None),
                    Leg.end_date <= now,
                    Leg.end_date >= now - POST_JOURNEY_WINDOW,
                )
                .order_by(desc(Leg.end_date))
                .first()
            )
            if registration is not None:
                leg = registration.leg
                result["show_post_journey_prompt"] = True
                result["post_journey_context"] = {
                    "journey_id": leg.journey.id,
                    "journey_name": leg.journey.name,
                    "leg_name": leg.name,
                }

        if not self._is_dismissed(user.id, FeedbackPromptType.GENERAL, now):
            recent = (
                self.db.query(Feedback)
                .filter(Feedback.user_id == user.id, Feedback.created_at >= now - GENERAL_PROMPT_INTERVAL)
                .count()
            )
            result["show_general_prompt"] = recent == 0

        return result

    def dismiss_prompt(self, user: User, prompt_type: FeedbackPromptType, dismiss_days: Optional[int] = None) -> FeedbackPromptDismissal:
        """Upsert the dismissal; no dismiss_days means forever"""
        now = datetime.now(timezone.utc)
        dismissal = (
            self.db.query(FeedbackPromptDismissal)
            .filter(FeedbackPromptDismissal.user_id == user.id, FeedbackPromptDismissal.prompt_type == prompt_type.value)
            .first()
        )
        if dismissal is None:
            dismissal = FeedbackPromptDismissal(user_id=user.id, prompt_type=prompt_type.value)
            self.db.add(dismissal)
        dismissal.dismissed_at = now
        dismissal.dismiss_until = now + timedelta(days=dismiss_days) if dismiss_days else None
        self.db.commit()
        self.db.refresh(dismissal)
        return dismissal
