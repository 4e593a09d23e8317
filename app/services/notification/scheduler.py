"""
Notification scheduler.

Scheduled jobs:
- Profile reminders for users with incomplete profiles (at most once per reminder interval).
- Low-stock check of boat inventories, one notification per boat.

Cron defaults (scheduler timezone from settings):
- 09:00 profile reminders
- 07:00 low-stock check
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from pytz import timezone
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.postgres import SessionLocal
from app.services.boats.service import BoatService
from app.services.notification.service import NotificationService

logger = logging.getLogger(__name__)


class NotificationScheduler:
    """APScheduler-backed job runner for periodic notifications."""

    def __init__(self, tz: Optional[str] = None, session_factory: Callable[[], Session] = SessionLocal):
        self.tz = timezone(tz or get_settings().scheduler_timezone)
        self.scheduler = BackgroundScheduler(timezone=self.tz)
        self.session_factory = session_factory

    def start(self):
        """Start cron jobs."""
        self.scheduler.add_job(self.run_profile_reminders, "cron", hour=9, minute=0, id="profile_reminders")
        self.scheduler.add_job(self.run_low_stock_check, "cron", hour=7, minute=0, id="low_stock_check")
        self.scheduler.start()
        logger.info("Notification scheduler started (%s)", self.tz.zone)

    def shutdown(self):
        """Gracefully stop scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    # Job entrypoints
    def run_profile_reminders(self) -> int:
        session = self.session_factory()
        try:
            sent = NotificationService(session).send_profile_reminders()
            logger.info("[scheduler:profile_reminders] Done. Sent=%s", sent)
            return sent
        except SQLAlchemyError:
            session.rollback()
            logger.exception("[scheduler:profile_reminders] Job failed")
            return 0
        finally:
            session.close()

    def run_low_stock_check(self) -> int:
        """Notify each boat owner once per run about items at or below minimum stock"""
        session = self.session_factory()
        try:
            boats = BoatService(session)
            notifications = NotificationService(session)
            notified = 0
            for boat_id, items in boats.low_stock_by_boat().items():
                notifications.notify_low_stock(boats.get_boat(boat_id), items)
                notified += 1
            logger.info("[scheduler:low_stock] Done. Boats notified=%s", notified)
            return notified
        except SQLAlchemyError:
            session.rollback()
            logger.exception("[scheduler:low_stock] Job failed")
            return 0
        finally:
            session.close()


def start_default_scheduler() -> NotificationScheduler:
    """Helper to start scheduler with defaults."""
    scheduler = NotificationScheduler()
    scheduler.start()
    return scheduler
