"""Email notification service using the Resend HTTP API."""
import html
import logging

import httpx

from app.core.config import get_settings
from app.core.privacy import get_privacy_protocol

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailService:
    """Sends transactional emails; logs instead of sending when no API key is configured"""

    def __init__(
        self,
        api_key: str | None = None,
        sender: str | None = None,
        base_url: str | None = None,
        client: httpx.Client | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.sender = sender or settings.email_from
        self.base_url = (base_url or settings.app_base_url).rstrip("/")
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """Send one email. Returns False on any delivery failure."""
        masked = get_privacy_protocol().mask_email(to)
        if not self.enabled:
            logger.info("Email disabled (no RESEND_API_KEY); would send %r to %s", subject, masked)
            return False

        client = self._client or httpx.Client(timeout=10.0)
        try:
            response = client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [to], "subject": subject, "html": html_body},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Failed to send email %r to %s: %s", subject, masked, e)
            return False
        finally:
            if self._client is None:
                client.close()

        logger.info("Email %r sent to %s", subject, masked)
        return True

    def _layout(self, heading: str, body: str, link: str | None = None, link_text: str = "Open SailMatch") -> str:
        button = ""
        if link:
            button = f'<p><a href="{html.escape(link)}">{html.escape(link_text)}</a></p>'
        return f"<h2>{html.escape(heading)}</h2>{body}{button}<p>Fair winds,<br>SailMatch</p>"

    # ---- Templates ----

    def send_registration_approved(self, to: str, journey_name: str, owner_name: str, journey_id: int) -> bool:
        subject = f'Welcome aboard! Your registration for "{journey_name}" is approved'
        body = (
            f"<p>Great news! {html.escape(owner_name)} has approved your registration for "
            f"<strong>{html.escape(journey_name)}</strong>.</p>"
        )
        link = f"{self.base_url}/journeys/{journey_id}"
        return self.send_email(to, subject, self._layout("Registration approved", body, link, "View journey"))

    def send_registration_denied(self, to: str, journey_name: str, owner_name: str, reason: str | None = None) -> bool:
        subject = f'Update on your registration for "{journey_name}"'
        body = (
            f"<p>Unfortunately your registration for <strong>{html.escape(journey_name)}</strong> "
            f"was not approved by {html.escape(owner_name)}.</p>"
        )
        if reason:
            body += f"<p>Reason: {html.escape(reason)}</p>"
        link = f"{self.base_url}/crew"
        return self.send_email(to, subject, self._layout("Registration update", body, link, "Find other journeys"))

    def send_new_registration(self, to: str, crew_name: str, journey_name: str, registration_id: int) -> bool:
        subject = f'New crew application for "{journey_name}"'
        body = (
            f"<p>{html.escape(crew_name)} has applied to join "
            f"<strong>{html.escape(journey_name)}</strong>.</p>"
        )
        link = f"{self.base_url}/owner/registrations?registration={registration_id}"
        return self.send_email(to, subject, self._layout("New crew application", body, link, "Review application"))

    def send_review_needed(self, to: str, crew_name: str, journey_name: str, registration_id: int, score: int) -> bool:
        subject = f'Registration for "{journey_name}" needs your review'
        body = (
            f"<p>{html.escape(crew_name)}'s registration for <strong>{html.escape(journey_name)}</strong> "
            f"was assessed by AI with a score of {score}% and needs your review.</p>"
        )
        link = f"{self.base_url}/owner/registrations/{registration_id}"
        return self.send_email(to, subject, self._layout("Review needed", body, link, "Review application"))

    def send_journey_updated(self, to: str, journey_name: str, changes: list[str], journey_id: int) -> bool:
        subject = f'Journey update: "{journey_name}"'
        items = "".join(f"<li>{html.escape(change)}</li>" for change in changes) or "<li>details</li>"
        body = f"<p><strong>{html.escape(journey_name)}</strong> has been updated:</p><ul>{items}</ul>"
        link = f"{self.base_url}/journeys/{journey_id}"
        return self.send_email(to, subject, self._layout("Journey updated", body, link, "View journey"))

    def send_profile_reminder(self, to: str, missing_fields: list[str], completion_percentage: int) -> bool:
        subject = "Complete your profile to get approved faster"
        items = "".join(f"<li>{html.escape(field)}</li>" for field in missing_fields)
        body = (
            f"<p>Your profile is {completion_percentage}% complete. Skippers are more likely to approve "
            f"crew with complete profiles. Still missing:</p><ul>{items}</ul>"
        )
        link = f"{self.base_url}/profile"
        return self.send_email(to, subject, self._layout("Complete your profile", body, link, "Update profile"))
