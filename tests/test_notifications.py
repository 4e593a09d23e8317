from datetime import datetime, timedelta, timezone

from app.db.models.notification import Notification, NotificationType
from app.db.models.user import User
from app.services.notification.email_service import EmailService
from app.services.notification.scheduler import NotificationScheduler
from app.services.notification.service import NotificationService
from tests.factories import auth_headers, make_user


def _notify(db, user, title="Hello", type=NotificationType.PROFILE_REMINDER):
    return NotificationService(db).create_notification(user.id, type, title, "Body", "/profile", {"k": "v"})


def test_list_and_unread_count(client, db, crew):
    _notify(db, crew, "First")
    _notify(db, crew, "Second")
    headers = auth_headers(crew)

    body = client.get("/notifications", headers=headers).json()
    assert body["total"] == 2
    assert body["unread_count"] == 2
    assert body["notifications"][0]["metadata"] == {"k": "v"}

    assert client.get("/notifications/unread-count", headers=headers).json() == {"unread_count": 2}


def test_mark_read_and_read_all(client, db, crew):
    first = _notify(db, crew, "First")
    _notify(db, crew, "Second")
    headers = auth_headers(crew)

    read = client.patch(f"/notifications/{first.id}/read", headers=headers).json()
    assert read["read"] is True
    unread = client.get("/notifications", headers=headers, params={"unread_only": True}).json()
    assert [n["title"] for n in unread["notifications"]] == ["Second"]

    assert client.post("/notifications/read-all", headers=headers).json()["count"] == 1
    assert client.get("/notifications/unread-count", headers=headers).json()["unread_count"] == 0


def test_cannot_touch_someone_elses_notification(client, db, crew, owner):
    notification = _notify(db, crew)
    headers = auth_headers(owner)
    assert client.patch(f"/notifications/{notification.id}/read", headers=headers).status_code == 404
    assert client.delete(f"/notifications/{notification.id}", headers=headers).status_code == 404


def test_delete_notification(client, db, crew):
    notification = _notify(db, crew)
    assert client.delete(f"/notifications/{notification.id}", headers=auth_headers(crew)).status_code == 200
    assert db.query(Notification).count() == 0


def test_email_preferences_default_and_update(client, crew):
    headers = auth_headers(crew)
    defaults = client.get("/notifications/preferences", headers=headers).json()
    assert defaults == {"registration_updates": True, "journey_updates": True, "profile_reminders": True}

    updated = client.put("/notifications/preferences", headers=headers, json={"profile_reminders": False}).json()
    assert updated["profile_reminders"] is False
    assert updated["journey_updates"] is True


def test_email_only_sent_when_preference_allows(db, crew):
    sent = []

    class RecordingEmail(EmailService):
        def send_profile_reminder(self, to, missing_fields, completion_percentage):
            sent.append(to)
            return True

    service = NotificationService(db, email_service=RecordingEmail(api_key=""))
    service.notify_profile_reminder(crew, ["Phone Number"], 75)
    assert sent == [crew.email]

    service.update_email_preferences(crew, {"profile_reminders": False})
    service.notify_profile_reminder(crew, ["Phone Number"], 75)
    assert sent == [crew.email]


def test_profile_reminders_respect_interval(db, crew):
    complete = make_user(
        db,
        "complete",
        phone_encrypted="x",
        sailing_experience=3,
        risk_level=["Coastal sailing"],
        skills=["navigation"],
        sailing_preferences="Anything",
        profile_completion_percentage=100,
    )
    now = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)
    service = NotificationService(db)

    assert service.send_profile_reminders(now=now) == 1
    assert service.send_profile_reminders(now=now + timedelta(days=1)) == 0

    reminders = db.query(Notification).filter(Notification.type == "profile_reminder").all()
    assert [n.user_id for n in reminders] == [crew.id]
    assert complete.id not in {n.user_id for n in reminders}


def test_scheduler_runs_profile_reminders(db, crew):
    assert NotificationScheduler(tz="UTC").run_profile_reminders() == 1
    db.expire_all()
    assert db.query(User).filter(User.id == crew.id).one().last_profile_reminder_at is not None
