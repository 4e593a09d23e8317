from datetime import datetime, timedelta, timezone

from app.db.models.notification import Notification
from app.db.models.registration import RegistrationStatus
from app.services.feedback.schemas import FeedbackCreateRequest, FeedbackPromptType
from app.services.feedback.service import FeedbackService
from tests.factories import auth_headers, make_leg, make_registration, make_user


def _submit(client, user, title="Map is slow", **fields):
    body = {"type": "bug", "title": title, "description": "Takes ages to load", **fields}
    return client.post("/feedback", headers=auth_headers(user), json=body)


def test_submit_and_fetch_feedback(client, crew):
    response = _submit(client, crew, context_page="/crew/map")
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "new"
    assert body["is_owner"] is True
    assert body["author"]["full_name"] == "Deckhand"

    fetched = client.get(f"/feedback/{body['id']}").json()
    assert fetched["is_owner"] is False


def test_anonymous_feedback_hides_author_except_from_admins(client, db, crew):
    feedback_id = _submit(client, crew, is_anonymous=True).json()["id"]
    admin = make_user(db, "admin", is_admin=True)

    public_view = client.get(f"/feedback/{feedback_id}").json()
    assert public_view["author"] == {"id": None, "full_name": "Anonymous", "is_anonymous": True}

    admin_view = client.get(f"/feedback/{feedback_id}", headers=auth_headers(admin)).json()
    assert admin_view["author"]["id"] == crew.id


def test_private_feedback_only_visible_to_author(client, db, crew, owner):
    feedback_id = _submit(client, crew, title="Private note", is_public=False).json()["id"]
    _submit(client, owner, title="Public idea")

    assert client.get(f"/feedback/{feedback_id}", headers=auth_headers(owner)).status_code == 404

    owner_list = client.get("/feedback", headers=auth_headers(owner)).json()
    assert [f["title"] for f in owner_list["items"]] == ["Public idea"]

    crew_list = client.get("/feedback", headers=auth_headers(crew)).json()
    assert {f["title"] for f in crew_list["items"]} == {"Public idea", "Private note"}


def test_list_filters_and_paginates(client, crew):
    _submit(client, crew, title="Crash on login")
    _submit(client, crew, title="Dark mode", type="feature")
    _submit(client, crew, title="Better filters", type="feature")

    features = client.get("/feedback", params={"type": "feature"}).json()
    assert features["total"] == 2

    searched = client.get("/feedback", params={"search": "dark"}).json()
    assert [f["title"] for f in searched["items"]] == ["Dark mode"]

    first_page = client.get("/feedback", params={"limit": 2, "page": 1}).json()
    assert len(first_page["items"]) == 2
    assert first_page["has_more"] is True


def test_voting_updates_counts(client, db, crew, owner):
    feedback_id = _submit(client, crew).json()["id"]
    headers = auth_headers(owner)

    up = client.post(f"/feedback/{feedback_id}/vote", headers=headers, json={"vote": 1}).json()
    assert (up["upvotes"], up["downvotes"], up["vote_score"]) == (1, 0, 1)

    down = client.post(f"/feedback/{feedback_id}/vote", headers=headers, json={"vote": -1}).json()
    assert (down["upvotes"], down["downvotes"], down["vote_score"]) == (0, 1, -1)

    cleared = client.post(f"/feedback/{feedback_id}/vote", headers=headers, json={"vote": 0}).json()
    assert (cleared["upvotes"], cleared["downvotes"], cleared["user_vote"]) == (0, 0, None)


def test_cannot_vote_on_own_feedback(client, crew):
    feedback_id = _submit(client, crew).json()["id"]
    response = client.post(f"/feedback/{feedback_id}/vote", headers=auth_headers(crew), json={"vote": 1})
    assert response.status_code == 403


def test_upvote_milestone_notifies_author_once(db, crew):
    service = FeedbackService(db)
    feedback_id = service.create_feedback(crew, FeedbackCreateRequest(type="feature", title="Tide tables")).id
    voters = [make_user(db, f"voter{i}") for i in range(10)]
    for voter in voters:
        service.vote(feedback_id, voter, 1)

    service.vote(feedback_id, voters[0], 0)
    service.vote(feedback_id, voters[0], 1)

    milestones = db.query(Notification).filter(Notification.type == "feedback_milestone").all()
    assert [n.metadata_json["milestone"] for n in milestones] == [10]
    assert milestones[0].user_id == crew.id


def test_only_author_can_edit_or_delete(client, crew, owner):
    feedback_id = _submit(client, crew).json()["id"]
    assert client.patch(
        f"/feedback/{feedback_id}", headers=auth_headers(owner), json={"title": "Hijacked"}
    ).status_code == 403

    edited = client.patch(f"/feedback/{feedback_id}", headers=auth_headers(crew), json={"title": "Map is very slow"})
    assert edited.json()["title"] == "Map is very slow"

    assert client.delete(f"/feedback/{feedback_id}", headers=auth_headers(crew)).status_code == 200
    assert client.get(f"/feedback/{feedback_id}").status_code == 404


def test_admin_status_change_notifies_author(client, db, crew):
    admin = make_user(db, "admin", is_admin=True)
    feedback_id = _submit(client, crew).json()["id"]

    assert client.patch(
        f"/admin/feedback/{feedback_id}/status", headers=auth_headers(crew), json={"status": "planned"}
    ).status_code == 403

    response = client.patch(
        f"/admin/feedback/{feedback_id}/status",
        headers=auth_headers(admin),
        json={"status": "planned", "status_note": "Next sprint"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "planned"

    notification = db.query(Notification).filter(Notification.user_id == crew.id).one()
    assert notification.type == "feedback_status_changed"


def test_admin_stats_count_public_feedback(client, db, crew):
    admin = make_user(db, "admin", is_admin=True)
    _submit(client, crew)
    _submit(client, crew, type="feature", title="Dark mode")
    _submit(client, crew, title="Hidden", is_public=False)

    stats = client.get("/admin/feedback/stats", headers=auth_headers(admin)).json()
    assert stats["total"] == 2
    assert stats["by_type"]["bug"] == 1
    assert stats["by_type"]["other"] == 0
    assert stats["by_status"]["new"] == 2


def test_general_prompt_hidden_after_recent_feedback(client, crew):
    headers = auth_headers(crew)
    assert client.get("/feedback/prompts", headers=headers).json()["show_general_prompt"] is True
    _submit(client, crew)
    assert client.get("/feedback/prompts", headers=headers).json()["show_general_prompt"] is False


def test_post_journey_prompt_for_recently_finished_leg(db, crew, voyage):
    now = datetime(2026, 8, 10, 12, 0, tzinfo=timezone.utc)
    leg = make_leg(db, voyage["journey"], name="Ibiza to Valencia", end_date=now - timedelta(days=2))
    make_registration(db, leg, crew, status=RegistrationStatus.APPROVED)

    prompts = FeedbackService(db).get_prompt_status(crew, now=now)
    assert prompts["show_post_journey_prompt"] is True
    assert prompts["post_journey_context"]["leg_name"] == "Ibiza to Valencia"

    later = FeedbackService(db).get_prompt_status(crew, now=now + timedelta(days=10))
    assert later["show_post_journey_prompt"] is False


def test_dismissed_prompt_stays_hidden(client, db, crew):
    headers = auth_headers(crew)
    response = client.post("/feedback/prompts/dismiss", headers=headers, json={"prompt_type": "general"})
    assert response.json()["dismiss_until"] is None

    assert client.get("/feedback/prompts", headers=headers).json()["show_general_prompt"] is False

    FeedbackService(db).dismiss_prompt(crew, FeedbackPromptType.GENERAL, dismiss_days=3)
    status = FeedbackService(db).get_prompt_status(crew, now=datetime.now(timezone.utc) + timedelta(days=4))
    assert status["show_general_prompt"] is True
