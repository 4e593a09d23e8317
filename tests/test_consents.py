from app.db.models.boat import Boat
from app.db.models.consent import ConsentAuditLog
from app.db.models.feedback import Feedback
from app.db.models.journey import Journey
from app.db.models.registration import Registration
from app.db.models.user import User
from tests.factories import auth_headers, make_registration, make_user


def test_new_user_has_not_accepted_required(client, crew):
    body = client.get("/user/consents", headers=auth_headers(crew)).json()
    assert body == {"consents": None, "has_accepted_required": False}


def test_accept_legal_with_optional_consents(client, crew):
    headers = auth_headers(crew)
    response = client.post(
        "/user/consents/accept-legal",
        headers=headers,
        json={"privacy_policy": True, "terms": True, "ai_processing": True, "marketing": False},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["has_accepted_required"] is True
    assert body["consents"]["ai_processing_consent"] is True
    assert body["consents"]["marketing_consent"] is False
    assert body["consents"]["profile_sharing_consent"] is False

    audit = client.get("/user/consents/audit", headers=headers).json()
    assert {(a["consent_type"], a["action"]) for a in audit} == {
        ("privacy_policy", "granted"),
        ("terms", "granted"),
        ("ai_processing", "granted"),
        ("marketing", "revoked"),
    }


def test_accept_legal_requires_both_documents(client, crew):
    response = client.post(
        "/user/consents/accept-legal", headers=auth_headers(crew), json={"privacy_policy": True, "terms": False}
    )
    assert response.status_code == 400


def test_toggle_consent_is_audited(client, crew):
    headers = auth_headers(crew)
    client.patch("/user/consents", headers=headers, json={"consent_type": "profile_sharing", "value": True})
    response = client.patch("/user/consents", headers=headers, json={"consent_type": "profile_sharing", "value": False})
    assert response.json()["consents"]["profile_sharing_consent"] is False

    audit = client.get("/user/consents/audit", headers=headers).json()
    assert [a["action"] for a in audit] == ["revoked", "granted"]
    assert audit[0]["old_value"] == {"value": True}


def test_cookie_preferences_keep_essential(client, crew):
    response = client.patch(
        "/user/consents",
        headers=auth_headers(crew),
        json={"consent_type": "cookies", "value": {"essential": False, "analytics": True, "marketing": False}},
    )
    assert response.status_code == 200
    assert response.json()["consents"]["cookie_preferences"] == {
        "essential": True,
        "analytics": True,
        "marketing": False,
    }


def test_cookie_consent_needs_object(client, crew):
    response = client.patch("/user/consents", headers=auth_headers(crew), json={"consent_type": "cookies", "value": True})
    assert response.status_code == 422


def test_delete_account_needs_exact_confirmation(client, crew):
    response = client.post("/user/delete-account", headers=auth_headers(crew), json={"confirmation": "delete my account"})
    assert response.status_code == 400


def test_delete_account_removes_owned_data_and_keeps_audit(client, db, owner, crew, voyage):
    headers = auth_headers(owner)
    client.patch("/user/consents", headers=headers, json={"consent_type": "marketing", "value": True})
    client.post("/feedback", headers=headers, json={"type": "other", "title": "Bye"})
    make_registration(db, voyage["leg"], crew)
    owner_id = owner.id

    response = client.post("/user/delete-account", headers=headers, json={"confirmation": "DELETE MY ACCOUNT"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["deleted"]["boats"] == 1
    assert body["deleted"]["feedback"] == 1
    assert body["deleted"]["users"] == 1

    db.expire_all()
    assert db.query(User).filter(User.id == owner_id).first() is None
    assert db.query(Boat).count() == 0
    assert db.query(Journey).count() == 0
    assert db.query(Registration).count() == 0
    assert db.query(Feedback).count() == 0

    audit = db.query(ConsentAuditLog).filter(ConsentAuditLog.user_id == owner_id).all()
    assert {a.consent_type for a in audit} == {"marketing", "account"}

    assert client.get("/auth/me", headers=headers).status_code == 401


def test_delete_crew_account_releases_votes(client, db, owner, crew):
    feedback_id = client.post(
        "/feedback", headers=auth_headers(owner), json={"type": "feature", "title": "Offline charts"}
    ).json()["id"]
    client.post(f"/feedback/{feedback_id}/vote", headers=auth_headers(crew), json={"vote": 1})
    bystander = make_user(db, "bystander")

    client.post("/user/delete-account", headers=auth_headers(crew), json={"confirmation": "DELETE MY ACCOUNT"})

    feedback = client.get(f"/feedback/{feedback_id}", headers=auth_headers(bystander)).json()
    assert feedback["upvotes"] == 0
