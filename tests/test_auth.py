from app.db.models.user import User
from tests.factories import auth_headers


def _register(client, email="ana@sailmatch.io", username="ana", roles=("crew",)):
    return client.post(
        "/auth/register",
        json={"email": email, "username": username, "password": "supersecret", "roles": list(roles)},
    )


def test_register_and_login(client):
    response = _register(client)
    assert response.status_code == 201
    body = response.json()
    assert body["roles"] == ["crew"]
    assert body["profile_completion_percentage"] == 25  # username + roles of 8 fields

    login = client.post("/auth/login", json={"email": "ana@sailmatch.io", "password": "supersecret"})
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"
    assert login.json()["roles"] == ["crew"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})
    assert me.json()["username"] == "ana"


def test_register_duplicate_email_conflicts(client):
    _register(client)
    response = _register(client, username="other")
    assert response.status_code == 409


def test_login_with_wrong_password(client):
    _register(client)
    response = client.post("/auth/login", json={"email": "ana@sailmatch.io", "password": "nope-nope"})
    assert response.status_code == 401


def test_me_requires_valid_token(client):
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_profile_update_normalizes_skills_and_encrypts_phone(client, db, crew):
    response = client.put(
        "/auth/profile",
        headers=auth_headers(crew),
        json={
            "skills": ["Night Sailing", {"skill_name": "First Aid"}],
            "phone": "+358401234567",
            "risk_level": ["Offshore sailing"],
            "sailing_preferences": "Atlantic crossings",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["skills"] == ["night_sailing", "first_aid"]
    assert body["phone"] == "+358401234567"

    db.expire_all()
    stored = db.query(User).filter(User.id == crew.id).one()
    assert stored.phone_encrypted and stored.phone_encrypted != "+358401234567"


def test_profile_update_rejects_invalid_values(client, crew):
    headers = auth_headers(crew)
    assert client.put("/auth/profile", headers=headers, json={"sailing_experience": 7}).status_code == 422
    assert client.put("/auth/profile", headers=headers, json={"phone": "0401234"}).status_code == 422
    assert client.put("/auth/profile", headers=headers, json={"risk_level": ["Pond"]}).status_code == 422


def test_profile_completion_reaches_100(client, crew):
    client.put(
        "/auth/profile",
        headers=auth_headers(crew),
        json={
            "phone": "+358401234567",
            "risk_level": ["Coastal sailing"],
            "sailing_preferences": "Weekend trips",
        },
    )
    completion = client.get("/auth/profile/completion", headers=auth_headers(crew)).json()
    assert completion["percentage"] == 100
    assert completion["missing_fields"] == []


def test_promote_admin_requires_secret(client, crew):
    bad = client.post("/auth/promote-admin", json={"user_id": crew.id, "admin_secret": "wrong"})
    assert bad.status_code == 403
    ok = client.post("/auth/promote-admin", json={"user_id": crew.id, "admin_secret": "test-admin-secret"})
    assert ok.status_code == 200
    assert ok.json()["is_admin"] is True
