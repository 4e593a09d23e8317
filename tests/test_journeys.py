from app.db.models.journey import JourneyState
from app.db.models.notification import Notification
from app.db.models.registration import RegistrationStatus
from tests.factories import (
    auth_headers,
    make_boat,
    make_journey,
    make_leg,
    make_registration,
    make_requirement,
    make_user,
)


def test_owner_creates_journey_on_own_boat(client, db, owner):
    boat = make_boat(db, owner)
    response = client.post(
        "/journeys",
        headers=auth_headers(owner),
        json={
            "boat_id": boat.id,
            "name": "Baltic Summer",
            "skills": ["Navigation", "Night Sailing"],
            "risk_level": ["Offshore sailing"],
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["state"] == "In planning"
    assert body["skills"] == ["navigation", "night_sailing"]
    assert body["auto_approval_enabled"] is False
    assert body["auto_approval_threshold"] == 80


def test_cannot_create_journey_on_someone_elses_boat(client, db, owner):
    other_owner = make_user(db, "other", roles=("owner",))
    boat = make_boat(db, other_owner)
    response = client.post("/journeys", headers=auth_headers(owner), json={"boat_id": boat.id, "name": "Nope"})
    assert response.status_code == 403


def test_journey_end_date_before_start_is_rejected(client, db, owner):
    boat = make_boat(db, owner)
    response = client.post(
        "/journeys",
        headers=auth_headers(owner),
        json={"boat_id": boat.id, "name": "Backwards", "start_date": "2026-07-10", "end_date": "2026-07-01"},
    )
    assert response.status_code == 422


def test_unpublished_journey_is_hidden_from_others(client, db, owner, crew):
    boat = make_boat(db, owner)
    journey = make_journey(db, boat, state=JourneyState.IN_PLANNING)
    assert client.get(f"/journeys/{journey.id}", headers=auth_headers(crew)).status_code == 404
    assert client.get(f"/journeys/{journey.id}", headers=auth_headers(owner)).status_code == 200


def test_create_leg_computes_bounding_box(client, db, owner):
    journey = make_journey(db, make_boat(db, owner))
    response = client.post(
        f"/journeys/{journey.id}/legs",
        headers=auth_headers(owner),
        json={
            "name": "Palma to Mahon",
            "waypoints": [
                {"lat": 39.57, "lng": 2.65, "name": "Palma"},
                {"lat": 39.95, "lng": 3.10},
                {"lat": 39.89, "lng": 4.26, "name": "Mahon"},
            ],
        },
    )
    assert response.status_code == 201
    leg = response.json()
    assert leg["bbox"] == {"min_lng": 2.65, "min_lat": 39.57, "max_lng": 4.26, "max_lat": 39.95}
    assert [w["index"] for w in leg["waypoints"]] == [0, 1, 2]


def test_leg_level_cannot_be_below_journey_level(client, db, owner):
    journey = make_journey(db, make_boat(db, owner), min_experience_level=3)
    response = client.post(
        f"/journeys/{journey.id}/legs",
        headers=auth_headers(owner),
        json={"name": "Easy day", "min_experience_level": 2},
    )
    assert response.status_code == 400
    assert "cannot be lower" in response.json()["detail"]


def test_journey_level_cannot_rise_above_existing_leg(client, db, owner):
    journey = make_journey(db, make_boat(db, owner), min_experience_level=1)
    make_leg(db, journey, name="Night passage", min_experience_level=2)
    headers = auth_headers(owner)

    response = client.put(f"/journeys/{journey.id}", headers=headers, json={"min_experience_level": 4})
    assert response.status_code == 400
    assert "Night passage" in response.json()["detail"]
    db.refresh(journey)
    assert journey.min_experience_level == 1

    response = client.put(f"/journeys/{journey.id}", headers=headers, json={"min_experience_level": 2})
    assert response.status_code == 200
    assert response.json()["journey"]["min_experience_level"] == 2


def test_legs_by_region_with_crew_match(client, crew, voyage):
    response = client.get(
        "/legs/by-region",
        headers=auth_headers(crew),
        params={"min_lng": 0, "min_lat": 38, "max_lng": 4, "max_lat": 41},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["has_more"] is False
    leg = body["legs"][0]
    assert leg["journey_name"] == "Balearic Crossing"
    assert leg["start_waypoint"]["lat"] == 39.57
    # navigation matches, night_sailing is missing
    assert leg["match_percentage"] == 50
    assert leg["experience_level_matches"] is True


def test_legs_by_region_anonymous_has_no_match(client, voyage):
    body = client.get(
        "/legs/by-region", params={"min_lng": 0, "min_lat": 38, "max_lng": 4, "max_lat": 41}
    ).json()
    assert body["legs"][0]["match_percentage"] is None


def test_legs_by_region_pagination(client, db, voyage):
    make_leg(db, voyage["journey"], name="Ibiza to Formentera", waypoints=((38.91, 1.43), (38.70, 1.45)))
    body = client.get(
        "/legs/by-region",
        params={"min_lng": 0, "min_lat": 38, "max_lng": 4, "max_lat": 41, "limit": 1},
    ).json()
    assert body["total"] == 2
    assert len(body["legs"]) == 1
    assert body["has_more"] is True


def test_legs_by_region_wraps_antimeridian(client, db, voyage):
    pacific = make_journey(db, voyage["boat"], name="Fiji Hop")
    make_leg(db, pacific, name="Suva to Lautoka", waypoints=((-18.14, 178.44), (-17.61, 177.45)))

    body = client.get(
        "/legs/by-region", params={"min_lng": 170, "min_lat": -25, "max_lng": -170, "max_lat": -10}
    ).json()
    assert [leg["name"] for leg in body["legs"]] == ["Suva to Lautoka"]


def test_legs_by_region_skips_unpublished_journeys(client, db, voyage):
    draft = make_journey(db, voyage["boat"], name="Draft", state=JourneyState.IN_PLANNING)
    make_leg(db, draft, name="Hidden")
    body = client.get(
        "/legs/by-region", params={"min_lng": 0, "min_lat": 38, "max_lng": 4, "max_lat": 41}
    ).json()
    assert [leg["name"] for leg in body["legs"]] == ["Palma to Ibiza"]


def test_legs_by_region_rejects_invalid_coordinates(client):
    response = client.get(
        "/legs/by-region", params={"min_lng": -200, "min_lat": 0, "max_lng": 10, "max_lat": 10}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid coordinates"


def test_search_legs_by_place_name(client, voyage):
    body = client.get("/legs/search", params={"location": "Mallorca"}).json()
    assert body["location"]["name"] == "Mallorca, Spain"
    assert body["total"] == 1

    unknown = client.get("/legs/search", params={"location": "Atlantis"}).json()
    assert unknown["location"] is None
    assert unknown["legs"] == []


def test_leg_detail_includes_match_for_crew(client, crew, voyage):
    leg_id = voyage["leg"].id
    detail = client.get(f"/legs/{leg_id}", headers=auth_headers(crew)).json()
    assert detail["boat"]["name"] == "Aurora"
    assert detail["match"]["missing_skills"] == ["night_sailing"]

    anonymous = client.get(f"/legs/{leg_id}").json()
    assert anonymous["match"] is None


def test_requirement_order_auto_increments(client, owner, voyage):
    journey_id = voyage["journey"].id
    headers = auth_headers(owner)
    first = client.post(
        f"/journeys/{journey_id}/requirements",
        headers=headers,
        json={"question_text": "Do you get seasick?", "question_type": "yes_no"},
    ).json()
    second = client.post(
        f"/journeys/{journey_id}/requirements",
        headers=headers,
        json={
            "question_text": "Preferred watch?",
            "question_type": "multiple_choice",
            "options": ["Morning", " Night ", ""],
        },
    ).json()
    assert first["order"] == 0
    assert second["order"] == 1
    assert second["options"] == ["Morning", "Night"]


def test_multiple_choice_requirement_needs_two_options(client, owner, voyage):
    response = client.post(
        f"/journeys/{voyage['journey'].id}/requirements",
        headers=auth_headers(owner),
        json={"question_text": "Pick one", "question_type": "multiple_choice", "options": ["Only"]},
    )
    assert response.status_code == 422


def test_auto_approval_needs_requirements(client, db, owner, voyage):
    journey = voyage["journey"]
    headers = auth_headers(owner)
    response = client.patch(
        f"/journeys/{journey.id}/auto-approval", headers=headers, json={"auto_approval_enabled": True}
    )
    assert response.status_code == 400

    make_requirement(db, journey)
    response = client.patch(
        f"/journeys/{journey.id}/auto-approval", headers=headers, json={"auto_approval_enabled": True}
    )
    assert response.status_code == 200
    assert response.json()["auto_approval_threshold"] == 80
    assert response.json()["requirements_count"] == 1


def test_deleting_last_requirement_disables_auto_approval(client, db, owner, voyage):
    journey = voyage["journey"]
    requirement = make_requirement(db, journey)
    headers = auth_headers(owner)
    client.patch(
        f"/journeys/{journey.id}/auto-approval",
        headers=headers,
        json={"auto_approval_enabled": True, "auto_approval_threshold": 60},
    )

    client.delete(f"/journeys/{journey.id}/requirements/{requirement.id}", headers=headers)

    settings = client.get(f"/journeys/{journey.id}/auto-approval", headers=headers).json()
    assert settings["auto_approval_enabled"] is False
    assert settings["requirements_count"] == 0


def test_journey_update_notifies_approved_crew(client, db, owner, crew, voyage):
    make_registration(db, voyage["leg"], crew, status=RegistrationStatus.APPROVED)
    pending = make_user(db, "pending")
    make_registration(db, voyage["leg"], pending)

    response = client.put(
        f"/journeys/{voyage['journey'].id}",
        headers=auth_headers(owner),
        json={"name": "Balearic Loop", "description": None},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["changes"] == ["name"]
    assert body["notified_count"] == 1

    notifications = db.query(Notification).all()
    assert [(n.user_id, n.type) for n in notifications] == [(crew.id, "journey_updated")]


def test_leg_route_change_is_reported(client, db, owner, crew, voyage):
    make_registration(db, voyage["leg"], crew, status=RegistrationStatus.APPROVED)
    response = client.put(
        f"/legs/{voyage['leg'].id}",
        headers=auth_headers(owner),
        json={"waypoints": [{"lat": 39.57, "lng": 2.65}, {"lat": 38.70, "lng": 1.45}]},
    )
    body = response.json()
    assert body["changes"] == ["route"]
    assert body["notified_count"] == 1
    assert body["leg"]["bbox"]["min_lat"] == 38.70


def test_crew_cannot_edit_journey(client, crew, voyage):
    response = client.put(f"/journeys/{voyage['journey'].id}", headers=auth_headers(crew), json={"name": "Mine"})
    assert response.status_code == 403
