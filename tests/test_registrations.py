from app.db.models.journey import JourneyState, QuestionType
from app.db.models.notification import Notification
from app.db.models.registration import Registration, RegistrationStatus
from tests.factories import (
    auth_headers,
    grant_consents,
    make_journey,
    make_leg,
    make_registration,
    make_requirement,
    make_user,
)


def _register(client, user, leg_id, **body):
    return client.post("/registrations", headers=auth_headers(user), json={"leg_id": leg_id, **body})


def test_crew_registers_for_leg(client, db, owner, crew, voyage):
    response = _register(client, crew, voyage["leg"].id, notes="Happy to cook")
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Registration created"
    assert body["ai_assessment_scheduled"] is False
    assert body["registration"]["status"] == "Pending approval"
    assert body["registration"]["match_percentage"] == 50

    kinds = {(n.user_id, n.type) for n in db.query(Notification).all()}
    assert kinds == {(owner.id, "new_registration"), (crew.id, "pending_registration")}


def test_owner_cannot_register(client, db, owner, voyage):
    owner.roles = ["owner", "crew"]
    db.commit()
    response = _register(client, owner, voyage["leg"].id)
    assert response.status_code == 400


def test_cannot_register_for_unpublished_journey(client, db, crew, voyage):
    draft = make_journey(db, voyage["boat"], name="Draft", state=JourneyState.IN_PLANNING)
    leg = make_leg(db, draft)
    assert _register(client, crew, leg.id).status_code == 400


def test_duplicate_registration_conflicts(client, crew, voyage):
    _register(client, crew, voyage["leg"].id)
    assert _register(client, crew, voyage["leg"].id).status_code == 409


def test_cancelled_registration_is_reactivated(client, db, crew, voyage):
    registration = make_registration(
        db,
        voyage["leg"],
        crew,
        status=RegistrationStatus.CANCELLED,
        ai_match_score=40,
        ai_match_reasoning="Old assessment",
    )
    body = _register(client, crew, voyage["leg"].id).json()
    assert body["message"] == "Registration reactivated"
    assert body["registration"]["id"] == registration.id
    assert body["registration"]["status"] == "Pending approval"
    assert body["registration"]["ai_match_score"] is None


def test_answers_are_validated_against_requirements(client, db, crew, voyage):
    journey = voyage["journey"]
    seasick = make_requirement(db, journey)
    watch = make_requirement(
        db, journey, "Preferred watch?", QuestionType.MULTIPLE_CHOICE, options=["Morning", "Night"], order=1
    )
    confidence = make_requirement(db, journey, "Helming confidence", QuestionType.RATING, order=2)
    leg_id = voyage["leg"].id

    bad_yes_no = _register(client, crew, leg_id, answers=[{"requirement_id": seasick.id, "answer_text": "Maybe"}])
    assert bad_yes_no.status_code == 400

    bad_choice = _register(client, crew, leg_id, answers=[{"requirement_id": watch.id, "answer_json": "Noon"}])
    assert bad_choice.status_code == 400

    bad_rating = _register(client, crew, leg_id, answers=[{"requirement_id": confidence.id, "answer_json": 11}])
    assert bad_rating.status_code == 400

    unknown = _register(client, crew, leg_id, answers=[{"requirement_id": 999, "answer_text": "Yes"}])
    assert unknown.status_code == 400

    ok = _register(
        client,
        crew,
        leg_id,
        answers=[
            {"requirement_id": seasick.id, "answer_text": "No"},
            {"requirement_id": watch.id, "answer_json": "Night"},
            {"requirement_id": confidence.id, "answer_json": 7},
        ],
    )
    assert ok.status_code == 201

    answers = client.get(
        f"/registrations/{ok.json()['registration']['id']}/answers", headers=auth_headers(crew)
    ).json()
    assert answers["count"] == 3


def test_required_answers_enforced_with_auto_approval(client, db, crew, voyage):
    journey = voyage["journey"]
    make_requirement(db, journey)
    journey.auto_approval_enabled = True
    db.commit()

    response = _register(client, crew, voyage["leg"].id)
    assert response.status_code == 400
    assert "Missing answers" in response.json()["detail"]


def test_owner_approves_registration(client, db, owner, crew, voyage):
    registration = make_registration(db, voyage["leg"], crew)
    response = client.patch(
        f"/registrations/{registration.id}",
        headers=auth_headers(owner),
        json={"status": "Approved", "notes": "Welcome aboard"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Approved"

    notification = db.query(Notification).filter(Notification.user_id == crew.id).one()
    assert notification.type == "registration_approved"
    assert notification.metadata_json["sender_id"] == owner.id


def test_owner_cannot_set_pending(client, db, owner, crew, voyage):
    registration = make_registration(db, voyage["leg"], crew)
    response = client.patch(
        f"/registrations/{registration.id}", headers=auth_headers(owner), json={"status": "Pending approval"}
    )
    assert response.status_code == 400


def test_other_owner_cannot_decide(client, db, crew, voyage):
    registration = make_registration(db, voyage["leg"], crew)
    stranger = make_user(db, "stranger", roles=("owner",))
    response = client.patch(
        f"/registrations/{registration.id}", headers=auth_headers(stranger), json={"status": "Approved"}
    )
    assert response.status_code == 403


def test_crew_cancels_own_registration(client, db, crew, voyage):
    registration = make_registration(db, voyage["leg"], crew)
    response = client.post(f"/registrations/{registration.id}/cancel", headers=auth_headers(crew))
    assert response.json()["status"] == "Cancelled"
    again = client.post(f"/registrations/{registration.id}/cancel", headers=auth_headers(crew))
    assert again.status_code == 400


def test_owner_sees_profile_only_with_sharing_consent(client, db, owner, crew, voyage):
    make_registration(db, voyage["leg"], crew)
    quiet = make_user(db, "quiet", skills=["cooking"])
    make_registration(db, voyage["leg"], quiet)
    grant_consents(db, crew, profile_sharing=True)
    grant_consents(db, quiet, profile_sharing=False)

    body = client.get(
        f"/registrations/by-journey/{voyage['journey'].id}", headers=auth_headers(owner)
    ).json()
    assert body["total"] == 2
    crews = {r["crew"]["username"]: r["crew"] for r in body["registrations"]}
    assert crews["deckhand"]["profile_shared"] is True
    assert crews["deckhand"]["skills"] == ["navigation", "first_aid"]
    assert crews["quiet"]["profile_shared"] is False
    assert crews["quiet"]["skills"] == []
    assert crews["quiet"]["email"] is None


def test_registration_detail_follows_sharing_consent(client, db, owner, crew, voyage):
    registration = make_registration(db, voyage["leg"], crew)
    url = f"/registrations/{registration.id}"

    hidden = client.get(url, headers=auth_headers(owner)).json()["crew"]
    assert hidden["profile_shared"] is False
    assert hidden["email"] is None

    grant_consents(db, crew, profile_sharing=True)
    shared = client.get(url, headers=auth_headers(owner)).json()["crew"]
    assert shared["profile_shared"] is True
    assert shared["email"] == "deckhand@sailmatch.io"


def test_owner_lists_registrations_across_journeys(client, db, owner, crew, voyage):
    second = make_journey(db, voyage["boat"], name="Return Trip")
    make_registration(db, voyage["leg"], crew, status=RegistrationStatus.APPROVED)
    make_registration(db, make_leg(db, second, name="Ibiza to Palma"), crew)

    everything = client.get("/registrations/owner/all", headers=auth_headers(owner)).json()
    assert everything["total"] == 2
    approved = client.get(
        "/registrations/owner/all", headers=auth_headers(owner), params={"status": "Approved"}
    ).json()
    assert [r["leg"]["journey_name"] for r in approved["registrations"]] == ["Balearic Crossing"]


def test_answers_can_only_change_while_pending(client, db, crew, voyage):
    requirement = make_requirement(db, voyage["journey"])
    registration = make_registration(db, voyage["leg"], crew)
    headers = auth_headers(crew)

    response = client.put(
        f"/registrations/{registration.id}/answers",
        headers=headers,
        json={"answers": [{"requirement_id": requirement.id, "answer_text": "Yes"}]},
    )
    assert response.status_code == 200
    assert response.json()["answers"][0]["answer_text"] == "Yes"

    db.query(Registration).filter(Registration.id == registration.id).update(
        {"status": RegistrationStatus.APPROVED}
    )
    db.commit()
    response = client.put(
        f"/registrations/{registration.id}/answers",
        headers=headers,
        json={"answers": [{"requirement_id": requirement.id, "answer_text": "No"}]},
    )
    assert response.status_code == 400


def test_registration_detail_hidden_from_strangers(client, db, crew, voyage):
    registration = make_registration(db, voyage["leg"], crew)
    stranger = make_user(db, "stranger")
    assert client.get(f"/registrations/{registration.id}", headers=auth_headers(stranger)).status_code == 403
