import json

import pytest

from app.core.exceptions import AIServiceError, AssessmentError
from app.core.rate_limit import ai_limiter
from app.db.models.notification import Notification
from app.db.models.registration import Registration, RegistrationAnswer, RegistrationStatus
from app.db.models.user import User
from app.services.ai.assessment_service import parse_assessment
from app.services.ai.assistant_service import validate_extracted_profile
from app.services.ai.groq_service import parse_json_response
from tests.factories import auth_headers, grant_consents, make_registration, make_requirement


def _assessment(score, recommendation="approve", reasoning="Solid fit"):
    return json.dumps({"match_score": score, "reasoning": reasoning, "recommendation": recommendation})


@pytest.fixture
def auto_voyage(db, voyage):
    requirement = make_requirement(db, voyage["journey"])
    voyage["journey"].auto_approval_enabled = True
    voyage["journey"].auto_approval_threshold = 70
    db.commit()
    voyage["requirement"] = requirement
    return voyage


def _answered_registration(db, voyage, crew):
    registration = make_registration(db, voyage["leg"], crew)
    db.add(RegistrationAnswer(registration_id=registration.id, requirement_id=voyage["requirement"].id, answer_text="No"))
    db.commit()
    return registration


def test_parse_json_response_strips_fences():
    assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_response('Sure! {"a": 2} hope that helps') == {"a": 2}
    with pytest.raises(ValueError):
        parse_json_response("no json here")


def test_parse_assessment_validates_score():
    assert parse_assessment(_assessment(85, "APPROVE"))["recommendation"] == "approve"
    assert parse_assessment(_assessment(50, "maybe"))["recommendation"] == "review"
    with pytest.raises(AssessmentError):
        parse_assessment(_assessment(140))


def test_validate_extracted_profile_drops_bad_values():
    values, ignored = validate_extracted_profile(
        {
            "full_name": " Ana Sailor ",
            "sailing_experience": "9",
            "risk_level": ["Coastal sailing", "Space sailing"],
            "skills": ["Night Sailing"],
        }
    )
    assert values == {"full_name": "Ana Sailor", "risk_level": ["Coastal sailing"], "skills": ["night_sailing"]}
    assert set(ignored) == {"sailing_experience", "risk_level"}


def test_assessment_auto_approves_above_threshold(client, db, owner, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    registration = _answered_registration(db, auto_voyage, crew)
    fake_llm.queue(_assessment(82))

    response = client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(owner))
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "assessed"
    assert body["auto_approved"] is True
    assert body["registration_status"] == "Approved"
    assert fake_llm.calls[0]["use_case"] == "assessment"

    types = {(n.user_id, n.type) for n in db.query(Notification).all()}
    assert (crew.id, "registration_approved") in types
    assert (owner.id, "ai_auto_approved") in types


def test_assessment_prompt_lists_journey_and_leg_requirements(client, db, owner, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    auto_voyage["journey"].skills = ["first_aid"]
    auto_voyage["journey"].min_experience_level = 2
    auto_voyage["leg"].min_experience_level = 3
    db.commit()
    registration = _answered_registration(db, auto_voyage, crew)
    fake_llm.queue(_assessment(40, "review"))

    assert client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(owner)).status_code == 200

    prompt = fake_llm.calls[0]["prompt"]
    assert "Required Skills: First Aid, Navigation, Night Sailing" in prompt
    assert "Required Experience Level: 3" in prompt


def test_assessment_below_threshold_needs_review(client, db, owner, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    registration = _answered_registration(db, auto_voyage, crew)
    fake_llm.queue(_assessment(90, "deny", "Gets seasick"))

    body = client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(owner)).json()
    assert body["auto_approved"] is False
    assert body["registration_status"] == "Pending approval"

    owner_types = [n.type for n in db.query(Notification).filter(Notification.user_id == owner.id)]
    assert owner_types == ["ai_review_needed"]


def test_assessment_without_ai_consent_goes_to_manual_review(client, db, owner, crew, auto_voyage, fake_llm):
    grant_consents(db, crew, ai_processing=False)
    registration = _answered_registration(db, auto_voyage, crew)

    body = client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(owner)).json()
    assert body["status"] == "manual_review"
    assert fake_llm.calls == []


def test_assessment_with_unusable_reply_is_400(client, db, owner, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    registration = _answered_registration(db, auto_voyage, crew)
    fake_llm.queue("I think they are fine")
    response = client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(owner))
    assert response.status_code == 400


def test_assessment_provider_failure_is_502(client, db, owner, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    registration = _answered_registration(db, auto_voyage, crew)
    fake_llm.queue(AIServiceError("upstream exploded", provider="groq", model="fake-model"))
    response = client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(owner))
    assert response.status_code == 502


def test_only_owner_can_trigger_assessment(client, db, crew, auto_voyage):
    registration = _answered_registration(db, auto_voyage, crew)
    response = client.post(f"/ai/assess-registration/{registration.id}", headers=auth_headers(crew))
    assert response.status_code == 403


def test_registration_runs_assessment_in_background(client, db, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    fake_llm.queue(_assessment(75))
    response = client.post(
        "/registrations",
        headers=auth_headers(crew),
        json={
            "leg_id": auto_voyage["leg"].id,
            "answers": [{"requirement_id": auto_voyage["requirement"].id, "answer_text": "No"}],
        },
    )
    assert response.json()["ai_assessment_scheduled"] is True

    db.expire_all()
    registration = db.query(Registration).one()
    assert registration.status == RegistrationStatus.APPROVED
    assert registration.auto_approved is True
    assert registration.ai_match_score == 75


def test_background_assessment_failure_leaves_registration_pending(client, db, crew, auto_voyage, fake_llm):
    grant_consents(db, crew)
    fake_llm.queue(AIServiceError("timeout", provider="groq"))
    response = client.post(
        "/registrations",
        headers=auth_headers(crew),
        json={
            "leg_id": auto_voyage["leg"].id,
            "answers": [{"requirement_id": auto_voyage["requirement"].id, "answer_text": "Yes"}],
        },
    )
    assert response.status_code == 201

    db.expire_all()
    assert db.query(Registration).one().status == RegistrationStatus.PENDING


def test_assistant_requires_ai_consent(client, crew):
    response = client.post("/assistant/chat", headers=auth_headers(crew), json={"message": "Hi"})
    assert response.status_code == 403


def test_assistant_chat_keeps_conversation(client, db, crew, fake_llm):
    grant_consents(db, crew)
    headers = auth_headers(crew)
    fake_llm.queue("Welcome! How long have you been sailing?", "Great, noted.")

    first = client.post("/assistant/chat", headers=headers, json={"message": "Hi, I want to crew"}).json()
    assert first["message"]["role"] == "assistant"
    assert "Phone Number" in first["missing_fields"]

    client.post(
        "/assistant/chat",
        headers=headers,
        json={"message": "About ten years", "conversation_id": first["conversation_id"]},
    )
    history = fake_llm.calls[1]["messages"]
    assert [m["role"] for m in history] == ["user", "assistant", "user"]

    detail = client.get(f"/assistant/conversations/{first['conversation_id']}", headers=headers).json()
    assert detail["message_count"] == 4
    assert detail["title"] == "Hi, I want to crew"


def test_assistant_conversations_are_private(client, db, crew, owner, fake_llm):
    grant_consents(db, crew)
    fake_llm.queue("Hello")
    conversation_id = client.post(
        "/assistant/chat", headers=auth_headers(crew), json={"message": "Hi"}
    ).json()["conversation_id"]
    response = client.get(f"/assistant/conversations/{conversation_id}", headers=auth_headers(owner))
    assert response.status_code == 404


def test_extract_profile_and_apply(client, db, crew, fake_llm):
    grant_consents(db, crew)
    headers = auth_headers(crew)
    fake_llm.queue("Nice to meet you")
    conversation_id = client.post(
        "/assistant/chat", headers=headers, json={"message": "I'm Ana, offshore skipper, 3 Atlantic crossings"}
    ).json()["conversation_id"]

    fake_llm.queue(
        json.dumps(
            {
                "full_name": "Ana",
                "sailing_experience": 4,
                "risk_level": ["Offshore sailing"],
                "skills": ["Celestial Navigation"],
            }
        )
    )
    response = client.post(
        f"/assistant/conversations/{conversation_id}/extract-profile", headers=headers, json={"apply": True}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["applied"] is True
    assert body["extracted"]["skills"] == ["celestial_navigation"]

    db.expire_all()
    stored = db.query(User).filter(User.id == crew.id).one()
    assert stored.sailing_experience == 4
    assert stored.risk_level == ["Offshore sailing"]


def test_ai_endpoints_are_rate_limited(client, db, crew, fake_llm, monkeypatch):
    grant_consents(db, crew)
    monkeypatch.setattr(ai_limiter, "max_requests", 2)
    headers = auth_headers(crew)
    fake_llm.queue("one", "two", "three")

    first = client.post("/assistant/chat", headers=headers, json={"message": "Hi"})
    assert first.headers["X-RateLimit-Remaining"] == "1"
    second = client.post("/assistant/chat", headers=headers, json={"message": "Hi"})
    assert second.status_code == 200
    assert second.headers["X-RateLimit-Remaining"] == "0"
    limited = client.post("/assistant/chat", headers=headers, json={"message": "Hi"})
    assert limited.status_code == 429
    assert "Retry-After" in limited.headers
