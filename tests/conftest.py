import os

# Settings are read at import time, so the environment is prepared first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENCRYPTION_KEY"] = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ADMIN_SECRET_KEY"] = "test-admin-secret"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["GROQ_API_KEY"] = ""
os.environ["MAPBOX_ACCESS_TOKEN"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.core.rate_limit import ai_limiter  # noqa: E402
from app.db.postgres import Base, SessionLocal, engine  # noqa: E402
from app.services.ai.groq_service import get_llm_service  # noqa: E402
from app.services.geocoding.service import BoundingBox, GeocodedLocation, get_geocoding_service  # noqa: E402
from tests.factories import make_boat, make_journey, make_leg, make_user  # noqa: E402


class FakeLLM:
    """Stands in for GroqLLMService; replies are queued per test"""

    model = "fake-model"

    def __init__(self):
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def _next(self):
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply

    def chat(self, messages, system=None, use_case="general"):
        self.calls.append({"messages": messages, "system": system, "use_case": use_case})
        return self._next()

    def complete(self, prompt, system=None, use_case="general"):
        self.calls.append({"prompt": prompt, "system": system, "use_case": use_case})
        return self._next()


class FakeGeocoder:
    def __init__(self):
        self.places = {}

    def geocode(self, query):
        return self.places.get(query.lower())


@pytest.fixture(autouse=True)
def _database():
    Base.metadata.create_all(bind=engine)
    ai_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_geocoder():
    geocoder = FakeGeocoder()
    geocoder.places["mallorca"] = GeocodedLocation(
        name="Mallorca, Spain",
        lat=39.6,
        lng=2.9,
        bbox=BoundingBox(min_lng=2.2, min_lat=39.2, max_lng=3.5, max_lat=40.0),
        type="region",
        country="Spain",
    )
    return geocoder


@pytest.fixture
def client(fake_llm, fake_geocoder):
    app.dependency_overrides[get_llm_service] = lambda: fake_llm
    app.dependency_overrides[get_geocoding_service] = lambda: fake_geocoder
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner(db):
    return make_user(db, "skipper", roles=("owner",))


@pytest.fixture
def crew(db):
    return make_user(db, "deckhand", roles=("crew",), skills=["navigation", "first_aid"], sailing_experience=2)


@pytest.fixture
def voyage(db, owner):
    """Published journey with one leg off Mallorca"""
    boat = make_boat(db, owner)
    journey = make_journey(db, boat, skills=["navigation"])
    leg = make_leg(db, journey, skills=["navigation", "night_sailing"])
    return {"boat": boat, "journey": journey, "leg": leg}
