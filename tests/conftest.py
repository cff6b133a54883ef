import json

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.main import app
from app.models.section_definitions import QUIZ_SECTION_ID, SECTION_IDS
from app.routers.studies import get_db, get_text_generator
from app.routers.verses import get_verse_client
from app.services.study_repository import StudyRepository


QUIZ = [
    {"q": "Who was born in Bethlehem?", "o": ["Moses", "Jesus", "Paul", "Peter"], "a": 1},
    {"question": "Where did Paul write from?", "options": ["Rome", "Tarsus", "Corinth", "Athens"], "correctAnswerIndex": 0},
    {"question": "How many gospels are there?", "options": ["2", "3", "4", "5"], "correctAnswer": 2, "explanation": "Matthew, Mark, Luke and John."},
]


def make_payload(**overrides):
    """A well-formed full-study response body."""
    sections = {
        section_id: f'<h3>{section_id}</h3><p>Read <bible-verse reference="John 3:16">John 3:16</bible-verse> today.</p>'
        for section_id in SECTION_IDS
        if section_id != QUIZ_SECTION_ID
    }
    sections[QUIZ_SECTION_ID] = QUIZ
    payload = {
        "title": "Light in the Darkness",
        "theme": "God's love",
        "passages": "John 3:1-21",
        "sections": sections,
    }
    payload.update(overrides)
    return payload


class FakeGenerator:
    """Stands in for the LLM; returns ``response`` or raises it when it is an exception."""

    def __init__(self, response=""):
        self.response = response
        self.calls = []

    def __call__(self, messages, model=None):
        self.calls.append((messages, model))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def payload():
    return make_payload()


@pytest.fixture
def raw_response(payload):
    return json.dumps(payload)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def repository(db):
    return StudyRepository(db)


@pytest.fixture
def generator(raw_response):
    return FakeGenerator(raw_response)


@pytest.fixture
def verse_handler():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "reference": "John 3:16",
                "text": "For God so loved the world...\n",
                "translation_id": "kjv",
                "translation_name": "King James Version",
            },
        )

    return handler


@pytest.fixture
def client(db, generator, verse_handler):
    def override_get_db():
        yield db

    def override_get_verse_client():
        with httpx.Client(transport=httpx.MockTransport(lambda request: verse_handler(request))) as c:
            yield c

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_text_generator] = lambda: generator
    app.dependency_overrides[get_verse_client] = override_get_verse_client
    yield TestClient(app)
    app.dependency_overrides.clear()
