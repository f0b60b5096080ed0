import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "testing"
os.environ["ANALYTICS_CACHE_TTL"] = "0"
os.environ["PROMETHEUS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutorhub.core.auth import create_token
from tutorhub.core.clock import get_clock
from tutorhub.core.database import get_db, make_engine
from tutorhub.models.orm import Base, Child, ClientProfile, ParticipantKind, ParticipantRef, QuestionType
from tutorhub.models.schemas import AssessmentSpec, QuestionSpec
from tutorhub.services import assessments, questions

NOW = datetime(2026, 3, 2, 12, 0, 0)
TEACHER = "teacher-1"


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    yield session
    session.close()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_assessment(db, clock):
    def _make(questions_specs=(), **overrides):
        fields = {"title": "Fractions quiz", "total_points": 100, "passing_points": 60}
        fields.update(overrides)
        a = assessments.create_assessment(db, AssessmentSpec(**fields), TEACHER, clock=clock)
        for spec in questions_specs:
            questions.add_question(db, a.id, spec, clock=clock)
        db.refresh(a)
        return a
    return _make


@pytest.fixture
def child(db):
    c = Child(name="Amina Yusuf", parent_id="parent-1")
    db.add(c)
    db.commit()
    return ParticipantRef(ParticipantKind.CHILD.value, c.id)


@pytest.fixture
def make_child(db):
    def _make(name):
        c = Child(name=name, parent_id="parent-1")
        db.add(c)
        db.commit()
        return ParticipantRef(ParticipantKind.CHILD.value, c.id)
    return _make


@pytest.fixture
def client_profile(db):
    p = ClientProfile(company_name="Acme Learning", contact_name="Jo Park", user_id="client-user-1")
    db.add(p)
    db.commit()
    return ParticipantRef(ParticipantKind.CLIENT.value, p.id)


def tf(text="Is the sky blue?", answer=True, points=50):
    return QuestionSpec(question=text, type=QuestionType.TRUE_FALSE, correct_answer=answer, points=points)


def mc(text="Pick the prime", options=("4", "6", "7"), answer="7", points=25):
    return QuestionSpec(question=text, type=QuestionType.MULTIPLE_CHOICE, options=list(options),
                        correct_answer=answer, points=points)


def essay(text="Explain photosynthesis.", points=50):
    return QuestionSpec(question=text, type=QuestionType.ESSAY, points=points)


@pytest.fixture
def specs():
    """Question spec builders: true/false, multiple choice and essay."""
    class Specs:
        true_false = staticmethod(tf)
        multiple_choice = staticmethod(mc)
        essay_question = staticmethod(essay)
    return Specs


@pytest.fixture
def api(db, clock):
    from tutorhub.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_header(user_id, roles):
    return {"Authorization": f"Bearer {create_token(user_id, roles)}"}


@pytest.fixture
def teacher_headers():
    return auth_header(TEACHER, ["teacher"])


@pytest.fixture
def parent_headers():
    """Parent account owning the children created by the child fixtures."""
    return auth_header("parent-1", ["parent"])


