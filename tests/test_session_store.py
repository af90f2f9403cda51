"""
Tests for the per-user session store.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coach.core.errors import UnauthorizedError
from coach.db.base import Base
from coach.services.session_store import SessionStore
import coach.db.models  # noqa: F401


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def store():
    db = TestSessionLocal()
    try:
        yield SessionStore(db)
    finally:
        db.close()


def document(created_at="2024-01-01T00:00:00.000Z", **fields):
    data = {
        "jobTitle": "Engineer",
        "jobDescription": "Build things",
        "createdAt": created_at,
        "status": "in-progress",
        "mode": "classic",
        "persona": "Friendly HR Manager",
        "questions": [],
        "currentQuestionIndex": 0,
    }
    data.update(fields)
    return data


def test_create_assigns_id_and_owner(store):
    created = store.create("user-1", document(id="ignored", userId="someone-else"))

    assert created["id"] and created["id"] != "ignored"
    assert created["userId"] == "user-1"
    assert store.get("user-1", created["id"]) == created


def test_get_is_scoped_to_user(store):
    created = store.create("user-1", document())
    assert store.get("user-2", created["id"]) is None
    assert store.get("user-1", "missing") is None


def test_missing_user_id_is_unauthorized(store):
    with pytest.raises(UnauthorizedError):
        store.list(None)
    with pytest.raises(UnauthorizedError):
        store.create("", document())


def test_list_orders_newest_first(store):
    store.create("user-1", document("2024-01-01T00:00:00.000Z", jobTitle="old"))
    store.create("user-1", document("2024-06-01T00:00:00.000Z", jobTitle="new"))
    store.create("user-2", document("2024-09-01T00:00:00.000Z", jobTitle="other user"))

    titles = [d["jobTitle"] for d in store.list("user-1")]
    assert titles == ["new", "old"]


def test_update_merges_top_level_fields(store):
    created = store.create("user-1", document())
    updated = store.update("user-1", created["id"], {"currentQuestionIndex": 3, "id": "hijack"})

    assert updated["currentQuestionIndex"] == 3
    assert updated["id"] == created["id"]
    assert updated["jobTitle"] == "Engineer"
    assert store.get("user-1", created["id"])["currentQuestionIndex"] == 3


def test_update_unknown_session_returns_none(store):
    assert store.update("user-1", "missing", {"currentQuestionIndex": 1}) is None


def test_import_keeps_id_and_replaces_existing(store):
    first = store.import_session("user-1", document(id="guest-1", status="completed", userId="guest"))
    assert first["id"] == "guest-1"
    assert first["userId"] == "user-1"

    store.import_session("user-1", document(id="guest-1", status="completed", averageScore=5))
    sessions = store.list("user-1")
    assert len(sessions) == 1
    assert sessions[0]["averageScore"] == 5
