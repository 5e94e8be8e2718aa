from __future__ import annotations

import os

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ADMIN_TOKEN"] = "test-admin-token"

import pytest
from fastapi.testclient import TestClient

from app import models  # noqa: F401  (registers tables)
from app.db import Base, SessionLocal, engine
from app.domain import Problem
from app.services.corpus import ProblemRepository
from app.services.sessions import SessionRegistry, new_session_token

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


def make_problem(pid: str, seed: int, **extra) -> Problem:
    """Build a valid problem; answer defaults to the number 42."""
    data = {
        "id": pid,
        "topic": extra.pop("topic", "Algebra"),
        "seed_difficulty": seed,
        "prompt": f"Prompt for {pid}",
        "answer": extra.pop("answer", {"kind": "number", "value": 42}),
        "source": "tests",
        "license": "CC-BY-4.0",
        "author": "tests",
    }
    data.update(extra)
    return Problem.model_validate(data)


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def problems() -> list[Problem]:
    return [
        make_problem("aom_test_a", 5),
        make_problem("aom_test_b", 6, topic="Geometry"),
        make_problem("aom_test_c", 7),
        make_problem(
            "aom_test_video", 12,
            answer={"kind": "exact", "value": "(x-2)(x-3)"},
            solution_video_url="https://www.youtube.com/watch?v=abc",
        ),
    ]


@pytest.fixture
def corpus(problems) -> ProblemRepository:
    return ProblemRepository.from_problems(problems)


@pytest.fixture
def client(db, corpus):
    from app.main import app as api

    api.state.corpus = corpus
    api.state.sessions = SessionRegistry()
    return TestClient(api)


@pytest.fixture
def session_headers() -> dict[str, str]:
    return {"X-Session-Token": new_session_token()}


@pytest.fixture
def foreign_keys(db):
    """Enforce foreign keys on the shared SQLite connection, as PostgreSQL does."""
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    yield
    db.rollback()
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
