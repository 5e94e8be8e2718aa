from __future__ import annotations

from datetime import datetime, timezone

from app import crud
from app.services.corpus import ProblemRepository
from app.services.problem_sync import sync_problem_ratings
from app.services.vote_batch import process_pending_votes

from conftest import make_problem

NOW = datetime(2026, 2, 6, tzinfo=timezone.utc)


def test_sync_writes_seed_ratings(db, corpus):
    result = sync_problem_ratings(db, corpus)

    assert result == {"synced": 4, "skipped": 0}
    assert crud.get_all_problem_ratings(db) == {
        "aom_test_a": 1240,
        "aom_test_b": 1300,
        "aom_test_c": 1360,
        "aom_test_video": 1660,
    }


def test_sync_is_idempotent(db, corpus):
    sync_problem_ratings(db, corpus)
    first = crud.get_all_problem_ratings(db)
    sync_problem_ratings(db, corpus)
    assert crud.get_all_problem_ratings(db) == first


def test_sync_leaves_voted_problems_alone(db, corpus):
    sync_problem_ratings(db, corpus)
    crud.upsert_vote(db, "s" * 64, None, "aom_test_a", "aom_test_b", "harder", NOW)
    process_pending_votes(db, batch_size=100)
    voted = crud.get_all_problem_ratings(db)
    assert voted["aom_test_a"] != 1240

    result = sync_problem_ratings(db, corpus)

    assert result == {"synced": 2, "skipped": 2}
    assert crud.get_all_problem_ratings(db) == voted


def test_sync_uses_legacy_difficulty(db):
    legacy = make_problem("aom_legacy", 1, seed_difficulty=None, difficulty=13)
    sync_problem_ratings(db, ProblemRepository.from_problems([legacy]))
    assert crud.get_all_problem_ratings(db) == {"aom_legacy": 1720}
