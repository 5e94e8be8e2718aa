from __future__ import annotations

import time
from datetime import datetime, timezone

import pytest

from app import crud
from app.exceptions import JobAlreadyRunningError, StaleRatingError
from app.services.elo import update_elo
from app.services.vote_batch import (
    LEASE_NAME,
    process_pending_votes,
    run_recompute,
    tally_pending_attempts,
)

NOW = datetime(2026, 2, 6, tzinfo=timezone.utc)


def _vote(db, prev, curr, vote, session="s" * 64):
    return crud.upsert_vote(db, session, None, prev, curr, vote, NOW)


def _ratings(db, *ids):
    return crud.get_problem_ratings(db, list(ids))


def test_empty_queue_is_a_noop(db):
    assert process_pending_votes(db, batch_size=1000) == 0


def test_easier_vote_seeds_missing_rows_and_updates(db):
    _vote(db, "aom_a", "aom_b", "easier")

    assert process_pending_votes(db, batch_size=1000) == 1

    rows = _ratings(db, "aom_a", "aom_b")
    assert rows["aom_a"]["rating"] == 1032
    assert rows["aom_b"]["rating"] == 968
    assert rows["aom_a"]["n_votes"] == 1
    assert rows["aom_b"]["n_votes"] == 1


def test_reprocessing_changes_nothing(db):
    _vote(db, "aom_a", "aom_b", "harder")
    process_pending_votes(db, batch_size=1000)
    before = _ratings(db, "aom_a", "aom_b")

    assert process_pending_votes(db, batch_size=1000) == 0
    assert _ratings(db, "aom_a", "aom_b") == before
    assert crud.count_pending_votes(db) == 0


def test_same_vote_halves_k_and_counts_the_vote(db):
    _vote(db, "aom_a", "aom_b", "same")
    process_pending_votes(db, batch_size=1000)

    rows = _ratings(db, "aom_a", "aom_b")
    assert rows["aom_a"]["rating"] == 1000
    assert rows["aom_b"]["rating"] == 1000
    assert rows["aom_a"]["n_votes"] == 1


def test_later_votes_see_earlier_results_in_same_batch(db):
    _vote(db, "aom_a", "aom_b", "easier")
    _vote(db, "aom_a", "aom_c", "easier")

    assert process_pending_votes(db, batch_size=1000) == 2

    rows = _ratings(db, "aom_a", "aom_b", "aom_c")
    expected_a, expected_c = update_elo(1032, 1000, 1.0, 64)
    assert (rows["aom_a"]["rating"], rows["aom_c"]["rating"]) == (expected_a, expected_c)
    assert rows["aom_a"]["rating"] == 1061
    assert rows["aom_a"]["n_votes"] == 2
    assert rows["aom_b"]["n_votes"] == 1


def test_existing_ratings_and_counts_drive_k(db):
    crud.upsert_seed_rating(db, "aom_a", 1240, NOW)
    assert crud.update_problem_rating_if_unchanged(db, "aom_a", 1240, 0, 1240, 10, NOW)
    db.commit()
    _vote(db, "aom_a", "aom_b", "harder")

    process_pending_votes(db, batch_size=1000)

    rows = _ratings(db, "aom_a", "aom_b")
    # aom_b is brand new, so the larger K (64) applies
    assert (rows["aom_a"]["rating"], rows["aom_b"]["rating"]) == update_elo(1240, 1000, 0.0, 64)
    assert rows["aom_a"]["n_votes"] == 11


def test_batch_size_bounds_each_run_in_insertion_order(db):
    _vote(db, "aom_a", "aom_b", "easier")
    _vote(db, "aom_b", "aom_c", "easier")
    _vote(db, "aom_c", "aom_d", "easier")

    assert process_pending_votes(db, batch_size=2) == 2
    assert "aom_d" not in _ratings(db, "aom_d")
    assert process_pending_votes(db, batch_size=2) == 1
    assert process_pending_votes(db, batch_size=2) == 0


def test_resubmitted_vote_overwrites_pending_value(db):
    first = _vote(db, "aom_a", "aom_b", "easier")
    second = _vote(db, "aom_a", "aom_b", "harder")
    assert first == second
    assert crud.count_pending_votes(db) == 1

    process_pending_votes(db, batch_size=1000)
    assert _ratings(db, "aom_a")["aom_a"]["rating"] == 968


def test_storage_failure_leaves_batch_pending(db, monkeypatch):
    _vote(db, "aom_a", "aom_b", "easier")

    def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(crud, "mark_votes_processed", boom)
    with pytest.raises(RuntimeError):
        process_pending_votes(db, batch_size=1000)

    assert crud.count_pending_votes(db) == 1
    assert _ratings(db, "aom_a", "aom_b") == {}

    monkeypatch.undo()
    assert process_pending_votes(db, batch_size=1000) == 1
    assert _ratings(db, "aom_a")["aom_a"]["rating"] == 1032


def test_concurrent_rating_change_aborts_batch(db, monkeypatch):
    _vote(db, "aom_a", "aom_b", "easier")
    monkeypatch.setattr(crud, "update_problem_rating_if_unchanged", lambda *a, **k: False)

    with pytest.raises(StaleRatingError):
        process_pending_votes(db, batch_size=1000)
    assert crud.count_pending_votes(db) == 1


def test_tally_pending_attempts(db):
    crud.record_attempt(db, "s" * 64, None, "aom_a", "correct", 1000, NOW)
    crud.record_attempt(db, "s" * 64, None, "aom_a", "wrong", 1000, NOW)
    crud.record_attempt(db, "s" * 64, None, "aom_b", "giveup", 1000, NOW)

    assert tally_pending_attempts(db, batch_size=1000) == 3
    rows = _ratings(db, "aom_a", "aom_b")
    assert rows["aom_a"]["n_attempts"] == 2
    assert rows["aom_b"]["n_attempts"] == 1
    assert rows["aom_a"]["rating"] == 1000

    assert tally_pending_attempts(db, batch_size=1000) == 0


def test_run_recompute_processes_votes_and_attempts(db):
    _vote(db, "aom_a", "aom_b", "easier")
    crud.record_attempt(db, "s" * 64, None, "aom_a", "correct", 500, NOW)

    result = run_recompute(db, batch_size=1000, lease_seconds=60)
    assert result.votes_processed == 1
    assert result.attempts_tallied == 1

    # lease released: a second run goes through and finds nothing
    again = run_recompute(db, batch_size=1000, lease_seconds=60)
    assert (again.votes_processed, again.attempts_tallied) == (0, 0)


def test_run_recompute_refuses_while_lease_is_held(db):
    _vote(db, "aom_a", "aom_b", "easier")
    assert crud.try_acquire_lease(db, LEASE_NAME, "other-runner", int(time.time()), 300)

    with pytest.raises(JobAlreadyRunningError):
        run_recompute(db, batch_size=1000, lease_seconds=60)
    assert crud.count_pending_votes(db) == 1


def test_run_recompute_takes_over_expired_lease(db):
    _vote(db, "aom_a", "aom_b", "easier")
    assert crud.try_acquire_lease(db, LEASE_NAME, "crashed-runner", int(time.time()) - 1000, 10)

    assert run_recompute(db, batch_size=1000, lease_seconds=60).votes_processed == 1
