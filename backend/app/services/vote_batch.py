"""
Rating batch job.

Folds pending pairwise votes into problem ratings, oldest first:

  1. load up to `batch_size` unprocessed votes (ordered by id)
  2. load ratings for every problem they mention; missing rows start at 1000 / 0 votes
  3. apply the votes one after another against an in-memory working set, so a
     later vote sees the ratings and counts produced by earlier ones
       k = max(k_factor(n_prev), k_factor(n_curr)), halved for "same"
  4. write every touched rating (compare-and-set) and mark the votes processed,
     in a single transaction

A failure anywhere rolls the transaction back and leaves the votes pending, so
the next run redoes the same batch from scratch. Only one runner may drain the
queue at a time: run_recompute() holds a process lock plus a database lease.

The same job also tallies unprocessed attempts into each problem's attempt counter.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app import crud
from app.domain import Vote
from app.exceptions import JobAlreadyRunningError, StaleRatingError
from app.services.elo import DEFAULT_RATING, k_factor, update_elo, vote_to_score

logger = logging.getLogger(__name__)

LEASE_NAME = "recompute_ratings"

_RUN_LOCK = threading.Lock()


@dataclass
class _Working:
    rating: int
    n_votes: int
    old_rating: int
    old_n_votes: int

    @property
    def changed(self) -> bool:
        return self.rating != self.old_rating or self.n_votes != self.old_n_votes


@dataclass
class RecomputeResult:
    votes_processed: int
    attempts_tallied: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fold_votes(votes: list[dict], working: dict[str, _Working]) -> None:
    """Apply votes in order, mutating the working set."""
    for v in votes:
        vote = Vote(v["vote"])
        a = working[v["prev_problem_id"]]
        b = working[v["curr_problem_id"]]

        k = max(k_factor(a.n_votes), k_factor(b.n_votes))
        # a "same" judgement carries less information
        if vote is Vote.SAME:
            k //= 2

        a.rating, b.rating = update_elo(a.rating, b.rating, vote_to_score(vote), k)
        a.n_votes += 1
        b.n_votes += 1


def process_pending_votes(db: Session, batch_size: int) -> int:
    """
    Fold one batch of pending votes into problem ratings.

    Returns the number of votes processed (0 when the queue is empty).
    Raises on any storage failure after rolling back; nothing is marked processed.
    """
    votes = crud.fetch_pending_votes(db, batch_size)
    if not votes:
        db.rollback()
        return 0

    ids = sorted({pid for v in votes for pid in (v["prev_problem_id"], v["curr_problem_id"])})
    now = _utcnow()

    try:
        rows = crud.get_problem_ratings(db, ids)
        missing = [pid for pid in ids if pid not in rows]
        if missing:
            crud.insert_default_problem_ratings(db, missing, now)
            rows = crud.get_problem_ratings(db, ids)

        working: dict[str, _Working] = {}
        for pid in ids:
            row = rows.get(pid, {"rating": DEFAULT_RATING, "n_votes": 0})
            working[pid] = _Working(
                rating=row["rating"], n_votes=row["n_votes"],
                old_rating=row["rating"], old_n_votes=row["n_votes"],
            )

        fold_votes(votes, working)

        for pid, w in working.items():
            if not w.changed:
                continue
            ok = crud.update_problem_rating_if_unchanged(
                db, pid, w.old_rating, w.old_n_votes, w.rating, w.n_votes, now
            )
            if not ok:
                raise StaleRatingError(f"Rating for '{pid}' changed during the batch")

        crud.mark_votes_processed(db, [v["id"] for v in votes], now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"[Ratings] Folded {len(votes)} votes into {len(ids)} problem ratings")
    return len(votes)


def tally_pending_attempts(db: Session, batch_size: int) -> int:
    """Add pending attempts to each problem's attempt counter. Returns attempts tallied."""
    attempts = crud.fetch_pending_attempts(db, batch_size)
    if not attempts:
        db.rollback()
        return 0

    counts: dict[str, int] = {}
    for a in attempts:
        counts[a["problem_id"]] = counts.get(a["problem_id"], 0) + 1
    now = _utcnow()

    try:
        crud.insert_default_problem_ratings(db, sorted(counts), now)
        for pid, n in sorted(counts.items()):
            crud.increment_problem_attempts(db, pid, n, now)
        crud.mark_attempts_processed(db, [a["id"] for a in attempts], now)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"[Ratings] Tallied {len(attempts)} attempts across {len(counts)} problems")
    return len(attempts)


def run_recompute(db: Session, batch_size: int, lease_seconds: int) -> RecomputeResult:
    """
    Single-runner entry point for the batch job.

    Raises JobAlreadyRunningError when another thread or process holds the lease.
    """
    if not _RUN_LOCK.acquire(blocking=False):
        raise JobAlreadyRunningError("Rating recompute already running in this process")
    try:
        holder = uuid.uuid4().hex
        if not crud.try_acquire_lease(db, LEASE_NAME, holder, int(time.time()), lease_seconds):
            raise JobAlreadyRunningError("Rating recompute lease held by another runner")
        try:
            votes = process_pending_votes(db, batch_size)
            attempts = tally_pending_attempts(db, batch_size)
        finally:
            crud.release_lease(db, LEASE_NAME, holder)
    finally:
        _RUN_LOCK.release()

    return RecomputeResult(votes_processed=votes, attempts_tallied=attempts)
