"""
Attempt ingestion and the per-attempt user rating update.

Every attempt is stored first. For a decisive outcome (correct / wrong) by an
identified user, the user's rating is then moved against the problem's live
rating (or its seed-derived rating when the problem is unrated):

  expected = expected_score(user, problem)
  k        = k_factor(user_attempts)
  delta    = round_half_away(k * (actual - expected))      actual: 1 correct, 0 wrong

The write is a compare-and-set on the user's attempt counter; a lost race is
retried from a fresh read a few times. The rating update is best-effort beyond
that. The attempt row is the source of truth and a failed rating write is
logged, never surfaced to the learner.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app import crud
from app.domain import Outcome, Problem
from app.exceptions import StaleRatingError
from app.services.accounts import require_user
from app.services.corpus import ProblemRepository, check_answer
from app.services.elo import clamp_user_rating, elo_delta, k_factor, seed_to_rating

logger = logging.getLogger(__name__)

MAX_TIME_MS = 3_600_000
MAX_RATING_RETRIES = 3


@dataclass
class RatingChange:
    old_rating: int
    new_rating: int
    delta: int


@dataclass
class AttemptResult:
    attempt_id: int
    problem_id: str
    outcome: Outcome
    rating_change: RatingChange | None = None

    @property
    def correct(self) -> bool:
        return self.outcome is Outcome.CORRECT


def _apply_once(db: Session, user_id: int, problem: Problem, outcome: Outcome) -> RatingChange:
    """One read-compute-write pass. Raises StaleRatingError if the row moved underneath."""
    user = crud.get_user_rating_or_default(db, user_id)
    problem_rating = crud.get_problem_rating_or_default(
        db, problem.id, default=seed_to_rating(problem.seed)
    )

    actual = 1.0 if outcome is Outcome.CORRECT else 0.0
    raw = elo_delta(user["rating"], problem_rating, actual, k_factor(user["n_attempts"]))
    new_rating = clamp_user_rating(user["rating"] + raw)
    applied = new_rating - user["rating"]
    now = datetime.now(timezone.utc)

    try:
        ok = crud.write_user_rating_if_unchanged(
            db,
            user_id=user_id,
            existed=user["exists"],
            old_n_attempts=user["n_attempts"],
            rating=new_rating,
            n_attempts=user["n_attempts"] + 1,
            now=now,
        )
        if not ok:
            raise StaleRatingError(f"Rating for user {user_id} changed concurrently")
        crud.append_rating_history(
            db, user_id, new_rating, applied, problem.id, outcome.value, now
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return RatingChange(old_rating=user["rating"], new_rating=new_rating, delta=applied)


def apply_user_rating(db: Session, user_id: int, problem: Problem, outcome: Outcome) -> RatingChange:
    """
    Move one user's rating for one decisive attempt. Commits; raises on failure.

    A lost compare-and-set is retried from a fresh read, up to MAX_RATING_RETRIES times.
    """
    for attempt in range(1, MAX_RATING_RETRIES + 1):
        try:
            return _apply_once(db, user_id, problem, outcome)
        except StaleRatingError:
            if attempt == MAX_RATING_RETRIES:
                raise
            logger.info(f"[Rating] Concurrent update for user {user_id}, retrying ({attempt})")


def update_user_rating(db: Session, user_id: int, problem: Problem, outcome: Outcome) -> RatingChange | None:
    """Best-effort wrapper around apply_user_rating: failures are logged and return None."""
    try:
        return apply_user_rating(db, user_id, problem, outcome)
    except Exception:
        logger.exception(f"[Rating] User rating update failed for user {user_id} on {problem.id}")
        return None


def record_attempt(
    db: Session,
    corpus: ProblemRepository,
    session_hash: str,
    problem_id: str,
    outcome: Outcome,
    time_ms: int,
    user_id: int | None = None,
    client_version: str | None = None,
) -> AttemptResult:
    """Store an attempt and, when it is decisive and attributed, update the user's rating."""
    problem = corpus.require(problem_id)
    require_user(db, user_id)
    time_ms = max(0, min(MAX_TIME_MS, int(time_ms)))

    attempt_id = crud.record_attempt(
        db,
        session_hash=session_hash,
        user_id=user_id,
        problem_id=problem.id,
        outcome=outcome.value,
        time_ms=time_ms,
        now=datetime.now(timezone.utc),
        client_version=client_version,
    )
    result = AttemptResult(attempt_id=attempt_id, problem_id=problem.id, outcome=outcome)

    if user_id is not None and outcome.is_decisive:
        result.rating_change = update_user_rating(db, user_id, problem, outcome)
    return result


def submit_answer(
    db: Session,
    corpus: ProblemRepository,
    session_hash: str,
    problem_id: str,
    answer: str | float,
    time_ms: int,
    user_id: int | None = None,
) -> AttemptResult:
    """Grade a submitted answer, then record it as a correct or wrong attempt."""
    problem = corpus.require(problem_id)
    outcome = Outcome.CORRECT if check_answer(problem, answer) else Outcome.WRONG
    return record_attempt(db, corpus, session_hash, problem.id, outcome, time_ms, user_id)
