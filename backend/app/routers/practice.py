"""
Practice router — drives one learner's practice session.
  POST /practice/start      → pick a starting difficulty, serve the first problem
  POST /practice/answer     → grade + record the attempt, show feedback
  POST /practice/giveup     → record a give-up, show feedback
  POST /practice/retry      → same problem again (wrong answers only)
  POST /practice/continue   → accept the outcome, move on
  POST /practice/watch      → open the solution video
  POST /practice/watched    → leave the video, move on
  POST /practice/vote       → compare the last two problems, move on
  POST /practice/skip-vote  → move on without voting
  POST /practice/restart    → start over after the corpus is exhausted
  GET  /practice/state      → current state and problem
"""

import logging
from typing import Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps import (
    current_difficulty_map,
    get_corpus,
    get_session_hash,
    get_sessions,
    http_errors,
)
from app.domain import Outcome, Vote
from app.exceptions import InvalidTransitionError, SessionNotFoundError
from app.services.accounts import require_user
from app.services.attempts import MAX_TIME_MS, AttemptResult, record_attempt, submit_answer
from app.services.corpus import ProblemRepository
from app.services.elo import SEED_MAX, SEED_MIN
from app.services.session_machine import PracticeSession, SessionState
from app.services.sessions import SessionRegistry
from app.services.votes import record_vote

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Schemas ────────────────────────────────────────────────────────────────────

class StartRequest(BaseModel):
    difficulty: int = Field(ge=SEED_MIN, le=SEED_MAX)
    start_problem_id: str | None = Field(default=None, min_length=1, max_length=100)


class AnswerRequest(BaseModel):
    answer: Union[float, str]
    time_ms: int = Field(ge=0, le=MAX_TIME_MS)
    user_id: int | None = None


class GiveUpRequest(BaseModel):
    time_ms: int = Field(ge=0, le=MAX_TIME_MS)
    user_id: int | None = None


class WatchedRequest(BaseModel):
    helpful: bool | None = None


class SessionVoteRequest(BaseModel):
    vote: Vote
    user_id: int | None = None


# ── Helpers ────────────────────────────────────────────────────────────────────

def _state(session: PracticeSession, corpus: ProblemRepository) -> dict:
    payload = session.snapshot()
    problem = corpus.get(session.current) if session.current else None
    payload["problem"] = problem.public_dict() if problem else None
    return payload


def _attempt_payload(result: AttemptResult) -> dict:
    change = result.rating_change
    return {
        "attempt_id": result.attempt_id,
        "outcome": result.outcome.value,
        "correct": result.correct,
        "old_rating": change.old_rating if change else None,
        "new_rating": change.new_rating if change else None,
        "rating_delta": change.delta if change else None,
    }


def _require_solving(session: PracticeSession, event: str) -> str:
    if session.state is not SessionState.SOLVING or session.current is None:
        raise InvalidTransitionError(session.state.value, event)
    return session.current


# ── Routes ─────────────────────────────────────────────────────────────────────

@router.post("/start")
def start(
    body: StartRequest,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    """Begin (or begin again) a practice session at the chosen difficulty."""
    sessions.reset(session_hash)
    with http_errors(), sessions.open(session_hash) as session:
        session.start(current_difficulty_map(db, corpus), body.difficulty, body.start_problem_id)
        return _state(session, corpus)


@router.get("/state")
def get_state(
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    """Current state; an unknown session reads as a fresh onboarding one and is not stored."""
    try:
        with sessions.open(session_hash) as session:
            return _state(session, corpus)
    except SessionNotFoundError:
        return _state(PracticeSession(session_hash), corpus)


@router.post("/answer")
def answer(
    body: AnswerRequest,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    """Grade the answer to the current problem and record the attempt."""
    if isinstance(body.answer, str) and not body.answer.strip():
        raise HTTPException(status_code=400, detail="Answer is required")

    with http_errors(), sessions.open(session_hash) as session:
        problem_id = _require_solving(session, "submit")
        result = submit_answer(
            db, corpus, session_hash, problem_id, body.answer, body.time_ms, body.user_id
        )
        session.submit(result.outcome)
        return {**_attempt_payload(result), **_state(session, corpus)}


@router.post("/giveup")
def give_up(
    body: GiveUpRequest,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors(), sessions.open(session_hash) as session:
        problem_id = _require_solving(session, "submit")
        result = record_attempt(
            db, corpus, session_hash, problem_id, Outcome.GIVEUP, body.time_ms, body.user_id
        )
        session.submit(result.outcome)
        return {**_attempt_payload(result), **_state(session, corpus)}


@router.post("/retry")
def retry(
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors(), sessions.open(session_hash) as session:
        session.retry()
        return _state(session, corpus)


@router.post("/continue")
def continue_(
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    """Finalize the current problem: correct, give-up, or wrong + move on."""
    with http_errors(), sessions.open(session_hash) as session:
        session.finalize(current_difficulty_map(db, corpus))
        return _state(session, corpus)


@router.post("/watch")
def watch(
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors(), sessions.open(session_hash) as session:
        problem = corpus.get(session.current) if session.current else None
        session.watch(has_video=bool(problem and problem.has_video))
        payload = _state(session, corpus)
        payload["solution_video_url"] = str(problem.solution_video_url)
        return payload


@router.post("/watched")
def watched(
    body: WatchedRequest,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors(), sessions.open(session_hash) as session:
        session.finish_watching(current_difficulty_map(db, corpus), body.helpful)
        return _state(session, corpus)


@router.post("/vote")
def vote(
    body: SessionVoteRequest,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    """Record which of the last two problems felt harder, then serve the next one."""
    with http_errors(), sessions.open(session_hash) as session:
        require_user(db, body.user_id)
        record = session.vote(current_difficulty_map(db, corpus), body.vote)
        recorded = True
        try:
            record_vote(
                db, corpus, session_hash,
                record.prev_problem_id, record.curr_problem_id, record.vote,
                user_id=body.user_id,
            )
        except Exception:
            # the learner keeps going even when the vote could not be stored
            logger.exception(f"[Practice] Failed to store vote for session {session_hash[:8]}")
            recorded = False
        return {"vote_recorded": recorded, **_state(session, corpus)}


@router.post("/skip-vote")
def skip_vote(
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors(), sessions.open(session_hash) as session:
        session.skip_vote(current_difficulty_map(db, corpus))
        return _state(session, corpus)


@router.post("/restart")
def restart(
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    sessions: SessionRegistry = Depends(get_sessions),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors(), sessions.open(session_hash) as session:
        session.restart(current_difficulty_map(db, corpus))
        return _state(session, corpus)
