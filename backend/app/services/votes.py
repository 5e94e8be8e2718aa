"""Vote ingestion: validate a pairwise difficulty vote and store it as pending."""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app import crud
from app.domain import Vote
from app.exceptions import InvalidPairError
from app.services.accounts import require_user
from app.services.corpus import ProblemRepository

logger = logging.getLogger(__name__)


def record_vote(
    db: Session,
    corpus: ProblemRepository,
    session_hash: str,
    prev_problem_id: str,
    curr_problem_id: str,
    vote: Vote,
    user_id: int | None = None,
) -> int:
    """
    Store a vote for (session, prev, curr). A repeat submission for the same
    pair overwrites the earlier vote value. Returns the vote id.
    """
    if prev_problem_id == curr_problem_id:
        raise InvalidPairError("A problem cannot be compared with itself")
    corpus.require(prev_problem_id)
    corpus.require(curr_problem_id)
    require_user(db, user_id)

    vote_id = crud.upsert_vote(
        db,
        session_hash=session_hash,
        user_id=user_id,
        prev_problem_id=prev_problem_id,
        curr_problem_id=curr_problem_id,
        vote=vote.value,
        now=datetime.now(timezone.utc),
    )
    logger.debug(f"[Vote] {prev_problem_id} vs {curr_problem_id}: {vote.value}")
    return vote_id
