"""
Vote router — pairwise difficulty votes outside a tracked practice session.
  POST /vote → store "current was easier / same / harder than previous"
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps import get_corpus, get_session_hash, http_errors
from app.domain import Vote
from app.services.corpus import ProblemRepository
from app.services.votes import record_vote

router = APIRouter()


class VoteRequest(BaseModel):
    prev_problem_id: str = Field(min_length=1, max_length=100)
    curr_problem_id: str = Field(min_length=1, max_length=100)
    vote: Vote
    user_id: int | None = None


@router.post("", status_code=201)
def submit_vote(
    body: VoteRequest,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
    session_hash: str = Depends(get_session_hash),
):
    with http_errors():
        vote_id = record_vote(
            db, corpus, session_hash,
            body.prev_problem_id, body.curr_problem_id, body.vote,
            user_id=body.user_id,
        )
    return {"success": True, "vote_id": vote_id}
