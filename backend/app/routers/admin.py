"""
Admin router — operator and cron endpoints. Requires `Authorization: Bearer <ADMIN_TOKEN>`.
  POST /admin/recompute-ratings     → fold pending votes into problem ratings
  POST /admin/sync-problem-ratings  → seed ratings from the corpus
  POST /admin/reload-problems       → re-read the corpus from disk
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app import crud
from app.config import settings
from app.db import get_db
from app.deps import get_corpus, require_admin
from app.exceptions import JobAlreadyRunningError
from app.services.corpus import ProblemRepository
from app.services.problem_sync import sync_problem_ratings
from app.services.vote_batch import run_recompute

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/recompute-ratings")
def recompute_ratings(db: Session = Depends(get_db)):
    """Process one batch of pending votes. Safe to call on an empty queue."""
    try:
        result = run_recompute(db, settings.vote_batch_size, settings.recompute_lease_seconds)
    except JobAlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except Exception as exc:
        # batch rolled back; votes stay pending for the next call
        logger.error(f"[Admin] recompute-ratings failed: {exc}")
        raise HTTPException(status_code=500, detail="DB error")
    return {
        "ok": True,
        "processed": result.votes_processed,
        "attempts_tallied": result.attempts_tallied,
        "pending": crud.count_pending_votes(db),
    }


@router.post("/sync-problem-ratings")
def sync_ratings(
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
):
    result = sync_problem_ratings(db, corpus)
    return {"ok": True, **result}


@router.post("/reload-problems")
def reload_problems(corpus: ProblemRepository = Depends(get_corpus)):
    count = corpus.reload()
    return {"ok": True, "problems": count}
