"""
Seed problem ratings from the static corpus.

Each problem gets rating = seed_to_rating(seed_difficulty). Rows that already
carry live votes are left alone. Call after adding problems to the corpus.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app import crud
from app.services.corpus import ProblemRepository
from app.services.elo import seed_to_rating

logger = logging.getLogger(__name__)

_CHUNK = 500


def sync_problem_ratings(db: Session, corpus: ProblemRepository) -> dict:
    """Upsert seed-derived ratings. Returns {"synced": n_written, "skipped": n_voted}."""
    problems = corpus.all()
    now = datetime.now(timezone.utc)
    written = 0

    # commit per chunk so one huge corpus does not hold a single long transaction
    for i in range(0, len(problems), _CHUNK):
        chunk = problems[i:i + _CHUNK]
        try:
            for p in chunk:
                if crud.upsert_seed_rating(db, p.id, seed_to_rating(p.seed), now):
                    written += 1
            db.commit()
        except Exception:
            db.rollback()
            raise

    skipped = len(problems) - written
    logger.info(f"[Sync] Seeded {written} problem ratings ({skipped} already had votes)")
    return {"synced": written, "skipped": skipped}
