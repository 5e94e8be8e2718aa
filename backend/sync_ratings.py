"""
Seed problem ratings from the corpus and optionally drain pending votes.

Run once after adding problems, from backend/:
    python sync_ratings.py              # create tables + seed ratings
    python sync_ratings.py --recompute  # ... then fold pending votes
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from app.config import settings
from app.db import SessionLocal, run_migrations
from app.exceptions import JobAlreadyRunningError
from app.services.corpus import ProblemRepository
from app.services.problem_sync import sync_problem_ratings
from app.services.vote_batch import run_recompute


def main(argv: list[str]) -> int:
    run_migrations()
    corpus = ProblemRepository(settings.problems_dir)

    db = SessionLocal()
    try:
        result = sync_problem_ratings(db, corpus)
        print(f"Sync complete: {result['synced']} seeded, {result['skipped']} already had votes.")

        if "--recompute" in argv:
            try:
                res = run_recompute(db, settings.vote_batch_size, settings.recompute_lease_seconds)
            except JobAlreadyRunningError as exc:
                print(f"Recompute skipped: {exc}")
                return 1
            print(f"Recompute complete: {res.votes_processed} votes, {res.attempts_tallied} attempts.")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
