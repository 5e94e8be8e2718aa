"""
Background scheduler — keeps problem ratings current.

Jobs:
  - recompute_ratings  (every `recompute_interval_minutes`)
      Drain pending pairwise votes into problem ratings and tally pending
      attempts. Skips quietly when another runner holds the job lease.
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.exceptions import JobAlreadyRunningError
from app.services.vote_batch import run_recompute

logger = logging.getLogger(__name__)


def _recompute_ratings() -> None:
    """Open a DB session inside the job to avoid cross-thread session issues."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        result = run_recompute(db, settings.vote_batch_size, settings.recompute_lease_seconds)
        if result.votes_processed or result.attempts_tallied:
            logger.info(
                f"[Scheduler] Recompute: {result.votes_processed} votes, "
                f"{result.attempts_tallied} attempts"
            )
    except JobAlreadyRunningError as exc:
        logger.info(f"[Scheduler] Recompute skipped: {exc}")
    except Exception as exc:
        # votes stay pending; the next run retries the same batch
        logger.error(f"[Scheduler] Recompute failed: {exc}")
    finally:
        db.close()


_scheduler: BackgroundScheduler | None = None


def start_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        return
    _scheduler = BackgroundScheduler(daemon=True)
    _scheduler.add_job(
        _recompute_ratings,
        trigger=IntervalTrigger(minutes=settings.recompute_interval_minutes),
        id="recompute_ratings",
        name="Fold pairwise votes into problem ratings",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )
    _scheduler.start()
    logger.info(
        f"[Scheduler] Started — rating recompute every {settings.recompute_interval_minutes} min."
    )


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Stopped.")
