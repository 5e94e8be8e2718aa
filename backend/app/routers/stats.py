"""
Stats router — learner overview.
  GET /stats/{user_id}  → rating, level, solve counts, accuracy, rating history, topics
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app import crud
from app.db import get_db
from app.deps import get_corpus
from app.services.corpus import ProblemRepository
from app.services.elo import rating_to_level

router = APIRouter()

_TOP_TOPICS = 10


@router.get("/{user_id}")
def get_stats(
    user_id: int,
    db: Session = Depends(get_db),
    corpus: ProblemRepository = Depends(get_corpus),
):
    """
    Returns:
    - current rating and display level (1000 if the user has no rating yet)
    - distinct problems solved, total attempts, accuracy %
    - rating history (latest 100, oldest first)
    - top topics by distinct problems solved
    """
    user = crud.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    rating = crud.get_user_rating_or_default(db, user_id)["rating"]
    solved_ids = crud.get_solved_problem_ids(db, user_id)
    total_attempts = crud.count_attempts(db, user_id)
    correct_attempts = crud.count_correct_attempts(db, user_id)
    accuracy = round(correct_attempts / total_attempts * 100) if total_attempts else 0

    history = crud.get_rating_history(db, user_id, n=100)
    for h in history:
        if hasattr(h.get("created_at"), "isoformat"):
            h["created_at"] = h["created_at"].isoformat()

    topic_counts: dict[str, int] = {}
    for pid in solved_ids:
        problem = corpus.get(pid)
        topic = problem.topic if problem else "Unknown"
        topic_counts[topic] = topic_counts.get(topic, 0) + 1
    topics = sorted(
        ({"topic": t, "count": c} for t, c in topic_counts.items()),
        key=lambda x: (-x["count"], x["topic"]),
    )[:_TOP_TOPICS]

    return {
        "user_id": user_id,
        "name": user["name"],
        "stats": {
            "rating": rating,
            "level": rating_to_level(rating),
            "solved_count": len(solved_ids),
            "total_attempts": total_attempts,
            "accuracy": accuracy,
        },
        "history": history,
        "topics": topics,
    }
