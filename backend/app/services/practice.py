"""
Practice scheduler — picks the next problem for a session.

Problems are compared on a 1–20 difficulty scale: the live Elo rating
converted back to that scale, or the seed difficulty when unrated.

Selection for target difficulty T:
  1. unseen problems at exactly T
  2. unseen problems within radius 1, 2, … 10 (first non-empty radius wins)
  3. any problem, seen or not, within radius 3 (repeats)
  4. nothing left → exhausted (None)
A problem is chosen uniformly at random among the candidates.

The ratchet moves the session's target after a finalized outcome:
correct → +1, wrong / giveup → −1, bounded to 1–20. It is independent of the
persisted Elo ratings.
"""

import random
from collections.abc import Collection, Iterable, Mapping

from app.domain import Outcome, Problem
from app.services.elo import SEED_MAX, SEED_MIN, rating_to_difficulty

_MAX_UNSEEN_RADIUS = 10
_REPEAT_RADIUS = 3


def difficulty_map(problems: Iterable[Problem], live_ratings: Mapping[str, int]) -> dict[str, int]:
    """Return {problem_id: 1–20 difficulty} for the scheduler."""
    result: dict[str, int] = {}
    for p in problems:
        rating = live_ratings.get(p.id)
        result[p.id] = p.seed if rating is None else rating_to_difficulty(rating)
    return result


def _within(corpus: Mapping[str, int], target: int, radius: int, seen: Collection[str] | None) -> list[str]:
    return sorted(
        pid for pid, diff in corpus.items()
        if abs(diff - target) <= radius and (seen is None or pid not in seen)
    )


def candidate_problems(corpus: Mapping[str, int], target: int, seen: Collection[str]) -> list[str]:
    """Candidate ids for the next pick, sorted by id. Empty means exhausted."""
    for radius in range(0, _MAX_UNSEEN_RADIUS + 1):
        candidates = _within(corpus, target, radius, seen)
        if candidates:
            return candidates
    # every unseen band is empty → allow repeats near the target
    return _within(corpus, target, _REPEAT_RADIUS, None)


def pick_next_problem(
    corpus: Mapping[str, int],
    target: int,
    seen: Collection[str],
    rng: random.Random | None = None,
) -> str | None:
    """Choose the next problem id, or None when the session is exhausted."""
    candidates = candidate_problems(corpus, target, seen)
    if not candidates:
        return None
    return (rng or random).choice(candidates)


def ratchet(target: int, outcome: Outcome) -> int:
    """Step the session's target difficulty after a finalized problem."""
    if outcome is Outcome.CORRECT:
        return min(SEED_MAX, target + 1)
    return max(SEED_MIN, target - 1)
