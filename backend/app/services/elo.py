"""
Elo rating math for problems and users.

Expected score (logistic):
  expected = 1 / (1 + 10 ** ((r_b - r_a) / 400))

K-factor schedule (by prior event count):
  < 10 → 64,  < 50 → 32,  < 200 → 16,  otherwise 8

Update:
  delta = round_half_away(k * (score_a - expected))
  r_a' = clamp(r_a + delta),  r_b' = clamp(r_b - delta)

Seed difficulty (1–20) maps to an initial rating:
  rating = 1000 + (seed - 1) * 60

Everything here is pure: no state, no I/O.
"""

import math

from app.domain import Vote

DEFAULT_RATING = 1000

PROBLEM_RATING_MIN = 400
PROBLEM_RATING_MAX = 4000
USER_RATING_MIN = 100
USER_RATING_MAX = 4000

SEED_MIN = 1
SEED_MAX = 20
_SEED_STEP = 60

_K_SCHEDULE: list[tuple[int, int]] = [
    # (events below, K)
    (10, 64),
    (50, 32),
    (200, 16),
]
_K_FLOOR = 8


def round_half_away(x: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 → 3, -2.5 → -3)."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def clamp_problem_rating(rating: int) -> int:
    return clamp(rating, PROBLEM_RATING_MIN, PROBLEM_RATING_MAX)


def clamp_user_rating(rating: int) -> int:
    return clamp(rating, USER_RATING_MIN, USER_RATING_MAX)


def expected_score(r_a: float, r_b: float) -> float:
    """Probability that A 'wins' against B."""
    return 1.0 / (1.0 + 10 ** ((r_b - r_a) / 400.0))


def k_factor(n_events: int) -> int:
    """Higher K while an entity is sparsely observed, lower once it has settled."""
    for upper, k in _K_SCHEDULE:
        if n_events < upper:
            return k
    return _K_FLOOR


def elo_delta(r_a: float, r_b: float, score_a: float, k: int) -> int:
    """Signed rating change for A; B moves by the same amount in the other direction."""
    return round_half_away(k * (score_a - expected_score(r_a, r_b)))


def update_elo(
    r_a: int,
    r_b: int,
    score_a: float,
    k: int,
    lo: int = PROBLEM_RATING_MIN,
    hi: int = PROBLEM_RATING_MAX,
) -> tuple[int, int]:
    """
    Return the new (r_a, r_b) after one comparison.

    Zero-sum before clamping; clamping at a bound can break that.
    """
    delta = elo_delta(r_a, r_b, score_a, k)
    return clamp(r_a + delta, lo, hi), clamp(r_b - delta, lo, hi)


def vote_to_score(vote: Vote) -> float:
    """
    Score of the *previous* problem in a pairwise vote.

    "easier" means the current problem felt easier, so the previous one wins (1).
    """
    if vote is Vote.EASIER:
        return 1.0
    if vote is Vote.HARDER:
        return 0.0
    return 0.5


def seed_to_rating(seed: int) -> int:
    """Initial rating for an author-assigned 1–20 seed difficulty."""
    return DEFAULT_RATING + (seed - 1) * _SEED_STEP


def rating_to_difficulty(rating: int) -> int:
    """Inverse of seed_to_rating, rounded and clamped to the 1–20 scale."""
    seed = 1 + round_half_away((rating - DEFAULT_RATING) / _SEED_STEP)
    return clamp(seed, SEED_MIN, SEED_MAX)


def rating_to_level(rating: int) -> int:
    """Display level for a user: 1000–1099 is level 1, 1100–1199 level 2, and so on."""
    return max(1, 1 + math.floor((rating - DEFAULT_RATING) / 100))
