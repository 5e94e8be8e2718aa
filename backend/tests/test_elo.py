from __future__ import annotations

import pytest

from app.domain import Vote
from app.services.elo import (
    PROBLEM_RATING_MAX,
    elo_delta,
    expected_score,
    k_factor,
    rating_to_difficulty,
    rating_to_level,
    round_half_away,
    seed_to_rating,
    update_elo,
    vote_to_score,
)


def test_expected_score_equal_ratings_is_half():
    assert expected_score(1000, 1000) == pytest.approx(0.5)


def test_expected_score_is_symmetric():
    assert expected_score(1200, 1000) + expected_score(1000, 1200) == pytest.approx(1.0)
    assert expected_score(1000, 1200) == pytest.approx(0.2403, abs=1e-4)


@pytest.mark.parametrize(
    "n, k",
    [(0, 64), (9, 64), (10, 32), (49, 32), (50, 16), (199, 16), (200, 8), (10_000, 8)],
)
def test_k_factor_thresholds(n, k):
    assert k_factor(n) == k


def test_k_factor_is_non_increasing():
    values = [k_factor(n) for n in range(0, 300)]
    assert all(b <= a for a, b in zip(values, values[1:]))


@pytest.mark.parametrize("x, expected", [(2.5, 3), (-2.5, -3), (0.5, 1), (-0.5, -1), (0.49, 0), (-0.49, 0), (0.0, 0), (31.999, 32)])
def test_round_half_away_from_zero(x, expected):
    assert round_half_away(x) == expected


def test_update_elo_delta_bounded_and_zero_sum():
    for r_a in (600, 1000, 1450, 2200):
        for r_b in (700, 1000, 1900):
            for score in (0.0, 0.5, 1.0):
                for k in (8, 16, 32, 64):
                    delta = elo_delta(r_a, r_b, score, k)
                    assert abs(delta) <= k
                    new_a, new_b = update_elo(r_a, r_b, score, k)
                    assert new_a + new_b == r_a + r_b


def test_easier_vote_between_fresh_problems():
    k = max(k_factor(0), k_factor(0))
    assert k == 64
    assert update_elo(1000, 1000, vote_to_score(Vote.EASIER), k) == (1032, 968)


def test_same_vote_between_equal_problems_changes_nothing():
    k = max(k_factor(0), k_factor(0)) // 2
    assert k == 32
    assert update_elo(1000, 1000, vote_to_score(Vote.SAME), k) == (1000, 1000)


def test_clamping_may_break_zero_sum_at_bound():
    new_a, new_b = update_elo(3990, 3990, 1.0, 64)
    assert new_a == PROBLEM_RATING_MAX
    assert new_b == 3958


def test_update_elo_respects_custom_bounds():
    new_a, new_b = update_elo(110, 110, 0.0, 64, lo=100, hi=4000)
    assert new_a == 100
    assert new_b == 142


def test_vote_to_score_scores_previous_problem():
    assert vote_to_score(Vote.EASIER) == 1.0
    assert vote_to_score(Vote.SAME) == 0.5
    assert vote_to_score(Vote.HARDER) == 0.0


def test_seed_to_rating_linear_mapping():
    assert seed_to_rating(1) == 1000
    assert seed_to_rating(5) == 1240
    assert seed_to_rating(20) == 2140


def test_rating_to_difficulty_inverts_seed_mapping():
    for seed in range(1, 21):
        assert rating_to_difficulty(seed_to_rating(seed)) == seed


def test_rating_to_difficulty_clamps_to_scale():
    assert rating_to_difficulty(400) == 1
    assert rating_to_difficulty(4000) == 20
    # 1029 is closer to seed 1 (1000) than seed 2 (1060)
    assert rating_to_difficulty(1029) == 1
    assert rating_to_difficulty(1031) == 2


def test_rating_to_level():
    assert rating_to_level(1000) == 1
    assert rating_to_level(1099) == 1
    assert rating_to_level(1100) == 2
    assert rating_to_level(1549) == 6
    assert rating_to_level(500) == 1
