from __future__ import annotations

import json
from pathlib import Path

import pytest

from app.exceptions import UnknownProblemError
from app.services.corpus import ProblemRepository, check_answer

from conftest import make_problem

PACKAGED_PROBLEMS = Path(__file__).resolve().parents[1] / "app" / "data" / "problems"


def _problem_json(pid: str, seed: int = 3, **extra) -> dict:
    data = {
        "id": pid,
        "topic": "Arithmetic",
        "seed_difficulty": seed,
        "prompt": "What is 6 * 7?",
        "answer": {"kind": "number", "value": 42},
        "source": "tests",
        "license": "CC-BY-4.0",
        "author": "tests",
    }
    data.update(extra)
    return data


def _write(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")


def test_loads_nested_files(tmp_path):
    _write(tmp_path / "arithmetic" / "aom_one.json", _problem_json("aom_one"))
    _write(tmp_path / "deep" / "er" / "aom_two.json", _problem_json("aom_two", seed=9))

    repo = ProblemRepository(tmp_path)

    assert len(repo) == 2
    assert repo.require("aom_two").seed == 9
    assert "aom_one" in repo


def test_invalid_and_duplicate_files_are_skipped(tmp_path):
    _write(tmp_path / "a" / "aom_ok.json", _problem_json("aom_ok"))
    _write(tmp_path / "b" / "broken.json", "{not json")
    _write(tmp_path / "c" / "bad_id.json", _problem_json("Not-An-Id"))
    _write(tmp_path / "d" / "extra.json", _problem_json("aom_extra", surprise=True))
    _write(tmp_path / "e" / "no_seed.json", _problem_json("aom_noseed", seed_difficulty=None))
    _write(tmp_path / "f" / "aom_ok_again.json", _problem_json("aom_ok", seed=15))

    repo = ProblemRepository(tmp_path)

    assert [p.id for p in repo.all()] == ["aom_ok"]
    assert repo.require("aom_ok").seed == 3


def test_missing_directory_is_empty(tmp_path):
    assert len(ProblemRepository(tmp_path / "nope")) == 0


def test_reload_picks_up_new_files(tmp_path):
    _write(tmp_path / "aom_one.json", _problem_json("aom_one"))
    repo = ProblemRepository(tmp_path)
    assert len(repo) == 1

    _write(tmp_path / "aom_two.json", _problem_json("aom_two"))
    assert len(repo) == 1
    assert repo.reload() == 2
    assert "aom_two" in repo


def test_require_unknown_problem(corpus):
    assert corpus.get("aom_missing") is None
    with pytest.raises(UnknownProblemError):
        corpus.require("aom_missing")


def test_in_memory_repository_reload_keeps_problems(corpus):
    assert corpus.reload() == 4


def test_public_dict_hides_answer():
    data = make_problem("aom_x", 4).public_dict()
    assert "answer" not in data
    assert data["has_answer"] is True
    assert data["seed_difficulty"] == 4


def test_packaged_sample_corpus_is_valid():
    repo = ProblemRepository(PACKAGED_PROBLEMS)
    assert len(repo) == 8
    assert repo.require("aom_algebra_0003").seed == 13
    assert repo.require("aom_algebra_0002").has_video


@pytest.mark.parametrize(
    "answer, expected",
    [("15", True), (15, True), ("15.0", True), ("14.99", False), ("", False), ("nan", False), ("inf", False)],
)
def test_check_number_answer(answer, expected):
    problem = make_problem("aom_n", 1, answer={"kind": "number", "value": 15})
    assert check_answer(problem, answer) is expected


def test_check_number_answer_with_tolerance():
    problem = make_problem("aom_t", 1, answer={"kind": "number", "value": 0.375, "tolerance": 0.001})
    assert check_answer(problem, "0.3755")
    assert check_answer(problem, 0.374)
    assert not check_answer(problem, "0.38")


def test_check_exact_answer():
    problem = make_problem("aom_e", 1, answer={"kind": "exact", "value": "(x-2)(x-3)"})
    assert check_answer(problem, "  (X-2)(X-3)")
    assert not check_answer(problem, "(x-2) (x-3)")
