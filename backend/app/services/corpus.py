"""
Problem corpus repository.

Loads the static problem files (one JSON object per file, any depth under the
root directory) into memory on first use. Invalid files are logged and
skipped. Call reload() after the files on disk change.

Also provides answer checking against a problem's answer specification.
"""

import json
import logging
import math
import threading
from pathlib import Path

from pydantic import ValidationError

from app.domain import ExactAnswer, NumberAnswer, Problem
from app.exceptions import UnknownProblemError

logger = logging.getLogger(__name__)


class ProblemRepository:
    """Read-through cache over a directory of problem files."""

    def __init__(self, root: Path | str | None, problems: list[Problem] | None = None):
        self.root = Path(root) if root is not None else None
        self._fixed = problems
        self._lock = threading.Lock()
        self._by_id: dict[str, Problem] | None = None

    @classmethod
    def from_problems(cls, problems: list[Problem]) -> "ProblemRepository":
        """Build a repository over an in-memory list (no files involved)."""
        return cls(None, problems=list(problems))

    def _load(self) -> dict[str, Problem]:
        if self.root is None:
            return {p.id: p for p in self._fixed or []}

        problems: dict[str, Problem] = {}
        if not self.root.is_dir():
            logger.warning(f"[Corpus] Problems directory {self.root} does not exist")
            return problems

        for path in sorted(self.root.rglob("*.json")):
            rel = path.relative_to(self.root)
            try:
                problem = Problem.model_validate(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, ValidationError) as exc:
                logger.error(f"[Corpus] Failed to load problem {rel}: {exc}")
                continue
            if problem.id in problems:
                logger.error(f"[Corpus] Duplicate problem id '{problem.id}' in {rel}, skipped")
                continue
            problems[problem.id] = problem

        logger.info(f"[Corpus] Loaded {len(problems)} problems from {self.root}")
        return problems

    def _problems(self) -> dict[str, Problem]:
        with self._lock:
            if self._by_id is None:
                self._by_id = self._load()
            return self._by_id

    def reload(self) -> int:
        """Drop the cached corpus and read it again. Returns the new problem count."""
        with self._lock:
            self._by_id = self._load()
            return len(self._by_id)

    def all(self) -> list[Problem]:
        return list(self._problems().values())

    def get(self, problem_id: str) -> Problem | None:
        return self._problems().get(problem_id)

    def require(self, problem_id: str) -> Problem:
        problem = self.get(problem_id)
        if problem is None:
            raise UnknownProblemError(problem_id)
        return problem

    def __contains__(self, problem_id: str) -> bool:
        return problem_id in self._problems()

    def __len__(self) -> int:
        return len(self._problems())


def check_answer(problem: Problem, user_answer: str | float) -> bool:
    """
    Compare a submitted answer with the problem's answer spec.

    exact  : trimmed, case-insensitive string equality
    number : parsed as a finite float, within tolerance
    """
    spec = problem.answer

    if isinstance(spec, ExactAnswer):
        return str(user_answer).strip().lower() == spec.value.strip().lower()

    if isinstance(spec, NumberAnswer):
        if isinstance(user_answer, (int, float)):
            value = float(user_answer)
        else:
            try:
                value = float(str(user_answer).strip())
            except ValueError:
                return False
        if not math.isfinite(value):
            return False
        return abs(value - spec.value) <= spec.tolerance

    return False
