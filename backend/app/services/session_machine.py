"""
Practice session state machine.

  onboarding ──start──▶ solving ──submit──▶ feedback
                           ▲                  │
                           │  retry (wrong)   │
                           ├──────────────────┤
                           │  finalize        │  watch (wrong/giveup + video)
                           │  (< 2 completed) ▼
                           │               watching ──finish_watching──┐
                           │                                           │
                           └── vote / skip_vote ◀── voting ◀───────────┘
                                                    (≥ 2 completed and a different previous problem)

Whenever the scheduler has nothing left to offer the session moves to
`complete`; `restart` resets it and picks again.

The machine is pure: callers pass the current difficulty map on every event
that needs a new problem, and persist any returned vote themselves.
"""

import logging
import random
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from app.domain import Outcome, Vote
from app.exceptions import InvalidTransitionError, UnknownProblemError
from app.services.elo import SEED_MAX, SEED_MIN
from app.services.practice import pick_next_problem, ratchet

logger = logging.getLogger(__name__)

_VOTE_AFTER_COMPLETED = 2


class SessionState(str, Enum):
    ONBOARDING = "onboarding"
    SOLVING = "solving"
    FEEDBACK = "feedback"
    WATCHING = "watching"
    VOTING = "voting"
    COMPLETE = "complete"


@dataclass(frozen=True)
class VoteRecord:
    prev_problem_id: str
    curr_problem_id: str
    vote: Vote


class PracticeSession:
    def __init__(self, session_hash: str, rng: random.Random | None = None):
        self.session_hash = session_hash
        self.rng = rng or random.Random()
        self.state = SessionState.ONBOARDING
        self.target = SEED_MIN
        self.seen: set[str] = set()
        self.completed = 0
        self.current: str | None = None
        self.previous: str | None = None
        self.last_outcome: Outcome | None = None

    # ── helpers ───────────────────────────────────────────────────────────────

    def _expect(self, event: str, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(self.state.value, event)

    def _advance(self, corpus: Mapping[str, int]) -> None:
        """Ask the scheduler for the next problem, or finish the session."""
        pid = pick_next_problem(corpus, self.target, self.seen, self.rng)
        self.last_outcome = None
        if pid is None:
            logger.info(f"[Session] {self.session_hash[:8]} exhausted at difficulty {self.target}")
            self.state = SessionState.COMPLETE
            return
        self.previous = self.current
        self.current = pid
        self.seen.add(pid)
        self.state = SessionState.SOLVING

    def _finalize(self, corpus: Mapping[str, int]) -> None:
        self.target = ratchet(self.target, self.last_outcome)
        self.completed += 1
        # a repeat can make previous == current; there is nothing to compare then
        if self.completed >= _VOTE_AFTER_COMPLETED and self.previous not in (None, self.current):
            self.state = SessionState.VOTING
            return
        self._advance(corpus)

    # ── events ────────────────────────────────────────────────────────────────

    def start(self, corpus: Mapping[str, int], difficulty: int, start_problem_id: str | None = None) -> None:
        """Confirm the starting difficulty and show the first problem."""
        self._expect("start", SessionState.ONBOARDING)
        if not SEED_MIN <= difficulty <= SEED_MAX:
            raise ValueError(f"difficulty must be {SEED_MIN}–{SEED_MAX}")
        self.target = difficulty

        if start_problem_id is not None:
            if start_problem_id not in corpus:
                raise UnknownProblemError(start_problem_id)
            self.current = start_problem_id
            self.seen.add(start_problem_id)
            self.state = SessionState.SOLVING
            return
        self._advance(corpus)

    def submit(self, outcome: Outcome) -> None:
        """Record the outcome of an answer or a give-up on the current problem."""
        self._expect("submit", SessionState.SOLVING)
        self.last_outcome = outcome
        self.state = SessionState.FEEDBACK

    def retry(self) -> None:
        """Try the same problem again after a wrong answer. No ratchet, no completion."""
        self._expect("retry", SessionState.FEEDBACK)
        if self.last_outcome is not Outcome.WRONG:
            raise InvalidTransitionError(self.state.value, "retry")
        self.last_outcome = None
        self.state = SessionState.SOLVING

    def finalize(self, corpus: Mapping[str, int]) -> None:
        """Accept the outcome and move on (to voting or the next problem)."""
        self._expect("finalize", SessionState.FEEDBACK)
        self._finalize(corpus)

    def watch(self, has_video: bool) -> None:
        self._expect("watch", SessionState.FEEDBACK)
        if not has_video or self.last_outcome not in (Outcome.WRONG, Outcome.GIVEUP):
            raise InvalidTransitionError(self.state.value, "watch")
        self.state = SessionState.WATCHING

    def finish_watching(self, corpus: Mapping[str, int], helpful: bool | None = None) -> None:
        self._expect("finish_watching", SessionState.WATCHING)
        if helpful is not None:
            logger.info(f"[Session] Solution video for {self.current} helpful={helpful}")
        self._finalize(corpus)

    def vote(self, corpus: Mapping[str, int], vote: Vote) -> VoteRecord:
        """Compare the current problem with the previous one; returns the vote to persist."""
        self._expect("vote", SessionState.VOTING)
        record = VoteRecord(prev_problem_id=self.previous, curr_problem_id=self.current, vote=vote)
        self._advance(corpus)
        return record

    def skip_vote(self, corpus: Mapping[str, int]) -> None:
        self._expect("skip_vote", SessionState.VOTING)
        self._advance(corpus)

    def restart(self, corpus: Mapping[str, int]) -> None:
        """Start over after completion: clears history and drops back to difficulty 1."""
        self._expect("restart", SessionState.COMPLETE)
        self.seen = set()
        self.completed = 0
        self.previous = None
        self.current = None
        self.target = SEED_MIN
        self._advance(corpus)

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "target_difficulty": self.target,
            "completed": self.completed,
            "current_problem_id": self.current,
            "previous_problem_id": self.previous,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "seen_count": len(self.seen),
        }
