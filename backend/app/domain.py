"""
Shared value types: outcomes, votes and the problem record.

Problem files are validated with pydantic on load; anything that does not
match the schema never reaches the rating or practice services.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, model_validator


class Outcome(str, Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    GIVEUP = "giveup"

    @property
    def is_decisive(self) -> bool:
        """Correct and wrong move ratings; giving up does not."""
        return self is not Outcome.GIVEUP


class Vote(str, Enum):
    """Difficulty of the current problem relative to the previous one."""

    EASIER = "easier"
    SAME = "same"
    HARDER = "harder"


# ── Answer specification ──────────────────────────────────────────────────────

class ExactAnswer(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["exact"]
    value: str = Field(min_length=1, max_length=200)


class NumberAnswer(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["number"]
    value: float = Field(allow_inf_nan=False)
    tolerance: float = Field(default=0.0, ge=0, allow_inf_nan=False)


AnswerSpec = Annotated[Union[ExactAnswer, NumberAnswer], Field(discriminator="kind")]


# ── Problem ───────────────────────────────────────────────────────────────────

class Problem(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(pattern=r"^aom_[a-z0-9_]+$", max_length=100)
    topic: str = Field(min_length=1, max_length=60)

    # seed_difficulty preferred, difficulty kept as legacy fallback
    seed_difficulty: int | None = Field(default=None, ge=1, le=20)
    difficulty: int | None = Field(default=None, ge=1, le=20)

    prompt: str = Field(min_length=1, max_length=2000)
    prompt_latex: str | None = Field(default=None, max_length=4000)
    answer: AnswerSpec

    status: Literal["community", "verified"] = "community"
    source: str = Field(min_length=1, max_length=200)
    license: str = Field(min_length=1, max_length=80)
    author: str = Field(min_length=1, max_length=80)
    solution_video_url: HttpUrl | None = None
    created_at: str | None = None

    @model_validator(mode="after")
    def _require_seed(self) -> "Problem":
        if self.seed_difficulty is None and self.difficulty is None:
            raise ValueError("Either seed_difficulty or difficulty is required")
        return self

    @property
    def seed(self) -> int:
        """Author-assigned 1–20 difficulty used until live ratings exist."""
        return self.seed_difficulty if self.seed_difficulty is not None else self.difficulty

    @property
    def has_video(self) -> bool:
        return self.solution_video_url is not None

    def public_dict(self) -> dict:
        """Problem fields safe to send to a client (no answer)."""
        data = self.model_dump(mode="json", exclude={"answer"}, exclude_none=True)
        data["has_answer"] = True
        return data
