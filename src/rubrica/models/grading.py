from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, ConfigDict, StringConstraints

# ─────────────────────────────────────────────────────────────────────────────
# Grading reply (strict, typed)
# ─────────────────────────────────────────────────────────────────────────────

Quote = Annotated[str, StringConstraints(max_length=500)]


class Confidence(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class CriterionScore(BaseModel):
    """Score awarded for one criterion, with the rationale and quoted evidence behind it."""

    model_config = ConfigDict(extra="forbid")

    criterion_id: str = Field(..., min_length=1, max_length=100)
    score: float = Field(..., ge=0.0, le=100.0)
    rationale: str = Field(..., max_length=2000)
    evidence: list[Quote] = Field(default_factory=list, max_length=10)


class GradingReply(BaseModel):
    """
    Typed grading result returned by the grading model.
    """

    model_config = ConfigDict(extra="forbid")

    criteria_scores: list[CriterionScore] = Field(..., max_length=50)
    strengths: list[Quote] = Field(..., max_length=10)
    improvements: list[Quote] = Field(..., max_length=10)
    confidence: Confidence

    def __str__(self) -> str:  # pragma: no cover - trivial
        crit = sorted((s.criterion_id, s.score) for s in self.criteria_scores)
        return (
            f"GradingReply(criteria={crit}, confidence={self.confidence.value}, "
            f"strengths={len(self.strengths)}, improvements={len(self.improvements)})"
        )
