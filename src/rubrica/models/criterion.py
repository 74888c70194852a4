# criterion.py

from pydantic import BaseModel, Field, ConfigDict, field_validator

MAX_CRITERIA = 50

# ─────────────────────────────────────────────────────────────────────────────
# Rubric criteria (what the extraction model must return)
# ─────────────────────────────────────────────────────────────────────────────


class Criterion(BaseModel):
    """One rubric axis: id (unique within the rubric), name, description, weight in points, category."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., max_length=2000)
    weight: float = Field(..., ge=0.0, le=100.0)
    category: str = Field(..., max_length=100)


class ExtractedCriteria(BaseModel):
    """Criteria extracted from a rubric document."""

    model_config = ConfigDict(extra="forbid")

    criteria: list[Criterion] = Field(..., max_length=MAX_CRITERIA)

    @field_validator("criteria")
    @classmethod
    def _unique_ids(cls, v: list[Criterion]) -> list[Criterion]:
        seen: set[str] = set()
        for c in v:
            if c.id in seen:
                raise ValueError(f"duplicate criterion id {c.id!r}")
            seen.add(c.id)
        return v

    def ids(self) -> list[str]:
        return [c.id for c in self.criteria]
