from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, ConfigDict

from rubrica.models.criterion import Criterion
from rubrica.models.grading import Confidence, CriterionScore

# ─────────────────────────────────────────────────────────────────────────────
# Stored records (read from / written to the relational store)
# ─────────────────────────────────────────────────────────────────────────────


class SubmissionStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    graded = "graded"
    error = "error"


class Rubric(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    subject_id: str
    name: str
    file_path: str | None = None
    criteria: list[Criterion] = Field(default_factory=list)


class FocusProfile(BaseModel):
    """A named selection of criterion ids from one rubric."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    rubric_id: str
    name: str
    selected_criteria: list[str] = Field(default_factory=list)
    is_default: bool = False


class Submission(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    assignment_id: str
    file_path: str
    student_name: str
    status: SubmissionStatus = SubmissionStatus.pending


class Result(BaseModel):
    """Outcome of one successful grading pass (1:1 with its submission)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    submission_id: str
    overall_score: float = Field(..., ge=0.0, le=100.0)
    criteria_scores: list[CriterionScore] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    confidence: Confidence
    flags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
