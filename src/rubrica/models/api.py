from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from rubrica.models.criterion import Criterion

# ─────────────────────────────────────────────────────────────────────────────
# HTTP request / response bodies (camelCase on the wire)
# ─────────────────────────────────────────────────────────────────────────────


class ExtractCriteriaRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    rubric_id: UUID = Field(..., alias="rubricId")
    file_path: str = Field(..., alias="filePath", min_length=1, max_length=500)


class GradeSubmissionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    submission_id: UUID = Field(..., alias="submissionId")
    focus_profile_id: UUID = Field(..., alias="focusProfileId")


class RetryGradingRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    focus_profile_id: UUID = Field(..., alias="focusProfileId")


class ExtractCriteriaResponse(BaseModel):
    success: bool = True
    criteria: list[Criterion]


class GradeSubmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    overall_score: float = Field(..., alias="overallScore")


class ErrorResponse(BaseModel):
    error: str
