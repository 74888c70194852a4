import pytest
from pydantic import ValidationError

from fakes import grading_reply
from rubrica.models.api import ExtractCriteriaRequest, GradeSubmissionRequest, GradeSubmissionResponse
from rubrica.models.grading import Confidence, CriterionScore, GradingReply


class TestCriterionScore:
    """Tests for CriterionScore."""

    def test_valid_score(self) -> None:
        s = CriterionScore(criterion_id="c1", score=42.5, rationale="Solid thesis")
        assert s.score == 42.5
        assert s.evidence == []

    def test_score_out_of_range(self) -> None:
        """Test that scores outside 0..100 are rejected."""
        with pytest.raises(ValidationError):
            CriterionScore(criterion_id="c1", score=100.5, rationale="")
        with pytest.raises(ValidationError):
            CriterionScore(criterion_id="c1", score=-0.1, rationale="")

    def test_evidence_limits(self) -> None:
        """Test quote length and quote count bounds."""
        with pytest.raises(ValidationError):
            CriterionScore(criterion_id="c1", score=1, rationale="", evidence=["x" * 501])
        with pytest.raises(ValidationError):
            CriterionScore(criterion_id="c1", score=1, rationale="", evidence=["q"] * 11)


class TestGradingReply:
    """Tests for GradingReply."""

    def test_valid_reply(self) -> None:
        reply = GradingReply.model_validate(grading_reply(("c1", 40), ("c2", 45)))

        assert reply.confidence is Confidence.high
        assert [s.criterion_id for s in reply.criteria_scores] == ["c1", "c2"]
        assert reply.strengths == ["Clear structure"]

    def test_missing_confidence(self) -> None:
        """Test that a reply without confidence is rejected."""
        data = grading_reply(("c1", 40))
        del data["confidence"]
        with pytest.raises(ValidationError) as exc_info:
            GradingReply.model_validate(data)

        assert "confidence" in str(exc_info.value)

    def test_unknown_confidence(self) -> None:
        with pytest.raises(ValidationError):
            GradingReply.model_validate(grading_reply(("c1", 40), confidence="certain"))

    def test_too_many_strengths(self) -> None:
        data = grading_reply(("c1", 40))
        data["strengths"] = ["good"] * 11
        with pytest.raises(ValidationError):
            GradingReply.model_validate(data)

    def test_extra_fields_forbidden(self) -> None:
        data = grading_reply(("c1", 40))
        data["overall"] = 99
        with pytest.raises(ValidationError):
            GradingReply.model_validate(data)


class TestRequestBodies:
    """Tests for the camelCase HTTP bodies."""

    def test_extract_request_aliases(self) -> None:
        req = ExtractCriteriaRequest.model_validate(
            {"rubricId": "6f1c1a4e-1d7b-4a8e-9d55-2f6f0b8f3a11", "filePath": "user-1/r.pdf"}
        )
        assert str(req.rubric_id) == "6f1c1a4e-1d7b-4a8e-9d55-2f6f0b8f3a11"
        assert req.file_path == "user-1/r.pdf"

    def test_extract_request_rejects_bad_uuid_and_long_path(self) -> None:
        with pytest.raises(ValidationError):
            ExtractCriteriaRequest.model_validate({"rubricId": "nope", "filePath": "a/b.txt"})
        with pytest.raises(ValidationError):
            ExtractCriteriaRequest.model_validate(
                {"rubricId": "6f1c1a4e-1d7b-4a8e-9d55-2f6f0b8f3a11", "filePath": "a" * 501}
            )

    def test_grade_request_requires_both_ids(self) -> None:
        with pytest.raises(ValidationError):
            GradeSubmissionRequest.model_validate(
                {"submissionId": "6f1c1a4e-1d7b-4a8e-9d55-2f6f0b8f3a11"}
            )

    def test_grade_response_dumps_camel_case(self) -> None:
        body = GradeSubmissionResponse(overall_score=85.0).model_dump(by_alias=True)
        assert body == {"success": True, "overallScore": 85.0}
