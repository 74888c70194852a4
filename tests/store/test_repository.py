import uuid

import pytest

from fakes import OTHER_OWNER, OWNER
from rubrica.errors import ForbiddenError, ProcessingFailedError
from rubrica.models.criterion import Criterion
from rubrica.models.grading import Confidence, CriterionScore
from rubrica.models.records import Result, SubmissionStatus
from rubrica.store.repository import DEFAULT_PROFILE_NAME


def make_result(submission_id: str, score: float) -> Result:
    return Result(
        id=str(uuid.uuid4()),
        owner=OWNER,
        submission_id=submission_id,
        overall_score=score,
        criteria_scores=[CriterionScore(criterion_id="c1", score=score / 2, rationale="ok")],
        strengths=["s"],
        improvements=["i"],
        confidence=Confidence.medium,
    )


class TestUserScopedRepository:
    """Ownership-filtered reads."""

    def test_reads_own_rows(self, user, seeded) -> None:
        rubric = user.get_rubric(seeded["rubric"].id)

        assert rubric.name == "Essay Rubric"
        assert [c.id for c in rubric.criteria] == ["c1", "c2"]
        assert user.get_focus_profile(seeded["profile"].id).selected_criteria == ["c1", "c2"]
        assert user.get_submission(seeded["submission"].id).status is SubmissionStatus.pending

    def test_foreign_rows_look_missing(self, other_user, seeded) -> None:
        """Test that another owner's rows raise the same error as absent rows."""
        with pytest.raises(ForbiddenError):
            other_user.get_rubric(seeded["rubric"].id)
        with pytest.raises(ForbiddenError):
            other_user.get_focus_profile(seeded["profile"].id)
        with pytest.raises(ForbiddenError):
            other_user.get_submission(seeded["submission"].id)
        with pytest.raises(ForbiddenError):
            other_user.get_submission(str(uuid.uuid4()))

    def test_owner_required(self, db) -> None:
        from rubrica.store.repository import UserScopedRepository

        with pytest.raises(ValueError):
            UserScopedRepository(db, "")


class TestServiceRepository:
    """Privileged writes."""

    def test_replace_criteria_missing_rubric(self, service) -> None:
        with pytest.raises(ProcessingFailedError):
            service.replace_criteria(str(uuid.uuid4()), [])

    def test_replace_criteria(self, service, user, seeded) -> None:
        new = [Criterion(id="x", name="X", description="", weight=10, category="Style")]
        service.replace_criteria(seeded["rubric"].id, new)

        assert user.get_rubric(seeded["rubric"].id).criteria == new

    def test_default_profile_is_replaced(self, service, user, seeded) -> None:
        """Test that re-extraction leaves exactly one default profile."""
        rubric_id = seeded["rubric"].id
        first = service.replace_default_focus_profile(
            owner=OWNER, rubric_id=rubric_id, selected_criteria=["c1", "c2"]
        )
        second = service.replace_default_focus_profile(
            owner=OWNER, rubric_id=rubric_id, selected_criteria=["c1"]
        )

        profiles = user.list_focus_profiles(rubric_id)
        defaults = [p for p in profiles if p.is_default]
        assert [p.id for p in defaults] == [second.id]
        assert defaults[0].name == DEFAULT_PROFILE_NAME
        assert defaults[0].selected_criteria == ["c1"]
        assert first.id not in {p.id for p in profiles}
        # the hand-made profile survives
        assert seeded["profile"].id in {p.id for p in profiles}

    def test_transition_is_compare_and_set(self, service, seeded) -> None:
        sid = seeded["submission"].id

        assert service.transition_status(
            sid, [SubmissionStatus.pending], SubmissionStatus.processing
        )
        assert not service.transition_status(
            sid, [SubmissionStatus.pending], SubmissionStatus.processing
        )
        assert service.get_status(sid) is SubmissionStatus.processing
        assert service.get_status(str(uuid.uuid4())) is None

    def test_save_result_keeps_one_row(self, service, user, seeded) -> None:
        """Test delete-then-insert: saving twice leaves only the latest result."""
        sid = seeded["submission"].id
        service.save_result(make_result(sid, 50))
        latest = make_result(sid, 80)
        service.save_result(latest)

        stored = user.get_result(sid)
        assert stored is not None
        assert stored.id == latest.id
        assert stored.overall_score == 80
        assert stored.confidence is Confidence.medium
        assert service.delete_result(sid) == 1
        assert user.get_result(sid) is None
        assert service.delete_result(sid) == 0

    def test_result_hidden_from_other_owner(self, service, other_user, seeded) -> None:
        sid = seeded["submission"].id
        service.save_result(make_result(sid, 50))
        assert other_user.get_result(sid) is None

    def test_delete_submission_removes_result(self, service, user, seeded) -> None:
        sid = seeded["submission"].id
        service.save_result(make_result(sid, 50))

        service.delete_submission(sid)

        assert user.get_result(sid) is None
        with pytest.raises(ForbiddenError):
            user.get_submission(sid)

    def test_rate_limit_counters(self, service) -> None:
        assert service.increment_rate_limit(OWNER, "process-rubric", "2025-01-01-10-00") == 1
        assert service.increment_rate_limit(OWNER, "process-rubric", "2025-01-01-10-00") == 2
        assert service.increment_rate_limit(OTHER_OWNER, "process-rubric", "2025-01-01-10-00") == 1
        assert service.increment_rate_limit(OWNER, "process-rubric", "2025-01-01-10-01") == 1

        assert service.purge_rate_limits("2025-01-01-10-01") == 2
        assert service.increment_rate_limit(OWNER, "process-rubric", "2025-01-01-10-01") == 2
