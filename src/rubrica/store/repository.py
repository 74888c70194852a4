"""
Two capability handles over the relational store.

``UserScopedRepository`` answers authorization questions: every query it runs
is filtered to the caller's own rows, so "not found" and "not yours" look the
same. ``ServiceRepository`` performs the privileged writes that follow a
successful check. Pipelines receive both and never use the service handle to
decide whether the caller may touch a row.
"""

from collections.abc import Iterable

from pydantic import ValidationError
from sqlalchemy import delete, select, update

from rubrica.errors import ForbiddenError, ProcessingFailedError
from rubrica.models.criterion import Criterion
from rubrica.models.records import FocusProfile, Result, Rubric, Submission, SubmissionStatus
from rubrica.store.database import Database
from rubrica.store.tables import (
    FocusProfileRow,
    RateLimitRow,
    ResultRow,
    RubricRow,
    SubmissionRow,
)

DEFAULT_PROFILE_NAME = "All Criteria"


# ─────────────────────────────────────────────────────────────────────────────
# Row → record conversion
# ─────────────────────────────────────────────────────────────────────────────


def _rubric(row: RubricRow) -> Rubric:
    try:
        return Rubric(
            id=row.id,
            owner=row.user_id,
            subject_id=row.subject_id,
            name=row.name,
            file_path=row.file_path,
            criteria=row.criteria or [],
        )
    except ValidationError as ex:
        raise ProcessingFailedError(f"rubric {row.id} has malformed criteria: {ex}") from ex


def _focus_profile(row: FocusProfileRow) -> FocusProfile:
    return FocusProfile(
        id=row.id,
        owner=row.user_id,
        rubric_id=row.rubric_id,
        name=row.name,
        selected_criteria=[str(c) for c in (row.selected_criteria or [])],
        is_default=row.is_default,
    )


def _submission(row: SubmissionRow) -> Submission:
    return Submission(
        id=row.id,
        owner=row.user_id,
        assignment_id=row.assignment_id,
        file_path=row.file_path,
        student_name=row.student_name,
        status=SubmissionStatus(row.status),
    )


def _result(row: ResultRow) -> Result:
    return Result(
        id=row.id,
        owner=row.user_id,
        submission_id=row.submission_id,
        overall_score=row.overall_score,
        criteria_scores=row.criteria_scores or [],
        strengths=row.strengths or [],
        improvements=row.improvements or [],
        confidence=row.confidence,
        flags=row.flags or [],
        created_at=row.created_at,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Caller-scoped reads
# ─────────────────────────────────────────────────────────────────────────────


class UserScopedRepository:
    """Read access restricted to one owner's rows."""

    def __init__(self, db: Database, owner: str) -> None:
        if not owner:
            raise ValueError("owner is required")
        self._db = db
        self.owner = owner

    def get_rubric(self, rubric_id: str) -> Rubric:
        with self._db.session() as s:
            row = s.scalars(
                select(RubricRow).where(RubricRow.id == rubric_id, RubricRow.user_id == self.owner)
            ).first()
            if row is None:
                raise ForbiddenError(f"rubric {rubric_id} not visible to {self.owner}")
            return _rubric(row)

    def get_focus_profile(self, focus_profile_id: str) -> FocusProfile:
        with self._db.session() as s:
            row = s.scalars(
                select(FocusProfileRow).where(
                    FocusProfileRow.id == focus_profile_id, FocusProfileRow.user_id == self.owner
                )
            ).first()
            if row is None:
                raise ForbiddenError(f"focus profile {focus_profile_id} not visible to {self.owner}")
            return _focus_profile(row)

    def list_focus_profiles(self, rubric_id: str) -> list[FocusProfile]:
        with self._db.session() as s:
            rows = s.scalars(
                select(FocusProfileRow)
                .where(FocusProfileRow.rubric_id == rubric_id, FocusProfileRow.user_id == self.owner)
                .order_by(FocusProfileRow.created_at)
            ).all()
            return [_focus_profile(r) for r in rows]

    def get_submission(self, submission_id: str) -> Submission:
        with self._db.session() as s:
            row = s.scalars(
                select(SubmissionRow).where(
                    SubmissionRow.id == submission_id, SubmissionRow.user_id == self.owner
                )
            ).first()
            if row is None:
                raise ForbiddenError(f"submission {submission_id} not visible to {self.owner}")
            return _submission(row)

    def get_result(self, submission_id: str) -> Result | None:
        with self._db.session() as s:
            row = s.scalars(
                select(ResultRow).where(
                    ResultRow.submission_id == submission_id, ResultRow.user_id == self.owner
                )
            ).first()
            return _result(row) if row is not None else None


# ─────────────────────────────────────────────────────────────────────────────
# Privileged writes
# ─────────────────────────────────────────────────────────────────────────────


class ServiceRepository:
    """Writes performed after the caller has been authorized."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # creation (upload flow)

    def create_rubric(
        self, *, owner: str, subject_id: str, name: str, file_path: str | None = None
    ) -> Rubric:
        row = RubricRow(
            user_id=owner, subject_id=subject_id, name=name, file_path=file_path, criteria=[]
        )
        with self._db.session() as s:
            s.add(row)
            s.flush()
            return _rubric(row)

    def create_submission(
        self, *, owner: str, assignment_id: str, file_path: str, student_name: str
    ) -> Submission:
        row = SubmissionRow(
            user_id=owner,
            assignment_id=assignment_id,
            file_path=file_path,
            student_name=student_name,
            status=SubmissionStatus.pending.value,
        )
        with self._db.session() as s:
            s.add(row)
            s.flush()
            return _submission(row)

    def create_focus_profile(
        self,
        *,
        owner: str,
        rubric_id: str,
        name: str,
        selected_criteria: Iterable[str],
        is_default: bool = False,
    ) -> FocusProfile:
        row = FocusProfileRow(
            user_id=owner,
            rubric_id=rubric_id,
            name=name,
            selected_criteria=list(selected_criteria),
            is_default=is_default,
        )
        with self._db.session() as s:
            s.add(row)
            s.flush()
            return _focus_profile(row)

    # rubric criteria

    def replace_criteria(self, rubric_id: str, criteria: list[Criterion]) -> None:
        payload = [c.model_dump() for c in criteria]
        with self._db.session() as s:
            res = s.execute(
                update(RubricRow)
                .where(RubricRow.id == rubric_id)
                .values(criteria=payload)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                raise ProcessingFailedError(f"rubric {rubric_id} vanished before update")

    def replace_default_focus_profile(
        self, *, owner: str, rubric_id: str, selected_criteria: Iterable[str]
    ) -> FocusProfile:
        """Drop the rubric's current default profile (if any) and insert a fresh one."""
        row = FocusProfileRow(
            user_id=owner,
            rubric_id=rubric_id,
            name=DEFAULT_PROFILE_NAME,
            selected_criteria=list(selected_criteria),
            is_default=True,
        )
        with self._db.session() as s:
            s.execute(
                delete(FocusProfileRow).where(
                    FocusProfileRow.rubric_id == rubric_id,
                    FocusProfileRow.user_id == owner,
                    FocusProfileRow.is_default.is_(True),
                )
            )
            s.add(row)
            s.flush()
            return _focus_profile(row)

    # submission status

    def get_status(self, submission_id: str) -> SubmissionStatus | None:
        with self._db.session() as s:
            value = s.scalar(select(SubmissionRow.status).where(SubmissionRow.id == submission_id))
            return SubmissionStatus(value) if value is not None else None

    def transition_status(
        self,
        submission_id: str,
        sources: Iterable[SubmissionStatus],
        target: SubmissionStatus,
    ) -> bool:
        """Compare-and-set: move to ``target`` only if the current status is one of ``sources``."""
        allowed = [s.value for s in sources]
        with self._db.session() as s:
            res = s.execute(
                update(SubmissionRow)
                .where(SubmissionRow.id == submission_id, SubmissionRow.status.in_(allowed))
                .values(status=target.value)
                .execution_options(synchronize_session=False)
            )
            return res.rowcount == 1

    def delete_submission(self, submission_id: str) -> None:
        with self._db.session() as s:
            s.execute(delete(ResultRow).where(ResultRow.submission_id == submission_id))
            s.execute(delete(SubmissionRow).where(SubmissionRow.id == submission_id))

    # results

    def save_result(self, result: Result) -> None:
        """Delete any stale result for the submission, then insert this one (same transaction)."""
        row = ResultRow(
            id=result.id,
            user_id=result.owner,
            submission_id=result.submission_id,
            overall_score=result.overall_score,
            criteria_scores=[c.model_dump(mode="json") for c in result.criteria_scores],
            strengths=list(result.strengths),
            improvements=list(result.improvements),
            confidence=result.confidence.value,
            flags=list(result.flags),
        )
        with self._db.session() as s:
            s.execute(delete(ResultRow).where(ResultRow.submission_id == result.submission_id))
            s.add(row)

    def delete_result(self, submission_id: str) -> int:
        with self._db.session() as s:
            res = s.execute(delete(ResultRow).where(ResultRow.submission_id == submission_id))
            return res.rowcount or 0

    # rate limiting

    def increment_rate_limit(self, owner: str, endpoint: str, window_minute: str) -> int:
        """Upsert the window counter and return the new count in one statement."""
        dialect = self._db.dialect
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise ProcessingFailedError(f"atomic rate-limit upsert not supported on {dialect}")
        table = RateLimitRow.__table__
        stmt = (
            insert(table)
            .values(user_id=owner, endpoint=endpoint, window_minute=window_minute, request_count=1)
            .on_conflict_do_update(
                index_elements=[table.c.user_id, table.c.endpoint, table.c.window_minute],
                set_={"request_count": table.c.request_count + 1},
            )
            .returning(table.c.request_count)
        )
        with self._db.session() as s:
            return int(s.execute(stmt).scalar_one())

    def purge_rate_limits(self, before_window: str) -> int:
        """Delete counters whose window key sorts before ``before_window``."""
        with self._db.session() as s:
            res = s.execute(delete(RateLimitRow).where(RateLimitRow.window_minute < before_window))
            return res.rowcount or 0
