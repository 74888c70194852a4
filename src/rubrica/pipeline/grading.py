"""Submission grading.

Order of operations:

1. ownership check on the submission (no side effects yet)
2. pending → processing
3. focus profile and rubric lookups through the caller-scoped repository
4. selected criteria = rubric criteria ∩ profile selection
5. fetch, extract and truncate the submission text
6-8. schema-constrained grading call, then validation of the reply
9. overall score
10. persist the result
11. processing → graded

Once step 2 has happened, every way out of :meth:`GradingPipeline.run`,
including cancellation and unexpected exceptions, goes through
``processing → error`` unless the attempt reached ``graded``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from pydantic import ValidationError

from rubrica.ai.protocol import AIBackendProtocol
from rubrica.errors import AIResponseInvalidError, RubricaError
from rubrica.io.extraction import TextExtractor, truncate_text
from rubrica.io.storage import SUBMISSIONS_BUCKET, FileFetcher
from rubrica.logging import get_logger
from rubrica.models.criterion import Criterion
from rubrica.models.grading import GradingReply
from rubrica.models.records import Result, Submission
from rubrica.settings import RubricaSettings, get_settings
from rubrica.state import SubmissionStateMachine
from rubrica.store.repository import ServiceRepository, UserScopedRepository
from rubrica.utils import compute_overall_score, select_criteria, with_timeout

logger = get_logger("pipeline.grading")


@dataclass
class GradingOutcome:
    submission_id: str
    overall_score: float
    result_id: str


def validate_grading_reply(raw: object, criteria: list[Criterion]) -> GradingReply:
    """Validate a raw grading reply against the schema and against the selected criteria.

    Every scored criterion must be one of ``criteria``, scored at most once,
    and not above its weight.
    """
    if raw is None:
        raise AIResponseInvalidError("model returned no grading payload")
    try:
        if isinstance(raw, GradingReply):
            reply = GradingReply.model_validate(raw.model_dump())
        else:
            reply = GradingReply.model_validate(raw)
    except ValidationError as ex:
        raise AIResponseInvalidError(f"grading payload failed validation: {ex}") from ex

    weights = {c.id: c.weight for c in criteria}
    seen: set[str] = set()
    for s in reply.criteria_scores:
        if s.criterion_id not in weights:
            raise AIResponseInvalidError(f"score for unknown criterion {s.criterion_id!r}")
        if s.criterion_id in seen:
            raise AIResponseInvalidError(f"criterion {s.criterion_id!r} scored twice")
        if s.score > weights[s.criterion_id]:
            raise AIResponseInvalidError(
                f"criterion {s.criterion_id!r} scored {s.score:g} > max {weights[s.criterion_id]:g}"
            )
        seen.add(s.criterion_id)
    return reply


class GradingPipeline:
    def __init__(
        self,
        *,
        service: ServiceRepository,
        fetcher: FileFetcher,
        ai: AIBackendProtocol,
        settings: RubricaSettings | None = None,
    ) -> None:
        self._service = service
        self._fetcher = fetcher
        self._ai = ai
        self._settings = settings or get_settings()
        self._states = SubmissionStateMachine(service)
        self._extractor = TextExtractor(ai, vision_fallback=True)

    async def run(
        self, *, user: UserScopedRepository, submission_id: str, focus_profile_id: str
    ) -> GradingOutcome:
        submission = user.get_submission(submission_id)
        self._states.start(submission.id)
        try:
            result = await self._grade(user, submission, focus_profile_id)
            self._service.save_result(result)
            self._states.complete(submission.id)
        except RubricaError as ex:
            logger.warning("grading failed for submission %s: %s", submission.id, ex)
            self._states.fail(submission.id)
            raise
        except BaseException:
            logger.exception("grading crashed for submission %s", submission.id)
            self._states.fail(submission.id)
            raise
        logger.info(
            "graded submission %s: overall=%.2f", submission.id, result.overall_score
        )
        return GradingOutcome(
            submission_id=submission.id, overall_score=result.overall_score, result_id=result.id
        )

    async def _grade(
        self, user: UserScopedRepository, submission: Submission, focus_profile_id: str
    ) -> Result:
        s = self._settings
        profile = user.get_focus_profile(focus_profile_id)
        rubric = user.get_rubric(profile.rubric_id)
        selected = select_criteria(rubric.criteria, profile.selected_criteria)
        dropped = set(profile.selected_criteria) - {c.id for c in selected}
        if dropped:
            logger.info(
                "focus profile %s references %d criteria missing from rubric %s",
                profile.id,
                len(dropped),
                rubric.id,
            )

        data = await self._fetcher.fetch(
            SUBMISSIONS_BUCKET, submission.file_path, max_bytes=s.submission_max_file_bytes
        )
        text = await with_timeout(
            self._extractor.extract(
                submission.file_path, data, min_chars=s.submission_min_text_chars
            ),
            s.model_timeout,
            "submission text extraction",
        )
        if len(text) > s.submission_max_text_chars:
            logger.info(
                "submission %s text is %d chars; truncating to %d",
                submission.id,
                len(text),
                s.submission_max_text_chars,
            )
        text = truncate_text(text, s.submission_max_text_chars)

        raw = await with_timeout(
            self._ai.grade(rubric_name=rubric.name, criteria=selected, submission_text=text),
            s.model_timeout,
            "grading",
        )
        reply = validate_grading_reply(raw, selected)

        return Result(
            id=str(uuid.uuid4()),
            owner=submission.owner,
            submission_id=submission.id,
            overall_score=compute_overall_score(selected, reply.criteria_scores),
            criteria_scores=reply.criteria_scores,
            strengths=reply.strengths,
            improvements=reply.improvements,
            confidence=reply.confidence,
            flags=[],
        )
