"""Rubric ingestion: document → criteria → default focus profile.

Each step is a gate; nothing is written until the model reply has been
validated. Creating the default focus profile is the only step allowed to
fail without failing the request, since the criteria are already saved by
then.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import ValidationError

from rubrica.ai.protocol import AIBackendProtocol
from rubrica.errors import AIResponseInvalidError, RateLimitedError, RubricaError
from rubrica.io.extraction import TextExtractor, truncate_text
from rubrica.io.storage import RUBRICS_BUCKET, FileFetcher, ensure_owned_path
from rubrica.logging import get_logger
from rubrica.models.criterion import Criterion, ExtractedCriteria
from rubrica.ratelimit import RateLimiter
from rubrica.settings import RubricaSettings, get_settings
from rubrica.store.repository import ServiceRepository, UserScopedRepository
from rubrica.utils import with_timeout

logger = get_logger("pipeline.criteria")

ENDPOINT = "process-rubric"


@dataclass
class CriteriaExtractionOutcome:
    rubric_id: str
    criteria: list[Criterion]
    default_profile_id: str | None = None


def validate_extracted_criteria(raw: object) -> ExtractedCriteria:
    """Validate the model's raw reply; any shape problem is an invalid AI response."""
    if raw is None:
        raise AIResponseInvalidError("model returned no criteria payload")
    try:
        if isinstance(raw, ExtractedCriteria):
            return ExtractedCriteria.model_validate(raw.model_dump())
        return ExtractedCriteria.model_validate(raw)
    except ValidationError as ex:
        raise AIResponseInvalidError(f"criteria payload failed validation: {ex}") from ex


class CriteriaExtractionPipeline:
    def __init__(
        self,
        *,
        service: ServiceRepository,
        fetcher: FileFetcher,
        ai: AIBackendProtocol,
        rate_limiter: RateLimiter,
        settings: RubricaSettings | None = None,
    ) -> None:
        self._service = service
        self._fetcher = fetcher
        self._ai = ai
        self._rate_limiter = rate_limiter
        self._settings = settings or get_settings()
        self._extractor = TextExtractor(ai, vision_fallback=False)

    async def run(
        self, *, user: UserScopedRepository, rubric_id: str, file_path: str
    ) -> CriteriaExtractionOutcome:
        s = self._settings
        owner = user.owner

        if not self._rate_limiter.check(owner, ENDPOINT, s.rubric_rate_limit_per_minute):
            raise RateLimitedError(f"{owner} exceeded {ENDPOINT} rate limit")

        rubric = user.get_rubric(rubric_id)
        ensure_owned_path(owner, file_path)
        logger.info("extracting criteria for rubric %s from %s", rubric.id, file_path)

        data = await self._fetcher.fetch(RUBRICS_BUCKET, file_path, max_bytes=s.rubric_max_file_bytes)
        text = await with_timeout(
            self._extractor.extract(file_path, data, min_chars=s.rubric_min_text_chars),
            s.model_timeout,
            "rubric text extraction",
        )
        if len(text) > s.rubric_max_text_chars:
            logger.info("rubric text is %d chars; truncating to %d", len(text), s.rubric_max_text_chars)
        text = truncate_text(text, s.rubric_max_text_chars)

        raw = await with_timeout(
            self._ai.extract_criteria(rubric_text=text), s.model_timeout, "criteria extraction"
        )
        extracted = validate_extracted_criteria(raw)

        self._service.replace_criteria(rubric.id, extracted.criteria)
        logger.info("saved %d criteria for rubric %s", len(extracted.criteria), rubric.id)

        profile_id: str | None = None
        try:
            profile = self._service.replace_default_focus_profile(
                owner=owner, rubric_id=rubric.id, selected_criteria=extracted.ids()
            )
            profile_id = profile.id
        except RubricaError:
            logger.exception(
                "default focus profile for rubric %s not created; criteria were saved", rubric.id
            )

        return CriteriaExtractionOutcome(
            rubric_id=rubric.id, criteria=extracted.criteria, default_profile_id=profile_id
        )
