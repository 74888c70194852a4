# src/rubrica/ai/base.py
import base64
from typing import Any

from pydantic_ai import BinaryContent

from rubrica.ai.pydantic_ai import get_agent, get_model, run_agent
from rubrica.ai.protocol import AIBackendProtocol
from rubrica.models.criterion import Criterion, ExtractedCriteria
from rubrica.models.grading import GradingReply
from rubrica.settings import RubricaSettings, get_settings
from rubrica.utils import criteria_to_markdown, total_weight

EXTRACTION_SYSTEM_PROMPT = """
You analyse educational rubrics. Extract every grading criterion from the rubric
the user provides and return them through the structured output tool.

For each criterion give:
- id: a short stable identifier, unique within the rubric (e.g. "c1", "thesis")
- name: the criterion name as written in the rubric
- description: what the criterion measures
- weight: the maximum points for the criterion (0-100)
- category: a broad grouping such as Content, Style or Mechanics

Return at most 50 criteria. Do not invent criteria the rubric does not contain.
""".strip()

GRADING_SYSTEM_PROMPT = """
You are an experienced teacher giving detailed, constructive feedback on student work.

For EACH criterion listed by the user:
- assign a score from 0 up to the criterion's maximum points
- write a rationale that explains the score by pointing at specific parts of the submission
- quote 2-3 passages from the submission, verbatim, as evidence

Then list 2-3 concrete strengths and 2-3 actionable improvements for the whole submission,
and state your confidence in the grading (low, medium or high).

Scoring bands (share of the criterion's maximum):
- 90-100%: exceeds expectations
- 70-89%: meets expectations with minor issues
- 50-69%: partially meets expectations
- 25-49%: below expectations
- 0-24%: does not meet expectations

Grade only the listed criteria and use each criterion's id as criterion_id.
""".strip()

TRANSCRIPTION_PROMPT = (
    "Extract ALL text content from this document. Return only the extracted text, "
    "preserving the original structure as far as possible. Do not summarize or "
    "interpret; transcribe the complete text verbatim."
)


class PydanticAIBackend(AIBackendProtocol):
    """Default backend: schema-constrained pydantic-ai agents for each call."""

    def __init__(
        self,
        *,
        extraction_model: Any | None = None,
        grading_model: Any | None = None,
        vision_model: Any | None = None,
        settings: RubricaSettings | None = None,
    ) -> None:
        self._settings = settings
        self._extraction_model = extraction_model
        self._grading_model = grading_model
        self._vision_model = vision_model

    @property
    def settings(self) -> RubricaSettings:
        return self._settings or get_settings()

    def _agent(self, explicit: Any | None, name: str | None, **kwargs: Any) -> Any:
        settings = self.settings
        model = explicit if explicit is not None else get_model(model_name=name, settings=settings)
        return get_agent(model, settings=settings, **kwargs)

    async def extract_criteria(self, *, rubric_text: str) -> ExtractedCriteria:
        agent = self._agent(
            self._extraction_model,
            self.settings.extraction_model_name,
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            output_type=ExtractedCriteria,
        )
        prompt = f"Extract all grading criteria from this rubric:\n\n{rubric_text}"
        result, _nodes = await run_agent(agent, prompt)
        return result

    async def grade(
        self,
        *,
        rubric_name: str,
        criteria: list[Criterion],
        submission_text: str,
    ) -> GradingReply:
        agent = self._agent(
            self._grading_model,
            self.settings.grading_model_name,
            system_prompt=GRADING_SYSTEM_PROMPT,
            output_type=GradingReply,
        )
        result, _nodes = await run_agent(
            agent, build_grading_prompt(rubric_name, criteria, submission_text)
        )
        return result

    async def transcribe(self, *, data_url: str) -> str:
        agent = self._agent(
            self._vision_model,
            self.settings.vision_model_name,
            output_type=str,
        )
        result, _nodes = await run_agent(
            agent, [TRANSCRIPTION_PROMPT, content_from_data_url(data_url)]
        )
        return result or ""


def build_grading_prompt(rubric_name: str, criteria: list[Criterion], submission_text: str) -> str:
    """User prompt for a grading call: rubric, selected criteria and the submission text."""
    return f"""
RUBRIC: {rubric_name}
TOTAL POSSIBLE POINTS: {total_weight(criteria):g}

GRADING CRITERIA (grade ONLY these):
{criteria_to_markdown(criteria)}

---
STUDENT SUBMISSION:
---
{submission_text}
---

Grade this submission against the criteria above.
""".strip()


def content_from_data_url(data_url: str) -> BinaryContent:
    """Turn ``data:<media type>;base64,<payload>`` into a binary message part."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("expected a base64 data URL")
    media_type = header[len("data:") : -len(";base64")]
    return BinaryContent(data=base64.b64decode(payload), media_type=media_type)
