"""AI backend protocol.

The pipelines talk to the model through this contract only. Replies are
returned as produced (a pydantic model or a plain mapping); the pipelines
validate them against their own schemas before anything is persisted, so a
backend never needs to be trusted.
"""

from typing import Any, Protocol

from rubrica.models.criterion import Criterion


class AIBackendProtocol(Protocol):
    async def extract_criteria(self, *, rubric_text: str) -> Any: ...

    async def grade(
        self,
        *,
        rubric_name: str,
        criteria: list[Criterion],
        submission_text: str,
    ) -> Any: ...

    async def transcribe(self, *, data_url: str) -> str: ...


__all__ = ["AIBackendProtocol"]
