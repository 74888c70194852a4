"""Fire-and-forget grading dispatch, retries and deletion.

Uploads hand each submission to :meth:`SubmissionService.submit` and move on;
nothing is sent back to the caller. The stored status is what pollers read
to learn how an attempt ended.
"""

from __future__ import annotations

import asyncio

from rubrica.errors import RubricaError
from rubrica.io.storage import SUBMISSIONS_BUCKET, BlobStore
from rubrica.logging import get_logger
from rubrica.pipeline.grading import GradingOutcome, GradingPipeline
from rubrica.state import SubmissionStateMachine
from rubrica.store.repository import ServiceRepository, UserScopedRepository

logger = get_logger("submissions")


class SubmissionService:
    def __init__(
        self,
        *,
        pipeline: GradingPipeline,
        service: ServiceRepository,
        blobs: BlobStore,
    ) -> None:
        self._pipeline = pipeline
        self._service = service
        self._blobs = blobs
        self._states = SubmissionStateMachine(service)
        self._tasks: set[asyncio.Task[GradingOutcome]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(
        self, *, user: UserScopedRepository, submission_id: str, focus_profile_id: str
    ) -> asyncio.Task[GradingOutcome]:
        """Start grading in the background and return immediately."""
        task = asyncio.create_task(
            self._pipeline.run(
                user=user, submission_id=submission_id, focus_profile_id=focus_profile_id
            ),
            name=f"grade-{submission_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[GradingOutcome]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("grading task %s was cancelled", task.get_name())
            return
        ex = task.exception()
        if isinstance(ex, RubricaError):
            logger.info("grading task %s ended with %s", task.get_name(), type(ex).__name__)
        elif ex is not None:
            logger.error("grading task %s crashed", task.get_name(), exc_info=ex)

    async def retry(
        self, *, user: UserScopedRepository, submission_id: str, focus_profile_id: str
    ) -> asyncio.Task[GradingOutcome]:
        """Reset to pending, drop the stale result and dispatch a new attempt."""
        submission = user.get_submission(submission_id)
        self._states.reset(submission.id)
        removed = self._service.delete_result(submission.id)
        logger.info("retrying submission %s (removed %d stale results)", submission.id, removed)
        return self.submit(user=user, submission_id=submission.id, focus_profile_id=focus_profile_id)

    async def delete(self, *, user: UserScopedRepository, submission_id: str) -> None:
        """Remove the submission's file, then its row and result."""
        submission = user.get_submission(submission_id)
        await self._blobs.remove(SUBMISSIONS_BUCKET, submission.file_path)
        self._service.delete_submission(submission.id)
        logger.info("deleted submission %s", submission.id)

    async def drain(self) -> None:
        """Wait for every dispatched attempt to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
