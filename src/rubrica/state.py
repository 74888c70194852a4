"""Submission status lifecycle.

    pending ──▶ processing ──▶ graded
       ▲             │
       │             └──────▶ error
       └──── retry ◀──── any state

Every transition is a compare-and-set against the stored status, so only one
grading attempt can hold a submission in ``processing`` at a time. A retry is
an explicit user action and resets from any state, including a ``processing``
left behind by a worker that died mid-attempt.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from rubrica.errors import InvalidTransitionError
from rubrica.logging import get_logger
from rubrica.models.records import SubmissionStatus

logger = get_logger("state")

TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.pending: frozenset({SubmissionStatus.processing}),
    SubmissionStatus.processing: frozenset({SubmissionStatus.graded, SubmissionStatus.error}),
    SubmissionStatus.graded: frozenset({SubmissionStatus.pending}),
    SubmissionStatus.error: frozenset({SubmissionStatus.pending}),
}

TERMINAL_STATES = frozenset({SubmissionStatus.graded, SubmissionStatus.error})

RETRY_SOURCES = frozenset(SubmissionStatus)


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    return target in TRANSITIONS[current]


def sources_of(target: SubmissionStatus) -> frozenset[SubmissionStatus]:
    """All states from which ``target`` is reachable in one step."""
    return frozenset(s for s, targets in TRANSITIONS.items() if target in targets)


class StatusStore(Protocol):
    def get_status(self, submission_id: str) -> SubmissionStatus | None: ...

    def transition_status(
        self,
        submission_id: str,
        sources: Iterable[SubmissionStatus],
        target: SubmissionStatus,
    ) -> bool: ...


class SubmissionStateMachine:
    """Applies status transitions through a store that supports compare-and-set."""

    def __init__(self, store: StatusStore) -> None:
        self._store = store

    def _move(
        self,
        submission_id: str,
        target: SubmissionStatus,
        sources: frozenset[SubmissionStatus] | None = None,
    ) -> None:
        if sources is None:
            sources = sources_of(target)
        if not self._store.transition_status(submission_id, sources, target):
            current = self._store.get_status(submission_id)
            raise InvalidTransitionError(
                f"submission {submission_id}: cannot move from "
                f"{current.value if current else 'missing'} to {target.value}"
            )
        logger.debug("submission %s -> %s", submission_id, target.value)

    def start(self, submission_id: str) -> None:
        """pending → processing; the first side effect of a grading attempt."""
        self._move(submission_id, SubmissionStatus.processing)

    def complete(self, submission_id: str) -> None:
        """processing → graded."""
        self._move(submission_id, SubmissionStatus.graded)

    def fail(self, submission_id: str) -> None:
        """processing → error, without ever raising.

        Called on the way out of a failed attempt; a failure here must not
        replace the error that is being reported.
        """
        try:
            self._move(submission_id, SubmissionStatus.error)
        except Exception:
            logger.exception("could not mark submission %s as error", submission_id)

    def reset(self, submission_id: str) -> None:
        """any state → pending, ahead of a retry."""
        self._move(submission_id, SubmissionStatus.pending, RETRY_SOURCES)
