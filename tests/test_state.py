import pytest

from rubrica.errors import InvalidTransitionError
from rubrica.models.records import SubmissionStatus as S
from rubrica.state import (
    RETRY_SOURCES,
    TERMINAL_STATES,
    SubmissionStateMachine,
    can_transition,
    sources_of,
)


class TestTransitionTable:
    def test_allowed(self) -> None:
        assert can_transition(S.pending, S.processing)
        assert can_transition(S.processing, S.graded)
        assert can_transition(S.processing, S.error)
        assert can_transition(S.graded, S.pending)
        assert can_transition(S.error, S.pending)

    def test_forbidden(self) -> None:
        assert not can_transition(S.pending, S.graded)
        assert not can_transition(S.graded, S.processing)
        assert not can_transition(S.error, S.graded)
        assert not can_transition(S.processing, S.pending)

    def test_sources(self) -> None:
        assert sources_of(S.pending) == {S.graded, S.error}
        assert sources_of(S.error) == {S.processing}
        assert TERMINAL_STATES == {S.graded, S.error}
        assert RETRY_SOURCES == set(S)


class TestSubmissionStateMachine:
    """State machine over the real store."""

    def test_happy_path(self, service, seeded) -> None:
        sid = seeded["submission"].id
        states = SubmissionStateMachine(service)

        states.start(sid)
        assert service.get_status(sid) is S.processing
        states.complete(sid)
        assert service.get_status(sid) is S.graded
        states.reset(sid)
        assert service.get_status(sid) is S.pending

    def test_start_twice_is_rejected(self, service, seeded) -> None:
        """Test that only one attempt can hold a submission in processing."""
        sid = seeded["submission"].id
        states = SubmissionStateMachine(service)
        states.start(sid)

        with pytest.raises(InvalidTransitionError, match="processing to processing"):
            states.start(sid)

    def test_complete_requires_processing(self, service, seeded) -> None:
        with pytest.raises(InvalidTransitionError):
            SubmissionStateMachine(service).complete(seeded["submission"].id)

    @pytest.mark.parametrize("stuck_in", [S.pending, S.processing, S.graded, S.error])
    def test_reset_from_any_state(self, service, seeded, stuck_in) -> None:
        """Test that an explicit reset recovers a submission from whatever status it holds."""
        sid = seeded["submission"].id
        service.transition_status(sid, set(S), stuck_in)

        SubmissionStateMachine(service).reset(sid)

        assert service.get_status(sid) is S.pending

    def test_reset_missing_submission(self, service) -> None:
        with pytest.raises(InvalidTransitionError, match="missing to pending"):
            SubmissionStateMachine(service).reset("no-such-id")

    def test_fail_never_raises(self, service, seeded, caplog) -> None:
        """Test that fail() logs instead of raising when the transition is not allowed."""
        sid = seeded["submission"].id
        states = SubmissionStateMachine(service)

        with caplog.at_level("ERROR", logger="rubrica"):
            states.fail(sid)

        assert service.get_status(sid) is S.pending
        assert "could not mark submission" in caplog.text

    def test_missing_submission(self, service) -> None:
        with pytest.raises(InvalidTransitionError, match="missing"):
            SubmissionStateMachine(service).start("no-such-id")
