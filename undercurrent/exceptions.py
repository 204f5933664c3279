"""Exception hierarchy for Undercurrent."""

from typing import Optional


class UndercurrentError(Exception):
    """Base exception for the interview engine."""

    pass


# ── Input validation ────────────────────────────────────────────

class ValidationError(UndercurrentError):
    """Raised when caller input is rejected before any state change."""

    pass


class InvalidAnswerError(ValidationError):
    """Raised when an answer is empty after trimming."""

    def __init__(self, message: str = "Answer text must not be empty"):
        super().__init__(message)


class InvalidRatingError(ValidationError):
    """Raised when an Odyssey rating is not an integer from 1 to 5."""

    def __init__(self, dimension: str, value: object):
        self.dimension = dimension
        self.value = value
        super().__init__(f"Rating for '{dimension}' must be an integer from 1 to 5, got {value!r}")


# ── State machine violations ────────────────────────────────────

class FlowStateError(UndercurrentError):
    """Raised when an operation is not allowed in the current state."""

    pass


class SubmissionInProgressError(FlowStateError):
    """Raised when a submission or advance overlaps an in-flight submission."""

    def __init__(self, question_id: Optional[int] = None):
        self.question_id = question_id
        if question_id is None:
            message = "A submission is already in progress"
        else:
            message = f"A submission for question {question_id} is already in progress"
        super().__init__(message)


class IncompleteRatingError(FlowStateError):
    """Raised when a path is finished before all four dimensions are rated."""

    def __init__(self, path_id: str, missing: list):
        self.path_id = path_id
        self.missing = list(missing)
        super().__init__(f"Path '{path_id}' is missing ratings for: {', '.join(self.missing)}")


class UserBusyError(FlowStateError):
    """Raised when another request for the same user is still running."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Another request for user '{user_id}' is in progress")


class VoiceBusyError(FlowStateError):
    """Raised when the voice controller cannot accept a request in its current state."""

    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} while voice controller is {state}")


# ── Collaborators ───────────────────────────────────────────────

class CollaboratorError(UndercurrentError):
    """Raised when an external service (LLM, TTS, STT, email) fails."""

    pass


class LLMUnavailableError(CollaboratorError):
    """Raised when no LLM provider is configured or a call fails."""

    pass


class CoachingUnavailableError(CollaboratorError):
    """Raised when a coaching response could not be produced in time."""

    pass


class SynthesisUnavailableError(CollaboratorError):
    """Raised when a synthesis or canvas generation fails."""

    pass


class TranscriptionError(CollaboratorError):
    """Raised when speech-to-text fails; callers fall back to typed input."""

    pass


# ── Persistence ─────────────────────────────────────────────────

class StoreError(UndercurrentError):
    """Raised when the session store cannot read or write."""

    pass


class SessionUnavailableError(StoreError):
    """Raised when a session cannot be created or loaded. Blocks the interview."""

    def __init__(self, user_id: str, reason: str = ""):
        self.user_id = user_id
        detail = f": {reason}" if reason else ""
        super().__init__(f"Session unavailable for user '{user_id}'{detail}")
