"""
Typed errors raised by the assessment engines.

Every error here is an expected, caller-recoverable condition. The engines
never retry; they raise and let the API layer decide how to present the
failure (see app.core.error_responses for the HTTP mapping).

Usage:
    from app.core.exceptions import AssessmentError, NotAssigned

    try:
        engine.start_attempt(student_id, test_id)
    except NotAssigned:
        ...
    except AssessmentError as e:
        logger.info(f"Start refused: {e.code}")
"""
from typing import Optional


class AssessmentError(Exception):
    """Base class for attempt, scoring and practice errors.

    Attributes:
        code: Stable machine-readable identifier for the error kind
        message: Human-readable description
    """

    code = "assessment_error"
    default_message = "The assessment operation could not be completed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAssigned(AssessmentError):
    """No assignment links the student to the test."""

    code = "not_assigned"
    default_message = "This test is not assigned to you."


class NotActive(AssessmentError):
    """The test is not in the ACTIVE state."""

    code = "not_active"
    default_message = "This test is not currently active."


class NotStarted(AssessmentError):
    """The scheduling window has not opened yet."""

    code = "not_started"
    default_message = "This test has not started yet."


class Ended(AssessmentError):
    """The scheduling window has closed."""

    code = "ended"
    default_message = "This test has ended."


class AlreadyAttempted(AssessmentError):
    """Multiple attempts are disallowed and one already exists."""

    code = "already_attempted"
    default_message = "You have already attempted this test."


class MaxAttemptsReached(AssessmentError):
    """The attempt count ceiling has been hit."""

    code = "max_attempts_reached"
    default_message = "Maximum attempts reached."


class InvalidOrCompletedAttempt(AssessmentError):
    """The attempt is not owned by the caller or is no longer in progress."""

    code = "invalid_or_completed_attempt"
    default_message = "Invalid or completed attempt."


class AlreadySubmitted(AssessmentError):
    """Submit was called on an attempt that is no longer in progress."""

    code = "already_submitted"
    default_message = "This attempt has already been submitted."


class NotFound(AssessmentError):
    """An attempt, practice session or question id does not exist."""

    code = "not_found"
    default_message = "Resource not found."


class NotYetSubmitted(AssessmentError):
    """Results were requested before the attempt was submitted."""

    code = "not_yet_submitted"
    default_message = "This attempt has not been submitted yet."


class PracticeSessionCompleted(AssessmentError):
    """The practice session has already been completed."""

    code = "practice_session_completed"
    default_message = "This practice session has already been completed."


class InvalidAnswer(AssessmentError):
    """The selected answer is not one of the option letters."""

    code = "invalid_answer"
    default_message = "Answer must be one of A, B, C, D or E."
