"""
Standardized error messages and HTTP mapping for assessment errors.

The engines raise the typed errors from app.core.exceptions using the
messages defined here. The application exception handler converts them to
HTTP responses with assessment_error_status(), so user-facing text and status
codes stay in one place.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: 123)"

Usage:
    from app.core.error_responses import ErrorMessages, raise_unauthorized

    raise NotFound(ErrorMessages.attempt_not_found(attempt_id))

    # In a dependency:
    raise_unauthorized(ErrorMessages.STUDENT_ID_MISSING)
"""

from typing import NoReturn

from fastapi import HTTPException, status

from app.core.exceptions import (
    AlreadyAttempted,
    AlreadySubmitted,
    AssessmentError,
    Ended,
    InvalidAnswer,
    InvalidOrCompletedAttempt,
    MaxAttemptsReached,
    NotActive,
    NotAssigned,
    NotFound,
    NotStarted,
    NotYetSubmitted,
    PracticeSessionCompleted,
)


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Caller Identity Errors (401)
    # ==========================================================================
    STUDENT_ID_MISSING = "Student identity is missing from the request."
    STUDENT_ID_INVALID = "Student identity must be a positive integer."

    # ==========================================================================
    # Server Errors (500)
    # ==========================================================================
    INTERNAL_ERROR = "An unexpected error occurred. Please try again later."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def attempt_not_found(attempt_id: int) -> str:
        """Message when an attempt does not exist or belongs to someone else."""
        return f"Attempt not found (ID: {attempt_id})."

    @staticmethod
    def practice_session_not_found(session_id: int) -> str:
        """Message when a practice session does not exist or is not the caller's."""
        return f"Practice session not found (ID: {session_id})."

    @staticmethod
    def question_not_found(question_id: int) -> str:
        """Message when a specific question is not found."""
        return f"Question {question_id} not found."

    @staticmethod
    def question_not_in_test(question_id: int, test_id: int) -> str:
        """Message when an answer targets a question outside the attempt's test."""
        return f"Question {question_id} is not part of test {test_id}."

    @staticmethod
    def attempts_exhausted(max_attempts: int) -> str:
        """Message when the attempt ceiling is reached."""
        return f"Maximum attempts reached ({max_attempts} allowed)."

    @staticmethod
    def attempt_already_submitted(attempt_id: int) -> str:
        """Message when submit is repeated on the same attempt."""
        return f"This attempt has already been submitted (ID: {attempt_id})."


# Status code per error kind. Subclasses not listed fall back to 400.
_ASSESSMENT_ERROR_STATUS: dict[type[AssessmentError], int] = {
    NotAssigned: status.HTTP_403_FORBIDDEN,
    NotActive: status.HTTP_400_BAD_REQUEST,
    NotStarted: status.HTTP_400_BAD_REQUEST,
    Ended: status.HTTP_400_BAD_REQUEST,
    AlreadyAttempted: status.HTTP_400_BAD_REQUEST,
    MaxAttemptsReached: status.HTTP_400_BAD_REQUEST,
    InvalidOrCompletedAttempt: status.HTTP_400_BAD_REQUEST,
    InvalidAnswer: status.HTTP_400_BAD_REQUEST,
    AlreadySubmitted: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    NotYetSubmitted: status.HTTP_400_BAD_REQUEST,
    PracticeSessionCompleted: status.HTTP_409_CONFLICT,
}


def assessment_error_status(error: AssessmentError) -> int:
    """Return the HTTP status code for an assessment error."""
    for error_type in type(error).__mro__:
        if error_type in _ASSESSMENT_ERROR_STATUS:
            return _ASSESSMENT_ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_unauthorized(detail: str) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Use when the caller identity is missing or malformed.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 401 Unauthorized
    """
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )

