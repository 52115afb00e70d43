"""
Student-facing test, attempt and practice endpoints.

The handlers are thin: they resolve the caller, build an engine over the
request's Session and return its views. Typed assessment errors propagate to
the application's exception handler, which maps them to HTTP status codes.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.attempt_engine import TestAttemptEngine
from app.core.auth import get_current_student_id
from app.core.practice_engine import PracticeSessionEngine
from app.models import get_db
from app.models.models import TestType
from app.schemas.attempts import (
    AssignedTestResponse,
    AttemptResponse,
    ResultResponse,
    ResultSummaryResponse,
    SaveAnswerRequest,
    SaveAnswerResponse,
    TestDetailsResponse,
)
from app.schemas.practice import (
    PracticeAnswerRequest,
    PracticeFeedbackResponse,
    PracticeSessionResponse,
    PracticeSummaryResponse,
    StartPracticeRequest,
)

router = APIRouter()


def get_attempt_engine(db: Session = Depends(get_db)) -> TestAttemptEngine:
    """Dependency building the attempt engine for this request."""
    return TestAttemptEngine(db)


def get_practice_engine(db: Session = Depends(get_db)) -> PracticeSessionEngine:
    """Dependency building the practice engine for this request."""
    return PracticeSessionEngine(db)


# =============================================================================
# Tests
# =============================================================================


@router.get("/tests", response_model=List[AssignedTestResponse])
def list_my_tests(
    status: Optional[Literal["upcoming", "active", "completed"]] = Query(
        default=None, description="Filter by schedule state"
    ),
    type: Optional[TestType] = Query(default=None, description="Filter by test type"),
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """
    List the tests assigned to the caller, newest scheduled first.

    Each entry carries the attempt count, the latest attempt and whether a
    start (or resume) is allowed right now.
    """
    return engine.list_assigned_tests(
        student_id, status_filter=status, type_filter=type
    )


@router.get("/tests/{test_id}", response_model=TestDetailsResponse)
def get_test_details(
    test_id: int,
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """
    Get an assigned test with the caller's attempt history.

    Raises:
        HTTPException: 403 if the test is not assigned to the caller
    """
    return engine.get_test_details(student_id, test_id)


@router.post("/tests/{test_id}/start", response_model=AttemptResponse)
def start_test(
    test_id: int,
    request: Request,
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """
    Start an attempt, or resume the caller's in-progress attempt.

    Calling this again while an attempt is in progress returns the same
    attempt with the same question order and any saved answers.

    Raises:
        HTTPException: 403 if not assigned; 400 if the test is not active,
            outside its window, or the attempt allowance is used up
    """
    return engine.start_attempt(
        student_id,
        test_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


# =============================================================================
# Attempts
# =============================================================================


@router.get("/attempts/{attempt_id}", response_model=AttemptResponse)
def get_attempt(
    attempt_id: int,
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """Resume view of an in-progress attempt."""
    return engine.get_attempt(student_id, attempt_id)


@router.post("/attempts/{attempt_id}/answer", response_model=SaveAnswerResponse)
def save_answer(
    attempt_id: int,
    payload: SaveAnswerRequest,
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """
    Save or clear the answer to one question. Safe to repeat.

    Raises:
        HTTPException: 400 if the attempt is not the caller's in-progress
            attempt; 404 if the question is not part of the test
    """
    return engine.save_answer(
        student_id,
        attempt_id,
        payload.question_id,
        payload.selected_answer,
        payload.time_spent_seconds,
    )


@router.post("/attempts/{attempt_id}/submit", response_model=ResultSummaryResponse)
def submit_attempt(
    attempt_id: int,
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """
    Grade and close an attempt.

    Raises:
        HTTPException: 404 if unknown; 409 if already submitted
    """
    return engine.submit_attempt(student_id, attempt_id)


@router.get("/attempts/{attempt_id}/results", response_model=ResultResponse)
def get_attempt_results(
    attempt_id: int,
    student_id: int = Depends(get_current_student_id),
    engine: TestAttemptEngine = Depends(get_attempt_engine),
):
    """
    Results of a submitted attempt, with answers and explanations when the
    test allows them.
    """
    return engine.get_attempt_results(student_id, attempt_id)


# =============================================================================
# Practice
# =============================================================================


@router.post("/practice/start", response_model=PracticeSessionResponse)
def start_practice(
    payload: StartPracticeRequest,
    student_id: int = Depends(get_current_student_id),
    engine: PracticeSessionEngine = Depends(get_practice_engine),
):
    """Open a practice session over approved questions."""
    return engine.start_practice(
        student_id,
        subject=payload.subject,
        topic=payload.topic,
        count=payload.count,
    )


@router.post(
    "/practice/{session_id}/answer", response_model=PracticeFeedbackResponse
)
def answer_practice_question(
    session_id: int,
    payload: PracticeAnswerRequest,
    student_id: int = Depends(get_current_student_id),
    engine: PracticeSessionEngine = Depends(get_practice_engine),
):
    """Grade one practice answer and return immediate feedback."""
    return engine.submit_practice_answer(
        student_id,
        session_id,
        payload.question_id,
        payload.selected_answer,
        payload.time_spent_seconds,
    )


@router.post(
    "/practice/{session_id}/complete", response_model=PracticeSummaryResponse
)
def complete_practice(
    session_id: int,
    student_id: int = Depends(get_current_student_id),
    engine: PracticeSessionEngine = Depends(get_practice_engine),
):
    """Close a practice session and return its summary."""
    return engine.complete_practice_session(student_id, session_id)
