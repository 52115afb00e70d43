"""
Pydantic schemas for request/response validation.
"""
from app.schemas.attempts import (
    AssignedTestResponse,
    AttemptResponse,
    AttemptSummaryResponse,
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

__all__ = [
    "AssignedTestResponse",
    "AttemptResponse",
    "AttemptSummaryResponse",
    "ResultResponse",
    "ResultSummaryResponse",
    "SaveAnswerRequest",
    "SaveAnswerResponse",
    "TestDetailsResponse",
    "PracticeAnswerRequest",
    "PracticeFeedbackResponse",
    "PracticeSessionResponse",
    "PracticeSummaryResponse",
    "StartPracticeRequest",
]
