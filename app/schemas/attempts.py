"""
Pydantic schemas for the student test and attempt endpoints.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Literal, Optional
from datetime import datetime

from app.models.models import AttemptStatus, TestStatus, TestType

AnswerOption = Literal["A", "B", "C", "D", "E"]


def _normalize_answer(value):
    """Accept lowercase letters and surrounding whitespace."""
    if isinstance(value, str):
        value = value.strip().upper()
        if value == "":
            return None
    return value


class AttemptSummaryResponse(BaseModel):
    """Schema for one attempt in a test's history."""

    attempt_id: int = Field(..., description="Attempt ID")
    attempt_number: int = Field(..., ge=1, description="1-based attempt number")
    status: AttemptStatus = Field(..., description="in_progress or submitted")
    started_at: datetime = Field(..., description="Attempt start timestamp")
    submitted_at: Optional[datetime] = Field(None, description="Submission timestamp")
    total_score: Optional[float] = Field(None, description="Score, once submitted")
    percentage_score: Optional[float] = Field(
        None, description="Score as a percentage of total marks, once submitted"
    )
    is_passed: Optional[bool] = Field(None, description="Pass flag, once submitted")

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AssignedTestResponse(BaseModel):
    """Schema for a test in the student's assigned-test list."""

    test_id: int
    title: str
    subject: Optional[str] = None
    type: TestType
    status: TestStatus
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    duration_minutes: int
    total_questions: int
    total_marks: float
    due_date: Optional[datetime] = None
    attempt_count: int = Field(..., ge=0, description="Attempts made so far")
    can_attempt: bool = Field(
        ..., description="Whether starting or resuming is allowed right now"
    )
    latest_attempt: Optional[AttemptSummaryResponse] = None

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class TestDetailsResponse(BaseModel):
    """Schema for test details shown before starting."""

    test_id: int
    title: str
    description: Optional[str] = None
    subject: Optional[str] = None
    type: TestType
    status: TestStatus
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    duration_minutes: int
    total_questions: int
    total_marks: float
    passing_marks: Optional[float] = None
    max_attempts: int
    allow_multiple_attempts: bool
    shuffle_questions: bool
    negative_marking: bool
    negative_mark_value: float
    show_answers_after: bool
    due_date: Optional[datetime] = None
    can_attempt: bool
    attempts: List[AttemptSummaryResponse] = Field(
        default_factory=list, description="Attempt history, newest first"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AttemptQuestionResponse(BaseModel):
    """Schema for a question inside an attempt. Never includes the answer key."""

    question_id: int
    question_order: int = Field(..., ge=1, description="1-based display position")
    question_text: str
    question_image: Optional[str] = None
    options: Dict[str, Optional[str]] = Field(
        ..., description="Option text keyed by letter (A-E); E may be null"
    )
    marks: float
    saved_answer: Optional[str] = Field(
        None, description="Answer saved so far, if any"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AttemptResponse(BaseModel):
    """Schema for a started or resumed attempt."""

    attempt_id: int
    test_id: int
    title: str
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    ends_at: datetime = Field(
        ..., description="started_at + duration; informational, not enforced"
    )
    duration_minutes: int
    total_marks: float
    negative_marking: bool
    negative_mark_value: float = Field(
        ..., description="Marks deducted per incorrect answer when negative marking is on"
    )
    remaining_seconds: int = Field(..., ge=0)
    total_questions: int
    answered_count: int
    resumed: bool = Field(
        ..., description="True when an in-progress attempt was returned"
    )
    questions: List[AttemptQuestionResponse]

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class SaveAnswerRequest(BaseModel):
    """Schema for saving (or clearing) the answer to one question."""

    question_id: int = Field(..., ge=1, description="Question being answered")
    selected_answer: Optional[AnswerOption] = Field(
        None, description="Option letter, or null to clear the answer"
    )
    time_spent_seconds: int = Field(
        0, ge=0, description="Seconds spent on the question"
    )

    @field_validator("selected_answer", mode="before")
    @classmethod
    def normalize_answer(cls, v):
        return _normalize_answer(v)


class SaveAnswerResponse(BaseModel):
    """Schema for the save-answer acknowledgement."""

    attempt_id: int
    question_id: int
    question_order: int
    selected_answer: Optional[str] = None
    answered_at: Optional[datetime] = None

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ResultSummaryResponse(BaseModel):
    """Schema for the grade returned on submit."""

    attempt_id: int
    test_id: int
    attempt_number: int
    status: AttemptStatus
    total_score: float = Field(..., description="May be negative under negative marking")
    total_marks: float
    percentage_score: float
    passing_marks: Optional[float] = None
    is_passed: bool
    total_correct: int
    total_incorrect: int
    total_skipped: int
    total_questions: int
    time_spent_seconds: int
    submitted_at: datetime

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class QuestionResultResponse(BaseModel):
    """Schema for one question of a reviewed attempt."""

    question_id: int
    question_order: int
    question_text: str
    question_image: Optional[str] = None
    options: Dict[str, Optional[str]]
    your_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool
    marks: float
    marks_awarded: float
    explanation: Optional[str] = None
    explanation_image: Optional[str] = None

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class ResultResponse(ResultSummaryResponse):
    """Schema for a submitted attempt's results."""

    show_answers: bool = Field(
        ..., description="Whether the per-question breakdown is included"
    )
    show_explanations: bool
    questions: List[QuestionResultResponse] = Field(default_factory=list)
