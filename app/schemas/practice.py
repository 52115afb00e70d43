"""
Pydantic schemas for practice session endpoints.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime

from app.models.models import DifficultyLevel
from app.schemas.attempts import AnswerOption, _normalize_answer


class StartPracticeRequest(BaseModel):
    """Schema for opening a practice session."""

    subject: Optional[str] = Field(None, max_length=100, description="Subject filter")
    topic: Optional[str] = Field(None, max_length=200, description="Topic filter")
    count: Optional[int] = Field(
        None,
        description=(
            "Number of questions; missing or non-positive values mean 10, "
            "larger values are capped at 50"
        ),
    )

    @field_validator("subject", "topic")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
        return v or None


class PracticeQuestionResponse(BaseModel):
    question_id: int
    question_text: str
    question_image: Optional[str] = None
    options: Dict[str, Optional[str]]
    subject: Optional[str] = None
    topic: Optional[str] = None
    difficulty_level: Optional[DifficultyLevel] = None

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class PracticeSessionResponse(BaseModel):
    """Schema for a newly opened practice session."""

    session_id: int
    subject: Optional[str] = None
    topic: Optional[str] = None
    total_questions: int = Field(
        ..., ge=0, description="May be fewer than requested when the bank runs short"
    )
    started_at: datetime
    questions: List[PracticeQuestionResponse]

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class PracticeAnswerRequest(BaseModel):
    """Schema for answering one practice question."""

    question_id: int = Field(..., ge=1)
    selected_answer: AnswerOption = Field(..., description="Option letter")
    time_spent_seconds: int = Field(0, ge=0)

    @field_validator("selected_answer", mode="before")
    @classmethod
    def normalize_answer(cls, v):
        return _normalize_answer(v)


class PracticeFeedbackResponse(BaseModel):
    """Schema for the immediate feedback on a practice answer."""

    is_correct: bool
    correct_answer: str
    explanation: Optional[str] = None
    explanation_image: Optional[str] = None

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class PracticeSummaryResponse(BaseModel):
    """Schema for a completed practice session."""

    session_id: int
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    skipped_questions: int
    accuracy: int = Field(
        ..., ge=0, le=100, description="Correct share of answered questions, in percent"
    )
    time_spent_seconds: int = Field(
        ..., description="Sum of per-answer time reported by the client"
    )
    started_at: datetime
    completed_at: datetime
    wall_clock_seconds: int = Field(
        ..., description="Seconds between session start and completion"
    )

    class Config:
        """Pydantic configuration."""

        from_attributes = True
