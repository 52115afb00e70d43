"""
Database models for the assessment backend.

Tests, questions and assignments are authored by other parts of the
platform; this service reads them and owns attempts, responses and
practice sessions.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    Enum,
    Float,
    UniqueConstraint,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from .base import Base


class QuestionStatus(str, enum.Enum):
    """Review status of a question bank entry."""

    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class DifficultyLevel(str, enum.Enum):
    """Difficulty level enumeration."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class TestType(str, enum.Enum):
    """Kind of assessment."""

    PRACTICE_TEST = "practice_test"
    MOCK_EXAM = "mock_exam"
    UNIT_TEST = "unit_test"
    FINAL_EXAM = "final_exam"


class TestStatus(str, enum.Enum):
    """Publication status of a test definition."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"


class AttemptStatus(str, enum.Enum):
    """Lifecycle status of a test attempt."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


# Option letters a multiple-choice answer may take
ANSWER_OPTIONS = ("A", "B", "C", "D", "E")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Question(Base):
    """Multiple-choice question in the question bank."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    question_image = Column(String(500))
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=False)
    option_d = Column(Text, nullable=False)
    option_e = Column(Text)  # Fifth option is optional
    correct_answer = Column(String(1), nullable=False)  # One of ANSWER_OPTIONS
    explanation = Column(Text)
    explanation_image = Column(String(500))
    subject = Column(String(100), index=True)
    topic = Column(String(200), index=True)
    difficulty_level = Column(Enum(DifficultyLevel), nullable=True)
    status = Column(
        Enum(QuestionStatus),
        default=QuestionStatus.DRAFT,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "correct_answer IN ('A', 'B', 'C', 'D', 'E')",
            name="ck_questions_correct_answer_valid",
        ),
    )

    @property
    def options(self) -> dict:
        """Options keyed by letter; absent options map to None."""
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
            "E": self.option_e,
        }


class Test(Base):
    """Published assessment definition."""

    __tablename__ = "tests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    subject = Column(String(100))
    type = Column(Enum(TestType), default=TestType.UNIT_TEST, nullable=False)
    status = Column(
        Enum(TestStatus), default=TestStatus.DRAFT, nullable=False, index=True
    )
    scheduled_start = Column(DateTime(timezone=True))  # None = open from publication
    scheduled_end = Column(DateTime(timezone=True))  # None = never closes
    duration_minutes = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    total_marks = Column(Float, nullable=False)
    passing_marks = Column(Float, nullable=True)  # None = default percentage bar
    max_attempts = Column(Integer, default=1, nullable=False)
    allow_multiple_attempts = Column(Boolean, default=False, nullable=False)
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    negative_marking = Column(Boolean, default=False, nullable=False)
    negative_mark_value = Column(Float, default=0.0, nullable=False)
    show_answers_after = Column(Boolean, default=True, nullable=False)
    show_explanations = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    # Relationships
    questions = relationship(
        "TestQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestQuestion.question_order",
    )
    assignments = relationship(
        "TestAssignment", back_populates="test", cascade="all, delete-orphan"
    )
    attempts = relationship(
        "TestAttempt", back_populates="test", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("max_attempts >= 1", name="ck_tests_max_attempts_positive"),
        CheckConstraint(
            "negative_mark_value >= 0", name="ck_tests_negative_mark_value_non_negative"
        ),
    )


class TestQuestion(Base):
    """Question slot within a test definition, in authoring order."""

    __tablename__ = "test_questions"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    question_order = Column(Integer, nullable=False)
    marks = Column(Float, nullable=True)  # None = 1 mark

    test = relationship("Test", back_populates="questions")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("test_id", "question_id", name="uq_test_question"),
    )


class TestAssignment(Base):
    """Links a test to one student. Its existence authorizes attempts."""

    __tablename__ = "test_assignments"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    # Students live in the platform's user service; no local table
    student_id = Column(Integer, nullable=False, index=True)
    due_date = Column(DateTime(timezone=True))
    assigned_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    test = relationship("Test", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("test_id", "student_id", name="uq_test_assignment"),
    )


class TestAttempt(Base):
    """One timed pass by one student through one test."""

    __tablename__ = "test_attempts"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(
        Integer, ForeignKey("tests.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(Integer, nullable=False)
    attempt_number = Column(Integer, nullable=False)  # 1-based, never reused
    status = Column(
        Enum(AttemptStatus),
        default=AttemptStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    started_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    submitted_at = Column(DateTime(timezone=True))

    # Audit only
    ip_address = Column(String(45))
    user_agent = Column(String(500))

    # Aggregates, populated on submit
    total_score = Column(Float)
    total_correct = Column(Integer)
    total_incorrect = Column(Integer)
    total_skipped = Column(Integer)
    percentage_score = Column(Float)
    is_passed = Column(Boolean)
    time_spent_seconds = Column(Integer)

    # Relationships
    test = relationship("Test", back_populates="attempts")
    responses = relationship(
        "TestResponse", back_populates="attempt", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_test_attempts_test_student", "test_id", "student_id"),
        UniqueConstraint(
            "test_id", "student_id", "attempt_number", name="uq_test_attempt_number"
        ),
        # Only one in-progress attempt per (test, student). Enum columns store
        # member names, hence the uppercase literal.
        Index(
            "ix_test_attempts_active",
            "test_id",
            "student_id",
            unique=True,
            sqlite_where=text("status = 'IN_PROGRESS'"),
            postgresql_where=text("status = 'IN_PROGRESS'"),
        ),
    )


class TestResponse(Base):
    """A student's saved answer to one question of an attempt."""

    __tablename__ = "test_responses"

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        Integer,
        ForeignKey("test_attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    question_order = Column(Integer, nullable=False)  # 1-based position shown
    selected_answer = Column(String(1))  # None = skipped / cleared
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    answered_at = Column(DateTime(timezone=True))  # Set only when answered

    # Populated on submit
    is_correct = Column(Boolean)
    marks_awarded = Column(Float)

    attempt = relationship("TestAttempt", back_populates="responses")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_response_attempt_question"),
    )


class PracticeSession(Base):
    """Ungraded practice run with immediate feedback."""

    __tablename__ = "practice_sessions"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    subject = Column(String(100))
    topic = Column(String(200))
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    incorrect_answers = Column(Integer, default=0, nullable=False)
    skipped_questions = Column(Integer, default=0, nullable=False)
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    started_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    completed_at = Column(DateTime(timezone=True))

    responses = relationship(
        "PracticeResponse", back_populates="session", cascade="all, delete-orphan"
    )


class PracticeResponse(Base):
    """Graded answer within a practice session."""

    __tablename__ = "practice_responses"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("practice_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    selected_answer = Column(String(1), nullable=False)
    is_correct = Column(Boolean, nullable=False)
    time_spent_seconds = Column(Integer, default=0, nullable=False)
    answered_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    session = relationship("PracticeSession", back_populates="responses")
