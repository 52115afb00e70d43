"""
Models package for the assessment backend.
"""
from .base import Base, engine, SessionLocal, get_db, init_db
from .models import (
    Question,
    Test,
    TestQuestion,
    TestAssignment,
    TestAttempt,
    TestResponse,
    PracticeSession,
    PracticeResponse,
    QuestionStatus,
    DifficultyLevel,
    TestType,
    TestStatus,
    AttemptStatus,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
    "Question",
    "Test",
    "TestQuestion",
    "TestAssignment",
    "TestAttempt",
    "TestResponse",
    "PracticeSession",
    "PracticeResponse",
    "QuestionStatus",
    "DifficultyLevel",
    "TestType",
    "TestStatus",
    "AttemptStatus",
]
