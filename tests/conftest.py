"""
Pytest configuration and shared fixtures for testing.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.core.attempt_engine import TestAttemptEngine
from app.core.practice_engine import PracticeSessionEngine
from app.models import (
    Base,
    get_db,
    Question,
    Test,
    TestQuestion,
    TestAssignment,
)
from app.models.models import QuestionStatus, TestStatus, TestType
from app.main import app


STUDENT_ID = 101
OTHER_STUDENT_ID = 202

# Answer key cycles through these letters in question order
ANSWER_CYCLE = ["A", "B", "C", "D"]


@asynccontextmanager
async def _test_lifespan(app):
    """No-op lifespan for tests; tables are managed by the db_session fixture."""
    yield


app.router.lifespan_context = _test_lifespan


# SQLite file beside this module, independent of the working directory.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class MutableClock:
    """Clock fixture value: callable like utc_now, but moved by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database dependency override.

    Each request gets its own session on the same test.db file where
    db_session creates data.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def student_headers():
    """Identity header for the default student."""
    return {"X-Student-Id": str(STUDENT_ID)}


@pytest.fixture
def clock():
    """Clock frozen at a fixed instant; call advance() to move it."""
    return MutableClock(datetime(2026, 3, 2, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def attempt_engine(db_session, clock):
    return TestAttemptEngine(db_session, clock=clock)


@pytest.fixture
def practice_engine(db_session, clock):
    return PracticeSessionEngine(db_session, clock=clock)


@pytest.fixture
def make_question(db_session):
    """
    Factory creating a question bank entry.
    """

    def _make(
        correct_answer: str = "A",
        subject: Optional[str] = "Mathematics",
        topic: Optional[str] = "Algebra",
        status: QuestionStatus = QuestionStatus.APPROVED,
        **overrides,
    ) -> Question:
        fields = dict(
            question_text="Solve for x: 2x + 3 = 7",
            option_a="1",
            option_b="2",
            option_c="3",
            option_d="4",
            correct_answer=correct_answer,
            explanation="Subtract 3 from both sides, then divide by 2.",
            subject=subject,
            topic=topic,
            status=status,
        )
        fields.update(overrides)
        question = Question(**fields)
        db_session.add(question)
        db_session.commit()
        db_session.refresh(question)
        return question

    return _make


@pytest.fixture
def make_test(db_session, make_question):
    """
    Factory creating an ACTIVE test with its questions.

    Question i carries correct answer ANSWER_CYCLE[i % 4] and 1 mark unless
    `marks` is given.
    """

    def _make(
        num_questions: int = 5,
        marks: Optional[list] = None,
        **overrides,
    ) -> Test:
        fields = dict(
            title="Algebra Unit Test",
            subject="Mathematics",
            type=TestType.UNIT_TEST,
            status=TestStatus.ACTIVE,
            duration_minutes=30,
            total_questions=num_questions,
            total_marks=float(sum(marks) if marks else num_questions),
            max_attempts=1,
            allow_multiple_attempts=False,
            shuffle_questions=False,
            negative_marking=False,
            negative_mark_value=0.0,
            show_answers_after=True,
            show_explanations=True,
        )
        fields.update(overrides)
        test = Test(**fields)
        db_session.add(test)
        db_session.flush()

        for index in range(num_questions):
            question = make_question(
                correct_answer=ANSWER_CYCLE[index % len(ANSWER_CYCLE)],
                question_text=f"Question {index + 1}",
            )
            db_session.add(
                TestQuestion(
                    test_id=test.id,
                    question_id=question.id,
                    question_order=index + 1,
                    marks=marks[index] if marks else None,
                )
            )
        db_session.commit()
        db_session.refresh(test)
        return test

    return _make


@pytest.fixture
def assign(db_session):
    """
    Factory assigning a test to a student.
    """

    def _assign(test: Test, student_id: int = STUDENT_ID, due_date=None):
        assignment = TestAssignment(
            test_id=test.id, student_id=student_id, due_date=due_date
        )
        db_session.add(assignment)
        db_session.commit()
        return assignment

    return _assign


@pytest.fixture
def assigned_test(make_test, assign):
    """A five-question ACTIVE test assigned to STUDENT_ID."""
    test = make_test()
    assign(test)
    return test


@pytest.fixture
def key_of():
    """Return a function mapping question id to correct answer for a test."""

    def _key(test: Test) -> dict:
        return {tq.question_id: tq.question.correct_answer for tq in test.questions}

    return _key


@pytest.fixture
def wrong():
    """Return a function giving an option letter other than the correct one."""

    def _wrong(correct: str) -> str:
        return "B" if correct == "A" else "A"

    return _wrong
