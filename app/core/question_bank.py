"""
Read-only access to the question bank and test definitions.

The engines never query Question/TestQuestion directly; they go through the
helpers here so the answer key is loaded in one place and never leaks into
student-facing views by accident.
"""
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from app.models import Question, QuestionStatus, TestQuestion

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_MARKS = 1.0


def get_question(db: Session, question_id: int) -> Optional[Question]:
    """Return a question by id, or None."""
    return db.get(Question, question_id)


def get_test_questions(db: Session, test_id: int) -> list[TestQuestion]:
    """
    Return the question slots of a test in definition order.

    Each TestQuestion has its Question eagerly loaded.
    """
    stmt = (
        select(TestQuestion)
        .options(joinedload(TestQuestion.question))
        .where(TestQuestion.test_id == test_id)
        .order_by(TestQuestion.question_order, TestQuestion.id)
    )
    return list(db.execute(stmt).unique().scalars().all())


def get_test_question(
    db: Session, test_id: int, question_id: int
) -> Optional[TestQuestion]:
    """Return the slot for a question within a test, or None if not part of it."""
    stmt = select(TestQuestion).where(
        TestQuestion.test_id == test_id,
        TestQuestion.question_id == question_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def answer_key_for(test_questions: list[TestQuestion]) -> dict[int, str]:
    """Map question id to its correct option letter."""
    return {tq.question_id: tq.question.correct_answer for tq in test_questions}


def marks_for(test_questions: list[TestQuestion]) -> dict[int, float]:
    """Map question id to the marks it carries (1 when unset)."""
    return {
        tq.question_id: (
            float(tq.marks) if tq.marks is not None else DEFAULT_QUESTION_MARKS
        )
        for tq in test_questions
    }


def select_practice_candidates(
    db: Session,
    limit: int,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
) -> list[Question]:
    """
    Fetch up to `limit` APPROVED questions matching the filters in random order.

    Args:
        db: Database session
        limit: Maximum number of candidates to return
        subject: Optional exact subject filter
        topic: Optional exact topic filter

    Returns:
        Candidate questions; fewer than `limit` when the bank runs short.
    """
    stmt = select(Question).where(Question.status == QuestionStatus.APPROVED)
    if subject:
        stmt = stmt.where(Question.subject == subject)
    if topic:
        stmt = stmt.where(Question.topic == topic)
    stmt = stmt.order_by(func.random()).limit(limit)

    candidates = list(db.execute(stmt).scalars().all())
    if len(candidates) < limit:
        logger.info(
            f"Practice pool short: requested {limit} candidates, "
            f"found {len(candidates)} (subject={subject}, topic={topic})"
        )
    return candidates
