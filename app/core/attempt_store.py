"""
Persistence for attempts, responses and the assignment data that gates them.

The store only reads, adds and flushes. Committing and rolling back belong to
the engine that owns the unit of work, so a failed step never leaves half a
transaction behind.

Concurrency
===========
- create_attempt() flushes immediately so a second IN_PROGRESS attempt for the
  same (test, student) fails on the partial unique index
  ix_test_attempts_active with IntegrityError.
- insert_response() flushes immediately so two first-saves of the same
  (attempt, question) pair collide on uq_response_attempt_question.
- mark_submitted() is a status-guarded UPDATE; its row count tells the caller
  whether this request won the IN_PROGRESS -> SUBMITTED transition. It runs
  before grading, so the grader reads responses while holding the write lock
  and no save can slip in between the read and the flip.
- lock_owned_attempt() takes a row lock (SELECT ... FOR UPDATE) on databases
  that support it. Saves and submits both take it; is_in_progress() re-reads
  the committed status after a save has flushed.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from app.core.scoring import ScoreResult
from app.models import (
    AttemptStatus,
    Test,
    TestAssignment,
    TestAttempt,
    TestResponse,
)

logger = logging.getLogger(__name__)


class AttemptStore:
    """Query and write helpers over a caller-owned Session."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def get_assignment(self, student_id: int, test_id: int) -> Optional[TestAssignment]:
        """Return the assignment linking the student to the test, with its test."""
        stmt = (
            select(TestAssignment)
            .options(joinedload(TestAssignment.test))
            .where(
                TestAssignment.test_id == test_id,
                TestAssignment.student_id == student_id,
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_assignments(
        self,
        student_id: int,
        test_status=None,
        test_type=None,
    ) -> list[TestAssignment]:
        """Assignments of a student, newest scheduled start first."""
        stmt = (
            select(TestAssignment)
            .join(Test, TestAssignment.test_id == Test.id)
            .options(joinedload(TestAssignment.test))
            .where(TestAssignment.student_id == student_id)
        )
        if test_status is not None:
            stmt = stmt.where(Test.status == test_status)
        if test_type is not None:
            stmt = stmt.where(Test.type == test_type)
        stmt = stmt.order_by(Test.scheduled_start.desc().nulls_last(), Test.id.desc())
        return list(self.db.execute(stmt).unique().scalars().all())

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def get_attempt(self, attempt_id: int) -> Optional[TestAttempt]:
        return self.db.get(TestAttempt, attempt_id)

    def get_owned_attempt(
        self, student_id: int, attempt_id: int
    ) -> Optional[TestAttempt]:
        """Return the attempt only if it belongs to the student."""
        attempt = self.get_attempt(attempt_id)
        if attempt is None or attempt.student_id != student_id:
            return None
        return attempt

    def lock_owned_attempt(
        self, student_id: int, attempt_id: int
    ) -> Optional[TestAttempt]:
        """
        Load the student's attempt fresh from the database and lock its row
        until the transaction ends. SQLite ignores the lock.
        """
        stmt = (
            select(TestAttempt)
            .where(
                TestAttempt.id == attempt_id,
                TestAttempt.student_id == student_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def is_in_progress(self, attempt_id: int) -> bool:
        """Read the attempt's status from the database, bypassing the session."""
        status = self.db.scalar(
            select(TestAttempt.status).where(TestAttempt.id == attempt_id)
        )
        return status == AttemptStatus.IN_PROGRESS

    def find_in_progress(self, test_id: int, student_id: int) -> Optional[TestAttempt]:
        stmt = select(TestAttempt).where(
            TestAttempt.test_id == test_id,
            TestAttempt.student_id == student_id,
            TestAttempt.status == AttemptStatus.IN_PROGRESS,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def count_attempts(self, test_id: int, student_id: int) -> int:
        stmt = select(func.count(TestAttempt.id)).where(
            TestAttempt.test_id == test_id,
            TestAttempt.student_id == student_id,
        )
        return self.db.execute(stmt).scalar_one()

    def list_attempts(self, test_id: int, student_id: int) -> list[TestAttempt]:
        """All attempts of a student on a test, newest attempt number first."""
        stmt = (
            select(TestAttempt)
            .where(
                TestAttempt.test_id == test_id,
                TestAttempt.student_id == student_id,
            )
            .order_by(TestAttempt.attempt_number.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_attempt(
        self,
        test_id: int,
        student_id: int,
        attempt_number: int,
        started_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> TestAttempt:
        """
        Insert an IN_PROGRESS attempt and flush.

        Raises:
            IntegrityError: When another IN_PROGRESS attempt exists for the
                pair, or the attempt number is already taken.
        """
        attempt = TestAttempt(
            test_id=test_id,
            student_id=student_id,
            attempt_number=attempt_number,
            status=AttemptStatus.IN_PROGRESS,
            started_at=started_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(attempt)
        self.db.flush()
        return attempt

    def mark_submitted(self, attempt_id: int, submitted_at: datetime) -> int:
        """
        Flip an IN_PROGRESS attempt to SUBMITTED.

        Returns:
            Number of rows updated: 1 when this call made the transition,
            0 when the attempt was no longer IN_PROGRESS.
        """
        stmt = (
            update(TestAttempt)
            .where(
                TestAttempt.id == attempt_id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS,
            )
            .values(status=AttemptStatus.SUBMITTED, submitted_at=submitted_at)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def record_result(
        self, attempt_id: int, result: ScoreResult, time_spent_seconds: int
    ) -> None:
        """Store the grading aggregates on a submitted attempt."""
        stmt = (
            update(TestAttempt)
            .where(TestAttempt.id == attempt_id)
            .values(
                total_score=result.total_score,
                total_correct=result.total_correct,
                total_incorrect=result.total_incorrect,
                total_skipped=result.total_skipped,
                percentage_score=result.percentage_score,
                is_passed=result.is_passed,
                time_spent_seconds=time_spent_seconds,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def get_responses(self, attempt_id: int) -> list[TestResponse]:
        stmt = (
            select(TestResponse)
            .where(TestResponse.attempt_id == attempt_id)
            .order_by(TestResponse.question_order)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_response(self, attempt_id: int, question_id: int) -> Optional[TestResponse]:
        stmt = select(TestResponse).where(
            TestResponse.attempt_id == attempt_id,
            TestResponse.question_id == question_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def insert_response(
        self, attempt_id: int, question_id: int, question_order: int
    ) -> TestResponse:
        """
        Insert an empty response row and flush.

        Raises:
            IntegrityError: When a row for (attempt_id, question_id) exists.
        """
        response = TestResponse(
            attempt_id=attempt_id,
            question_id=question_id,
            question_order=question_order,
            time_spent_seconds=0,
        )
        self.db.add(response)
        self.db.flush()
        return response
