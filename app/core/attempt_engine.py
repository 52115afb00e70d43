"""
Test attempt lifecycle: eligibility, start/resume, answer capture, submit
and results.

Every public method takes the caller's student id and runs one unit of work
on the injected Session, committing on success and rolling back on any
failure (see handle_db_error). Time is read only through the injected clock.

Start rules, first failure wins:
1. Assignment exists            -> else NotAssigned
2. Test is ACTIVE               -> else NotActive
3. Inside the scheduling window -> else NotStarted / Ended
4. IN_PROGRESS attempt exists   -> resume it unchanged
5. Multiple attempts disallowed and one exists -> AlreadyAttempted
6. Attempt ceiling reached      -> MaxAttemptsReached
7. Create attempt number count+1

There is no auto-expiry: ends_at and remaining_seconds are informational and
an attempt past its duration can still be saved and submitted.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import question_bank
from app.core.attempt_store import AttemptStore
from app.core.datetime_utils import (
    Clock,
    elapsed_seconds,
    ensure_timezone_aware,
    utc_now,
)
from app.core.db_error_handling import handle_db_error
from app.core.error_responses import ErrorMessages
from app.core.exceptions import (
    AlreadyAttempted,
    AlreadySubmitted,
    Ended,
    InvalidAnswer,
    InvalidOrCompletedAttempt,
    MaxAttemptsReached,
    NotActive,
    NotAssigned,
    NotFound,
    NotStarted,
    NotYetSubmitted,
)
from app.core.scoring import MarkingPolicy, score_attempt
from app.core.shuffling import attempt_seed, shuffled
from app.models import (
    AttemptStatus,
    Test,
    TestAttempt,
    TestQuestion,
    TestResponse,
    TestStatus,
    TestType,
)
from app.models.models import ANSWER_OPTIONS

logger = logging.getLogger(__name__)

# Student-facing list filters mapped to test statuses
STATUS_FILTERS = {
    "upcoming": TestStatus.SCHEDULED,
    "active": TestStatus.ACTIVE,
    "completed": TestStatus.COMPLETED,
}


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    return ensure_timezone_aware(dt) if dt is not None else None


# =============================================================================
# Views
# =============================================================================


@dataclass
class AttemptSummary:
    """Compact attempt record used in test listings and history."""

    attempt_id: int
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    submitted_at: Optional[datetime]
    total_score: Optional[float]
    percentage_score: Optional[float]
    is_passed: Optional[bool]


@dataclass
class AssignedTestSummary:
    test_id: int
    title: str
    subject: Optional[str]
    type: TestType
    status: TestStatus
    scheduled_start: Optional[datetime]
    scheduled_end: Optional[datetime]
    duration_minutes: int
    total_questions: int
    total_marks: float
    due_date: Optional[datetime]
    attempt_count: int
    can_attempt: bool
    latest_attempt: Optional[AttemptSummary]


@dataclass
class TestDetailsView:
    test_id: int
    title: str
    description: Optional[str]
    subject: Optional[str]
    type: TestType
    status: TestStatus
    scheduled_start: Optional[datetime]
    scheduled_end: Optional[datetime]
    duration_minutes: int
    total_questions: int
    total_marks: float
    passing_marks: Optional[float]
    max_attempts: int
    allow_multiple_attempts: bool
    shuffle_questions: bool
    negative_marking: bool
    negative_mark_value: float
    show_answers_after: bool
    due_date: Optional[datetime]
    can_attempt: bool
    attempts: list[AttemptSummary] = field(default_factory=list)


@dataclass
class AttemptQuestion:
    """A question as shown during an attempt. Never carries the answer key."""

    question_id: int
    question_order: int
    question_text: str
    question_image: Optional[str]
    options: dict
    marks: float
    saved_answer: Optional[str]


@dataclass
class AttemptView:
    attempt_id: int
    test_id: int
    title: str
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    ends_at: datetime
    duration_minutes: int
    total_marks: float
    negative_marking: bool
    negative_mark_value: float
    remaining_seconds: int
    total_questions: int
    answered_count: int
    resumed: bool
    questions: list[AttemptQuestion] = field(default_factory=list)


@dataclass
class SaveAnswerAck:
    attempt_id: int
    question_id: int
    question_order: int
    selected_answer: Optional[str]
    answered_at: Optional[datetime]


@dataclass
class ResultSummary:
    attempt_id: int
    test_id: int
    attempt_number: int
    status: AttemptStatus
    total_score: float
    total_marks: float
    percentage_score: float
    passing_marks: Optional[float]
    is_passed: bool
    total_correct: int
    total_incorrect: int
    total_skipped: int
    total_questions: int
    time_spent_seconds: int
    submitted_at: datetime


@dataclass
class QuestionResult:
    question_id: int
    question_order: int
    question_text: str
    question_image: Optional[str]
    options: dict
    your_answer: Optional[str]
    correct_answer: str
    is_correct: bool
    marks: float
    marks_awarded: float
    explanation: Optional[str] = None
    explanation_image: Optional[str] = None


@dataclass
class ResultView(ResultSummary):
    """Submitted attempt with the per-question breakdown the test allows."""

    show_answers: bool = False
    show_explanations: bool = False
    questions: list[QuestionResult] = field(default_factory=list)


# =============================================================================
# Engine
# =============================================================================


class TestAttemptEngine:
    """Drives one student's attempts through start, save, submit and review."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.store = AttemptStore(db)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def _check_schedule(self, test: Test, now: datetime) -> None:
        """Raise when the test is not active or now is outside its window."""
        if test.status != TestStatus.ACTIVE:
            raise NotActive()
        if test.scheduled_start is not None and now < ensure_timezone_aware(
            test.scheduled_start
        ):
            raise NotStarted()
        if test.scheduled_end is not None and now > ensure_timezone_aware(
            test.scheduled_end
        ):
            raise Ended()

    def _check_attempt_count(self, test: Test, existing: int) -> None:
        if not test.allow_multiple_attempts and existing > 0:
            raise AlreadyAttempted()
        if existing >= test.max_attempts:
            raise MaxAttemptsReached(ErrorMessages.attempts_exhausted(test.max_attempts))

    def _can_attempt(
        self, test: Test, attempts: list[TestAttempt], now: datetime
    ) -> bool:
        try:
            self._check_schedule(test, now)
            if any(a.status == AttemptStatus.IN_PROGRESS for a in attempts):
                return True
            self._check_attempt_count(test, len(attempts))
        except (NotActive, NotStarted, Ended, AlreadyAttempted, MaxAttemptsReached):
            return False
        return True

    # ------------------------------------------------------------------
    # Question order
    # ------------------------------------------------------------------

    def _ordered_questions(
        self,
        attempt: TestAttempt,
        test: Test,
        test_questions: list[TestQuestion],
        responses: list[TestResponse],
    ) -> list[TestQuestion]:
        """
        Reconstruct the order in which this attempt shows its questions.

        The base order is the definition order, or a permutation seeded from
        the attempt identity when the test shuffles. Questions with a saved
        response keep their stored position; the rest fill the free slots in
        base order.
        """
        if test.shuffle_questions:
            base = shuffled(test_questions, attempt_seed(test.id, attempt.id))
        else:
            base = list(test_questions)

        slots: list[Optional[TestQuestion]] = [None] * len(base)
        placed = set()
        stored_positions = {r.question_id: r.question_order for r in responses}
        for tq in base:
            position = stored_positions.get(tq.question_id)
            if position is not None and 1 <= position <= len(slots):
                if slots[position - 1] is None:
                    slots[position - 1] = tq
                    placed.add(tq.question_id)

        remaining = iter(tq for tq in base if tq.question_id not in placed)
        for index, slot in enumerate(slots):
            if slot is None:
                slots[index] = next(remaining)
        return slots

    # ------------------------------------------------------------------
    # View builders
    # ------------------------------------------------------------------

    @staticmethod
    def _summary(attempt: TestAttempt) -> AttemptSummary:
        return AttemptSummary(
            attempt_id=attempt.id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            started_at=ensure_timezone_aware(attempt.started_at),
            submitted_at=_aware(attempt.submitted_at),
            total_score=attempt.total_score,
            percentage_score=attempt.percentage_score,
            is_passed=attempt.is_passed,
        )

    def _attempt_view(
        self, attempt: TestAttempt, test: Test, now: datetime, resumed: bool
    ) -> AttemptView:
        test_questions = question_bank.get_test_questions(self.db, test.id)
        responses = self.store.get_responses(attempt.id)
        saved = {r.question_id: r.selected_answer for r in responses}
        marks = question_bank.marks_for(test_questions)
        ordered = self._ordered_questions(attempt, test, test_questions, responses)

        started_at = ensure_timezone_aware(attempt.started_at)
        duration_seconds = test.duration_minutes * 60
        remaining = max(0, duration_seconds - elapsed_seconds(started_at, now))

        questions = [
            AttemptQuestion(
                question_id=tq.question_id,
                question_order=position,
                question_text=tq.question.question_text,
                question_image=tq.question.question_image,
                options=tq.question.options,
                marks=marks[tq.question_id],
                saved_answer=saved.get(tq.question_id),
            )
            for position, tq in enumerate(ordered, start=1)
        ]

        return AttemptView(
            attempt_id=attempt.id,
            test_id=test.id,
            title=test.title,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            started_at=started_at,
            ends_at=started_at + timedelta(minutes=test.duration_minutes),
            duration_minutes=test.duration_minutes,
            total_marks=test.total_marks,
            negative_marking=test.negative_marking,
            negative_mark_value=test.negative_mark_value,
            remaining_seconds=remaining,
            total_questions=len(questions),
            answered_count=sum(1 for a in saved.values() if a is not None),
            resumed=resumed,
            questions=questions,
        )

    def _result_summary_fields(self, attempt: TestAttempt, test: Test) -> dict:
        return dict(
            attempt_id=attempt.id,
            test_id=test.id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            total_score=attempt.total_score,
            total_marks=test.total_marks,
            percentage_score=attempt.percentage_score,
            passing_marks=test.passing_marks,
            is_passed=attempt.is_passed,
            total_correct=attempt.total_correct,
            total_incorrect=attempt.total_incorrect,
            total_skipped=attempt.total_skipped,
            total_questions=(
                attempt.total_correct + attempt.total_incorrect + attempt.total_skipped
            ),
            time_spent_seconds=attempt.time_spent_seconds,
            submitted_at=ensure_timezone_aware(attempt.submitted_at),
        )

    # ------------------------------------------------------------------
    # Listing and details
    # ------------------------------------------------------------------

    def list_assigned_tests(
        self,
        student_id: int,
        status_filter: Optional[str] = None,
        type_filter: Optional[TestType] = None,
    ) -> list[AssignedTestSummary]:
        """
        List the tests assigned to a student.

        Args:
            student_id: Caller
            status_filter: "upcoming", "active" or "completed"
            type_filter: Restrict to one test type

        Raises:
            ValueError: On an unknown status filter
        """
        test_status = None
        if status_filter is not None:
            if status_filter not in STATUS_FILTERS:
                raise ValueError(f"Unknown status filter: {status_filter}")
            test_status = STATUS_FILTERS[status_filter]

        now = self.clock()
        summaries = []
        for assignment in self.store.list_assignments(
            student_id, test_status=test_status, test_type=type_filter
        ):
            test = assignment.test
            attempts = self.store.list_attempts(test.id, student_id)
            summaries.append(
                AssignedTestSummary(
                    test_id=test.id,
                    title=test.title,
                    subject=test.subject,
                    type=test.type,
                    status=test.status,
                    scheduled_start=_aware(test.scheduled_start),
                    scheduled_end=_aware(test.scheduled_end),
                    duration_minutes=test.duration_minutes,
                    total_questions=test.total_questions,
                    total_marks=test.total_marks,
                    due_date=_aware(assignment.due_date),
                    attempt_count=len(attempts),
                    can_attempt=self._can_attempt(test, attempts, now),
                    latest_attempt=self._summary(attempts[0]) if attempts else None,
                )
            )
        return summaries

    def get_test_details(self, student_id: int, test_id: int) -> TestDetailsView:
        """
        Return test metadata, the student's attempt history and whether a
        start (or resume) is currently allowed.

        Raises:
            NotAssigned: The test is not assigned to the student
        """
        assignment = self.store.get_assignment(student_id, test_id)
        if assignment is None:
            raise NotAssigned()
        test = assignment.test
        attempts = self.store.list_attempts(test_id, student_id)

        return TestDetailsView(
            test_id=test.id,
            title=test.title,
            description=test.description,
            subject=test.subject,
            type=test.type,
            status=test.status,
            scheduled_start=_aware(test.scheduled_start),
            scheduled_end=_aware(test.scheduled_end),
            duration_minutes=test.duration_minutes,
            total_questions=test.total_questions,
            total_marks=test.total_marks,
            passing_marks=test.passing_marks,
            max_attempts=test.max_attempts,
            allow_multiple_attempts=test.allow_multiple_attempts,
            shuffle_questions=test.shuffle_questions,
            negative_marking=test.negative_marking,
            negative_mark_value=test.negative_mark_value,
            show_answers_after=test.show_answers_after,
            due_date=_aware(assignment.due_date),
            can_attempt=self._can_attempt(test, attempts, self.clock()),
            attempts=[self._summary(a) for a in attempts],
        )

    # ------------------------------------------------------------------
    # Start / resume
    # ------------------------------------------------------------------

    def start_attempt(
        self,
        student_id: int,
        test_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AttemptView:
        """
        Start a new attempt, or resume the one already in progress.

        Idempotent while an attempt is IN_PROGRESS: repeated calls return the
        same attempt without creating rows or changing its question order.

        Raises:
            NotAssigned, NotActive, NotStarted, Ended, AlreadyAttempted,
            MaxAttemptsReached: See module docstring for the order.
        """
        with handle_db_error(self.db, "start attempt"):
            assignment = self.store.get_assignment(student_id, test_id)
            if assignment is None:
                raise NotAssigned()
            test = assignment.test
            now = self.clock()
            self._check_schedule(test, now)

            # Two rounds: a lost race re-reads and re-applies the rules once
            for round_number in range(2):
                existing_attempt = self.store.find_in_progress(test_id, student_id)
                if existing_attempt is not None:
                    logger.info(
                        f"Resuming attempt {existing_attempt.id} for student "
                        f"{student_id} on test {test_id}"
                    )
                    return self._attempt_view(existing_attempt, test, now, resumed=True)

                existing = self.store.count_attempts(test_id, student_id)
                self._check_attempt_count(test, existing)

                try:
                    attempt = self.store.create_attempt(
                        test_id=test_id,
                        student_id=student_id,
                        attempt_number=existing + 1,
                        started_at=now,
                        ip_address=ip_address,
                        user_agent=user_agent,
                    )
                    self.db.commit()
                except IntegrityError:
                    self.db.rollback()
                    if round_number == 1:
                        raise
                    logger.warning(
                        f"Concurrent start detected for student {student_id} "
                        f"on test {test_id}; re-reading attempts"
                    )
                    continue

                logger.info(
                    f"Started attempt {attempt.id} (#{attempt.attempt_number}) "
                    f"for student {student_id} on test {test_id}",
                    extra={
                        "student_id": student_id,
                        "test_id": test_id,
                        "attempt_id": attempt.id,
                    },
                )
                return self._attempt_view(attempt, test, now, resumed=False)

    def get_attempt(self, student_id: int, attempt_id: int) -> AttemptView:
        """
        Return the resume view of an in-progress attempt.

        Raises:
            NotFound: Unknown attempt or owned by another student
            InvalidOrCompletedAttempt: The attempt is already submitted
        """
        attempt = self.store.get_owned_attempt(student_id, attempt_id)
        if attempt is None:
            raise NotFound(ErrorMessages.attempt_not_found(attempt_id))
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise InvalidOrCompletedAttempt()
        return self._attempt_view(attempt, attempt.test, self.clock(), resumed=True)

    # ------------------------------------------------------------------
    # Answer capture
    # ------------------------------------------------------------------

    def save_answer(
        self,
        student_id: int,
        attempt_id: int,
        question_id: int,
        answer: Optional[str],
        time_spent_seconds: int = 0,
    ) -> SaveAnswerAck:
        """
        Record (or clear, with None) the answer to one question.

        Upserts on (attempt, question), so repeated saves overwrite.

        Raises:
            InvalidOrCompletedAttempt: Attempt unknown, foreign or not in progress
            NotFound: The question is not part of the attempt's test
            InvalidAnswer: The answer is not an option letter
        """
        if answer is not None and answer not in ANSWER_OPTIONS:
            raise InvalidAnswer()

        with handle_db_error(self.db, "save answer"):
            attempt = self.store.lock_owned_attempt(student_id, attempt_id)
            if attempt is None or attempt.status != AttemptStatus.IN_PROGRESS:
                raise InvalidOrCompletedAttempt()
            test = attempt.test

            if question_bank.get_test_question(self.db, test.id, question_id) is None:
                raise NotFound(ErrorMessages.question_not_in_test(question_id, test.id))

            response = self.store.get_response(attempt_id, question_id)
            if response is None:
                test_questions = question_bank.get_test_questions(self.db, test.id)
                ordered = self._ordered_questions(
                    attempt, test, test_questions, self.store.get_responses(attempt_id)
                )
                position = next(
                    index
                    for index, tq in enumerate(ordered, start=1)
                    if tq.question_id == question_id
                )
                try:
                    response = self.store.insert_response(
                        attempt_id, question_id, position
                    )
                except IntegrityError:
                    # A concurrent first-save won; update its row instead
                    self.db.rollback()
                    attempt = self.store.lock_owned_attempt(student_id, attempt_id)
                    if attempt is None or attempt.status != AttemptStatus.IN_PROGRESS:
                        raise InvalidOrCompletedAttempt()
                    response = self.store.get_response(attempt_id, question_id)
                    if response is None:
                        raise

            now = self.clock()
            response.selected_answer = answer
            response.time_spent_seconds = max(0, int(time_spent_seconds or 0))
            response.answered_at = now if answer is not None else None
            self.db.flush()
            # Responses of a submitted attempt are frozen
            if not self.store.is_in_progress(attempt_id):
                raise InvalidOrCompletedAttempt()
            self.db.commit()

            return SaveAnswerAck(
                attempt_id=attempt_id,
                question_id=question_id,
                question_order=response.question_order,
                selected_answer=answer,
                answered_at=now if answer is not None else None,
            )

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit_attempt(self, student_id: int, attempt_id: int) -> ResultSummary:
        """
        Grade and close an attempt, exactly once.

        The IN_PROGRESS -> SUBMITTED flip comes first and grading follows in
        the same transaction. The flip is a status-guarded UPDATE, so of two
        concurrent submits only one commits; the other rolls back and raises
        AlreadySubmitted. A save racing the submit either commits before the
        flip (and is graded) or sees the flip and is refused.

        Raises:
            NotFound: Unknown attempt or owned by another student
            AlreadySubmitted: The attempt is no longer in progress
        """
        with handle_db_error(self.db, "submit attempt"):
            attempt = self.store.lock_owned_attempt(student_id, attempt_id)
            if attempt is None:
                raise NotFound(ErrorMessages.attempt_not_found(attempt_id))
            if attempt.status != AttemptStatus.IN_PROGRESS:
                raise AlreadySubmitted(ErrorMessages.attempt_already_submitted(attempt_id))
            test = attempt.test

            # Claim the attempt before reading answers so no save lands in between
            now = self.clock()
            if self.store.mark_submitted(attempt_id, now) == 0:
                logger.warning(
                    f"Attempt {attempt_id} was submitted concurrently; discarding grading"
                )
                raise AlreadySubmitted(ErrorMessages.attempt_already_submitted(attempt_id))

            test_questions = question_bank.get_test_questions(self.db, test.id)
            responses = {r.question_id: r for r in self.store.get_responses(attempt_id)}
            result = score_attempt(
                responses={qid: r.selected_answer for qid, r in responses.items()},
                answer_key=question_bank.answer_key_for(test_questions),
                marks_by_question=question_bank.marks_for(test_questions),
                policy=MarkingPolicy.from_test(test),
            )

            for question_score in result.question_scores:
                response = responses.get(question_score.question_id)
                if response is not None:
                    response.is_correct = bool(question_score.is_correct)
                    response.marks_awarded = question_score.marks_awarded
            self.db.flush()

            self.store.record_result(
                attempt_id, result, elapsed_seconds(attempt.started_at, now)
            )
            self.db.commit()
            self.db.refresh(attempt)

            logger.info(
                f"Submitted attempt {attempt_id} for student {student_id}: "
                f"score={result.total_score}/{test.total_marks} "
                f"({result.percentage_score}%), passed={result.is_passed}",
                extra={
                    "student_id": student_id,
                    "test_id": test.id,
                    "attempt_id": attempt_id,
                },
            )
            return ResultSummary(**self._result_summary_fields(attempt, test))

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_attempt_results(self, student_id: int, attempt_id: int) -> ResultView:
        """
        Return the graded attempt.

        The per-question breakdown is included only when the test shows
        answers after submission; explanations additionally require
        show_explanations.

        Raises:
            NotFound: Unknown attempt or owned by another student
            NotYetSubmitted: The attempt is still in progress
        """
        attempt = self.store.get_owned_attempt(student_id, attempt_id)
        if attempt is None:
            raise NotFound(ErrorMessages.attempt_not_found(attempt_id))
        if attempt.status != AttemptStatus.SUBMITTED:
            raise NotYetSubmitted()
        test = attempt.test

        show_answers = bool(test.show_answers_after)
        show_explanations = show_answers and bool(test.show_explanations)
        questions: list[QuestionResult] = []

        if show_answers:
            test_questions = question_bank.get_test_questions(self.db, test.id)
            response_rows = self.store.get_responses(attempt_id)
            responses = {r.question_id: r for r in response_rows}
            marks = question_bank.marks_for(test_questions)
            ordered = self._ordered_questions(attempt, test, test_questions, response_rows)

            for position, tq in enumerate(ordered, start=1):
                question = tq.question
                response = responses.get(tq.question_id)
                questions.append(
                    QuestionResult(
                        question_id=tq.question_id,
                        question_order=position,
                        question_text=question.question_text,
                        question_image=question.question_image,
                        options=question.options,
                        your_answer=response.selected_answer if response else None,
                        correct_answer=question.correct_answer,
                        is_correct=bool(response.is_correct) if response else False,
                        marks=marks[tq.question_id],
                        marks_awarded=(
                            response.marks_awarded
                            if response and response.marks_awarded is not None
                            else 0.0
                        ),
                        explanation=question.explanation if show_explanations else None,
                        explanation_image=(
                            question.explanation_image if show_explanations else None
                        ),
                    )
                )

        return ResultView(
            **self._result_summary_fields(attempt, test),
            show_answers=show_answers,
            show_explanations=show_explanations,
            questions=questions,
        )
