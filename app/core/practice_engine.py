"""
Ungraded practice sessions with immediate feedback.

Unlike test attempts, practice answers are graded the moment they arrive and
the session only accumulates counters; there are no marks and no negative
marking.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core import question_bank
from app.core.config import settings
from app.core.datetime_utils import Clock, elapsed_seconds, ensure_timezone_aware, utc_now
from app.core.db_error_handling import handle_db_error
from app.core.error_responses import ErrorMessages
from app.core.exceptions import InvalidAnswer, NotFound, PracticeSessionCompleted
from app.core.scoring import practice_accuracy
from app.core.shuffling import shuffled
from app.models import DifficultyLevel, PracticeResponse, PracticeSession
from app.models.models import ANSWER_OPTIONS

logger = logging.getLogger(__name__)


@dataclass
class PracticeQuestion:
    question_id: int
    question_text: str
    question_image: Optional[str]
    options: dict
    subject: Optional[str]
    topic: Optional[str]
    difficulty_level: Optional[DifficultyLevel]


@dataclass
class PracticeView:
    session_id: int
    subject: Optional[str]
    topic: Optional[str]
    total_questions: int
    started_at: datetime
    questions: list[PracticeQuestion] = field(default_factory=list)


@dataclass
class PracticeFeedback:
    is_correct: bool
    correct_answer: str
    explanation: Optional[str]
    explanation_image: Optional[str]


@dataclass
class PracticeSummary:
    session_id: int
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    skipped_questions: int
    accuracy: int
    time_spent_seconds: int
    started_at: datetime
    completed_at: datetime
    wall_clock_seconds: int


class PracticeSessionEngine:
    """Starts, grades and closes practice sessions for one student at a time."""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    def _get_open_session(self, student_id: int, session_id: int) -> PracticeSession:
        session = self.db.get(PracticeSession, session_id)
        if session is None or session.student_id != student_id:
            raise NotFound(ErrorMessages.practice_session_not_found(session_id))
        if session.completed_at is not None:
            raise PracticeSessionCompleted()
        return session

    def start_practice(
        self,
        student_id: int,
        subject: Optional[str] = None,
        topic: Optional[str] = None,
        count: Optional[int] = None,
    ) -> PracticeView:
        """
        Open a practice session over approved questions.

        The requested count falls back to PRACTICE_DEFAULT_QUESTIONS and is
        capped at PRACTICE_MAX_QUESTIONS. When fewer questions match the
        filters the session simply holds fewer questions.
        """
        if not count or count < 1:
            count = settings.PRACTICE_DEFAULT_QUESTIONS
        count = min(count, settings.PRACTICE_MAX_QUESTIONS)

        with handle_db_error(self.db, "start practice session"):
            candidates = question_bank.select_practice_candidates(
                self.db,
                limit=count * settings.PRACTICE_CANDIDATE_MULTIPLIER,
                subject=subject,
                topic=topic,
            )
            selected = shuffled(candidates)[:count]

            session = PracticeSession(
                student_id=student_id,
                subject=subject,
                topic=topic,
                total_questions=len(selected),
                correct_answers=0,
                incorrect_answers=0,
                skipped_questions=0,
                time_spent_seconds=0,
                started_at=self.clock(),
            )
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)

        logger.info(
            f"Started practice session {session.id} for student {student_id} "
            f"with {len(selected)} questions (requested {count})",
            extra={"student_id": student_id, "session_id": session.id},
        )

        return PracticeView(
            session_id=session.id,
            subject=subject,
            topic=topic,
            total_questions=len(selected),
            started_at=ensure_timezone_aware(session.started_at),
            questions=[
                PracticeQuestion(
                    question_id=q.id,
                    question_text=q.question_text,
                    question_image=q.question_image,
                    options=q.options,
                    subject=q.subject,
                    topic=q.topic,
                    difficulty_level=q.difficulty_level,
                )
                for q in selected
            ],
        )

    def submit_practice_answer(
        self,
        student_id: int,
        session_id: int,
        question_id: int,
        answer: str,
        time_spent_seconds: int = 0,
    ) -> PracticeFeedback:
        """
        Grade one practice answer and return feedback right away.

        Raises:
            NotFound: Unknown or foreign session, or unknown question
            PracticeSessionCompleted: The session is already completed
            InvalidAnswer: The answer is not an option letter
        """
        if answer not in ANSWER_OPTIONS:
            raise InvalidAnswer()

        with handle_db_error(self.db, "submit practice answer"):
            session = self._get_open_session(student_id, session_id)
            question = question_bank.get_question(self.db, question_id)
            if question is None:
                raise NotFound(ErrorMessages.question_not_found(question_id))

            is_correct = answer == question.correct_answer
            time_spent = max(0, int(time_spent_seconds or 0))

            self.db.add(
                PracticeResponse(
                    session_id=session.id,
                    question_id=question_id,
                    selected_answer=answer,
                    is_correct=is_correct,
                    time_spent_seconds=time_spent,
                    answered_at=self.clock(),
                )
            )
            # Counters are bumped in SQL so concurrent answers all count
            bumped = self.db.execute(
                update(PracticeSession)
                .where(
                    PracticeSession.id == session.id,
                    PracticeSession.completed_at.is_(None),
                )
                .values(
                    correct_answers=PracticeSession.correct_answers + int(is_correct),
                    incorrect_answers=PracticeSession.incorrect_answers
                    + int(not is_correct),
                    time_spent_seconds=PracticeSession.time_spent_seconds + time_spent,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if bumped == 0:
                raise PracticeSessionCompleted()
            self.db.commit()

        return PracticeFeedback(
            is_correct=is_correct,
            correct_answer=question.correct_answer,
            explanation=question.explanation,
            explanation_image=question.explanation_image,
        )

    def complete_practice_session(
        self, student_id: int, session_id: int
    ) -> PracticeSummary:
        """
        Close a practice session and summarize it.

        Questions never answered count as skipped.

        Raises:
            NotFound: Unknown or foreign session
            PracticeSessionCompleted: The session is already completed
        """
        with handle_db_error(self.db, "complete practice session"):
            session = self._get_open_session(student_id, session_id)

            answered = self.db.execute(
                select(func.count(func.distinct(PracticeResponse.question_id))).where(
                    PracticeResponse.session_id == session.id
                )
            ).scalar_one()

            now = self.clock()
            session.skipped_questions = max(0, session.total_questions - answered)
            session.completed_at = now
            self.db.commit()
            self.db.refresh(session)

        accuracy = practice_accuracy(session.correct_answers, session.incorrect_answers)
        started_at = ensure_timezone_aware(session.started_at)
        logger.info(
            f"Completed practice session {session.id} for student {student_id}: "
            f"{session.correct_answers}/{session.total_questions} correct, "
            f"accuracy={accuracy}%",
            extra={"student_id": student_id, "session_id": session.id},
        )

        return PracticeSummary(
            session_id=session.id,
            total_questions=session.total_questions,
            correct_answers=session.correct_answers,
            incorrect_answers=session.incorrect_answers,
            skipped_questions=session.skipped_questions,
            accuracy=accuracy,
            time_spent_seconds=session.time_spent_seconds,
            started_at=started_at,
            completed_at=ensure_timezone_aware(session.completed_at),
            wall_clock_seconds=elapsed_seconds(started_at, now),
        )
