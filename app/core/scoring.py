"""
Attempt scoring.

Pure functions only: no database access, no clock. The attempt engine loads
responses and the answer key, calls score_attempt() and persists the result.

Marking rules
=============
- Skipped (no response or a null answer): 0 marks
- Correct: the question's marks (1 when unset)
- Incorrect: minus negative_mark_value when negative marking is on, else 0

The total may go negative under negative marking; it is not clamped.
Percentages are rounded half-up to two decimals.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Mapping, Optional

from app.core.config import settings


@dataclass(frozen=True)
class MarkingPolicy:
    """Marking rules of a test, fixed at grading time."""

    negative_marking: bool
    negative_mark_value: float
    total_marks: float
    passing_marks: Optional[float] = None

    @classmethod
    def from_test(cls, test) -> "MarkingPolicy":
        """Build the policy from a Test row."""
        return cls(
            negative_marking=bool(test.negative_marking),
            negative_mark_value=float(test.negative_mark_value or 0.0),
            total_marks=float(test.total_marks or 0.0),
            passing_marks=(
                float(test.passing_marks) if test.passing_marks is not None else None
            ),
        )


@dataclass
class QuestionScore:
    """Grading outcome for a single question."""

    question_id: int
    selected_answer: Optional[str]
    correct_answer: str
    is_correct: Optional[bool]  # None when skipped
    marks_awarded: float


@dataclass
class ScoreResult:
    """Aggregate grading outcome for an attempt."""

    total_score: float
    total_correct: int
    total_incorrect: int
    total_skipped: int
    percentage_score: float
    is_passed: bool
    question_scores: List[QuestionScore] = field(default_factory=list)

    @property
    def total_questions(self) -> int:
        return self.total_correct + self.total_incorrect + self.total_skipped


def round2(value: float) -> float:
    """Round half-up to two decimal places."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    """Round half-up to the nearest integer."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage_of(score: float, total_marks: float) -> float:
    """Score as a percentage of total marks; 0 when total_marks is not positive."""
    if total_marks <= 0:
        return 0.0
    return round2(score / total_marks * 100)


def is_passing(
    score: float,
    percentage: float,
    passing_marks: Optional[float],
    default_pass_percentage: Optional[float] = None,
) -> bool:
    """
    Apply the pass rule.

    An explicit passing_marks threshold compares against the raw score;
    otherwise the percentage is compared against the default pass bar.
    """
    if passing_marks is not None:
        return score >= passing_marks
    if default_pass_percentage is None:
        default_pass_percentage = settings.DEFAULT_PASS_PERCENTAGE
    return percentage >= default_pass_percentage


def score_attempt(
    responses: Mapping[int, Optional[str]],
    answer_key: Mapping[int, str],
    marks_by_question: Mapping[int, float],
    policy: MarkingPolicy,
    default_pass_percentage: Optional[float] = None,
) -> ScoreResult:
    """
    Grade every question of a test.

    Args:
        responses: question id -> selected option letter. Missing keys and
            None values both count as skipped.
        answer_key: question id -> correct option letter, one entry per
            question of the test. Defines the set of graded questions.
        marks_by_question: question id -> marks for a correct answer.
            Missing entries default to 1.
        policy: Marking policy of the test
        default_pass_percentage: Overrides the configured default pass bar

    Returns:
        ScoreResult with aggregates and one QuestionScore per question
    """
    penalty = policy.negative_mark_value if policy.negative_marking else 0.0

    total = Decimal("0")
    correct = incorrect = skipped = 0
    question_scores: List[QuestionScore] = []

    for question_id, correct_answer in answer_key.items():
        selected = responses.get(question_id)
        if selected is None:
            skipped += 1
            is_correct: Optional[bool] = None
            awarded = 0.0
        elif selected == correct_answer:
            correct += 1
            is_correct = True
            awarded = float(marks_by_question.get(question_id, 1.0))
        else:
            incorrect += 1
            is_correct = False
            awarded = -penalty if penalty else 0.0

        # Decimal accumulation keeps 0.25 penalties exact
        total += Decimal(str(awarded))
        question_scores.append(
            QuestionScore(
                question_id=question_id,
                selected_answer=selected,
                correct_answer=correct_answer,
                is_correct=is_correct,
                marks_awarded=awarded,
            )
        )

    total_score = float(total)
    percentage = percentage_of(total_score, policy.total_marks)
    passed = is_passing(
        total_score, percentage, policy.passing_marks, default_pass_percentage
    )

    return ScoreResult(
        total_score=total_score,
        total_correct=correct,
        total_incorrect=incorrect,
        total_skipped=skipped,
        percentage_score=percentage,
        is_passed=passed,
        question_scores=question_scores,
    )


def practice_accuracy(correct: int, incorrect: int) -> int:
    """Accuracy over answered practice questions as a whole percentage."""
    answered = correct + incorrect
    if answered == 0:
        return 0
    return round_half_up(correct / answered * 100)

