"""
Tests for the test attempt lifecycle.
"""
from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from app.core import question_bank
from app.core.attempt_engine import TestAttemptEngine
from app.core.db_error_handling import DatabaseOperationError
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
from app.models import AttemptStatus, TestAttempt, TestResponse
from app.models.models import TestStatus, TestType

STUDENT_ID = 101
OTHER_STUDENT_ID = 202


class TestStartAttempt:
    """Tests for start_attempt() eligibility and resume."""

    def test_creates_first_attempt(self, attempt_engine, assigned_test, clock):
        view = attempt_engine.start_attempt(
            STUDENT_ID, assigned_test.id, ip_address="10.0.0.1", user_agent="pytest"
        )

        assert view.attempt_number == 1
        assert view.status == AttemptStatus.IN_PROGRESS
        assert view.resumed is False
        assert view.started_at == clock.now
        assert view.ends_at == clock.now + timedelta(minutes=30)
        assert view.remaining_seconds == 30 * 60
        assert view.total_questions == 5
        assert view.answered_count == 0
        assert [q.question_order for q in view.questions] == [1, 2, 3, 4, 5]

    def test_attempt_carries_marking_settings(self, attempt_engine, make_test, assign):
        test = make_test(negative_marking=True, negative_mark_value=0.25)
        assign(test)

        view = attempt_engine.start_attempt(STUDENT_ID, test.id)

        assert view.total_marks == 5.0
        assert view.negative_marking is True
        assert view.negative_mark_value == 0.25

    def test_questions_never_expose_answer_key(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        for question in view.questions:
            assert not hasattr(question, "correct_answer")
            assert set(question.options) == {"A", "B", "C", "D", "E"}

    def test_start_is_idempotent_while_in_progress(
        self, db_session, attempt_engine, assigned_test
    ):
        first = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        second = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        assert second.attempt_id == first.attempt_id
        assert second.resumed is True
        assert [q.question_id for q in second.questions] == [
            q.question_id for q in first.questions
        ]
        assert db_session.query(TestAttempt).count() == 1

    def test_not_assigned(self, attempt_engine, make_test):
        test = make_test()

        with pytest.raises(NotAssigned):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    def test_assignment_of_another_student_does_not_count(
        self, attempt_engine, make_test, assign
    ):
        test = make_test()
        assign(test, student_id=OTHER_STUDENT_ID)

        with pytest.raises(NotAssigned):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    @pytest.mark.parametrize(
        "status", [TestStatus.DRAFT, TestStatus.SCHEDULED, TestStatus.COMPLETED]
    )
    def test_not_active(self, attempt_engine, make_test, assign, status):
        test = make_test(status=status)
        assign(test)

        with pytest.raises(NotActive):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    def test_not_started(self, attempt_engine, make_test, assign, clock):
        test = make_test(scheduled_start=clock.now + timedelta(hours=1))
        assign(test)

        with pytest.raises(NotStarted):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    def test_ended(self, attempt_engine, make_test, assign, clock):
        test = make_test(scheduled_end=clock.now - timedelta(seconds=1))
        assign(test)

        with pytest.raises(Ended):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    def test_window_bounds_are_inclusive(self, attempt_engine, make_test, assign, clock):
        test = make_test(scheduled_start=clock.now, scheduled_end=clock.now)
        assign(test)

        assert attempt_engine.start_attempt(STUDENT_ID, test.id).attempt_number == 1

    def test_not_assigned_wins_over_not_active(self, attempt_engine, make_test):
        test = make_test(status=TestStatus.DRAFT)

        with pytest.raises(NotAssigned):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    def test_already_attempted_when_single_attempt(
        self, attempt_engine, assigned_test
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        with pytest.raises(AlreadyAttempted):
            attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

    def test_attempt_numbers_increase_up_to_max(
        self, attempt_engine, make_test, assign
    ):
        test = make_test(allow_multiple_attempts=True, max_attempts=3)
        assign(test)

        numbers = []
        for _ in range(3):
            view = attempt_engine.start_attempt(STUDENT_ID, test.id)
            numbers.append(view.attempt_number)
            attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        assert numbers == [1, 2, 3]
        with pytest.raises(MaxAttemptsReached) as exc_info:
            attempt_engine.start_attempt(STUDENT_ID, test.id)
        assert "3 allowed" in exc_info.value.message

    def test_resume_refused_after_window_closes(
        self, attempt_engine, make_test, assign, clock
    ):
        test = make_test(scheduled_end=clock.now + timedelta(minutes=5))
        assign(test)
        attempt_engine.start_attempt(STUDENT_ID, test.id)
        clock.advance(minutes=10)

        # Window checks run before the resume rule
        with pytest.raises(Ended):
            attempt_engine.start_attempt(STUDENT_ID, test.id)

    def test_remaining_seconds_counts_down_and_floors_at_zero(
        self, attempt_engine, assigned_test, clock
    ):
        attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        clock.advance(minutes=10, seconds=30)
        assert (
            attempt_engine.start_attempt(STUDENT_ID, assigned_test.id).remaining_seconds
            == 19 * 60 + 30
        )

        clock.advance(hours=2)
        assert (
            attempt_engine.start_attempt(STUDENT_ID, assigned_test.id).remaining_seconds
            == 0
        )


class TestStartRace:
    """A start that loses the unique-index race returns the winner's attempt."""

    def test_lost_race_returns_winner(
        self, db_session, assigned_test, clock, monkeypatch
    ):
        engine = TestAttemptEngine(db_session, clock=clock)
        winner = TestAttempt(
            test_id=assigned_test.id,
            student_id=STUDENT_ID,
            attempt_number=1,
            status=AttemptStatus.IN_PROGRESS,
            started_at=clock.now,
        )

        original_find = engine.store.find_in_progress
        calls = {"n": 0}

        def find_after_concurrent_insert(test_id, student_id):
            # First lookup misses; meanwhile another request commits its attempt
            calls["n"] += 1
            if calls["n"] == 1:
                db_session.add(winner)
                db_session.commit()
                return None
            return original_find(test_id, student_id)

        monkeypatch.setattr(engine.store, "find_in_progress", find_after_concurrent_insert)
        monkeypatch.setattr(engine.store, "count_attempts", lambda test_id, student_id: 0)

        view = engine.start_attempt(STUDENT_ID, assigned_test.id)

        assert view.attempt_id == winner.id
        assert view.resumed is True
        assert db_session.query(TestAttempt).count() == 1


class TestSaveDuringSubmit:
    """A save that loses to a concurrent submit must not touch graded rows."""

    def test_save_after_concurrent_submit_is_refused(
        self, db_session, assigned_test, clock, key_of, wrong, monkeypatch
    ):
        engine = TestAttemptEngine(db_session, clock=clock)
        view = engine.start_attempt(STUDENT_ID, assigned_test.id)
        question_id = view.questions[0].question_id
        correct = key_of(assigned_test)[question_id]
        engine.save_answer(STUDENT_ID, view.attempt_id, question_id, correct)

        other_session = sessionmaker(bind=db_session.get_bind())()
        original_lookup = question_bank.get_test_question

        def lookup_after_concurrent_submit(db, test_id, qid):
            # The status check has passed; another request submits now
            TestAttemptEngine(other_session, clock=clock).submit_attempt(
                STUDENT_ID, view.attempt_id
            )
            return original_lookup(db, test_id, qid)

        monkeypatch.setattr(
            question_bank, "get_test_question", lookup_after_concurrent_submit
        )
        try:
            with pytest.raises(InvalidOrCompletedAttempt):
                engine.save_answer(
                    STUDENT_ID, view.attempt_id, question_id, wrong(correct)
                )
        finally:
            other_session.close()

        db_session.expire_all()
        response = (
            db_session.query(TestResponse)
            .filter_by(attempt_id=view.attempt_id, question_id=question_id)
            .one()
        )
        attempt = db_session.get(TestAttempt, view.attempt_id)
        assert response.selected_answer == correct
        assert response.is_correct is True
        assert attempt.status == AttemptStatus.SUBMITTED
        assert attempt.total_score == 1.0

    def test_save_committed_before_submit_is_graded(
        self, attempt_engine, assigned_test, key_of
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        question_id = view.questions[1].question_id
        attempt_engine.save_answer(
            STUDENT_ID, view.attempt_id, question_id, key_of(assigned_test)[question_id]
        )

        result = attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        assert result.total_correct == 1


class TestShuffledOrder:
    def test_shuffled_order_is_stable_across_resumes(
        self, attempt_engine, make_test, assign
    ):
        test = make_test(num_questions=12, shuffle_questions=True)
        assign(test)

        first = attempt_engine.start_attempt(STUDENT_ID, test.id)
        again = attempt_engine.get_attempt(STUDENT_ID, first.attempt_id)

        first_order = [q.question_id for q in first.questions]
        assert [q.question_id for q in again.questions] == first_order
        assert sorted(first_order) == sorted(tq.question_id for tq in test.questions)

    def test_saved_positions_are_kept(self, attempt_engine, make_test, assign):
        test = make_test(num_questions=8, shuffle_questions=True)
        assign(test)
        view = attempt_engine.start_attempt(STUDENT_ID, test.id)
        third = view.questions[2]

        ack = attempt_engine.save_answer(
            STUDENT_ID, view.attempt_id, third.question_id, "C"
        )
        resumed = attempt_engine.start_attempt(STUDENT_ID, test.id)

        assert ack.question_order == 3
        assert resumed.questions[2].question_id == third.question_id
        assert resumed.questions[2].saved_answer == "C"
        assert resumed.answered_count == 1

    def test_unshuffled_test_uses_definition_order(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        assert [q.question_id for q in view.questions] == [
            tq.question_id for tq in assigned_test.questions
        ]


class TestSaveAnswer:
    def test_upsert_overwrites_previous_answer(
        self, db_session, attempt_engine, assigned_test, clock
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        question_id = view.questions[0].question_id

        attempt_engine.save_answer(STUDENT_ID, view.attempt_id, question_id, "A", 5)
        clock.advance(seconds=20)
        ack = attempt_engine.save_answer(
            STUDENT_ID, view.attempt_id, question_id, "D", 25
        )

        rows = db_session.query(TestResponse).all()
        assert len(rows) == 1
        assert rows[0].selected_answer == "D"
        assert rows[0].time_spent_seconds == 25
        assert ack.answered_at == clock.now

    def test_clearing_an_answer_unsets_answered_at(
        self, db_session, attempt_engine, assigned_test
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        question_id = view.questions[1].question_id

        attempt_engine.save_answer(STUDENT_ID, view.attempt_id, question_id, "B")
        ack = attempt_engine.save_answer(STUDENT_ID, view.attempt_id, question_id, None)

        assert ack.selected_answer is None
        assert ack.answered_at is None
        assert attempt_engine.get_attempt(STUDENT_ID, view.attempt_id).answered_count == 0

    def test_question_outside_test(self, attempt_engine, assigned_test, make_question):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        stray = make_question()

        with pytest.raises(NotFound):
            attempt_engine.save_answer(STUDENT_ID, view.attempt_id, stray.id, "A")

    def test_foreign_attempt(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        with pytest.raises(InvalidOrCompletedAttempt):
            attempt_engine.save_answer(
                OTHER_STUDENT_ID, view.attempt_id, view.questions[0].question_id, "A"
            )

    def test_unknown_attempt(self, attempt_engine, assigned_test):
        with pytest.raises(InvalidOrCompletedAttempt):
            attempt_engine.save_answer(STUDENT_ID, 9999, 1, "A")

    def test_submitted_attempt_is_immutable(
        self, db_session, attempt_engine, assigned_test
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        question_id = view.questions[0].question_id
        attempt_engine.save_answer(STUDENT_ID, view.attempt_id, question_id, "A")
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        with pytest.raises(InvalidOrCompletedAttempt):
            attempt_engine.save_answer(STUDENT_ID, view.attempt_id, question_id, "B")

        assert db_session.query(TestResponse).one().selected_answer == "A"

    def test_invalid_answer_letter(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        with pytest.raises(InvalidAnswer):
            attempt_engine.save_answer(
                STUDENT_ID, view.attempt_id, view.questions[0].question_id, "F"
            )


class TestSubmitAttempt:
    def test_worked_example(
        self, attempt_engine, make_test, assign, key_of, wrong, clock
    ):
        test = make_test(
            num_questions=5,
            negative_marking=True,
            negative_mark_value=0.25,
            passing_marks=3,
        )
        assign(test)
        view = attempt_engine.start_attempt(STUDENT_ID, test.id)
        key = key_of(test)
        ids = [q.question_id for q in view.questions]
        for question_id in ids[:3]:
            attempt_engine.save_answer(
                STUDENT_ID, view.attempt_id, question_id, key[question_id]
            )
        attempt_engine.save_answer(
            STUDENT_ID, view.attempt_id, ids[3], wrong(key[ids[3]])
        )
        clock.advance(minutes=12, seconds=5)

        result = attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        assert result.total_score == 2.75
        assert result.percentage_score == 55.0
        assert result.is_passed is False
        assert (result.total_correct, result.total_incorrect, result.total_skipped) == (
            3,
            1,
            1,
        )
        assert result.total_questions == 5
        assert result.time_spent_seconds == 12 * 60 + 5
        assert result.status == AttemptStatus.SUBMITTED
        assert result.submitted_at == clock.now

    def test_responses_are_graded(
        self, db_session, attempt_engine, assigned_test, key_of, wrong
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        key = key_of(assigned_test)
        first, second, third = [q.question_id for q in view.questions[:3]]
        attempt_engine.save_answer(STUDENT_ID, view.attempt_id, first, key[first])
        attempt_engine.save_answer(
            STUDENT_ID, view.attempt_id, second, wrong(key[second])
        )
        attempt_engine.save_answer(STUDENT_ID, view.attempt_id, third, None)

        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        graded = {r.question_id: r for r in db_session.query(TestResponse).all()}
        assert (graded[first].is_correct, graded[first].marks_awarded) == (True, 1.0)
        assert (graded[second].is_correct, graded[second].marks_awarded) == (False, 0.0)
        assert (graded[third].is_correct, graded[third].marks_awarded) == (False, 0.0)

    def test_submit_exactly_once(
        self, db_session, attempt_engine, assigned_test, clock, key_of
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        key = key_of(assigned_test)
        first_question = view.questions[0].question_id
        attempt_engine.save_answer(
            STUDENT_ID, view.attempt_id, first_question, key[first_question]
        )
        first = attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)
        clock.advance(minutes=5)

        with pytest.raises(AlreadySubmitted):
            attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        db_session.expire_all()
        attempt = db_session.get(TestAttempt, view.attempt_id)
        assert attempt.status == AttemptStatus.SUBMITTED
        assert attempt.total_score == first.total_score == 1.0
        assert attempt.percentage_score == first.percentage_score == 20.0
        assert attempt.is_passed is first.is_passed is False
        assert attempt.time_spent_seconds == first.time_spent_seconds

    def test_concurrent_submit_loses_on_status_guard(
        self, db_session, attempt_engine, assigned_test, monkeypatch
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        monkeypatch.setattr(attempt_engine.store, "mark_submitted", lambda *a, **k: 0)

        with pytest.raises(AlreadySubmitted):
            attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        db_session.expire_all()
        attempt = db_session.get(TestAttempt, view.attempt_id)
        assert attempt.status == AttemptStatus.IN_PROGRESS
        assert attempt.total_score is None

    def test_unknown_or_foreign_attempt(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        with pytest.raises(NotFound):
            attempt_engine.submit_attempt(OTHER_STUDENT_ID, view.attempt_id)
        with pytest.raises(NotFound):
            attempt_engine.submit_attempt(STUDENT_ID, 9999)

    def test_late_submit_is_accepted(self, attempt_engine, assigned_test, clock):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        clock.advance(hours=3)

        result = attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        assert result.time_spent_seconds == 3 * 3600

    def test_database_failure_rolls_back(
        self, db_session, attempt_engine, assigned_test, monkeypatch
    ):
        from sqlalchemy.exc import OperationalError

        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        def broken(*args, **kwargs):
            raise OperationalError("UPDATE test_attempts", {}, Exception("disk I/O"))

        monkeypatch.setattr(attempt_engine.store, "mark_submitted", broken)

        with pytest.raises(DatabaseOperationError) as exc_info:
            attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        assert exc_info.value.operation_name == "submit attempt"
        assert db_session.get(TestAttempt, view.attempt_id).status == AttemptStatus.IN_PROGRESS


class TestResults:
    def test_results_before_submit(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)

        with pytest.raises(NotYetSubmitted):
            attempt_engine.get_attempt_results(STUDENT_ID, view.attempt_id)

    def test_results_with_answers_and_explanations(
        self, attempt_engine, assigned_test, key_of
    ):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        key = key_of(assigned_test)
        first = view.questions[0].question_id
        attempt_engine.save_answer(STUDENT_ID, view.attempt_id, first, key[first])
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        results = attempt_engine.get_attempt_results(STUDENT_ID, view.attempt_id)

        assert results.show_answers is True
        assert len(results.questions) == 5
        top = results.questions[0]
        assert top.your_answer == key[first]
        assert top.correct_answer == key[first]
        assert top.is_correct is True
        assert top.marks_awarded == 1.0
        assert top.explanation is not None
        skipped = results.questions[1]
        assert skipped.your_answer is None
        assert skipped.is_correct is False

    def test_answers_hidden(self, attempt_engine, make_test, assign):
        test = make_test(show_answers_after=False)
        assign(test)
        view = attempt_engine.start_attempt(STUDENT_ID, test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        results = attempt_engine.get_attempt_results(STUDENT_ID, view.attempt_id)

        assert results.show_answers is False
        assert results.questions == []
        assert results.total_skipped == 5

    def test_explanations_hidden(self, attempt_engine, make_test, assign):
        test = make_test(show_explanations=False)
        assign(test)
        view = attempt_engine.start_attempt(STUDENT_ID, test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        results = attempt_engine.get_attempt_results(STUDENT_ID, view.attempt_id)

        assert results.show_explanations is False
        assert all(q.explanation is None for q in results.questions)
        assert all(q.correct_answer for q in results.questions)

    def test_foreign_results(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        with pytest.raises(NotFound):
            attempt_engine.get_attempt_results(OTHER_STUDENT_ID, view.attempt_id)


class TestGetAttempt:
    def test_submitted_attempt_cannot_be_resumed(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        with pytest.raises(InvalidOrCompletedAttempt):
            attempt_engine.get_attempt(STUDENT_ID, view.attempt_id)

    def test_unknown_attempt(self, attempt_engine):
        with pytest.raises(NotFound):
            attempt_engine.get_attempt(STUDENT_ID, 42)


class TestDetailsAndListing:
    def test_details_with_history_and_can_attempt(
        self, attempt_engine, make_test, assign
    ):
        test = make_test(allow_multiple_attempts=True, max_attempts=2)
        assign(test)

        before = attempt_engine.get_test_details(STUDENT_ID, test.id)
        view = attempt_engine.start_attempt(STUDENT_ID, test.id)
        during = attempt_engine.get_test_details(STUDENT_ID, test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)
        second = attempt_engine.start_attempt(STUDENT_ID, test.id)
        attempt_engine.submit_attempt(STUDENT_ID, second.attempt_id)
        after = attempt_engine.get_test_details(STUDENT_ID, test.id)

        assert before.can_attempt is True and before.attempts == []
        assert during.can_attempt is True  # resume
        assert after.can_attempt is False
        assert [a.attempt_number for a in after.attempts] == [2, 1]

    def test_details_not_assigned(self, attempt_engine, make_test):
        with pytest.raises(NotAssigned):
            attempt_engine.get_test_details(STUDENT_ID, make_test().id)

    def test_details_outside_window(self, attempt_engine, make_test, assign, clock):
        test = make_test(scheduled_start=clock.now + timedelta(days=1))
        assign(test)

        assert attempt_engine.get_test_details(STUDENT_ID, test.id).can_attempt is False

    def test_list_filters(self, attempt_engine, make_test, assign):
        active = make_test(title="Active unit", status=TestStatus.ACTIVE)
        upcoming = make_test(title="Upcoming mock", status=TestStatus.SCHEDULED, type=TestType.MOCK_EXAM)
        done = make_test(title="Done", status=TestStatus.COMPLETED)
        for test in (active, upcoming, done):
            assign(test)
        make_test(title="Unassigned")

        everything = attempt_engine.list_assigned_tests(STUDENT_ID)
        upcoming_only = attempt_engine.list_assigned_tests(STUDENT_ID, status_filter="upcoming")
        mocks = attempt_engine.list_assigned_tests(STUDENT_ID, type_filter=TestType.MOCK_EXAM)

        assert {s.title for s in everything} == {"Active unit", "Upcoming mock", "Done"}
        assert [s.title for s in upcoming_only] == ["Upcoming mock"]
        assert [s.title for s in mocks] == ["Upcoming mock"]

    def test_list_reports_latest_attempt(self, attempt_engine, assigned_test):
        view = attempt_engine.start_attempt(STUDENT_ID, assigned_test.id)
        attempt_engine.submit_attempt(STUDENT_ID, view.attempt_id)

        [summary] = attempt_engine.list_assigned_tests(STUDENT_ID)

        assert summary.attempt_count == 1
        assert summary.can_attempt is False
        assert summary.latest_attempt.attempt_id == view.attempt_id
        assert summary.latest_attempt.status == AttemptStatus.SUBMITTED

    def test_unknown_status_filter(self, attempt_engine):
        with pytest.raises(ValueError):
            attempt_engine.list_assigned_tests(STUDENT_ID, status_filter="archived")
