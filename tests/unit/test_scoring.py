from datetime import datetime

import pytest

from app.core.constants import QuestionTypeEnum
from app.models.exam_attempt import AttemptAnswer
from app.models.question import Question, QuestionOption
from app.services import scoring


def make_single_choice(marks, negative_marks, correct_id=11, wrong_id=12):
    question = Question(question_type=QuestionTypeEnum.SINGLE_CHOICE, marks=marks, negative_marks=negative_marks)
    question.options = [
        QuestionOption(id=correct_id, option_text="right", is_correct=True),
        QuestionOption(id=wrong_id, option_text="wrong", is_correct=False),
    ]
    return question

def graded_answer(question, response):
    is_correct, marks = scoring.auto_grade(question, response)
    return AttemptAnswer(question=question, selected_option=response, is_correct=is_correct, marks_obtained=marks)


def test_correct_and_wrong_single_choice_with_penalty():
    print("\n[TEST] One right, one wrong with negative marking")
    q1 = make_single_choice(5, 2, correct_id=1, wrong_id=2)
    q2 = make_single_choice(3, 1, correct_id=3, wrong_id=4)

    answers = [graded_answer(q1, "1"), graded_answer(q2, "4")]
    totals = scoring.compute_totals(answers, total_marks=8, passing_marks=5)

    assert totals.obtained_marks == 4
    assert totals.percentage == 50.0
    assert totals.is_passed is False
    assert totals.correct_answers == 1
    assert totals.wrong_answers == 1
    assert totals.unanswered == 0

def test_blank_answer_is_unanswered_not_wrong():
    print("\n[TEST] Blank answer counts as unanswered")
    q1 = make_single_choice(5, 2, correct_id=1, wrong_id=2)
    q2 = make_single_choice(3, 1, correct_id=3, wrong_id=4)

    answers = [graded_answer(q1, "1"), graded_answer(q2, None)]
    totals = scoring.compute_totals(answers, total_marks=8, passing_marks=5)

    assert totals.obtained_marks == 5
    assert totals.unanswered == 1
    assert totals.wrong_answers == 0
    assert totals.is_passed is True

def test_empty_string_is_blank():
    question = make_single_choice(2, 1)
    assert scoring.auto_grade(question, "") == (False, 0.0)

def test_obtained_marks_never_negative():
    print("\n[TEST] Penalties cannot push the total below zero")
    q1 = make_single_choice(1, 4, correct_id=1, wrong_id=2)
    answers = [graded_answer(q1, "2")]
    assert answers[0].marks_obtained == -4

    totals = scoring.compute_totals(answers, total_marks=1, passing_marks=1)
    assert totals.obtained_marks == 0.0
    assert totals.percentage == 0.0

def test_zero_total_marks_gives_zero_percentage():
    totals = scoring.compute_totals([], total_marks=0, passing_marks=0)
    assert totals.percentage == 0.0
    assert totals.is_passed is True

def test_single_choice_response_must_match_option_id_exactly():
    question = make_single_choice(2, 0, correct_id=7, wrong_id=8)
    assert scoring.auto_grade(question, "7") == (True, 2.0)
    assert scoring.auto_grade(question, " 7") == (False, 0.0)
    assert scoring.auto_grade(question, "right") == (False, 0.0)

@pytest.mark.parametrize("response,expected", [("true", True), ("TRUE", True), ("True", True), ("false", False)])
def test_true_false_is_case_insensitive(response, expected):
    question = Question(question_type=QuestionTypeEnum.TRUE_FALSE, marks=2, negative_marks=0, correct_answer="true")
    is_correct, marks = scoring.auto_grade(question, response)
    assert is_correct is expected
    assert marks == (2.0 if expected else 0.0)

def test_free_text_waits_for_manual_grading():
    print("\n[TEST] Free text answers are pending until graded")
    question = Question(question_type=QuestionTypeEnum.FREE_TEXT, marks=4, negative_marks=1)
    answer = graded_answer(question, "An essay")

    assert answer.is_correct is False
    assert answer.marks_obtained == 0.0
    assert scoring.is_pending_review(answer) is True

    answer.marks_obtained = 3
    assert scoring.is_pending_review(answer) is False

def test_blank_free_text_is_not_pending():
    question = Question(question_type=QuestionTypeEnum.FREE_TEXT, marks=4, negative_marks=0)
    answer = graded_answer(question, None)
    assert scoring.is_pending_review(answer) is False

def test_free_text_graded_zero_but_correct_is_not_pending():
    question = Question(question_type=QuestionTypeEnum.FREE_TEXT, marks=4, negative_marks=0)
    answer = AttemptAnswer(question=question, selected_option="text", is_correct=True, marks_obtained=0)
    assert scoring.is_pending_review(answer) is False

def test_free_text_graded_with_zero_marks_is_not_pending():
    question = Question(question_type=QuestionTypeEnum.FREE_TEXT, marks=4, negative_marks=0)
    answer = AttemptAnswer(
        question=question, selected_option="text", is_correct=False, marks_obtained=0, graded_at=datetime.utcnow()
    )
    assert scoring.is_pending_review(answer) is False

def test_unknown_question_type_is_rejected():
    question = Question(question_type="matching", marks=1, negative_marks=0)
    with pytest.raises(ValueError):
        scoring.auto_grade(question, "x")
