from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from app.core.constants import QuestionTypeEnum
from app.models.question import Question
from app.models.exam_attempt import AttemptAnswer


@dataclass(frozen=True)
class AttemptTotals:
    obtained_marks: float
    percentage: float
    is_passed: bool
    correct_answers: int
    wrong_answers: int
    unanswered: int


def is_blank(response: Optional[str]) -> bool:
    return response is None or response == ""


def auto_grade(question: Question, response: Optional[str]) -> Tuple[bool, float]:
    """Return (is_correct, marks) for one response.

    Blank responses and free-text answers score nothing here; free-text
    answers are left for manual grading.
    """
    if is_blank(response):
        return False, 0.0

    question_type = question.question_type
    if question_type == QuestionTypeEnum.SINGLE_CHOICE:
        correct_option = next((option for option in question.options if option.is_correct), None)
        is_correct = correct_option is not None and response == str(correct_option.id)
    elif question_type == QuestionTypeEnum.TRUE_FALSE:
        is_correct = question.correct_answer is not None and response.lower() == question.correct_answer.lower()
    elif question_type == QuestionTypeEnum.FREE_TEXT:
        return False, 0.0
    else:
        raise ValueError(f"Unsupported question type: {question_type}")

    if is_correct:
        return True, float(question.marks)
    return False, -float(question.negative_marks or 0)


def is_pending_review(answer: AttemptAnswer) -> bool:
    """A free-text answer with content that has not been graded yet."""
    return (
        answer.question.question_type == QuestionTypeEnum.FREE_TEXT
        and not is_blank(answer.selected_option)
        and answer.graded_at is None
        and not answer.marks_obtained
        and not answer.is_correct
    )


def compute_totals(answers: Iterable[AttemptAnswer], total_marks: float, passing_marks: float) -> AttemptTotals:
    answers = list(answers)
    correct = sum(1 for answer in answers if answer.is_correct)
    unanswered = sum(1 for answer in answers if is_blank(answer.selected_option) and not answer.is_correct)
    wrong = len(answers) - correct - unanswered

    obtained = max(0.0, sum(float(answer.marks_obtained or 0) for answer in answers))
    percentage = round(obtained / total_marks * 100, 2) if total_marks > 0 else 0.0

    return AttemptTotals(
        obtained_marks=obtained,
        percentage=percentage,
        is_passed=obtained >= passing_marks,
        correct_answers=correct,
        wrong_answers=wrong,
        unanswered=unanswered,
    )


def apply_totals(attempt, totals: AttemptTotals) -> None:
    attempt.obtained_marks = totals.obtained_marks
    attempt.percentage = totals.percentage
    attempt.is_passed = totals.is_passed
    attempt.correct_answers = totals.correct_answers
    attempt.wrong_answers = totals.wrong_answers
    attempt.unanswered = totals.unanswered
