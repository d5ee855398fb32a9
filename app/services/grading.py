import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.constants import ExamAttemptStatusEnum, COMPLETED_ATTEMPT_STATUSES
from app.core.exceptions import DomainValidationError, InvalidStateError, NotFoundError
from app.crud.exam_attempt import exam_attempt as crud_exam_attempt
from app.models.exam_attempt import ExamAttempt, AttemptAnswer
from app.models.user import User
from app.schemas.grading import (
    BulkGradeRequest,
    GradeAnswerRequest,
    PendingAnswer,
    PendingGradingItem,
)
from app.schemas.response import PaginatedResponse
from app.services import scoring
from app.services.exam_attempt import commit_attempt_change
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)


class GradingService:

    def _get_gradable_attempt(self, db: Session, attempt_id: int) -> ExamAttempt:
        attempt = crud_exam_attempt.get(db, id=attempt_id)
        if not attempt:
            raise NotFoundError("Exam attempt not found.")
        if attempt.status not in COMPLETED_ATTEMPT_STATUSES:
            raise InvalidStateError(f"Cannot grade an exam attempt that is {attempt.status.value}.")
        return attempt

    def _get_answer(self, attempt: ExamAttempt, answer_id: int) -> AttemptAnswer:
        answer = crud_exam_attempt.get_answer(attempt, answer_id)
        if answer is None:
            raise NotFoundError(f"Answer {answer_id} not found in this attempt.")
        return answer

    def _validate_marks(self, answer: AttemptAnswer, marks: float):
        question = answer.question
        if marks > question.marks:
            raise DomainValidationError(
                f"Marks cannot exceed the question's maximum of {question.marks}.",
                details={"answer_id": answer.id, "max_marks": question.marks},
            )
        if marks < -(question.negative_marks or 0):
            raise DomainValidationError(
                f"Marks cannot be lower than the question's penalty of -{question.negative_marks}.",
                details={"answer_id": answer.id, "min_marks": -(question.negative_marks or 0)},
            )

    def _apply_grade(self, answer: AttemptAnswer, grade: GradeAnswerRequest, reviewer: User, now: datetime):
        answer.marks_obtained = grade.marks_obtained
        answer.is_correct = grade.is_correct
        answer.graded_by_id = reviewer.id
        answer.graded_at = now
        if grade.feedback:
            answer.feedback = grade.feedback

    def _recompute(self, attempt: ExamAttempt):
        totals = scoring.compute_totals(attempt.answers, attempt.total_marks, attempt.exam.passing_marks)
        scoring.apply_totals(attempt, totals)

    def list_pending(
        self, db: Session, *, exam_id: Optional[int] = None, page: int = 1, size: int = 20
    ) -> PaginatedResponse[PendingGradingItem]:
        query = crud_exam_attempt.query_pending_grading(db, exam_id=exam_id)
        attempts, total = crud_exam_attempt.paginate(query, page=page, size=size)

        items = []
        for attempt in attempts:
            pending = [
                PendingAnswer(
                    answer_id=answer.id,
                    question_id=answer.question_id,
                    question_text=answer.question.question_text,
                    max_marks=answer.question.marks,
                    negative_marks=answer.question.negative_marks,
                    selected_option=answer.selected_option,
                )
                for answer in attempt.answers
                if scoring.is_pending_review(answer)
            ]
            items.append(PendingGradingItem(
                attempt_id=attempt.id,
                exam_id=attempt.exam_id,
                exam_title=attempt.exam.title,
                student_id=attempt.student_id,
                student_name=attempt.student.full_name,
                submitted_at=attempt.submitted_at,
                pending_answers=pending,
            ))
        return PaginatedResponse[PendingGradingItem].build(items, total, page, size)

    def grade_answer(
        self, db: Session, *, attempt_id: int, answer_id: int, grade_in: GradeAnswerRequest, reviewer: User
    ) -> ExamAttempt:
        permission_helper.require_staff(reviewer, "Only staff can grade answers.")
        attempt = self._get_gradable_attempt(db, attempt_id)
        answer = self._get_answer(attempt, answer_id)
        self._validate_marks(answer, grade_in.marks_obtained)

        now = datetime.utcnow()
        self._apply_grade(answer, grade_in, reviewer, now)
        self._recompute(attempt)

        if attempt.status == ExamAttemptStatusEnum.SUBMITTED and not any(
            scoring.is_pending_review(a) for a in attempt.answers
        ):
            attempt.status = ExamAttemptStatusEnum.EVALUATED
        attempt.reviewed_by_id = reviewer.id
        attempt.reviewed_at = now

        commit_attempt_change(db, attempt_id, COMPLETED_ATTEMPT_STATUSES, "grade")
        logger.info(f"Answer {answer_id} of attempt {attempt_id} graded by {reviewer.id}")
        return crud_exam_attempt.get(db, id=attempt_id)

    def bulk_grade(self, db: Session, *, attempt_id: int, grades_in: BulkGradeRequest, reviewer: User) -> ExamAttempt:
        permission_helper.require_staff(reviewer, "Only staff can grade answers.")
        attempt = self._get_gradable_attempt(db, attempt_id)

        # nothing is written unless every entry is valid
        targets = []
        for grade in grades_in.grades:
            answer = self._get_answer(attempt, grade.answer_id)
            self._validate_marks(answer, grade.marks_obtained)
            targets.append((answer, grade))

        now = datetime.utcnow()
        for answer, grade in targets:
            self._apply_grade(answer, grade, reviewer, now)
        self._recompute(attempt)

        attempt.status = ExamAttemptStatusEnum.EVALUATED
        attempt.reviewed_by_id = reviewer.id
        attempt.reviewed_at = now
        if grades_in.feedback:
            attempt.feedback = grades_in.feedback

        commit_attempt_change(db, attempt_id, COMPLETED_ATTEMPT_STATUSES, "grade")
        logger.info(f"Attempt {attempt_id} bulk graded ({len(targets)} answers) by {reviewer.id}")
        return crud_exam_attempt.get(db, id=attempt_id)


grading_service = GradingService()
