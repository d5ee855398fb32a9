from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session, Query, selectinload

from app.core.constants import ExamAttemptStatusEnum, QuestionTypeEnum, COMPLETED_ATTEMPT_STATUSES
from app.crud.base import CRUDBase
from app.models.exam_attempt import ExamAttempt, AttemptAnswer
from app.models.question import Question

class CRUDExamAttempt(CRUDBase[ExamAttempt, dict, dict]):

    def _query_with_relationships(self, db: Session) -> Query:
        return db.query(ExamAttempt).options(
            selectinload(ExamAttempt.exam),
            selectinload(ExamAttempt.student),
            selectinload(ExamAttempt.answers).selectinload(AttemptAnswer.question).selectinload(Question.options),
            selectinload(ExamAttempt.proctoring_flags),
        )

    def _pending_answer_exists(self):
        """Submitted free-text answer nobody has graded yet."""
        return (
            select(AttemptAnswer.id)
            .join(Question, Question.id == AttemptAnswer.question_id)
            .where(
                AttemptAnswer.attempt_id == ExamAttempt.id,
                Question.question_type == QuestionTypeEnum.FREE_TEXT,
                AttemptAnswer.selected_option.isnot(None),
                AttemptAnswer.selected_option != "",
                AttemptAnswer.graded_at.is_(None),
                AttemptAnswer.marks_obtained == 0,
                AttemptAnswer.is_correct.is_(False),
            )
            .exists()
        )

    def get(self, db: Session, id: int) -> Optional[ExamAttempt]:
        return self._query_with_relationships(db).filter(ExamAttempt.id == id).first()

    def get_in_progress(self, db: Session, *, student_id: int, exam_id: int) -> Optional[ExamAttempt]:
        return (
            self._query_with_relationships(db)
            .filter(
                ExamAttempt.student_id == student_id,
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.status == ExamAttemptStatusEnum.IN_PROGRESS,
            )
            .first()
        )

    def count_by_student_and_exam(self, db: Session, *, student_id: int, exam_id: int) -> int:
        return (
            db.query(ExamAttempt)
            .filter(ExamAttempt.student_id == student_id, ExamAttempt.exam_id == exam_id)
            .count()
        )

    def get_latest_completed(self, db: Session, *, student_id: int, exam_id: int) -> Optional[ExamAttempt]:
        return (
            db.query(ExamAttempt)
            .filter(
                ExamAttempt.student_id == student_id,
                ExamAttempt.exam_id == exam_id,
                ExamAttempt.status.in_(COMPLETED_ATTEMPT_STATUSES),
            )
            .order_by(ExamAttempt.attempt_number.desc())
            .first()
        )

    def get_by_student_and_exam(self, db: Session, *, student_id: int, exam_id: int) -> List[ExamAttempt]:
        return (
            db.query(ExamAttempt)
            .filter(ExamAttempt.student_id == student_id, ExamAttempt.exam_id == exam_id)
            .order_by(ExamAttempt.attempt_number.asc())
            .all()
        )

    def query_by_student(self, db: Session, *, student_id: int) -> Query:
        return (
            db.query(ExamAttempt)
            .filter(ExamAttempt.student_id == student_id)
            .order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc())
        )

    def query_completed(self, db: Session, *, exam_id: Optional[int] = None, student_id: Optional[int] = None) -> Query:
        query = db.query(ExamAttempt).filter(ExamAttempt.status.in_(COMPLETED_ATTEMPT_STATUSES))
        if exam_id is not None:
            query = query.filter(ExamAttempt.exam_id == exam_id)
        if student_id is not None:
            query = query.filter(ExamAttempt.student_id == student_id)
        return query

    def get_results_by_exam(self, db: Session, *, exam_id: int) -> List[ExamAttempt]:
        return (
            self.query_completed(db, exam_id=exam_id)
            .options(selectinload(ExamAttempt.student))
            .order_by(ExamAttempt.obtained_marks.desc(), ExamAttempt.submitted_at.asc())
            .all()
        )

    def query_pending_grading(self, db: Session, *, exam_id: Optional[int] = None) -> Query:
        query = (
            self._query_with_relationships(db)
            .filter(ExamAttempt.status == ExamAttemptStatusEnum.SUBMITTED)
            .filter(self._pending_answer_exists())
        )
        if exam_id is not None:
            query = query.filter(ExamAttempt.exam_id == exam_id)
        return query.order_by(ExamAttempt.submitted_at.asc(), ExamAttempt.id.asc())

    def query_flagged(self, db: Session, *, exam_id: Optional[int] = None) -> Query:
        query = (
            db.query(ExamAttempt)
            .options(selectinload(ExamAttempt.proctoring_flags))
            .filter(ExamAttempt.proctoring_flags.any())
        )
        if exam_id is not None:
            query = query.filter(ExamAttempt.exam_id == exam_id)
        return query.order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc())

    def get_all_in_progress(self, db: Session, *, exam_id: Optional[int] = None) -> List[ExamAttempt]:
        query = (
            db.query(ExamAttempt)
            .options(
                selectinload(ExamAttempt.exam),
                selectinload(ExamAttempt.student),
                selectinload(ExamAttempt.proctoring_flags),
            )
            .filter(ExamAttempt.status == ExamAttemptStatusEnum.IN_PROGRESS)
        )
        if exam_id is not None:
            query = query.filter(ExamAttempt.exam_id == exam_id)
        return query.order_by(ExamAttempt.started_at.asc()).all()

    def get_answer(self, attempt: ExamAttempt, answer_id: int) -> Optional[AttemptAnswer]:
        return next((answer for answer in attempt.answers if answer.id == answer_id), None)


exam_attempt = CRUDExamAttempt(ExamAttempt)
