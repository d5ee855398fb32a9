from datetime import datetime
from typing import Dict, List, Optional, Sequence
from sqlalchemy import func, select
from sqlalchemy.orm import Session, Query, selectinload

from app.core.constants import ExamStatusEnum
from app.crud.base import CRUDBase
from app.models.exam import Exam, ExamQuestion, ExamEnrollment, exam_proctors
from app.models.question import Question
from app.schemas.exam import ExamCreate, ExamUpdate

class CRUDExam(CRUDBase[Exam, ExamCreate, ExamUpdate]):

    def _query_with_relationships(self, db: Session) -> Query:
        return (
            self._query_active(db)
            .options(
                selectinload(Exam.exam_questions).selectinload(ExamQuestion.question).selectinload(Question.options),
                selectinload(Exam.proctors),
            )
        )

    def get(self, db: Session, id: int) -> Optional[Exam]:
        return self._query_with_relationships(db).filter(Exam.id == id).first()

    def query_filtered(
        self, db: Session, *, status: Optional[ExamStatusEnum] = None, category: Optional[str] = None
    ) -> Query:
        query = self._query_with_relationships(db)
        if status:
            query = query.filter(Exam.status == status)
        if category:
            query = query.filter(Exam.category == category)
        return query.order_by(Exam.scheduled_date.desc(), Exam.id.desc())

    def get_available_for_student(self, db: Session, *, student_id: int, from_date: datetime) -> List[Exam]:
        enrolled = select(ExamEnrollment.exam_id).where(ExamEnrollment.student_id == student_id)
        return (
            self._query_with_relationships(db)
            .filter(
                Exam.status.in_([ExamStatusEnum.SCHEDULED, ExamStatusEnum.ACTIVE]),
                Exam.scheduled_date >= from_date,
                Exam.id.notin_(enrolled),
            )
            .order_by(Exam.scheduled_date.asc())
            .all()
        )

    def get_by_proctor(self, db: Session, *, proctor_id: int) -> List[Exam]:
        return (
            self._query_with_relationships(db)
            .join(exam_proctors, exam_proctors.c.exam_id == Exam.id)
            .filter(exam_proctors.c.proctor_id == proctor_id, Exam.is_proctored.is_(True))
            .order_by(Exam.scheduled_date.asc())
            .all()
        )

    def get_containing_question(self, db: Session, *, question_id: int) -> List[Exam]:
        return (
            self._query_with_relationships(db)
            .join(ExamQuestion, ExamQuestion.exam_id == Exam.id)
            .filter(ExamQuestion.question_id == question_id)
            .all()
        )

    def set_questions(self, db: Session, *, db_obj: Exam, questions: Sequence[Question]) -> None:
        db_obj.exam_questions.clear()
        db.flush()
        for position, question in enumerate(questions):
            db_obj.exam_questions.append(ExamQuestion(question=question, position=position))

    def append_questions(self, db: Session, *, db_obj: Exam, questions: Sequence[Question]) -> int:
        existing = {eq.question_id for eq in db_obj.exam_questions}
        position = max((eq.position for eq in db_obj.exam_questions), default=-1) + 1
        added = 0
        for question in questions:
            if question.id in existing:
                continue
            db_obj.exam_questions.append(ExamQuestion(question=question, position=position))
            existing.add(question.id)
            position += 1
            added += 1
        return added

    def remove_question(self, db: Session, *, db_obj: Exam, question_id: int) -> bool:
        for exam_question in list(db_obj.exam_questions):
            if exam_question.question_id == question_id:
                db_obj.exam_questions.remove(exam_question)
                return True
        return False

    def count_grouped(self, db: Session, column) -> Dict[str, int]:
        rows = (
            self._query_active(db)
            .with_entities(column, func.count(Exam.id))
            .group_by(column)
            .all()
        )
        return {(key.value if hasattr(key, "value") else key): count for key, count in rows}

    def count_active(self, db: Session) -> int:
        return self._query_active(db).count()


exam = CRUDExam(Exam)
