from typing import List, Optional
from sqlalchemy.orm import Session, selectinload

from app.crud.base import CRUDBase
from app.models.exam import ExamEnrollment

class CRUDEnrollment(CRUDBase[ExamEnrollment, dict, dict]):

    def get_by_exam_and_student(self, db: Session, *, exam_id: int, student_id: int) -> Optional[ExamEnrollment]:
        return (
            db.query(ExamEnrollment)
            .filter(ExamEnrollment.exam_id == exam_id, ExamEnrollment.student_id == student_id)
            .first()
        )

    def is_enrolled(self, db: Session, *, exam_id: int, student_id: int) -> bool:
        return self.get_by_exam_and_student(db, exam_id=exam_id, student_id=student_id) is not None

    def get_by_student(self, db: Session, *, student_id: int) -> List[ExamEnrollment]:
        return (
            db.query(ExamEnrollment)
            .options(selectinload(ExamEnrollment.exam))
            .filter(ExamEnrollment.student_id == student_id)
            .order_by(ExamEnrollment.enrolled_at.desc())
            .all()
        )

    def get_by_exam(self, db: Session, *, exam_id: int) -> List[ExamEnrollment]:
        return (
            db.query(ExamEnrollment)
            .options(selectinload(ExamEnrollment.student))
            .filter(ExamEnrollment.exam_id == exam_id)
            .all()
        )


enrollment = CRUDEnrollment(ExamEnrollment)
