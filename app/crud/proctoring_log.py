from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, Query

from app.core.constants import ProctoringEventTypeEnum, SeverityEnum
from app.crud.base import CRUDBase
from app.models.proctoring_log import ProctoringLog
from app.schemas.proctoring import ProctoringEventCreate

class CRUDProctoringLog(CRUDBase[ProctoringLog, ProctoringEventCreate, dict]):

    def query_filtered(
        self,
        db: Session,
        *,
        exam_id: Optional[int] = None,
        student_id: Optional[int] = None,
        event_type: Optional[ProctoringEventTypeEnum] = None,
        severity: Optional[SeverityEnum] = None,
    ) -> Query:
        query = db.query(ProctoringLog)
        if exam_id is not None:
            query = query.filter(ProctoringLog.exam_id == exam_id)
        if student_id is not None:
            query = query.filter(ProctoringLog.student_id == student_id)
        if event_type:
            query = query.filter(ProctoringLog.event_type == event_type)
        if severity:
            query = query.filter(ProctoringLog.severity == severity)
        return query.order_by(ProctoringLog.timestamp.desc(), ProctoringLog.id.desc())

    def get_by_student_and_exam(self, db: Session, *, student_id: int, exam_id: int) -> List[ProctoringLog]:
        return (
            db.query(ProctoringLog)
            .filter(ProctoringLog.student_id == student_id, ProctoringLog.exam_id == exam_id)
            .order_by(ProctoringLog.timestamp.asc(), ProctoringLog.id.asc())
            .all()
        )

    def get_recent_by_attempt(self, db: Session, *, attempt_id: int, limit: int = 5) -> List[ProctoringLog]:
        return (
            db.query(ProctoringLog)
            .filter(ProctoringLog.attempt_id == attempt_id)
            .order_by(ProctoringLog.timestamp.desc(), ProctoringLog.id.desc())
            .limit(limit)
            .all()
        )

    def count_grouped(self, db: Session, column, *, exam_id: Optional[int] = None) -> Dict[str, int]:
        query = db.query(column, func.count(ProctoringLog.id))
        if exam_id is not None:
            query = query.filter(ProctoringLog.exam_id == exam_id)
        rows = query.group_by(column).all()
        return {(key.value if hasattr(key, "value") else key): count for key, count in rows}


proctoring_log = CRUDProctoringLog(ProctoringLog)
