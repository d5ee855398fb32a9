from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, Query, selectinload

from app.core.constants import QuestionTypeEnum, DifficultyLevelEnum
from app.crud.base import CRUDBase
from app.models.question import Question, QuestionOption
from app.models.exam_attempt import AttemptAnswer
from app.schemas.question import QuestionUpdate

class CRUDQuestion(CRUDBase[Question, Any, QuestionUpdate]):

    def _query_with_relationships(self, db: Session) -> Query:
        return db.query(Question).options(selectinload(Question.options))

    def get(self, db: Session, id: int) -> Optional[Question]:
        return self._query_with_relationships(db).filter(Question.id == id).first()

    def get_by_ids(self, db: Session, *, ids: Sequence[int], active_only: bool = True) -> List[Question]:
        if not ids:
            return []
        query = self._query_with_relationships(db).filter(Question.id.in_(ids))
        if active_only:
            query = query.filter(Question.is_active.is_(True))
        return query.all()

    def create_with_options(
        self, db: Session, *, obj_in: Dict[str, Any], created_by_id: Optional[int], commit: bool = True
    ) -> Question:
        options = obj_in.pop("options", None) or []
        db_obj = Question(**obj_in, created_by_id=created_by_id)
        db_obj.options = [
            QuestionOption(position=index, option_text=option["option_text"], is_correct=option["is_correct"])
            for index, option in enumerate(options)
        ]
        db.add(db_obj)
        db.flush()
        if commit:
            db.commit()
        db.refresh(db_obj)
        return db_obj

    def replace_options(self, db: Session, *, db_obj: Question, options: List[Dict[str, Any]]) -> None:
        db_obj.options.clear()
        db.flush()
        for index, option in enumerate(options):
            db_obj.options.append(
                QuestionOption(position=index, option_text=option["option_text"], is_correct=option["is_correct"])
            )

    def query_filtered(
        self,
        db: Session,
        *,
        category: Optional[str] = None,
        topic: Optional[str] = None,
        difficulty_level: Optional[DifficultyLevelEnum] = None,
        question_type: Optional[QuestionTypeEnum] = None,
        search: Optional[str] = None,
    ) -> Query:
        query = self._query_with_relationships(db).filter(Question.is_active.is_(True))
        if category:
            query = query.filter(Question.category == category)
        if topic:
            query = query.filter(Question.topic == topic)
        if difficulty_level:
            query = query.filter(Question.difficulty_level == difficulty_level)
        if question_type:
            query = query.filter(Question.question_type == question_type)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Question.question_text.ilike(pattern), Question.topic.ilike(pattern)))
        return query.order_by(Question.created_at.desc(), Question.id.desc())

    def get_categories(self, db: Session) -> List[str]:
        rows = (
            db.query(Question.category)
            .filter(Question.is_active.is_(True))
            .distinct()
            .order_by(Question.category)
            .all()
        )
        return [row[0] for row in rows]

    def get_topics(self, db: Session, *, category: Optional[str] = None) -> List[str]:
        query = db.query(Question.topic).filter(Question.is_active.is_(True), Question.topic.isnot(None))
        if category:
            query = query.filter(Question.category == category)
        return [row[0] for row in query.distinct().order_by(Question.topic).all()]

    def count_grouped(self, db: Session, column) -> Dict[str, int]:
        rows = (
            db.query(column, func.count(Question.id))
            .filter(Question.is_active.is_(True))
            .group_by(column)
            .all()
        )
        return {(key.value if hasattr(key, "value") else key): count for key, count in rows}

    def count_active(self, db: Session) -> int:
        return db.query(func.count(Question.id)).filter(Question.is_active.is_(True)).scalar() or 0

    def is_referenced_by_attempt(self, db: Session, *, question_id: int) -> bool:
        return db.query(
            db.query(AttemptAnswer.id).filter(AttemptAnswer.question_id == question_id).exists()
        ).scalar()


question = CRUDQuestion(Question)
