import logging
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.core.constants import QuestionTypeEnum, DifficultyLevelEnum
from app.core.exceptions import DomainValidationError, InvalidStateError, NotFoundError
from app.crud.exam import exam as crud_exam
from app.crud.question import question as crud_question
from app.models.question import Question
from app.models.user import User
from app.schemas.question import (
    QuestionCreate,
    QuestionStats,
    QuestionUpdate,
    Question as QuestionSchema,
)
from app.schemas.response import PaginatedResponse
from app.services.exam import exam_service
from app.utils.permission import PermissionHelper as permission_helper

logger = logging.getLogger(__name__)

question_create_adapter = TypeAdapter(QuestionCreate)

SCORING_FIELDS = ("question_type", "options", "correct_answer", "marks", "negative_marks")


def _model_values(question_in) -> Dict[str, Any]:
    data = question_in.model_dump()
    data["question_type"] = QuestionTypeEnum(data["question_type"])
    data.setdefault("correct_answer", None)
    return data


class QuestionService:

    def _get_question(self, db: Session, question_id: int) -> Question:
        question = crud_question.get(db, id=question_id)
        if not question:
            raise NotFoundError("Question not found.")
        return question

    def create_question(self, db: Session, *, question_in, current_user: User) -> Question:
        permission_helper.require_staff(current_user, "Only staff can create questions.")
        question = crud_question.create_with_options(
            db, obj_in=_model_values(question_in), created_by_id=current_user.id
        )
        logger.info(f"Question {question.id} ({question.question_type.value}) created by {current_user.id}")
        return question

    def bulk_create_questions(self, db: Session, *, questions_in: List, current_user: User) -> List[Question]:
        permission_helper.require_staff(current_user, "Only staff can create questions.")
        created = [
            crud_question.create_with_options(
                db, obj_in=_model_values(question_in), created_by_id=current_user.id, commit=False
            )
            for question_in in questions_in
        ]
        db.commit()
        for question in created:
            db.refresh(question)
        logger.info(f"{len(created)} questions created by {current_user.id}")
        return created

    def get_questions(
        self,
        db: Session,
        *,
        category: Optional[str] = None,
        topic: Optional[str] = None,
        difficulty_level: Optional[DifficultyLevelEnum] = None,
        question_type: Optional[QuestionTypeEnum] = None,
        search: Optional[str] = None,
        page: int = 1,
        size: int = 20,
        current_user: User,
    ) -> PaginatedResponse[QuestionSchema]:
        permission_helper.require_staff(current_user, "Only staff can browse the question bank.")
        query = crud_question.query_filtered(
            db,
            category=category,
            topic=topic,
            difficulty_level=difficulty_level,
            question_type=question_type,
            search=search,
        )
        questions, total = crud_question.paginate(query, page=page, size=size)
        return PaginatedResponse[QuestionSchema].build(
            [QuestionSchema.model_validate(q) for q in questions], total, page, size
        )

    def get_question(self, db: Session, *, question_id: int, current_user: User) -> Question:
        permission_helper.require_staff(current_user, "Only staff can view question details.")
        return self._get_question(db, question_id)

    def update_question(
        self, db: Session, *, question_id: int, question_in: QuestionUpdate, current_user: User
    ) -> Question:
        permission_helper.require_staff(current_user, "Only staff can update questions.")
        question = self._get_question(db, question_id)
        changes = question_in.model_dump(exclude_unset=True)

        touches_scoring = any(field in changes for field in SCORING_FIELDS)
        if touches_scoring and crud_question.is_referenced_by_attempt(db, question_id=question_id):
            raise InvalidStateError("This question has already been used in an exam attempt; its scoring cannot change.")

        merged = {
            "question_text": question.question_text,
            "question_type": question.question_type.value,
            "category": question.category,
            "topic": question.topic,
            "difficulty_level": question.difficulty_level,
            "marks": question.marks,
            "negative_marks": question.negative_marks,
            "explanation": question.explanation,
            "correct_answer": question.correct_answer,
            "options": [{"option_text": o.option_text, "is_correct": o.is_correct} for o in question.options],
            **{k: (v.value if k == "question_type" and v is not None else v) for k, v in changes.items()},
        }
        try:
            validated = question_create_adapter.validate_python(merged)
        except ValidationError as e:
            raise DomainValidationError(
                "The updated question is not valid.",
                details={"validation_errors": e.errors(include_url=False, include_context=False, include_input=False)},
            )

        values = _model_values(validated)
        options = values.pop("options", None) or []
        marks_changed = values["marks"] != question.marks

        for field, value in values.items():
            setattr(question, field, value)
        if values["question_type"] != QuestionTypeEnum.TRUE_FALSE:
            question.correct_answer = None
        if "options" in changes or "question_type" in changes:
            crud_question.replace_options(db, db_obj=question, options=options)

        if marks_changed:
            for exam in crud_exam.get_containing_question(db, question_id=question_id):
                exam_service.recompute_total_marks(exam)

        db.commit()
        logger.info(f"Question {question_id} updated by {current_user.id}")
        return self._get_question(db, question_id)

    def retire_question(self, db: Session, *, question_id: int, current_user: User) -> Question:
        permission_helper.require_staff(current_user, "Only staff can delete questions.")
        question = self._get_question(db, question_id)
        question = crud_question.update(db, db_obj=question, obj_in={"is_active": False})
        logger.info(f"Question {question_id} retired by {current_user.id}")
        return question

    def get_categories(self, db: Session) -> List[str]:
        return crud_question.get_categories(db)

    def get_topics(self, db: Session, *, category: Optional[str] = None) -> List[str]:
        return crud_question.get_topics(db, category=category)

    def get_stats(self, db: Session, *, current_user: User) -> QuestionStats:
        permission_helper.require_staff(current_user, "Only staff can view question statistics.")
        return QuestionStats(
            total=crud_question.count_active(db),
            by_category=crud_question.count_grouped(db, Question.category),
            by_difficulty=crud_question.count_grouped(db, Question.difficulty_level),
            by_type=crud_question.count_grouped(db, Question.question_type),
        )


question_service = QuestionService()
