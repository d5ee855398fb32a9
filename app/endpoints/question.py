from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.constants import DifficultyLevelEnum, QuestionTypeEnum
from app.models.user import User
from app.schemas.question import Question, QuestionBulkCreate, QuestionCreate, QuestionStats, QuestionUpdate
from app.schemas.response import APIResponse, PaginatedResponse
from app.services.question import question_service
from app.utils import deps

router = APIRouter()

@router.post("/", response_model=APIResponse[Question], status_code=status.HTTP_201_CREATED)
async def create_question(
    *,
    db: Session = Depends(deps.get_transactional_db),
    question_in: QuestionCreate = Body(...),
    current_user: User = Depends(deps.require_staff)
):
    question = question_service.create_question(db, question_in=question_in, current_user=current_user)
    return APIResponse(message="Question created successfully", data=Question.model_validate(question))

@router.post("/bulk", response_model=APIResponse[List[Question]], status_code=status.HTTP_201_CREATED)
async def bulk_create_questions(
    *,
    db: Session = Depends(deps.get_transactional_db),
    bulk_in: QuestionBulkCreate,
    current_user: User = Depends(deps.require_staff)
):
    questions = question_service.bulk_create_questions(db, questions_in=bulk_in.questions, current_user=current_user)
    return APIResponse(
        message=f"{len(questions)} questions created successfully",
        data=[Question.model_validate(q) for q in questions]
    )

@router.get("/", response_model=APIResponse[PaginatedResponse[Question]])
async def list_questions(
    db: Session = Depends(deps.get_db),
    category: Optional[str] = Query(None),
    topic: Optional[str] = Query(None),
    difficulty_level: Optional[DifficultyLevelEnum] = Query(None),
    question_type: Optional[QuestionTypeEnum] = Query(None),
    search: Optional[str] = Query(None, min_length=1),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(deps.require_staff)
):
    questions = question_service.get_questions(
        db,
        category=category,
        topic=topic,
        difficulty_level=difficulty_level,
        question_type=question_type,
        search=search,
        page=page,
        size=size,
        current_user=current_user
    )
    return APIResponse(message="Questions retrieved successfully", data=questions)

@router.get("/categories", response_model=APIResponse[List[str]])
async def list_categories(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_staff)
):
    return APIResponse(message="Categories retrieved successfully", data=question_service.get_categories(db))

@router.get("/topics", response_model=APIResponse[List[str]])
async def list_topics(
    db: Session = Depends(deps.get_db),
    category: Optional[str] = Query(None),
    current_user: User = Depends(deps.require_staff)
):
    return APIResponse(message="Topics retrieved successfully", data=question_service.get_topics(db, category=category))

@router.get("/stats", response_model=APIResponse[QuestionStats])
async def question_stats(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_staff)
):
    stats = question_service.get_stats(db, current_user=current_user)
    return APIResponse(message="Question statistics retrieved successfully", data=stats)

@router.get("/{question_id}", response_model=APIResponse[Question])
async def get_question(
    *,
    db: Session = Depends(deps.get_db),
    question_id: int,
    current_user: User = Depends(deps.require_staff)
):
    question = question_service.get_question(db, question_id=question_id, current_user=current_user)
    return APIResponse(message="Question retrieved successfully", data=Question.model_validate(question))

@router.put("/{question_id}", response_model=APIResponse[Question])
async def update_question(
    *,
    db: Session = Depends(deps.get_transactional_db),
    question_id: int,
    question_in: QuestionUpdate,
    current_user: User = Depends(deps.require_staff)
):
    question = question_service.update_question(
        db, question_id=question_id, question_in=question_in, current_user=current_user
    )
    return APIResponse(message="Question updated successfully", data=Question.model_validate(question))

@router.delete("/{question_id}", response_model=APIResponse[Question])
async def delete_question(
    *,
    db: Session = Depends(deps.get_transactional_db),
    question_id: int,
    current_user: User = Depends(deps.require_staff)
):
    question = question_service.retire_question(db, question_id=question_id, current_user=current_user)
    return APIResponse(message="Question deleted successfully", data=Question.model_validate(question))
