from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.models.user import User
from app.schemas.exam_attempt import ExamAttempt
from app.schemas.grading import BulkGradeRequest, GradeAnswerRequest, PendingGradingItem
from app.schemas.response import APIResponse, PaginatedResponse
from app.services.grading import grading_service
from app.utils import deps

router = APIRouter()

@router.get("/pending", response_model=APIResponse[PaginatedResponse[PendingGradingItem]])
async def list_pending_grading(
    db: Session = Depends(deps.get_db),
    exam_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(deps.require_staff)
):
    pending = grading_service.list_pending(db, exam_id=exam_id, page=page, size=size)
    return APIResponse(message="Pending submissions retrieved successfully", data=pending)

@router.put("/attempts/{attempt_id}/answers/{answer_id}", response_model=APIResponse[ExamAttempt])
async def grade_answer(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    answer_id: int,
    grade_in: GradeAnswerRequest,
    current_user: User = Depends(deps.require_staff)
):
    attempt = grading_service.grade_answer(
        db, attempt_id=attempt_id, answer_id=answer_id, grade_in=grade_in, reviewer=current_user
    )
    await cache.invalidate_analytics()
    return APIResponse(message="Answer graded successfully", data=ExamAttempt.model_validate(attempt))

@router.post("/attempts/{attempt_id}", response_model=APIResponse[ExamAttempt])
async def bulk_grade_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    grades_in: BulkGradeRequest,
    current_user: User = Depends(deps.require_staff)
):
    attempt = grading_service.bulk_grade(db, attempt_id=attempt_id, grades_in=grades_in, reviewer=current_user)
    await cache.invalidate_analytics()
    return APIResponse(message="Attempt graded successfully", data=ExamAttempt.model_validate(attempt))
