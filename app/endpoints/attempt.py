from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.models.user import User
from app.schemas.exam_attempt import (
    AnswerSubmission,
    AttemptSession,
    ExamAttempt,
    ExamAttemptSummary,
    FeedbackRequest,
    SaveAnswerResult,
    SubmissionResult,
    SubmitRequest,
)
from app.schemas.response import APIResponse, PaginatedResponse
from app.services.exam_attempt import exam_attempt_service
from app.utils import deps
from app.utils.events import event_bus

router = APIRouter()

@router.post("/exams/{exam_id}/attempts", response_model=APIResponse[AttemptSession], status_code=status.HTTP_201_CREATED)
async def start_exam_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    response: Response,
    current_user: User = Depends(deps.get_current_user)
):
    """Start a new attempt, or resume the one already in progress."""
    session = exam_attempt_service.start_or_resume(db, exam_id=exam_id, current_user=current_user)
    if session.resumed:
        response.status_code = status.HTTP_200_OK
        return APIResponse(message="Exam attempt resumed", data=session)
    return APIResponse(message="Exam attempt started successfully", data=session)

@router.get("/exams/{exam_id}/results", response_model=APIResponse[List[ExamAttemptSummary]])
async def get_exam_results(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    current_user: User = Depends(deps.require_staff)
):
    attempts = exam_attempt_service.get_exam_results(db, exam_id=exam_id, current_user=current_user)
    return APIResponse(
        message="Exam results retrieved successfully",
        data=[ExamAttemptSummary.model_validate(a) for a in attempts]
    )

@router.put("/attempts/{attempt_id}/answers", response_model=APIResponse[SaveAnswerResult])
async def save_answer(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    answer_in: AnswerSubmission,
    current_user: User = Depends(deps.get_current_user)
):
    result = exam_attempt_service.save_answer(db, attempt_id=attempt_id, answer_in=answer_in, current_user=current_user)
    message = "Answer saved" if result.saved else "Question is not part of this attempt; answer ignored"
    return APIResponse(message=message, data=result)

@router.post("/attempts/{attempt_id}/submit", response_model=APIResponse[SubmissionResult])
async def submit_exam_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    submission: SubmitRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(deps.get_current_user)
):
    attempt = exam_attempt_service.submit(
        db, attempt_id=attempt_id, answers=submission.answers, current_user=current_user
    )
    result = exam_attempt_service.build_submission_result(attempt)
    background_tasks.add_task(
        event_bus.publish, "attempt_submitted", exam_attempt_service.build_result_notification(attempt)
    )
    await cache.invalidate_analytics()
    return APIResponse(message="Exam submitted successfully", data=result)

@router.get("/attempts/me", response_model=APIResponse[PaginatedResponse[ExamAttemptSummary]])
async def get_my_attempts(
    db: Session = Depends(deps.get_db),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(deps.get_current_user)
):
    attempts = exam_attempt_service.get_my_attempts(db, current_user=current_user, page=page, size=size)
    return APIResponse(message="Exam attempts retrieved successfully", data=attempts)

@router.get("/attempts/{attempt_id}", response_model=APIResponse[ExamAttempt])
async def get_exam_attempt(
    *,
    db: Session = Depends(deps.get_db),
    attempt_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    attempt = exam_attempt_service.get_attempt(db, attempt_id=attempt_id, current_user=current_user)
    return APIResponse(
        message="Exam attempt retrieved successfully",
        data=exam_attempt_service.present_attempt(attempt, current_user),
    )

@router.post("/attempts/{attempt_id}/feedback", response_model=APIResponse[ExamAttempt])
async def add_attempt_feedback(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    feedback_in: FeedbackRequest,
    current_user: User = Depends(deps.require_staff)
):
    attempt = exam_attempt_service.add_feedback(
        db, attempt_id=attempt_id, feedback=feedback_in.feedback, current_user=current_user
    )
    return APIResponse(message="Feedback added successfully", data=ExamAttempt.model_validate(attempt))
