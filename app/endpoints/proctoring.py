from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.cache import cache
from app.core.constants import ProctoringEventTypeEnum, SeverityEnum, TAB_SWITCH_TERMINATION_REASON
from app.models.user import User
from app.schemas.exam_attempt import ExamAttempt
from app.schemas.proctoring import (
    ActiveSession,
    FlaggedAttempt,
    ProctoringEventCreate,
    ProctoringEventResult,
    ProctoringLog,
    ProctoringLogReview,
    ProctoringStats,
    TerminateRequest,
)
from app.schemas.response import APIResponse, PaginatedResponse
from app.services.proctoring import proctoring_service
from app.utils import deps
from app.utils.events import event_bus

router = APIRouter()

@router.post("/events", response_model=APIResponse[ProctoringEventResult], status_code=status.HTTP_201_CREATED)
async def log_proctoring_event(
    *,
    db: Session = Depends(deps.get_transactional_db),
    event_in: ProctoringEventCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(deps.get_current_user)
):
    log, terminated = proctoring_service.record_event(db, event_in=event_in, current_user=current_user)
    background_tasks.add_task(event_bus.publish, "proctoring_event", proctoring_service.build_event_payload(log, terminated))
    if terminated:
        attempt = log.attempt
        background_tasks.add_task(
            event_bus.publish,
            "attempt_terminated",
            proctoring_service.build_termination_payload(attempt, TAB_SWITCH_TERMINATION_REASON)
        )
        await cache.invalidate_analytics()

    message = "Exam attempt terminated: tab switch limit exceeded" if terminated else "Proctoring event logged"
    return APIResponse(
        message=message,
        data=ProctoringEventResult(log=ProctoringLog.model_validate(log), attempt_terminated=terminated)
    )

@router.get("/logs", response_model=APIResponse[PaginatedResponse[ProctoringLog]])
async def list_proctoring_logs(
    db: Session = Depends(deps.get_db),
    exam_id: Optional[int] = Query(None),
    student_id: Optional[int] = Query(None),
    event_type: Optional[ProctoringEventTypeEnum] = Query(None),
    severity: Optional[SeverityEnum] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(deps.require_staff)
):
    logs = proctoring_service.get_logs(
        db, exam_id=exam_id, student_id=student_id, event_type=event_type, severity=severity, page=page, size=size
    )
    return APIResponse(message="Proctoring logs retrieved successfully", data=logs)

@router.get("/exams/{exam_id}/students/{student_id}/logs", response_model=APIResponse[List[ProctoringLog]])
async def student_exam_logs(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    student_id: int,
    current_user: User = Depends(deps.require_staff)
):
    logs = proctoring_service.get_student_logs(db, exam_id=exam_id, student_id=student_id)
    return APIResponse(message="Proctoring logs retrieved successfully", data=[ProctoringLog.model_validate(log) for log in logs])

@router.put("/logs/{log_id}/review", response_model=APIResponse[ProctoringLog])
async def review_proctoring_log(
    *,
    db: Session = Depends(deps.get_transactional_db),
    log_id: int,
    review_in: ProctoringLogReview,
    current_user: User = Depends(deps.require_staff)
):
    log = proctoring_service.review_log(db, log_id=log_id, review_notes=review_in.review_notes, reviewer=current_user)
    return APIResponse(message="Proctoring log reviewed", data=ProctoringLog.model_validate(log))

@router.get("/flagged", response_model=APIResponse[PaginatedResponse[FlaggedAttempt]])
async def flagged_attempts(
    db: Session = Depends(deps.get_db),
    exam_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(deps.require_staff)
):
    attempts = proctoring_service.get_flagged_attempts(db, exam_id=exam_id, page=page, size=size)
    return APIResponse(message="Flagged attempts retrieved successfully", data=attempts)

@router.get("/stats", response_model=APIResponse[ProctoringStats])
async def proctoring_stats(
    db: Session = Depends(deps.get_db),
    exam_id: Optional[int] = Query(None),
    current_user: User = Depends(deps.require_staff)
):
    stats = proctoring_service.get_stats(db, exam_id=exam_id)
    return APIResponse(message="Proctoring statistics retrieved successfully", data=stats)

@router.get("/active-sessions", response_model=APIResponse[List[ActiveSession]])
async def active_sessions(
    db: Session = Depends(deps.get_db),
    exam_id: Optional[int] = Query(None),
    current_user: User = Depends(deps.require_staff)
):
    sessions = proctoring_service.get_active_sessions(db, exam_id=exam_id)
    return APIResponse(message="Active sessions retrieved successfully", data=sessions)

@router.post("/attempts/{attempt_id}/terminate", response_model=APIResponse[ExamAttempt])
async def terminate_attempt(
    *,
    db: Session = Depends(deps.get_transactional_db),
    attempt_id: int,
    terminate_in: TerminateRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(deps.require_staff)
):
    attempt = proctoring_service.terminate(
        db, attempt_id=attempt_id, reason=terminate_in.reason, current_user=current_user
    )
    background_tasks.add_task(
        event_bus.publish,
        "attempt_terminated",
        proctoring_service.build_termination_payload(attempt, terminate_in.reason)
    )
    await cache.invalidate_analytics()
    return APIResponse(message="Exam attempt terminated", data=ExamAttempt.model_validate(attempt))
