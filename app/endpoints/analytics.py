from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.constants import ANALYTICS_CACHE_PREFIX
from app.core.decorators import cache_endpoint
from app.models.user import User
from app.schemas.analytics import DashboardStats, ExamAnalytics, StudentAnalytics
from app.schemas.response import APIResponse
from app.services.analytics import analytics_service
from app.utils import deps

router = APIRouter()

@router.get("/exams/{exam_id}", response_model=APIResponse[ExamAnalytics])
@cache_endpoint(f"{ANALYTICS_CACHE_PREFIX}:exam", ttl=300)
async def exam_analytics(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    current_user: User = Depends(deps.require_staff)
):
    analytics = analytics_service.get_exam_analytics(db, exam_id=exam_id, current_user=current_user)
    return APIResponse(message="Exam analytics retrieved successfully", data=analytics)

@router.get("/exams/{exam_id}/export")
async def export_exam_results(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    current_user: User = Depends(deps.require_staff)
):
    csv_content = analytics_service.export_exam_results_csv(db, exam_id=exam_id, current_user=current_user)
    return StreamingResponse(
        iter([csv_content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=exam_{exam_id}_results.csv"}
    )

@router.get("/students/me", response_model=APIResponse[StudentAnalytics])
@cache_endpoint(f"{ANALYTICS_CACHE_PREFIX}:student", ttl=300)
async def my_analytics(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student)
):
    analytics = analytics_service.get_student_analytics(db, student_id=current_user.id, current_user=current_user)
    return APIResponse(message="Student analytics retrieved successfully", data=analytics)

@router.get("/students/{student_id}", response_model=APIResponse[StudentAnalytics])
@cache_endpoint(f"{ANALYTICS_CACHE_PREFIX}:student", ttl=300)
async def student_analytics(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    student_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    analytics = analytics_service.get_student_analytics(db, student_id=student_id, current_user=current_user)
    return APIResponse(message="Student analytics retrieved successfully", data=analytics)

@router.get("/dashboard", response_model=APIResponse[DashboardStats])
@cache_endpoint(f"{ANALYTICS_CACHE_PREFIX}:dashboard", ttl=300)
async def dashboard(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_staff)
):
    stats = analytics_service.get_dashboard(db, current_user=current_user)
    return APIResponse(message="Dashboard statistics retrieved successfully", data=stats)
