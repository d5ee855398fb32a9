from typing import List, Optional, Union
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.constants import ExamStatusEnum
from app.models.user import User
from app.schemas.exam import (
    EnrolledExam,
    Enrollment,
    Exam,
    ExamCreate,
    ExamDetail,
    ExamQuestionsUpdate,
    ExamStats,
    ExamUpdate,
    ProctorAssignment,
    ReminderResult,
)
from app.schemas.response import APIResponse, PaginatedResponse
from app.schemas.user import UserSummary
from app.services.exam import exam_service
from app.utils import deps
from app.utils.permission import PermissionHelper as permission_helper

router = APIRouter()

@router.post("/", response_model=APIResponse[ExamDetail], status_code=status.HTTP_201_CREATED)
async def create_exam(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_in: ExamCreate,
    current_user: User = Depends(deps.require_staff)
):
    new_exam = exam_service.create_exam(db, exam_in=exam_in, current_user=current_user)
    return APIResponse(message="Exam created successfully", data=ExamDetail.model_validate(new_exam))

@router.get("/", response_model=APIResponse[PaginatedResponse[Exam]])
async def list_exams(
    db: Session = Depends(deps.get_db),
    status: Optional[ExamStatusEnum] = Query(None),
    category: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(10, ge=1, le=100),
    current_user: User = Depends(deps.require_staff)
):
    exams = exam_service.get_exams(
        db, status=status, category=category, page=page, size=size, current_user=current_user
    )
    return APIResponse(message="Exams retrieved successfully", data=exams)

@router.get("/available", response_model=APIResponse[List[Exam]])
async def available_exams(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student)
):
    exams = exam_service.get_available_exams(db, current_user=current_user)
    return APIResponse(message="Available exams retrieved successfully", data=[Exam.model_validate(e) for e in exams])

@router.get("/enrolled", response_model=APIResponse[List[EnrolledExam]])
async def enrolled_exams(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_student)
):
    exams = exam_service.get_enrolled_exams(db, current_user=current_user)
    return APIResponse(message="Enrolled exams retrieved successfully", data=exams)

@router.get("/stats", response_model=APIResponse[ExamStats])
async def exam_stats(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_staff)
):
    stats = exam_service.get_stats(db, current_user=current_user)
    return APIResponse(message="Exam statistics retrieved successfully", data=stats)

@router.get("/proctoring/assigned", response_model=APIResponse[List[Exam]])
async def my_proctored_exams(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_staff)
):
    exams = exam_service.get_proctor_exams(db, current_user=current_user)
    return APIResponse(message="Assigned exams retrieved successfully", data=[Exam.model_validate(e) for e in exams])

@router.get("/proctoring/available-proctors", response_model=APIResponse[List[UserSummary]])
async def available_proctors(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.require_staff)
):
    proctors = exam_service.get_available_proctors(db, current_user=current_user)
    return APIResponse(message="Proctors retrieved successfully", data=[UserSummary.model_validate(p) for p in proctors])

@router.get("/{exam_id}", response_model=APIResponse[Union[ExamDetail, Exam]])
async def get_exam(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    current_user: User = Depends(deps.get_current_user)
):
    """Students get the exam without its questions."""
    exam = exam_service.get_exam(db, exam_id=exam_id, current_user=current_user)
    if permission_helper.is_staff(current_user):
        data = ExamDetail.model_validate(exam)
    else:
        data = Exam.model_validate(exam)
    return APIResponse(message="Exam retrieved successfully", data=data)

@router.put("/{exam_id}", response_model=APIResponse[ExamDetail])
async def update_exam(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    exam_in: ExamUpdate,
    current_user: User = Depends(deps.require_staff)
):
    exam = exam_service.update_exam(db, exam_id=exam_id, exam_in=exam_in, current_user=current_user)
    return APIResponse(message="Exam updated successfully", data=ExamDetail.model_validate(exam))

@router.delete("/{exam_id}", response_model=APIResponse[Exam])
async def delete_exam(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    current_user: User = Depends(deps.require_staff)
):
    exam = exam_service.delete_exam(db, exam_id=exam_id, current_user=current_user)
    return APIResponse(message="Exam deleted successfully", data=Exam.model_validate(exam))

@router.post("/{exam_id}/questions", response_model=APIResponse[ExamDetail])
async def add_exam_questions(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    questions_in: ExamQuestionsUpdate,
    current_user: User = Depends(deps.require_staff)
):
    exam = exam_service.add_questions(
        db, exam_id=exam_id, question_ids=questions_in.question_ids, current_user=current_user
    )
    return APIResponse(message="Questions added successfully", data=ExamDetail.model_validate(exam))

@router.delete("/{exam_id}/questions/{question_id}", response_model=APIResponse[ExamDetail])
async def remove_exam_question(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    question_id: int,
    current_user: User = Depends(deps.require_staff)
):
    exam = exam_service.remove_question(db, exam_id=exam_id, question_id=question_id, current_user=current_user)
    return APIResponse(message="Question removed successfully", data=ExamDetail.model_validate(exam))

@router.post("/{exam_id}/enroll", response_model=APIResponse[Enrollment], status_code=status.HTTP_201_CREATED)
async def enroll_in_exam(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    current_user: User = Depends(deps.require_student)
):
    enrollment = exam_service.enroll(db, exam_id=exam_id, current_user=current_user)
    return APIResponse(message="Enrolled successfully", data=Enrollment.model_validate(enrollment))

@router.post("/{exam_id}/proctors", response_model=APIResponse[ExamDetail])
async def assign_proctors(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    assignment: ProctorAssignment,
    current_user: User = Depends(deps.require_staff)
):
    exam = exam_service.assign_proctors(
        db, exam_id=exam_id, proctor_ids=assignment.proctor_ids, current_user=current_user
    )
    return APIResponse(message="Proctors assigned successfully", data=ExamDetail.model_validate(exam))

@router.delete("/{exam_id}/proctors/{proctor_id}", response_model=APIResponse[ExamDetail])
async def remove_proctor(
    *,
    db: Session = Depends(deps.get_transactional_db),
    exam_id: int,
    proctor_id: int,
    current_user: User = Depends(deps.require_staff)
):
    exam = exam_service.remove_proctor(db, exam_id=exam_id, proctor_id=proctor_id, current_user=current_user)
    return APIResponse(message="Proctor removed successfully", data=ExamDetail.model_validate(exam))

@router.post("/{exam_id}/reminders", response_model=APIResponse[ReminderResult])
async def send_exam_reminders(
    *,
    db: Session = Depends(deps.get_db),
    exam_id: int,
    current_user: User = Depends(deps.require_staff)
):
    result = await exam_service.send_reminders(db, exam_id=exam_id, current_user=current_user)
    return APIResponse(message=f"Sent {result.sent} of {result.total} reminders", data=result)
