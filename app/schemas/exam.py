from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import datetime

from app.core.constants import ExamStatusEnum
from app.schemas.question import Question
from app.schemas.exam_attempt import ExamAttemptSummary
from app.schemas.user import UserSummary


class ExamBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    instructions: Optional[str] = None
    category: str = Field(..., min_length=1)
    passing_marks: float = Field(..., ge=0)
    duration_minutes: int = Field(..., gt=0)
    per_question_time: Optional[int] = Field(None, gt=0)
    scheduled_date: datetime
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_proctored: bool = False
    video_monitoring: bool = False
    browser_lockdown: bool = True
    identity_verification: bool = False
    tab_switch_limit: int = Field(3, ge=0)
    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_result_immediately: bool = True
    allow_review: bool = True
    max_attempts: int = Field(1, ge=1)
    status: ExamStatusEnum = ExamStatusEnum.DRAFT

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Data Structures Midterm",
                "category": "Computer Science",
                "passing_marks": 40,
                "duration_minutes": 90,
                "scheduled_date": "2026-03-01T09:00:00",
                "is_proctored": True,
                "tab_switch_limit": 3,
                "max_attempts": 1,
                "status": "scheduled"
            }
        }
    )

class ExamCreate(ExamBase):
    question_ids: List[int] = []

class ExamUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    instructions: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    passing_marks: Optional[float] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, gt=0)
    per_question_time: Optional[int] = Field(None, gt=0)
    scheduled_date: Optional[datetime] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_proctored: Optional[bool] = None
    video_monitoring: Optional[bool] = None
    browser_lockdown: Optional[bool] = None
    identity_verification: Optional[bool] = None
    tab_switch_limit: Optional[int] = Field(None, ge=0)
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    show_result_immediately: Optional[bool] = None
    allow_review: Optional[bool] = None
    max_attempts: Optional[int] = Field(None, ge=1)
    status: Optional[ExamStatusEnum] = None
    question_ids: Optional[List[int]] = None

    @model_validator(mode='after')
    def at_least_one_value(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self

class Exam(ExamBase):
    id: int
    total_marks: float
    question_count: int = 0
    created_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ExamDetail(Exam):
    """Staff view with full question payloads and assigned proctors."""
    questions: List[Question] = []
    proctors: List[UserSummary] = []

class ExamQuestionsUpdate(BaseModel):
    question_ids: List[int] = Field(..., min_length=1)

class ProctorAssignment(BaseModel):
    proctor_ids: List[int] = Field(..., min_length=1)

    @field_validator("proctor_ids")
    @classmethod
    def unique_ids(cls, v):
        return list(dict.fromkeys(v))

class EnrolledExam(BaseModel):
    exam: Exam
    enrolled_at: datetime
    attempts_used: int
    is_completed: bool
    latest_result: Optional[ExamAttemptSummary] = None

class ExamStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_category: Dict[str, int]

class ReminderResult(BaseModel):
    sent: int
    total: int

class Enrollment(BaseModel):
    id: int
    exam_id: int
    student_id: int
    enrolled_at: datetime

    model_config = ConfigDict(from_attributes=True)
