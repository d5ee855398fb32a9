from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.core.constants import ProctoringEventTypeEnum, SeverityEnum
from app.schemas.exam_attempt import ExamAttemptSummary, ProctoringFlag
from app.schemas.user import UserSummary


class ProctoringEventCreate(BaseModel):
    exam_id: Optional[int] = None
    attempt_id: Optional[int] = None
    event_type: ProctoringEventTypeEnum
    description: Optional[str] = None
    severity: SeverityEnum = SeverityEnum.LOW
    screenshot: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = None

class ProctoringLog(BaseModel):
    id: int
    exam_id: int
    student_id: int
    attempt_id: Optional[int] = None
    event_type: ProctoringEventTypeEnum
    description: Optional[str] = None
    severity: SeverityEnum
    screenshot: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = None
    is_reviewed: bool
    reviewed_by_id: Optional[int] = None
    review_notes: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)

class ProctoringLogReview(BaseModel):
    review_notes: Optional[str] = None

class TerminateRequest(BaseModel):
    reason: str = Field(..., min_length=1)

class ProctoringEventResult(BaseModel):
    log: ProctoringLog
    attempt_terminated: bool = False

class FlaggedAttempt(ExamAttemptSummary):
    flag_count: int
    proctoring_flags: List[ProctoringFlag] = []

class ProctoringStats(BaseModel):
    total_logs: int
    reviewed: int
    pending_review: int
    by_severity: Dict[str, int]
    by_event_type: Dict[str, int]
    recent_logs: List[ProctoringLog]

class ActiveSession(BaseModel):
    attempt: ExamAttemptSummary
    student: UserSummary
    exam_title: str
    flag_count: int
    recent_logs: List[ProctoringLog]
